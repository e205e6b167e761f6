from datetime import date

import pytest

from hoor.errors import ValidationError
from hoor.services.numbering_service import counter_key, next_invoice_number
from hoor.services.sales_service import checkout
from hoor.services.settings_service import all_settings, get_setting


def test_numbers_are_sequential_per_day_and_reset_next_day(db_session):
    day = date(2025, 1, 1)
    assert next_invoice_number("INV", day) == "INV-20250101-0001"
    assert next_invoice_number("INV", day) == "INV-20250101-0002"
    assert next_invoice_number("INV", date(2025, 1, 2)) == "INV-20250102-0001"
    db_session.commit()

    assert get_setting(counter_key("INV", day)) == 2
    assert get_setting(counter_key("INV", date(2025, 1, 2))) == 1


def test_prefixes_have_independent_counters(db_session):
    day = date(2025, 3, 9)
    assert next_invoice_number("INV", day) == "INV-20250309-0001"
    assert next_invoice_number("PUR", day) == "PUR-20250309-0001"
    assert next_invoice_number("RET", day) == "RET-20250309-0001"


def test_unknown_prefix_is_rejected(db_session):
    with pytest.raises(ValidationError):
        next_invoice_number("XYZ", date(2025, 1, 1))


def test_checkout_numbers_follow_the_sale_date(no_tax, stocked):
    variant, _ = stocked
    first = checkout([{"variant_id": variant.id, "qty": 1}], paid_amount_cents=10000, occurred_at="2025-01-01T09:00:00")
    second = checkout([{"variant_id": variant.id, "qty": 1}], paid_amount_cents=10000, occurred_at="2025-01-01T17:30:00")
    third = checkout([{"variant_id": variant.id, "qty": 1}], paid_amount_cents=10000, occurred_at="2025-01-02T08:00:00")

    assert first.invoice_number == "INV-20250101-0001"
    assert second.invoice_number == "INV-20250101-0002"
    assert third.invoice_number == "INV-20250102-0001"


def test_counters_are_hidden_from_settings_listing(db_session):
    next_invoice_number("INV", date(2025, 1, 1))
    db_session.commit()
    assert "INV_counter_20250101" not in all_settings()
