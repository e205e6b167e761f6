import pytest

from hoor.errors import ValidationError
from hoor.extensions import db
from hoor.models import Payment, SalesInvoice
from hoor.services.balance_service import PartyKind, customer_statement, verify_balance
from hoor.services.return_service import process_exchange, return_summary
from hoor.services.sales_service import checkout
from hoor.services.settings_service import set_setting
from hoor.services.stock_service import get_stock


@pytest.fixture
def paid_sale(no_tax, stocked, customer):
    variant, _ = stocked
    return checkout(
        [{"variant_id": variant.id, "qty": 1}],
        customer_id=customer.id,
        paid_amount_cents=10000,
        occurred_at="2025-01-01T10:00:00",
    )


def test_exchange_settles_only_the_net_difference(paid_sale, stocked, customer):
    variant, second = stocked
    assert customer.current_balance_cents == 0

    doc = process_exchange(
        paid_sale.invoice_number,
        [{"sales_item_id": paid_sale.items[0].id, "qty": 1}],
        [{"variant_id": second.id, "qty": 1}],
        occurred_at="2025-01-03T12:00:00",
    )

    assert doc.type == "exchange"
    assert doc.return_total_cents == 10000
    assert doc.exchange_total_cents == 13000
    assert doc.difference_cents == 3000

    payments = db.session.query(Payment).filter_by(ref_type="exchange").all()
    assert [(p.direction, p.amount_cents) for p in payments] == [("in", 3000)]
    assert customer.current_balance_cents == 3000
    assert verify_balance(PartyKind.CUSTOMER, customer.id) == 3000

    assert get_stock(variant.id) == 10
    assert get_stock(second.id) == 9

    replacement = db.session.get(SalesInvoice, doc.exchange_invoice_id)
    assert replacement.invoice_number == "EXC-20250103-0001"
    assert replacement.total_cents == 13000
    assert return_summary(doc.id)["exchange_invoice_number"] == replacement.invoice_number

    # The replacement invoice is carried by the exchange document, not billed again
    references = [e.reference for e in customer_statement(customer.id)]
    assert replacement.invoice_number not in references
    assert doc.return_number in references


def test_cheaper_replacement_refunds_the_difference(no_tax, stocked, customer):
    variant, second = stocked
    sale = checkout([{"variant_id": second.id, "qty": 1}], customer_id=customer.id, paid_amount_cents=13000)

    doc = process_exchange(
        sale.invoice_number,
        [{"sales_item_id": sale.items[0].id, "qty": 1}],
        [{"variant_id": variant.id, "qty": 1}],
    )

    assert doc.difference_cents == -3000
    payment = db.session.query(Payment).filter_by(ref_type="exchange").one()
    assert payment.direction == "out"
    assert payment.amount_cents == 3000
    assert customer.current_balance_cents == -3000
    assert verify_balance(PartyKind.CUSTOMER, customer.id) == -3000


def test_even_exchange_posts_no_payment(paid_sale, stocked):
    variant, _ = stocked
    doc = process_exchange(
        paid_sale.invoice_number,
        [{"sales_item_id": paid_sale.items[0].id, "qty": 1}],
        [{"variant_id": variant.id, "qty": 1}],
    )
    assert doc.difference_cents == 0
    assert db.session.query(Payment).filter_by(ref_type="exchange").count() == 0


def test_exchange_needs_replacement_lines_and_immediate_settlement(paid_sale, stocked):
    _, second = stocked
    item = {"sales_item_id": paid_sale.items[0].id, "qty": 1}
    with pytest.raises(ValidationError):
        process_exchange(paid_sale.invoice_number, [item], [])
    with pytest.raises(ValidationError):
        process_exchange(paid_sale.invoice_number, [item], [{"variant_id": second.id, "qty": 1}], method="credit")
    assert paid_sale.items[0].returned_qty == 0


def test_like_for_like_swap_settles_at_zero_with_tax_enabled(db_session, stocked, customer):
    variant, _ = stocked
    set_setting("taxEnabled", True)
    set_setting("taxRate", 15)
    sale = checkout([{"variant_id": variant.id, "qty": 1}], customer_id=customer.id, paid_amount_cents=11500)
    assert sale.total_cents == 11500

    doc = process_exchange(
        sale.invoice_number,
        [{"sales_item_id": sale.items[0].id, "qty": 1}],
        [{"variant_id": variant.id, "qty": 1}],
    )

    assert doc.return_total_cents == 10000
    assert doc.exchange_total_cents == 10000
    assert doc.difference_cents == 0
    assert db.session.query(Payment).filter_by(ref_type="exchange").count() == 0
    assert verify_balance(PartyKind.CUSTOMER, customer.id) == 0

    replacement = db.session.get(SalesInvoice, doc.exchange_invoice_id)
    assert (replacement.tax_amount_cents, replacement.discount_amount_cents) == (0, 0)
    assert replacement.total_cents == 10000


def test_upgrade_with_tax_enabled_charges_the_untaxed_difference(db_session, stocked, customer):
    variant, second = stocked
    set_setting("taxEnabled", True)
    sale = checkout([{"variant_id": variant.id, "qty": 1}], customer_id=customer.id, paid_amount_cents=11500)

    doc = process_exchange(
        sale.invoice_number,
        [{"sales_item_id": sale.items[0].id, "qty": 1}],
        [{"variant_id": second.id, "qty": 1}],
    )

    assert doc.difference_cents == 3000
    assert customer.current_balance_cents == 3000
