from datetime import datetime

import pytest

from hoor.errors import ValidationError
from hoor.services import reporting_service
from hoor.services.return_service import process_return
from hoor.services.sales_service import checkout


@pytest.fixture
def sales(no_tax, stocked):
    variant, second = stocked
    first = checkout(
        [{"variant_id": variant.id, "qty": 2}, {"variant_id": second.id, "qty": 1}],
        paid_amount_cents=33000,
        occurred_at="2025-01-10T10:00:00",
    )
    checkout([{"variant_id": variant.id, "qty": 1}], paid_amount_cents=10000, occurred_at="2025-01-11T10:00:00")
    process_return(first.invoice_number, [{"sales_item_id": first.items[0].id, "qty": 1}], occurred_at="2025-01-12T10:00:00")
    return first


def test_sales_summary(sales):
    report = reporting_service.sales_summary(start="2025-01-01T00:00:00", end="2025-02-01T00:00:00")
    assert report["invoice_count"] == 2
    assert report["revenue_cents"] == 43000
    assert report["cost_cents"] == 3 * 6000 + 8000
    assert report["gross_profit_cents"] == 43000 - 26000
    assert report["returns_total_cents"] == 10000
    assert report["net_revenue_cents"] == 33000
    assert report["average_order_cents"] == 21500


def test_sales_summary_range_excludes_other_days(sales):
    report = reporting_service.sales_summary(start="2025-01-11T00:00:00", end="2025-01-12T00:00:00")
    assert report["invoice_count"] == 1
    assert report["revenue_cents"] == 10000


def test_sales_summary_rejects_inverted_range(db_session):
    with pytest.raises(ValidationError):
        reporting_service.sales_summary(start="2025-02-01T00:00:00", end="2025-01-01T00:00:00")


def test_sales_by_variant_and_brand(sales, stocked):
    variant, second = stocked
    rows = reporting_service.sales_by_variant()
    assert [(r["variant_id"], r["qty_sold"], r["revenue_cents"]) for r in rows] == [
        (variant.id, 3, 30000),
        (second.id, 1, 13000),
    ]
    brands = reporting_service.sales_by_brand()
    assert len(brands) == 1
    assert brands[0]["revenue_cents"] == 43000


def test_stock_reports(sales, stocked):
    variant, second = stocked
    report = reporting_service.stock_report()
    by_id = {r["variant_id"]: r for r in report["rows"]}
    assert by_id[variant.id]["stock"] == 8
    assert by_id[second.id]["stock"] == 9
    assert report["total_units"] == 17

    assert reporting_service.low_stock() == []
    now = datetime(2025, 6, 1)
    dead = reporting_service.dead_stock(days=90, now=now)
    assert {r["variant_id"] for r in dead} == {variant.id, second.id}
    assert reporting_service.dead_stock(days=365, now=now) == []
