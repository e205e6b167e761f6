from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from hoor.extensions import db
from hoor.errors import NotFoundError, StorageError, ValidationError
from hoor.models import AuditLog, Payment, SalesInvoice, StockMove, StockRefType
from hoor.services import sales_service
from hoor.services.numbering_service import counter_key
from hoor.services.sales_service import checkout, invoice_summary
from hoor.services.settings_service import get_setting, set_setting
from hoor.services.stock_service import get_stock, list_moves_for_ref


def test_cash_checkout_writes_every_leg(no_tax, stocked):
    variant, second = stocked
    invoice = checkout(
        [{"variant_id": variant.id, "qty": 2}, {"variant_id": second.id, "qty": 1}],
        paid_amount_cents=40000,
        occurred_at="2025-01-01T10:00:00",
    )

    assert invoice.invoice_number == "INV-20250101-0001"
    assert invoice.subtotal_cents == 33000
    assert invoice.total_cents == 33000
    assert invoice.paid_amount_cents == 33000
    assert invoice.change_due_cents == 7000
    assert invoice.payment_status == "paid"

    assert get_stock(variant.id) == 8
    assert get_stock(second.id) == 9
    moves = list_moves_for_ref(StockRefType.SALE, invoice.id)
    assert [(m.variant_id, m.quantity_delta) for m in moves] == [(variant.id, -2), (second.id, -1)]

    payments = db.session.query(Payment).filter_by(ref_type="sale", ref_id=invoice.id).all()
    assert [(p.direction, p.amount_cents) for p in payments] == [("in", 33000)]

    summary = invoice_summary(invoice.id)
    assert [item["unit_cost_snapshot_cents"] for item in summary["items"]] == [6000, 8000]
    assert db.session.query(AuditLog).filter_by(action="sale.checkout", entity_id=invoice.id).count() == 1


def test_checkout_applies_store_tax(db_session, stocked):
    variant, _ = stocked
    set_setting("taxEnabled", True)
    set_setting("taxRate", 15)

    invoice = checkout([{"variant_id": variant.id, "qty": 1}], paid_amount_cents=11500)

    assert invoice.tax_amount_cents == 1500
    assert invoice.total_cents == 11500


def test_partial_payment_raises_customer_balance(no_tax, stocked, customer):
    variant, _ = stocked
    invoice = checkout(
        [{"variant_id": variant.id, "qty": 3}],
        customer_id=customer.id,
        paid_amount_cents=10000,
    )

    assert invoice.payment_status == "partial"
    assert invoice.paid_amount_cents == 10000
    assert customer.current_balance_cents == 20000


def test_credit_sale_requires_customer_and_no_payment(no_tax, stocked, customer):
    variant, _ = stocked
    with pytest.raises(ValidationError):
        checkout([{"variant_id": variant.id, "qty": 1}], method="credit")
    with pytest.raises(ValidationError):
        checkout([{"variant_id": variant.id, "qty": 1}], method="credit", customer_id=customer.id, paid_amount_cents=500)

    invoice = checkout([{"variant_id": variant.id, "qty": 1}], method="credit", customer_id=customer.id)
    assert invoice.payment_status == "unpaid"
    assert db.session.query(Payment).count() == 0
    assert customer.current_balance_cents == 10000


def test_manual_price_and_line_discount(no_tax, stocked):
    variant, _ = stocked
    invoice = checkout(
        [{"variant_id": variant.id, "qty": 2, "unit_price_cents": 9000, "line_discount_cents": 1000}],
        discount={"percent": 10, "is_percent": True},
        paid_amount_cents=20000,
    )
    assert invoice.subtotal_cents == 17000
    assert invoice.discount_amount_cents == 1700
    assert invoice.discount_percent == 10.0
    assert invoice.total_cents == 15300


def test_stock_shortage_does_not_block_sale(no_tax, variant):
    checkout([{"variant_id": variant.id, "qty": 2}], paid_amount_cents=20000)
    assert get_stock(variant.id) == -2


@pytest.mark.parametrize("lines, error", [
    ([], ValidationError),
    ([{"qty": 1}], ValidationError),
    ([{"variant_id": 999, "qty": 1}], NotFoundError),
])
def test_invalid_carts_write_nothing(no_tax, stocked, lines, error):
    with pytest.raises(error):
        checkout(lines, paid_amount_cents=1000)
    assert db.session.query(SalesInvoice).count() == 0


def test_inactive_variant_cannot_be_sold(db_session, no_tax, stocked):
    variant, _ = stocked
    variant.is_active = False
    db_session.commit()
    with pytest.raises(ValidationError):
        checkout([{"variant_id": variant.id, "qty": 1}], paid_amount_cents=10000)


def test_unknown_customer(no_tax, stocked):
    variant, _ = stocked
    with pytest.raises(NotFoundError):
        checkout([{"variant_id": variant.id, "qty": 1}], customer_id=4242)


def test_failed_stock_write_rolls_back_the_whole_checkout(no_tax, stocked, customer, monkeypatch):
    variant, second = stocked
    calls = []
    real_post_move = sales_service.post_move

    def flaky_post_move(variant_id, **kwargs):
        calls.append(variant_id)
        if len(calls) == 2:
            raise OperationalError("INSERT INTO stock_moves", {}, Exception("disk I/O error"))
        return real_post_move(variant_id, **kwargs)

    monkeypatch.setattr(sales_service, "post_move", flaky_post_move)
    moves_before = db.session.query(StockMove).count()

    with pytest.raises(StorageError):
        checkout(
            [{"variant_id": variant.id, "qty": 1}, {"variant_id": second.id, "qty": 1}],
            customer_id=customer.id,
            paid_amount_cents=5000,
            occurred_at="2025-01-01T10:00:00",
        )

    assert db.session.query(SalesInvoice).count() == 0
    assert db.session.query(Payment).count() == 0
    assert db.session.query(StockMove).filter_by(ref_type=StockRefType.SALE.value).count() == 0
    assert db.session.query(StockMove).count() == moves_before
    assert customer.current_balance_cents == 0
    assert get_setting(counter_key("INV", date(2025, 1, 1))) is None
