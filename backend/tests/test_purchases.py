import pytest

from hoor.errors import ConflictError, NotFoundError, ValidationError
from hoor.extensions import db
from hoor.models import Payment, StockMove
from hoor.services.balance_service import PartyKind, verify_balance
from hoor.services.purchase_service import receive_purchase, return_purchase
from hoor.services.stock_service import adjust_stock, get_stock


def test_purchases_blend_weighted_average_cost(db_session, variant, supplier):
    receive_purchase(supplier.id, [{"variant_id": variant.id, "qty": 10, "unit_cost_cents": 800}])
    assert variant.cost_price_cents == 800

    receive_purchase(supplier.id, [{"variant_id": variant.id, "qty": 5, "unit_cost_cents": 1100}])
    assert variant.cost_price_cents == 900
    assert get_stock(variant.id) == 15


def test_purchase_after_oversell_takes_the_new_cost(db_session, variant, supplier):
    # Negative on-hand: the prior cost is meaningless
    adjust_stock(variant.id, -3)

    receive_purchase(supplier.id, [{"variant_id": variant.id, "qty": 5, "unit_cost_cents": 700}])
    assert variant.cost_price_cents == 700
    assert get_stock(variant.id) == 2


def test_partial_payment_leaves_supplier_balance(db_session, variant, supplier):
    invoice = receive_purchase(
        supplier.id,
        [{"variant_id": variant.id, "qty": 10, "unit_cost_cents": 5000}],
        discount={"amount_cents": 2000},
        paid_amount_cents=18000,
        occurred_at="2025-02-01T09:00:00",
    )

    assert invoice.invoice_number == "PUR-20250201-0001"
    assert invoice.total_cents == 48000
    assert invoice.payment_status == "partial"
    assert supplier.current_balance_cents == 30000

    payment = db.session.query(Payment).filter_by(ref_type="purchase", ref_id=invoice.id).one()
    assert payment.direction == "out"
    assert payment.supplier_id == supplier.id
    assert verify_balance(PartyKind.SUPPLIER, supplier.id) == 30000


def test_purchase_validation(db_session, variant, supplier):
    with pytest.raises(ValidationError):
        receive_purchase(None, [{"variant_id": variant.id, "qty": 1, "unit_cost_cents": 100}])
    with pytest.raises(NotFoundError):
        receive_purchase(999, [{"variant_id": variant.id, "qty": 1, "unit_cost_cents": 100}])
    with pytest.raises(ValidationError):
        receive_purchase(supplier.id, [])
    with pytest.raises(ValidationError):
        receive_purchase(supplier.id, [{"variant_id": variant.id, "qty": 1}])
    with pytest.raises(ValidationError):
        receive_purchase(
            supplier.id,
            [{"variant_id": variant.id, "qty": 1, "unit_cost_cents": 100}],
            paid_amount_cents=101,
        )
    assert db.session.query(StockMove).count() == 0


def test_purchase_return_caps_and_keeps_cost(db_session, variant, supplier):
    invoice = receive_purchase(supplier.id, [{"variant_id": variant.id, "qty": 4, "unit_cost_cents": 1000}])
    item_id = invoice.items[0].id

    doc = return_purchase(invoice.id, [{"purchase_item_id": item_id, "qty": 1}])
    assert doc.return_total_cents == 1000
    assert doc.return_number.startswith("PRT-")
    assert get_stock(variant.id) == 3
    assert variant.cost_price_cents == 1000
    assert supplier.current_balance_cents == 3000
    assert invoice.status == "confirmed"

    # Over-request is capped at what is left
    doc = return_purchase(invoice.id, [{"purchase_item_id": item_id, "qty": 10}])
    assert doc.return_total_cents == 3000
    assert invoice.items[0].returned_qty == 4
    assert invoice.status == "returned"
    assert supplier.current_balance_cents == 0
    assert verify_balance(PartyKind.SUPPLIER, supplier.id) == 0

    with pytest.raises(ConflictError):
        return_purchase(invoice.id, [{"purchase_item_id": item_id, "qty": 1}])


def test_purchase_return_is_valued_net_of_the_purchase_discount(db_session, variant, supplier):
    invoice = receive_purchase(
        supplier.id,
        [{"variant_id": variant.id, "qty": 10, "unit_cost_cents": 1000}],
        discount={"is_percent": True, "percent": 10},
    )
    assert invoice.total_cents == 9000
    assert supplier.current_balance_cents == 9000
    item_id = invoice.items[0].id

    first = return_purchase(invoice.id, [{"purchase_item_id": item_id, "qty": 3}])
    assert first.return_total_cents == 2700
    assert supplier.current_balance_cents == 6300

    rest = return_purchase(invoice.id, [{"purchase_item_id": item_id, "qty": 7}])
    assert rest.return_total_cents == 6300
    assert supplier.current_balance_cents == 0
    assert verify_balance(PartyKind.SUPPLIER, supplier.id) == 0
