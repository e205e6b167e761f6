import pytest

from hoor.errors import BalanceDriftError, ValidationError
from hoor.extensions import db
from hoor.services.balance_service import (
    PartyKind,
    customer_statement,
    pay_supplier,
    receive_customer_payment,
    reconcile_all,
    recompute_balance,
    refund_customer_credit,
    supplier_statement,
    verify_balance,
)
from hoor.services.purchase_service import receive_purchase, return_purchase
from hoor.services.return_service import process_return
from hoor.services.sales_service import checkout


def test_customer_balance_is_reconstructed_from_the_ledger(no_tax, stocked, customer):
    variant, second = stocked
    first = checkout(
        [{"variant_id": variant.id, "qty": 2}],
        customer_id=customer.id,
        paid_amount_cents=5000,
        occurred_at="2025-01-01T10:00:00",
    )
    checkout(
        [{"variant_id": second.id, "qty": 1}],
        customer_id=customer.id,
        method="credit",
        occurred_at="2025-01-02T10:00:00",
    )
    receive_customer_payment(customer.id, 20000, occurred_at="2025-01-03T10:00:00")
    process_return(
        first.invoice_number,
        [{"sales_item_id": first.items[0].id, "qty": 1}],
        occurred_at="2025-01-04T10:00:00",
    )

    # 20000 - 5000 + 13000 - 20000 - 10000
    assert customer.current_balance_cents == -2000
    entries = customer_statement(customer.id)
    assert [e.type for e in entries] == ["sale", "payment", "sale", "payment", "return"]
    assert [e.balance_cents for e in entries] == [20000, 15000, 28000, 8000, -2000]
    assert recompute_balance(PartyKind.CUSTOMER, customer.id) == customer.current_balance_cents

    refund_customer_credit(customer.id, 2000, occurred_at="2025-01-05T10:00:00")
    assert customer.current_balance_cents == 0
    assert verify_balance(PartyKind.CUSTOMER, customer.id) == 0


def test_supplier_balance_is_reconstructed_from_the_ledger(db_session, variant, supplier):
    invoice = receive_purchase(
        supplier.id,
        [{"variant_id": variant.id, "qty": 10, "unit_cost_cents": 1000}],
        paid_amount_cents=4000,
        occurred_at="2025-01-01T09:00:00",
    )
    pay_supplier(supplier.id, 3000, occurred_at="2025-01-02T09:00:00")
    return_purchase(
        invoice.id,
        [{"purchase_item_id": invoice.items[0].id, "qty": 2}],
        occurred_at="2025-01-03T09:00:00",
    )

    assert supplier.current_balance_cents == 1000
    entries = supplier_statement(supplier.id)
    assert [e.balance_cents for e in entries] == [10000, 6000, 3000, 1000]
    assert verify_balance(PartyKind.SUPPLIER, supplier.id) == 1000


def test_drift_is_detected(no_tax, stocked, customer):
    variant, _ = stocked
    checkout([{"variant_id": variant.id, "qty": 1}], customer_id=customer.id, method="credit")

    # Out-of-band write to the cache
    customer.current_balance_cents = 99
    db.session.commit()

    with pytest.raises(BalanceDriftError) as excinfo:
        verify_balance(PartyKind.CUSTOMER, customer.id)
    assert excinfo.value.details == {"cached_cents": 99, "ledger_cents": 10000, "drift_cents": -9901}

    drifting = reconcile_all()
    assert [(row["kind"], row["id"]) for row in drifting] == [("customer", customer.id)]


def test_account_payments_require_positive_amounts(db_session, customer, supplier):
    with pytest.raises(ValidationError):
        receive_customer_payment(customer.id, 0)
    with pytest.raises(ValidationError):
        pay_supplier(supplier.id, -5)
