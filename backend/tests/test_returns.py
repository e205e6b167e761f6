import pytest

from hoor.errors import ConflictError, NotFoundError, ValidationError
from hoor.extensions import db
from hoor.models import Payment, ReturnInvoice
from hoor.services.balance_service import PartyKind, verify_balance
from hoor.services.return_service import process_return, return_summary
from hoor.services.sales_service import checkout
from hoor.services.stock_service import get_stock


@pytest.fixture
def sale(no_tax, stocked):
    variant, second = stocked
    return checkout(
        [{"variant_id": variant.id, "qty": 3}, {"variant_id": second.id, "qty": 1}],
        paid_amount_cents=43000,
        occurred_at="2025-01-01T10:00:00",
    )


def test_return_restocks_and_refunds(sale, stocked):
    variant, _ = stocked
    item = sale.items[0]

    doc = process_return(sale.invoice_number, [{"sales_item_id": item.id, "qty": 2}], occurred_at="2025-01-02T10:00:00")

    assert doc.return_number == "RET-20250102-0001"
    assert doc.type == "return"
    assert doc.return_total_cents == 20000
    assert doc.difference_cents == -20000
    assert get_stock(variant.id) == 9
    assert item.returned_qty == 2

    refund = db.session.query(Payment).filter_by(ref_type="sale_return", ref_id=doc.id).one()
    assert refund.direction == "out"
    assert refund.amount_cents == 20000

    summary = return_summary(doc.id)
    assert summary["original_invoice_number"] == sale.invoice_number
    assert [i["qty"] for i in summary["items"]] == [2]


def test_return_quantities_are_capped_and_idempotent(sale):
    item = sale.items[0]

    first = process_return(sale.invoice_number, [{"sales_item_id": item.id, "qty": 5}])
    assert first.return_total_cents == 30000
    assert item.returned_qty == 3

    # Line exhausted: re-submitting it changes nothing
    with pytest.raises(ValidationError):
        process_return(sale.invoice_number, [{"sales_item_id": item.id, "qty": 1}])
    assert item.returned_qty == 3
    assert db.session.query(ReturnInvoice).count() == 1


def test_fully_returned_invoice_is_rejected(sale):
    items = [{"sales_item_id": i.id, "qty": i.qty} for i in sale.items]
    process_return(sale.invoice_number, items)
    assert sale.status == "returned"

    with pytest.raises(ConflictError):
        process_return(sale.invoice_number, items)


def test_return_against_unknown_invoice(db_session):
    with pytest.raises(NotFoundError):
        process_return("INV-19990101-0001", [{"sales_item_id": 1, "qty": 1}])


def test_item_from_another_invoice_is_rejected(sale, stocked):
    variant, _ = stocked
    other = checkout([{"variant_id": variant.id, "qty": 1}], paid_amount_cents=10000)
    with pytest.raises(ValidationError):
        process_return(sale.invoice_number, [{"sales_item_id": other.items[0].id, "qty": 1}])


def test_return_on_account_reduces_customer_balance(no_tax, stocked, customer):
    variant, _ = stocked
    invoice = checkout([{"variant_id": variant.id, "qty": 2}], customer_id=customer.id, method="credit")
    assert customer.current_balance_cents == 20000

    process_return(invoice.invoice_number, [{"sales_item_id": invoice.items[0].id, "qty": 1}])

    assert customer.current_balance_cents == 10000
    assert verify_balance(PartyKind.CUSTOMER, customer.id) == 10000
