import pytest

from hoor.errors import ValidationError
from hoor.extensions import db
from hoor.models import AuditLog, Customer, SalesInvoice, StockMove, Variant
from hoor.services.backup_service import export_backup, import_backup
from hoor.services.balance_service import PartyKind, verify_balance
from hoor.services.sales_service import checkout
from hoor.services.stock_service import get_stock


def test_export_then_import_restores_the_store(no_tax, stocked, customer):
    variant, _ = stocked
    variant_id = variant.id
    customer_id = customer.id
    invoice = checkout([{"variant_id": variant_id, "qty": 2}], customer_id=customer_id, method="credit")
    invoice_number = invoice.invoice_number

    document = export_backup()
    assert document["version"] == 1
    assert len(document["data"]["sales_invoices"]) == 1
    assert isinstance(document["data"]["sales_invoices"][0]["occurred_at"], str)

    # Diverge from the snapshot, then restore it
    checkout([{"variant_id": variant_id, "qty": 1}], paid_amount_cents=10000)
    assert db.session.query(SalesInvoice).count() == 2

    counts = import_backup(document)

    assert counts["sales_invoices"] == 1
    assert db.session.query(SalesInvoice).one().invoice_number == invoice_number
    assert get_stock(variant_id) == 8
    assert db.session.get(Customer, customer_id).current_balance_cents == 20000
    assert verify_balance(PartyKind.CUSTOMER, customer_id) == 20000
    assert db.session.query(AuditLog).count() == len(document["data"]["audit_logs"])


def test_export_after_import_returns_the_imported_data(no_tax, stocked, customer):
    variant, _ = stocked
    checkout([{"variant_id": variant.id, "qty": 1}], customer_id=customer.id, method="credit")
    document = export_backup()
    assert document["data"]["audit_logs"]

    import_backup(document, user_id=3)

    assert export_backup()["data"] == document["data"]


@pytest.mark.parametrize("document", [
    None,
    [],
    {"data": {}},
    {"version": 2, "data": {}},
    {"version": 1},
    {"version": 1, "data": {"widgets": []}},
    {"version": 1, "data": {"variants": [{"colour": "red"}]}},
    {"version": 1, "data": {"stock_moves": [{"occurred_at": "yesterday"}]}},
])
def test_invalid_documents_change_nothing(db_session, variant, document):
    with pytest.raises(ValidationError):
        import_backup(document)
    assert db.session.query(Variant).count() == 1


def test_version_mismatch_reports_expected_version(db_session):
    with pytest.raises(ValidationError) as excinfo:
        import_backup({"version": 99, "data": {}})
    assert excinfo.value.details == {"version": 99, "expected": 1}


def test_import_of_empty_backup_clears_everything(db_session, stocked):
    import_backup({"version": 1, "data": {}})
    assert db.session.query(Variant).count() == 0
    assert db.session.query(StockMove).count() == 0
