# Overview: Flask API routes for customers and suppliers, their statements and account payments.

from flask import Blueprint, current_app, jsonify, request

from ..errors import HoorError
from ..services import balance_service, catalog_service, payment_service
from ..services.balance_service import PartyKind

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")
suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


def _fail(message: str):
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error"}), 500


def _statement_payload(kind: PartyKind, party_id: int) -> dict:
    party = balance_service.get_party(kind, party_id)
    entries = balance_service.statement(kind, party_id)
    return {
        kind.value: party.to_dict(),
        "entries": [e.to_dict() for e in entries],
        "balance_cents": entries[-1].balance_cents if entries else 0,
    }


def _account_payment(handler, party_id: int, label: str):
    data = request.get_json(silent=True) or {}
    try:
        payment = handler(
            party_id,
            data.get("amount_cents"),
            method=data.get("method", "cash"),
            note=data.get("note"),
            occurred_at=data.get("occurred_at"),
            user_id=data.get("user_id"),
        )
        return jsonify({"payment": payment.to_dict()}), 201
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _fail(f"Failed to record {label}")


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------

@customers_bp.get("")
def list_customers():
    customers = catalog_service.list_customers(
        search=request.args.get("q"),
        limit=request.args.get("limit", 200, type=int),
    )
    return jsonify({"customers": [c.to_dict() for c in customers]}), 200


@customers_bp.post("")
def create_customer():
    try:
        customer = catalog_service.create_customer(request.get_json(silent=True) or {})
        return jsonify({"customer": customer.to_dict()}), 201
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _fail("Failed to create customer")


@customers_bp.get("/<int:customer_id>")
def get_customer(customer_id: int):
    try:
        return jsonify({"customer": catalog_service.get_customer(customer_id).to_dict()}), 200
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code


@customers_bp.patch("/<int:customer_id>")
def update_customer(customer_id: int):
    try:
        customer = catalog_service.update_customer(customer_id, request.get_json(silent=True) or {})
        return jsonify({"customer": customer.to_dict()}), 200
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _fail("Failed to update customer")


@customers_bp.delete("/<int:customer_id>")
def delete_customer(customer_id: int):
    try:
        catalog_service.delete_customer(customer_id)
        return "", 204
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _fail("Failed to delete customer")


@customers_bp.get("/<int:customer_id>/statement")
def customer_statement(customer_id: int):
    try:
        return jsonify(_statement_payload(PartyKind.CUSTOMER, customer_id)), 200
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code


@customers_bp.post("/<int:customer_id>/payments")
def receive_customer_payment(customer_id: int):
    return _account_payment(balance_service.receive_customer_payment, customer_id, "customer payment")


@customers_bp.get("/<int:customer_id>/payments")
def list_customer_payments(customer_id: int):
    try:
        catalog_service.get_customer(customer_id)
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    payments = payment_service.list_payments(customer_id=customer_id, limit=request.args.get("limit", 200, type=int))
    return jsonify({"payments": [p.to_dict() for p in payments]}), 200


@customers_bp.post("/<int:customer_id>/refunds")
def refund_customer_credit(customer_id: int):
    return _account_payment(balance_service.refund_customer_credit, customer_id, "customer refund")


@customers_bp.get("/<int:customer_id>/verify")
def verify_customer_balance(customer_id: int):
    try:
        balance = balance_service.verify_balance(PartyKind.CUSTOMER, customer_id)
        return jsonify({"customer_id": customer_id, "balance_cents": balance, "consistent": True}), 200
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code


# ---------------------------------------------------------------------------
# Suppliers
# ---------------------------------------------------------------------------

@suppliers_bp.get("")
def list_suppliers():
    suppliers = catalog_service.list_suppliers(
        search=request.args.get("q"),
        limit=request.args.get("limit", 200, type=int),
    )
    return jsonify({"suppliers": [s.to_dict() for s in suppliers]}), 200


@suppliers_bp.post("")
def create_supplier():
    try:
        supplier = catalog_service.create_supplier(request.get_json(silent=True) or {})
        return jsonify({"supplier": supplier.to_dict()}), 201
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _fail("Failed to create supplier")


@suppliers_bp.get("/<int:supplier_id>")
def get_supplier(supplier_id: int):
    try:
        return jsonify({"supplier": catalog_service.get_supplier(supplier_id).to_dict()}), 200
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code


@suppliers_bp.patch("/<int:supplier_id>")
def update_supplier(supplier_id: int):
    try:
        supplier = catalog_service.update_supplier(supplier_id, request.get_json(silent=True) or {})
        return jsonify({"supplier": supplier.to_dict()}), 200
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _fail("Failed to update supplier")


@suppliers_bp.delete("/<int:supplier_id>")
def delete_supplier(supplier_id: int):
    try:
        catalog_service.delete_supplier(supplier_id)
        return "", 204
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _fail("Failed to delete supplier")


@suppliers_bp.get("/<int:supplier_id>/statement")
def supplier_statement(supplier_id: int):
    try:
        return jsonify(_statement_payload(PartyKind.SUPPLIER, supplier_id)), 200
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code


@suppliers_bp.post("/<int:supplier_id>/payments")
def pay_supplier(supplier_id: int):
    return _account_payment(balance_service.pay_supplier, supplier_id, "supplier payment")


@suppliers_bp.get("/<int:supplier_id>/payments")
def list_supplier_payments(supplier_id: int):
    try:
        catalog_service.get_supplier(supplier_id)
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    payments = payment_service.list_payments(supplier_id=supplier_id, limit=request.args.get("limit", 200, type=int))
    return jsonify({"payments": [p.to_dict() for p in payments]}), 200


@suppliers_bp.get("/<int:supplier_id>/verify")
def verify_supplier_balance(supplier_id: int):
    try:
        balance = balance_service.verify_balance(PartyKind.SUPPLIER, supplier_id)
        return jsonify({"supplier_id": supplier_id, "balance_cents": balance, "consistent": True}), 200
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
