# Overview: Flask API routes for supplier purchases and purchase returns.

from flask import Blueprint, current_app, jsonify, request

from ..errors import HoorError
from ..services import purchase_service

purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.post("")
def receive_route():
    """
    Receive a supplier invoice into stock.

    Body: supplier_id, lines [{variant_id, qty, unit_cost_cents}], discount,
    paid_amount_cents, method, occurred_at, notes, user_id
    """
    data = request.get_json(silent=True) or {}
    try:
        invoice = purchase_service.receive_purchase(
            data.get("supplier_id"),
            data.get("lines") or [],
            discount=data.get("discount"),
            paid_amount_cents=data.get("paid_amount_cents", 0),
            method=data.get("method", "cash"),
            occurred_at=data.get("occurred_at"),
            notes=data.get("notes"),
            user_id=data.get("user_id"),
        )
        return jsonify({"purchase": purchase_service.purchase_summary(invoice.id)}), 201
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to receive purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.get("")
def list_route():
    purchases = purchase_service.list_purchases(
        supplier_id=request.args.get("supplier_id", type=int),
        limit=request.args.get("limit", 100, type=int),
    )
    return jsonify({"purchases": [p.to_dict() for p in purchases]}), 200


@purchases_bp.get("/<int:invoice_id>")
def get_route(invoice_id: int):
    try:
        return jsonify({"purchase": purchase_service.purchase_summary(invoice_id)}), 200
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code


@purchases_bp.get("/by-number/<invoice_number>")
def get_by_number_route(invoice_number: str):
    try:
        invoice = purchase_service.get_purchase_by_number(invoice_number)
        return jsonify({"purchase": purchase_service.purchase_summary(invoice.id)}), 200
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code


@purchases_bp.post("/<int:invoice_id>/returns")
def return_route(invoice_id: int):
    """Body: items [{purchase_item_id, qty}], occurred_at, notes, user_id"""
    data = request.get_json(silent=True) or {}
    try:
        doc = purchase_service.return_purchase(
            invoice_id,
            data.get("items") or [],
            occurred_at=data.get("occurred_at"),
            notes=data.get("notes"),
            user_id=data.get("user_id"),
        )
        out = doc.to_dict()
        out["items"] = [item.to_dict() for item in doc.items]
        return jsonify({"purchase_return": out}), 201
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to return purchase")
        return jsonify({"error": "Internal server error"}), 500
