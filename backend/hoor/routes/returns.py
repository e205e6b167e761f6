# Overview: Flask API routes for sales returns and exchanges.

from flask import Blueprint, current_app, jsonify, request

from ..errors import HoorError
from ..services import return_service

returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.post("")
def process_return_route():
    """
    Return items of a confirmed sale.

    Body: invoice_number, items [{sales_item_id, qty}], method, occurred_at, notes, user_id
    Quantities above what is still returnable are capped.
    """
    data = request.get_json(silent=True) or {}
    try:
        doc = return_service.process_return(
            data.get("invoice_number"),
            data.get("items") or [],
            method=data.get("method", "cash"),
            occurred_at=data.get("occurred_at"),
            notes=data.get("notes"),
            user_id=data.get("user_id"),
        )
        return jsonify({"return": return_service.return_summary(doc.id)}), 201
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to process return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.post("/exchange")
def process_exchange_route():
    """
    Return items and sell replacements in one step, settled by the net difference.

    Body: invoice_number, items [{sales_item_id, qty}], new_lines [{variant_id, qty, ...}],
    method, occurred_at, notes, user_id
    """
    data = request.get_json(silent=True) or {}
    try:
        doc = return_service.process_exchange(
            data.get("invoice_number"),
            data.get("items") or [],
            data.get("new_lines") or [],
            method=data.get("method", "cash"),
            occurred_at=data.get("occurred_at"),
            notes=data.get("notes"),
            user_id=data.get("user_id"),
        )
        return jsonify({"return": return_service.return_summary(doc.id)}), 201
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to process exchange")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.get("")
def list_route():
    docs = return_service.list_returns(
        original_invoice_id=request.args.get("original_invoice_id", type=int),
        limit=request.args.get("limit", 100, type=int),
    )
    return jsonify({"returns": [d.to_dict() for d in docs]}), 200


@returns_bp.get("/<int:return_id>")
def get_route(return_id: int):
    try:
        return jsonify({"return": return_service.return_summary(return_id)}), 200
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
