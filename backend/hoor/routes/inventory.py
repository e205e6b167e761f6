# Overview: Flask API routes for stock levels, moves, adjustments and POS search.

from flask import Blueprint, current_app, jsonify, request

from ..errors import HoorError
from ..services import search_service, stock_service
from hoor.time_utils import parse_iso_datetime

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/stock/<int:variant_id>")
def get_stock(variant_id: int):
    """
    On-hand quantity derived from the move ledger.

    Query params:
    - as_of: ISO-8601 datetime (inclusive)
    """
    try:
        as_of = parse_iso_datetime(request.args.get("as_of"))
    except ValueError:
        return jsonify({"error": "as_of must be an ISO-8601 datetime"}), 400
    try:
        stock_service.get_variant(variant_id)
        return jsonify({"variant_id": variant_id, "stock": stock_service.get_stock(variant_id, as_of=as_of)}), 200
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code


@inventory_bp.get("/levels")
def get_levels():
    raw = request.args.get("variant_ids", "")
    try:
        ids = [int(part) for part in raw.split(",") if part.strip()]
    except ValueError:
        return jsonify({"error": "variant_ids must be a comma-separated list of integers"}), 400
    levels = stock_service.get_stock_levels(ids or None)
    return jsonify({"levels": {str(k): v for k, v in levels.items()}}), 200


@inventory_bp.get("/moves/<int:variant_id>")
def list_moves(variant_id: int):
    limit = request.args.get("limit", 200, type=int)
    try:
        moves = stock_service.list_moves(variant_id, limit=max(1, min(limit, 1000)))
        return jsonify({"moves": [m.to_dict() for m in moves]}), 200
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code


@inventory_bp.post("/adjust")
def adjust():
    data = request.get_json(silent=True) or {}
    try:
        move = stock_service.adjust_stock(
            data.get("variant_id"),
            data.get("quantity_delta"),
            note=data.get("note"),
            occurred_at=data.get("occurred_at"),
            user_id=data.get("user_id"),
        )
        return jsonify({
            "move": move.to_dict(),
            "stock": stock_service.get_stock(move.variant_id),
        }), 201
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/opening")
def opening_stock():
    data = request.get_json(silent=True) or {}
    try:
        move = stock_service.post_opening_stock(
            data.get("variant_id"),
            data.get("quantity"),
            unit_cost_cents=data.get("unit_cost_cents"),
            occurred_at=data.get("occurred_at"),
            user_id=data.get("user_id"),
        )
        return jsonify({"move": move.to_dict()}), 201
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to post opening stock")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/search")
def search():
    query = request.args.get("q", "")
    limit = request.args.get("limit", 50, type=int)
    if limit < 1:
        return jsonify({"error": "limit must be positive"}), 400
    return jsonify({"results": search_service.search_variants(query, limit=limit)}), 200
