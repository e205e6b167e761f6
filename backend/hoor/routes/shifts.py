# Overview: Flask API routes for cash drawer shifts and drawer movements.

from datetime import date

from flask import Blueprint, current_app, jsonify, request

from ..errors import HoorError
from ..services import shift_service

shifts_bp = Blueprint("shifts", __name__, url_prefix="/api/shifts")


def _fail(message: str):
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error"}), 500


@shifts_bp.get("")
def list_shifts():
    shifts = shift_service.list_shifts(limit=request.args.get("limit", 30, type=int))
    return jsonify({"shifts": [s.to_dict() for s in shifts]}), 200


@shifts_bp.get("/current")
def current_shift():
    shift = shift_service.get_open_shift()
    if shift is None:
        return jsonify({"shift": None}), 200
    return jsonify({"shift": shift_service.shift_summary(shift.id)}), 200


@shifts_bp.get("/<int:shift_id>")
def get_shift(shift_id: int):
    try:
        return jsonify({"shift": shift_service.shift_summary(shift_id)}), 200
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code


@shifts_bp.post("/open")
def open_shift():
    """Body: opening_cash_cents, user_id, notes, occurred_at"""
    data = request.get_json(silent=True) or {}
    try:
        shift = shift_service.open_shift(
            data.get("user_id"),
            data.get("opening_cash_cents", 0),
            notes=data.get("notes"),
            occurred_at=data.get("occurred_at"),
        )
        return jsonify({"shift": shift.to_dict()}), 201
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _fail("Failed to open shift")


@shifts_bp.post("/close")
def close_shift():
    """Body: closing_cash_cents, notes, occurred_at, user_id"""
    data = request.get_json(silent=True) or {}
    try:
        shift = shift_service.close_shift(
            data.get("closing_cash_cents"),
            notes=data.get("notes"),
            occurred_at=data.get("occurred_at"),
            user_id=data.get("user_id"),
        )
        return jsonify({"shift": shift.to_dict()}), 200
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _fail("Failed to close shift")


@shifts_bp.post("/cash-movements")
def record_cash_movement():
    """Body: direction (in|out), amount_cents, category, note, occurred_at, user_id"""
    data = request.get_json(silent=True) or {}
    try:
        payment = shift_service.record_cash_movement(
            data.get("direction"),
            data.get("amount_cents"),
            category=data.get("category"),
            note=data.get("note"),
            occurred_at=data.get("occurred_at"),
            user_id=data.get("user_id"),
        )
        return jsonify({"payment": payment.to_dict()}), 201
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _fail("Failed to record cash movement")


@shifts_bp.get("/day-movements")
def day_movements():
    raw = request.args.get("date")
    try:
        day = date.fromisoformat(raw) if raw else date.today()
    except ValueError:
        return jsonify({"error": "date must be YYYY-MM-DD"}), 400
    return jsonify({"date": day.isoformat(), "movements": shift_service.day_movements(day)}), 200
