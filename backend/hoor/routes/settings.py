# Overview: Flask API routes for store settings.

from flask import Blueprint, current_app, jsonify, request

from ..errors import HoorError
from ..services import settings_service

settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("")
def list_settings():
    return jsonify({"settings": settings_service.all_settings()}), 200


@settings_bp.get("/tax")
def get_tax():
    enabled, rate_bps = settings_service.tax_config()
    return jsonify({"tax_enabled": enabled, "tax_rate_bps": rate_bps}), 200


@settings_bp.put("/<key>")
def put_setting(key: str):
    """Body: {value, type?} where type is one of string|number|boolean|json."""
    data = request.get_json(silent=True) or {}
    if "value" not in data:
        return jsonify({"error": "value is required"}), 400
    try:
        row = settings_service.set_setting(key, data["value"], data.get("type"))
        return jsonify({"setting": row.to_dict()}), 200
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to save setting %s", key)
        return jsonify({"error": "Internal server error"}), 500
