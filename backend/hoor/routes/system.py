# backend/hoor/routes/system.py
"""
System health, backup and ledger consistency endpoints.
"""

import time

from flask import Blueprint, current_app, jsonify, request

from ..errors import HoorError
from ..extensions import db
from ..models import SalesInvoice, Setting, Variant
from ..services import audit_service, backup_service, balance_service
from hoor.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        variant_count = db.session.query(Variant).count()
        invoice_count = db.session.query(SalesInvoice).count()
        setting_count = db.session.query(Setting).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "variants": variant_count,
                "sales_invoices": invoice_count,
                "settings": setting_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database reachable
    - 503: database unhealthy
    """
    database_health = check_database_health()
    http_status = 503 if database_health["status"] == "unhealthy" else 200
    response = {
        "status": database_health["status"],
        "timestamp": utcnow().isoformat() + "Z",
        "checks": {"database": database_health},
    }
    return response, http_status


@system_bp.get("/api/system/backup")
def export_backup():
    try:
        return jsonify(backup_service.export_backup()), 200
    except Exception:
        current_app.logger.exception("Failed to export backup")
        return jsonify({"error": "Internal server error"}), 500


@system_bp.post("/api/system/backup/import")
def import_backup():
    """Replaces every table with the uploaded document. Body: the exported JSON document."""
    document = request.get_json(silent=True)
    try:
        counts = backup_service.import_backup(document, user_id=request.args.get("user_id", type=int))
        return jsonify({"imported": counts}), 200
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to import backup")
        return jsonify({"error": "Internal server error"}), 500


@system_bp.get("/api/system/balances/check")
def check_balances():
    drifting = balance_service.reconcile_all()
    return jsonify({"consistent": not drifting, "drifting": drifting}), 200


@system_bp.get("/api/system/audit")
def list_audit():
    events = audit_service.list_audit_events(
        entity=request.args.get("entity"),
        entity_id=request.args.get("entity_id", type=int),
        limit=request.args.get("limit", default=100, type=int),
    )
    return jsonify({"events": [e.to_dict() for e in events]}), 200
