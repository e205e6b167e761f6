# Overview: Flask API routes for sales checkout and invoice lookup.

# hoor/routes/sales.py
"""Sales API routes"""

from flask import Blueprint, current_app, jsonify, request

from ..errors import HoorError
from ..services import sales_service
from ..services.pricing import CartLine, calculate_cart
from ..services.settings_service import tax_config
from hoor.time_utils import parse_iso_datetime

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
def checkout_route():
    """
    Confirm a sale in one atomic step.

    Body:
    - lines: [{variant_id, qty, unit_price_cents?, line_discount_cents?}]
    - discount: {amount_cents?, percent?, is_percent?}
    - customer_id, paid_amount_cents, method, occurred_at, notes, user_id
    """
    data = request.get_json(silent=True) or {}
    try:
        invoice = sales_service.checkout(
            data.get("lines") or [],
            discount=data.get("discount"),
            customer_id=data.get("customer_id"),
            paid_amount_cents=data.get("paid_amount_cents", 0),
            method=data.get("method", "cash"),
            occurred_at=data.get("occurred_at"),
            notes=data.get("notes"),
            user_id=data.get("user_id"),
        )
        return jsonify({"invoice": sales_service.invoice_summary(invoice.id)}), 201
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to checkout sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/preview")
def preview_route():
    """Cart totals for the POS screen; nothing is written."""
    data = request.get_json(silent=True) or {}
    try:
        lines = sales_service.parse_line_inputs(data.get("lines") or [])
        variants = sales_service.load_variants(line.variant_id for line in lines)
        _, totals = sales_service.price_lines(lines, variants, sales_service.parse_discount(data.get("discount")))
        return jsonify({"totals": totals.to_dict()}), 200
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.post("/calculate")
def calculate_route():
    """Pure cart arithmetic over explicit prices (no catalog lookups)."""
    data = request.get_json(silent=True) or {}
    try:
        lines = [
            CartLine(
                qty=raw.get("qty"),
                unit_price_cents=raw.get("unit_price_cents"),
                line_discount_cents=raw.get("line_discount_cents", 0) or 0,
            )
            for raw in (data.get("lines") or [])
            if isinstance(raw, dict)
        ]
        enabled, rate_bps = tax_config()
        totals = calculate_cart(
            lines,
            sales_service.parse_discount(data.get("discount")),
            tax_rate_bps=rate_bps,
            tax_enabled=enabled,
        )
        return jsonify({"totals": totals.to_dict()}), 200
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.get("")
def list_route():
    try:
        start = parse_iso_datetime(request.args.get("start"))
        end = parse_iso_datetime(request.args.get("end"))
    except ValueError:
        return jsonify({"error": "start/end must be ISO-8601 datetimes"}), 400
    invoices = sales_service.list_invoices(
        start=start,
        end=end,
        customer_id=request.args.get("customer_id", type=int),
        status=request.args.get("status"),
        limit=request.args.get("limit", 100, type=int),
    )
    return jsonify({"invoices": [inv.to_dict() for inv in invoices]}), 200


@sales_bp.get("/<int:invoice_id>")
def get_route(invoice_id: int):
    try:
        return jsonify({"invoice": sales_service.invoice_summary(invoice_id)}), 200
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.get("/by-number/<invoice_number>")
def get_by_number_route(invoice_number: str):
    try:
        invoice = sales_service.get_invoice_by_number(invoice_number)
        return jsonify({"invoice": sales_service.invoice_summary(invoice.id)}), 200
    except HoorError as e:
        return jsonify(e.to_dict()), e.status_code
