from flask import Blueprint, jsonify, request

from ..errors import HoorError
from ..services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/sales-summary")
def sales_summary():
    try:
        report = reporting_service.sales_summary(
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        return jsonify(report), 200
    except HoorError as exc:
        return jsonify(exc.to_dict()), exc.status_code


@reports_bp.get("/sales-by-variant")
def sales_by_variant():
    try:
        rows = reporting_service.sales_by_variant(
            start=request.args.get("start"),
            end=request.args.get("end"),
            limit=request.args.get("limit", 20, type=int),
        )
        return jsonify({"rows": rows}), 200
    except HoorError as exc:
        return jsonify(exc.to_dict()), exc.status_code


@reports_bp.get("/sales-by-brand")
def sales_by_brand():
    try:
        rows = reporting_service.sales_by_brand(
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        return jsonify({"rows": rows}), 200
    except HoorError as exc:
        return jsonify(exc.to_dict()), exc.status_code


@reports_bp.get("/stock")
def stock_report():
    return jsonify(reporting_service.stock_report()), 200


@reports_bp.get("/low-stock")
def low_stock():
    return jsonify({"rows": reporting_service.low_stock()}), 200


@reports_bp.get("/dead-stock")
def dead_stock():
    try:
        rows = reporting_service.dead_stock(days=request.args.get("days", 90, type=int))
        return jsonify({"rows": rows}), 200
    except HoorError as exc:
        return jsonify(exc.to_dict()), exc.status_code
