# Overview: Flask API routes for reports operations; parses input and returns JSON responses.

"""
Sales reporting routes (read-only, admin).
"""
from flask import Blueprint, request, jsonify

from ..services import reporting_service
from ..validation import ValidationError
from ..decorators import require_auth, require_role

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/daily")
@require_auth
@require_role("admin")
def daily_report_route():
    """Query params: date (YYYY-MM-DD, default today)."""
    try:
        report = reporting_service.daily_report(request.args.get("date"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(report), 200


@reports_bp.get("/monthly")
@require_auth
@require_role("admin")
def monthly_report_route():
    """Query params: year, month (default current month)."""
    try:
        report = reporting_service.monthly_report(
            year=request.args.get("year"),
            month=request.args.get("month"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(report), 200


@reports_bp.get("/sales-by-category")
@require_auth
@require_role("admin")
def sales_by_category_route():
    """Query params: start_date, end_date (YYYY-MM-DD, inclusive, optional)."""
    try:
        rows = reporting_service.sales_by_category(
            request.args.get("start_date"),
            request.args.get("end_date"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"categories": rows}), 200
