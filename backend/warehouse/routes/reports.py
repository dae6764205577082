# Overview: Flask API routes for report data sets.

# backend/warehouse/routes/reports.py
from flask import Blueprint, jsonify, request

from ..decorators import require_auth
from ..services import reporting_service
from ..services.metrics_service import parse_int_arg
from ..services.reporting_service import ReportFilters
from ..validation import ValidationError


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/data")
@require_auth
def report_data():
    """
    Inventory, movements, zones and stock alerts in one payload.

    Query params: start_date, end_date (ISO dates, inclusive), zone_id,
    category, status, product_code.
    """
    status = (request.args.get("status") or "").strip().lower() or None

    try:
        filters = ReportFilters(
            start_date=request.args.get("start_date") or None,
            end_date=request.args.get("end_date") or None,
            zone_id=parse_int_arg(request.args, "zone_id"),
            category=request.args.get("category") or None,
            status=None if status == "all" else status,
            product_code=request.args.get("product_code") or None,
        )
        report = reporting_service.generate_report_data(filters)
        return jsonify(report), 200
    except ValidationError as exc:
        return jsonify(exc.to_dict()), 400
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/movement-summary")
@require_auth
def movement_summary_report():
    try:
        report = reporting_service.movement_summary(
            start=request.args.get("start_date"),
            end=request.args.get("end_date"),
            group_by=request.args.get("group_by", "day"),
        )
        return jsonify(report), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400
