# backend/cartrack/routes/reports.py
"""
Reporting routes

- GET /api/reports/summary?start=&end=   dashboard counts (status, per-location, operations by type)
- GET /api/reports/status                cartridge counts by status
- GET /api/reports/locations             per-location status breakdown
"""

from flask import Blueprint, request, jsonify

from ..services import reporting_service
from ..decorators import require_auth
from .errors import error_response


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/summary")
@require_auth
def summary_route():
    try:
        summary = reporting_service.dashboard_summary(
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
    except ValueError as e:
        return error_response(e)
    return jsonify(summary), 200


@reports_bp.get("/status")
@require_auth
def status_counts_route():
    return jsonify(reporting_service.count_by_status()), 200


@reports_bp.get("/locations")
@require_auth
def location_counts_route():
    return jsonify({"items": reporting_service.count_by_location_and_status()}), 200
