# backend/cartrack/routes/operations.py
"""
Operation API routes

- POST /api/operations                  perform an explicit operation (ADMIN, WAREHOUSE_MANAGER)
- GET  /api/operations                  filtered log: cartridge_id, location_id, type, start, end, page, per_page
- GET  /api/operations/<id>             one entry
- GET  /api/operations/type/<type>      all entries of a type
- GET  /api/operations/count/<type>     count of a type, optionally within start/end

performed_by is always the authenticated user.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..models.auth import ROLE_ADMIN, ROLE_WAREHOUSE_MANAGER
from ..services import lifecycle_service, operation_service
from ..validation import ValidationError, parse_optional_int, parse_optional_text, require_positive_count
from ..decorators import require_auth, require_role
from cartrack.time_utils import parse_iso_datetime
from .errors import error_response


operations_bp = Blueprint("operations", __name__, url_prefix="/api/operations")


def _date_arg(name: str):
    try:
        return parse_iso_datetime(request.args.get(name))
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date or datetime")


@operations_bp.post("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_WAREHOUSE_MANAGER)
def create_operation_route():
    """
    Body: type, cartridge_id (required); location_id, count (default 1), notes

    409 with {cartridge_id, current_status, operation_type, reason} when the
    cartridge's status does not allow the operation.
    """
    payload = request.get_json(silent=True) or {}

    try:
        operation_type = parse_optional_text(payload.get("type"), "type")
        if not operation_type:
            raise ValidationError("type is required")
        cartridge_id = parse_optional_int(payload.get("cartridge_id"), "cartridge_id")
        if cartridge_id is None:
            raise ValidationError("cartridge_id is required")
        count = require_positive_count(payload.get("count", 1))
        notes = parse_optional_text(payload.get("notes"), "notes", max_length=500)

        operation = lifecycle_service.perform_operation(
            operation_type=operation_type.strip().upper(),
            cartridge_id=cartridge_id,
            acting_username=g.current_user.username,
            location_id=parse_optional_int(payload.get("location_id"), "location_id"),
            count=count,
            notes=notes,
        )
    except ValueError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to perform operation")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"operation": operation.to_dict()}), 201


@operations_bp.get("")
@require_auth
def list_operations_route():
    try:
        result = operation_service.list_operations(
            cartridge_id=parse_optional_int(request.args.get("cartridge_id"), "cartridge_id"),
            location_id=parse_optional_int(request.args.get("location_id"), "location_id"),
            operation_type=request.args.get("type") or None,
            start=_date_arg("start"),
            end=_date_arg("end"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except ValueError as e:
        return error_response(e)
    return jsonify(result), 200


@operations_bp.get("/<int:operation_id>")
@require_auth
def get_operation_route(operation_id: int):
    try:
        operation = operation_service.get_operation(operation_id)
    except ValueError as e:
        return error_response(e)
    return jsonify({"operation": operation.to_dict()}), 200


@operations_bp.get("/type/<operation_type>")
@require_auth
def operations_by_type_route(operation_type: str):
    try:
        result = operation_service.list_operations(operation_type=operation_type)
    except ValueError as e:
        return error_response(e)
    return jsonify(result), 200


@operations_bp.get("/count/<operation_type>")
@require_auth
def count_operations_route(operation_type: str):
    try:
        count = operation_service.count_operations(
            operation_type,
            start=_date_arg("start"),
            end=_date_arg("end"),
        )
    except ValueError as e:
        return error_response(e)
    return jsonify({"type": operation_type, "count": count}), 200
