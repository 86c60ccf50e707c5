# backend/cartrack/routes/cartridges.py
"""
Cartridge API routes

SECURITY:
- All routes require authentication
- Registration and edits require ADMIN or WAREHOUSE_MANAGER
- Deletion (write-off) requires ADMIN
- The acting user is always g.current_user, never taken from the body

AUDIT:
- POST logs the initial RECEIPT in the same transaction
- PUT edits status/location directly; the implied operation is logged
  afterwards and reported under "audit" in the response
- DELETE logs DISPOSAL, then removes the row
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..models import Cartridge
from ..models.auth import ROLE_ADMIN, ROLE_WAREHOUSE_MANAGER
from ..services import cartridge_service, lifecycle_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_cartridge,
    parse_optional_int,
    parse_optional_text,
    ValidationError,
)
from ..decorators import require_auth, require_role
from .errors import error_response


CARTRIDGE_POLICY = ModelValidationPolicy(
    writable_fields=set(lifecycle_service.EDITABLE_ATTRIBUTES),
    required_on_create={"model"},
    extra_fields={"status", "location_id"},
)

cartridges_bp = Blueprint("cartridges", __name__, url_prefix="/api/cartridges")


@cartridges_bp.post("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_WAREHOUSE_MANAGER)
def create_cartridge_route():
    """
    Register a cartridge (IN_STOCK), optionally on a storage location.

    Body: model (required), serial_number, resource_pages, description, brand,
    part_number, color, compatible_printers, location_id
    """
    payload = request.get_json(silent=True) or {}

    try:
        if "status" in payload:
            raise ValidationError("New cartridges always start IN_STOCK; use operations to move them")
        attributes = validate_payload(model=Cartridge, payload=payload, policy=CARTRIDGE_POLICY, partial=False)
        enforce_rules_cartridge(attributes)
        location_id = parse_optional_int(payload.get("location_id"), "location_id")

        cartridge = cartridge_service.create_cartridge(
            acting_username=g.current_user.username,
            attributes=attributes,
            location_id=location_id,
        )
    except ValueError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create cartridge")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"cartridge": cartridge.to_dict()}), 201


@cartridges_bp.get("")
@require_auth
def list_cartridges_route():
    """
    Query params: status, location_id, q (model/serial substring), page, per_page
    """
    try:
        result = cartridge_service.list_cartridges(
            status=request.args.get("status") or None,
            location_id=parse_optional_int(request.args.get("location_id"), "location_id"),
            query=request.args.get("q") or None,
            page=request.args.get("page", default=1, type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except ValueError as e:
        return error_response(e)
    return jsonify(result), 200


@cartridges_bp.get("/search")
@require_auth
def search_cartridges_route():
    q = (request.args.get("q") or "").strip()
    if not q:
        return jsonify({"error": "q is required"}), 400
    try:
        result = cartridge_service.list_cartridges(
            query=q,
            page=request.args.get("page", default=1, type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except ValueError as e:
        return error_response(e)
    return jsonify(result), 200


@cartridges_bp.get("/<int:cartridge_id>")
@require_auth
def get_cartridge_route(cartridge_id: int):
    try:
        cartridge = cartridge_service.get_cartridge(cartridge_id)
    except ValueError as e:
        return error_response(e)
    return jsonify({"cartridge": cartridge.to_dict()}), 200


@cartridges_bp.get("/serial/<serial_number>")
@require_auth
def get_cartridge_by_serial_route(serial_number: str):
    try:
        cartridge = cartridge_service.get_cartridge_by_serial(serial_number)
    except ValueError as e:
        return error_response(e)
    return jsonify({"cartridge": cartridge.to_dict()}), 200


@cartridges_bp.get("/status/<status>")
@require_auth
def cartridges_by_status_route(status: str):
    try:
        items = cartridge_service.cartridges_by_status(status)
    except ValueError as e:
        return error_response(e)
    return jsonify({"items": [c.to_dict() for c in items]}), 200


@cartridges_bp.get("/location/<int:location_id>")
@require_auth
def cartridges_at_location_route(location_id: int):
    try:
        items = cartridge_service.cartridges_at_location(location_id)
    except ValueError as e:
        return error_response(e)
    return jsonify({"items": [c.to_dict() for c in items]}), 200


@cartridges_bp.get("/count/status/<status>")
@require_auth
def count_by_status_route(status: str):
    try:
        count = cartridge_service.count_by_status(status)
    except ValueError as e:
        return error_response(e)
    return jsonify({"status": status, "count": count}), 200


@cartridges_bp.get("/count/location/<int:location_id>/status/<status>")
@require_auth
def count_at_location_route(location_id: int, status: str):
    try:
        count = cartridge_service.count_at_location(location_id, status)
    except ValueError as e:
        return error_response(e)
    return jsonify({"location_id": location_id, "status": status, "count": count}), 200


@cartridges_bp.put("/<int:cartridge_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_WAREHOUSE_MANAGER)
def update_cartridge_route(cartridge_id: int):
    """
    Direct edit. Any descriptive field plus optional `status` and `location_id`.

    Omitting location_id keeps the current location (or clears it when the new
    status cannot hold one); "location_id": null clears it explicitly.

    Response:
        {"cartridge": {...}, "audit": {"state": "RECORDED"|"NOT_REQUIRED"|"FAILED", ...}}
    """
    payload = request.get_json(silent=True) or {}

    try:
        attributes = validate_payload(model=Cartridge, payload=payload, policy=CARTRIDGE_POLICY, partial=True)
        enforce_rules_cartridge(attributes)

        kwargs = {}
        if "location_id" in payload:
            kwargs["location_id"] = parse_optional_int(payload.get("location_id"), "location_id")

        result = lifecycle_service.edit_cartridge(
            cartridge_id,
            acting_username=g.current_user.username,
            attributes=attributes,
            status=parse_optional_text(payload.get("status"), "status") or None,
            **kwargs,
        )
    except ValueError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update cartridge")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(result.to_dict()), 200


@cartridges_bp.delete("/<int:cartridge_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_cartridge_route(cartridge_id: int):
    """
    Write a cartridge off. The DISPOSAL entry stays in the operation log.
    """
    try:
        operation = lifecycle_service.dispose_cartridge(
            cartridge_id,
            acting_username=g.current_user.username,
        )
    except ValueError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete cartridge")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"operation": operation.to_dict()}), 200
