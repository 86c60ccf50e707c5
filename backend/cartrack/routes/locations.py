# backend/cartrack/routes/locations.py
"""
Location API routes

Reads: any authenticated user. Create/update/activate: ADMIN or
WAREHOUSE_MANAGER. Delete: ADMIN, refused (409) while cartridges are there.
"""

from flask import Blueprint, request, jsonify, current_app

from ..models import Location
from ..models.auth import ROLE_ADMIN, ROLE_WAREHOUSE_MANAGER
from ..services import lifecycle_service, location_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_location,
    ValidationError,
)
from ..decorators import require_auth, require_role
from .errors import error_response


LOCATION_POLICY = ModelValidationPolicy(
    writable_fields=set(location_service.LOCATION_FIELDS),
    required_on_create={"name", "address"},
)

locations_bp = Blueprint("locations", __name__, url_prefix="/api/locations")


@locations_bp.post("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_WAREHOUSE_MANAGER)
def create_location_route():
    payload = request.get_json(silent=True) or {}
    try:
        fields = validate_payload(model=Location, payload=payload, policy=LOCATION_POLICY, partial=False)
        enforce_rules_location(fields)
        location = location_service.create_location(fields)
    except ValueError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create location")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"location": location.to_dict()}), 201


@locations_bp.get("")
@require_auth
def list_locations_route():
    active_only = (request.args.get("active") or "").lower() == "true"
    items = location_service.list_locations(active_only=active_only)
    return jsonify({"items": [loc.to_dict() for loc in items]}), 200


@locations_bp.get("/active")
@require_auth
def active_locations_route():
    items = location_service.list_locations(active_only=True)
    return jsonify({"items": [loc.to_dict() for loc in items]}), 200


@locations_bp.get("/search")
@require_auth
def search_locations_route():
    """Query params: address and/or contact_person (substring, case-insensitive)."""
    try:
        items = location_service.search_locations(
            address=request.args.get("address"),
            contact_person=request.args.get("contact_person"),
        )
    except ValueError as e:
        return error_response(e)
    return jsonify({"items": [loc.to_dict() for loc in items]}), 200


@locations_bp.get("/<int:location_id>")
@require_auth
def get_location_route(location_id: int):
    try:
        location = location_service.get_location(location_id)
    except ValueError as e:
        return error_response(e)
    return jsonify({"location": location.to_dict()}), 200


@locations_bp.get("/name/<name>")
@require_auth
def get_location_by_name_route(name: str):
    try:
        location = location_service.get_location_by_name(name)
    except ValueError as e:
        return error_response(e)
    return jsonify({"location": location.to_dict()}), 200


@locations_bp.put("/<int:location_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_WAREHOUSE_MANAGER)
def update_location_route(location_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        fields = validate_payload(model=Location, payload=payload, policy=LOCATION_POLICY, partial=True)
        enforce_rules_location(fields)
        location = location_service.update_location(location_id, fields)
    except ValueError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update location")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"location": location.to_dict()}), 200


@locations_bp.patch("/<int:location_id>/active")
@require_auth
@require_role(ROLE_ADMIN, ROLE_WAREHOUSE_MANAGER)
def set_location_active_route(location_id: int):
    """Body: {"is_active": true|false}"""
    payload = request.get_json(silent=True) or {}
    try:
        is_active = payload.get("is_active")
        if not isinstance(is_active, bool):
            raise ValidationError("is_active must be a boolean")
        location = location_service.set_location_active(location_id, is_active)
    except ValueError as e:
        return error_response(e)
    return jsonify({"location": location.to_dict()}), 200


@locations_bp.delete("/<int:location_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_location_route(location_id: int):
    try:
        lifecycle_service.delete_location(location_id)
    except ValueError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete location")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "Location deleted"}), 200
