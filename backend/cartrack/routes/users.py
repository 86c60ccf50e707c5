# backend/cartrack/routes/users.py
"""
User administration routes (ADMIN only).

Users who performed operations cannot be deleted (409); disable them instead
so the audit trail keeps pointing at a real account.
"""

from flask import Blueprint, request, jsonify, current_app

from ..models.auth import ROLE_ADMIN
from ..services import user_service
from ..validation import ValidationError
from ..decorators import require_auth, require_role
from .errors import error_response


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def _bool_arg(name: str) -> bool | None:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    if raw.lower() not in {"true", "false"}:
        raise ValidationError(f"{name} must be true or false")
    return raw.lower() == "true"


@users_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_user_route():
    """Body: username, password, role, full_name, is_enabled"""
    data = request.get_json(silent=True) or {}
    try:
        user = user_service.create_user(
            data.get("username"),
            data.get("password"),
            full_name=data.get("full_name"),
            role=data.get("role") or "OBJECT_USER",
            is_enabled=bool(data.get("is_enabled", True)),
        )
    except ValueError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"user": user.to_dict()}), 201


@users_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def list_users_route():
    """Query params: role, enabled"""
    try:
        users = user_service.list_users(
            role=request.args.get("role") or None,
            is_enabled=_bool_arg("enabled"),
        )
    except ValueError as e:
        return error_response(e)
    return jsonify({"items": [u.to_dict() for u in users]}), 200


@users_bp.get("/<int:user_id>")
@require_auth
@require_role(ROLE_ADMIN)
def get_user_route(user_id: int):
    try:
        user = user_service.get_user(user_id)
    except ValueError as e:
        return error_response(e)
    return jsonify({"user": user.to_dict()}), 200


@users_bp.put("/<int:user_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_user_route(user_id: int):
    """Body: any of full_name, role, is_enabled, password"""
    data = request.get_json(silent=True) or {}
    try:
        is_enabled = data.get("is_enabled")
        if is_enabled is not None and not isinstance(is_enabled, bool):
            raise ValidationError("is_enabled must be a boolean")
        user = user_service.update_user(
            user_id,
            full_name=data.get("full_name"),
            role=data.get("role"),
            is_enabled=is_enabled,
            password=data.get("password"),
        )
    except ValueError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"user": user.to_dict()}), 200


@users_bp.patch("/<int:user_id>/enabled")
@require_auth
@require_role(ROLE_ADMIN)
def set_user_enabled_route(user_id: int):
    """Body: {"is_enabled": true|false}. Disabling revokes the user's sessions."""
    data = request.get_json(silent=True) or {}
    try:
        is_enabled = data.get("is_enabled")
        if not isinstance(is_enabled, bool):
            raise ValidationError("is_enabled must be a boolean")
        user = user_service.set_user_enabled(user_id, is_enabled)
    except ValueError as e:
        return error_response(e)
    return jsonify({"user": user.to_dict()}), 200


@users_bp.delete("/<int:user_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_user_route(user_id: int):
    try:
        user_service.delete_user(user_id)
    except ValueError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "User deleted"}), 200
