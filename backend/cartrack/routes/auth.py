# backend/cartrack/routes/auth.py
"""
Authentication API routes

- POST /api/auth/register  self-registration, always as OBJECT_USER
- POST /api/auth/login     username + password -> bearer token
- POST /api/auth/logout    revoke the presented token
- GET  /api/auth/me        the authenticated user
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services import user_service
from ..services.auth_service import PasswordValidationError
from ..models.auth import ROLE_OBJECT_USER
from ..validation import ConflictError, ValidationError
from ..decorators import require_auth
from cartrack.time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """
    Create an OBJECT_USER account. Elevated roles are granted by an ADMIN via /api/users.
    """
    data = request.get_json(silent=True) or {}
    try:
        user = user_service.create_user(
            data.get("username"),
            data.get("password"),
            full_name=data.get("full_name"),
            role=ROLE_OBJECT_USER,
        )
    except (ValidationError, PasswordValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"user": user.to_dict()}), 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    The token goes in `Authorization: Bearer <token>` on protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "username and password required"}), 400

        user = auth_service.authenticate(username, password)
        if not user:
            current_app.logger.warning("Failed login for %s", username)
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "expires_at": to_utc_z(session.expires_at),
            "message": "Login successful",
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token (logout).

    Expects Authorization header: Bearer <token>
    """
    try:
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authorization header required"}), 401

        token = auth_header.split(" ", 1)[1]

        if not session_service.revoke_session(token, reason="User logout"):
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200
