# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g, current_app

from .services import session_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1]


def require_auth(f):
    """
    Require a valid bearer session.

    Sets g.current_user to the authenticated User. Routes hand
    g.current_user.username to the lifecycle services as the acting user.

    Returns 401 if the header is missing, the token is invalid/expired/idle,
    or the account is disabled.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if token is None:
            return jsonify({"error": "Authentication required"}), 401

        user = session_service.validate_session(token)
        if user is None:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Require the authenticated user to hold one of `roles`.

    Must be stacked under @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "current_user"):
                return jsonify({"error": "Authentication required"}), 401

            user = g.current_user
            if user.role not in roles:
                current_app.logger.warning(
                    "Denied %s %s to %s (role %s)", request.method, request.path, user.username, user.role
                )
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": sorted(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
