# backend/cartrack/routes/errors.py
"""
Domain exception -> JSON error response.

Order matters: InvalidTransitionError and ConcurrencyError are ConflictErrors,
and every domain error is a ValueError.
"""

from flask import jsonify

from ..services.transitions import InvalidTransitionError
from ..validation import ConflictError, NotFoundError


def error_response(e: ValueError):
    """ValidationError, PasswordValidationError and any other ValueError map to 400."""
    if isinstance(e, InvalidTransitionError):
        return jsonify(e.to_dict()), 409
    if isinstance(e, NotFoundError):
        return jsonify({"error": str(e)}), 404
    if isinstance(e, ConflictError):
        return jsonify({"error": str(e)}), 409
    return jsonify({"error": str(e)}), 400
