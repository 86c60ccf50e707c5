# Overview: Password hashing and credential checks.

"""
Authentication Service

WHY: Every operation must be attributable to a real account. Uses bcrypt
for password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, at least one letter and one digit
- Session tokens managed separately (see session_service.py)
- Disabled users cannot authenticate
"""

import re

import bcrypt

from ..extensions import db
from ..models import User
from cartrack.time_utils import utcnow


class PasswordValidationError(ValueError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Za-z]', password):
        raise PasswordValidationError("Password must contain at least one letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str, *, rounds: int = 12) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() is timing-safe. A malformed stored hash counts as a mismatch.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def authenticate(username: str, password: str) -> User | None:
    """
    Return the user for a valid username/password pair, else None.

    Disabled accounts never authenticate. Stamps last_login_at on success.
    """
    if not username or not password:
        return None

    user = db.session.query(User).filter_by(username=username).first()
    if user is None or not user.is_enabled:
        return None

    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
