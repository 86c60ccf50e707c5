from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import User, Operation
from ..models.auth import VALID_ROLES, ROLE_OBJECT_USER
from ..validation import ConflictError, NotFoundError, ValidationError
from .auth_service import hash_password
from .session_service import revoke_all_user_sessions


def _validate_role(role: str) -> None:
    if role not in VALID_ROLES:
        raise ValidationError(f"Invalid role '{role}'. Must be one of: {', '.join(sorted(VALID_ROLES))}")


def _hash(password: str) -> str:
    return hash_password(password, rounds=current_app.config.get("BCRYPT_ROUNDS", 12))


def create_user(
    username: str,
    password: str,
    *,
    full_name: str | None = None,
    role: str = ROLE_OBJECT_USER,
    is_enabled: bool = True,
) -> User:
    """
    Create a user with a bcrypt password hash.

    Raises:
        ValidationError: blank username or unknown role
        PasswordValidationError: weak password
        ConflictError: username already taken
    """
    username = (username or "").strip()
    if not username:
        raise ValidationError("username is required")
    _validate_role(role)

    if db.session.query(User).filter_by(username=username).first():
        raise ConflictError(f"Username '{username}' is already taken")

    user = User(
        username=username,
        password_hash=_hash(password),
        full_name=full_name,
        role=role,
        is_enabled=is_enabled,
    )
    db.session.add(user)
    db.session.commit()

    current_app.logger.info("Created user %s with role %s", username, role)
    return user


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    return user


def get_user_by_username(username: str) -> User:
    user = db.session.query(User).filter_by(username=username).first()
    if user is None:
        raise NotFoundError(f"User '{username}' not found")
    return user


def resolve_acting_user(username: str) -> User:
    """
    Map the authenticated username onto a User for attribution.

    Every lifecycle entry point calls this with an explicit username; there is
    no ambient "current user" and no system fallback.
    """
    if not username:
        raise NotFoundError("Acting user is required")
    user = get_user_by_username(username)
    if not user.is_enabled:
        raise NotFoundError(f"User '{username}' is disabled")
    return user


def list_users(*, role: str | None = None, is_enabled: bool | None = None) -> list[User]:
    q = db.session.query(User)
    if role is not None:
        _validate_role(role)
        q = q.filter_by(role=role)
    if is_enabled is not None:
        q = q.filter_by(is_enabled=is_enabled)
    return q.order_by(User.username.asc()).all()


def update_user(
    user_id: int,
    *,
    full_name: str | None = None,
    role: str | None = None,
    is_enabled: bool | None = None,
    password: str | None = None,
) -> User:
    user = get_user(user_id)

    if full_name is not None:
        user.full_name = full_name
    if role is not None:
        _validate_role(role)
        user.role = role
    if password is not None and password.strip():
        user.password_hash = _hash(password)

    db.session.commit()

    if password is not None and password.strip():
        revoke_all_user_sessions(user.id, reason="Password changed")
    if is_enabled is not None:
        set_user_enabled(user.id, is_enabled)

    return user


def set_user_enabled(user_id: int, is_enabled: bool) -> User:
    user = get_user(user_id)
    user.is_enabled = is_enabled
    db.session.commit()

    if not is_enabled:
        revoke_all_user_sessions(user.id, reason="User account disabled")

    current_app.logger.info("User %s enabled=%s", user.username, is_enabled)
    return user


def delete_user(user_id: int) -> None:
    """
    Delete a user who never performed an operation.

    Users referenced by the audit log must be disabled instead.
    """
    user = get_user(user_id)

    performed = db.session.query(Operation).filter_by(performed_by_user_id=user_id).count()
    if performed:
        raise ConflictError(
            f"User '{user.username}' performed {performed} operation(s); disable the account instead"
        )

    db.session.delete(user)
    db.session.commit()
