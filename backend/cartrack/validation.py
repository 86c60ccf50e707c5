from __future__ import annotations
from datetime import datetime
from cartrack.time_utils import parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta


# Upper bound for page yields; anything larger is a typo, not a cartridge
MAX_RESOURCE_PAGES = 1_000_000

# Operation.count is informational; keep it in a sane range
MAX_OPERATION_COUNT = 10_000


class ValidationError(ValueError):
    """400-level input problem."""


class NotFoundError(ValueError):
    """404-level: a referenced cartridge, location, user or operation does not exist."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate serial number)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - extra_fields: non-column keys the route handles itself (e.g. "password")
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    extra_fields: set[str] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
            return value.strip().lower() == "true"
        raise ValidationError(f"{col.key} must be a boolean")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)
    extra = policy.extra_fields or set()

    for k in payload.keys():
        if k in extra:
            continue
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        if k in extra:
            continue
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def require_positive_count(count: Any) -> int:
    if isinstance(count, bool) or not isinstance(count, int):
        raise ValidationError("count must be an integer")
    if count <= 0:
        raise ValidationError("count must be > 0")
    if count > MAX_OPERATION_COUNT:
        raise ValidationError(f"count cannot exceed {MAX_OPERATION_COUNT}")
    return count


def enforce_rules_cartridge(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    pages = patch.get("resource_pages")
    if pages is not None:
        if pages <= 0:
            raise ValidationError("resource_pages must be > 0")
        if pages > MAX_RESOURCE_PAGES:
            raise ValidationError(f"resource_pages cannot exceed {MAX_RESOURCE_PAGES}")

    # Empty serial numbers are stored as NULL so the unique index ignores them
    if "serial_number" in patch and patch["serial_number"] == "":
        patch["serial_number"] = None


def parse_optional_text(value: Any, field: str, max_length: int | None = None) -> str | None:
    """Accept a JSON string or null; anything else is a client error."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return value


def enforce_rules_location(patch: dict) -> None:
    phone = patch.get("contact_phone")
    if phone:
        digits = [ch for ch in phone if ch.isdigit()]
        if len(digits) < 3:
            raise ValidationError("contact_phone must contain at least 3 digits")


def parse_optional_int(value: Any, field: str) -> int | None:
    """Coerce an optional id coming from JSON or a query string."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValidationError(f"{field} must be an integer")
