# Overview: Cartridge registration and read-side queries.

"""
Cartridge Service

Registration puts a new cartridge on the shelf (IN_STOCK) and logs its
initial RECEIPT in the same transaction. Status/location changes after that
belong to lifecycle_service; this module only reads.
"""

from __future__ import annotations

from sqlalchemy import or_

from flask import current_app

from ..extensions import db
from ..models import Cartridge, Location
from ..validation import NotFoundError, ValidationError, enforce_rules_cartridge
from .concurrency import atomic
from .lifecycle_service import EDITABLE_ATTRIBUTES, ensure_serial_available
from .operation_service import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, load_location, record_operation
from .transitions import OP_RECEIPT, STATUS_IN_STOCK, validate_status
from .user_service import resolve_acting_user


INITIAL_RECEIPT_NOTES = "Initial receipt into stock"


def create_cartridge(
    *,
    acting_username: str,
    attributes: dict,
    location_id: int | None = None,
) -> Cartridge:
    """
    Register a cartridge in IN_STOCK and log its RECEIPT atomically.

    Raises:
        ValidationError: missing model or bad field values
        ConflictError: serial number already registered
        NotFoundError: unknown user or location
    """
    attributes = dict(attributes or {})
    unknown = sorted(set(attributes) - EDITABLE_ATTRIBUTES)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")
    if not (attributes.get("model") or "").strip():
        raise ValidationError("model is required")
    enforce_rules_cartridge(attributes)

    with atomic("cartridge registration"):
        user = resolve_acting_user(acting_username)
        ensure_serial_available(attributes.get("serial_number"))
        location = load_location(location_id)

        cartridge = Cartridge(status=STATUS_IN_STOCK, current_location=location, **attributes)
        db.session.add(cartridge)
        db.session.flush()

        record_operation(
            cartridge=cartridge,
            operation_type=OP_RECEIPT,
            performed_by=user,
            location=location,
            count=1,
            notes=INITIAL_RECEIPT_NOTES,
        )

    current_app.logger.info("Registered cartridge %s (%s)", cartridge.id, cartridge.model)
    return cartridge


def get_cartridge(cartridge_id: int) -> Cartridge:
    cartridge = db.session.get(Cartridge, cartridge_id)
    if cartridge is None:
        raise NotFoundError(f"Cartridge {cartridge_id} not found")
    return cartridge


def get_cartridge_by_serial(serial_number: str) -> Cartridge:
    cartridge = db.session.query(Cartridge).filter_by(serial_number=serial_number).first()
    if cartridge is None:
        raise NotFoundError(f"Cartridge with serial number '{serial_number}' not found")
    return cartridge


def list_cartridges(
    *,
    status: str | None = None,
    location_id: int | None = None,
    query: str | None = None,
    page: int = 1,
    per_page: int | None = None,
) -> dict:
    """Paginated cartridge list, newest first. `query` matches model or serial substrings."""
    q = db.session.query(Cartridge)
    if status is not None:
        validate_status(status)
        q = q.filter(Cartridge.status == status)
    if location_id is not None:
        q = q.filter(Cartridge.current_location_id == location_id)
    if query:
        pattern = f"%{query.strip()}%"
        q = q.filter(or_(Cartridge.model.ilike(pattern), Cartridge.serial_number.ilike(pattern)))

    if page < 1:
        raise ValidationError("page must be >= 1")
    per_page = min(max(per_page or DEFAULT_PAGE_SIZE, 1), MAX_PAGE_SIZE)

    total = q.count()
    items = (
        q.order_by(Cartridge.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return {
        "items": [c.to_dict() for c in items],
        "total": total,
        "page": page,
        "per_page": per_page,
        "pages": (total + per_page - 1) // per_page,
    }


def cartridges_by_status(status: str) -> list[Cartridge]:
    validate_status(status)
    return db.session.query(Cartridge).filter_by(status=status).order_by(Cartridge.id.asc()).all()


def cartridges_at_location(location_id: int) -> list[Cartridge]:
    if db.session.get(Location, location_id) is None:
        raise NotFoundError(f"Location {location_id} not found")
    return (
        db.session.query(Cartridge)
        .filter_by(current_location_id=location_id)
        .order_by(Cartridge.id.asc())
        .all()
    )


def count_by_status(status: str) -> int:
    validate_status(status)
    return db.session.query(Cartridge).filter_by(status=status).count()


def count_at_location(location_id: int, status: str) -> int:
    validate_status(status)
    return (
        db.session.query(Cartridge)
        .filter_by(current_location_id=location_id, status=status)
        .count()
    )
