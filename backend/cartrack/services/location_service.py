from __future__ import annotations

from ..extensions import db
from ..models import Location
from ..validation import ConflictError, NotFoundError, ValidationError, enforce_rules_location


LOCATION_FIELDS = {
    "name",
    "address",
    "cabinet",
    "contact_person",
    "contact_phone",
    "description",
    "is_active",
}


def _ensure_name_available(name: str, *, exclude_id: int | None = None) -> None:
    q = db.session.query(Location.id).filter(Location.name == name)
    if exclude_id is not None:
        q = q.filter(Location.id != exclude_id)
    if q.first() is not None:
        raise ConflictError(f"Location '{name}' already exists")


def create_location(fields: dict) -> Location:
    fields = dict(fields or {})
    unknown = sorted(set(fields) - LOCATION_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")
    for required in ("name", "address"):
        if not (fields.get(required) or "").strip():
            raise ValidationError(f"{required} is required")
    enforce_rules_location(fields)

    _ensure_name_available(fields["name"])

    location = Location(**fields)
    db.session.add(location)
    db.session.commit()
    return location


def get_location(location_id: int) -> Location:
    location = db.session.get(Location, location_id)
    if location is None:
        raise NotFoundError(f"Location {location_id} not found")
    return location


def get_location_by_name(name: str) -> Location:
    location = db.session.query(Location).filter_by(name=name).first()
    if location is None:
        raise NotFoundError(f"Location '{name}' not found")
    return location


def list_locations(*, active_only: bool = False) -> list[Location]:
    q = db.session.query(Location)
    if active_only:
        q = q.filter(Location.is_active.is_(True))
    return q.order_by(Location.name.asc()).all()


def search_locations(*, address: str | None = None, contact_person: str | None = None) -> list[Location]:
    """Case-insensitive substring match on address and/or contact person."""
    if not address and not contact_person:
        raise ValidationError("address or contact_person is required")

    q = db.session.query(Location)
    if address:
        q = q.filter(Location.address.ilike(f"%{address.strip()}%"))
    if contact_person:
        q = q.filter(Location.contact_person.ilike(f"%{contact_person.strip()}%"))
    return q.order_by(Location.name.asc()).all()


def update_location(location_id: int, fields: dict) -> Location:
    location = get_location(location_id)

    fields = dict(fields or {})
    unknown = sorted(set(fields) - LOCATION_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")
    for required in ("name", "address"):
        if required in fields and not (fields[required] or "").strip():
            raise ValidationError(f"{required} cannot be blank")
    enforce_rules_location(fields)

    if "name" in fields:
        _ensure_name_available(fields["name"], exclude_id=location.id)

    for key, value in fields.items():
        setattr(location, key, value)

    db.session.commit()
    return location


def set_location_active(location_id: int, is_active: bool) -> Location:
    """Deactivated locations stay referenced by history; they just drop out of pickers."""
    location = get_location(location_id)
    location.is_active = is_active
    db.session.commit()
    return location
