# Overview: Aggregate counts for the dashboard and reports screens.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from cartrack.extensions import db
from cartrack.models import Cartridge, Location, Operation
from cartrack.services.transitions import VALID_OPERATION_TYPES, VALID_STATUSES
from cartrack.validation import ValidationError
from cartrack.time_utils import parse_iso_datetime, to_utc_z


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    try:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_iso_datetime(end) if end else None
    except ValueError:
        raise ValidationError("start/end must be ISO-8601 dates")
    if start_dt and end_dt and start_dt > end_dt:
        raise ValidationError("start must be before end")
    return start_dt, end_dt


def count_by_status() -> dict[str, int]:
    """Every status appears, zero when no cartridge is in it."""
    counts = {status: 0 for status in sorted(VALID_STATUSES)}
    rows = (
        db.session.query(Cartridge.status, func.count(Cartridge.id))
        .group_by(Cartridge.status)
        .all()
    )
    for status, n in rows:
        counts[status] = n
    return counts


def count_by_location_and_status() -> list[dict]:
    """Per-location status breakdown; locations with no cartridges are listed with zeros."""
    rows = (
        db.session.query(Cartridge.current_location_id, Cartridge.status, func.count(Cartridge.id))
        .filter(Cartridge.current_location_id.isnot(None))
        .group_by(Cartridge.current_location_id, Cartridge.status)
        .all()
    )
    by_location: dict[int, dict[str, int]] = {}
    for location_id, status, n in rows:
        by_location.setdefault(location_id, {})[status] = n

    result = []
    for location in db.session.query(Location).order_by(Location.name.asc()).all():
        counts = {status: 0 for status in sorted(VALID_STATUSES)}
        counts.update(by_location.get(location.id, {}))
        result.append({
            "location_id": location.id,
            "location_name": location.name,
            "is_active": location.is_active,
            "counts": counts,
            "total": sum(counts.values()),
        })
    return result


def count_operations_by_type(start: str | None = None, end: str | None = None) -> dict[str, int]:
    start_dt, end_dt = _parse_range(start, end)

    q = db.session.query(Operation.type, func.count(Operation.id))
    if start_dt:
        q = q.filter(Operation.operation_date >= start_dt)
    if end_dt:
        q = q.filter(Operation.operation_date <= end_dt)

    counts = {op_type: 0 for op_type in sorted(VALID_OPERATION_TYPES)}
    for op_type, n in q.group_by(Operation.type).all():
        counts[op_type] = n
    return counts


def dashboard_summary(start: str | None = None, end: str | None = None) -> dict:
    start_dt, end_dt = _parse_range(start, end)
    return {
        "cartridges_by_status": count_by_status(),
        "cartridges_total": db.session.query(Cartridge).count(),
        "locations": count_by_location_and_status(),
        "operations_by_type": count_operations_by_type(start, end),
        "range": {
            "start": to_utc_z(start_dt),
            "end": to_utc_z(end_dt),
        },
    }
