# backend/cartrack/services/operation_service.py
"""
State Transition Executor and Operation Log queries.

WHY: An operation is the only sanctioned way to move a cartridge through its
lifecycle, and every accepted move leaves exactly one audit entry.

EXECUTION (apply_operation), inside the caller's transaction:
1. Resolve cartridge (row-locked), performer, optional location -> NotFoundError
2. Validate against the transition table -> InvalidTransitionError, nothing touched
3. Compute the post-transition (status, location) from the table
4. Mutate + flush the cartridge
5. Append the Operation (record_operation)

Nothing here commits. lifecycle_service owns the transaction, so a failure
at step 5 rolls back step 4 and vice versa.
"""
from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import Cartridge, Location, Operation, User
from ..models.operations import OPERATION_SOURCE_EXPLICIT
from ..validation import NotFoundError, ValidationError, require_positive_count
from cartrack.time_utils import utcnow
from .concurrency import lock_for_update
from .transitions import (
    post_transition_state,
    validate_operation_type,
    validate_transition,
)


DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def load_cartridge_for_update(cartridge_id: int) -> Cartridge:
    cartridge = lock_for_update(db.session.query(Cartridge).filter_by(id=cartridge_id)).first()
    if cartridge is None:
        raise NotFoundError(f"Cartridge {cartridge_id} not found")
    return cartridge


def load_location(location_id: int | None) -> Location | None:
    if location_id is None:
        return None
    location = db.session.get(Location, location_id)
    if location is None:
        raise NotFoundError(f"Location {location_id} not found")
    return location


def record_operation(
    *,
    cartridge: Cartridge,
    operation_type: str,
    performed_by: User,
    location: Location | None = None,
    count: int = 1,
    notes: str | None = None,
    source: str = OPERATION_SOURCE_EXPLICIT,
) -> Operation:
    """
    Append one Operation for a cartridge. The executor's logging step.

    Does NOT validate the transition and does NOT touch the cartridge; callers
    either already validated (apply_operation) or already mutated the
    cartridge themselves (inference after a direct edit).
    """
    validate_operation_type(operation_type)
    require_positive_count(count)

    operation = Operation(
        type=operation_type,
        count=count,
        cartridge_id=cartridge.id,
        cartridge_model=cartridge.model,
        cartridge_serial_number=cartridge.serial_number,
        location_id=location.id if location else None,
        location_name=location.name if location else None,
        performed_by_user_id=performed_by.id,
        performed_by_username=performed_by.username,
        operation_date=utcnow(),
        notes=notes,
        source=source,
    )
    db.session.add(operation)
    db.session.flush()
    return operation


def apply_operation(
    *,
    cartridge_id: int,
    operation_type: str,
    performed_by: User,
    location_id: int | None = None,
    count: int = 1,
    notes: str | None = None,
) -> Operation:
    """
    Validate, mutate and log one explicit operation.

    Raises:
        ValidationError: unknown type or bad count
        NotFoundError: cartridge or location missing
        InvalidTransitionError: status does not allow the operation
    """
    validate_operation_type(operation_type)
    require_positive_count(count)

    cartridge = load_cartridge_for_update(cartridge_id)
    location = load_location(location_id)

    validate_transition(cartridge.status, operation_type, cartridge_id=cartridge.id)

    new_status, new_location_id = post_transition_state(
        operation_type, location.id if location else None
    )
    previous_status = cartridge.status
    cartridge.status = new_status
    cartridge.current_location = location if new_location_id is not None else None
    db.session.flush()

    operation = record_operation(
        cartridge=cartridge,
        operation_type=operation_type,
        performed_by=performed_by,
        location=cartridge.current_location,
        count=count,
        notes=notes,
    )

    current_app.logger.info(
        "Applied %s to cartridge %s (%s -> %s) by %s",
        operation_type, cartridge.id, previous_status, new_status, performed_by.username,
    )
    return operation


# ================================================================================
# READ SIDE
# ================================================================================

def get_operation(operation_id: int) -> Operation:
    operation = db.session.get(Operation, operation_id)
    if operation is None:
        raise NotFoundError(f"Operation {operation_id} not found")
    return operation


def _filtered_query(
    *,
    cartridge_id: int | None = None,
    location_id: int | None = None,
    operation_type: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
):
    if start is not None and end is not None and start > end:
        raise ValidationError("start must be before end")

    q = db.session.query(Operation)
    if cartridge_id is not None:
        q = q.filter(Operation.cartridge_id == cartridge_id)
    if location_id is not None:
        q = q.filter(Operation.location_id == location_id)
    if operation_type is not None:
        validate_operation_type(operation_type)
        q = q.filter(Operation.type == operation_type)
    if start is not None:
        q = q.filter(Operation.operation_date >= start)
    if end is not None:
        q = q.filter(Operation.operation_date <= end)
    return q


def list_operations(
    *,
    cartridge_id: int | None = None,
    location_id: int | None = None,
    operation_type: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Operations newest first, optionally filtered.

    Date bounds are inclusive. Without `page` every match is returned.
    History of deleted cartridges stays queryable by cartridge_id.
    """
    q = _filtered_query(
        cartridge_id=cartridge_id,
        location_id=location_id,
        operation_type=operation_type,
        start=start,
        end=end,
    ).order_by(Operation.operation_date.desc(), Operation.id.desc())

    if page is None:
        items = q.all()
        return {"items": [op.to_dict() for op in items], "total": len(items)}

    if page < 1:
        raise ValidationError("page must be >= 1")
    per_page = min(max(per_page or DEFAULT_PAGE_SIZE, 1), MAX_PAGE_SIZE)

    total = q.count()
    items = q.offset((page - 1) * per_page).limit(per_page).all()
    return {
        "items": [op.to_dict() for op in items],
        "total": total,
        "page": page,
        "per_page": per_page,
        "pages": (total + per_page - 1) // per_page,
    }


def count_operations(
    operation_type: str,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
) -> int:
    return _filtered_query(operation_type=operation_type, start=start, end=end).count()
