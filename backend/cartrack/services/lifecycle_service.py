# Overview: Public entry points for every cartridge lifecycle change.

"""
Cartridge Lifecycle Facade

================================================================================
PURPOSE: The only doors through which a cartridge's status/location change
================================================================================

ENTRY POINTS:
    perform_operation   explicit operation -> validator -> executor (one commit)
    edit_cartridge      direct edit (commit) -> inferred audit entry (best-effort)
    dispose_cartridge   DISPOSAL entry + row deletion (one commit)
    delete_location     refused while any cartridge still references the location

RULES:
1. Each entry point owns its transaction: commit on success, rollback on error
2. The acting user is always passed in by username; nothing looks it up ambiently
3. A cartridge row is never deleted without a DISPOSAL entry for it in the log
4. REFILLING and DISPOSED cartridges never carry a location

CONCURRENCY:
    The cartridge row is locked (SELECT ... FOR UPDATE) and version-checked.
    A lost race surfaces as ConcurrencyError; nothing is retried here.
================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Cartridge, Location, Operation
from ..validation import ConflictError, NotFoundError, ValidationError, enforce_rules_cartridge
from . import inference_service, operation_service
from .concurrency import atomic
from .inference_service import AuditOutcome
from .transitions import (
    OP_DISPOSAL,
    STATUS_DISPOSED,
    InvalidTransitionError,
    status_allows_location,
    validate_status,
)
from .user_service import resolve_acting_user


DISPOSAL_NOTES = "Cartridge written off and removed"

# Descriptive fields a direct edit may change. Status and location go
# through their own arguments so the audit step can see them.
EDITABLE_ATTRIBUTES = {
    "model",
    "serial_number",
    "resource_pages",
    "description",
    "brand",
    "part_number",
    "color",
    "compatible_printers",
}


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


# Distinguishes "leave the location alone" from "clear the location" (None)
UNSET = _Unset()


@dataclass(frozen=True)
class CartridgeEditResult:
    cartridge: Cartridge
    audit: AuditOutcome

    def to_dict(self) -> dict:
        return {
            "cartridge": self.cartridge.to_dict(),
            "audit": self.audit.to_dict(),
        }


def ensure_serial_available(serial_number: str | None, *, exclude_id: int | None = None) -> None:
    if not serial_number:
        return
    q = db.session.query(Cartridge.id).filter(Cartridge.serial_number == serial_number)
    if exclude_id is not None:
        q = q.filter(Cartridge.id != exclude_id)
    if q.first() is not None:
        raise ConflictError(f"Serial number '{serial_number}' is already registered")


def perform_operation(
    *,
    operation_type: str,
    cartridge_id: int,
    acting_username: str,
    location_id: int | None = None,
    count: int = 1,
    notes: str | None = None,
) -> Operation:
    """
    Apply one explicit operation and log it, atomically.

    Raises:
        NotFoundError: unknown/disabled user, cartridge or location
        ValidationError: unknown type or bad count
        InvalidTransitionError: the cartridge's status forbids the operation
        ConcurrencyError: another writer changed the cartridge first
    """
    try:
        with atomic(f"{operation_type} of cartridge {cartridge_id}"):
            user = resolve_acting_user(acting_username)
            operation = operation_service.apply_operation(
                cartridge_id=cartridge_id,
                operation_type=operation_type,
                performed_by=user,
                location_id=location_id,
                count=count,
                notes=notes,
            )
    except InvalidTransitionError as e:
        current_app.logger.warning("Rejected operation: %s", e)
        raise

    return operation


def edit_cartridge(
    cartridge_id: int,
    *,
    acting_username: str,
    attributes: dict | None = None,
    status: str | None = None,
    location_id: int | None | _Unset = UNSET,
) -> CartridgeEditResult:
    """
    Apply a direct edit, then log the operation it amounts to.

    The edit commits first. The audit entry is written afterwards and its
    failure is reported in result.audit, never raised.

    When the new status cannot hold a location and no location_id is given,
    the location is cleared. Passing a location together with such a status
    is a ValidationError.
    """
    attributes = dict(attributes or {})
    unknown = sorted(set(attributes) - EDITABLE_ATTRIBUTES)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")
    if "model" in attributes and not (attributes["model"] or "").strip():
        raise ValidationError("model cannot be blank")
    enforce_rules_cartridge(attributes)
    if status is not None:
        validate_status(status)

    with atomic(f"edit of cartridge {cartridge_id}"):
        user = resolve_acting_user(acting_username)
        cartridge = operation_service.load_cartridge_for_update(cartridge_id)

        old_status = cartridge.status
        old_location = cartridge.current_location

        if "serial_number" in attributes:
            ensure_serial_available(attributes["serial_number"], exclude_id=cartridge.id)
        for key, value in attributes.items():
            setattr(cartridge, key, value)

        new_status = status if status is not None else old_status
        if isinstance(location_id, _Unset):
            new_location = old_location if status_allows_location(new_status) else None
        else:
            new_location = operation_service.load_location(location_id)

        if new_location is not None and not status_allows_location(new_status):
            raise ValidationError(f"A cartridge in status {new_status} cannot have a location")

        cartridge.status = new_status
        cartridge.current_location = new_location

    audit = inference_service.record_inferred_operations(
        cartridge=cartridge,
        old_status=old_status,
        old_location=old_location,
        new_status=new_status,
        new_location=new_location,
        performed_by=user,
    )
    return CartridgeEditResult(cartridge=cartridge, audit=audit)


def dispose_cartridge(cartridge_id: int, *, acting_username: str) -> Operation:
    """
    Write a cartridge off: log DISPOSAL, then delete the row. One transaction.

    An already-DISPOSED cartridge reuses its latest DISPOSAL entry, or gets
    one recorded without re-validation, before the row goes.
    """
    with atomic(f"disposal of cartridge {cartridge_id}"):
        user = resolve_acting_user(acting_username)
        cartridge = operation_service.load_cartridge_for_update(cartridge_id)

        if cartridge.status == STATUS_DISPOSED:
            operation = (
                db.session.query(Operation)
                .filter_by(cartridge_id=cartridge.id, type=OP_DISPOSAL)
                .order_by(Operation.operation_date.desc(), Operation.id.desc())
                .first()
            )
            if operation is None:
                operation = operation_service.record_operation(
                    cartridge=cartridge,
                    operation_type=OP_DISPOSAL,
                    performed_by=user,
                    location=None,
                    count=1,
                    notes=DISPOSAL_NOTES,
                )
        else:
            operation = operation_service.apply_operation(
                cartridge_id=cartridge.id,
                operation_type=OP_DISPOSAL,
                performed_by=user,
                location_id=None,
                count=1,
                notes=DISPOSAL_NOTES,
            )

        db.session.delete(cartridge)

    current_app.logger.info("Cartridge %s disposed and removed by %s", cartridge_id, user.username)
    return operation


def delete_location(location_id: int) -> None:
    """
    Delete a location no cartridge references.

    Operations that named the location keep its snapshot name.
    """
    with atomic(f"delete of location {location_id}"):
        location = db.session.get(Location, location_id)
        if location is None:
            raise NotFoundError(f"Location {location_id} not found")

        referenced = (
            db.session.query(Cartridge)
            .filter(Cartridge.current_location_id == location_id)
            .count()
        )
        if referenced:
            current_app.logger.warning(
                "Refused to delete location %s: %s cartridge(s) still there", location_id, referenced
            )
            raise ConflictError(
                f"Cannot delete location '{location.name}': {referenced} cartridge(s) still reference it"
            )

        db.session.delete(location)
