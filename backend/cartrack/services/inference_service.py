# Overview: Derives the audit entry implied by a direct cartridge edit.

"""
Change Inference Engine

WHY: Editing a cartridge's status or location directly must not let the
audit log drift from the live row. After the edit commits, this module works
out which operation the edit amounts to and writes it through the executor's
logging step (operation_service.record_operation).

POLICY (status first, location only when status is unchanged):
    status changed           -> transitions.operation_for_status_change
    same status, new place   -> transitions.operation_for_location_move
    otherwise                -> nothing to log

BEST-EFFORT: the edit is already committed when this runs. A failed audit
write is rolled back, logged and reported as AuditOutcome.FAILED; it never
undoes the edit and never propagates.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from flask import current_app

from ..extensions import db
from ..models import Cartridge, Location, Operation, User
from ..models.operations import OPERATION_SOURCE_INFERRED
from . import operation_service
from .transitions import (
    STATUS_LABELS,
    operation_for_location_move,
    operation_for_status_change,
)


AUDIT_NOT_REQUIRED = "NOT_REQUIRED"
AUDIT_RECORDED = "RECORDED"
AUDIT_FAILED = "FAILED"

AuditState = Literal["NOT_REQUIRED", "RECORDED", "FAILED"]


@dataclass(frozen=True)
class AuditOutcome:
    state: AuditState
    operation: Operation | None = None
    error: str | None = None

    @property
    def recorded(self) -> bool:
        return self.state == AUDIT_RECORDED

    @property
    def failed(self) -> bool:
        return self.state == AUDIT_FAILED

    def to_dict(self) -> dict:
        return {
            "state": self.state,
            "operation": self.operation.to_dict() if self.operation else None,
            "error": self.error,
        }


def infer_operation_type(
    old_status: str,
    old_location_id: int | None,
    new_status: str,
    new_location_id: int | None,
) -> str | None:
    """Operation type a direct edit amounts to, or None when nothing is logged."""
    if old_status != new_status:
        return operation_for_status_change(old_status, new_status)
    if old_location_id != new_location_id:
        return operation_for_location_move(new_status)
    return None


def build_notes(
    old_status: str,
    old_location: Location | None,
    new_status: str,
    new_location: Location | None,
) -> str:
    if old_status != new_status:
        return (
            f"Status changed from {STATUS_LABELS.get(old_status, old_status)} "
            f"to {STATUS_LABELS.get(new_status, new_status)}"
        )
    notes = "Cartridge moved"
    if old_location is not None:
        notes += f" from {old_location.name}"
    if new_location is not None:
        notes += f" to {new_location.name}"
    return notes


def record_inferred_operations(
    *,
    cartridge: Cartridge,
    old_status: str,
    old_location: Location | None,
    new_status: str,
    new_location: Location | None,
    performed_by: User,
) -> AuditOutcome:
    """
    Log the operation implied by an already-committed edit.

    Owns its own commit. Never raises for a failed write.
    """
    operation_type = infer_operation_type(
        old_status,
        old_location.id if old_location else None,
        new_status,
        new_location.id if new_location else None,
    )
    if operation_type is None:
        return AuditOutcome(state=AUDIT_NOT_REQUIRED)

    # Read before the rollback below expires the instance
    cartridge_id = cartridge.id
    try:
        operation = operation_service.record_operation(
            cartridge=cartridge,
            operation_type=operation_type,
            performed_by=performed_by,
            location=new_location,
            count=1,
            notes=build_notes(old_status, old_location, new_status, new_location),
            source=OPERATION_SOURCE_INFERRED,
        )
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception(
            "Failed to record inferred %s for cartridge %s", operation_type, cartridge_id
        )
        return AuditOutcome(state=AUDIT_FAILED, error=str(exc))

    current_app.logger.info(
        "Recorded inferred %s for cartridge %s (%s -> %s)",
        operation_type, cartridge_id, old_status, new_status,
    )
    return AuditOutcome(state=AUDIT_RECORDED, operation=operation)
