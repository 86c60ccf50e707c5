# Overview: Cartridge status/operation vocabulary and the single transition table.

"""
Cartridge Transition Table

================================================================================
PURPOSE: One table answers every lifecycle question
================================================================================

STATES:
    IN_STOCK   On a warehouse shelf (may be pinned to a storage location)
    IN_USE     Installed at a usage location
    REFILLING  Sent out for refill, no location
    DISPOSED   Written off, no location (terminal for explicit operations)

OPERATIONS (explicit path):
    RECEIPT   IN_STOCK            -> IN_STOCK  (location = given)
    ISSUE     IN_STOCK            -> IN_USE    (location = given)
    RETURN    IN_USE              -> IN_STOCK  (location = given)
    REFILL    IN_USE              -> REFILLING (location cleared)
    DISPOSAL  anything but DISPOSED -> DISPOSED (location cleared)

INFERRED PATH (direct edits):
    A status change old -> new is attributed to the operation whose result
    status is `new` and whose `inferred_from` contains `old`. A location-only
    change is attributed to the operation flagged `logs_location_moves` for the
    unchanged status. Anything the table does not cover is left unlogged.

The validator, the executor (post-state) and the inference engine all read
TRANSITIONS; there is no second switch statement to keep in sync.
================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass

from ..validation import ConflictError, ValidationError


STATUS_IN_STOCK = "IN_STOCK"
STATUS_IN_USE = "IN_USE"
STATUS_REFILLING = "REFILLING"
STATUS_DISPOSED = "DISPOSED"

VALID_STATUSES = {STATUS_IN_STOCK, STATUS_IN_USE, STATUS_REFILLING, STATUS_DISPOSED}

# Statuses that never carry a location
LOCATIONLESS_STATUSES = frozenset({STATUS_REFILLING, STATUS_DISPOSED})

OP_RECEIPT = "RECEIPT"
OP_ISSUE = "ISSUE"
OP_RETURN = "RETURN"
OP_REFILL = "REFILL"
OP_DISPOSAL = "DISPOSAL"

VALID_OPERATION_TYPES = {OP_RECEIPT, OP_ISSUE, OP_RETURN, OP_REFILL, OP_DISPOSAL}

STATUS_LABELS = {
    STATUS_IN_STOCK: "In stock",
    STATUS_IN_USE: "In use",
    STATUS_REFILLING: "Refilling",
    STATUS_DISPOSED: "Disposed",
}


@dataclass(frozen=True)
class TransitionRule:
    operation_type: str
    allowed_from: frozenset[str]
    reject_reason: str
    result_status: str
    keeps_location: bool
    inferred_from: frozenset[str]
    logs_location_moves: bool = False


TRANSITIONS: dict[str, TransitionRule] = {
    OP_RECEIPT: TransitionRule(
        operation_type=OP_RECEIPT,
        allowed_from=frozenset({STATUS_IN_STOCK}),
        reject_reason="cartridge already off the shelf",
        result_status=STATUS_IN_STOCK,
        keeps_location=True,
        inferred_from=frozenset({STATUS_REFILLING}),
        logs_location_moves=True,
    ),
    OP_ISSUE: TransitionRule(
        operation_type=OP_ISSUE,
        allowed_from=frozenset({STATUS_IN_STOCK}),
        reject_reason="cartridge not in stock",
        result_status=STATUS_IN_USE,
        keeps_location=True,
        inferred_from=frozenset({STATUS_IN_STOCK}),
        logs_location_moves=True,
    ),
    OP_RETURN: TransitionRule(
        operation_type=OP_RETURN,
        allowed_from=frozenset({STATUS_IN_USE}),
        reject_reason="cartridge not in use",
        result_status=STATUS_IN_STOCK,
        keeps_location=True,
        inferred_from=frozenset({STATUS_IN_USE}),
    ),
    OP_REFILL: TransitionRule(
        operation_type=OP_REFILL,
        allowed_from=frozenset({STATUS_IN_USE}),
        reject_reason="cartridge not in use",
        result_status=STATUS_REFILLING,
        keeps_location=False,
        inferred_from=frozenset(VALID_STATUSES),
    ),
    OP_DISPOSAL: TransitionRule(
        operation_type=OP_DISPOSAL,
        allowed_from=frozenset(VALID_STATUSES - {STATUS_DISPOSED}),
        reject_reason="cartridge already disposed",
        result_status=STATUS_DISPOSED,
        keeps_location=False,
        inferred_from=frozenset(VALID_STATUSES),
    ),
}


class InvalidTransitionError(ConflictError):
    """
    Raised when an operation is not legal for the cartridge's current status.

    Carries enough context for the caller to render a precise message.
    """

    def __init__(
        self,
        *,
        operation_type: str,
        current_status: str,
        reason: str,
        cartridge_id: int | None = None,
    ):
        self.operation_type = operation_type
        self.current_status = current_status
        self.reason = reason
        self.cartridge_id = cartridge_id
        target = f"cartridge {cartridge_id}" if cartridge_id is not None else "cartridge"
        super().__init__(
            f"Cannot apply {operation_type} to {target}: {reason} "
            f"(current status is '{current_status}')"
        )

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "cartridge_id": self.cartridge_id,
            "operation_type": self.operation_type,
            "current_status": self.current_status,
            "reason": self.reason,
        }


def validate_status(status: str) -> None:
    if not isinstance(status, str) or status not in VALID_STATUSES:
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(sorted(VALID_STATUSES))}"
        )


def validate_operation_type(operation_type: str) -> None:
    if not isinstance(operation_type, str) or operation_type not in VALID_OPERATION_TYPES:
        raise ValidationError(
            f"Invalid operation type '{operation_type}'. "
            f"Must be one of: {', '.join(sorted(VALID_OPERATION_TYPES))}"
        )


def get_rule(operation_type: str) -> TransitionRule:
    validate_operation_type(operation_type)
    return TRANSITIONS[operation_type]


def can_apply(current_status: str, operation_type: str) -> bool:
    """Boolean form of validate_transition."""
    validate_status(current_status)
    return current_status in get_rule(operation_type).allowed_from


def validate_transition(
    current_status: str,
    operation_type: str,
    *,
    cartridge_id: int | None = None,
) -> None:
    """
    Reject an operation that the cartridge's current status does not allow.

    Pure: no database access, no mutation.

    Raises:
        ValidationError: unknown status or operation type
        InvalidTransitionError: the table forbids the transition
    """
    validate_status(current_status)
    rule = get_rule(operation_type)
    if current_status not in rule.allowed_from:
        raise InvalidTransitionError(
            operation_type=operation_type,
            current_status=current_status,
            reason=rule.reject_reason,
            cartridge_id=cartridge_id,
        )


def post_transition_state(operation_type: str, location_id: int | None) -> tuple[str, int | None]:
    """(status, location_id) a cartridge ends up in after the operation."""
    rule = get_rule(operation_type)
    return rule.result_status, (location_id if rule.keeps_location else None)


def operation_for_status_change(old_status: str, new_status: str) -> str | None:
    if old_status == new_status:
        return None
    for rule in TRANSITIONS.values():
        if rule.result_status == new_status and old_status in rule.inferred_from:
            return rule.operation_type
    return None


def operation_for_location_move(status: str) -> str | None:
    for rule in TRANSITIONS.values():
        if rule.logs_location_moves and rule.result_status == status:
            return rule.operation_type
    return None


def status_allows_location(status: str) -> bool:
    return status not in LOCATIONLESS_STATUSES
