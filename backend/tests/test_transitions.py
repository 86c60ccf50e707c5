"""
Transition table tests.

Verifies:
- Validator accepts exactly the legal (status, operation) pairs
- Rejections carry status, operation and reason
- Post-transition state per operation
- Inference lookup for status changes and location-only moves
"""

import pytest

from cartrack.services import transitions as t
from cartrack.services.inference_service import infer_operation_type
from cartrack.validation import ValidationError


ALL_STATUSES = sorted(t.VALID_STATUSES)
ALL_OPERATIONS = sorted(t.VALID_OPERATION_TYPES)

LEGAL = {
    (t.STATUS_IN_STOCK, t.OP_RECEIPT),
    (t.STATUS_IN_STOCK, t.OP_ISSUE),
    (t.STATUS_IN_USE, t.OP_RETURN),
    (t.STATUS_IN_USE, t.OP_REFILL),
    (t.STATUS_IN_STOCK, t.OP_DISPOSAL),
    (t.STATUS_IN_USE, t.OP_DISPOSAL),
    (t.STATUS_REFILLING, t.OP_DISPOSAL),
}


# =============================================================================
# VALIDATOR
# =============================================================================


class TestValidator:

    @pytest.mark.parametrize("status", ALL_STATUSES)
    @pytest.mark.parametrize("operation_type", ALL_OPERATIONS)
    def test_can_apply_matches_table(self, status, operation_type):
        assert t.can_apply(status, operation_type) == ((status, operation_type) in LEGAL)

    @pytest.mark.parametrize(
        "status,operation_type,reason",
        [
            (t.STATUS_IN_USE, t.OP_RECEIPT, "cartridge already off the shelf"),
            (t.STATUS_IN_USE, t.OP_ISSUE, "cartridge not in stock"),
            (t.STATUS_IN_STOCK, t.OP_RETURN, "cartridge not in use"),
            (t.STATUS_REFILLING, t.OP_REFILL, "cartridge not in use"),
            (t.STATUS_DISPOSED, t.OP_DISPOSAL, "cartridge already disposed"),
        ],
    )
    def test_rejection_reason(self, status, operation_type, reason):
        with pytest.raises(t.InvalidTransitionError) as exc_info:
            t.validate_transition(status, operation_type, cartridge_id=7)

        err = exc_info.value
        assert err.reason == reason
        assert err.current_status == status
        assert err.operation_type == operation_type
        assert err.cartridge_id == 7
        assert "cartridge 7" in str(err)
        assert err.to_dict()["current_status"] == status

    def test_rejection_is_a_conflict(self):
        from cartrack.validation import ConflictError
        with pytest.raises(ConflictError):
            t.validate_transition(t.STATUS_IN_USE, t.OP_ISSUE)

    def test_unknown_status(self):
        with pytest.raises(ValidationError):
            t.validate_transition("LOST", t.OP_ISSUE)

    def test_unknown_operation(self):
        with pytest.raises(ValidationError):
            t.validate_transition(t.STATUS_IN_STOCK, "TRANSFER")


# =============================================================================
# POST-TRANSITION STATE
# =============================================================================


class TestPostTransitionState:

    @pytest.mark.parametrize(
        "operation_type,expected",
        [
            (t.OP_RECEIPT, (t.STATUS_IN_STOCK, 5)),
            (t.OP_ISSUE, (t.STATUS_IN_USE, 5)),
            (t.OP_RETURN, (t.STATUS_IN_STOCK, 5)),
            (t.OP_REFILL, (t.STATUS_REFILLING, None)),
            (t.OP_DISPOSAL, (t.STATUS_DISPOSED, None)),
        ],
    )
    def test_given_location(self, operation_type, expected):
        assert t.post_transition_state(operation_type, 5) == expected

    @pytest.mark.parametrize("operation_type", ALL_OPERATIONS)
    def test_locationless_result_never_has_location(self, operation_type):
        status, location_id = t.post_transition_state(operation_type, 5)
        if status in t.LOCATIONLESS_STATUSES:
            assert location_id is None


# =============================================================================
# INFERENCE LOOKUP
# =============================================================================


class TestInference:

    @pytest.mark.parametrize(
        "old,new,expected",
        [
            (t.STATUS_IN_STOCK, t.STATUS_IN_USE, t.OP_ISSUE),
            (t.STATUS_IN_USE, t.STATUS_IN_STOCK, t.OP_RETURN),
            (t.STATUS_IN_STOCK, t.STATUS_REFILLING, t.OP_REFILL),
            (t.STATUS_IN_USE, t.STATUS_REFILLING, t.OP_REFILL),
            (t.STATUS_DISPOSED, t.STATUS_REFILLING, t.OP_REFILL),
            (t.STATUS_IN_STOCK, t.STATUS_DISPOSED, t.OP_DISPOSAL),
            (t.STATUS_REFILLING, t.STATUS_DISPOSED, t.OP_DISPOSAL),
            (t.STATUS_REFILLING, t.STATUS_IN_STOCK, t.OP_RECEIPT),
            (t.STATUS_REFILLING, t.STATUS_IN_USE, None),
            (t.STATUS_DISPOSED, t.STATUS_IN_STOCK, None),
            (t.STATUS_DISPOSED, t.STATUS_IN_USE, None),
        ],
    )
    def test_status_change(self, old, new, expected):
        assert infer_operation_type(old, 1, new, 1) == expected

    def test_status_change_wins_over_location_change(self):
        assert infer_operation_type(t.STATUS_IN_USE, 1, t.STATUS_IN_STOCK, 2) == t.OP_RETURN

    @pytest.mark.parametrize(
        "status,expected",
        [
            (t.STATUS_IN_STOCK, t.OP_RECEIPT),
            (t.STATUS_IN_USE, t.OP_ISSUE),
            (t.STATUS_REFILLING, None),
            (t.STATUS_DISPOSED, None),
        ],
    )
    def test_location_only_change(self, status, expected):
        assert infer_operation_type(status, 1, status, 2) == expected

    def test_location_cleared_counts_as_move(self):
        assert infer_operation_type(t.STATUS_IN_STOCK, 1, t.STATUS_IN_STOCK, None) == t.OP_RECEIPT

    @pytest.mark.parametrize("status", ALL_STATUSES)
    def test_no_change(self, status):
        assert infer_operation_type(status, 3, status, 3) is None
