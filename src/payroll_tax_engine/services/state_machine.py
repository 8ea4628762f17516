"""Filing and tax payment state machines with transition validation."""

from __future__ import annotations

from enum import Enum


class FilingStatus(str, Enum):
    """Filing status values."""

    COMPUTED = "computed"
    FILED = "filed"


class PaymentStatus(str, Enum):
    """Tax payment status values."""

    PENDING = "pending"
    PAID = "paid"


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class _StateMachine:
    VALID_TRANSITIONS: dict[str, list[str]] = {}
    # Statuses whose financial fields can no longer change
    FINAL: set[str] = set()

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            reason = "status is final" if from_status in cls.FINAL else None
            raise InvalidTransitionError(from_status, to_status, reason)

    @classmethod
    def is_final(cls, status: str) -> bool:
        return status in cls.FINAL

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        return cls.VALID_TRANSITIONS.get(current_status, [])


class FilingStateMachine(_StateMachine):
    """computed → filed. Re-opening a filed return is not supported."""

    VALID_TRANSITIONS: dict[str, list[str]] = {
        FilingStatus.COMPUTED: [FilingStatus.FILED],
        FilingStatus.FILED: [],  # Terminal state
    }
    FINAL = {FilingStatus.FILED}


class PaymentStateMachine(_StateMachine):
    """pending → paid. Payment method and confirmation attach at the transition."""

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PaymentStatus.PENDING: [PaymentStatus.PAID],
        PaymentStatus.PAID: [],  # Terminal state
    }
    FINAL = {PaymentStatus.PAID}
