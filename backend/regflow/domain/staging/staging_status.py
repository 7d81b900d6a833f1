"""StagingStatus state machine for the staging record lifecycle

State flow:
    PENDING → UPLOADING → COMPLETED → ANALYZING → READY

Failure and cancellation:
    UPLOADING → FAILED, ANALYZING → FAILED
    PENDING|UPLOADING → CANCELLED

Terminal States: READY, FAILED, CANCELLED
"""

from enum import Enum
from typing import Dict, List


class StagingStatus(str, Enum):
    """Staging record status enum"""
    PENDING = "pending"        # Admitted, upload not started
    UPLOADING = "uploading"    # Bytes being received
    COMPLETED = "completed"    # Upload complete, waiting for analysis
    ANALYZING = "analyzing"    # Server-side analysis in progress
    READY = "ready"            # Suggestions available, editable (terminal success)
    FAILED = "failed"          # Upload or analysis failed (terminal)
    CANCELLED = "cancelled"    # Cancelled by operator (terminal)


ALLOWED_TRANSITIONS: Dict[StagingStatus, List[StagingStatus]] = {
    StagingStatus.PENDING: [StagingStatus.UPLOADING, StagingStatus.CANCELLED],
    StagingStatus.UPLOADING: [
        StagingStatus.COMPLETED,
        StagingStatus.FAILED,
        StagingStatus.CANCELLED,
    ],
    StagingStatus.COMPLETED: [StagingStatus.ANALYZING],
    StagingStatus.ANALYZING: [StagingStatus.READY, StagingStatus.FAILED],
    StagingStatus.READY: [],
    StagingStatus.FAILED: [],
    StagingStatus.CANCELLED: [],
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)


class StateTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, current_status: StagingStatus, new_status: StagingStatus):
        self.current_status = current_status
        self.new_status = new_status
        allowed = [s.value for s in get_allowed_transitions(current_status)]
        super().__init__(
            f"Invalid transition: {current_status.value} -> {new_status.value}. "
            f"Allowed transitions from {current_status.value}: {allowed}"
        )


def validate_transition(current_status: StagingStatus, new_status: StagingStatus) -> None:
    """Validate that a state transition is allowed.

    Args:
        current_status: Current record status
        new_status: Target status

    Raises:
        StateTransitionError: If transition is not allowed
    """
    if not can_transition(current_status, new_status):
        raise StateTransitionError(current_status, new_status)


def can_transition(current_status: StagingStatus, new_status: StagingStatus) -> bool:
    """Check if a state transition is allowed without raising.

    Example:
        >>> can_transition(StagingStatus.UPLOADING, StagingStatus.COMPLETED)
        True
        >>> can_transition(StagingStatus.READY, StagingStatus.UPLOADING)
        False
    """
    return new_status in ALLOWED_TRANSITIONS[current_status]


def get_allowed_transitions(status: StagingStatus) -> List[StagingStatus]:
    """Get list of allowed transitions from a given status."""
    return list(ALLOWED_TRANSITIONS[status])


def is_terminal(status: StagingStatus) -> bool:
    return status in TERMINAL_STATUSES
