"""RequestStatus state machine for the document request lifecycle

State flow:
    draft → pending → sent → received ⇄ verifying → completed
    any non-terminal state → expired (time sweep)

received and verifying share a rank: moving between them follows the
evidence and is not a regression. completed and expired are terminal and
only an explicit correction moves a request out of them.
"""

from typing import Optional, Dict, List

from ...errors import StateTransitionError
from ...models.document_request import RequestStatus

# State transition rules
ALLOWED_TRANSITIONS: Dict[RequestStatus, List[RequestStatus]] = {
    RequestStatus.DRAFT: [RequestStatus.PENDING, RequestStatus.EXPIRED],
    RequestStatus.PENDING: [RequestStatus.SENT, RequestStatus.RECEIVED, RequestStatus.EXPIRED],
    RequestStatus.SENT: [RequestStatus.RECEIVED, RequestStatus.EXPIRED],
    RequestStatus.RECEIVED: [RequestStatus.VERIFYING, RequestStatus.COMPLETED, RequestStatus.EXPIRED],
    RequestStatus.VERIFYING: [RequestStatus.RECEIVED, RequestStatus.COMPLETED, RequestStatus.EXPIRED],
    RequestStatus.COMPLETED: [],  # Terminal success state
    RequestStatus.EXPIRED: [],  # Terminal timeout state
}

TERMINAL_STATUSES = frozenset({RequestStatus.COMPLETED, RequestStatus.EXPIRED})

STATUS_RANK: Dict[RequestStatus, int] = {
    RequestStatus.DRAFT: 0,
    RequestStatus.PENDING: 1,
    RequestStatus.SENT: 2,
    RequestStatus.RECEIVED: 3,
    RequestStatus.VERIFYING: 3,
    RequestStatus.COMPLETED: 4,
    RequestStatus.EXPIRED: 4,
}


def coerce_status(value) -> RequestStatus:
    """Convert a string or enum member to RequestStatus.

    Raises:
        StateTransitionError: If the value is not a known status
    """
    if isinstance(value, RequestStatus):
        return value
    try:
        return RequestStatus(str(value).lower())
    except ValueError:
        raise StateTransitionError(f"Unknown request status: {value!r}")


def can_transition(from_status: Optional[RequestStatus], to_status: RequestStatus) -> bool:
    """Validate if status transition is allowed

    Example:
        >>> can_transition(RequestStatus.SENT, RequestStatus.RECEIVED)
        True
        >>> can_transition(RequestStatus.COMPLETED, RequestStatus.VERIFYING)
        False
    """
    if from_status is None:
        return to_status in (RequestStatus.DRAFT, RequestStatus.PENDING)
    return to_status in ALLOWED_TRANSITIONS.get(from_status, [])


def validate_transition(from_status: Optional[RequestStatus], to_status: RequestStatus) -> None:
    """Raise StateTransitionError if the transition is not allowed."""
    if not can_transition(from_status, to_status):
        raise StateTransitionError(
            f"Invalid request status transition: {from_status.value if from_status else None} → {to_status.value}",
            {"from": from_status.value if from_status else None, "to": to_status.value},
        )


def get_allowed_transitions(from_status: RequestStatus) -> List[RequestStatus]:
    return ALLOWED_TRANSITIONS.get(from_status, [])


def is_terminal(status: RequestStatus) -> bool:
    return status in TERMINAL_STATUSES


def is_regression(from_status: RequestStatus, to_status: RequestStatus) -> bool:
    """True if moving to to_status would go backwards in the lifecycle."""
    if from_status in TERMINAL_STATUSES:
        return to_status != from_status
    return STATUS_RANK[to_status] < STATUS_RANK[from_status]
