"""Document request lifecycle: status machine and tracker"""

from .status import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    can_transition,
    validate_transition,
    get_allowed_transitions,
    is_terminal,
    is_regression,
)
from .tracker import StatusTracker, DocumentEvidence, target_status

__all__ = [
    "ALLOWED_TRANSITIONS",
    "TERMINAL_STATUSES",
    "can_transition",
    "validate_transition",
    "get_allowed_transitions",
    "is_terminal",
    "is_regression",
    "StatusTracker",
    "DocumentEvidence",
    "target_status",
]
