"""Request correlation for inbound messages"""

from .service import RequestCorrelator, CorrelationResult, CorrelationCandidate, OPEN_STATUSES, subject_overlap

__all__ = [
    "RequestCorrelator",
    "CorrelationResult",
    "CorrelationCandidate",
    "OPEN_STATUSES",
    "subject_overlap",
]
