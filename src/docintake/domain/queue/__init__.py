"""Resilience queue for deferred validation"""

from .backoff import BACKOFF_SCHEDULE, backoff_delay
from .service import BatchStats, ValidationQueue

__all__ = ["BACKOFF_SCHEDULE", "backoff_delay", "BatchStats", "ValidationQueue"]
