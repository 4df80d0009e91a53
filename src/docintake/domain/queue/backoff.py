"""Retry backoff schedule for the validation queue."""

from datetime import timedelta

BACKOFF_SCHEDULE = (
    timedelta(minutes=1),
    timedelta(minutes=5),
    timedelta(minutes=15),
    timedelta(hours=1),
    timedelta(hours=6),
    timedelta(hours=24),
)


def backoff_delay(attempt: int) -> timedelta:
    """Delay before the retry that follows failed attempt number `attempt` (1-based).

    Attempts beyond the schedule reuse its last step.
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")
    return BACKOFF_SCHEDULE[min(attempt, len(BACKOFF_SCHEDULE)) - 1]
