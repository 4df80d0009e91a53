"""Expiry analysis for identity documents."""

from dataclasses import dataclass
from datetime import date
from typing import Optional

from ...models.validation_result import ExpiryStatus

DEFAULT_HORIZON_DAYS = 90


@dataclass
class ExpiryAnalysis:
    status: ExpiryStatus
    expiry_date: Optional[date] = None
    issue_date: Optional[date] = None
    days_until_expiry: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "issue_date": self.issue_date.isoformat() if self.issue_date else None,
            "days_until_expiry": self.days_until_expiry,
        }


def analyze_expiry(
    expiry_date: Optional[date],
    today: date,
    horizon_days: int = DEFAULT_HORIZON_DAYS,
    issue_date: Optional[date] = None,
) -> ExpiryAnalysis:
    """Classify a document's expiry.

    expired when the date is in the past, expiring_soon when it falls
    within horizon_days (inclusive, today counts), valid beyond that and
    unknown when no date was found.

    Example:
        >>> analyze_expiry(date(2025, 1, 31), today=date(2025, 1, 1)).status
        <ExpiryStatus.EXPIRING_SOON: 'expiring_soon'>
    """
    if expiry_date is None:
        return ExpiryAnalysis(status=ExpiryStatus.UNKNOWN, issue_date=issue_date)

    days = (expiry_date - today).days
    if days < 0:
        status = ExpiryStatus.EXPIRED
    elif days <= horizon_days:
        status = ExpiryStatus.EXPIRING_SOON
    else:
        status = ExpiryStatus.VALID

    return ExpiryAnalysis(
        status=status,
        expiry_date=expiry_date,
        issue_date=issue_date,
        days_until_expiry=days,
    )


def issue_date_warnings(issue_date: Optional[date], expiry_date: Optional[date], today: date) -> list[str]:
    """Sanity checks on the issue date; each finding is a warning."""
    warnings = []
    if issue_date is None:
        return warnings
    if issue_date > today:
        warnings.append("issue_date_in_future")
    if expiry_date is not None and issue_date >= expiry_date:
        warnings.append("issue_date_after_expiry")
    return warnings
