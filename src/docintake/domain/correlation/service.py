"""Request Correlator

Links an inbound message to the open DocumentRequest it most plausibly
answers. Multi-candidate resolution is a heuristic: the choice is taken
best-effort, logged, and written to the audit log with every candidate's
score so it can be reviewed.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...audit.service import log_audit_event
from ...models.document_request import DocumentRequest, RequestStatus
from ...observability.metrics import correlations_total
from ..routing.subject import normalize_subject

logger = logging.getLogger(__name__)

OPEN_STATUSES = (
    RequestStatus.PENDING,
    RequestStatus.SENT,
    RequestStatus.RECEIVED,
    RequestStatus.VERIFYING,
)


@dataclass
class CorrelationCandidate:
    request_id: UUID
    subject: str
    score: int


@dataclass
class CorrelationResult:
    """Outcome of correlating one message.

    request is None when the message is unlinked. ambiguous is True when
    more than one open request was addressed to the sender.
    """
    request: Optional[DocumentRequest]
    ambiguous: bool = False
    candidates: list[CorrelationCandidate] = field(default_factory=list)

    @property
    def request_id(self) -> Optional[UUID]:
        return self.request.id if self.request else None

    @property
    def linked(self) -> bool:
        return self.request is not None


def subject_overlap(incoming: str, candidate: str) -> int:
    """Length of the shorter normalized subject when one contains the other."""
    if not incoming or not candidate:
        return 0
    if incoming in candidate or candidate in incoming:
        return min(len(incoming), len(candidate))
    return 0


class RequestCorrelator:
    """Finds the outstanding request an inbound message answers."""

    def __init__(self, db: Session):
        self.db = db

    def find_open_requests(self, org_id: UUID, sender: str) -> list[DocumentRequest]:
        return (
            self.db.query(DocumentRequest)
            .filter(
                DocumentRequest.org_id == org_id,
                func.lower(DocumentRequest.recipient_email) == (sender or "").strip().lower(),
                DocumentRequest.status.in_(OPEN_STATUSES),
            )
            .order_by(DocumentRequest.created_at.asc(), DocumentRequest.id.asc())
            .all()
        )

    def correlate(self, org_id: UUID, sender: str, subject: str) -> CorrelationResult:
        """Correlate a message to an open request.

        Args:
            org_id: Organization UUID
            sender: Sender email address (compared case-insensitively)
            subject: Raw message subject

        Returns:
            CorrelationResult; unlinked when the sender has no open request
        """
        requests = self.find_open_requests(org_id, sender)

        if not requests:
            logger.info(f"No open request for sender={sender}, document stays unlinked", extra={"org_id": org_id})
            correlations_total.labels(outcome="unlinked").inc()
            return CorrelationResult(request=None)

        if len(requests) == 1:
            correlations_total.labels(outcome="single").inc()
            return CorrelationResult(request=requests[0])

        normalized = normalize_subject(subject)
        candidates = [
            CorrelationCandidate(
                request_id=req.id,
                subject=req.subject,
                score=subject_overlap(normalized, normalize_subject(req.subject)),
            )
            for req in requests
        ]

        # max() keeps the first of equal scores, i.e. the earliest created
        best_index = max(range(len(candidates)), key=lambda i: candidates[i].score)
        chosen = requests[best_index]

        logger.warning(
            f"Ambiguous correlation for sender={sender}: {len(requests)} open requests, "
            f"chose {chosen.id} with overlap score {candidates[best_index].score}",
            extra={"org_id": org_id},
        )
        log_audit_event(
            self.db,
            org_id=org_id,
            action="correlation.ambiguous",
            entity_type="document_request",
            entity_id=chosen.id,
            metadata={
                "sender": sender,
                "subject": subject,
                "normalized_subject": normalized,
                "chosen_request_id": str(chosen.id),
                "candidates": [
                    {"request_id": str(c.request_id), "subject": c.subject, "score": c.score}
                    for c in candidates
                ],
            },
        )
        correlations_total.labels(outcome="ambiguous").inc()
        return CorrelationResult(request=chosen, ambiguous=True, candidates=candidates)
