"""Status Lifecycle Tracker

Owns DocumentRequest.status, DocumentRequest.document_count and the
append-only status history.

Every status write is a conditional UPDATE guarded on the status that was
read, and the completion check always recomputes counts from the document
table. Re-running reevaluate() with unchanged evidence writes nothing, so
concurrent callers for the same request are safe.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy import func, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from ...audit.service import log_audit_event
from ...errors import NotFoundError
from ...models.base import utcnow
from ...models.document import Document, ValidationStatus
from ...models.document_request import DocumentRequest, RequestStatus
from ...models.status_history import StatusHistoryEntry
from ...observability.metrics import request_transitions_total
from .status import TERMINAL_STATUSES, can_transition, coerce_status, is_regression

logger = logging.getLogger(__name__)


@dataclass
class DocumentEvidence:
    """Counts of linked documents, read fresh from the document table."""
    total: int
    verified: int
    pending: int

    def to_dict(self) -> dict:
        return {"document_count": self.total, "verified_count": self.verified, "pending_count": self.pending}


def target_status(evidence: DocumentEvidence, expected_count: int) -> Optional[RequestStatus]:
    """Status the request should be in given its linked documents.

    Returns None when no document is linked (arrival has not happened).
    """
    if evidence.total == 0:
        return None
    if evidence.total >= expected_count and evidence.verified == evidence.total:
        return RequestStatus.COMPLETED
    if evidence.total < expected_count or evidence.pending > 0:
        return RequestStatus.VERIFYING
    return RequestStatus.RECEIVED


class StatusTracker:
    """Applies lifecycle transitions to document requests."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_status(self, org_id: UUID, request_id: UUID) -> DocumentRequest:
        request = (
            self.db.query(DocumentRequest)
            .filter(DocumentRequest.id == request_id, DocumentRequest.org_id == org_id)
            .first()
        )
        if request is None:
            raise NotFoundError(f"Document request {request_id} not found")
        return request

    def get_history(self, org_id: UUID, request_id: UUID) -> list[StatusHistoryEntry]:
        self.get_status(org_id, request_id)
        return (
            self.db.query(StatusHistoryEntry)
            .filter(StatusHistoryEntry.request_id == request_id)
            .order_by(StatusHistoryEntry.created_at.asc())
            .all()
        )

    def count_documents(self, request_id: UUID) -> DocumentEvidence:
        rows = (
            self.db.query(Document.validation_status, func.count(Document.id))
            .filter(Document.request_id == request_id)
            .group_by(Document.validation_status)
            .all()
        )
        by_status = {status: count for status, count in rows}
        return DocumentEvidence(
            total=sum(by_status.values()),
            verified=by_status.get(ValidationStatus.VERIFIED, 0),
            pending=by_status.get(ValidationStatus.PENDING, 0),
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def mark_sent(self, request_id: UUID, actor: str = "system") -> bool:
        """Record that the request was sent to its recipient.

        draft requests pass through pending. Requests already past sent are
        left alone.

        Returns:
            True if the status changed
        """
        request = self._load(request_id)
        changed = False
        if request.status == RequestStatus.DRAFT:
            changed = self._transition(request, RequestStatus.PENDING, actor, "request issued")
        if request.status == RequestStatus.PENDING:
            changed = self._transition(request, RequestStatus.SENT, actor, "request sent") or changed
        return changed

    def reevaluate(self, request_id: UUID, actor: str = "system", reason: Optional[str] = None) -> DocumentRequest:
        """Bring a request's count and status in line with its linked documents.

        Moves the status forward only: pending/sent pass through received,
        received and verifying follow the evidence, completed is reached
        when every expected document is verified. Terminal requests only get
        their document_count refreshed.

        Args:
            request_id: DocumentRequest UUID
            actor: Who triggered the re-evaluation
            reason: Free-text reason stored on history entries

        Returns:
            The refreshed DocumentRequest
        """
        request = self._load(request_id)
        return self._reevaluate(request, actor, reason, retry=True)

    def _reevaluate(self, request: DocumentRequest, actor: str, reason: Optional[str], retry: bool) -> DocumentRequest:
        evidence = self.count_documents(request.id)

        if request.document_count != evidence.total:
            self.db.execute(
                update(DocumentRequest)
                .where(DocumentRequest.id == request.id)
                .values(document_count=evidence.total)
                .execution_options(synchronize_session=False)
            )
            set_committed_value(request, "document_count", evidence.total)

        current = request.status
        if current in TERMINAL_STATUSES:
            return request

        target = target_status(evidence, request.expected_count or 1)
        if target is None or target == current:
            return request

        hops = []
        if current in (RequestStatus.PENDING, RequestStatus.SENT):
            hops.append(RequestStatus.RECEIVED)
        elif current == RequestStatus.DRAFT:
            logger.warning(f"Request {request.id} has linked documents while still in draft")
            return request
        if target != RequestStatus.RECEIVED or not hops:
            hops.append(target)

        metadata = {**evidence.to_dict(), "expected_count": request.expected_count}
        for next_status in hops:
            if request.status == next_status:
                continue
            if is_regression(request.status, next_status) or not can_transition(request.status, next_status):
                logger.info(f"Request {request.id}: not moving {request.status.value} → {next_status.value}")
                break
            if not self._transition(request, next_status, actor, reason, metadata):
                if retry:
                    logger.info(f"Request {request.id} changed concurrently, re-evaluating")
                    self.db.refresh(request)
                    return self._reevaluate(request, actor, reason, retry=False)
                break

        return request

    def expire_overdue(
        self,
        now: Optional[datetime] = None,
        grace_days: int = 0,
        org_id: Optional[UUID] = None,
        actor: str = "expiry_sweep",
    ) -> int:
        """Expire non-terminal requests whose due date plus grace has passed.

        completed requests are never touched. Safe to run more than once.

        Returns:
            Number of requests expired
        """
        today = (now or utcnow()).date()
        cutoff: date = today - timedelta(days=grace_days)

        query = self.db.query(DocumentRequest).filter(
            DocumentRequest.due_date.isnot(None),
            DocumentRequest.due_date < cutoff,
            DocumentRequest.status.notin_(TERMINAL_STATUSES),
        )
        if org_id is not None:
            query = query.filter(DocumentRequest.org_id == org_id)

        expired = 0
        for request in query.all():
            reason = f"due date {request.due_date.isoformat()} passed (grace {grace_days}d)"
            metadata = {"due_date": request.due_date.isoformat(), "grace_days": grace_days}
            if self._transition(request, RequestStatus.EXPIRED, actor, reason, metadata):
                expired += 1

        if expired:
            logger.info(f"Expired {expired} overdue document requests")
        return expired

    def correct_status(self, org_id: UUID, request_id: UUID, new_status, actor: str, reason: str) -> DocumentRequest:
        """Operator correction: set any status, including backwards moves.

        Raises:
            NotFoundError: If the request does not belong to org_id
            StateTransitionError: If new_status is not a known status
        """
        status = coerce_status(new_status)
        request = self.get_status(org_id, request_id)
        old_status = request.status
        if old_status == status:
            return request

        evidence = self.count_documents(request.id)
        metadata = {**evidence.to_dict(), "expected_count": request.expected_count, "correction": True}
        self._transition(request, status, actor, reason, metadata, conditional=False)
        log_audit_event(
            self.db,
            org_id=org_id,
            action="request.status_corrected",
            actor=actor,
            entity_type="document_request",
            entity_id=request.id,
            metadata={"old_status": old_status.value, "new_status": status.value, "reason": reason},
        )
        return request

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load(self, request_id: UUID) -> DocumentRequest:
        request = self.db.get(DocumentRequest, request_id, populate_existing=True)
        if request is None:
            raise NotFoundError(f"Document request {request_id} not found")
        return request

    def _next_timestamp(self, request: DocumentRequest) -> datetime:
        now = utcnow()
        last = request.last_status_change_at
        if last is not None and now <= last:
            return last + timedelta(microseconds=1)
        return now

    def _transition(
        self,
        request: DocumentRequest,
        new_status: RequestStatus,
        actor: str,
        reason: Optional[str] = None,
        metadata: Optional[dict] = None,
        conditional: bool = True,
    ) -> bool:
        old_status = request.status
        changed_at = self._next_timestamp(request)

        stmt = update(DocumentRequest).where(DocumentRequest.id == request.id)
        if conditional:
            stmt = stmt.where(DocumentRequest.status == old_status)
        result = self.db.execute(
            stmt.values(
                status=new_status,
                last_status_change_at=changed_at,
                last_status_changed_by=actor,
            ).execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False

        set_committed_value(request, "status", new_status)
        set_committed_value(request, "last_status_change_at", changed_at)
        set_committed_value(request, "last_status_changed_by", actor)

        self.db.add(StatusHistoryEntry(
            org_id=request.org_id,
            request_id=request.id,
            old_status=old_status.value,
            new_status=new_status.value,
            actor=actor,
            reason=reason,
            metadata_json=metadata,
            created_at=changed_at,
        ))
        self.db.flush()

        request_transitions_total.labels(from_status=old_status.value, to_status=new_status.value).inc()
        logger.info(
            f"Request {request.id}: {old_status.value} → {new_status.value} by {actor}"
            + (f" ({reason})" if reason else ""),
            extra={"org_id": request.org_id, "request_id_ref": request.id},
        )
        return True
