"""Validation service: manual triggers and result lookup.

Manual re-validation is rate limited per document in a fixed window
(default 10 per 60 s, org override validation.rate_limit). The window
counts manual executions already run plus manual jobs still deferred in the
queue, so a burst of deferred triggers is limited as well.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional, Union
from uuid import UUID

from sqlalchemy.orm import Session

from ...errors import NotFoundError, RateLimitExceeded
from ...models.base import utcnow
from ...models.document import Document
from ...models.org import Org
from ...models.validation_execution import ExecutionTrigger, ValidationExecution
from ...models.validation_job import ValidationJob
from ...models.validation_result import ValidationResult
from ..org_settings import RateLimitConfig, resolve_validation_config
from ..queue.service import ValidationQueue
from .pipeline import ValidationPipeline

logger = logging.getLogger(__name__)

MANUAL_TRIGGER = ExecutionTrigger.MANUAL.value


class ValidationService:
    """Exposed validation operations for the API and operators."""

    def __init__(self, db: Session, pipeline: Optional[ValidationPipeline] = None, queue: Optional[ValidationQueue] = None):
        self.db = db
        self.pipeline = pipeline
        self.queue = queue

    def get_validation(self, org_id: UUID, document_id: UUID) -> ValidationResult:
        """Latest validation result of a document.

        Raises:
            NotFoundError: If the document is unknown to the org or not validated yet
        """
        self._get_document(org_id, document_id)
        result = (
            self.db.query(ValidationResult)
            .filter(ValidationResult.document_id == document_id, ValidationResult.org_id == org_id)
            .first()
        )
        if result is None:
            raise NotFoundError(f"Document {document_id} has no validation result yet")
        return result

    def trigger_validation(
        self,
        org_id: UUID,
        document_id: UUID,
        triggered_by: str,
        defer: bool = False,
        now: Optional[datetime] = None,
    ) -> Union[ValidationResult, ValidationJob]:
        """Re-run validation for a document on operator request.

        Args:
            org_id: Organization UUID
            document_id: Document UUID
            triggered_by: Operator identity recorded on the execution row
            defer: Queue the run instead of validating inline

        Returns:
            ValidationResult when run inline, the queued ValidationJob when deferred

        Raises:
            NotFoundError: If the document does not belong to org_id
            RateLimitExceeded: If the per-document window is exhausted
        """
        now = now or utcnow()
        self._get_document(org_id, document_id)
        org = self.db.get(Org, org_id)
        limit = resolve_validation_config(org).rate_limit
        self.check_rate_limit(document_id, limit, now)

        if defer:
            if self.queue is None:
                raise ValueError("Deferred validation requires a queue")
            job = self.queue.enqueue(org_id, document_id, trigger=MANUAL_TRIGGER, triggered_by=triggered_by, now=now)
            logger.info(
                f"Manual validation of document {document_id} deferred to job {job.id} by {triggered_by}",
                extra={"org_id": org_id, "document_id": document_id, "job_id": job.id},
            )
            return job

        if self.pipeline is None:
            raise ValueError("Inline validation requires a pipeline")
        return self.pipeline.validate(document_id, trigger=ExecutionTrigger.MANUAL, triggered_by=triggered_by)

    def check_rate_limit(self, document_id: UUID, limit: RateLimitConfig, now: datetime) -> None:
        """Raise RateLimitExceeded when the document's manual window is full."""
        window_start = now - timedelta(seconds=limit.window_seconds)

        executions = [
            row.started_at
            for row in self.db.query(ValidationExecution.started_at)
            .filter(
                ValidationExecution.document_id == document_id,
                ValidationExecution.trigger == ExecutionTrigger.MANUAL,
                ValidationExecution.started_at >= window_start,
            )
            .all()
        ]
        deferred = [
            row.created_at
            for row in self.db.query(ValidationJob.created_at)
            .filter(
                ValidationJob.document_id == document_id,
                ValidationJob.trigger == MANUAL_TRIGGER,
                ValidationJob.created_at >= window_start,
            )
            .all()
        ]
        timestamps = sorted(executions + deferred)

        if len(timestamps) < limit.max_requests:
            return

        oldest = timestamps[0]
        retry_after = max(1, int(limit.window_seconds - (now - oldest).total_seconds()))
        logger.warning(
            f"Manual validation rate limit hit for document {document_id}: "
            f"{len(timestamps)}/{limit.max_requests} in {limit.window_seconds}s",
            extra={"document_id": document_id},
        )
        raise RateLimitExceeded(
            f"Manual validation limit of {limit.max_requests} per {limit.window_seconds}s reached",
            retry_after=retry_after,
            limit=limit.max_requests,
            window_seconds=limit.window_seconds,
        )

    def _get_document(self, org_id: UUID, document_id: UUID) -> Document:
        document = (
            self.db.query(Document)
            .filter(Document.id == document_id, Document.org_id == org_id)
            .first()
        )
        if document is None:
            raise NotFoundError(f"Document {document_id} not found")
        return document
