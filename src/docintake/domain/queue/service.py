"""Resilience Queue

Durable validation jobs with claim-by-conditional-update, a fixed backoff
schedule and a dead-letter store.

    enqueue → queued ──claim──▶ processing ──▶ succeeded
                 ▲                   │
                 └── backoff ◀───────┤ transient, permanent classification or unexpected error
                                     ├──▶ dead_lettered (attempts exhausted)
                                     └──▶ failed (auth error, missing document)

A job stuck in processing longer than the visibility timeout (worker crash)
can be claimed again. Every attempt leaves a ValidationExecution row,
written by the pipeline or, when an unexpected error rolled the attempt
back, by the queue.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy import and_, or_, update
from sqlalchemy.orm import Session

from ...audit.service import log_audit_event
from ...errors import AuthError, DocIntakeError, NotFoundError, PermanentClassificationError
from ...models.base import utcnow
from ...models.validation_execution import ExecutionStatus, ExecutionTrigger, ValidationExecution
from ...models.validation_job import DeadLetterEntry, JobStatus, ValidationJob
from ...observability.metrics import dead_lettered_total, queue_attempts_total
from ..validation.pipeline import ValidationPipeline
from .backoff import BACKOFF_SCHEDULE, backoff_delay

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10
DEFAULT_VISIBILITY_TIMEOUT = timedelta(minutes=10)


@dataclass
class BatchStats:
    claimed: int = 0
    succeeded: int = 0
    retried: int = 0
    dead_lettered: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        return {
            "claimed": self.claimed,
            "succeeded": self.succeeded,
            "retried": self.retried,
            "dead_lettered": self.dead_lettered,
            "failed": self.failed,
        }


class ValidationQueue:
    """Queue of deferred validation jobs backed by the validation_job table.

    Example:
        queue = ValidationQueue(db, pipeline)
        queue.enqueue(org_id, document_id)
        stats = queue.run_batch()
    """

    def __init__(
        self,
        db: Session,
        pipeline: Optional[ValidationPipeline] = None,
        max_attempts: int = len(BACKOFF_SCHEDULE),
        visibility_timeout: timedelta = DEFAULT_VISIBILITY_TIMEOUT,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        self.db = db
        self.pipeline = pipeline
        self.max_attempts = max_attempts
        self.visibility_timeout = visibility_timeout
        self.batch_size = batch_size

    def enqueue(
        self,
        org_id: UUID,
        document_id: UUID,
        trigger: str = "system",
        triggered_by: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ValidationJob:
        """Queue a document for validation, due immediately.

        An already queued job for the same document is returned instead of
        creating a second one.
        """
        existing = (
            self.db.query(ValidationJob)
            .filter(
                ValidationJob.org_id == org_id,
                ValidationJob.document_id == document_id,
                ValidationJob.status == JobStatus.QUEUED,
            )
            .first()
        )
        if existing is not None:
            return existing

        now = now or utcnow()
        job = ValidationJob(
            org_id=org_id,
            document_id=document_id,
            attempt=0,
            max_attempts=self.max_attempts,
            status=JobStatus.QUEUED,
            trigger=trigger,
            triggered_by=triggered_by,
            next_attempt_at=now,
            created_at=now,
            updated_at=now,
        )
        self.db.add(job)
        self.db.flush()
        logger.info(
            f"Enqueued validation job {job.id} for document {document_id}",
            extra={"org_id": org_id, "document_id": document_id, "job_id": job.id},
        )
        return job

    def claim_due(self, now: Optional[datetime] = None, limit: Optional[int] = None) -> list[ValidationJob]:
        """Claim due jobs, oldest next_attempt_at first.

        Each claim is a conditional UPDATE; a job claimed by another worker
        in between is skipped.
        """
        now = now or utcnow()
        stale_before = now - self.visibility_timeout
        claimable = or_(
            and_(ValidationJob.status == JobStatus.QUEUED, ValidationJob.next_attempt_at <= now),
            and_(ValidationJob.status == JobStatus.PROCESSING, ValidationJob.claimed_at < stale_before),
        )

        candidate_ids = [
            row.id
            for row in self.db.query(ValidationJob.id)
            .filter(claimable)
            .order_by(ValidationJob.next_attempt_at.asc(), ValidationJob.created_at.asc())
            .limit(limit or self.batch_size)
            .all()
        ]

        claimed = []
        for job_id in candidate_ids:
            result = self.db.execute(
                update(ValidationJob)
                .where(ValidationJob.id == job_id, claimable)
                .values(status=JobStatus.PROCESSING, claimed_at=now, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                logger.debug(f"Job {job_id} was claimed elsewhere")
                continue
            claimed.append(self.db.get(ValidationJob, job_id, populate_existing=True))

        return claimed

    def process(self, job: ValidationJob, now: Optional[datetime] = None) -> JobStatus:
        """Run one claimed job through the pipeline and record the outcome.

        An error outside the DocIntakeError taxonomy (a database error on a
        malformed value, a bug in a stage) rolls back the attempt's partial
        work and is recorded as a failed attempt, so it consumes the backoff
        schedule like any other failure. The rollback covers the whole
        session: callers commit their own work before processing, as
        run_batch does.

        Returns:
            The job's new status
        """
        if self.pipeline is None:
            raise ValueError("ValidationQueue.process requires a pipeline")

        job_id = job.id
        log_extra = {"org_id": job.org_id, "document_id": job.document_id, "job_id": job_id}
        attempt = job.attempt + 1
        try:
            self.pipeline.validate(
                job.document_id,
                trigger=ExecutionTrigger.QUEUE,
                triggered_by=job.triggered_by or job.trigger,
                job_id=job_id,
                attempt=attempt,
            )
        except (AuthError, NotFoundError) as e:
            self._fail(job, e, now or utcnow())
            return job.status
        except DocIntakeError as e:
            self._record_failure(job, e, now or utcnow())
            return job.status
        except Exception as e:
            self.db.rollback()
            logger.exception(f"Unexpected error in validation job {job_id}", extra=log_extra)
            job = self.db.get(ValidationJob, job_id, populate_existing=True)
            error = PermanentClassificationError(
                f"Unexpected {e.__class__.__name__} during validation: {e}"[:1000],
                {"exception": e.__class__.__name__, "raw_error": str(e)[:2000]},
            )
            self._record_unexpected_attempt(job, attempt, error, now or utcnow())
            self._record_failure(job, error, now or utcnow())
            return job.status

        job.attempt += 1
        job.status = JobStatus.SUCCEEDED
        job.last_error = None
        job.updated_at = now or utcnow()
        self.db.flush()
        queue_attempts_total.labels(outcome="succeeded").inc()
        logger.info(f"Validation job {job.id} succeeded on attempt {job.attempt}", extra=log_extra)
        return job.status

    def run_batch(self, limit: Optional[int] = None, now: Optional[datetime] = None) -> BatchStats:
        """Claim due jobs and process them one by one.

        The claims are committed before any job runs so other workers see
        them, and each job's outcome is committed on its own; a failing job
        never undoes the rest of the batch.
        """
        stats = BatchStats()
        jobs = self.claim_due(now=now, limit=limit)
        job_ids = [job.id for job in jobs]
        self.db.commit()

        for job_id in job_ids:
            job = self.db.get(ValidationJob, job_id)
            stats.claimed += 1
            status = self.process(job, now=now)
            self.db.commit()
            if status == JobStatus.SUCCEEDED:
                stats.succeeded += 1
            elif status == JobStatus.QUEUED:
                stats.retried += 1
            elif status == JobStatus.DEAD_LETTERED:
                stats.dead_lettered += 1
            else:
                stats.failed += 1

        if stats.claimed:
            logger.info(f"Validation queue batch: {stats.to_dict()}")
        return stats

    def requeue_dead_letter(self, org_id: UUID, entry_id: UUID, actor: str, notes: Optional[str] = None) -> ValidationJob:
        """Resolve a dead-letter entry and queue its document again with fresh attempts.

        Raises:
            NotFoundError: If the entry does not belong to org_id
            ValueError: If the entry is already resolved
        """
        entry = (
            self.db.query(DeadLetterEntry)
            .filter(DeadLetterEntry.id == entry_id, DeadLetterEntry.org_id == org_id)
            .first()
        )
        if entry is None:
            raise NotFoundError(f"Dead-letter entry {entry_id} not found")
        if entry.resolved_at is not None:
            raise ValueError(f"Dead-letter entry {entry_id} already resolved")

        entry.resolved_at = utcnow()
        entry.resolved_by = actor
        entry.resolution_notes = notes
        job = self.enqueue(org_id, entry.document_id, trigger="manual", triggered_by=actor)

        log_audit_event(
            self.db,
            org_id=org_id,
            action="dead_letter.resolved",
            actor=actor,
            entity_type="validation_job",
            entity_id=entry.job_id,
            metadata={"dead_letter_id": str(entry.id), "requeued_job_id": str(job.id), "notes": notes},
        )
        return job

    # ------------------------------------------------------------------
    # Failure handling
    # ------------------------------------------------------------------

    def _record_failure(self, job: ValidationJob, error: DocIntakeError, now: datetime) -> None:
        job.attempt += 1
        job.last_error = f"{error.__class__.__name__}: {error.message}"
        job.last_error_details = error.to_dict()
        job.updated_at = now
        log_extra = {"org_id": job.org_id, "document_id": job.document_id, "job_id": job.id}

        if job.attempt < job.max_attempts:
            delay = backoff_delay(job.attempt)
            job.status = JobStatus.QUEUED
            job.next_attempt_at = now + delay
            job.claimed_at = None
            self.db.flush()
            queue_attempts_total.labels(outcome="retry").inc()
            logger.warning(
                f"Validation job {job.id} attempt {job.attempt}/{job.max_attempts} failed "
                f"({job.last_error}); retrying in {delay}",
                extra=log_extra,
            )
            return

        job.status = JobStatus.DEAD_LETTERED
        self._dead_letter(job)
        queue_attempts_total.labels(outcome="dead_lettered").inc()
        logger.error(
            f"Validation job {job.id} dead-lettered after {job.attempt} attempts: {job.last_error}",
            extra=log_extra,
        )

    def _record_unexpected_attempt(self, job: ValidationJob, attempt: int, error: DocIntakeError, now: datetime) -> None:
        # the pipeline's own execution row was rolled back with the attempt
        self.db.add(ValidationExecution(
            org_id=job.org_id,
            document_id=job.document_id,
            job_id=job.id,
            trigger=ExecutionTrigger.QUEUE,
            triggered_by=job.triggered_by or job.trigger,
            attempt=attempt,
            status=ExecutionStatus.FAILED,
            started_at=now,
            finished_at=now,
            error_summary=f"{error.__class__.__name__}: {error.message}"[:1000],
        ))

    def _dead_letter(self, job: ValidationJob) -> DeadLetterEntry:
        entry = self.db.query(DeadLetterEntry).filter(DeadLetterEntry.job_id == job.id).first()
        if entry is None:
            entry = DeadLetterEntry(
                org_id=job.org_id,
                job_id=job.id,
                document_id=job.document_id,
                final_attempt=job.attempt,
                final_error=job.last_error,
                final_error_details=job.last_error_details,
            )
            self.db.add(entry)
            dead_lettered_total.inc()
        self.db.flush()
        return entry

    def _fail(self, job: ValidationJob, error: DocIntakeError, now: datetime) -> None:
        job.attempt += 1
        job.status = JobStatus.FAILED
        job.last_error = f"{error.__class__.__name__}: {error.message}"
        job.last_error_details = error.to_dict()
        job.updated_at = now
        self.db.flush()
        queue_attempts_total.labels(outcome="failed").inc()

        if isinstance(error, AuthError):
            logger.error(
                f"Provider credentials rejected while validating document {job.document_id}; "
                f"job {job.id} stopped until the account is re-authorized: {error.message}",
                extra={"org_id": job.org_id, "document_id": job.document_id, "job_id": job.id},
            )
            log_audit_event(
                self.db,
                org_id=job.org_id,
                action="account.auth_error",
                entity_type="validation_job",
                entity_id=job.id,
                metadata=error.to_dict(),
            )
        else:
            logger.error(f"Validation job {job.id} failed permanently: {job.last_error}")
