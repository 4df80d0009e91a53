"""Unit tests for the validation resilience queue"""

from datetime import datetime, timedelta
from uuid import uuid4

import pytest

from docintake.domain.queue.backoff import BACKOFF_SCHEDULE, backoff_delay
from docintake.domain.queue.service import ValidationQueue
from docintake.errors import AuthError, NotFoundError, PermanentClassificationError, TransientProviderError
from docintake.models import (
    AuditLog,
    DeadLetterEntry,
    ExecutionStatus,
    JobStatus,
    ValidationExecution,
    ValidationJob,
    ValidationResult,
)

T0 = datetime(2025, 3, 1, 9, 0, 0)


class TestBackoff:
    def test_schedule(self):
        """Test the fixed 1m / 5m / 15m / 1h / 6h / 24h schedule"""
        assert [backoff_delay(n) for n in range(1, 7)] == [
            timedelta(minutes=1),
            timedelta(minutes=5),
            timedelta(minutes=15),
            timedelta(hours=1),
            timedelta(hours=6),
            timedelta(hours=24),
        ]

    def test_beyond_schedule_reuses_last_step(self):
        """Test attempts past the schedule wait 24h"""
        assert backoff_delay(10) == timedelta(hours=24)

    def test_invalid_attempt(self):
        """Test attempt numbers start at 1"""
        with pytest.raises(ValueError):
            backoff_delay(0)

    def test_default_max_attempts(self, db_session):
        """Test the default budget equals the schedule length"""
        assert ValidationQueue(db_session).max_attempts == len(BACKOFF_SCHEDULE)


class TestEnqueueAndClaim:
    def test_enqueue_is_due_immediately(self, queue, org, make_document):
        """Test a new job is queued with no attempts"""
        document = make_document()

        job = queue.enqueue(org.id, document.id, now=T0)

        assert job.status == JobStatus.QUEUED
        assert job.attempt == 0
        assert job.next_attempt_at == T0

    def test_enqueue_dedupes_queued_job(self, queue, org, make_document):
        """Test a second enqueue returns the waiting job"""
        document = make_document()

        first = queue.enqueue(org.id, document.id, now=T0)
        second = queue.enqueue(org.id, document.id, now=T0)

        assert first.id == second.id

    def test_claim_marks_processing(self, queue, org, make_document):
        """Test claimed jobs move to processing"""
        document = make_document()
        job = queue.enqueue(org.id, document.id, now=T0)

        claimed = queue.claim_due(now=T0)

        assert [j.id for j in claimed] == [job.id]
        assert claimed[0].status == JobStatus.PROCESSING
        assert claimed[0].claimed_at == T0

    def test_claim_skips_jobs_not_due(self, queue, org, make_document):
        """Test jobs in backoff are not claimed early"""
        document = make_document()
        queue.enqueue(org.id, document.id, now=T0 + timedelta(minutes=5))

        assert queue.claim_due(now=T0) == []

    def test_claim_twice_returns_nothing(self, queue, org, make_document):
        """Test a processing job is not claimed again within the visibility timeout"""
        document = make_document()
        queue.enqueue(org.id, document.id, now=T0)
        queue.claim_due(now=T0)

        assert queue.claim_due(now=T0 + timedelta(minutes=5)) == []

    def test_stale_processing_job_reclaimed(self, queue, org, make_document):
        """Test a job abandoned by a crashed worker is claimed again"""
        document = make_document()
        job = queue.enqueue(org.id, document.id, now=T0)
        queue.claim_due(now=T0)

        reclaimed = queue.claim_due(now=T0 + timedelta(minutes=11))

        assert [j.id for j in reclaimed] == [job.id]

    def test_claim_order_and_limit(self, queue, org, make_document):
        """Test oldest due jobs are claimed first up to the limit"""
        queue.enqueue(org.id, make_document().id, now=T0)
        early = queue.enqueue(org.id, make_document().id, now=T0 - timedelta(minutes=3))

        claimed = queue.claim_due(now=T0, limit=1)

        assert [j.id for j in claimed] == [early.id]


class TestProcess:
    """Outcome handling for claimed jobs"""

    def test_success(self, queue, org, make_document, db_session):
        """Test a successful validation completes the job"""
        document = make_document()
        queue.enqueue(org.id, document.id, now=T0)
        job = queue.claim_due(now=T0)[0]

        status = queue.process(job, now=T0)

        assert status == JobStatus.SUCCEEDED
        assert job.attempt == 1
        execution = db_session.query(ValidationExecution).filter_by(job_id=job.id).one()
        assert execution.status == ExecutionStatus.COMPLETED
        assert execution.attempt == 1

    def test_transient_error_backs_off(self, queue, classifier, org, make_document):
        """Test a transient failure requeues the job after the first backoff step"""
        classifier.outputs = [TransientProviderError("provider unavailable")]
        document = make_document()
        queue.enqueue(org.id, document.id, now=T0)
        job = queue.claim_due(now=T0)[0]

        status = queue.process(job, now=T0)

        assert status == JobStatus.QUEUED
        assert job.attempt == 1
        assert job.next_attempt_at == T0 + timedelta(minutes=1)
        assert job.claimed_at is None
        assert job.last_error == "TransientProviderError: provider unavailable"

    def test_permanent_classification_error_retried(self, queue, classifier, org, make_document):
        """Test malformed classifier output also consumes the backoff schedule"""
        classifier.outputs = [PermanentClassificationError("no document_type")]
        document = make_document()
        queue.enqueue(org.id, document.id, now=T0)
        job = queue.claim_due(now=T0)[0]

        assert queue.process(job, now=T0) == JobStatus.QUEUED

    def test_second_failure_uses_next_step(self, queue, classifier, org, make_document):
        """Test the second failure waits five minutes"""
        classifier.outputs = [TransientProviderError("provider unavailable")]
        document = make_document()
        queue.enqueue(org.id, document.id, now=T0)
        queue.run_batch(now=T0)

        queue.run_batch(now=T0 + timedelta(minutes=2))

        job = queue.claim_due(now=T0 + timedelta(minutes=7))[0]
        assert job.attempt == 2

    def test_exhausted_attempts_dead_letter(self, db_session, pipeline, classifier, org, make_document):
        """Test the last failed attempt moves the job to the dead-letter store"""
        classifier.outputs = [TransientProviderError("provider unavailable")]
        queue = ValidationQueue(db_session, pipeline=pipeline, max_attempts=2)
        document = make_document()
        queue.enqueue(org.id, document.id, now=T0)

        queue.run_batch(now=T0)
        stats = queue.run_batch(now=T0 + timedelta(minutes=2))

        assert stats.dead_lettered == 1
        entry = db_session.query(DeadLetterEntry).one()
        assert entry.document_id == document.id
        assert entry.final_attempt == 2
        assert entry.final_error == "TransientProviderError: provider unavailable"
        assert entry.final_error_details["type"] == "TransientProviderError"

    def test_auth_error_fails_without_retry(self, db_session, queue, classifier, org, make_document):
        """Test rejected credentials stop the job and raise an account alert"""
        classifier.outputs = [AuthError("invalid api key")]
        document = make_document()
        queue.enqueue(org.id, document.id, now=T0)

        stats = queue.run_batch(now=T0)

        assert stats.failed == 1
        alert = db_session.query(AuditLog).filter_by(action="account.auth_error").one()
        assert alert.metadata_json["message"] == "invalid api key"
        assert queue.claim_due(now=T0 + timedelta(days=2)) == []

    def test_missing_document_fails(self, queue, org):
        """Test a job for a deleted document fails permanently"""
        queue.enqueue(org.id, uuid4(), now=T0)

        stats = queue.run_batch(now=T0)

        assert stats.failed == 1
        assert stats.retried == 0

    def test_process_requires_pipeline(self, db_session, org, make_document):
        """Test a queue without pipeline cannot process"""
        queue = ValidationQueue(db_session)
        document = make_document()
        queue.enqueue(org.id, document.id, now=T0)
        job = queue.claim_due(now=T0)[0]

        with pytest.raises(ValueError):
            queue.process(job)


class TestDeadLetterRequeue:
    @pytest.fixture
    def dead_entry(self, db_session, pipeline, classifier, org, make_document):
        classifier.outputs = [TransientProviderError("provider unavailable")]
        queue = ValidationQueue(db_session, pipeline=pipeline, max_attempts=1)
        queue.enqueue(org.id, make_document().id, now=T0)
        queue.run_batch(now=T0)
        return db_session.query(DeadLetterEntry).one()

    def test_requeue_creates_fresh_job(self, db_session, queue, org, dead_entry):
        """Test requeueing resolves the entry and queues the document again"""
        job = queue.requeue_dead_letter(org.id, dead_entry.id, actor="ops@acme.com", notes="provider back")

        assert job.id != dead_entry.job_id
        assert job.status == JobStatus.QUEUED
        assert job.attempt == 0
        assert job.trigger == "manual"
        assert dead_entry.resolved_by == "ops@acme.com"
        assert dead_entry.resolved_at is not None
        audit = db_session.query(AuditLog).filter_by(action="dead_letter.resolved").one()
        assert audit.metadata_json["requeued_job_id"] == str(job.id)

    def test_requeue_twice_rejected(self, queue, org, dead_entry):
        """Test a resolved entry cannot be requeued again"""
        queue.requeue_dead_letter(org.id, dead_entry.id, actor="ops@acme.com")

        with pytest.raises(ValueError):
            queue.requeue_dead_letter(org.id, dead_entry.id, actor="ops@acme.com")

    def test_requeue_other_org(self, queue, dead_entry):
        """Test entries of another organization are not found"""
        with pytest.raises(NotFoundError):
            queue.requeue_dead_letter(uuid4(), dead_entry.id, actor="ops@acme.com")


class TestUnexpectedErrors:
    """Errors outside the docintake taxonomy are contained per job"""

    def test_database_error_counts_as_attempt(self, db_session, queue, classifier, classification, org, make_document):
        """Test a value the database rejects backs the job off with an execution row"""
        classifier.outputs = [classification(issuing_country={"code": "US"})]
        document = make_document()
        queue.enqueue(org.id, document.id, now=T0)

        stats = queue.run_batch(now=T0)

        assert stats.retried == 1
        job = db_session.query(ValidationJob).one()
        assert job.status == JobStatus.QUEUED
        assert job.attempt == 1
        assert job.next_attempt_at == T0 + timedelta(minutes=1)
        assert job.last_error.startswith("PermanentClassificationError: Unexpected")
        assert job.last_error_details["details"]["raw_error"]
        execution = db_session.query(ValidationExecution).one()
        assert execution.status == ExecutionStatus.FAILED
        assert execution.attempt == 1
        assert execution.job_id == job.id
        assert db_session.query(ValidationResult).count() == 0

    def test_unexpected_errors_dead_letter(self, db_session, pipeline, classifier, org, make_document):
        """Test repeated unexpected errors exhaust the schedule like any other failure"""
        classifier.outputs = [RuntimeError("stage crashed")]
        queue = ValidationQueue(db_session, pipeline=pipeline, max_attempts=2)
        queue.enqueue(org.id, make_document().id, now=T0)

        queue.run_batch(now=T0)
        stats = queue.run_batch(now=T0 + timedelta(minutes=2))

        assert stats.dead_lettered == 1
        entry = db_session.query(DeadLetterEntry).one()
        assert "RuntimeError" in entry.final_error
        assert "stage crashed" in entry.final_error
        assert db_session.query(ValidationExecution).count() == 2

    def test_failing_job_keeps_batch_results(self, db_session, queue, classifier, classification, org, make_document):
        """Test a job that crashes does not undo the job validated before it"""
        classifier.outputs = [classification(), RuntimeError("stage crashed")]
        first = make_document()
        second = make_document(content=b"%PDF-1.4\nsecond\n%%EOF")
        queue.enqueue(org.id, first.id, now=T0)
        queue.enqueue(org.id, second.id, now=T0 + timedelta(seconds=1))

        stats = queue.run_batch(now=T0 + timedelta(minutes=1))

        assert stats.succeeded == 1
        assert stats.retried == 1
        db_session.expire_all()
        assert db_session.query(ValidationResult).filter_by(document_id=first.id).one()
        first_job = db_session.query(ValidationJob).filter_by(document_id=first.id).one()
        assert first_job.status == JobStatus.SUCCEEDED
