"""Unit tests for the validation pipeline"""

from datetime import timedelta
from uuid import uuid4

import pytest

from docintake.errors import NotFoundError, ProviderTimeoutError, StorageError, TransientProviderError
from docintake.models import (
    ExecutionStatus,
    ExecutionTrigger,
    RenewalReminder,
    RequestStatus,
    StatusHistoryEntry,
    ValidationExecution,
    ValidationResult,
    ValidationStatus,
    Verdict,
    utcnow,
)


@pytest.fixture
def fallback_pipeline(pipeline):
    """Pipeline without a classification provider."""
    pipeline.classifier = None
    return pipeline


class TestValidationPipeline:
    """End-to-end runs of the validation stages against fakes"""

    def test_clean_document_verified(self, db_session, pipeline, make_document, document_request, employee):
        """Test a matching passport is verified and completes its request"""
        document = make_document(request=document_request)

        result = pipeline.validate(document.id)

        assert result.verdict == Verdict.VERIFIED
        assert result.review_priority == "low"
        assert result.document_type == "passport"
        assert result.owner_confidence == 1.0
        assert result.matched_employee_id == employee.id
        assert result.compliance_score == 1.0
        assert result.prompt_version == "test_v1"
        assert document.validation_status == ValidationStatus.VERIFIED

        db_session.refresh(document_request)
        assert document_request.status == RequestStatus.COMPLETED
        assert document_request.document_count == 1
        transitions = [
            (h.old_status, h.new_status)
            for h in db_session.query(StatusHistoryEntry).order_by(StatusHistoryEntry.created_at).all()
        ]
        assert transitions == [("sent", "received"), ("received", "completed")]

    def test_execution_recorded(self, db_session, pipeline, make_document):
        """Test a successful run closes its execution row with provenance"""
        document = make_document()

        pipeline.validate(document.id, trigger="manual", triggered_by="ops@acme.com")

        execution = db_session.query(ValidationExecution).one()
        assert execution.status == ExecutionStatus.COMPLETED
        assert execution.trigger == ExecutionTrigger.MANUAL
        assert execution.triggered_by == "ops@acme.com"
        assert execution.model == "fake-model"
        assert execution.tokens_in == 120
        assert execution.cost_micros == 42
        assert execution.verdict == "verified"
        assert execution.finished_at is not None

    def test_reminders_scheduled_once(self, db_session, pipeline, make_document):
        """Test re-validation upserts the result and keeps four reminders"""
        document = make_document()

        pipeline.validate(document.id)
        pipeline.validate(document.id)

        assert db_session.query(ValidationResult).count() == 1
        assert db_session.query(ValidationExecution).count() == 2
        assert db_session.query(RenewalReminder).count() == 4

    def test_expired_document_rejected(self, pipeline, classifier, classification, make_document):
        """Test an expired document is rejected"""
        classifier.outputs = [classification(expiry_date=utcnow().date() - timedelta(days=5))]
        document = make_document()

        result = pipeline.validate(document.id)

        assert result.verdict == Verdict.REJECTED
        assert "document_expired" in result.critical_issues
        assert document.validation_status == ValidationStatus.REJECTED

    def test_wrong_type_rejected(self, pipeline, classifier, classification, make_document, document_request):
        """Test a visa sent for a passport request is rejected"""
        classifier.outputs = [classification(document_type="visa")]
        document = make_document(request=document_request)

        result = pipeline.validate(document.id)

        assert result.verdict == Verdict.REJECTED
        assert "document_type_mismatch" in result.critical_issues

    def test_timeout_closes_execution(self, db_session, pipeline, classifier, make_document):
        """Test a provider timeout propagates and marks the execution as timed out"""
        classifier.outputs = [ProviderTimeoutError("classification timed out")]
        document = make_document()

        with pytest.raises(ProviderTimeoutError):
            pipeline.validate(document.id)

        execution = db_session.query(ValidationExecution).one()
        assert execution.status == ExecutionStatus.TIMEOUT
        assert execution.error_summary == "ProviderTimeoutError: classification timed out"
        assert document.validation_status == ValidationStatus.PENDING
        assert db_session.query(ValidationResult).count() == 0

    def test_storage_failure_is_transient(self, db_session, pipeline, memory_storage, make_document):
        """Test an unreadable stored file is a retryable failure"""
        document = make_document()
        memory_storage.fail_with = StorageError("bucket unavailable")

        with pytest.raises(TransientProviderError):
            pipeline.validate(document.id)

        assert db_session.query(ValidationExecution).one().status == ExecutionStatus.FAILED

    def test_unreadable_pdf_uses_filename(self, pipeline, classifier, make_document):
        """Test a document without text skips the provider"""
        pipeline.extractor.text = ""
        document = make_document()

        result = pipeline.validate(document.id)

        assert classifier.calls == []
        assert result.document_type == "passport"
        assert result.model is None

    def test_images_sent_to_provider_without_text(self, pipeline, classifier, make_document):
        """Test scans are still classified by the provider"""
        pipeline.extractor.text = ""
        document = make_document(content=b"\x89PNG\r\n\x1a\n" + b"\x00" * 16, file_name="scan.png", mime_type="image/png")

        pipeline.validate(document.id)

        assert len(classifier.calls) == 1
        assert classifier.calls[0][1].content.startswith(b"\x89PNG")

    def test_no_provider_configured(self, fallback_pipeline, make_document):
        """Test the filename heuristic classifies when no provider is configured"""
        document = make_document(file_name="drivers_license.pdf")

        result = fallback_pipeline.validate(document.id)

        assert result.document_type == "drivers_license"
        assert result.type_confidence == pytest.approx(0.6)

    def test_unknown_document(self, pipeline):
        """Test validating a missing document raises NotFoundError"""
        with pytest.raises(NotFoundError):
            pipeline.validate(uuid4())


class TestDuplicateFlagging:
    """Identical bytes flag both documents"""

    def test_both_copies_flagged(self, db_session, pipeline, make_document):
        """Test validating a second copy also flags the first copy's result"""
        first = make_document()
        first_result = pipeline.validate(first.id)
        db_session.commit()
        assert first_result.is_duplicate is False

        second = make_document()
        second_result = pipeline.validate(second.id)
        db_session.commit()

        db_session.refresh(first_result)
        assert second_result.is_duplicate is True
        assert second_result.duplicate_of_ids == [str(first.id)]
        assert first_result.is_duplicate is True
        assert first_result.duplicate_of_ids == [str(second.id)]
        assert "duplicate_document" in first_result.warnings
        assert first_result.verdict == Verdict.VERIFIED
        assert first_result.review_priority == "medium"

    def test_revalidation_does_not_repeat_link(self, db_session, pipeline, make_document):
        """Test re-validating the second copy keeps one reverse link"""
        first = make_document()
        pipeline.validate(first.id)
        second = make_document()
        pipeline.validate(second.id)
        pipeline.validate(second.id)
        db_session.commit()

        first_result = db_session.query(ValidationResult).filter_by(document_id=first.id).one()
        assert first_result.duplicate_of_ids == [str(second.id)]
        assert first_result.warnings.count("duplicate_document") == 1

    def test_strict_mode_rejects_earlier_copy(self, db_session, org, pipeline, make_document):
        """Test strict duplicates reject the earlier copy as well"""
        org.settings_json = {"validation": {"strict_duplicates": True}}
        db_session.commit()
        first = make_document()
        pipeline.validate(first.id)
        db_session.commit()

        second = make_document()
        second_result = pipeline.validate(second.id)
        db_session.commit()

        first_result = db_session.query(ValidationResult).filter_by(document_id=first.id).one()
        db_session.refresh(first)
        assert second_result.verdict == Verdict.REJECTED
        assert first_result.verdict == Verdict.REJECTED
        assert "duplicate_document" in first_result.critical_issues
        assert first_result.review_priority == "critical"
        assert first.validation_status == ValidationStatus.REJECTED
