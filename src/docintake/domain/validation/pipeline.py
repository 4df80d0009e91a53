"""Validation Pipeline

Runs the validation stages for one stored document and persists the outcome:

    1. download stored bytes (StorageRegistry)
    2. text extraction (best-effort)
    3. classification
    4. owner matching
    5. expiry analysis, renewal reminders
    6. authenticity and duplicate check
    7. compliance with the requested type
    8. decision

Every run writes one ValidationExecution row. A successful run upserts the
document's ValidationResult, mirrors the verdict onto Document.validation_status
and re-drives the status tracker for the linked request.

Provider errors propagate to the caller (the resilience queue or the
manual trigger) after the execution row has been closed.
"""

import logging
import time
from datetime import date
from typing import Optional, Union
from uuid import UUID

from sqlalchemy.orm import Session

from ...errors import DocIntakeError, NotFoundError, ProviderTimeoutError, StorageError, TransientProviderError
from ...models.base import utcnow
from ...models.document import Document, ValidationStatus
from ...models.document_request import DocumentRequest
from ...models.org import Org
from ...models.storage_target import StorageTarget
from ...models.validation_execution import ExecutionStatus, ExecutionTrigger, ValidationExecution
from ...models.validation_result import ValidationResult, Verdict
from ...observability.metrics import classification_calls_total, validation_duration_seconds, validations_total
from ..org_settings import resolve_validation_config
from ..reminders.service import ReminderService
from ..requests.tracker import StatusTracker
from ..storage.registry import StorageRegistry
from .authenticity import check_authenticity
from .classification import FilenameClassifier
from .compliance import check_compliance
from .decision import DecisionEngine, DecisionInput
from .expiry import analyze_expiry, issue_date_warnings
from .owner_match import OwnerMatcher
from .ports import ClassificationHints, ClassificationOutput, ClassificationPort, TextExtractorPort

logger = logging.getLogger(__name__)

IMAGE_PREFIX = "image/"


class ValidationPipeline:
    """Validates stored documents.

    Example:
        pipeline = ValidationPipeline(db, storage_registry, OpenAIClassifier(...), PDFTextExtractor())
        result = pipeline.validate(document_id, trigger=ExecutionTrigger.SYSTEM)
    """

    def __init__(
        self,
        db: Session,
        storage: StorageRegistry,
        classifier: Optional[ClassificationPort],
        extractor: TextExtractorPort,
        reminders: Optional[ReminderService] = None,
        prompt_version: Optional[str] = None,
    ):
        self.db = db
        self.storage = storage
        self.classifier = classifier
        self.fallback_classifier = FilenameClassifier()
        self.extractor = extractor
        self.reminders = reminders or ReminderService(db)
        self.prompt_version = prompt_version

    def validate(
        self,
        document_id: UUID,
        trigger: Union[ExecutionTrigger, str] = ExecutionTrigger.SYSTEM,
        triggered_by: Optional[str] = None,
        job_id: Optional[UUID] = None,
        attempt: Optional[int] = None,
        today: Optional[date] = None,
    ) -> ValidationResult:
        """Validate one document.

        Args:
            document_id: Document UUID
            trigger: system (intake), manual (operator) or queue (retry worker)
            triggered_by: Actor recorded on the execution row
            job_id: Queue job this run belongs to
            attempt: Attempt number within the job
            today: Reference date for expiry analysis (defaults to UTC today)

        Returns:
            The upserted ValidationResult

        Raises:
            NotFoundError: If the document does not exist
            TransientProviderError: Storage or classification provider unavailable
            AuthError: Provider rejected credentials
            PermanentClassificationError: Classification output unusable
        """
        trigger = ExecutionTrigger(trigger)
        document = self.db.get(Document, document_id)
        if document is None:
            raise NotFoundError(f"Document {document_id} not found")

        execution = ValidationExecution(
            org_id=document.org_id,
            document_id=document.id,
            job_id=job_id,
            trigger=trigger,
            triggered_by=triggered_by,
            attempt=attempt,
            status=ExecutionStatus.RUNNING,
            started_at=utcnow(),
            prompt_version=self.prompt_version,
        )
        self.db.add(execution)
        self.db.flush()

        log_extra = {"org_id": document.org_id, "document_id": document.id, "job_id": job_id}
        start_time = time.perf_counter()

        try:
            result, classification = self._run(document, execution, today or utcnow().date())
        except DocIntakeError as e:
            self._finish(execution, start_time, e)
            logger.warning(
                f"Validation of document {document.id} failed ({e.__class__.__name__}): {e.message}",
                extra=log_extra,
            )
            raise

        execution.model = classification.model
        execution.tokens_in = classification.tokens_in
        execution.tokens_out = classification.tokens_out
        execution.cost_micros = classification.cost_micros
        execution.verdict = result.verdict.value
        duration = self._finish(execution, start_time)

        validations_total.labels(verdict=result.verdict.value, trigger=trigger.value).inc()
        validation_duration_seconds.observe(duration)
        logger.info(
            f"Validated document {document.id}: verdict={result.verdict.value}, "
            f"type={result.document_type}, owner={result.owner_confidence:.2f}, "
            f"authenticity={result.authenticity_score:.2f}, compliance={result.compliance_score:.2f}",
            extra=log_extra,
        )
        return result

    def _run(self, document: Document, execution: ValidationExecution, today: date) -> tuple[ValidationResult, ClassificationOutput]:
        org = self.db.get(Org, document.org_id)
        config = resolve_validation_config(org)
        request = self.db.get(DocumentRequest, document.request_id) if document.request_id else None
        requested_type = request.requested_document_type if request else None

        content = self._download(document)
        text = self._extract_text(document, content)

        hints = ClassificationHints(
            file_name=document.file_name,
            mime_type=document.mime_type,
            requested_type=requested_type,
            due_date=request.due_date if request else None,
            content=content,
        )
        classification = self._classify(text, hints)

        owner = OwnerMatcher(self.db).match(
            org_id=document.org_id,
            sender_email=document.sender_email,
            extracted_names=classification.extracted_names,
            date_of_birth=classification.date_of_birth,
        )

        expiry = analyze_expiry(
            classification.expiry_date,
            today=today,
            horizon_days=config.expiry_horizon_days,
            issue_date=classification.issue_date,
        )
        if classification.expiry_date is not None:
            employee_id = owner.employee_id or (request.employee_id if request else None)
            self.reminders.schedule(document, classification.expiry_date, employee_id=employee_id, today=today)

        authenticity = check_authenticity(self.db, document, content)
        if authenticity.sha256 != document.sha256:
            logger.warning(f"Stored hash of document {document.id} differs from downloaded bytes")

        compliance = check_compliance(classification.document_type, requested_type)

        decision = DecisionEngine(config.auto_approval).decide(DecisionInput(
            owner=owner,
            authenticity=authenticity,
            compliance=compliance,
            expiry=expiry,
            document_type=classification.document_type,
            strict_duplicates=config.strict_duplicates,
            extra_warnings=issue_date_warnings(classification.issue_date, classification.expiry_date, today),
        ))

        result = self.db.query(ValidationResult).filter(ValidationResult.document_id == document.id).first()
        if result is None:
            result = ValidationResult(org_id=document.org_id, document_id=document.id)
            self.db.add(result)

        result.document_type = classification.document_type
        result.type_confidence = classification.confidence
        result.issuing_country = classification.issuing_country
        result.document_number = classification.document_number
        result.owner_confidence = owner.confidence
        result.name_match_score = owner.name_score
        result.dob_match = owner.dob_match
        result.matched_employee_id = owner.employee_id
        result.owner_match_method = owner.method
        result.expiry_date = expiry.expiry_date
        result.issue_date = expiry.issue_date
        result.expiry_status = expiry.status
        result.days_until_expiry = expiry.days_until_expiry
        result.authenticity_score = authenticity.score
        result.is_duplicate = authenticity.is_duplicate
        result.duplicate_of_ids = [str(i) for i in authenticity.duplicate_of_ids]
        result.compliance_score = compliance.score
        result.verdict = decision.verdict
        result.review_priority = decision.review_priority
        result.critical_issues = decision.critical_issues
        result.warnings = decision.warnings
        result.model = classification.model
        result.prompt_version = self.prompt_version if classification.model else None
        result.validated_at = utcnow()

        document.validation_status = ValidationStatus(decision.verdict.value)
        self.db.flush()

        if authenticity.is_duplicate:
            self._flag_earlier_duplicates(document, authenticity.duplicate_of_ids, config.strict_duplicates)

        if document.request_id is not None:
            StatusTracker(self.db).reevaluate(
                document.request_id,
                actor=f"validation:{execution.trigger.value}",
                reason=f"document {document.id} {decision.verdict.value}",
            )

        return result, classification

    def _flag_earlier_duplicates(self, document: Document, duplicate_ids: list[UUID], strict: bool) -> None:
        """Mark the already-validated copies of a document as duplicates of it.

        Copies without a result yet pick the link up on their own run. Under
        strict mode a copy that was not rejected becomes rejected and its
        request is re-driven.
        """
        results = (
            self.db.query(ValidationResult)
            .filter(ValidationResult.document_id.in_(duplicate_ids))
            .all()
        )
        reevaluate: set[UUID] = set()

        for other in results:
            linked = list(other.duplicate_of_ids or [])
            if str(document.id) not in linked:
                linked.append(str(document.id))
            other.duplicate_of_ids = linked
            other.is_duplicate = True

            critical = list(other.critical_issues or [])
            warnings = list(other.warnings or [])
            if strict:
                if "duplicate_document" not in critical:
                    critical.append("duplicate_document")
                warnings = [w for w in warnings if w != "duplicate_document"]
                other.verdict = Verdict.REJECTED
            elif "duplicate_document" not in warnings and "duplicate_document" not in critical:
                warnings.append("duplicate_document")
            other.critical_issues = critical
            other.warnings = warnings
            other.review_priority = DecisionEngine.review_priority(other.verdict, critical, warnings, other.owner_confidence)

            copy = self.db.get(Document, other.document_id)
            if copy is not None and copy.validation_status != ValidationStatus(other.verdict.value):
                copy.validation_status = ValidationStatus(other.verdict.value)
                if copy.request_id is not None and copy.request_id != document.request_id:
                    reevaluate.add(copy.request_id)

        self.db.flush()
        if results:
            logger.info(
                f"Flagged {len(results)} earlier copies of document {document.id} as duplicates",
                extra={"org_id": document.org_id, "document_id": document.id},
            )

        for request_id in reevaluate:
            StatusTracker(self.db).reevaluate(request_id, actor="validation:duplicate", reason=f"duplicate of document {document.id}")

    def _download(self, document: Document) -> bytes:
        config = {}
        if document.storage_target_id is not None:
            target = self.db.get(StorageTarget, document.storage_target_id)
            if target is not None:
                config = target.config_json or {}

        adapter = self.storage.get(document.storage_provider, config)
        try:
            return adapter.download_file(document.storage_path)
        except StorageError as e:
            raise TransientProviderError(
                f"Could not download document {document.id}: {e.message}",
                {"storage_provider": document.storage_provider, "storage_path": document.storage_path, **e.details},
            )

    def _extract_text(self, document: Document, content: bytes) -> str:
        try:
            return self.extractor.extract_text(content, document.mime_type, document.file_name) or ""
        except Exception as e:
            logger.warning(f"Text extraction failed for document {document.id}: {e}")
            return ""

    def _classify(self, text: str, hints: ClassificationHints) -> ClassificationOutput:
        can_read = bool(text.strip()) or (hints.mime_type or "").startswith(IMAGE_PREFIX)
        if self.classifier is None or not can_read:
            output = self.fallback_classifier.classify(text, hints)
            classification_calls_total.labels(provider=output.provider, status="succeeded").inc()
            return output
        return self.classifier.classify(text, hints)

    @staticmethod
    def _finish(execution: ValidationExecution, start_time: float, error: Optional[DocIntakeError] = None) -> float:
        duration = time.perf_counter() - start_time
        execution.finished_at = utcnow()
        execution.duration_ms = int(duration * 1000)
        if error is None:
            execution.status = ExecutionStatus.COMPLETED
        else:
            execution.status = ExecutionStatus.TIMEOUT if isinstance(error, ProviderTimeoutError) else ExecutionStatus.FAILED
            execution.error_summary = f"{error.__class__.__name__}: {error.message}"[:1000]
        return duration
