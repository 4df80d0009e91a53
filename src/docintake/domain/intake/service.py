"""Intake Service

Turns one parsed inbound message into stored Documents:

    correlate (sender, subject) → route (storage target, folder)
    → upload each attachment → persist Document rows → re-drive tracker
    → commit → validate inline or enqueue

Documents are committed before validation starts, so a validation failure
never loses an upload. Inline validation that fails with a retryable error
falls back to the resilience queue.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...audit.service import log_audit_event
from ...errors import AuthError, DocIntakeError
from ...models.base import utcnow
from ...models.document import Document, ValidationStatus
from ...models.document_request import DocumentRequest
from ...models.email_account import EmailAccount
from ...models.employee import Employee
from ...models.validation_execution import ExecutionTrigger
from ...observability.metrics import documents_ingested_total
from ..correlation.service import CorrelationResult, RequestCorrelator
from ..queue.service import ValidationQueue
from ..requests.tracker import StatusTracker
from ..routing.matcher import RoutingDecision, RoutingMatcher
from ..storage.registry import StorageRegistry
from ..validation.pipeline import ValidationPipeline
from .cursor import advance_cursor
from .ports import EmailMessage, EmailSourcePort

logger = logging.getLogger(__name__)


@dataclass
class IntakeResult:
    routing: RoutingDecision
    correlation: CorrelationResult
    documents: list[Document] = field(default_factory=list)
    validated: int = 0
    enqueued: int = 0

    def to_dict(self) -> dict:
        return {
            "request_id": str(self.correlation.request_id) if self.correlation.request_id else None,
            "ambiguous": self.correlation.ambiguous,
            "routing_rule_id": str(self.routing.rule_id) if self.routing.rule_id else None,
            "routed_by_rule": self.routing.matched,
            "folder_path": self.routing.folder_path,
            "document_ids": [str(d.id) for d in self.documents],
            "validated": self.validated,
            "enqueued": self.enqueued,
        }


@dataclass
class PollResult:
    messages: int = 0
    documents: int = 0
    cursor_advanced: bool = False


class IntakeService:
    """Stores inbound documents and hands them to validation.

    Example:
        service = IntakeService(db, storage_registry, pipeline=pipeline, queue=queue, validate_inline=True)
        result = service.process_message(org_id, message)
    """

    def __init__(
        self,
        db: Session,
        storage: StorageRegistry,
        pipeline: Optional[ValidationPipeline] = None,
        queue: Optional[ValidationQueue] = None,
        validate_inline: bool = False,
    ):
        self.db = db
        self.storage = storage
        self.pipeline = pipeline
        self.queue = queue
        self.validate_inline = validate_inline

    def process_message(self, org_id: UUID, message: EmailMessage) -> IntakeResult:
        """Store a message's attachments and start their validation.

        Args:
            org_id: Organization UUID
            message: Parsed inbound message

        Returns:
            IntakeResult with the stored documents

        Raises:
            TransientProviderError: Storage provider unavailable (message should be retried)
            AuthError: Storage credentials rejected
        """
        received_at = message.received_at or utcnow()
        log_extra = {"org_id": org_id}

        correlation = RequestCorrelator(self.db).correlate(org_id, message.from_address, message.subject)
        request = correlation.request
        employee = self._resolve_employee(org_id, message.from_address, request)

        routing = RoutingMatcher(self.db).match(
            org_id,
            message.from_address,
            message.subject,
            employee=employee,
            request_id=correlation.request_id,
            received_at=received_at,
            sender_name=message.from_name,
        )
        result = IntakeResult(routing=routing, correlation=correlation)

        if not message.attachments:
            logger.info(f"Message {message.message_id or '-'} from {message.from_address} has no attachments", extra=log_extra)
            return result

        adapter = self.storage.get(routing.provider, routing.storage_config)
        for attachment in message.attachments:
            stored = adapter.upload_file(
                attachment.content,
                attachment.filename,
                routing.folder_path,
                {"mime_type": attachment.mime_type, "sender": message.from_address},
            )
            document = Document(
                org_id=org_id,
                request_id=correlation.request_id,
                routing_rule_id=routing.rule_id,
                storage_target_id=routing.storage_target_id,
                storage_provider=routing.provider,
                storage_path=stored.path,
                file_name=attachment.filename,
                mime_type=attachment.mime_type,
                size_bytes=stored.size_bytes,
                sha256=stored.sha256,
                sender_email=message.from_address,
                subject=message.subject,
                validation_status=ValidationStatus.PENDING,
                received_at=received_at,
            )
            self.db.add(document)
            result.documents.append(document)
            documents_ingested_total.labels(
                provider=routing.provider,
                routing="rule" if routing.matched else "fallback",
            ).inc()

        self.db.flush()
        logger.info(
            f"Stored {len(result.documents)} documents from {message.from_address} "
            f"in {routing.provider}:{routing.folder_path} (request={correlation.request_id or 'unlinked'})",
            extra=log_extra,
        )

        if correlation.request_id is not None:
            StatusTracker(self.db).reevaluate(
                correlation.request_id,
                actor="intake",
                reason=f"{len(result.documents)} document(s) received",
            )

        self.db.commit()

        for document in result.documents:
            self._start_validation(document, result)

        return result

    def poll_account(self, account: EmailAccount, source: EmailSourcePort) -> PollResult:
        """Fetch new messages for a mailbox, process them and advance its cursor.

        An AuthError from the mailbox is recorded on the account and raised
        as an account-level alert; the cursor does not move.
        """
        poll = PollResult()
        expected = account.last_cursor
        try:
            batch = source.fetch_new(expected)
        except AuthError as e:
            account.auth_error = e.message
            log_audit_event(
                self.db,
                org_id=account.org_id,
                action="account.auth_error",
                entity_type="email_account",
                entity_id=account.id,
                metadata=e.to_dict(),
            )
            self.db.commit()
            logger.error(
                f"Email account {account.address} needs re-authorization: {e.message}",
                extra={"org_id": account.org_id},
            )
            raise

        for message in batch.messages:
            result = self.process_message(account.org_id, message)
            poll.messages += 1
            poll.documents += len(result.documents)

        if batch.cursor != expected:
            poll.cursor_advanced = advance_cursor(self.db, account.id, expected, batch.cursor)
        account.auth_error = None
        self.db.commit()
        return poll

    def _resolve_employee(self, org_id: UUID, sender: str, request: Optional[DocumentRequest]) -> Optional[Employee]:
        if request is not None and request.employee_id is not None:
            return self.db.get(Employee, request.employee_id)
        return (
            self.db.query(Employee)
            .filter(
                Employee.org_id == org_id,
                func.lower(Employee.email) == (sender or "").strip().lower(),
                Employee.is_active.is_(True),
            )
            .first()
        )

    def _start_validation(self, document: Document, result: IntakeResult) -> None:
        if self.validate_inline and self.pipeline is not None:
            try:
                self.pipeline.validate(document.id, trigger=ExecutionTrigger.SYSTEM, triggered_by="intake")
                self.db.commit()
                result.validated += 1
                return
            except AuthError as e:
                # Queue applies the auth-error handling (job failed, alert)
                logger.error(f"Inline validation of document {document.id} hit an auth error: {e.message}")
            except DocIntakeError as e:
                logger.warning(f"Inline validation of document {document.id} failed, queueing for retry: {e.message}")
            self.db.commit()

        if self.queue is None:
            logger.warning(f"No validation queue configured; document {document.id} stays pending")
            return
        self.queue.enqueue(document.org_id, document.id, trigger="system", triggered_by="intake")
        self.db.commit()
        result.enqueued += 1
