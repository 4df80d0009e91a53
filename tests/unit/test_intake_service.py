"""Unit tests for the intake service"""

from datetime import datetime

import pytest

from docintake.domain.intake.cursor import advance_cursor
from docintake.domain.intake.ports import EmailAttachment, EmailMessage, EmailSourcePort, FetchResult
from docintake.domain.intake.service import IntakeService
from docintake.errors import AuthError, TransientProviderError
from docintake.models import (
    AuditLog,
    Document,
    EmailAccount,
    JobStatus,
    RequestStatus,
    RoutingRule,
    ValidationJob,
    ValidationStatus,
)

PDF_BYTES = b"%PDF-1.4\n%%EOF"

RECEIVED_AT = datetime(2025, 3, 1, 8, 30)


class FakeMailbox(EmailSourcePort):
    def __init__(self, messages=None, cursor=None, error=None):
        self.messages = messages or []
        self.cursor = cursor
        self.error = error
        self.cursors_seen = []

    def fetch_new(self, cursor):
        self.cursors_seen.append(cursor)
        if self.error is not None:
            raise self.error
        return FetchResult(messages=self.messages, cursor=self.cursor)


def passport_message(sender="jane.doe@acme.com", subject="Re: Passport copy for onboarding", attachments=None):
    return EmailMessage(
        from_address=sender,
        from_name="Jane Doe",
        subject=subject,
        attachments=attachments if attachments is not None else [
            EmailAttachment("passport.pdf", PDF_BYTES, "application/pdf"),
        ],
        received_at=RECEIVED_AT,
        message_id="<msg-1@acme.com>",
    )


@pytest.fixture
def intake(db_session, storage_registry, pipeline, queue):
    return IntakeService(db_session, storage_registry, pipeline=pipeline, queue=queue)


@pytest.fixture
def inline_intake(db_session, storage_registry, pipeline, queue):
    return IntakeService(db_session, storage_registry, pipeline=pipeline, queue=queue, validate_inline=True)


class TestProcessMessage:
    """Correlate, route, store and hand off to validation"""

    def test_reply_stored_and_queued(self, db_session, intake, org, document_request, memory_storage):
        """Test a reply to an open request is stored, linked and queued"""
        result = intake.process_message(org.id, passport_message())

        assert result.correlation.request_id == document_request.id
        assert result.routing.matched is False
        assert result.routing.folder_path == "2025/03/2025-03-01"
        assert result.enqueued == 1
        assert result.validated == 0

        document = result.documents[0]
        assert document.request_id == document_request.id
        assert document.validation_status == ValidationStatus.PENDING
        assert memory_storage.files[document.storage_path] == PDF_BYTES

        db_session.refresh(document_request)
        assert document_request.status == RequestStatus.VERIFYING
        assert document_request.document_count == 1
        job = db_session.query(ValidationJob).one()
        assert job.document_id == document.id
        assert job.status == JobStatus.QUEUED

    def test_inline_validation_completes_request(self, db_session, inline_intake, org, document_request):
        """Test inline validation verifies the document right away"""
        result = inline_intake.process_message(org.id, passport_message())

        assert result.validated == 1
        assert result.enqueued == 0
        db_session.refresh(document_request)
        assert document_request.status == RequestStatus.COMPLETED

    def test_inline_failure_falls_back_to_queue(self, db_session, inline_intake, classifier, org, document_request):
        """Test a retryable inline failure keeps the upload and queues it"""
        classifier.outputs = [TransientProviderError("provider unavailable")]

        result = inline_intake.process_message(org.id, passport_message())

        assert result.validated == 0
        assert result.enqueued == 1
        assert db_session.query(Document).count() == 1

    def test_routing_rule_applied(self, db_session, intake, org, employee, storage_target, document_request):
        """Test a matching rule picks the target and folder template"""
        rule = RoutingRule(
            org_id=org.id,
            name="HR",
            sender_pattern="*@acme.com",
            storage_target_id=storage_target.id,
            folder_template="employees/{employee_name}/{year}",
        )
        db_session.add(rule)
        db_session.commit()

        result = intake.process_message(org.id, passport_message())

        assert result.routing.rule_id == rule.id
        assert result.routing.folder_path == "employees/Jane Doe/2025"
        assert result.documents[0].routing_rule_id == rule.id
        assert result.documents[0].storage_target_id == storage_target.id

    def test_unlinked_message(self, db_session, intake, org, document_request):
        """Test a message from an unknown sender is stored without a request"""
        result = intake.process_message(org.id, passport_message(sender="someone@else.com"))

        assert result.correlation.linked is False
        assert result.documents[0].request_id is None
        db_session.refresh(document_request)
        assert document_request.status == RequestStatus.SENT

    def test_multiple_attachments(self, intake, org, document_request):
        """Test every attachment becomes its own document"""
        message = passport_message(attachments=[
            EmailAttachment("passport.pdf", PDF_BYTES, "application/pdf"),
            EmailAttachment("passport.pdf", PDF_BYTES + b" ", "application/pdf"),
        ])

        result = intake.process_message(org.id, message)

        assert len(result.documents) == 2
        assert result.documents[0].storage_path != result.documents[1].storage_path
        assert result.enqueued == 2

    def test_no_attachments(self, intake, org, document_request):
        """Test a message without attachments stores nothing"""
        result = intake.process_message(org.id, passport_message(attachments=[]))

        assert result.documents == []
        assert result.enqueued == 0


class TestPollAccount:
    @pytest.fixture
    def account(self, db_session, org):
        account = EmailAccount(org_id=org.id, provider="imap", address="hr@acme.com")
        db_session.add(account)
        db_session.commit()
        return account

    def test_cursor_advanced_after_batch(self, db_session, intake, account, document_request):
        """Test the stored cursor moves once the batch is processed"""
        mailbox = FakeMailbox(messages=[passport_message()], cursor="uid:42")

        poll = intake.poll_account(account, mailbox)

        assert poll.messages == 1
        assert poll.documents == 1
        assert poll.cursor_advanced is True
        db_session.refresh(account)
        assert account.last_cursor == "uid:42"
        assert account.last_polled_at is not None
        assert mailbox.cursors_seen == [None]

    def test_next_poll_uses_stored_cursor(self, db_session, intake, account):
        """Test the next fetch starts from the persisted cursor"""
        intake.poll_account(account, FakeMailbox(cursor="uid:42"))
        mailbox = FakeMailbox(cursor="uid:42")

        poll = intake.poll_account(account, mailbox)

        assert mailbox.cursors_seen == ["uid:42"]
        assert poll.cursor_advanced is False

    def test_auth_error_recorded(self, db_session, intake, account):
        """Test rejected mailbox credentials are recorded and re-raised"""
        mailbox = FakeMailbox(error=AuthError("token expired"))

        with pytest.raises(AuthError):
            intake.poll_account(account, mailbox)

        db_session.refresh(account)
        assert account.auth_error == "token expired"
        assert account.last_cursor is None
        alert = db_session.query(AuditLog).filter_by(action="account.auth_error").one()
        assert alert.entity_id == account.id


class TestAdvanceCursor:
    @pytest.fixture
    def account(self, db_session, org):
        account = EmailAccount(org_id=org.id, provider="imap", address="hr@acme.com", last_cursor="uid:10")
        db_session.add(account)
        db_session.commit()
        return account

    def test_advance_from_expected(self, db_session, account):
        """Test the cursor moves when the stored value is the one read"""
        assert advance_cursor(db_session, account.id, "uid:10", "uid:20") is True

        db_session.expire_all()
        assert db_session.get(EmailAccount, account.id).last_cursor == "uid:20"

    def test_stale_write_dropped(self, db_session, account):
        """Test a poller holding an outdated cursor does not overwrite a newer one"""
        advance_cursor(db_session, account.id, "uid:10", "uid:30")

        assert advance_cursor(db_session, account.id, "uid:10", "uid:20") is False

        db_session.expire_all()
        assert db_session.get(EmailAccount, account.id).last_cursor == "uid:30"
