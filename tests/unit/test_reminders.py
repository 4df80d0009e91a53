"""Unit tests for renewal reminder scheduling and the send sweep"""

from datetime import date, timedelta

import pytest

from docintake.domain.reminders.service import ReminderService, compose_message, reminder_schedule
from docintake.models import RenewalReminder

TODAY = date(2025, 1, 1)


class TestReminderSchedule:
    def test_all_offsets_in_future(self):
        """Test a distant expiry yields 90/60/30/0 day reminders"""
        expiry = TODAY + timedelta(days=200)

        assert reminder_schedule(expiry, TODAY) == [
            (expiry - timedelta(days=90), "90_days"),
            (expiry - timedelta(days=60), "60_days"),
            (expiry - timedelta(days=30), "30_days"),
            (expiry, "expired"),
        ]

    def test_past_dates_dropped(self):
        """Test reminder dates already passed are skipped"""
        expiry = TODAY + timedelta(days=45)

        assert [t for _, t in reminder_schedule(expiry, TODAY)] == ["30_days", "expired"]

    def test_expired_document_keeps_expiry_reminder(self):
        """Test an already expired document still gets the expiry-day reminder"""
        expiry = TODAY - timedelta(days=10)

        assert reminder_schedule(expiry, TODAY) == [(expiry, "expired")]


class TestComposeMessage:
    def test_upcoming_expiry(self):
        """Test the message counts days left"""
        reminder = RenewalReminder(expiry_date=TODAY + timedelta(days=30), reminder_type="30_days")

        subject, body = compose_message(reminder, None, TODAY)

        assert subject == "Document expires in 30 days: your document"
        assert "Please arrange a renewal" in body

    def test_expired(self):
        """Test the message for an expired document"""
        reminder = RenewalReminder(expiry_date=TODAY, reminder_type="expired")

        subject, _ = compose_message(reminder, None, TODAY)

        assert subject.startswith("Document expired")


class TestReminderService:
    """Scheduling and sweeping against the database"""

    def test_schedule_is_idempotent(self, db_session, make_document, employee):
        """Test scheduling twice does not duplicate reminders"""
        document = make_document()
        service = ReminderService(db_session)
        expiry = TODAY + timedelta(days=365)

        created = service.schedule(document, expiry, employee_id=employee.id, today=TODAY)
        again = service.schedule(document, expiry, employee_id=employee.id, today=TODAY)

        assert len(created) == 4
        assert again == []
        assert db_session.query(RenewalReminder).count() == 4

    def test_send_due_marks_sent(self, db_session, make_document, employee, notifier):
        """Test due reminders are sent to the employee and marked sent"""
        document = make_document()
        service = ReminderService(db_session, sender=notifier)
        expiry = TODAY + timedelta(days=100)
        service.schedule(document, expiry, employee_id=employee.id, today=TODAY)

        stats = service.send_due(today=expiry - timedelta(days=60))

        assert stats.checked == 2
        assert stats.sent == 2
        assert [r for r, _, _ in notifier.sent] == ["jane.doe@acme.com", "jane.doe@acme.com"]
        assert db_session.query(RenewalReminder).filter_by(sent=True).count() == 2

    def test_sender_email_used_without_employee(self, db_session, make_document, notifier):
        """Test the document sender receives reminders when no employee is known"""
        document = make_document(sender_email="scanner@printshop.com")
        service = ReminderService(db_session, sender=notifier)
        service.schedule(document, TODAY, today=TODAY)

        service.send_due(today=TODAY)

        assert notifier.sent[0][0] == "scanner@printshop.com"

    def test_missing_recipient_skipped(self, db_session, make_document, notifier):
        """Test reminders without any recipient are skipped"""
        document = make_document(sender_email=None)
        service = ReminderService(db_session, sender=notifier)
        service.schedule(document, TODAY, today=TODAY)

        stats = service.send_due(today=TODAY)

        assert stats.skipped == 1
        assert notifier.sent == []

    def test_failure_leaves_reminder_unsent(self, db_session, make_document, employee, notifier):
        """Test a failed send is counted and retried by the next sweep"""
        notifier.fail_for = {"jane.doe@acme.com"}
        document = make_document()
        service = ReminderService(db_session, sender=notifier)
        service.schedule(document, TODAY, employee_id=employee.id, today=TODAY)

        stats = service.send_due(today=TODAY)

        assert stats.failed == 1
        assert len(stats.errors) == 1
        assert db_session.query(RenewalReminder).filter_by(sent=False).count() == 1

    def test_send_requires_sender(self, db_session):
        """Test the sweep needs a notification sender"""
        with pytest.raises(ValueError):
            ReminderService(db_session).send_due(today=TODAY)
