"""Renewal Reminder Scheduler

Documents with an expiry date get one reminder row per offset before expiry
(90, 60 and 30 days) plus one on the expiry date itself. A daily sweep sends
every due, unsent reminder through the notification port.

Rows are unique per (document_id, reminder_date); scheduling checks for an
existing row first, so re-validating a document never duplicates reminders.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from ...models.base import utcnow
from ...models.document import Document
from ...models.employee import Employee
from ...models.renewal_reminder import RenewalReminder
from ...observability.metrics import reminders_sent_total
from .ports import NotificationSenderPort

logger = logging.getLogger(__name__)

# (days before expiry, reminder_type)
REMINDER_OFFSETS = (
    (90, "90_days"),
    (60, "60_days"),
    (30, "30_days"),
    (0, "expired"),
)


@dataclass
class ReminderSweepStats:
    checked: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"checked": self.checked, "sent": self.sent, "failed": self.failed, "skipped": self.skipped}


def reminder_schedule(expiry_date: date, today: date) -> list[tuple[date, str]]:
    """Reminder dates for an expiry date.

    Dates already in the past are dropped, except the expiry-day reminder
    which is always kept so an already-expired document still notifies once.
    """
    schedule = []
    for days_before, reminder_type in REMINDER_OFFSETS:
        reminder_date = expiry_date - timedelta(days=days_before)
        if reminder_date < today and days_before != 0:
            continue
        schedule.append((reminder_date, reminder_type))
    return schedule


def compose_message(reminder: RenewalReminder, document: Optional[Document], today: date) -> tuple[str, str]:
    name = document.file_name if document else "your document"
    days_left = (reminder.expiry_date - today).days
    if days_left <= 0:
        subject = f"Document expired: {name}"
        body = (
            f"The document {name} expired on {reminder.expiry_date.isoformat()}. "
            f"Please submit a renewed copy."
        )
    else:
        subject = f"Document expires in {days_left} days: {name}"
        body = (
            f"The document {name} expires on {reminder.expiry_date.isoformat()} "
            f"({days_left} days from now). Please arrange a renewal."
        )
    return subject, body


class ReminderService:
    """Schedules and sends renewal reminders."""

    def __init__(self, db: Session, sender: Optional[NotificationSenderPort] = None):
        self.db = db
        self.sender = sender

    def schedule(
        self,
        document: Document,
        expiry_date: date,
        employee_id: Optional[UUID] = None,
        today: Optional[date] = None,
    ) -> list[RenewalReminder]:
        """Insert the missing reminder rows for a document.

        Returns:
            Newly created reminders (empty when all already exist)
        """
        today = today or utcnow().date()
        existing = {
            r.reminder_date
            for r in self.db.query(RenewalReminder).filter(RenewalReminder.document_id == document.id).all()
        }

        created = []
        for reminder_date, reminder_type in reminder_schedule(expiry_date, today):
            if reminder_date in existing:
                continue
            reminder = RenewalReminder(
                org_id=document.org_id,
                document_id=document.id,
                employee_id=employee_id,
                expiry_date=expiry_date,
                reminder_date=reminder_date,
                reminder_type=reminder_type,
                sent=False,
            )
            self.db.add(reminder)
            created.append(reminder)

        if created:
            self.db.flush()
            logger.info(
                f"Scheduled {len(created)} renewal reminders for document {document.id} (expires {expiry_date})",
                extra={"org_id": document.org_id, "document_id": document.id},
            )
        return created

    def send_due(self, today: Optional[date] = None, org_id: Optional[UUID] = None) -> ReminderSweepStats:
        """Send every unsent reminder whose date has arrived.

        A failure is counted and logged; the reminder stays unsent for the
        next sweep and the remaining reminders are still processed.
        """
        if self.sender is None:
            raise ValueError("ReminderService.send_due requires a notification sender")

        today = today or utcnow().date()
        stats = ReminderSweepStats()

        query = self.db.query(RenewalReminder).filter(
            RenewalReminder.sent.is_(False),
            RenewalReminder.reminder_date <= today,
        )
        if org_id is not None:
            query = query.filter(RenewalReminder.org_id == org_id)

        for reminder in query.order_by(RenewalReminder.reminder_date.asc()).all():
            stats.checked += 1
            document = self.db.get(Document, reminder.document_id)
            recipient = self._resolve_recipient(reminder, document)
            if not recipient:
                stats.skipped += 1
                logger.warning(f"No recipient for reminder {reminder.id}, skipping", extra={"reminder_id": reminder.id})
                continue

            subject, body = compose_message(reminder, document, today)
            try:
                self.sender.send(recipient, subject, body)
            except Exception as e:
                stats.failed += 1
                stats.errors.append(f"{reminder.id}: {e}")
                reminders_sent_total.labels(reminder_type=reminder.reminder_type, status="failed").inc()
                logger.error(
                    f"Failed to send reminder {reminder.id} to {recipient}: {e}",
                    extra={"reminder_id": reminder.id, "org_id": reminder.org_id},
                )
                continue

            reminder.sent = True
            reminder.sent_at = utcnow()
            self.db.flush()
            stats.sent += 1
            reminders_sent_total.labels(reminder_type=reminder.reminder_type, status="sent").inc()

        logger.info(f"Reminder sweep for {today.isoformat()}: {stats.to_dict()}")
        return stats

    def _resolve_recipient(self, reminder: RenewalReminder, document: Optional[Document]) -> Optional[str]:
        if reminder.employee_id is not None:
            employee = self.db.get(Employee, reminder.employee_id)
            if employee is not None and employee.email:
                return employee.email
        if document is not None and document.sender_email:
            return document.sender_email
        return None
