"""RenewalReminder SQLAlchemy model

Reminder rows derived from a document's expiry date. Unique per
(document_id, reminder_date) so re-validation never duplicates them.
"""

from uuid import uuid4

from sqlalchemy import Column, Text, Boolean, Date, DateTime, ForeignKey, Index, Uuid, UniqueConstraint

from .base import Base, utcnow, iso


class RenewalReminder(Base):
    __tablename__ = "renewal_reminder"
    __table_args__ = (
        UniqueConstraint("document_id", "reminder_date", name="uq_renewal_reminder_document_date"),
        Index("ix_renewal_reminder_due", "sent", "reminder_date"),
    )

    id = Column(Uuid, primary_key=True, default=uuid4)
    org_id = Column(Uuid, ForeignKey("org.id", ondelete="RESTRICT"), nullable=False)
    document_id = Column(Uuid, ForeignKey("document.id", ondelete="CASCADE"), nullable=False)
    employee_id = Column(Uuid, ForeignKey("employee.id", ondelete="SET NULL"), nullable=True)
    expiry_date = Column(Date, nullable=False)
    reminder_date = Column(Date, nullable=False)
    reminder_type = Column(Text, nullable=False)  # 90_days|60_days|30_days|expired
    sent = Column(Boolean, nullable=False, default=False)
    sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<RenewalReminder(document_id={self.document_id}, date={self.reminder_date}, sent={self.sent})>"

    def to_dict(self):
        return {
            "id": str(self.id),
            "document_id": str(self.document_id),
            "employee_id": str(self.employee_id) if self.employee_id else None,
            "expiry_date": iso(self.expiry_date),
            "reminder_date": iso(self.reminder_date),
            "reminder_type": self.reminder_type,
            "sent": self.sent,
            "sent_at": iso(self.sent_at),
        }
