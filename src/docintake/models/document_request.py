"""DocumentRequest SQLAlchemy model

An outstanding request for documents addressed to an external party.
Status and document_count are written only by the StatusTracker.
"""

import enum
from uuid import uuid4

from sqlalchemy import Column, Text, Integer, Date, DateTime, ForeignKey, Index, Uuid, Enum as SQLEnum

from .base import Base, utcnow, enum_values, iso


class RequestStatus(str, enum.Enum):
    """Status values for DocumentRequest

    State flow: draft → pending → sent → received ⇄ verifying → completed,
    with expired reachable from any non-terminal state.
    """
    DRAFT = "draft"
    PENDING = "pending"
    SENT = "sent"
    RECEIVED = "received"
    VERIFYING = "verifying"
    COMPLETED = "completed"
    EXPIRED = "expired"


class DocumentRequest(Base):
    __tablename__ = "document_request"
    __table_args__ = (
        Index("ix_document_request_org_recipient_status", "org_id", "recipient_email", "status"),
        Index("ix_document_request_org_due", "org_id", "due_date"),
    )

    id = Column(Uuid, primary_key=True, default=uuid4)
    org_id = Column(Uuid, ForeignKey("org.id", ondelete="RESTRICT"), nullable=False)
    employee_id = Column(Uuid, ForeignKey("employee.id", ondelete="SET NULL"), nullable=True)
    recipient_email = Column(Text, nullable=False)
    subject = Column(Text, nullable=False)
    requested_document_type = Column(Text, nullable=True)
    due_date = Column(Date, nullable=True)
    expected_count = Column(Integer, nullable=False, default=1)
    status = Column(
        SQLEnum(RequestStatus, name="request_status", values_callable=enum_values),
        nullable=False,
        default=RequestStatus.PENDING,
    )
    document_count = Column(Integer, nullable=False, default=0)
    last_status_change_at = Column(DateTime, nullable=True)
    last_status_changed_by = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<DocumentRequest(id={self.id}, status='{self.status}', documents={self.document_count}/{self.expected_count})>"

    def to_dict(self):
        return {
            "id": str(self.id),
            "org_id": str(self.org_id),
            "employee_id": str(self.employee_id) if self.employee_id else None,
            "recipient_email": self.recipient_email,
            "subject": self.subject,
            "requested_document_type": self.requested_document_type,
            "due_date": iso(self.due_date),
            "expected_count": self.expected_count,
            "status": self.status.value if isinstance(self.status, enum.Enum) else self.status,
            "document_count": self.document_count,
            "last_status_change_at": iso(self.last_status_change_at),
            "last_status_changed_by": self.last_status_changed_by,
            "created_at": iso(self.created_at),
        }
