"""ValidationJob and DeadLetterEntry SQLAlchemy models

Durable queue rows for deferred validation and the dead-letter store for
jobs that exhausted the backoff schedule.
"""

import enum
from uuid import uuid4

from sqlalchemy import (
    Column, Text, Integer, DateTime, ForeignKey, Index, Uuid,
    Enum as SQLEnum, UniqueConstraint,
)

from .base import Base, PortableJSONB, utcnow, enum_values, iso


class JobStatus(str, enum.Enum):
    """Status values for ValidationJob

    State flow: queued → processing → succeeded | queued (backoff) |
    dead_lettered | failed (non-retryable auth error).
    """
    QUEUED = "queued"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    DEAD_LETTERED = "dead_lettered"


class ValidationJob(Base):
    __tablename__ = "validation_job"
    __table_args__ = (
        Index("ix_validation_job_status_next_attempt", "status", "next_attempt_at"),
        Index("ix_validation_job_document", "document_id"),
    )

    id = Column(Uuid, primary_key=True, default=uuid4)
    org_id = Column(Uuid, ForeignKey("org.id", ondelete="RESTRICT"), nullable=False)
    document_id = Column(Uuid, ForeignKey("document.id", ondelete="CASCADE"), nullable=False)
    attempt = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=6)
    status = Column(
        SQLEnum(JobStatus, name="validation_job_status", values_callable=enum_values),
        nullable=False,
        default=JobStatus.QUEUED,
    )
    trigger = Column(Text, nullable=False, default="system")
    triggered_by = Column(Text, nullable=True)
    next_attempt_at = Column(DateTime, nullable=False, default=utcnow)
    claimed_at = Column(DateTime, nullable=True)
    last_error = Column(Text, nullable=True)
    last_error_details = Column(PortableJSONB, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<ValidationJob(id={self.id}, status='{self.status}', attempt={self.attempt}/{self.max_attempts})>"

    def to_dict(self):
        return {
            "id": str(self.id),
            "org_id": str(self.org_id),
            "document_id": str(self.document_id),
            "attempt": self.attempt,
            "max_attempts": self.max_attempts,
            "status": self.status.value if isinstance(self.status, enum.Enum) else self.status,
            "trigger": self.trigger,
            "next_attempt_at": iso(self.next_attempt_at),
            "claimed_at": iso(self.claimed_at),
            "last_error": self.last_error,
            "last_error_details": self.last_error_details,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class DeadLetterEntry(Base):
    """Parked validation job awaiting manual inspection.

    job_id is unique so a job is dead-lettered at most once.
    """
    __tablename__ = "validation_dead_letter"
    __table_args__ = (
        UniqueConstraint("job_id", name="uq_validation_dead_letter_job"),
        Index("ix_validation_dead_letter_org_resolved", "org_id", "resolved_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid4)
    org_id = Column(Uuid, ForeignKey("org.id", ondelete="RESTRICT"), nullable=False)
    job_id = Column(Uuid, ForeignKey("validation_job.id", ondelete="CASCADE"), nullable=False)
    document_id = Column(Uuid, ForeignKey("document.id", ondelete="CASCADE"), nullable=False)
    final_attempt = Column(Integer, nullable=False)
    final_error = Column(Text, nullable=True)
    final_error_details = Column(PortableJSONB, nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    resolved_by = Column(Text, nullable=True)
    resolution_notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<DeadLetterEntry(job_id={self.job_id}, resolved={self.resolved_at is not None})>"

    def to_dict(self):
        return {
            "id": str(self.id),
            "job_id": str(self.job_id),
            "document_id": str(self.document_id),
            "final_attempt": self.final_attempt,
            "final_error": self.final_error,
            "final_error_details": self.final_error_details,
            "resolved_at": iso(self.resolved_at),
            "resolved_by": self.resolved_by,
            "resolution_notes": self.resolution_notes,
            "created_at": iso(self.created_at),
        }
