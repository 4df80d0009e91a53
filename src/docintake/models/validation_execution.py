"""ValidationExecution SQLAlchemy model

Audit record of every validation attempt, inline or queued, successful or
not. Also backs the manual-trigger rate limit (count of recent manual rows).
"""

import enum
from uuid import uuid4

from sqlalchemy import Column, Text, Integer, DateTime, ForeignKey, Index, Uuid, Enum as SQLEnum

from .base import Base, utcnow, enum_values, iso


class ExecutionStatus(str, enum.Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMEOUT = "timeout"


class ExecutionTrigger(str, enum.Enum):
    SYSTEM = "system"
    MANUAL = "manual"
    QUEUE = "queue"


class ValidationExecution(Base):
    __tablename__ = "validation_execution"
    __table_args__ = (
        Index("ix_validation_execution_document_trigger_started", "document_id", "trigger", "started_at"),
        Index("ix_validation_execution_job", "job_id"),
    )

    id = Column(Uuid, primary_key=True, default=uuid4)
    org_id = Column(Uuid, ForeignKey("org.id", ondelete="RESTRICT"), nullable=False)
    document_id = Column(Uuid, ForeignKey("document.id", ondelete="CASCADE"), nullable=False)
    job_id = Column(Uuid, ForeignKey("validation_job.id", ondelete="SET NULL"), nullable=True)
    trigger = Column(
        SQLEnum(ExecutionTrigger, name="execution_trigger", values_callable=enum_values),
        nullable=False,
    )
    triggered_by = Column(Text, nullable=True)
    attempt = Column(Integer, nullable=True)
    status = Column(
        SQLEnum(ExecutionStatus, name="execution_status", values_callable=enum_values),
        nullable=False,
        default=ExecutionStatus.RUNNING,
    )
    started_at = Column(DateTime, nullable=False, default=utcnow)
    finished_at = Column(DateTime, nullable=True)
    duration_ms = Column(Integer, nullable=True)
    model = Column(Text, nullable=True)
    prompt_version = Column(Text, nullable=True)
    tokens_in = Column(Integer, nullable=True)
    tokens_out = Column(Integer, nullable=True)
    cost_micros = Column(Integer, nullable=True)  # 1 micro = 0.000001 USD
    verdict = Column(Text, nullable=True)
    error_summary = Column(Text, nullable=True)

    def __repr__(self):
        return f"<ValidationExecution(document_id={self.document_id}, trigger='{self.trigger}', status='{self.status}')>"

    def to_dict(self):
        return {
            "id": str(self.id),
            "document_id": str(self.document_id),
            "job_id": str(self.job_id) if self.job_id else None,
            "trigger": self.trigger.value if isinstance(self.trigger, enum.Enum) else self.trigger,
            "triggered_by": self.triggered_by,
            "attempt": self.attempt,
            "status": self.status.value if isinstance(self.status, enum.Enum) else self.status,
            "started_at": iso(self.started_at),
            "finished_at": iso(self.finished_at),
            "duration_ms": self.duration_ms,
            "model": self.model,
            "prompt_version": self.prompt_version,
            "tokens_in": self.tokens_in,
            "tokens_out": self.tokens_out,
            "cost_micros": self.cost_micros,
            "verdict": self.verdict,
            "error_summary": self.error_summary,
        }
