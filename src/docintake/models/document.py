"""Document SQLAlchemy model

Document represents a stored inbound attachment. It tracks where the file
lives, which request it answers (if any) and its latest validation verdict.
"""

import enum
from uuid import uuid4

from sqlalchemy import Column, Text, BigInteger, DateTime, ForeignKey, Index, Uuid, Enum as SQLEnum

from .base import Base, utcnow, enum_values, iso


class ValidationStatus(str, enum.Enum):
    """Validation status of a Document

    PENDING until the first validation completes, then mirrors the verdict
    of the latest ValidationResult.
    """
    PENDING = "pending"
    VERIFIED = "verified"
    NEEDS_REVIEW = "needs_review"
    REJECTED = "rejected"


class Document(Base):
    """Document model representing stored attachments.

    The link to DocumentRequest is one-directional: request aggregates are
    recomputed from these rows. Only validation_status and request_id change
    after the row is written. sha256 is indexed per org for duplicate lookups.
    """
    __tablename__ = "document"
    __table_args__ = (
        Index("ix_document_org_id", "org_id"),
        Index("ix_document_org_sha256", "org_id", "sha256"),
        Index("ix_document_request_id", "request_id"),
    )

    id = Column(Uuid, primary_key=True, default=uuid4)
    org_id = Column(Uuid, ForeignKey("org.id", ondelete="RESTRICT"), nullable=False)
    request_id = Column(Uuid, ForeignKey("document_request.id", ondelete="SET NULL"), nullable=True)
    routing_rule_id = Column(Uuid, ForeignKey("routing_rule.id", ondelete="SET NULL"), nullable=True)
    storage_target_id = Column(Uuid, ForeignKey("storage_target.id", ondelete="SET NULL"), nullable=True)
    storage_provider = Column(Text, nullable=False)
    storage_path = Column(Text, nullable=False)
    file_name = Column(Text, nullable=False)
    mime_type = Column(Text, nullable=False)
    size_bytes = Column(BigInteger, nullable=False)
    sha256 = Column(Text, nullable=False)  # hex string
    sender_email = Column(Text, nullable=True)
    subject = Column(Text, nullable=True)
    validation_status = Column(
        SQLEnum(ValidationStatus, name="validation_status", values_callable=enum_values),
        nullable=False,
        default=ValidationStatus.PENDING,
    )
    received_at = Column(DateTime, nullable=False, default=utcnow)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<Document(id={self.id}, file_name='{self.file_name}', validation_status='{self.validation_status}')>"

    def to_dict(self):
        """Convert document to dictionary representation"""
        return {
            "id": str(self.id),
            "org_id": str(self.org_id),
            "request_id": str(self.request_id) if self.request_id else None,
            "routing_rule_id": str(self.routing_rule_id) if self.routing_rule_id else None,
            "storage_target_id": str(self.storage_target_id) if self.storage_target_id else None,
            "storage_provider": self.storage_provider,
            "storage_path": self.storage_path,
            "file_name": self.file_name,
            "mime_type": self.mime_type,
            "size_bytes": self.size_bytes,
            "sha256": self.sha256,
            "sender_email": self.sender_email,
            "validation_status": self.validation_status.value if isinstance(self.validation_status, enum.Enum) else self.validation_status,
            "received_at": iso(self.received_at),
            "created_at": iso(self.created_at),
        }
