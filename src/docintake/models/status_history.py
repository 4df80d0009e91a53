"""StatusHistoryEntry SQLAlchemy model

Append-only log of DocumentRequest status transitions.
"""

from uuid import uuid4

from sqlalchemy import Column, Text, DateTime, ForeignKey, Index, Uuid

from .base import Base, PortableJSONB, utcnow, iso


class StatusHistoryEntry(Base):
    """One status transition of a DocumentRequest.

    Rows are never updated or deleted. metadata_json carries the evidence
    the transition was based on (document_count, expected_count).
    """
    __tablename__ = "request_status_history"
    __table_args__ = (
        Index("ix_request_status_history_request_created", "request_id", "created_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid4)
    org_id = Column(Uuid, ForeignKey("org.id", ondelete="RESTRICT"), nullable=False)
    request_id = Column(Uuid, ForeignKey("document_request.id", ondelete="RESTRICT"), nullable=False)
    old_status = Column(Text, nullable=True)
    new_status = Column(Text, nullable=False)
    actor = Column(Text, nullable=False)
    reason = Column(Text, nullable=True)
    metadata_json = Column(PortableJSONB, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<StatusHistoryEntry(request_id={self.request_id}, {self.old_status} -> {self.new_status})>"

    def to_dict(self):
        return {
            "id": str(self.id),
            "request_id": str(self.request_id),
            "old_status": self.old_status,
            "new_status": self.new_status,
            "actor": self.actor,
            "reason": self.reason,
            "metadata": self.metadata_json or {},
            "created_at": iso(self.created_at),
        }
