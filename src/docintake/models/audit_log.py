"""AuditLog SQLAlchemy model

Records heuristic decisions and operator actions (ambiguous correlations,
status corrections, dead-letter resolution, provider auth alerts).
"""

from uuid import uuid4

from sqlalchemy import Column, Text, DateTime, ForeignKey, Index, Uuid

from .base import Base, PortableJSONB, utcnow, iso


class AuditLog(Base):
    __tablename__ = "audit_log"
    __table_args__ = (
        Index("ix_audit_log_org_created", "org_id", "created_at"),
        Index("ix_audit_log_org_action", "org_id", "action"),
    )

    id = Column(Uuid, primary_key=True, default=uuid4)
    org_id = Column(Uuid, ForeignKey("org.id", ondelete="RESTRICT"), nullable=False)
    actor = Column(Text, nullable=False, default="system")
    action = Column(Text, nullable=False)
    entity_type = Column(Text, nullable=True)
    entity_id = Column(Uuid, nullable=True)
    metadata_json = Column(PortableJSONB, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<AuditLog(action='{self.action}', entity_type='{self.entity_type}')>"

    def to_dict(self):
        return {
            "id": str(self.id),
            "org_id": str(self.org_id),
            "actor": self.actor,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "metadata": self.metadata_json or {},
            "created_at": iso(self.created_at),
        }
