"""RoutingRule SQLAlchemy model

Sender/subject pattern plus storage target and folder template.
"""

from uuid import uuid4

from sqlalchemy import Column, Text, Integer, Boolean, DateTime, ForeignKey, Index, Uuid

from .base import Base, utcnow, iso


class RoutingRule(Base):
    """Routing rule for inbound documents.

    sender_pattern is a glob ("*@acme.com") or a regex wrapped in slashes
    ("/^hr-.*@acme\\.com$/"). subject_pattern is a case-insensitive regex
    tested against the normalized subject. A NULL pattern matches anything.
    Higher priority wins; created_at breaks ties.
    """
    __tablename__ = "routing_rule"
    __table_args__ = (
        Index("ix_routing_rule_org_active_priority", "org_id", "is_active", "priority"),
    )

    id = Column(Uuid, primary_key=True, default=uuid4)
    org_id = Column(Uuid, ForeignKey("org.id", ondelete="RESTRICT"), nullable=False)
    name = Column(Text, nullable=False)
    sender_pattern = Column(Text, nullable=True)
    subject_pattern = Column(Text, nullable=True)
    priority = Column(Integer, nullable=False, default=0)
    storage_target_id = Column(Uuid, ForeignKey("storage_target.id", ondelete="RESTRICT"), nullable=False)
    folder_template = Column(Text, nullable=False, default="{year}/{month}")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<RoutingRule(id={self.id}, name='{self.name}', priority={self.priority})>"

    def to_dict(self):
        return {
            "id": str(self.id),
            "org_id": str(self.org_id),
            "name": self.name,
            "sender_pattern": self.sender_pattern,
            "subject_pattern": self.subject_pattern,
            "priority": self.priority,
            "storage_target_id": str(self.storage_target_id),
            "folder_template": self.folder_template,
            "is_active": self.is_active,
            "created_at": iso(self.created_at),
        }
