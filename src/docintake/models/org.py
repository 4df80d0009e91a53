"""Org SQLAlchemy model

Organization (tenant) owning requests, documents, rules and employees.
"""

from uuid import uuid4

from sqlalchemy import Column, Text, DateTime, Uuid

from .base import Base, PortableJSONB, utcnow, iso


class Org(Base):
    """Organization with per-tenant settings.

    settings_json holds overrides such as:
        {"auto_approval": {"min_owner_confidence": 0.95, "allow_expired": false},
         "validation": {"rate_limit": {"max_requests": 5, "window_seconds": 60},
                        "strict_duplicates": true,
                        "expiry_horizon_days": 60}}
    """
    __tablename__ = "org"

    id = Column(Uuid, primary_key=True, default=uuid4)
    name = Column(Text, nullable=False)
    slug = Column(Text, nullable=False, unique=True)
    settings_json = Column(PortableJSONB, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<Org(id={self.id}, slug='{self.slug}')>"

    def to_dict(self):
        return {
            "id": str(self.id),
            "name": self.name,
            "slug": self.slug,
            "settings": self.settings_json or {},
            "created_at": iso(self.created_at),
        }
