"""StorageTarget SQLAlchemy model

A configured storage destination (local directory, S3 bucket, drive account)
that routing rules point at.
"""

from uuid import uuid4

from sqlalchemy import Column, Text, Boolean, DateTime, ForeignKey, Index, Uuid

from .base import Base, PortableJSONB, utcnow, iso


class StorageTarget(Base):
    """Storage destination keyed by provider discriminator.

    provider is one of the names registered in StorageRegistry
    ("local", "s3", "drive"). config_json carries provider options such as
    a bucket or base folder. At most one target per org is the default.
    """
    __tablename__ = "storage_target"
    __table_args__ = (
        Index("ix_storage_target_org_default", "org_id", "is_default"),
    )

    id = Column(Uuid, primary_key=True, default=uuid4)
    org_id = Column(Uuid, ForeignKey("org.id", ondelete="RESTRICT"), nullable=False)
    name = Column(Text, nullable=False)
    provider = Column(Text, nullable=False)
    config_json = Column(PortableJSONB, nullable=False, default=dict)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<StorageTarget(id={self.id}, provider='{self.provider}', default={self.is_default})>"

    def to_dict(self):
        return {
            "id": str(self.id),
            "org_id": str(self.org_id),
            "name": self.name,
            "provider": self.provider,
            "config": self.config_json or {},
            "is_default": self.is_default,
            "created_at": iso(self.created_at),
        }
