"""EmailAccount SQLAlchemy model

A connected mailbox polled by the intake worker. last_cursor is the
provider's opaque position (message UID, history id, delta token) and is
advanced only by a conditional write after a batch has been stored.
"""

from uuid import uuid4

from sqlalchemy import Column, Text, Boolean, DateTime, ForeignKey, Uuid

from .base import Base, utcnow, iso


class EmailAccount(Base):
    __tablename__ = "email_account"

    id = Column(Uuid, primary_key=True, default=uuid4)
    org_id = Column(Uuid, ForeignKey("org.id", ondelete="RESTRICT"), nullable=False)
    provider = Column(Text, nullable=False)
    address = Column(Text, nullable=False)
    last_cursor = Column(Text, nullable=True)
    last_polled_at = Column(DateTime, nullable=True)
    auth_error = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<EmailAccount(id={self.id}, address='{self.address}')>"

    def to_dict(self):
        return {
            "id": str(self.id),
            "provider": self.provider,
            "address": self.address,
            "last_cursor": self.last_cursor,
            "last_polled_at": iso(self.last_polled_at),
            "auth_error": self.auth_error,
            "is_active": self.is_active,
        }
