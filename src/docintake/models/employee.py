"""Employee SQLAlchemy model

Organization directory used for owner matching and reminder recipients.
"""

from uuid import uuid4

from sqlalchemy import Column, Text, Boolean, Date, DateTime, ForeignKey, Index, Uuid

from .base import Base, utcnow, iso


class Employee(Base):
    __tablename__ = "employee"
    __table_args__ = (
        Index("ix_employee_org_email", "org_id", "email"),
    )

    id = Column(Uuid, primary_key=True, default=uuid4)
    org_id = Column(Uuid, ForeignKey("org.id", ondelete="RESTRICT"), nullable=False)
    email = Column(Text, nullable=False)
    first_name = Column(Text, nullable=False)
    middle_name = Column(Text, nullable=True)
    last_name = Column(Text, nullable=False)
    date_of_birth = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.middle_name, self.last_name]
        return " ".join(p for p in parts if p)

    def __repr__(self):
        return f"<Employee(id={self.id}, email='{self.email}')>"

    def to_dict(self):
        return {
            "id": str(self.id),
            "org_id": str(self.org_id),
            "email": self.email,
            "full_name": self.full_name,
            "date_of_birth": iso(self.date_of_birth),
            "is_active": self.is_active,
        }
