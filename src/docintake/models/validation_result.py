"""ValidationResult SQLAlchemy model

Latest validation outcome of a Document. One row per document: a
re-validation overwrites the previous row in place.
"""

import enum
from uuid import uuid4

from sqlalchemy import (
    Column, Text, Integer, Boolean, Float, Date, DateTime, ForeignKey, Uuid,
    Enum as SQLEnum, UniqueConstraint,
)

from .base import Base, PortableJSONB, utcnow, enum_values, iso


class Verdict(str, enum.Enum):
    VERIFIED = "verified"
    NEEDS_REVIEW = "needs_review"
    REJECTED = "rejected"


class ExpiryStatus(str, enum.Enum):
    VALID = "valid"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"
    UNKNOWN = "unknown"


class ValidationResult(Base):
    __tablename__ = "validation_result"
    __table_args__ = (
        UniqueConstraint("document_id", name="uq_validation_result_document"),
    )

    id = Column(Uuid, primary_key=True, default=uuid4)
    org_id = Column(Uuid, ForeignKey("org.id", ondelete="RESTRICT"), nullable=False)
    document_id = Column(Uuid, ForeignKey("document.id", ondelete="CASCADE"), nullable=False)

    # Classification
    document_type = Column(Text, nullable=False)
    type_confidence = Column(Float, nullable=False)

    issuing_country = Column(Text, nullable=True)
    document_number = Column(Text, nullable=True)

    # Owner match
    owner_confidence = Column(Float, nullable=False)
    name_match_score = Column(Float, nullable=True)
    dob_match = Column(Boolean, nullable=True)
    matched_employee_id = Column(Uuid, ForeignKey("employee.id", ondelete="SET NULL"), nullable=True)
    owner_match_method = Column(Text, nullable=True)  # email|fuzzy_name|none

    # Expiry
    expiry_date = Column(Date, nullable=True)
    issue_date = Column(Date, nullable=True)
    expiry_status = Column(
        SQLEnum(ExpiryStatus, name="expiry_status", values_callable=enum_values),
        nullable=False,
        default=ExpiryStatus.UNKNOWN,
    )
    days_until_expiry = Column(Integer, nullable=True)

    # Authenticity / duplicates
    authenticity_score = Column(Float, nullable=False)
    is_duplicate = Column(Boolean, nullable=False, default=False)
    duplicate_of_ids = Column(PortableJSONB, nullable=False, default=list)

    # Compliance
    compliance_score = Column(Float, nullable=False)

    # Decision
    verdict = Column(
        SQLEnum(Verdict, name="verdict", values_callable=enum_values),
        nullable=False,
    )
    review_priority = Column(Text, nullable=False, default="low")
    critical_issues = Column(PortableJSONB, nullable=False, default=list)
    warnings = Column(PortableJSONB, nullable=False, default=list)

    # Provenance
    model = Column(Text, nullable=True)
    prompt_version = Column(Text, nullable=True)
    validated_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<ValidationResult(document_id={self.document_id}, verdict='{self.verdict}')>"

    def to_dict(self):
        return {
            "id": str(self.id),
            "document_id": str(self.document_id),
            "document_type": self.document_type,
            "type_confidence": self.type_confidence,
            "issuing_country": self.issuing_country,
            "document_number": self.document_number,
            "owner_confidence": self.owner_confidence,
            "name_match_score": self.name_match_score,
            "dob_match": self.dob_match,
            "matched_employee_id": str(self.matched_employee_id) if self.matched_employee_id else None,
            "owner_match_method": self.owner_match_method,
            "expiry_date": iso(self.expiry_date),
            "issue_date": iso(self.issue_date),
            "expiry_status": self.expiry_status.value if isinstance(self.expiry_status, enum.Enum) else self.expiry_status,
            "days_until_expiry": self.days_until_expiry,
            "authenticity_score": self.authenticity_score,
            "is_duplicate": self.is_duplicate,
            "duplicate_of_ids": self.duplicate_of_ids or [],
            "compliance_score": self.compliance_score,
            "verdict": self.verdict.value if isinstance(self.verdict, enum.Enum) else self.verdict,
            "review_priority": self.review_priority,
            "critical_issues": self.critical_issues or [],
            "warnings": self.warnings or [],
            "model": self.model,
            "prompt_version": self.prompt_version,
            "validated_at": iso(self.validated_at),
        }
