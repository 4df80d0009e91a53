"""Pydantic schemas for the docintake API"""

from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.document_request import RequestStatus
from ..models.validation_job import JobStatus
from ..models.validation_result import ExpiryStatus, Verdict


class TriggerValidationRequest(BaseModel):
    """Body of POST /documents/{id}/validate."""
    defer: bool = False
    triggered_by: Optional[str] = Field(None, description="Operator identity; defaults to the X-Actor header")


class ValidationResultResponse(BaseModel):
    """Latest validation outcome of a document."""
    document_id: UUID
    verdict: Verdict
    review_priority: str
    document_type: str
    type_confidence: float
    issuing_country: Optional[str] = None
    owner_confidence: float
    matched_employee_id: Optional[UUID] = None
    owner_match_method: Optional[str] = None
    expiry_date: Optional[date] = None
    issue_date: Optional[date] = None
    expiry_status: ExpiryStatus
    days_until_expiry: Optional[int] = None
    authenticity_score: float
    is_duplicate: bool
    duplicate_of_ids: list[str] = Field(default_factory=list)
    compliance_score: float
    critical_issues: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    model: Optional[str] = None
    prompt_version: Optional[str] = None
    validated_at: datetime

    class Config:
        from_attributes = True
        use_enum_values = True


class ValidationJobResponse(BaseModel):
    """Deferred validation accepted into the queue."""
    id: UUID
    document_id: UUID
    status: JobStatus
    attempt: int
    max_attempts: int
    next_attempt_at: datetime

    class Config:
        from_attributes = True
        use_enum_values = True


class RequestStatusResponse(BaseModel):
    id: UUID
    status: RequestStatus
    recipient_email: str
    subject: Optional[str] = None
    requested_document_type: Optional[str] = None
    due_date: Optional[date] = None
    expected_count: int
    document_count: int
    last_status_change_at: Optional[datetime] = None
    last_status_changed_by: Optional[str] = None

    class Config:
        from_attributes = True
        use_enum_values = True


class StatusHistoryEntryResponse(BaseModel):
    old_status: Optional[str] = None
    new_status: str
    actor: str
    reason: Optional[str] = None
    metadata_json: Optional[dict[str, Any]] = None
    created_at: datetime

    class Config:
        from_attributes = True


class StatusHistoryResponse(BaseModel):
    request_id: UUID
    entries: list[StatusHistoryEntryResponse]
    total: int
