"""Document validation and request status API"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..database import get_db
from ..domain.requests.tracker import StatusTracker
from ..domain.validation.service import ValidationService
from ..errors import AuthError, DocIntakeError, NotFoundError, RateLimitExceeded, TransientProviderError
from ..models.validation_job import ValidationJob
from .dependencies import get_actor, get_org_id, get_status_tracker, get_validation_service
from .schemas import (
    RequestStatusResponse,
    StatusHistoryEntryResponse,
    StatusHistoryResponse,
    TriggerValidationRequest,
    ValidationJobResponse,
    ValidationResultResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["documents"])


@router.post(
    "/documents/{document_id}/validate",
    response_model=ValidationResultResponse,
    responses={
        202: {"model": ValidationJobResponse, "description": "Validation deferred to the queue"},
        404: {"description": "Document not found"},
        429: {"description": "Manual validation rate limit reached"},
    },
)
def trigger_validation(
    document_id: UUID,
    body: TriggerValidationRequest = TriggerValidationRequest(),
    org_id: UUID = Depends(get_org_id),
    actor: str = Depends(get_actor),
    service: ValidationService = Depends(get_validation_service),
    db: Session = Depends(get_db),
):
    """Re-run validation for a document.

    Runs inline and returns the new result (200), or queues the run when
    defer is set (202). Rate limited per document; a 429 carries Retry-After.
    """
    try:
        outcome = service.trigger_validation(
            org_id=org_id,
            document_id=document_id,
            triggered_by=body.triggered_by or actor,
            defer=body.defer,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except RateLimitExceeded as e:
        raise HTTPException(
            status_code=429,
            detail=e.to_dict(),
            headers={"Retry-After": str(e.retry_after)},
        )
    except AuthError as e:
        # Keep the failed execution record
        db.commit()
        logger.error(f"Provider credentials rejected during manual validation of {document_id}: {e.message}")
        raise HTTPException(status_code=502, detail=e.to_dict())
    except TransientProviderError as e:
        db.commit()
        raise HTTPException(status_code=503, detail=e.to_dict(), headers={"Retry-After": "60"})
    except DocIntakeError as e:
        db.commit()
        raise HTTPException(status_code=422, detail=e.to_dict())

    db.commit()

    if isinstance(outcome, ValidationJob):
        job = ValidationJobResponse.model_validate(outcome)
        return JSONResponse(status_code=202, content=job.model_dump(mode="json"))
    return ValidationResultResponse.model_validate(outcome)


@router.get("/documents/{document_id}/validation", response_model=ValidationResultResponse)
def get_validation(
    document_id: UUID,
    org_id: UUID = Depends(get_org_id),
    service: ValidationService = Depends(get_validation_service),
):
    """Latest validation result of a document."""
    try:
        result = service.get_validation(org_id, document_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    return ValidationResultResponse.model_validate(result)


@router.get("/requests/{request_id}/status", response_model=RequestStatusResponse)
def get_request_status(
    request_id: UUID,
    org_id: UUID = Depends(get_org_id),
    tracker: StatusTracker = Depends(get_status_tracker),
):
    try:
        request = tracker.get_status(org_id, request_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    return RequestStatusResponse.model_validate(request)


@router.get("/requests/{request_id}/history", response_model=StatusHistoryResponse)
def get_request_history(
    request_id: UUID,
    org_id: UUID = Depends(get_org_id),
    tracker: StatusTracker = Depends(get_status_tracker),
):
    """Status history of a request, oldest first."""
    try:
        entries = tracker.get_history(org_id, request_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    return StatusHistoryResponse(
        request_id=request_id,
        entries=[StatusHistoryEntryResponse.model_validate(e) for e in entries],
        total=len(entries),
    )
