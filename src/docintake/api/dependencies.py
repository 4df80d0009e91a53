"""FastAPI dependencies: tenant scoping and service construction.

The organization is taken from the X-Org-ID header set by the gateway in
front of this service; the acting operator from X-Actor.
"""

from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from ..database import get_db
from ..domain.requests.tracker import StatusTracker
from ..domain.validation.service import ValidationService
from ..infrastructure.factory import build_validation_service


def get_org_id(x_org_id: str = Header(..., alias="X-Org-ID")) -> UUID:
    try:
        return UUID(x_org_id)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid X-Org-ID header: {x_org_id!r}")


def get_actor(x_actor: Optional[str] = Header(None, alias="X-Actor")) -> str:
    return x_actor or "api"


def get_validation_service(db: Session = Depends(get_db)) -> ValidationService:
    return build_validation_service(db)


def get_status_tracker(db: Session = Depends(get_db)) -> StatusTracker:
    return StatusTracker(db)
