"""Daily expiry sweep for overdue document requests."""

import logging
from typing import Any, Dict

from celery import shared_task

from ..config import get_settings
from ..database import get_db_session
from ..domain.requests.tracker import StatusTracker
from ..observability.request_id import generate_request_id, set_request_id

logger = logging.getLogger(__name__)


@shared_task(name="requests.expire_overdue", bind=True)
def expire_overdue_requests_task(self) -> Dict[str, Any]:
    set_request_id(generate_request_id())
    grace_days = get_settings().REQUEST_EXPIRY_GRACE_DAYS
    with get_db_session() as session:
        expired = StatusTracker(session).expire_overdue(grace_days=grace_days)
    return {"expired": expired, "grace_days": grace_days}
