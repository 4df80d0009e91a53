"""Daily renewal reminder sweep."""

import logging
from typing import Any, Dict

from celery import shared_task

from ..database import get_db_session
from ..infrastructure.factory import build_reminder_service
from ..observability.request_id import generate_request_id, set_request_id

logger = logging.getLogger(__name__)


@shared_task(name="reminders.send_due", bind=True)
def send_due_reminders_task(self) -> Dict[str, Any]:
    """Send every unsent reminder whose date has arrived.

    Failed sends stay unsent and are picked up by the next run.
    """
    set_request_id(generate_request_id())
    with get_db_session() as session:
        stats = build_reminder_service(session).send_due()
    return stats.to_dict()
