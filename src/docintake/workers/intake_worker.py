"""Intake worker - stores one inbound message delivered by a mailbox connector."""

import base64
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from celery import shared_task

from ..domain.intake.ports import EmailAttachment, EmailMessage
from ..errors import TransientProviderError
from ..infrastructure.factory import build_intake_service
from .base import BaseTask, get_scoped_session, validate_org_id

logger = logging.getLogger(__name__)


def message_from_payload(payload: Dict[str, Any]) -> EmailMessage:
    """Build an EmailMessage from its JSON task payload (attachment content base64)."""
    received_at: Optional[datetime] = None
    if payload.get("received_at"):
        received_at = datetime.fromisoformat(payload["received_at"])
    return EmailMessage(
        from_address=payload["from_address"],
        from_name=payload.get("from_name"),
        to=list(payload.get("to") or []),
        subject=payload.get("subject") or "",
        received_at=received_at,
        message_id=payload.get("message_id"),
        attachments=[
            EmailAttachment(
                filename=a["filename"],
                content=base64.b64decode(a["content_b64"]),
                mime_type=a.get("mime_type") or "application/octet-stream",
            )
            for a in payload.get("attachments") or []
        ],
    )


@shared_task(
    name="intake.process_message",
    base=BaseTask,
    bind=True,
    autoretry_for=(TransientProviderError,),
    retry_backoff=60,
    max_retries=5,
)
def process_message_task(self, message: Dict[str, Any], org_id: str) -> Dict[str, Any]:
    """Store a message's attachments, then validate or queue them.

    Args:
        message: Serialized EmailMessage (see message_from_payload)
        org_id: UUID string of organization (REQUIRED for tenant isolation)

    Returns:
        Dict with the stored document ids and correlation outcome
    """
    org_uuid = validate_org_id(org_id)
    email_message = message_from_payload(message)

    with get_scoped_session(org_uuid) as session:
        result = build_intake_service(session).process_message(org_uuid, email_message)
        summary = result.to_dict()

    logger.info(f"Processed message {email_message.message_id or '-'}: {summary}")
    return {"status": "success", **summary}
