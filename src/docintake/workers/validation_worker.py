"""Validation workers - inline validation task and the queue drain sweep."""

import logging
from typing import Any, Dict, Optional
from uuid import UUID

from celery import shared_task

from ..database import get_db_session
from ..errors import DocIntakeError
from ..infrastructure.factory import build_pipeline, build_queue
from ..models import Document
from ..observability.request_id import generate_request_id, set_request_id
from .base import BaseTask, get_scoped_session, validate_org_id

logger = logging.getLogger(__name__)


@shared_task(name="validation.validate_document", base=BaseTask, bind=True)
def validate_document_task(self, document_id: str, org_id: str, triggered_by: str = "system") -> Dict[str, Any]:
    """Validate one document; retryable failures are handed to the queue.

    Args:
        document_id: UUID string of the document
        org_id: UUID string of organization (REQUIRED for tenant isolation)
        triggered_by: Actor recorded on the execution row

    Returns:
        Dict with status and verdict (or the queued job id)
    """
    org_uuid = validate_org_id(org_id)
    doc_uuid = UUID(document_id)

    with get_scoped_session(org_uuid) as session:
        document = session.query(Document).filter(
            Document.id == doc_uuid,
            Document.org_id == org_uuid,
        ).first()
        if not document:
            raise ValueError(f"Document {document_id} not found in org {org_id}")

        pipeline = build_pipeline(session)
        try:
            result = pipeline.validate(doc_uuid, trigger="system", triggered_by=triggered_by)
        except DocIntakeError as e:
            job = build_queue(session, pipeline).enqueue(org_uuid, doc_uuid, triggered_by=triggered_by)
            logger.warning(f"Validation of {document_id} failed ({e.message}); queued as job {job.id}")
            return {"status": "queued", "document_id": document_id, "job_id": str(job.id)}

        return {"status": "validated", "document_id": document_id, "verdict": result.verdict.value}


@shared_task(name="validation.drain_queue", bind=True)
def drain_validation_queue_task(self, limit: Optional[int] = None) -> Dict[str, Any]:
    """Claim and process due validation jobs across all organizations."""
    set_request_id(generate_request_id())
    with get_db_session() as session:
        queue = build_queue(session, build_pipeline(session))
        stats = queue.run_batch(limit=limit)
    return stats.to_dict()
