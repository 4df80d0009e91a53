"""Audit logging service.

Creates immutable audit entries for decisions that are heuristic or need
operator attention.

Audit Events:
- correlation.ambiguous     multi-candidate request correlation
- request.status_corrected  operator moved a request status manually
- account.auth_error        provider credential failure, re-authorization needed
- dead_letter.resolved      dead-letter entry resolved / requeued
"""

from sqlalchemy.orm import Session
from uuid import UUID
from typing import Optional, Dict, Any

from ..models.audit_log import AuditLog


def log_audit_event(
    db: Session,
    org_id: UUID,
    action: str,
    actor: str = "system",
    entity_type: Optional[str] = None,
    entity_id: Optional[UUID] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """Create an audit log entry.

    Args:
        db: Database session
        org_id: Organization ID
        action: Event action (e.g., "correlation.ambiguous")
        actor: Who performed the action ("system", a worker name, or an operator id)
        entity_type: Type of entity affected (e.g., "document", "document_request")
        entity_id: ID of affected entity
        metadata: Additional context as JSON

    Returns:
        AuditLog: The created audit log entry

    Example:
        log_audit_event(
            db=db,
            org_id=document.org_id,
            action="correlation.ambiguous",
            entity_type="document",
            entity_id=document.id,
            metadata={"candidates": [...], "chosen": str(request.id)}
        )
    """
    audit_entry = AuditLog(
        org_id=org_id,
        actor=actor,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        metadata_json=metadata,
    )

    db.add(audit_entry)
    db.flush()  # Get ID without committing transaction

    return audit_entry
