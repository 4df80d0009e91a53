"""Base utilities for multi-tenant background tasks.

Tasks that act on one organization's data take org_id as a keyword
argument (UUID string). BaseTask validates it before the task body runs,
and the body opens its session through get_scoped_session().

Task Signature Pattern:

    @shared_task(name="validation.validate_document", base=BaseTask, bind=True)
    def validate_document_task(self, document_id: str, org_id: str) -> Dict[str, Any]:
        org_uuid = validate_org_id(org_id)
        with get_scoped_session(org_uuid) as session:
            document = session.query(Document).filter(
                Document.id == UUID(document_id),
                Document.org_id == org_uuid,
            ).first()
            ...

Sweeps that cover every organization (queue drain, reminders, request
expiry) do not use BaseTask and open a plain get_db_session().
"""

from contextlib import AbstractContextManager
from uuid import UUID

from celery import Task
from sqlalchemy.orm import Session

from ..database import SessionLocal, org_scoped_session
from ..models.org import Org
from ..observability.request_id import generate_request_id, set_request_id


def validate_org_id(org_id: str) -> UUID:
    """Validate that org_id is a UUID of an existing organization.

    Raises:
        ValueError: If org_id is malformed or the organization doesn't exist
    """
    try:
        org_uuid = UUID(str(org_id))
    except (ValueError, AttributeError, TypeError) as e:
        raise ValueError(f"Invalid org_id format '{org_id}': {str(e)}")

    session = SessionLocal()
    try:
        org = session.query(Org).filter(Org.id == org_uuid).first()
        if not org:
            raise ValueError(f"Organization {org_id} does not exist")
    finally:
        session.close()

    return org_uuid


def get_scoped_session(org_id: UUID) -> AbstractContextManager[Session]:
    """Session context scoped to one organization.

    New rows get org_id filled in; commits on success, rolls back on error.
    """
    return org_scoped_session(org_id)


class BaseTask(Task):
    """Celery task base with tenant validation and a fresh log correlation id.

    Usage:
        @shared_task(base=BaseTask, bind=True)
        def my_task(self, resource_id: str, org_id: str):
            ...
    """

    def __call__(self, *args, **kwargs):
        set_request_id(generate_request_id())

        org_id = kwargs.get("org_id")
        if not org_id:
            raise ValueError(
                "org_id parameter is required for all multi-tenant tasks. "
                "Ensure you pass org_id=str(org_uuid) when enqueuing the task."
            )

        validate_org_id(org_id)
        return super().__call__(*args, **kwargs)
