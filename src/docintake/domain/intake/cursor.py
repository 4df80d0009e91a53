"""Mailbox cursor persistence.

The cursor only moves forward from the value a poller read; a concurrent
poller that already advanced it wins and the stale write is dropped.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from ...models.base import utcnow
from ...models.email_account import EmailAccount

logger = logging.getLogger(__name__)


def advance_cursor(db: Session, account_id: UUID, expected: Optional[str], new: Optional[str]) -> bool:
    """Conditionally set EmailAccount.last_cursor from expected to new.

    Returns:
        True if this call advanced the cursor
    """
    condition = EmailAccount.last_cursor.is_(None) if expected is None else EmailAccount.last_cursor == expected
    result = db.execute(
        update(EmailAccount)
        .where(EmailAccount.id == account_id, condition)
        .values(last_cursor=new, last_polled_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.warning(f"Cursor of email account {account_id} moved concurrently; keeping the stored value")
        return False
    return True
