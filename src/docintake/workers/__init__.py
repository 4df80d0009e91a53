"""Background workers for intake, validation and the periodic sweeps.

Multi-tenant tasks take org_id explicitly and validate it through BaseTask;
sweeps cover all organizations.
"""

from .base import (
    validate_org_id,
    get_scoped_session,
    BaseTask,
)

__all__ = [
    "validate_org_id",
    "get_scoped_session",
    "BaseTask",
]
