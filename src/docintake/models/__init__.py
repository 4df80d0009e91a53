"""SQLAlchemy models for docintake"""

from .base import Base, PortableJSONB, utcnow
from .org import Org
from .employee import Employee
from .storage_target import StorageTarget
from .routing_rule import RoutingRule
from .document_request import DocumentRequest, RequestStatus
from .document import Document, ValidationStatus
from .status_history import StatusHistoryEntry
from .audit_log import AuditLog
from .validation_result import ValidationResult, Verdict, ExpiryStatus
from .validation_job import ValidationJob, DeadLetterEntry, JobStatus
from .validation_execution import ValidationExecution, ExecutionStatus, ExecutionTrigger
from .renewal_reminder import RenewalReminder
from .email_account import EmailAccount

__all__ = [
    "Base",
    "PortableJSONB",
    "utcnow",
    "Org",
    "Employee",
    "StorageTarget",
    "RoutingRule",
    "DocumentRequest",
    "RequestStatus",
    "Document",
    "ValidationStatus",
    "StatusHistoryEntry",
    "AuditLog",
    "ValidationResult",
    "Verdict",
    "ExpiryStatus",
    "ValidationJob",
    "DeadLetterEntry",
    "JobStatus",
    "ValidationExecution",
    "ExecutionStatus",
    "ExecutionTrigger",
    "RenewalReminder",
    "EmailAccount",
]
