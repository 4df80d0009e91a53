"""Audit trail for heuristic decisions and operator actions"""

from .service import log_audit_event

__all__ = ["log_audit_event"]
