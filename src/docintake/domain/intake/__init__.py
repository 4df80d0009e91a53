"""Inbound email intake"""

from .ports import EmailAttachment, EmailMessage, EmailSourcePort, FetchResult
from .cursor import advance_cursor

__all__ = ["EmailAttachment", "EmailMessage", "EmailSourcePort", "FetchResult", "advance_cursor"]
