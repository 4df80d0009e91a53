"""Notification adapters"""

from .logging_sender import LoggingNotificationSender

__all__ = ["LoggingNotificationSender"]
