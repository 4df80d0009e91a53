"""Notification sender that only logs.

Default sender when no mail transport is configured.
"""

import logging

from ...domain.reminders.ports import NotificationSenderPort

logger = logging.getLogger(__name__)


class LoggingNotificationSender(NotificationSenderPort):
    def send(self, recipient: str, subject: str, body: str) -> None:
        logger.info(f"Notification to {recipient}: {subject}", extra={"body": body})
