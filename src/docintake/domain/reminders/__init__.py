"""Renewal reminder scheduling"""

from .ports import NotificationSenderPort
from .service import REMINDER_OFFSETS, ReminderService, ReminderSweepStats, reminder_schedule

__all__ = ["NotificationSenderPort", "REMINDER_OFFSETS", "ReminderService", "ReminderSweepStats", "reminder_schedule"]
