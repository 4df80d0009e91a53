"""Notification sender port used by the renewal reminder sweep."""

from abc import ABC, abstractmethod


class NotificationSenderPort(ABC):
    """Delivers one notification. Transport is up to the implementation.

    Implementations raise on delivery failure; the sweep records the failure
    and leaves the reminder unsent.
    """

    @abstractmethod
    def send(self, recipient: str, subject: str, body: str) -> None:
        pass
