"""
Email source port.

Hexagonal Architecture: mailbox connectors (IMAP, Graph, Gmail) implement
EmailSourcePort; the intake service only sees parsed messages.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class EmailAttachment:
    filename: str
    content: bytes
    mime_type: str = "application/octet-stream"


@dataclass
class EmailMessage:
    """
    Parsed inbound message.

    Attributes:
        from_address: Sender address
        from_name: Sender display name
        to: Recipient addresses
        subject: Raw subject line
        attachments: Attachments in message order
        received_at: Provider receive timestamp (UTC)
        message_id: Provider message id, used in logs
    """
    from_address: str
    subject: str = ""
    from_name: Optional[str] = None
    to: list[str] = field(default_factory=list)
    attachments: list[EmailAttachment] = field(default_factory=list)
    received_at: Optional[datetime] = None
    message_id: Optional[str] = None


@dataclass
class FetchResult:
    messages: list[EmailMessage]
    cursor: Optional[str]


class EmailSourcePort(ABC):
    """Source of new messages for one mailbox."""

    @abstractmethod
    def fetch_new(self, cursor: Optional[str]) -> FetchResult:
        """
        Fetch messages after cursor.

        Args:
            cursor: Opaque position returned by the previous fetch (None on first poll)

        Returns:
            FetchResult with the messages and the cursor to persist once they are stored

        Raises:
            AuthError: Mailbox credentials rejected
            TransientProviderError: Provider temporarily unavailable
        """
        pass
