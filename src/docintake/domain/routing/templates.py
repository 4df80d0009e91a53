"""Folder path template resolution for routing rules."""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

_UNSAFE_CHARS = re.compile(r'[<>:"|?*/\\\x00-\x1f]')
_DOT_RUNS = re.compile(r"\.{2,}")
_PLACEHOLDER = re.compile(r"\{([a-z_]+)\}")

DEFAULT_FOLDER_TEMPLATE = "{year}/{month}/{date}"


@dataclass
class TemplateContext:
    """Values available to folder templates.

    employee_* fall back to the sender values when no employee is known.
    request_id falls back to "unlinked".
    """
    sender_email: str
    received_at: datetime
    sender_name: Optional[str] = None
    employee_email: Optional[str] = None
    employee_name: Optional[str] = None
    request_id: Optional[UUID] = None

    def values(self) -> dict[str, str]:
        sender_name = self.sender_name or self.sender_email.split("@")[0]
        return {
            "sender_email": self.sender_email,
            "sender_name": sender_name,
            "employee_email": self.employee_email or self.sender_email,
            "employee_name": self.employee_name or sender_name,
            "request_id": str(self.request_id) if self.request_id else "unlinked",
            "date": self.received_at.strftime("%Y-%m-%d"),
            "year": self.received_at.strftime("%Y"),
            "month": self.received_at.strftime("%m"),
        }


def sanitize_segment(value: str) -> str:
    """Make a substituted value a single safe path segment.

    Separators and dot runs are replaced, so a sender-controlled display
    name cannot add folders or climb out of the storage root.
    """
    cleaned = _DOT_RUNS.sub("_", _UNSAFE_CHARS.sub("_", value)).strip()
    if cleaned in ("", "."):
        return "_"
    return cleaned


def resolve_folder_path(template: str, context: TemplateContext) -> str:
    """Fill placeholders in a folder template.

    Unknown placeholders are left untouched. Substituted values are
    sanitized into single segments; the final path drops empty, "." and
    ".." segments, so it has no repeated, leading or trailing slash.

    Example:
        >>> ctx = TemplateContext("jane@acme.com", datetime(2025, 3, 7), employee_name="Jane Doe")
        >>> resolve_folder_path("employees/{employee_name}/{year}", ctx)
        'employees/Jane Doe/2025'
    """
    values = context.values()

    def substitute(match: re.Match) -> str:
        key = match.group(1)
        if key not in values:
            return match.group(0)
        return sanitize_segment(values[key])

    path = _PLACEHOLDER.sub(substitute, template or "")
    return "/".join(segment for segment in path.split("/") if segment not in ("", ".", ".."))
