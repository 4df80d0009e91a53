"""Subject normalization shared by routing and correlation."""

import re
from typing import Optional

_REPLY_MARKERS = re.compile(r"^(?:(?:re|fwd|fw)\s*:\s*)+", re.IGNORECASE)
_BRACKET_TAG = re.compile(r"^\[[^\]]*\]\s*")


def normalize_subject(subject: Optional[str]) -> str:
    """Normalize an email subject for comparison.

    Lower-cases, strips leading reply/forward markers ("Re:", "Fwd:", "FW:"
    and chains of them) and a leading bracketed tag such as "[External]",
    then trims whitespace. Markers and tags are stripped until none is left
    at the front, so normalize_subject(normalize_subject(s)) equals
    normalize_subject(s).

    Example:
        >>> normalize_subject("Re: Fwd: [External] Passport Request")
        'passport request'
    """
    if not subject:
        return ""

    value = subject.strip().lower()
    while True:
        stripped = _BRACKET_TAG.sub("", _REPLY_MARKERS.sub("", value)).strip()
        if stripped == value:
            return value
        value = stripped
