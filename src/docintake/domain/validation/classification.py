"""Classification output normalization and filename fallback.

Provider responses are normalized rather than rejected: confidence is
clamped, unrecognized types map to "other" and unparseable dates are
dropped. Only a response with no usable document type at all is a
PermanentClassificationError.
"""

import logging
import re
from datetime import date, datetime
from typing import Any, Optional

from dateutil import parser as date_parser

from ...errors import PermanentClassificationError
from .ports import ClassificationHints, ClassificationOutput, ClassificationPort

logger = logging.getLogger(__name__)

DOCUMENT_TYPES = (
    "passport",
    "drivers_license",
    "id_card",
    "birth_certificate",
    "visa",
    "other",
)

UNKNOWN_TYPE = "other"
FILENAME_CONFIDENCE = 0.6

_TYPE_ALIASES = {
    "driver license": "drivers_license",
    "drivers license": "drivers_license",
    "driving license": "drivers_license",
    "driving licence": "drivers_license",
    "identification card": "id_card",
    "national id": "id_card",
    "government id": "id_card",
    "id": "id_card",
    "birth cert": "birth_certificate",
}


def parse_date(value: Any) -> Optional[date]:
    """Parse a provider date value, returning None if it cannot be read."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    try:
        return date_parser.parse(value, dayfirst=False, yearfirst=True).date()
    except (ValueError, OverflowError) as e:
        logger.debug(f"Unparseable date {value!r}: {e}")
        return None


def normalize_type_label(value: Any) -> str:
    """Map a provider type label onto DOCUMENT_TYPES."""
    if not isinstance(value, str) or not value.strip():
        return UNKNOWN_TYPE
    label = re.sub(r"[_\s-]+", " ", value.strip().lower()).replace("'", "")
    candidate = label.replace(" ", "_")
    if candidate in DOCUMENT_TYPES:
        return candidate
    return _TYPE_ALIASES.get(label, UNKNOWN_TYPE)


def clamp_confidence(value: Any, default: float = 0.5) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return default
    if confidence != confidence:  # NaN
        return default
    return max(0.0, min(1.0, confidence))


def scalar_text(value, max_length: int = 100) -> Optional[str]:
    """String form of a scalar provider field; objects and lists are dropped."""
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return None
    text = str(value).strip()
    return text[:max_length] or None


def normalize_classification(raw: Optional[dict], **provenance) -> ClassificationOutput:
    """Build a ClassificationOutput from a provider's parsed JSON.

    Args:
        raw: Parsed provider response
        **provenance: provider, model, tokens_in, tokens_out, cost_micros, latency_ms

    Raises:
        PermanentClassificationError: If raw is not a dict or carries no document type
    """
    if not isinstance(raw, dict) or not raw:
        raise PermanentClassificationError(
            "Classification response is empty or not an object",
            {"raw": raw if isinstance(raw, (dict, list, str)) else repr(raw)},
        )
    if not raw.get("document_type"):
        raise PermanentClassificationError(
            "Classification response has no document_type",
            {"raw": raw},
        )

    document_type = normalize_type_label(raw.get("document_type"))
    default_confidence = 0.85 if document_type != UNKNOWN_TYPE else 0.5
    confidence = clamp_confidence(raw.get("confidence"), default=default_confidence)

    names = raw.get("extracted_names")
    if isinstance(names, str):
        names = [names]
    if not isinstance(names, list):
        names = []
    full_name = raw.get("full_name_on_document")
    if isinstance(full_name, str) and full_name.strip() and full_name not in names:
        names.insert(0, full_name)

    return ClassificationOutput(
        document_type=document_type,
        confidence=confidence,
        expiry_date=parse_date(raw.get("expiry_date")),
        issue_date=parse_date(raw.get("issue_date")),
        extracted_names=[n.strip() for n in names if isinstance(n, str) and n.strip()],
        date_of_birth=parse_date(raw.get("dob_on_document") or raw.get("date_of_birth")),
        issuing_country=scalar_text(raw.get("issuing_country")),
        document_number=scalar_text(raw.get("document_number")),
        **provenance,
    )


def infer_type_from_filename(file_name: str) -> str:
    lower = (file_name or "").lower()
    if "passport" in lower:
        return "passport"
    if "driver" in lower or "license" in lower or "licence" in lower:
        return "drivers_license"
    if "birth" in lower or "certificate" in lower:
        return "birth_certificate"
    if "visa" in lower:
        return "visa"
    if re.search(r"(^|[^a-z])id([^a-z]|$)", lower) or "identification" in lower:
        return "id_card"
    return UNKNOWN_TYPE


class FilenameClassifier(ClassificationPort):
    """Heuristic classifier used when no provider is configured."""

    def classify(self, text: str, hints: ClassificationHints) -> ClassificationOutput:
        document_type = infer_type_from_filename(hints.file_name)
        return ClassificationOutput(
            document_type=document_type,
            confidence=FILENAME_CONFIDENCE if document_type != UNKNOWN_TYPE else 0.3,
            provider="filename",
        )
