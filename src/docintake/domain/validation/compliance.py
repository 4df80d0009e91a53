"""Compliance of the classified document type with the requested type."""

import re
from dataclasses import dataclass
from typing import Optional

EXACT_SCORE = 1.0
PARTIAL_SCORE = 0.9
MISMATCH_SCORE = 0.0

SYNONYM_GROUPS = (
    {"drivers license", "driving license", "driver license", "driving licence", "drivers licence"},
    {"id card", "identification card", "national id", "government id", "identity card"},
    {"birth certificate", "birth cert"},
    {"passport", "travel document"},
)


@dataclass
class ComplianceResult:
    score: float
    requested_type: Optional[str]
    matches: bool


def normalize_document_type(value: Optional[str]) -> str:
    """
    >>> normalize_document_type("Driver's_License")
    'drivers license'
    """
    if not value:
        return ""
    normalized = re.sub(r"[_\s-]+", " ", value.strip().lower())
    normalized = normalized.replace("'", "")
    return re.sub(r"\s+", " ", normalized).strip()


def _synonyms(normalized: str) -> set[str]:
    for group in SYNONYM_GROUPS:
        if normalized in group:
            return set(group)
    return {normalized}


def types_match(a: str, b: str) -> bool:
    """Normalized equality, containment or a shared synonym group."""
    if not a or not b:
        return False
    if a == b or a in b or b in a:
        return True
    for s1 in _synonyms(a):
        for s2 in _synonyms(b):
            if s1 == s2 or s1 in s2 or s2 in s1:
                return True
    return False


def check_compliance(classified_type: Optional[str], requested_type: Optional[str]) -> ComplianceResult:
    """Score the classified type against what the request asked for.

    1.0 for an exact match after normalization, 0.9 for a synonym or
    containment match, 0.0 otherwise. A request without a type, or a
    document with no request, is fully compliant.
    """
    requested = normalize_document_type(requested_type)
    if not requested:
        return ComplianceResult(score=EXACT_SCORE, requested_type=requested_type, matches=True)

    submitted = normalize_document_type(classified_type)
    if submitted == requested:
        return ComplianceResult(score=EXACT_SCORE, requested_type=requested_type, matches=True)
    if types_match(requested, submitted):
        return ComplianceResult(score=PARTIAL_SCORE, requested_type=requested_type, matches=True)
    return ComplianceResult(score=MISMATCH_SCORE, requested_type=requested_type, matches=False)
