"""Owner matching

Decides whose document this is. An exact sender-email match against the
employee directory is the strongest signal; otherwise names printed on the
document are fuzzy-matched against every active employee.

Confidence blend (email match adds 0.3, date-of-birth agreement 0.1):
    confidence = min(1.0, 0.6 * name_score + 0.3 * email_match + 0.1 * dob_match)
With an email match and no name on the document, name_score is 1.0 and
the confidence is 1.0.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Optional
from uuid import UUID

from rapidfuzz import fuzz
from sqlalchemy.orm import Session

from ...models.employee import Employee

logger = logging.getLogger(__name__)

FUZZY_ACCEPT_THRESHOLD = 0.7
AMBIGUITY_GAP = 0.05


@dataclass
class NameParts:
    first: str
    middle: list[str]
    last: str

    def reversed(self) -> "NameParts":
        return NameParts(first=self.last, middle=self.middle, last=self.first)


@dataclass
class OwnerMatch:
    """Result of owner matching.

    method is "email", "fuzzy_name" or "none".
    """
    confidence: float
    employee_id: Optional[UUID] = None
    method: str = "none"
    name_score: float = 0.0
    dob_match: Optional[bool] = None
    ambiguous: bool = False
    matched_name: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "confidence": self.confidence,
            "employee_id": str(self.employee_id) if self.employee_id else None,
            "method": self.method,
            "name_score": self.name_score,
            "dob_match": self.dob_match,
            "ambiguous": self.ambiguous,
        }


def normalize_name(name: str) -> str:
    name = (name or "").lower().replace(",", " ")
    name = re.sub(r"[^\w\s]", "", name)
    return re.sub(r"\s+", " ", name).strip()


def parse_name_parts(name: str) -> NameParts:
    """Split a name into first / middle / last.

    "Last, First Middle" is recognized by its comma; otherwise the first
    token is the first name and the final token the last name.
    """
    parts = normalize_name(name).split()
    if re.match(r"^[^,]+,\s*[^,]+", (name or "").strip()) and len(parts) >= 2:
        return NameParts(first=parts[1], middle=parts[2:], last=parts[0])
    if not parts:
        return NameParts(first="", middle=[], last="")
    if len(parts) == 1:
        return NameParts(first=parts[0], middle=[], last="")
    return NameParts(first=parts[0], middle=parts[1:-1], last=parts[-1])


def part_similarity(a: str, b: str) -> float:
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    return fuzz.ratio(a, b) / 100.0


def _parts_score(p1: NameParts, p2: NameParts) -> float:
    first = part_similarity(p1.first, p2.first)
    last = part_similarity(p1.last, p2.last)

    if not p1.middle and not p2.middle:
        return (first * 0.35 + last * 0.40) / 0.75

    if p1.middle and p2.middle:
        middle = part_similarity(" ".join(p1.middle), " ".join(p2.middle))
    else:
        # A middle name on one side only may be the other side's first or last name
        m1 = " ".join(p1.middle)
        m2 = " ".join(p2.middle)
        best = max(
            part_similarity(m1, p2.first),
            part_similarity(m2, p1.first),
            part_similarity(m1, p2.last),
            part_similarity(m2, p1.last),
        )
        floor = 0.85 if first >= 0.9 and last >= 0.9 else 0.7
        middle = max(best, floor)

    return first * 0.35 + last * 0.40 + middle * 0.25


def name_similarity(name1: str, name2: str) -> float:
    """Similarity of two person names in [0, 1].

    Tries both name orders on either side and compares against a
    whole-string ratio weighted at 0.8.
    """
    n1 = normalize_name(name1)
    n2 = normalize_name(name2)
    if not n1 or not n2:
        return 0.0
    if n1 == n2:
        return 1.0

    p1 = parse_name_parts(name1)
    p2 = parse_name_parts(name2)
    structured = max(
        _parts_score(p1, p2),
        _parts_score(p1, p2.reversed()),
        _parts_score(p1.reversed(), p2),
    )
    simple = fuzz.ratio(n1, n2) / 100.0
    return max(structured, simple * 0.8)


def dob_agrees(document_dob: Optional[date], employee_dob: Optional[date]) -> bool:
    """True unless both dates are known and differ."""
    if document_dob is None or employee_dob is None:
        return True
    return document_dob == employee_dob


def blend_confidence(name_score: float, email_match: bool, dob_match: bool) -> float:
    confidence = name_score * 0.6
    if email_match:
        confidence += 0.3
    if dob_match:
        confidence += 0.1
    return round(min(confidence, 1.0), 4)


class OwnerMatcher:
    """Matches a document to an employee of the organization."""

    def __init__(self, db: Session):
        self.db = db

    def match(
        self,
        org_id: UUID,
        sender_email: Optional[str],
        extracted_names: list[str],
        date_of_birth: Optional[date] = None,
    ) -> OwnerMatch:
        """Match the document owner.

        Args:
            org_id: Organization UUID
            sender_email: Address the document was sent from
            extracted_names: Names printed on the document
            date_of_birth: Date of birth printed on the document

        Returns:
            OwnerMatch with confidence in [0, 1]
        """
        employees = (
            self.db.query(Employee)
            .filter(Employee.org_id == org_id, Employee.is_active.is_(True))
            .all()
        )

        by_email = None
        if sender_email:
            sender = sender_email.strip().lower()
            by_email = next((e for e in employees if (e.email or "").strip().lower() == sender), None)

        if by_email is not None:
            name_score = 1.0
            if extracted_names:
                name_score = max(name_similarity(n, by_email.full_name) for n in extracted_names)
            dob_match = dob_agrees(date_of_birth, by_email.date_of_birth)
            result = OwnerMatch(
                confidence=blend_confidence(name_score, True, dob_match),
                employee_id=by_email.id,
                method="email",
                name_score=name_score,
                dob_match=dob_match,
                matched_name=by_email.full_name,
            )
            logger.info(f"Owner matched by email {sender_email} → employee {by_email.id} (confidence {result.confidence})")
            return result

        if not extracted_names or not employees:
            return OwnerMatch(confidence=0.0)

        scored = []
        for employee in employees:
            score = max(name_similarity(n, employee.full_name) for n in extracted_names)
            scored.append((score, employee))
        scored.sort(key=lambda item: item[0], reverse=True)

        best_score, best = scored[0]
        if best_score <= FUZZY_ACCEPT_THRESHOLD:
            logger.info(f"No employee name above {FUZZY_ACCEPT_THRESHOLD} (best {best_score:.3f})")
            return OwnerMatch(confidence=0.0, name_score=best_score)

        ambiguous = len(scored) > 1 and (best_score - scored[1][0]) < AMBIGUITY_GAP
        if ambiguous:
            logger.warning(
                f"Ambiguous owner match: {best.id} ({best_score:.3f}) vs {scored[1][1].id} ({scored[1][0]:.3f})"
            )

        dob_match = dob_agrees(date_of_birth, best.date_of_birth)
        return OwnerMatch(
            confidence=blend_confidence(best_score, False, dob_match),
            employee_id=best.id,
            method="fuzzy_name",
            name_score=best_score,
            dob_match=dob_match,
            ambiguous=ambiguous,
            matched_name=best.full_name,
        )
