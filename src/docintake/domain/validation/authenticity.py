"""Authenticity and duplicate checks.

Structural checks only: the stored bytes must be non-empty and carry the
magic bytes of their declared MIME type. Duplicates are other documents
of the same organization with the same SHA-256.
"""

import hashlib
from dataclasses import dataclass, field
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from ...models.document import Document

BASE_SCORE = 0.7
PDF_SCORE = 0.9
IMAGE_SCORE = 0.85
MISMATCH_SCORE = 0.3

# (offset, bytes) pairs that must all be present
FILE_SIGNATURES: dict[str, list[tuple[int, bytes]]] = {
    "application/pdf": [(0, b"%PDF")],
    "image/jpeg": [(0, b"\xff\xd8\xff")],
    "image/jpg": [(0, b"\xff\xd8\xff")],
    "image/png": [(0, b"\x89PNG")],
    "image/gif": [(0, b"GIF8")],
    "image/webp": [(0, b"RIFF"), (8, b"WEBP")],
    "image/bmp": [(0, b"BM")],
}


@dataclass
class AuthenticityResult:
    score: float
    sha256: str
    signature_valid: Optional[bool]
    empty: bool = False
    duplicate_of_ids: list[UUID] = field(default_factory=list)

    @property
    def is_duplicate(self) -> bool:
        return bool(self.duplicate_of_ids)

    @property
    def structural_failure(self) -> bool:
        return self.empty or self.signature_valid is False


def compute_sha256(content: bytes) -> str:
    return hashlib.sha256(content or b"").hexdigest()


def check_signature(content: bytes, mime_type: str) -> Optional[bool]:
    """Check magic bytes for the declared MIME type.

    Returns:
        True/False for known types, None when the type has no known signature
    """
    signature = FILE_SIGNATURES.get((mime_type or "").lower())
    if signature is None:
        return None
    return all(content[offset:offset + len(magic)] == magic for offset, magic in signature)


def score_authenticity(content: bytes, mime_type: str) -> tuple[float, Optional[bool], bool]:
    """Score stored bytes.

    Returns:
        (score, signature_valid, empty)
    """
    if not content:
        return 0.0, None, True

    signature_valid = check_signature(content, mime_type)
    if signature_valid is False:
        return MISMATCH_SCORE, False, False
    if signature_valid:
        if (mime_type or "").lower() == "application/pdf":
            return PDF_SCORE, True, False
        return IMAGE_SCORE, True, False
    return BASE_SCORE, None, False


def find_duplicates(db: Session, org_id: UUID, sha256: str, exclude_document_id: UUID) -> list[UUID]:
    rows = (
        db.query(Document.id)
        .filter(
            Document.org_id == org_id,
            Document.sha256 == sha256,
            Document.id != exclude_document_id,
        )
        .order_by(Document.created_at.asc())
        .all()
    )
    return [row.id for row in rows]


def check_authenticity(db: Session, document: Document, content: bytes) -> AuthenticityResult:
    """Run structural checks and the duplicate lookup for a document.

    The hash is recomputed from the downloaded bytes; the lookup uses the
    recomputed value so a stale sha256 column cannot hide a duplicate.
    """
    sha256 = compute_sha256(content)
    score, signature_valid, empty = score_authenticity(content, document.mime_type)
    duplicates = find_duplicates(db, document.org_id, sha256, document.id) if not empty else []
    return AuthenticityResult(
        score=score,
        sha256=sha256,
        signature_valid=signature_valid,
        empty=empty,
        duplicate_of_ids=duplicates,
    )
