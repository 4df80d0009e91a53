"""
Validation collaborator ports.

Hexagonal Architecture: the pipeline depends on these interfaces, not on
the OpenAI SDK or pdfplumber. Infrastructure adapters implement them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import Optional


@dataclass
class ClassificationHints:
    """
    Context passed to the classifier.

    Attributes:
        file_name: Original attachment filename
        mime_type: Declared MIME type
        requested_type: Document type the originating request asked for
        due_date: Due date of the originating request
        content: Raw bytes, for providers that can read images directly
    """
    file_name: str
    mime_type: str
    requested_type: Optional[str] = None
    due_date: Optional[date] = None
    content: Optional[bytes] = None


@dataclass
class ClassificationOutput:
    """
    Normalized classifier output.

    Attributes:
        document_type: One of DOCUMENT_TYPES ("other" for anything unrecognized)
        confidence: Clamped to [0, 1]
        expiry_date: Parsed expiry date, None if absent or unparseable
        issue_date: Parsed issue date, None if absent or unparseable
        extracted_names: Names printed on the document, most prominent first
        date_of_birth: Date of birth printed on the document
        issuing_country: Issuing country code
        document_number: Document number
        provider: Provider name (e.g. "openai", "filename")
        model: Model name used, None for heuristics
        tokens_in: Input tokens used (None if not reported)
        tokens_out: Output tokens used (None if not reported)
        cost_micros: Cost in micro-USD
        latency_ms: Call latency in milliseconds
    """
    document_type: str
    confidence: float
    expiry_date: Optional[date] = None
    issue_date: Optional[date] = None
    extracted_names: list[str] = field(default_factory=list)
    date_of_birth: Optional[date] = None
    issuing_country: Optional[str] = None
    document_number: Optional[str] = None
    provider: str = "unknown"
    model: Optional[str] = None
    tokens_in: Optional[int] = None
    tokens_out: Optional[int] = None
    cost_micros: int = 0
    latency_ms: int = 0


class ClassificationPort(ABC):
    """
    Abstract interface for document classification providers.

    Implementations must handle:
    - Request formatting for the provider
    - Timeout enforcement
    - Mapping provider errors onto the docintake error taxonomy
    - Normalizing output via normalize_classification()
    """

    @abstractmethod
    def classify(self, text: str, hints: ClassificationHints) -> ClassificationOutput:
        """
        Classify a document.

        Args:
            text: Extracted text (may be empty)
            hints: Filename, MIME type and request context

        Returns:
            ClassificationOutput with normalized fields

        Raises:
            TransientProviderError: Timeout, throttling or connection failure
            AuthError: Provider rejected the credentials
            PermanentClassificationError: Response unusable after normalization
        """
        pass


class TextExtractorPort(ABC):
    """Best-effort text extraction from stored bytes."""

    @abstractmethod
    def extract_text(self, content: bytes, mime_type: str, file_name: str) -> str:
        """
        Extract text from a document.

        Returns:
            Extracted text, "" when nothing could be read. Implementations
            do not raise for unreadable content.
        """
        pass
