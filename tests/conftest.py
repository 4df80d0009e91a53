"""Pytest fixtures for docintake.

Provides reusable test fixtures for:
- Database session on an in-memory SQLite engine (tables created per test)
- Organization, employee, storage target and open document request
- In-memory storage, scripted classifier and text extractor fakes
- A validation pipeline and queue wired to those fakes

Usage:
    def test_validation(pipeline, make_document):
        document = make_document(b"%PDF-1.4 ...", "passport.pdf")
        result = pipeline.validate(document.id)
"""

import hashlib
import os
from datetime import date, timedelta
from typing import Generator, Optional

# Set environment variables BEFORE importing docintake so settings pick them up
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("OPENAI_API_KEY", "")
os.environ.setdefault("LOG_JSON", "false")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from docintake.domain.queue.service import ValidationQueue
from docintake.domain.reminders.ports import NotificationSenderPort
from docintake.domain.reminders.service import ReminderService
from docintake.domain.storage.ports import StoragePort, StoredFile
from docintake.domain.storage.registry import StorageRegistry
from docintake.domain.validation.pipeline import ValidationPipeline
from docintake.domain.validation.ports import (
    ClassificationHints,
    ClassificationOutput,
    ClassificationPort,
    TextExtractorPort,
)
from docintake.errors import StorageError
from docintake.models import (
    Base,
    Document,
    DocumentRequest,
    Employee,
    Org,
    RequestStatus,
    StorageTarget,
    ValidationStatus,
    utcnow,
)

PDF_BYTES = b"%PDF-1.4\n1 0 obj << /Type /Catalog >> endobj\ntrailer\n%%EOF"

test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class InMemoryStorage(StoragePort):
    """StoragePort keeping files in a dict."""

    provider = "local"

    def __init__(self):
        self.files: dict[str, bytes] = {}
        self.folders: set[str] = set()
        self.fail_with: Optional[Exception] = None

    def upload_file(self, content, filename, folder_path, metadata=None) -> StoredFile:
        if self.fail_with is not None:
            raise self.fail_with
        self.create_folder(folder_path)
        path = f"{folder_path}/{filename}" if folder_path else filename
        counter = 1
        while path in self.files:
            stem, dot, suffix = filename.rpartition(".")
            path = f"{folder_path}/{stem}_{counter}{dot}{suffix}"
            counter += 1
        self.files[path] = content
        return StoredFile(
            path=path,
            sha256=hashlib.sha256(content).hexdigest(),
            size_bytes=len(content),
            provider=self.provider,
        )

    def download_file(self, path: str) -> bytes:
        if self.fail_with is not None:
            raise self.fail_with
        if path not in self.files:
            raise StorageError(f"File not found: {path}", {"path": path})
        return self.files[path]

    def create_folder(self, path: str) -> None:
        self.folders.add(path)


class ScriptedClassifier(ClassificationPort):
    """Returns (or raises) scripted outputs in order; the last one repeats."""

    def __init__(self, *outputs):
        self.outputs = list(outputs)
        self.calls: list[tuple[str, ClassificationHints]] = []

    def classify(self, text: str, hints: ClassificationHints) -> ClassificationOutput:
        self.calls.append((text, hints))
        outcome = self.outputs.pop(0) if len(self.outputs) > 1 else self.outputs[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class StaticTextExtractor(TextExtractorPort):
    def __init__(self, text: str = "PASSPORT\nSurname: DOE\nGiven names: JANE"):
        self.text = text

    def extract_text(self, content: bytes, mime_type: str, file_name: str) -> str:
        return self.text


class RecordingNotifier(NotificationSenderPort):
    def __init__(self, fail_for: Optional[set] = None):
        self.sent: list[tuple[str, str, str]] = []
        self.fail_for = fail_for or set()

    def send(self, recipient: str, subject: str, body: str) -> None:
        if recipient in self.fail_for:
            raise ConnectionError(f"SMTP refused {recipient}")
        self.sent.append((recipient, subject, body))


def passport_output(**overrides) -> ClassificationOutput:
    """Classifier output for Jane Doe's passport, valid for two more years."""
    values = dict(
        document_type="passport",
        confidence=0.95,
        expiry_date=utcnow().date() + timedelta(days=730),
        issue_date=date(2020, 6, 1),
        extracted_names=["Jane Doe"],
        date_of_birth=date(1990, 5, 1),
        issuing_country="US",
        document_number="X1234567",
        provider="fake",
        model="fake-model",
        tokens_in=120,
        tokens_out=40,
        cost_micros=42,
        latency_ms=5,
    )
    values.update(overrides)
    return ClassificationOutput(**values)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh database session for each test.

    Creates all tables before the test and drops them after.
    """
    Base.metadata.create_all(bind=test_engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def org(db_session: Session) -> Org:
    org = Org(name="Acme Corp", slug="acme", settings_json={})
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture
def employee(db_session: Session, org: Org) -> Employee:
    employee = Employee(
        org_id=org.id,
        email="jane.doe@acme.com",
        first_name="Jane",
        last_name="Doe",
        date_of_birth=date(1990, 5, 1),
    )
    db_session.add(employee)
    db_session.commit()
    return employee


@pytest.fixture
def storage_target(db_session: Session, org: Org) -> StorageTarget:
    target = StorageTarget(org_id=org.id, name="Default", provider="local", config_json={}, is_default=True)
    db_session.add(target)
    db_session.commit()
    return target


@pytest.fixture
def document_request(db_session: Session, org: Org, employee: Employee) -> DocumentRequest:
    request = DocumentRequest(
        org_id=org.id,
        employee_id=employee.id,
        recipient_email="jane.doe@acme.com",
        subject="Passport copy for onboarding",
        requested_document_type="passport",
        due_date=utcnow().date() + timedelta(days=14),
        expected_count=1,
        status=RequestStatus.SENT,
    )
    db_session.add(request)
    db_session.commit()
    return request


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def memory_storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def storage_registry(memory_storage: InMemoryStorage) -> StorageRegistry:
    registry = StorageRegistry()
    registry.register("local", lambda cfg: memory_storage)
    return registry


@pytest.fixture
def classification():
    """Factory for classifier outputs; keyword arguments override the passport defaults."""
    return passport_output


@pytest.fixture
def classifier() -> ScriptedClassifier:
    """Scripted classifier; tests replace .outputs to change its behaviour."""
    return ScriptedClassifier(passport_output())


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def pipeline(db_session, storage_registry, classifier) -> ValidationPipeline:
    return ValidationPipeline(
        db_session,
        storage=storage_registry,
        classifier=classifier,
        extractor=StaticTextExtractor(),
        reminders=ReminderService(db_session),
        prompt_version="test_v1",
    )


@pytest.fixture
def queue(db_session, pipeline) -> ValidationQueue:
    return ValidationQueue(db_session, pipeline=pipeline)


@pytest.fixture
def make_document(db_session: Session, org: Org, employee: Employee, memory_storage: InMemoryStorage):
    """Factory storing bytes in memory_storage and creating the Document row."""

    def _make(
        content: bytes = PDF_BYTES,
        file_name: str = "passport.pdf",
        mime_type: str = "application/pdf",
        request: Optional[DocumentRequest] = None,
        sender_email: Optional[str] = "jane.doe@acme.com",
    ) -> Document:
        stored = memory_storage.upload_file(content, file_name, "inbox")
        document = Document(
            org_id=org.id,
            request_id=request.id if request else None,
            storage_provider="local",
            storage_path=stored.path,
            file_name=file_name,
            mime_type=mime_type,
            size_bytes=stored.size_bytes,
            sha256=stored.sha256,
            sender_email=sender_email,
            validation_status=ValidationStatus.PENDING,
        )
        db_session.add(document)
        db_session.commit()
        return document

    return _make
