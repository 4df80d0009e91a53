"""Wiring of domain services to infrastructure adapters.

Workers and API dependencies build their collaborators here so that
settings decide the classifier and storage providers in one place.
"""

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..domain.intake.service import IntakeService
from ..domain.queue.service import ValidationQueue
from ..domain.reminders.service import ReminderService
from ..domain.storage.registry import StorageRegistry
from ..domain.validation.pipeline import ValidationPipeline
from ..domain.validation.ports import ClassificationPort
from ..domain.validation.service import ValidationService
from .ai.openai_classifier import OpenAIClassifier
from .extraction.pdf_text_extractor import PDFTextExtractor
from .notifications.logging_sender import LoggingNotificationSender
from .storage.registry import build_storage_registry

logger = logging.getLogger(__name__)

_storage_registry: Optional[StorageRegistry] = None


def get_storage_registry() -> StorageRegistry:
    """Process-wide storage registry."""
    global _storage_registry
    if _storage_registry is None:
        _storage_registry = build_storage_registry()
    return _storage_registry


def build_classifier(settings: Optional[Settings] = None) -> Optional[ClassificationPort]:
    """OpenAI classifier when an API key is configured, otherwise None (filename heuristic)."""
    settings = settings or get_settings()
    if not settings.OPENAI_API_KEY:
        logger.warning("OPENAI_API_KEY not set; documents are classified by filename only")
        return None
    return OpenAIClassifier(
        api_key=settings.OPENAI_API_KEY,
        model=settings.OPENAI_MODEL,
        timeout_seconds=settings.CLASSIFICATION_TIMEOUT_SECONDS,
        max_text_chars=settings.CLASSIFICATION_MAX_TEXT_CHARS,
    )


def build_pipeline(db: Session, settings: Optional[Settings] = None) -> ValidationPipeline:
    settings = settings or get_settings()
    return ValidationPipeline(
        db,
        storage=get_storage_registry(),
        classifier=build_classifier(settings),
        extractor=PDFTextExtractor(),
        reminders=ReminderService(db),
        prompt_version=settings.CLASSIFICATION_PROMPT_VERSION,
    )


def build_queue(db: Session, pipeline: Optional[ValidationPipeline] = None, settings: Optional[Settings] = None) -> ValidationQueue:
    settings = settings or get_settings()
    return ValidationQueue(
        db,
        pipeline=pipeline,
        max_attempts=settings.QUEUE_MAX_ATTEMPTS,
        visibility_timeout=timedelta(seconds=settings.QUEUE_VISIBILITY_TIMEOUT_SECONDS),
        batch_size=settings.QUEUE_BATCH_SIZE,
    )


def build_validation_service(db: Session, settings: Optional[Settings] = None) -> ValidationService:
    pipeline = build_pipeline(db, settings)
    return ValidationService(db, pipeline=pipeline, queue=build_queue(db, pipeline, settings))


def build_intake_service(db: Session, settings: Optional[Settings] = None) -> IntakeService:
    settings = settings or get_settings()
    pipeline = build_pipeline(db, settings)
    return IntakeService(
        db,
        storage=get_storage_registry(),
        pipeline=pipeline,
        queue=build_queue(db, pipeline, settings),
        validate_inline=settings.VALIDATE_INLINE,
    )


def build_reminder_service(db: Session) -> ReminderService:
    return ReminderService(db, sender=LoggingNotificationSender())
