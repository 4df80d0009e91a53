"""Structured JSON logging for the API process and the Celery workers.

Every line carries the request ID of the HTTP request or task run that
produced it, plus the document/request/job identifiers passed via
``extra`` so a single document can be followed from intake to reminder.
"""

import logging
import json
import sys
from datetime import datetime, timezone

from .request_id import get_request_id

CONTEXT_FIELDS = ("org_id", "document_id", "request_id_ref", "job_id", "rule_id", "reminder_id")

NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "botocore", "httpx", "pdfminer", "celery.redirected")

TEXT_FORMAT = "%(asctime)s %(levelname)-8s [%(service)s %(request_id)s] %(name)s: %(message)s"


class RequestIDFilter(logging.Filter):
    """Stamp records with the current request ID and the emitting service."""

    def __init__(self, service: str = "api"):
        super().__init__()
        self.service = service

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        record.service = self.service
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record; UUIDs and dates in ``extra`` are stringified."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "service": getattr(record, "service", None),
            "request_id": getattr(record, "request_id", "no-request-id"),
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "message": record.getMessage(),
        }
        payload.update(
            {field: getattr(record, field) for field in CONTEXT_FIELDS if getattr(record, field, None) is not None}
        )

        if record.exc_info:
            payload["error"] = f"{type(record.exc_info[1]).__name__}: {record.exc_info[1]}"
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def configure_logging(level: str = "INFO", json_format: bool = True, service: str = "api") -> None:
    """Install a single stdout handler on the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        json_format: JSON lines when True, a human-readable format otherwise
        service: "api" or "worker", written on every line
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(TEXT_FORMAT))
    handler.addFilter(RequestIDFilter(service))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(numeric_level)
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
