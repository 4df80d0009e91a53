"""Observability module for docintake.

Provides structured logging, request ID correlation and Prometheus metrics.
"""

from .logging_config import configure_logging
from .request_id import request_id_var, get_request_id, set_request_id, generate_request_id

__all__ = [
    "configure_logging",
    "request_id_var",
    "get_request_id",
    "set_request_id",
    "generate_request_id",
]
