"""Structured request logging middleware for ASGI applications."""

from reqlog.context import add_fields, add_writer_to_context, extract, extract_writer, to_context
from reqlog.middleware.structured_logging import (
    AfterFunc,
    BeforeFunc,
    InvalidURLError,
    StructuredLoggingMiddleware,
    default_after,
    default_before,
)
from reqlog.writer import ResponseRecorderMiddleware, StatusRecorder, StatusWriter, as_status_writer

__all__ = [
    "AfterFunc",
    "BeforeFunc",
    "InvalidURLError",
    "ResponseRecorderMiddleware",
    "StatusRecorder",
    "StatusWriter",
    "StructuredLoggingMiddleware",
    "add_fields",
    "add_writer_to_context",
    "as_status_writer",
    "default_after",
    "default_before",
    "extract",
    "extract_writer",
    "to_context",
]
