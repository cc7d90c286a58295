"""Structured search events and the JSONL audit sink."""

from .audit import (
    AuditEvent,
    EventSink,
    JsonlAuditLogger,
    NullAuditLogger,
    sanitize_arguments,
    utc_timestamp,
)

__all__ = [
    "AuditEvent",
    "EventSink",
    "JsonlAuditLogger",
    "NullAuditLogger",
    "sanitize_arguments",
    "utc_timestamp",
]
