"""Structured event logging for tagformula.

Provides a unified event schema, filesystem NDJSON sink, and safe
emit helpers that never raise uncaught exceptions.
"""

from tagformula.logging.events import (
    EventLevel,
    EventType,
    FormulaEvent,
    emit,
    emit_info,
    emit_warning,
    get_sink,
    redact_context,
    reset_sink,
    set_log_dir,
)
from tagformula.logging.sink import EventSink

__all__ = [
    "EventLevel",
    "EventSink",
    "EventType",
    "FormulaEvent",
    "emit",
    "emit_info",
    "emit_warning",
    "get_sink",
    "redact_context",
    "reset_sink",
    "set_log_dir",
]
