"""Unified event schema and module-level emit helpers.

All timestamps use UTC ISO-8601 with ``Z`` suffix.  The ``emit()``
family of functions is safe to call from any context -- failures are
swallowed and printed to stderr.
"""

from __future__ import annotations

import re
import sys
import time
import traceback
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from urllib.parse import urlparse, urlunparse

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class EventLevel(str, Enum):
    info = "info"
    warning = "warning"
    error = "error"


class EventType(str, Enum):
    # Token sequence mutations
    token_appended = "token_appended"
    token_removed = "token_removed"
    token_updated = "token_updated"
    tokens_loaded = "tokens_loaded"
    edit_ignored = "edit_ignored"

    # Evaluation
    evaluation_failed = "evaluation_failed"

    # Suggestion lookups
    suggestion_failed = "suggestion_failed"
    suggestion_discarded = "suggestion_discarded"


# ---------------------------------------------------------------------------
# Error codes
# ---------------------------------------------------------------------------

EVAL_PARSE_ERROR = "eval_parse_error"
EVAL_NON_FINITE = "eval_non_finite"
EVAL_BAD_BINDING = "eval_bad_binding"

SUGGEST_PROVIDER_ERROR = "suggest_provider_error"
SUGGEST_TIMEOUT = "suggest_timeout"


# ---------------------------------------------------------------------------
# Secret redaction
# ---------------------------------------------------------------------------

_SENSITIVE_KEY_RE = re.compile(
    r"(password|passwd|secret|token_secret|api_key|apikey|authorization|cookie"
    r"|session_key|bearer)",
    re.IGNORECASE,
)

_MAX_VALUE_LEN = 256


def redact_context(context: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *context* with sensitive values redacted.

    Rules:
    - Keys matching sensitive patterns have their values replaced with
      ``"[REDACTED]"``.
    - String values that look like URLs have query params stripped.
    - String values longer than 256 chars are truncated.
    """
    out: dict[str, Any] = {}
    for k, v in context.items():
        if _SENSITIVE_KEY_RE.search(k):
            out[k] = "[REDACTED]"
        elif isinstance(v, dict):
            out[k] = redact_context(v)
        elif isinstance(v, list):
            out[k] = [_redact_value(item) for item in v]
        else:
            out[k] = _redact_value(v)
    return out


def _redact_value(v: Any) -> Any:
    if isinstance(v, dict):
        return redact_context(v)
    if isinstance(v, str):
        if "://" in v:
            parsed = urlparse(v)
            if parsed.scheme in ("http", "https"):
                # Strip query, fragment, and userinfo
                clean = urlunparse((
                    parsed.scheme,
                    parsed.hostname or "",
                    parsed.path,
                    "",
                    "",
                    "",
                ))
                return clean + "?[REDACTED]" if parsed.query else clean
        if len(v) > _MAX_VALUE_LEN:
            return v[:_MAX_VALUE_LEN] + "...[truncated]"
    return v


# ---------------------------------------------------------------------------
# Event model
# ---------------------------------------------------------------------------


def _utc_now() -> str:
    """Return current UTC timestamp in ISO-8601 with Z suffix."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class FormulaEvent(BaseModel):
    """A single structured log event."""

    schema_version: int = 1
    ts: str = Field(default_factory=_utc_now)
    level: EventLevel
    event_type: EventType
    context: dict[str, Any] = Field(default_factory=dict)
    message: str = ""
    error_code: str | None = None


# ---------------------------------------------------------------------------
# Module-level sink reference
# ---------------------------------------------------------------------------

# Lazily initialised when ``set_log_dir`` is called.
_sink: Any = None  # EventSink | None


def set_log_dir(base_dir: Any, *, fsync: bool = False, tail_bytes: int | None = None) -> None:
    """Configure the module-level event sink under *base_dir*/logs.

    If it is never called, ``emit()`` silently discards events.
    """
    global _sink
    from pathlib import Path

    from tagformula.logging.sink import EventSink

    _sink = EventSink(Path(base_dir), fsync=fsync, tail_bytes=tail_bytes)


def reset_sink() -> None:
    """Drop the module-level sink; subsequent events are discarded."""
    global _sink
    _sink = None


def get_sink() -> Any:
    """Return the module-level sink, or None."""
    return _sink


# ---------------------------------------------------------------------------
# Rate-limited stderr warnings
# ---------------------------------------------------------------------------

_last_stderr_ts: float = 0.0
_STDERR_INTERVAL_SECS = 60.0


def _stderr_warning(msg: str) -> None:
    """Print a warning to stderr, rate-limited to one per 60 seconds."""
    global _last_stderr_ts
    now = time.monotonic()
    if now - _last_stderr_ts < _STDERR_INTERVAL_SECS:
        return
    _last_stderr_ts = now
    try:
        print(f"[tagformula] {msg}", file=sys.stderr)
    except Exception:
        pass


# ---------------------------------------------------------------------------
# Safe emit helpers
# ---------------------------------------------------------------------------


def emit(event: FormulaEvent, *, session_id: str | None = None) -> None:
    """Write an event to the global log and optionally a per-session log.

    **Never raises.**  On failure, prints a rate-limited warning to stderr.
    """
    try:
        sink = get_sink()
        if sink is None:
            return
        event = event.model_copy(update={"context": redact_context(event.context)})
        sink.write(event, session_id=session_id)
    except Exception:
        _stderr_warning(f"logging failed: {traceback.format_exc()}")


def _emit_level(
    level: EventLevel,
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None,
    error_code: str | None,
    session_id: str | None,
) -> None:
    emit(
        FormulaEvent(
            level=level,
            event_type=event_type,
            message=message,
            context=context or {},
            error_code=error_code,
        ),
        session_id=session_id,
    )


def emit_info(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    session_id: str | None = None,
) -> None:
    """Convenience: emit an info-level event."""
    _emit_level(EventLevel.info, event_type, message, context, None, session_id)


def emit_warning(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
    session_id: str | None = None,
) -> None:
    """Convenience: emit a warning-level event."""
    _emit_level(EventLevel.warning, event_type, message, context, error_code, session_id)
