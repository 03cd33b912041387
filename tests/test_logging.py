"""Tests for the structured event logging system."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from tagformula.logging import (
    EventLevel,
    EventSink,
    EventType,
    FormulaEvent,
    emit,
    emit_info,
    emit_warning,
    get_sink,
    redact_context,
    set_log_dir,
)
from tagformula.store import FormulaStore
from tagformula.tokens import NumberToken


@pytest.fixture
def sink(tmp_path: Path) -> EventSink:
    return EventSink(tmp_path)


# ---------------------------------------------------------------------------
# Event schema
# ---------------------------------------------------------------------------


class TestFormulaEvent:
    def test_event_defaults(self):
        evt = FormulaEvent(
            level=EventLevel.info,
            event_type=EventType.token_appended,
            message="hello",
        )
        assert evt.schema_version == 1
        assert evt.ts.endswith("Z")
        assert evt.level == "info"
        assert evt.event_type == "token_appended"
        assert evt.context == {}
        assert evt.error_code is None

    def test_event_serialization(self):
        evt = FormulaEvent(
            level=EventLevel.warning,
            event_type=EventType.suggestion_failed,
            message="down",
            error_code="suggest_provider_error",
        )
        d = evt.model_dump(mode="json")
        assert d["level"] == "warning"
        assert d["event_type"] == "suggestion_failed"
        assert d["error_code"] == "suggest_provider_error"


# ---------------------------------------------------------------------------
# Redaction
# ---------------------------------------------------------------------------


class TestRedaction:
    def test_sensitive_keys(self):
        out = redact_context({"api_key": "abc", "query": "Sal"})
        assert out == {"api_key": "[REDACTED]", "query": "Sal"}

    def test_url_query_stripped(self):
        out = redact_context({"url": "https://user:pw@example.com/suggest?key=s3cr3t"})
        assert out["url"] == "https://example.com/suggest?[REDACTED]"

    def test_long_values_truncated(self):
        out = redact_context({"expression": "1 + " * 200})
        assert out["expression"].endswith("...[truncated]")
        assert len(out["expression"]) == 256 + len("...[truncated]")

    def test_nested(self):
        out = redact_context({"outer": {"password": "x"}, "items": [{"secret": "y"}]})
        assert out["outer"]["password"] == "[REDACTED]"
        assert out["items"][0]["secret"] == "[REDACTED]"


# ---------------------------------------------------------------------------
# Sink
# ---------------------------------------------------------------------------


class TestEventSink:
    def test_creates_directories(self, sink: EventSink, tmp_path: Path):
        assert (tmp_path / "logs" / "sessions").is_dir()

    def test_write_global_and_session(self, sink: EventSink, tmp_path: Path):
        evt = FormulaEvent(level=EventLevel.info, event_type=EventType.token_removed)
        sink.write(evt, session_id="abc123")
        global_lines = (tmp_path / "logs" / "events.ndjson").read_text().splitlines()
        session_lines = (tmp_path / "logs" / "sessions" / "abc123.ndjson").read_text().splitlines()
        assert len(global_lines) == 1
        assert global_lines == session_lines
        assert json.loads(global_lines[0])["event_type"] == "token_removed"

    def test_unsafe_session_id_skipped(self, sink: EventSink, tmp_path: Path):
        evt = FormulaEvent(level=EventLevel.info, event_type=EventType.token_removed)
        sink.write(evt, session_id="../escape")
        assert list((tmp_path / "logs" / "sessions").iterdir()) == []
        assert sink.read_session_log("../escape") == []

    def test_read_global_filters_and_order(self, sink: EventSink):
        for i, level in enumerate([EventLevel.info, EventLevel.warning, EventLevel.info]):
            sink.write(FormulaEvent(level=level, event_type=EventType.token_appended, message=str(i)))
        events = sink.read_global(level="info")
        assert [e["message"] for e in events] == ["2", "0"]
        assert len(sink.read_global(limit=1)) == 1

    def test_corrupt_lines_skipped(self, sink: EventSink, tmp_path: Path):
        path = tmp_path / "logs" / "events.ndjson"
        path.write_text('not json\n{"level": "info", "event_type": "token_appended"}\n')
        assert len(sink.read_global()) == 1

    def test_tail_bounded_read(self, tmp_path: Path):
        small = EventSink(tmp_path, tail_bytes=400)
        for i in range(20):
            small.write(FormulaEvent(level=EventLevel.info, event_type=EventType.token_appended, message=str(i)))
        events = small.read_global(limit=100)
        assert 0 < len(events) < 20
        assert events[0]["message"] == "19"


# ---------------------------------------------------------------------------
# Emit helpers
# ---------------------------------------------------------------------------


class TestEmit:
    def test_no_sink_discards(self):
        assert get_sink() is None
        emit_info(EventType.token_appended, "dropped")

    def test_helpers_write_levels(self, tmp_path: Path):
        set_log_dir(tmp_path)
        emit_info(EventType.token_appended, "a")
        emit_warning(EventType.suggestion_failed, "b", error_code="suggest_timeout")
        events = get_sink().read_global()
        assert [e["level"] for e in events] == ["warning", "info"]
        assert events[0]["error_code"] == "suggest_timeout"

    def test_emit_never_raises(self, monkeypatch, capsys):
        class BrokenSink:
            def write(self, *args, **kwargs):
                raise OSError("disk full")

        import tagformula.logging.events as events_mod

        monkeypatch.setattr(events_mod, "_sink", BrokenSink())
        monkeypatch.setattr(events_mod, "_last_stderr_ts", float("-inf"))
        emit(FormulaEvent(level=EventLevel.info, event_type=EventType.token_appended))
        assert "logging failed" in capsys.readouterr().err

    def test_store_mutations_are_logged(self, tmp_path: Path):
        set_log_dir(tmp_path)
        store = FormulaStore(session_id="sess1")
        token = store.append(NumberToken(value=1))
        store.remove_by_id("missing")
        store.remove_by_id(token.id)
        events = get_sink().read_session_log("sess1")
        assert [e["event_type"] for e in events] == ["token_appended", "edit_ignored", "token_removed"]
        assert events[1]["context"]["op"] == "remove_by_id"
