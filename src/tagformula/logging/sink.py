"""Filesystem NDJSON event sink with concurrency-safe appends.

Events are appended as one JSON line per event.  Two log destinations:

- ``logs/events.ndjson``  -- global event log
- ``logs/sessions/<session_id>.ndjson``  -- per-editing-session log

Writes use ``json.dumps(sort_keys=True)`` for deterministic output.
Each append acquires an exclusive ``fcntl.flock`` on the target file and
reads acquire a shared lock.  On platforms without ``fcntl`` locking is
skipped.
"""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any

from tagformula.logging.events import FormulaEvent

try:
    import fcntl

    _HAS_FCNTL = True
except ImportError:
    _HAS_FCNTL = False

# Path-component validation: reject anything that could escape the logs dir
_SAFE_ID_RE = re.compile(r"^[A-Za-z0-9_\-]+$")

# Default tail-read size (2 MB)
_DEFAULT_TAIL_BYTES = 2 * 1024 * 1024


class EventSink:
    """Append-only NDJSON log writer with file locking."""

    def __init__(self, base_dir: Path, *, fsync: bool = False, tail_bytes: int | None = None) -> None:
        self.logs_dir = base_dir / "logs"
        self._fsync = fsync
        self._tail_bytes = tail_bytes if tail_bytes is not None else _DEFAULT_TAIL_BYTES

        self.logs_dir.mkdir(parents=True, exist_ok=True)
        (self.logs_dir / "sessions").mkdir(exist_ok=True)

    def write(self, event: FormulaEvent, *, session_id: str | None = None) -> None:
        """Append *event* to the global log and optionally a session log."""
        line = json.dumps(event.model_dump(mode="json"), sort_keys=True, default=str) + "\n"

        self._append(self.logs_dir / "events.ndjson", line)

        if session_id and _SAFE_ID_RE.match(session_id):
            self._append(self.logs_dir / "sessions" / f"{session_id}.ndjson", line)

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------

    def read_global(
        self,
        *,
        level: str | None = None,
        event_type: str | None = None,
        limit: int = 200,
    ) -> list[dict[str, Any]]:
        """Read events from the global log, most-recent-first, with filters."""
        events = self._read_ndjson(self.logs_dir / "events.ndjson")

        if level:
            events = [e for e in events if e.get("level") == level]
        if event_type:
            events = [e for e in events if e.get("event_type") == event_type]

        events.reverse()
        return events[:limit]

    def read_session_log(self, session_id: str) -> list[dict[str, Any]]:
        """Read all events for one editing session, oldest first."""
        if not _SAFE_ID_RE.match(session_id):
            return []
        return self._read_ndjson(self.logs_dir / "sessions" / f"{session_id}.ndjson")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _append(self, path: Path, line: str) -> None:
        """Append a single line to *path* under exclusive file lock."""
        if _HAS_FCNTL:
            fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_APPEND)
            try:
                fcntl.flock(fd, fcntl.LOCK_EX)
                os.write(fd, line.encode("utf-8"))
                if self._fsync:
                    os.fsync(fd)
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
                os.close(fd)
        else:
            with open(path, "a", encoding="utf-8") as f:
                f.write(line)
                if self._fsync:
                    f.flush()
                    os.fsync(f.fileno())

    def _read_ndjson(self, path: Path) -> list[dict[str, Any]]:
        """Read an NDJSON file, skipping lines that do not parse."""
        if not path.exists():
            return []

        events: list[dict[str, Any]] = []
        for line in self._read_tail(path).splitlines():
            line = line.strip()
            if not line:
                continue
            try:
                events.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        return events

    def _read_tail(self, path: Path) -> str:
        """Read up to the last ``self._tail_bytes`` of a file under shared lock."""
        with open(path, "rb") as f:
            if _HAS_FCNTL:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
            try:
                size = os.fstat(f.fileno()).st_size
                if size <= self._tail_bytes:
                    data = f.read()
                else:
                    f.seek(size - self._tail_bytes)
                    data = f.read()
                    # Drop the first (likely partial) line
                    idx = data.find(b"\n")
                    if idx >= 0:
                        data = data[idx + 1:]
            finally:
                if _HAS_FCNTL:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        return data.decode("utf-8", errors="replace")
