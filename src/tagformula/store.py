"""Observable container for the live token sequence."""

from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping

from tagformula.logging import EventType, emit_info
from tagformula.tokens import (
    Token,
    TokenLoadError,
    TokenSequence,
    append_token,
    load_tokens,
    remove_last,
    remove_token,
    update_token,
)

Subscriber = Callable[[TokenSequence], None]


class FormulaStore:
    """Holds the ordered token sequence of one editing session.

    Every mutation goes through the four sequence operations (plus bulk
    load and clear).  Subscribers receive the new snapshot after each
    mutation that actually changed the sequence; no-op calls notify
    nobody and return ``False``.
    """

    def __init__(self, tokens: Iterable[Token | Mapping[str, Any]] = (), *, session_id: str | None = None) -> None:
        self._tokens: TokenSequence = load_tokens(tokens)
        self._subscribers: list[Subscriber] = []
        self.session_id = session_id

    @property
    def tokens(self) -> TokenSequence:
        """Read-only snapshot of the current sequence."""
        return self._tokens

    def __len__(self) -> int:
        return len(self._tokens)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register *callback*; returns a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def append(self, token: Token) -> Token | None:
        """Append *token* and return it.

        A token whose id is already live is ignored and ``None`` returned.
        """
        try:
            new = append_token(self._tokens, token)
        except TokenLoadError:
            self._log_edit(False, EventType.token_appended, "append", token.id)
            return None
        self._commit(new)
        emit_info(
            EventType.token_appended,
            f"Appended {token.kind} token",
            {"token_id": token.id, "kind": token.kind},
            session_id=self.session_id,
        )
        return token

    def remove_by_id(self, token_id: str) -> bool:
        changed = self._commit(remove_token(self._tokens, token_id))
        self._log_edit(changed, EventType.token_removed, "remove_by_id", token_id)
        return changed

    def remove_last(self) -> Token | None:
        """Remove the last token and return it (``None`` when empty)."""
        if not self._tokens:
            self._log_edit(False, EventType.token_removed, "remove_last", None)
            return None
        last = self._tokens[-1]
        self._commit(remove_last(self._tokens))
        self._log_edit(True, EventType.token_removed, "remove_last", last.id)
        return last

    def update_by_id(self, token_id: str, patch: Mapping[str, Any]) -> bool:
        """Apply *patch* to a tag token; other kinds are left untouched."""
        changed = self._commit(update_token(self._tokens, token_id, patch))
        self._log_edit(changed, EventType.token_updated, "update_by_id", token_id)
        return changed

    def set_tokens(self, tokens: Iterable[Token | Mapping[str, Any]]) -> None:
        """Replace the whole sequence (bulk load)."""
        loaded = load_tokens(tokens)
        self._tokens = loaded
        self._notify()
        emit_info(
            EventType.tokens_loaded,
            f"Loaded {len(loaded)} token(s)",
            {"count": len(loaded)},
            session_id=self.session_id,
        )

    def clear(self) -> None:
        self.set_tokens(())

    def export(self) -> list[dict[str, Any]]:
        """Return the sequence as plain dicts, suitable for ``set_tokens``."""
        return [t.model_dump() for t in self._tokens]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _commit(self, new: TokenSequence) -> bool:
        if new is self._tokens:
            return False
        self._tokens = new
        self._notify()
        return True

    def _notify(self) -> None:
        snapshot = self._tokens
        for callback in list(self._subscribers):
            callback(snapshot)

    def _log_edit(self, changed: bool, event_type: EventType, op: str, token_id: str | None) -> None:
        if changed:
            emit_info(event_type, f"{op} applied", {"token_id": token_id}, session_id=self.session_id)
        else:
            emit_info(
                EventType.edit_ignored,
                f"{op} ignored",
                {"op": op, "token_id": token_id},
                session_id=self.session_id,
            )
