"""Edit controller: turns editor input events into token-sequence edits.

The controller owns the pending text (typed but not yet committed), the
store handle, the autocomplete coordinator and the variable bindings.
After each change it pushes the pending text to the ``render`` callback;
nothing is ever read back from the editing surface.
"""

from __future__ import annotations

import uuid
from typing import Any, Callable, Iterable, Mapping

from tagformula.autocomplete import AutocompleteCoordinator, AutocompleteState
from tagformula.formulas import classify, evaluate
from tagformula.store import FormulaStore
from tagformula.suggestions import StaticSuggestionProvider, SuggestionProvider
from tagformula.tokens import (
    DEFAULT_TAG_PREFIX,
    OPERAND_SYMBOLS,
    OperandToken,
    Token,
    TokenSequence,
    token_text,
)

# DOM-style key names understood by ``handle_key``.
KEY_ENTER = "Enter"
KEY_TAB = "Tab"
KEY_BACKSPACE = "Backspace"
KEY_ESCAPE = "Escape"
KEY_DOWN = "ArrowDown"
KEY_UP = "ArrowUp"


class EditController:
    """Orchestrates one formula editing session.

    Args:
        store: Token sequence container; a fresh one is created if omitted.
        provider: Async suggestion provider (defaults to the static demo list).
        bindings: Tag label -> number, consulted at evaluation time.
        tag_prefix: Marker that starts an explicit tag reference.
        debounce: Seconds before a suggestion lookup is issued.
        timeout: Seconds before a suggestion lookup counts as failed.
        render: Called with the pending text after every change.
        on_result: Called with the new result after every re-evaluation.
        on_autocomplete: Called with each new autocomplete state.
        session_id: Attribution for logged events; generated if omitted.
    """

    def __init__(
        self,
        store: FormulaStore | None = None,
        *,
        provider: SuggestionProvider | None = None,
        bindings: Mapping[str, Any] | None = None,
        tag_prefix: str = DEFAULT_TAG_PREFIX,
        debounce: float = 0.0,
        timeout: float | None = None,
        render: Callable[[str], None] | None = None,
        on_result: Callable[[str], None] | None = None,
        on_autocomplete: Callable[[AutocompleteState], None] | None = None,
        session_id: str | None = None,
    ) -> None:
        self.session_id = session_id or uuid.uuid4().hex
        self.store = store if store is not None else FormulaStore(session_id=self.session_id)
        if self.store.session_id is None:
            self.store.session_id = self.session_id
        self.bindings: dict[str, Any] = dict(bindings or {})
        self.tag_prefix = tag_prefix
        self.render = render
        self.on_result = on_result
        self.autocomplete = AutocompleteCoordinator(
            provider or StaticSuggestionProvider(),
            tag_prefix=tag_prefix,
            debounce=debounce,
            timeout=timeout,
            on_change=on_autocomplete,
            session_id=self.session_id,
        )
        self._pending = ""
        self._result = evaluate(self.store.tokens, self.bindings, session_id=self.session_id)
        self._unsubscribe = self.store.subscribe(self._on_tokens_changed)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def pending_text(self) -> str:
        return self._pending

    @property
    def tokens(self) -> TokenSequence:
        return self.store.tokens

    @property
    def result(self) -> str:
        """Display result of the committed sequence."""
        return self._result

    @property
    def autocomplete_state(self) -> AutocompleteState:
        return self.autocomplete.state

    def set_bindings(self, bindings: Mapping[str, Any]) -> None:
        """Replace the variable bindings and re-evaluate."""
        self.bindings = dict(bindings)
        self._reevaluate(self.store.tokens)

    # ------------------------------------------------------------------
    # Key dispatch
    # ------------------------------------------------------------------

    def handle_key(self, key: str) -> bool:
        """Dispatch a DOM-style key event.

        Returns:
            ``True`` if the engine consumed the key, ``False`` if it should
            fall through to the editing surface's default behaviour.
        """
        if key in (KEY_DOWN, KEY_UP) and self.autocomplete.active_candidate() is not None:
            if key == KEY_DOWN:
                self.autocomplete.next()
            else:
                self.autocomplete.previous()
            return True
        if key == KEY_ENTER:
            self.confirm()
            return True
        if key == KEY_TAB:
            return self.advance()
        if key == KEY_BACKSPACE:
            return self.backspace()
        if key == KEY_ESCAPE:
            self.cancel()
            return True
        if key in OPERAND_SYMBOLS:
            self.press_operator(key)
            return True
        if len(key) == 1 and key.isprintable():
            self.type_text(key)
            return True
        return False

    # ------------------------------------------------------------------
    # Text entry
    # ------------------------------------------------------------------

    def type_text(self, text: str) -> None:
        """Append printable characters to the pending text."""
        self._set_pending(self._pending + text)

    def input_text(self, text: str) -> None:
        """The editing surface now holds *text* (e.g. after paste or native delete)."""
        self._set_pending(text)

    def press_operator(self, symbol: str) -> None:
        """Commit pending text, then append *symbol* as its own operand."""
        if symbol not in OPERAND_SYMBOLS:
            raise ValueError(f"Not an operator or parenthesis: {symbol!r}")
        self._commit_pending()
        self.store.append(OperandToken(value=symbol))
        self._clear_pending()

    def confirm(self) -> None:
        """Submit: accept the active suggestion if any, else commit pending text."""
        if self.autocomplete.active_candidate() is not None:
            self.accept_suggestion()
            return
        self._commit_pending()
        self._clear_pending()

    def advance(self) -> bool:
        """Tab: accept the active suggestion; otherwise not consumed."""
        if self.autocomplete.active_candidate() is None:
            return False
        self.accept_suggestion()
        return True

    def backspace(self) -> bool:
        """Delete backward.

        With pending text the surface deletes a character natively and the
        key is not consumed.  With no pending text the last token is pulled
        back into the pending text for correction.
        """
        if self._pending:
            return False
        last = self.store.remove_last()
        if last is None:
            return False
        self._set_pending(token_text(last, self.tag_prefix))
        return True

    def cancel(self) -> None:
        """Escape: hide suggestions only."""
        self.autocomplete.hide("cancel")

    def outside_interaction(self) -> None:
        """A pointer event landed outside both the editor and the suggestion list."""
        self.autocomplete.hide("outside")

    # ------------------------------------------------------------------
    # Suggestions
    # ------------------------------------------------------------------

    def next_suggestion(self) -> None:
        self.autocomplete.next()

    def previous_suggestion(self) -> None:
        self.autocomplete.previous()

    def hover_suggestion(self, index: int) -> None:
        self.autocomplete.select(index)

    def pick_suggestion(self, index: int) -> bool:
        """Pointer click on candidate *index*."""
        return self.accept_suggestion(index)

    def accept_suggestion(self, index: int | None = None) -> bool:
        tag = self.autocomplete.commit_selection(self._pending, self.store, index)
        if tag is None:
            return False
        self._clear_pending()
        return True

    async def wait_for_suggestions(self) -> AutocompleteState:
        """Wait for outstanding lookups and return the resulting state."""
        await self.autocomplete.wait_idle()
        return self.autocomplete.state

    # ------------------------------------------------------------------
    # Token menu edits
    # ------------------------------------------------------------------

    def delete_token(self, token_id: str) -> bool:
        return self.store.remove_by_id(token_id)

    def edit_tag(self, token_id: str, label: str) -> bool:
        """Rename a tag token; non-tags and blank labels are ignored."""
        return self.store.update_by_id(token_id, {"label": label})

    # ------------------------------------------------------------------
    # Bulk load / export
    # ------------------------------------------------------------------

    def load(self, tokens: Iterable[Token | Mapping[str, Any]]) -> None:
        self.store.set_tokens(tokens)

    def export(self) -> list[dict[str, Any]]:
        return self.store.export()

    def close(self) -> None:
        """Detach from the store."""
        self._unsubscribe()
        self.autocomplete.hide("closed")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _commit_pending(self) -> Token | None:
        token = classify(self._pending, self.tag_prefix)
        if token is not None:
            self.store.append(token)
        return token

    def _set_pending(self, text: str) -> None:
        self._pending = text
        self.autocomplete.observe(text)
        self._render()

    def _clear_pending(self) -> None:
        self._pending = ""
        self.autocomplete.hide("commit")
        self._render()

    def _render(self) -> None:
        if self.render is not None:
            self.render(self._pending)

    def _on_tokens_changed(self, tokens: TokenSequence) -> None:
        self._reevaluate(tokens)

    def _reevaluate(self, tokens: TokenSequence) -> None:
        self._result = evaluate(tokens, self.bindings, session_id=self.session_id)
        if self.on_result is not None:
            self.on_result(self._result)
