"""Autocomplete coordination for tag entry.

The coordinator watches pending text and decides when to look up
suggestions, which lookup results to accept, and how an accepted
candidate is committed into the token sequence.

States::

    hidden --(non-empty, non-numeric, non-operator text)--> querying
    querying --(provider resolves)--> showing
    querying/showing --(empty text, cancel, commit, outside click)--> hidden

Every transition bumps a generation counter.  A lookup only lands if its
generation is still current when it resolves, so a result for superseded
text is dropped even when it arrives before the newer one.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Mapping

from pydantic import BaseModel, ConfigDict

from tagformula.formulas.classifier import (
    classify,
    is_number_text,
    is_operand_text,
    suggestion_query,
)
from tagformula.logging import EventType, emit_info, emit_warning
from tagformula.logging.events import SUGGEST_PROVIDER_ERROR, SUGGEST_TIMEOUT
from tagformula.suggestions import SuggestionProvider
from tagformula.tokens import DEFAULT_TAG_PREFIX, TagToken

if TYPE_CHECKING:
    from tagformula.store import FormulaStore

logger = logging.getLogger(__name__)


class AutocompletePhase(str, Enum):
    hidden = "hidden"
    querying = "querying"
    showing = "showing"


class Candidate(BaseModel):
    """A suggested tag label."""

    model_config = ConfigDict(frozen=True)

    label: str

    @classmethod
    def coerce(cls, raw: Any) -> Candidate | None:
        """Normalize a provider item; returns ``None`` for unusable items."""
        if isinstance(raw, Candidate):
            return raw
        if isinstance(raw, str):
            label = raw
        elif isinstance(raw, Mapping):
            label = raw.get("label") or raw.get("name")
        else:
            label = getattr(raw, "label", None) or getattr(raw, "name", None)
        if not isinstance(label, str) or not label.strip():
            return None
        return cls(label=label.strip())


class AutocompleteState(BaseModel):
    """Immutable snapshot of the suggestion list."""

    model_config = ConfigDict(frozen=True)

    phase: AutocompletePhase = AutocompletePhase.hidden
    query: str = ""
    candidates: tuple[Candidate, ...] = ()
    active_index: int = 0
    loading: bool = False

    @property
    def visible(self) -> bool:
        return self.phase != AutocompletePhase.hidden


HIDDEN = AutocompleteState()


class AutocompleteCoordinator:
    """Drives suggestion lookups for the pending text of one editor.

    Args:
        provider: Async ``provider(query) -> list`` of candidates.
        tag_prefix: Marker that starts an explicit tag reference.
        debounce: Seconds to wait before calling the provider.  A lookup
            superseded during the wait never reaches the provider.
        timeout: Seconds before a provider call counts as failed, or
            ``None`` to wait indefinitely.
        on_change: Called with the new state after every transition.
        session_id: Attribution for logged events.
    """

    def __init__(
        self,
        provider: SuggestionProvider,
        *,
        tag_prefix: str = DEFAULT_TAG_PREFIX,
        debounce: float = 0.0,
        timeout: float | None = None,
        on_change: Callable[[AutocompleteState], None] | None = None,
        session_id: str | None = None,
    ) -> None:
        self.provider = provider
        self.tag_prefix = tag_prefix
        self.debounce = debounce
        self.timeout = timeout
        self.on_change = on_change
        self.session_id = session_id
        self._state = HIDDEN
        self._generation = 0
        self._tasks: set[asyncio.Task] = set()

    @property
    def state(self) -> AutocompleteState:
        return self._state

    # ------------------------------------------------------------------
    # Pending text observation
    # ------------------------------------------------------------------

    def wants_lookup(self, pending_text: str) -> bool:
        """True if *pending_text* should trigger a suggestion lookup.

        Lookups are suppressed for blank text and for text that would
        classify as an operand or a number.
        """
        query = suggestion_query(pending_text, self.tag_prefix)
        if not pending_text.strip() or not query:
            return False
        return not (is_operand_text(query) or is_number_text(query))

    def observe(self, pending_text: str) -> None:
        """React to a pending-text change.

        A lookup runs as a task on the running event loop.  Outside a
        loop no lookup can be scheduled and the list stays hidden.
        """
        if not self.wants_lookup(pending_text):
            self.hide("suppressed")
            return

        query = suggestion_query(pending_text, self.tag_prefix)
        if self._state.visible and self._state.query == query:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("no running event loop, skipping lookup for %r", query)
            self.hide("no event loop")
            return

        self._generation += 1
        self._set_state(AutocompleteState(phase=AutocompletePhase.querying, query=query, loading=True))
        task = loop.create_task(self._lookup(query, self._generation))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _lookup(self, query: str, generation: int) -> None:
        try:
            if self.debounce > 0:
                await asyncio.sleep(self.debounce)
                if generation != self._generation:
                    return
            raw = await self._call_provider(query)
            candidates = tuple(c for c in (Candidate.coerce(r) for r in raw or []) if c is not None)
        except asyncio.TimeoutError:
            self._log_failure(query, "Suggestion lookup timed out", SUGGEST_TIMEOUT)
            candidates = ()
        except Exception as exc:
            self._log_failure(query, f"Suggestion lookup failed: {exc}", SUGGEST_PROVIDER_ERROR)
            candidates = ()

        if generation != self._generation or self._state.query != query:
            emit_info(
                EventType.suggestion_discarded,
                "Discarded stale suggestion result",
                {"query": query, "current_query": self._state.query},
                session_id=self.session_id,
            )
            return

        self._set_state(
            AutocompleteState(
                phase=AutocompletePhase.showing,
                query=query,
                candidates=candidates,
                active_index=0,
                loading=False,
            )
        )

    async def _call_provider(self, query: str) -> Any:
        if self.timeout is None:
            return await self.provider(query)
        return await asyncio.wait_for(self.provider(query), self.timeout)

    def _log_failure(self, query: str, message: str, error_code: str) -> None:
        logger.debug("%s (query=%r)", message, query)
        emit_warning(
            EventType.suggestion_failed,
            message,
            {"query": query},
            error_code=error_code,
            session_id=self.session_id,
        )

    async def wait_idle(self) -> None:
        """Wait until no lookup is outstanding."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel outstanding lookups and hide."""
        for task in list(self._tasks):
            task.cancel()
        await self.wait_idle()
        self.hide("closed")

    # ------------------------------------------------------------------
    # Visibility and navigation
    # ------------------------------------------------------------------

    def hide(self, reason: str = "cancel") -> None:
        """Return to hidden; any in-flight lookup becomes stale."""
        self._generation += 1
        if self._state is HIDDEN:
            return
        logger.debug("autocomplete hidden: %s", reason)
        self._set_state(HIDDEN)

    def next(self) -> None:
        self._move(1)

    def previous(self) -> None:
        self._move(-1)

    def _move(self, step: int) -> None:
        state = self._state
        if state.phase != AutocompletePhase.showing or not state.candidates:
            return
        index = (state.active_index + step) % len(state.candidates)
        self._set_state(state.model_copy(update={"active_index": index}))

    def select(self, index: int) -> bool:
        """Point the active index at *index* (pointer hover or click)."""
        state = self._state
        if state.phase != AutocompletePhase.showing or not 0 <= index < len(state.candidates):
            return False
        if index != state.active_index:
            self._set_state(state.model_copy(update={"active_index": index}))
        return True

    def active_candidate(self) -> Candidate | None:
        state = self._state
        if state.phase != AutocompletePhase.showing or not state.candidates:
            return None
        return state.candidates[state.active_index]

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def query_offset(self, pending_text: str) -> int:
        """Start offset of the lookup query (or its tag prefix) in *pending_text*."""
        if self.tag_prefix and self.tag_prefix in pending_text:
            return pending_text.rfind(self.tag_prefix)
        query = suggestion_query(pending_text, self.tag_prefix)
        if not query:
            return 0
        return max(pending_text.lower().rfind(query.lower()), 0)

    def commit_selection(
        self, pending_text: str, store: FormulaStore, index: int | None = None
    ) -> TagToken | None:
        """Commit the active candidate into *store*.

        Text before the query is classified and appended first, then the
        candidate becomes a tag.  The caller clears its pending text.

        Returns:
            The appended tag, or ``None`` if no candidate was active.
        """
        if index is not None and not self.select(index):
            return None
        candidate = self.active_candidate()
        if candidate is None:
            return None

        leading = classify(pending_text[: self.query_offset(pending_text)], self.tag_prefix)
        if leading is not None:
            store.append(leading)
        tag = TagToken(label=candidate.label)
        store.append(tag)
        self.hide("commit")
        return tag

    def _set_state(self, state: AutocompleteState) -> None:
        self._state = state
        if self.on_change is not None:
            self.on_change(state)
