"""Suggestion providers for tag autocomplete.

A provider is any async callable ``provider(query) -> list`` whose items
are bare strings, mappings with ``label`` (or ``name``), or objects with
a ``label`` attribute.  Providers may raise; the coordinator treats any
failure as "no candidates".
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Iterable, Sequence

import httpx

SuggestionProvider = Callable[[str], Awaitable[Sequence[Any]]]

DEFAULT_SUGGESTIONS = (
    "Sales",
    "Revenue",
    "Expenses",
    "Profit",
    "COGS",
    "Marketing Spend",
    "Salaries",
    "Rent",
    "Utilities",
    "Net Income",
    "Gross Profit",
    "Operating Expenses",
)


class StaticSuggestionProvider:
    """Case-insensitive substring match over a fixed label list.

    Args:
        labels: Candidate labels, in the order they should be offered.
        delay: Seconds to sleep before answering, to mimic a remote lookup.
    """

    def __init__(self, labels: Iterable[str] = DEFAULT_SUGGESTIONS, *, delay: float = 0.0) -> None:
        self.labels = list(labels)
        self.delay = delay

    async def __call__(self, query: str) -> list[str]:
        if not query or not query.strip():
            return []
        needle = query.strip().lower()
        if self.delay:
            await asyncio.sleep(self.delay)
        return [label for label in self.labels if needle in label.lower()]


class HttpSuggestionProvider:
    """Fetch candidates from a JSON endpoint: ``GET <url>?<param>=<query>``.

    The endpoint must answer with a JSON list.  HTTP and decoding errors
    propagate to the caller.
    """

    def __init__(
        self,
        url: str,
        *,
        param: str = "q",
        client: httpx.AsyncClient | None = None,
        timeout: float = 5.0,
    ) -> None:
        self.url = url
        self.param = param
        self._client = client
        self._timeout = timeout

    async def __call__(self, query: str) -> list[Any]:
        if not query or not query.strip():
            return []
        if self._client is not None:
            return await self._fetch(self._client, query.strip())
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await self._fetch(client, query.strip())

    async def _fetch(self, client: httpx.AsyncClient, query: str) -> list[Any]:
        resp = await client.get(self.url, params={self.param: query})
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, list):
            raise ValueError(f"Expected a JSON list from {self.url}, got {type(data).__name__}")
        return data
