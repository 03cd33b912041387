"""Shared fixtures for tagformula tests."""

from __future__ import annotations

import pytest

from tagformula.logging import reset_sink


@pytest.fixture(autouse=True)
def _no_event_sink():
    """Keep the module-level event sink from leaking between tests."""
    reset_sink()
    yield
    reset_sink()
