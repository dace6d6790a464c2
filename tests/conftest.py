"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import pytest


@pytest.fixture(autouse=True)
def clear_dialectic_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep environment overrides from leaking into config tests."""
    monkeypatch.delenv("DIALECTIC_DB_PATH", raising=False)
    monkeypatch.delenv("DIALECTIC_LOG_VERBOSITY", raising=False)
