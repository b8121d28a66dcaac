"""Shared fixtures for the occurrence engine tests."""

from __future__ import annotations

import pytest

from calendar_occurrences.storage.db import (
    create_session_factory,
    create_store_engine,
    init_db,
)


@pytest.fixture
def session_factory():
    """Session factory bound to a fresh in-memory SQLite database."""
    engine = create_store_engine("sqlite://")
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def clean_env(monkeypatch):
    """Remove settings that would leak into AppConfig from the environment."""
    for name in (
        "DATABASE_URL",
        "CALENDAR_DATA_FILE",
        "MAX_OVERRIDE_SHIFT_DAYS",
        "DEFAULT_DURATION_MINUTES",
        "EXPANSION_WORKERS",
        "LOG_LEVEL",
        "LOG_FILE",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
