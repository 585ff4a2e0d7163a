"""Shared fixtures.

Database tests run against a fresh file-backed SQLite database per test. The
engine in ``budget_assistant.db.client`` is a process-wide singleton, so it is
reset around every test that touches it.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from budget_assistant.catalog import CategoryCatalog
from budget_assistant.db.client import init_db, reset_engine
from budget_assistant.memory import MerchantMemory
from budget_assistant.tags import TagRegistry


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # Keep a developer's DATABASE_URL or log level from leaking into tests.
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("BUDGET_ASSISTANT_LOG_LEVEL", raising=False)


@pytest.fixture
def catalog() -> CategoryCatalog:
    return CategoryCatalog.default()


@pytest.fixture
def memory() -> MerchantMemory:
    return MerchantMemory()


@pytest.fixture
def tags() -> TagRegistry:
    return TagRegistry.default()


@pytest.fixture
def db_url(tmp_path: Path) -> Iterator[str]:
    """Return the URL of an initialized, empty SQLite database."""

    reset_engine()
    url = f"sqlite+pysqlite:///{tmp_path / 'budget.db'}"
    init_db(database_url=url, seed=False)
    yield url
    reset_engine()
