from pathlib import Path

import pytest
from sqlalchemy import func, select, text

from budget_assistant.db.client import (
    DatabaseNotConfigured,
    get_engine,
    init_db,
    reset_engine,
    resolve_database_url,
    session_scope,
)
from budget_assistant.db.models import BaCategory, BaInstrument, BaTag


@pytest.fixture
def fresh_url(tmp_path: Path):
    reset_engine()
    yield f"sqlite+pysqlite:///{tmp_path / 'fresh.db'}"
    reset_engine()


def test_url_comes_from_override_then_env(monkeypatch):
    with pytest.raises(DatabaseNotConfigured):
        resolve_database_url()
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    assert resolve_database_url() == "sqlite://"
    assert resolve_database_url("sqlite:///x.db") == "sqlite:///x.db"


def test_init_db_seeds_defaults_once(fresh_url):
    init_db(database_url=fresh_url)
    with session_scope(database_url=fresh_url) as session:
        first = session.execute(select(BaCategory.id).order_by(BaCategory.sort_order)).scalars().all()
    init_db(database_url=fresh_url)
    with session_scope(database_url=fresh_url) as session:
        again = session.execute(select(BaCategory.id).order_by(BaCategory.sort_order)).scalars().all()
        assert session.scalar(select(func.count()).select_from(BaTag)) == 10
        assert session.scalar(select(func.count()).select_from(BaInstrument)) == 5
    assert first and first == again


def test_init_db_without_seed_leaves_tables_empty(fresh_url):
    init_db(database_url=fresh_url, seed=False)
    with session_scope(database_url=fresh_url) as session:
        assert session.scalar(select(func.count()).select_from(BaCategory)) == 0


def test_sqlite_enforces_foreign_keys(fresh_url):
    with get_engine(database_url=fresh_url).connect() as conn:
        assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1
