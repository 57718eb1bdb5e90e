"""Unit tests for engine wiring in src/database.py.

Only URL handling and settings plumbing are checked; no connection is opened.
"""

from __future__ import annotations

from src.config import Settings
from src.database import _build_engine, async_database_url


def test_plain_postgres_url_gets_asyncpg_driver():
    url = async_database_url("postgresql://records:pw@db:5432/academic_records")

    assert url == "postgresql+asyncpg://records:pw@db:5432/academic_records"


def test_explicit_driver_is_kept():
    url = "postgresql+asyncpg://records:pw@db:5432/academic_records"

    assert async_database_url(url) == url


def test_engine_uses_pool_settings():
    settings = Settings(
        database_url="postgresql://records:pw@db:5432/academic_records",
        db_pool_size=3,
        db_max_overflow=1,
    )

    engine = _build_engine(settings)

    assert engine.url.drivername == "postgresql+asyncpg"
    assert engine.sync_engine.pool.size() == 3
