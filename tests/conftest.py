"""
Pytest configuration for the record catalog.

Provides fixtures for:
- A throwaway SQLite store per test (unit suite)
- An API test client wired to that store with a known token
- PostgreSQL connection management for integration tests
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Generator

import psycopg
import pytest
from fastapi.testclient import TestClient

from catalog.api.app import create_app
from catalog.config import Settings
from catalog.infrastructure.store import PostgresRecordStore, SqliteRecordStore

API_TOKEN = "test-token"


@pytest.fixture(autouse=True)
def restore_logging() -> Generator[None, None, None]:
    """
    Undo `configure_logging` calls so tests do not depend on their order.
    """
    root = logging.getLogger()
    level = root.level
    yield
    for handler in [h for h in root.handlers if h.get_name() == "default"]:
        root.removeHandler(handler)
        handler.close()
    root.setLevel(level)


@pytest.fixture
def sqlite_path(tmp_path: Path) -> Path:
    return tmp_path / "catalog.db"


@pytest.fixture
def sqlite_store(sqlite_path: Path) -> SqliteRecordStore:
    """
    Empty SQLite-backed store with the schema in place.
    """
    store = SqliteRecordStore(sqlite_path)
    store.ensure_schema()
    return store


@pytest.fixture
def api_settings(sqlite_path: Path) -> Settings:
    """
    Settings for the HTTP app: SQLite backend and a fixed API token.
    """
    return Settings(
        _env_file=None,
        db_backend="sqlite",
        sqlite_path=str(sqlite_path),
        app_env="test",
        api_token=API_TOKEN,
        metrics_api_token=None,
    )


@pytest.fixture
def client(api_settings: Settings, sqlite_store: SqliteRecordStore) -> Generator[TestClient, None, None]:
    """
    Test client whose unhandled errors surface as 500 responses.
    """
    app = create_app(api_settings, sqlite_store)
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
def auth_headers() -> dict:
    return {"Authorization": f"Bearer {API_TOKEN}"}


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture for integration tests.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        _env_file=None,
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "catalog"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def postgres_store(test_dsn: str, db_connection_available: bool) -> PostgresRecordStore:
    """
    Session-scoped Postgres store with the schema ensured.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")
    store = PostgresRecordStore(dsn=test_dsn, pool_min_size=1, pool_max_size=4)
    store.ensure_schema()
    return store


@pytest.fixture
def clean_records_table(test_dsn: str, postgres_store: PostgresRecordStore):
    """
    Clean the records table before and after each test function.
    """
    with psycopg.connect(test_dsn) as conn:
        conn.execute("TRUNCATE TABLE public.records RESTART IDENTITY;")
    yield postgres_store
    with psycopg.connect(test_dsn) as conn:
        conn.execute("TRUNCATE TABLE public.records RESTART IDENTITY;")
