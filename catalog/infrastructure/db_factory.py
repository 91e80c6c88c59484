"""
Database connection factory utilities for the record catalog.

Provides centralized management of PostgreSQL connections and the shared
connection pool with proper lifecycle management. The PoolManager singleton
ensures the pool is cleaned up on application exit.

Includes retry logic for transient connection failures using tenacity.
"""

from __future__ import annotations

import atexit
import threading
from typing import Any, Optional

import psycopg
from psycopg import Connection
from psycopg_pool import ConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from catalog.config import Settings, get_settings
from catalog.utils.logging import get_logger

log = get_logger(__name__)


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN string from settings."""
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


def apply_statement_timeout(target: Any, timeout_ms: int) -> None:
    """
    Bound the runtime of every statement issued through `target`.

    `target` is a psycopg connection or cursor. A non-positive timeout leaves
    the server default in place.
    """
    if timeout_ms <= 0:
        return
    target.execute(f"SET statement_timeout = {int(timeout_ms)}")


class PoolManager:
    """
    Thread-safe singleton for managing the database connection pool.

    Handles lifecycle management with automatic cleanup via atexit hook.
    """

    _instance: Optional["PoolManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "PoolManager":
        """Create or return the singleton instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._pools: dict[str, ConnectionPool] = {}
                # Register cleanup on exit
                atexit.register(cls._instance.close_all)
            return cls._instance

    def get_sync_pool(
        self, dsn: Optional[str] = None, min_size: int = 1, max_size: int = 10
    ) -> ConnectionPool:
        """
        Get or create the synchronous connection pool for `dsn`.

        Parameters
        ----------
        dsn : str, optional
            Connection string. Defaults to the DSN built from settings.
        min_size : int
            Minimum number of idle connections to keep.
        max_size : int
            Maximum total connections in the pool.

        Returns
        -------
        ConnectionPool
            The managed sync pool instance.
        """
        conninfo = dsn or build_dsn()
        with self._lock:
            pool = self._pools.get(conninfo)
            if pool is None:
                pool = ConnectionPool(
                    conninfo=conninfo, min_size=min_size, max_size=max_size, open=True
                )
                self._pools[conninfo] = pool
                log.info("Connection pool opened", extra={"min_size": min_size, "max_size": max_size})
            return pool

    def close_all(self) -> None:
        """
        Close all managed pools and release resources.

        This is called automatically on exit via atexit hook.
        """
        with self._lock:
            pools, self._pools = self._pools, {}
        for pool in pools.values():
            try:
                pool.close()
            except Exception:  # noqa: BLE001 - best-effort cleanup at shutdown
                log.warning("Failed to close connection pool", exc_info=True)


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def get_sync_connection(dsn: Optional[str] = None) -> Connection:
    """
    Acquire a dedicated synchronous connection with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection errors.
    Use this for one-off operations such as schema bootstrapping. Prefer the pool
    for request traffic.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    return psycopg.connect(dsn or build_dsn())


def get_sync_pool(
    dsn: Optional[str] = None, min_size: int = 1, max_size: int = 10
) -> ConnectionPool:
    """
    Get or create a synchronous connection pool via PoolManager.
    """
    manager = PoolManager()
    return manager.get_sync_pool(dsn=dsn, min_size=min_size, max_size=max_size)


__all__ = [
    "PoolManager",
    "apply_statement_timeout",
    "build_dsn",
    "get_sync_connection",
    "get_sync_pool",
]
