"""
Persistence store for catalog records.

The core only needs four capabilities from storage: unique-key lookup,
atomic multi-row commit/rollback, ordered scans of one attribute, and simple
filtered listing. `RecordStore` and `StoreTransaction` describe that contract;
`PostgresRecordStore` (psycopg + pool) and `SqliteRecordStore` (stdlib
driver, used for local runs and the unit suite) implement it over the same
SQL.

Column names are interpolated into SQL only from the closed attribute
enumeration in `catalog.domain.models`, never from caller input.
"""

from __future__ import annotations

import abc
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import (
    Any,
    Dict,
    Iterator,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    runtime_checkable,
)

import psycopg
from psycopg_pool import ConnectionPool

from catalog.config import Settings, get_settings
from catalog.domain.models import FIELD_SPECS, PATCH_ATTRIBUTES, Record
from catalog.errors import StoreError, TransactionClosedError
from catalog.infrastructure.db_factory import (
    apply_statement_timeout,
    build_dsn,
    get_sync_connection,
    get_sync_pool,
)
from catalog.utils.logging import get_logger

log = get_logger(__name__)

TABLE = "records"
COLUMNS: tuple[str, ...] = ("id", *PATCH_ATTRIBUTES, "created_at", "updated_at")
NUMERIC_COLUMNS = frozenset(spec.name for spec in FIELD_SPECS.values() if spec.is_numeric)
ORDERABLE_COLUMNS = frozenset({"id", "key"})


def _quoted(name: str) -> str:
    return f'"{name}"'


_SELECT_COLUMNS = ", ".join(_quoted(name) for name in COLUMNS)


def _row_to_record(row: Sequence[Any]) -> Record:
    return Record(**dict(zip(COLUMNS, row)))


@runtime_checkable
class StoreTransaction(Protocol):
    """
    Explicit handle on one write transaction.

    Mutations are visible to later reads through the same handle and become
    durable only on `commit()`. Leaving the context manager without a commit
    rolls everything back.
    """

    def find_by_key(self, key: str) -> Optional[Record]: ...

    def insert(self, values: Mapping[str, Any]) -> Record: ...

    def update(self, record_id: int, values: Mapping[str, Any]) -> Record: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...

    def close(self) -> None: ...

    def __enter__(self) -> "StoreTransaction": ...

    def __exit__(self, exc_type, exc, tb) -> None: ...


@runtime_checkable
class RecordStore(Protocol):
    """Capabilities the catalog core requires from its storage engine."""

    def transaction(self) -> StoreTransaction: ...

    def column_values(self, attribute: str) -> List[float]: ...

    def list_records(
        self,
        *,
        status: Optional[str] = None,
        category: Optional[str] = None,
        limit: Optional[int] = None,
        order_by: str = "id",
    ) -> List[Record]: ...

    def get(self, record_id: int) -> Optional[Record]: ...

    def count(self) -> int: ...

    def count_by_status(self) -> Dict[str, int]: ...

    def ping(self) -> bool: ...

    def ensure_schema(self) -> None: ...


class SqlTransaction:
    """DB-API backed implementation of `StoreTransaction`."""

    def __init__(self, store: "SqlRecordStore", conn: Any) -> None:
        self._store = store
        self._conn = conn
        self._open = True

    def _require_open(self) -> None:
        if not self._open:
            raise TransactionClosedError("transaction is already finished")

    def find_by_key(self, key: str) -> Optional[Record]:
        self._require_open()
        p = self._store.placeholder
        row = self._conn.execute(
            f"SELECT {_SELECT_COLUMNS} FROM {TABLE} WHERE {_quoted('key')} = {p}",
            (key,),
        ).fetchone()
        return _row_to_record(row) if row is not None else None

    def _find_by_id(self, record_id: int) -> Record:
        p = self._store.placeholder
        row = self._conn.execute(
            f"SELECT {_SELECT_COLUMNS} FROM {TABLE} WHERE {_quoted('id')} = {p}",
            (record_id,),
        ).fetchone()
        if row is None:
            raise StoreError(f"record {record_id} vanished inside its own transaction")
        return _row_to_record(row)

    def insert(self, values: Mapping[str, Any]) -> Record:
        self._require_open()
        names = [name for name in PATCH_ATTRIBUTES if name in values]
        now = self._store.timestamp()
        columns = ", ".join(_quoted(name) for name in [*names, "created_at", "updated_at"])
        placeholders = ", ".join([self._store.placeholder] * (len(names) + 2))
        cursor = self._conn.execute(
            f"INSERT INTO {TABLE} ({columns}) VALUES ({placeholders}){self._store.returning_id}",
            (*[values[name] for name in names], now, now),
        )
        return self._find_by_id(self._store.inserted_id(cursor))

    def update(self, record_id: int, values: Mapping[str, Any]) -> Record:
        self._require_open()
        p = self._store.placeholder
        names = [name for name in PATCH_ATTRIBUTES if name in values]
        assignments = ", ".join(f"{_quoted(name)} = {p}" for name in [*names, "updated_at"])
        self._conn.execute(
            f"UPDATE {TABLE} SET {assignments} WHERE {_quoted('id')} = {p}",
            (*[values[name] for name in names], self._store.timestamp(), record_id),
        )
        return self._find_by_id(record_id)

    def commit(self) -> None:
        self._require_open()
        try:
            self._conn.commit()
        finally:
            self._finish()

    def rollback(self) -> None:
        if not self._open:
            return
        try:
            self._conn.rollback()
        except self._store.driver_errors:
            log.warning("Rollback failed; discarding connection state", exc_info=True)
        finally:
            self._finish()

    def close(self) -> None:
        if self._open:
            self.rollback()

    def _finish(self) -> None:
        self._open = False
        self._store.release(self._conn)

    def __enter__(self) -> "SqlTransaction":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class SqlRecordStore(abc.ABC):
    """
    Shared SQL for both backends.

    Subclasses provide connection handling, the parameter placeholder and
    the way an inserted row's id is recovered.
    """

    placeholder: str = "%s"
    returning_id: str = ""
    driver_errors: tuple[type[BaseException], ...] = ()

    @abc.abstractmethod
    def acquire(self) -> Any:
        """Return a connection with a write transaction open."""
        raise NotImplementedError

    @abc.abstractmethod
    def release(self, conn: Any) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def reading(self) -> Any:
        """Context manager yielding a connection for read-only statements."""
        raise NotImplementedError

    @abc.abstractmethod
    def inserted_id(self, cursor: Any) -> int:
        raise NotImplementedError

    @abc.abstractmethod
    def schema_statements(self) -> List[str]:
        raise NotImplementedError

    def timestamp(self) -> Any:
        return datetime.now(timezone.utc)

    def transaction(self) -> SqlTransaction:
        return SqlTransaction(self, self.acquire())

    def column_values(self, attribute: str) -> List[float]:
        """Non-null values of one numeric attribute, ascending."""
        if attribute not in NUMERIC_COLUMNS:
            raise ValueError(f"'{attribute}' is not a numeric record attribute")
        column = _quoted(attribute)
        with self.reading() as conn:
            rows = conn.execute(
                f"SELECT {column} FROM {TABLE} WHERE {column} IS NOT NULL ORDER BY {column}"
            ).fetchall()
        return [float(row[0]) for row in rows]

    def list_records(
        self,
        *,
        status: Optional[str] = None,
        category: Optional[str] = None,
        limit: Optional[int] = None,
        order_by: str = "id",
    ) -> List[Record]:
        if order_by not in ORDERABLE_COLUMNS:
            raise ValueError(f"cannot order records by '{order_by}'")
        p = self.placeholder
        clauses: List[str] = []
        params: List[Any] = []
        if status is not None:
            clauses.append(f"{_quoted('status')} = {p}")
            params.append(status)
        if category is not None:
            clauses.append(f"{_quoted('category')} = {p}")
            params.append(category)
        sql = f"SELECT {_SELECT_COLUMNS} FROM {TABLE}"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += f" ORDER BY {_quoted(order_by)}"
        if limit is not None:
            sql += f" LIMIT {p}"
            params.append(int(limit))
        with self.reading() as conn:
            rows = conn.execute(sql, tuple(params)).fetchall()
        return [_row_to_record(row) for row in rows]

    def get(self, record_id: int) -> Optional[Record]:
        p = self.placeholder
        with self.reading() as conn:
            row = conn.execute(
                f"SELECT {_SELECT_COLUMNS} FROM {TABLE} WHERE {_quoted('id')} = {p}",
                (record_id,),
            ).fetchone()
        return _row_to_record(row) if row is not None else None

    def count(self) -> int:
        with self.reading() as conn:
            row = conn.execute(f"SELECT COUNT(*) FROM {TABLE}").fetchone()
        return int(row[0])

    def count_by_status(self) -> Dict[str, int]:
        status = _quoted("status")
        with self.reading() as conn:
            rows = conn.execute(
                f"SELECT {status}, COUNT(*) FROM {TABLE} GROUP BY {status} ORDER BY {status}"
            ).fetchall()
        return {str(row[0]): int(row[1]) for row in rows if row[0] is not None}

    def ping(self) -> bool:
        try:
            with self.reading() as conn:
                conn.execute("SELECT 1").fetchone()
            return True
        except self.driver_errors:
            log.warning("Store health check failed", exc_info=True)
            return False

    def ensure_schema(self) -> None:
        with self.reading() as conn:
            for statement in self.schema_statements():
                conn.execute(statement)
            conn.commit()
        log.info("Schema ensured", extra={"backend": type(self).__name__})


_COLUMN_TYPES_PG = {
    "key": "TEXT NOT NULL UNIQUE",
    "category": "TEXT",
    "status": "TEXT",
    "description": "TEXT",
    "priority": "INTEGER",
    "score": "DOUBLE PRECISION",
    "complexity": "INTEGER",
    "speed": "INTEGER",
    "quality": "INTEGER",
}

_COLUMN_TYPES_SQLITE = {
    **_COLUMN_TYPES_PG,
    "score": "REAL",
}


def _create_table(id_column: str, types: Mapping[str, str], timestamp_type: str) -> str:
    body = ",\n    ".join(
        [
            f"{_quoted('id')} {id_column}",
            *(f"{_quoted(name)} {types[name]}" for name in PATCH_ATTRIBUTES),
            f"{_quoted('created_at')} {timestamp_type} NOT NULL",
            f"{_quoted('updated_at')} {timestamp_type} NOT NULL",
        ]
    )
    return f"CREATE TABLE IF NOT EXISTS {TABLE} (\n    {body}\n)"


_INDEXES = [
    f"CREATE INDEX IF NOT EXISTS idx_records_status ON {TABLE} ({_quoted('status')})",
    f"CREATE INDEX IF NOT EXISTS idx_records_category ON {TABLE} ({_quoted('category')})",
]


class PostgresRecordStore(SqlRecordStore):
    """
    PostgreSQL-backed store using a psycopg ConnectionPool.

    Write transactions hold one pooled connection from `transaction()` until
    commit or rollback; reads borrow a connection per call.
    """

    placeholder = "%s"
    returning_id = " RETURNING id"
    driver_errors = (psycopg.Error,)

    def __init__(
        self,
        dsn: Optional[str] = None,
        pool_min_size: int = 1,
        pool_max_size: int = 10,
        statement_timeout_ms: int = 0,
    ) -> None:
        self._dsn = dsn or build_dsn()
        self._pool_min_size = pool_min_size
        self._pool_max_size = pool_max_size
        self._statement_timeout_ms = statement_timeout_ms
        self._pool: ConnectionPool | None = None

    def _get_pool(self) -> ConnectionPool:
        if self._pool is None:
            self._pool = get_sync_pool(
                dsn=self._dsn, min_size=self._pool_min_size, max_size=self._pool_max_size
            )
        return self._pool

    def acquire(self) -> Any:
        conn = self._get_pool().getconn()
        try:
            apply_statement_timeout(conn, self._statement_timeout_ms)
        except self.driver_errors:
            self._get_pool().putconn(conn)
            raise
        return conn

    def release(self, conn: Any) -> None:
        self._get_pool().putconn(conn)

    @contextmanager
    def reading(self) -> Iterator[Any]:
        with self._get_pool().connection() as conn:
            yield conn

    def inserted_id(self, cursor: Any) -> int:
        return int(cursor.fetchone()[0])

    def schema_statements(self) -> List[str]:
        return [_create_table("BIGSERIAL PRIMARY KEY", _COLUMN_TYPES_PG, "TIMESTAMPTZ"), *_INDEXES]

    def ensure_schema(self) -> None:
        with get_sync_connection(self._dsn) as conn:
            for statement in self.schema_statements():
                conn.execute(statement)
            conn.commit()
        log.info("Schema ensured", extra={"backend": type(self).__name__})


class SqliteRecordStore(SqlRecordStore):
    """
    SQLite-backed store.

    Each write transaction opens its own connection and takes the database
    write lock up front with `BEGIN IMMEDIATE`, so a batch either commits as
    a whole or leaves the file untouched.
    """

    placeholder = "?"
    returning_id = ""
    driver_errors = (sqlite3.Error,)

    def __init__(self, path: str | Path, timeout_seconds: float = 30.0) -> None:
        self._path = str(path)
        self._timeout = timeout_seconds
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> str:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self._path, timeout=self._timeout, isolation_level=None)

    def acquire(self) -> sqlite3.Connection:
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error:
            conn.close()
            raise
        return conn

    def release(self, conn: sqlite3.Connection) -> None:
        conn.close()

    @contextmanager
    def reading(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            yield conn
        finally:
            conn.close()

    def inserted_id(self, cursor: Any) -> int:
        return int(cursor.lastrowid)

    def timestamp(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    def schema_statements(self) -> List[str]:
        return [
            _create_table("INTEGER PRIMARY KEY AUTOINCREMENT", _COLUMN_TYPES_SQLITE, "TEXT"),
            *_INDEXES,
        ]


def create_store(settings: Optional[Settings] = None) -> SqlRecordStore:
    """Build the store selected by `DB_BACKEND`."""
    settings = settings or get_settings()
    if settings.db_backend == "sqlite":
        return SqliteRecordStore(settings.sqlite_path)
    return PostgresRecordStore(
        dsn=build_dsn(settings),
        pool_min_size=settings.db_pool_min_size,
        pool_max_size=settings.db_pool_max_size,
        statement_timeout_ms=settings.db_statement_timeout_ms,
    )


__all__ = [
    "COLUMNS",
    "PostgresRecordStore",
    "RecordStore",
    "SqlRecordStore",
    "SqlTransaction",
    "SqliteRecordStore",
    "StoreTransaction",
    "create_store",
]
