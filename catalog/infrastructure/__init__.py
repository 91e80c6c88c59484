"""
Infrastructure package for the record catalog.

Centralizes persistence concerns (connection factories, pooling, the record
store and key resolution). Keep this layer focused on I/O and resource
management, decoupled from orchestration and HTTP logic.
"""

from catalog.infrastructure.db_factory import (
    PoolManager,
    build_dsn,
    get_sync_connection,
    get_sync_pool,
)
from catalog.infrastructure.resolver import NaturalKeyResolver
from catalog.infrastructure.store import (
    PostgresRecordStore,
    RecordStore,
    SqliteRecordStore,
    StoreTransaction,
    create_store,
)

__all__ = [
    "NaturalKeyResolver",
    "PoolManager",
    "PostgresRecordStore",
    "RecordStore",
    "SqliteRecordStore",
    "StoreTransaction",
    "build_dsn",
    "create_store",
    "get_sync_connection",
    "get_sync_pool",
]
