"""Database connection module."""

from src.core.database.async_cassandra import (
    AsyncCassandraConnection,
    init_async_cassandra,
    init_async_tables,
    shutdown_async_cassandra,
)
from src.core.database.errors import STORAGE_ERRORS


__all__ = [
    "STORAGE_ERRORS",
    "AsyncCassandraConnection",
    "init_async_cassandra",
    "init_async_tables",
    "shutdown_async_cassandra",
]
