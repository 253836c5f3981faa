from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from inventory_store.settings import StorageSettings


_DRIVERS = ("postgresql", "postgresql+asyncpg", "postgresql+psycopg", "postgresql+psycopg2")


def resolve_url(settings: StorageSettings) -> URL:
    url = make_url(settings.database_url)
    if url.drivername not in _DRIVERS:
        raise ValueError(f"unsupported database url driver: {url.drivername}")
    if not url.database:
        url = url.set(database=settings.default_database_name)
    return url


def async_url(settings: StorageSettings) -> URL:
    # Runtime operations use asyncpg regardless of how the URL was written.
    return resolve_url(settings).set(drivername="postgresql+asyncpg")


def sync_url(settings: StorageSettings) -> URL:
    # Bootstrap uses a sync driver; force psycopg3 (a bare postgresql:// would mean psycopg2).
    return resolve_url(settings).set(drivername="postgresql+psycopg")


def maintenance_url(settings: StorageSettings) -> URL:
    return sync_url(settings).set(database=settings.maintenance_database)


def database_name(settings: StorageSettings) -> str:
    return resolve_url(settings).database or settings.default_database_name


def create_engine(settings: StorageSettings) -> AsyncEngine:
    # NullPool: every operation opens and closes its own connection.
    return create_async_engine(async_url(settings), pool_pre_ping=True, poolclass=NullPool)


def create_sync_engine(settings: StorageSettings, autocommit: bool = False, maintenance: bool = False) -> sa.Engine:
    url = maintenance_url(settings) if maintenance else sync_url(settings)
    if autocommit:
        # CREATE DATABASE cannot run inside a transaction block.
        return sa.create_engine(url, poolclass=NullPool, isolation_level="AUTOCOMMIT")
    return sa.create_engine(url, poolclass=NullPool)
