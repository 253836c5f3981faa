from __future__ import annotations

import pytest


@pytest.fixture(scope="session")
def postgres_url() -> str:
    # Imported lazily so unit tests run without Docker or testcontainers at hand.
    from testcontainers.postgres import PostgresContainer

    pg = PostgresContainer("postgres:16")
    try:
        pg.start()
    except Exception as e:  # noqa: BLE001
        pytest.skip(f"postgres container unavailable: {e}")
    try:
        yield pg.get_connection_url()
    finally:
        pg.stop()


@pytest.fixture(scope="session")
def storage_settings(postgres_url: str):
    from inventory_store.settings import StorageSettings

    return StorageSettings(database_url=postgres_url, schema_name="dbo")


@pytest.fixture(scope="session")
def provider(storage_settings):
    from inventory_store.provider import StorageProvider

    # Sync construction: bootstrap runs once for the whole session. NullPool keeps each
    # test's event loop free of connections opened by another loop.
    return StorageProvider(storage_settings)
