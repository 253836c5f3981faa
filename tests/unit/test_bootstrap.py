from __future__ import annotations

from types import SimpleNamespace

import pytest
import sqlalchemy as sa


def test_seed_order_puts_parents_first() -> None:
    from inventory_store.bootstrap import seed_order
    from inventory_store.model import PARENT_PART_TYPES, DefaultPartType

    ordered = seed_order(DefaultPartType, PARENT_PART_TYPES)
    assert set(ordered) == set(DefaultPartType)
    for child, parent in PARENT_PART_TYPES.items():
        assert ordered.index(parent) < ordered.index(child)


def test_seed_order_handles_parents_declared_after_children() -> None:
    from inventory_store.bootstrap import seed_order

    assert seed_order(["led", "diode"], {"led": "diode"}) == ["diode", "led"]


def test_seed_order_rejects_cycles() -> None:
    from inventory_store.bootstrap import seed_order
    from inventory_store.errors import SchemaError

    with pytest.raises(SchemaError, match="own ancestor"):
        seed_order(["a", "b"], {"a": "b", "b": "a"})


class _FakeConnection:
    def __init__(self, error: Exception) -> None:
        self.error = error

    def __enter__(self) -> _FakeConnection:
        return self

    def __exit__(self, *exc_info) -> None:
        return None

    def exec_driver_sql(self, statement: str) -> None:
        raise self.error


class _FakeEngine:
    def __init__(self, error: Exception) -> None:
        self.error = error
        self.disposed = False

    def connect(self) -> _FakeConnection:
        return _FakeConnection(self.error)

    def dispose(self) -> None:
        self.disposed = True


def _dbapi_error(sqlstate: str) -> sa.exc.DBAPIError:
    return sa.exc.ProgrammingError("CREATE DATABASE", {}, SimpleNamespace(sqlstate=sqlstate))


def test_duplicate_database_is_reported_as_already_exists(monkeypatch) -> None:
    import inventory_store.bootstrap as bootstrap
    from inventory_store.errors import AlreadyExistsError
    from inventory_store.model import InventoryDb
    from inventory_store.schema import SchemaGenerator
    from inventory_store.settings import StorageSettings

    engine = _FakeEngine(_dbapi_error("42P04"))
    monkeypatch.setattr(bootstrap, "create_sync_engine", lambda *a, **kw: engine)

    with pytest.raises(AlreadyExistsError, match="inventory already exists") as exc:
        bootstrap.create_database(StorageSettings(), SchemaGenerator(InventoryDb, "inventory"))
    assert isinstance(exc.value.__cause__, sa.exc.DBAPIError)
    assert engine.disposed


def test_other_database_errors_abort_bootstrap(monkeypatch) -> None:
    import inventory_store.bootstrap as bootstrap
    from inventory_store.errors import SchemaError
    from inventory_store.settings import StorageSettings

    engine = _FakeEngine(_dbapi_error("42501"))
    monkeypatch.setattr(bootstrap, "create_sync_engine", lambda *a, **kw: engine)

    with pytest.raises(SchemaError, match="could not create database") as exc:
        bootstrap.bootstrap(StorageSettings())
    assert exc.value.operation == "bootstrap"
    assert isinstance(exc.value.cause, sa.exc.DBAPIError)


def test_cli_prints_ddl_without_connecting(monkeypatch, capsys) -> None:
    import inventory_store.bootstrap as bootstrap

    def _no_connections(*args, **kwargs):
        raise AssertionError("--print-ddl must not connect")

    monkeypatch.setattr(bootstrap, "create_sync_engine", _no_connections)
    bootstrap.main(["--database-url", "postgresql://u:p@h:5432/parts", "--schema", "inv", "--print-ddl"])

    out = capsys.readouterr().out
    assert out.startswith('CREATE DATABASE "parts";\nCREATE SCHEMA IF NOT EXISTS "inv";')
    assert 'CREATE TABLE IF NOT EXISTS "inv"."parts"' in out
