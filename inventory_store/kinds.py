"""
Semantic scalar kinds and their PostgreSQL column mapping.

The table below is the single source of truth for how a record field is stored:
its column type, the default used when a NOT NULL column is retrofitted onto an
existing table, and the SQLAlchemy type used to bind parameters (including NULLs,
which carry no runtime type of their own).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Mapping
from uuid import UUID

import sqlalchemy as sa

from inventory_store.errors import SchemaError


class ScalarKind(enum.Enum):
    BYTE = "byte"
    INT16 = "int16"
    INT32 = "int32"
    INT64 = "int64"
    FLOAT64 = "float64"
    DECIMAL = "decimal"
    TEXT = "text"
    TIMESTAMP = "timestamp"
    DURATION = "duration"
    UNIQUE_ID = "unique_id"
    BOOLEAN = "boolean"
    BINARY = "binary"
    ENUM = "enum"


INTEGER_KINDS = frozenset({ScalarKind.BYTE, ScalarKind.INT16, ScalarKind.INT32, ScalarKind.INT64})

# Lowest timestamp written by the stored data format; `datetime.min` is bound as this value.
MIN_TIMESTAMP = datetime(1753, 1, 1)


@dataclass(frozen=True)
class ColumnType:
    sql_type: str
    default: str


_COLUMN_TYPES: Mapping[ScalarKind, ColumnType] = MappingProxyType(
    {
        ScalarKind.BYTE: ColumnType("smallint", "0"),
        ScalarKind.INT16: ColumnType("smallint", "0"),
        ScalarKind.INT32: ColumnType("integer", "0"),
        ScalarKind.INT64: ColumnType("bigint", "0"),
        ScalarKind.FLOAT64: ColumnType("double precision", "0"),
        ScalarKind.DECIMAL: ColumnType("decimal(18, 3)", "0"),
        ScalarKind.TEXT: ColumnType("text", "''"),
        ScalarKind.TIMESTAMP: ColumnType("timestamp", "timezone('utc'::text, now())"),
        ScalarKind.DURATION: ColumnType("interval", "'0'::interval"),
        ScalarKind.UNIQUE_ID: ColumnType("uuid", "gen_random_uuid()"),
        ScalarKind.BOOLEAN: ColumnType("boolean", "false"),
        ScalarKind.BINARY: ColumnType("bytea", "''::bytea"),
        ScalarKind.ENUM: ColumnType("integer", "0"),
    }
)

# Collections are stored comma-joined in a single text column.
COLLECTION_COLUMN_TYPE = ColumnType("text", "''")

_DB_TYPES: Mapping[ScalarKind, sa.types.TypeEngine] = MappingProxyType(
    {
        ScalarKind.BYTE: sa.SmallInteger(),
        ScalarKind.INT16: sa.SmallInteger(),
        ScalarKind.INT32: sa.Integer(),
        ScalarKind.INT64: sa.BigInteger(),
        ScalarKind.FLOAT64: sa.Double(),
        ScalarKind.DECIMAL: sa.Numeric(18, 3),
        ScalarKind.TEXT: sa.Text(),
        ScalarKind.TIMESTAMP: sa.DateTime(),
        ScalarKind.DURATION: sa.Interval(),
        ScalarKind.UNIQUE_ID: sa.Uuid(),
        ScalarKind.BOOLEAN: sa.Boolean(),
        ScalarKind.BINARY: sa.LargeBinary(),
        ScalarKind.ENUM: sa.Integer(),
    }
)

# Order matters: bool is a subclass of int.
_PYTHON_KINDS: tuple[tuple[type, ScalarKind], ...] = (
    (bool, ScalarKind.BOOLEAN),
    (enum.Enum, ScalarKind.ENUM),
    (int, ScalarKind.INT32),
    (float, ScalarKind.FLOAT64),
    (Decimal, ScalarKind.DECIMAL),
    (str, ScalarKind.TEXT),
    (datetime, ScalarKind.TIMESTAMP),
    (timedelta, ScalarKind.DURATION),
    (UUID, ScalarKind.UNIQUE_ID),
    (bytes, ScalarKind.BINARY),
)

_ZERO_VALUES: Mapping[ScalarKind, Any] = MappingProxyType(
    {
        ScalarKind.BYTE: 0,
        ScalarKind.INT16: 0,
        ScalarKind.INT32: 0,
        ScalarKind.INT64: 0,
        ScalarKind.FLOAT64: 0.0,
        ScalarKind.DECIMAL: Decimal(0),
        ScalarKind.TEXT: "",
        ScalarKind.TIMESTAMP: datetime.min,
        ScalarKind.DURATION: timedelta(0),
        ScalarKind.UNIQUE_ID: UUID(int=0),
        ScalarKind.BOOLEAN: False,
        ScalarKind.BINARY: b"",
    }
)


def column_type_for(kind: ScalarKind, nullable: bool) -> ColumnType:
    """
    Column type and retrofit default for a kind.

    `nullable` does not change the type; NOT NULL and the default are applied by the
    schema generator. It is part of the signature so callers never special-case it.
    """
    try:
        return _COLUMN_TYPES[kind]
    except KeyError:
        raise SchemaError("column_type_for", f"no column type mapping for kind {kind!r} (nullable={nullable})")


def db_type_for(kind: ScalarKind) -> sa.types.TypeEngine:
    try:
        return _DB_TYPES[kind]
    except KeyError:
        raise SchemaError("db_type_for", f"no database type mapping for kind {kind!r}")


def kind_for_python_type(tp: Any) -> ScalarKind | None:
    if not isinstance(tp, type):
        return None
    for base, kind in _PYTHON_KINDS:
        if issubclass(tp, base):
            return kind
    return None


def kind_for_value(value: Any) -> ScalarKind | None:
    if value is None:
        return None
    kind = kind_for_python_type(type(value))
    if kind is ScalarKind.INT32 and not -(2**31) <= value < 2**31:
        return ScalarKind.INT64
    return kind


def zero_value(kind: ScalarKind, python_type: type | None = None) -> Any:
    """Value a non-nullable field takes when the database hands back NULL."""
    if kind is ScalarKind.ENUM:
        if python_type is None or not issubclass(python_type, enum.Enum):
            return 0
        try:
            return python_type(0)
        except ValueError:
            return next(iter(python_type))
    return _ZERO_VALUES[kind]
