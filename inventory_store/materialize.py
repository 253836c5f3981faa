from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, TypeVar
from uuid import UUID

from inventory_store.kinds import INTEGER_KINDS, MIN_TIMESTAMP, ScalarKind, zero_value
from inventory_store.records import FieldSpec, Record, record_spec


R = TypeVar("R", bound=Record)


def _element(field: FieldSpec, text: str) -> Any:
    if field.kind is ScalarKind.ENUM:
        return field.python_type(int(text))
    if field.kind in INTEGER_KINDS:
        return int(text)
    if field.kind is ScalarKind.FLOAT64:
        return float(text)
    if field.kind is ScalarKind.DECIMAL:
        return Decimal(text)
    if field.kind is ScalarKind.UNIQUE_ID:
        return UUID(text)
    if field.kind is ScalarKind.BOOLEAN:
        return text == "true"
    if field.kind is ScalarKind.TIMESTAMP:
        return datetime.fromisoformat(text)
    if field.kind is ScalarKind.DURATION:
        return timedelta(microseconds=int(text))
    if field.kind is ScalarKind.BINARY:
        return bytes.fromhex(text)
    return text


def from_db_value(field: FieldSpec, value: Any) -> Any:
    if value is None:
        if field.nullable:
            return None
        if field.collection:
            return field.container()
        return zero_value(field.kind, field.python_type)
    if field.collection:
        return field.container(_element(field, part) for part in str(value).split(",") if part)
    if field.kind is ScalarKind.ENUM and not isinstance(value, field.python_type):
        return field.python_type(value)
    if field.kind is ScalarKind.TIMESTAMP and value == MIN_TIMESTAMP:
        return datetime.min
    if field.kind is ScalarKind.UNIQUE_ID and type(value) is not UUID:
        # asyncpg hands back its own UUID subclass for untyped text() results.
        return UUID(str(value))
    return value


def materialize(record_type: type[R], row: Any) -> R:
    """
    Build a record from a result row.

    Accepts a SQLAlchemy `Row` or any mapping of column name to value. Columns the
    record does not declare are ignored; fields without a column keep their defaults.
    """
    columns: Mapping[str, Any] = row._mapping if hasattr(row, "_mapping") else row
    record = record_type.model_construct()
    for field in record_spec(record_type).fields:
        if field.name in columns:
            setattr(record, field.name, from_db_value(field, columns[field.name]))
    return record
