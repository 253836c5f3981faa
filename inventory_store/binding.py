from __future__ import annotations

import enum
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

import sqlalchemy as sa

from inventory_store.errors import SchemaError
from inventory_store.kinds import MIN_TIMESTAMP, ScalarKind, db_type_for, kind_for_value
from inventory_store.records import FieldSpec, Record, RecordSpec, record_spec


@dataclass(frozen=True)
class BoundParameter:
    name: str
    value: Any
    # None only for mapping entries whose value has no known kind (never for a NULL).
    kind: ScalarKind | None = None

    @property
    def db_type(self) -> sa.types.TypeEngine | None:
        return db_type_for(self.kind) if self.kind is not None else None

    def to_bindparam(self) -> sa.BindParameter:
        if self.kind is None:
            return sa.bindparam(self.name, self.value)
        return sa.bindparam(self.name, self.value, type_=self.db_type)


class ParameterSet:
    """Ordered, name-unique parameters for one statement execution."""

    def __init__(self, parameters: Iterable[BoundParameter] = ()) -> None:
        self._parameters: dict[str, BoundParameter] = {}
        self.extend(parameters)

    def add(self, parameter: BoundParameter) -> None:
        self._parameters[parameter.name] = parameter

    def extend(self, parameters: Iterable[BoundParameter]) -> None:
        for p in parameters:
            self.add(p)

    def __iter__(self) -> Iterator[BoundParameter]:
        return iter(self._parameters.values())

    def __len__(self) -> int:
        return len(self._parameters)

    def __contains__(self, name: object) -> bool:
        return name in self._parameters

    def __getitem__(self, name: str) -> BoundParameter:
        return self._parameters[name]

    def values(self) -> dict[str, Any]:
        return {name: p.value for name, p in self._parameters.items()}

    def bindparams(self, names: Iterable[str]) -> list[sa.BindParameter]:
        out = []
        for name in names:
            if name not in self._parameters:
                raise SchemaError("bind", f"statement references unbound parameter '{name}'")
            out.append(self._parameters[name].to_bindparam())
        return out

    def __repr__(self) -> str:
        return f"ParameterSet({self.values()!r})"


def element_text(value: Any) -> str:
    """Text form of one collection element; `materialize` parses it back by the field kind."""
    if isinstance(value, enum.Enum):
        return str(value.value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, timedelta):
        return str(value // timedelta(microseconds=1))
    if isinstance(value, bytes):
        return value.hex()
    return str(value)


def to_db_value(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, (list, tuple, set, frozenset)):
        # No escaping: an element containing a comma does not survive the round trip.
        return ",".join(element_text(e) for e in value)
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, datetime) and value == datetime.min:
        return MIN_TIMESTAMP
    return value


def bind_field(field: FieldSpec, value: Any, name: str | None = None) -> BoundParameter:
    name = name or field.name
    if value is None:
        # The declared type is all there is to go on; a null collection takes its element kind.
        return BoundParameter(name, None, field.kind)
    if field.collection:
        return BoundParameter(name, to_db_value(value), ScalarKind.TEXT)
    return BoundParameter(name, to_db_value(value), field.kind)


def bind(record: Record) -> ParameterSet:
    spec = record_spec(type(record))
    return ParameterSet(bind_field(f, getattr(record, f.name)) for f in spec.fields)


def bind_mapping(values: Mapping[str, Any], spec: RecordSpec | None = None) -> ParameterSet:
    """
    Bind loose key/value pairs.

    Keys matching a field of `spec` are typed from the field; `BoundParameter` values pass
    through; any other value is typed from its runtime value. A null that cannot be
    typed is rejected.
    """
    params = ParameterSet()
    for name, value in values.items():
        if isinstance(value, BoundParameter):
            params.add(value)
            continue
        field = spec.field(name) if spec is not None else None
        if field is not None:
            params.add(bind_field(field, value, name))
        elif value is None:
            raise SchemaError("bind", f"cannot resolve a database type for null parameter '{name}'")
        else:
            params.add(BoundParameter(name, to_db_value(value), kind_for_value(value)))
    return params
