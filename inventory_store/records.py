"""
Record types and their field manifests.

A record is a pydantic model whose fields are scalars (optionally nullable) or
collections of scalars. Its `RecordSpec` is derived once from the annotations and
cached; the schema generator, binder, materializer and predicate translator all
read that manifest rather than inspecting instances.

Width and role markers ride along in `typing.Annotated`:

    class Part(Record):
        part_id: Annotated[Int64, PRIMARY_KEY] = 0
        user_id: Annotated[Int32 | None, OWNER] = None
        keywords: list[str] | None = None
"""

from __future__ import annotations

import enum
import functools
import types
from dataclasses import dataclass
from typing import Annotated, Any, Union, get_args, get_origin

from pydantic import BaseModel, ConfigDict
from pydantic.fields import FieldInfo

from inventory_store.errors import SchemaError
from inventory_store.kinds import INTEGER_KINDS, ScalarKind, kind_for_python_type


class _Marker:
    def __init__(self, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:
        return self.name


PRIMARY_KEY = _Marker("PRIMARY_KEY")
OWNER = _Marker("OWNER")

Byte = Annotated[int, ScalarKind.BYTE]
Int16 = Annotated[int, ScalarKind.INT16]
Int32 = Annotated[int, ScalarKind.INT32]
Int64 = Annotated[int, ScalarKind.INT64]

_COLLECTION_ORIGINS = (list, set, frozenset, tuple)


class Record(BaseModel):
    model_config = ConfigDict(extra="forbid")


@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: ScalarKind
    python_type: type
    nullable: bool = False
    container: type | None = None
    primary_key: bool = False
    owner: bool = False

    @property
    def collection(self) -> bool:
        return self.container is not None

    @property
    def auto_increment(self) -> bool:
        return self.primary_key and not self.collection and self.kind in INTEGER_KINDS

    @property
    def server_generated(self) -> bool:
        return self.auto_increment or (self.primary_key and self.kind is ScalarKind.UNIQUE_ID)


@dataclass(frozen=True)
class RecordSpec:
    record_type: type[Record]
    fields: tuple[FieldSpec, ...]

    @property
    def name(self) -> str:
        return self.record_type.__name__

    @property
    def key(self) -> FieldSpec | None:
        return next((f for f in self.fields if f.primary_key), None)

    @property
    def owner(self) -> FieldSpec | None:
        return next((f for f in self.fields if f.owner), None)

    def field(self, name: str) -> FieldSpec | None:
        return next((f for f in self.fields if f.name == name), None)


def _declared_annotation(info: FieldInfo) -> Any:
    # pydantic lifts the outermost Annotated metadata off the annotation; put it back.
    if info.metadata:
        return Annotated[(info.annotation, *info.metadata)]
    return info.annotation


def _unwrap(annotation: Any) -> tuple[Any, list[Any], bool]:
    """Strip Annotated/Optional layers, returning (base type, markers, nullable)."""
    markers: list[Any] = []
    nullable = False
    tp = annotation
    while True:
        origin = get_origin(tp)
        if origin is Annotated:
            markers.extend(tp.__metadata__)
            tp = get_args(tp)[0]
        elif origin is Union or origin is types.UnionType:
            args = get_args(tp)
            non_null = [a for a in args if a is not type(None)]
            if len(non_null) != 1:
                return tp, markers, nullable
            nullable = nullable or len(non_null) != len(args)
            tp = non_null[0]
        else:
            return tp, markers, nullable


def _scalar_kind(tp: Any, markers: list[Any]) -> ScalarKind | None:
    explicit = [m for m in markers if isinstance(m, ScalarKind)]
    if explicit:
        return explicit[-1]
    return kind_for_python_type(tp)


def _integer_enum(tp: Any) -> bool:
    if not (isinstance(tp, type) and issubclass(tp, enum.Enum)):
        return False
    return all(isinstance(m.value, int) and not isinstance(m.value, bool) for m in tp)


def _field_spec(owner: type, name: str, annotation: Any) -> FieldSpec:
    tp, markers, nullable = _unwrap(annotation)
    container = None
    if get_origin(tp) in _COLLECTION_ORIGINS or tp in _COLLECTION_ORIGINS:
        container = get_origin(tp) or tp
        args = [a for a in get_args(tp) if a is not Ellipsis]
        element, element_markers, _ = _unwrap(args[0]) if args else (str, [], False)
        tp = element
        markers = markers + element_markers

    kind = _scalar_kind(tp, markers)
    if kind is None:
        raise SchemaError(
            "record_spec",
            f"unsupported data type {annotation!r} for field {owner.__name__}.{name}",
        )
    if kind is ScalarKind.ENUM and not _integer_enum(tp):
        raise SchemaError(
            "record_spec",
            f"enum {tp!r} for field {owner.__name__}.{name} must have integer values",
        )
    return FieldSpec(
        name=name,
        kind=kind,
        python_type=tp,
        nullable=nullable,
        container=container,
        primary_key=PRIMARY_KEY in markers,
        owner=OWNER in markers,
    )


@functools.cache
def record_spec(record_type: type[Record]) -> RecordSpec:
    if not (isinstance(record_type, type) and issubclass(record_type, Record)):
        raise SchemaError("record_spec", f"{record_type!r} is not a Record type")
    fields = tuple(
        _field_spec(record_type, name, _declared_annotation(info)) for name, info in record_type.model_fields.items()
    )
    if sum(f.primary_key for f in fields) > 1:
        raise SchemaError("record_spec", f"{record_type.__name__} declares more than one primary key")
    if sum(f.owner for f in fields) > 1:
        raise SchemaError("record_spec", f"{record_type.__name__} declares more than one owner field")
    return RecordSpec(record_type=record_type, fields=fields)


def aggregate_tables(aggregate_type: type[BaseModel]) -> list[tuple[str, RecordSpec]]:
    """Collection fields of an aggregate, in declaration order, with their element specs."""
    tables: list[tuple[str, RecordSpec]] = []
    for name, info in aggregate_type.model_fields.items():
        declared = _declared_annotation(info)
        tp, _, _ = _unwrap(declared)
        if get_origin(tp) not in _COLLECTION_ORIGINS:
            continue
        args = [a for a in get_args(tp) if a is not Ellipsis]
        element = _unwrap(args[0])[0] if args else None
        if not (isinstance(element, type) and issubclass(element, Record)):
            raise SchemaError(
                "generate_schema",
                f"unsupported data type {declared!r} for table {aggregate_type.__name__}.{name}",
            )
        tables.append((name, record_spec(element)))
    return tables
