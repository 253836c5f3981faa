from __future__ import annotations

from datetime import datetime

import pytest
import sqlalchemy as sa


def test_collection_is_comma_joined_text() -> None:
    from inventory_store.binding import bind
    from inventory_store.kinds import ScalarKind
    from inventory_store.model import Part

    params = bind(Part(keywords=["A", "B", "C"]))
    assert params["keywords"].value == "A,B,C"
    assert params["keywords"].kind is ScalarKind.TEXT


def test_null_is_typed_by_declared_kind() -> None:
    from inventory_store.binding import bind
    from tests.sample_records import Everything

    params = bind(Everything(maybe_big=None))
    p = params["maybe_big"]
    assert p.value is None
    assert isinstance(p.db_type, sa.BigInteger)
    assert isinstance(p.to_bindparam().type, sa.BigInteger)


def test_null_collection_takes_element_kind() -> None:
    from inventory_store.binding import bind
    from inventory_store.kinds import ScalarKind
    from inventory_store.model import Part

    params = bind(Part(keywords=None))
    assert params["keywords"].value is None
    assert params["keywords"].kind is ScalarKind.TEXT


def test_enum_and_min_timestamp_conversion() -> None:
    from inventory_store.binding import bind
    from inventory_store.kinds import MIN_TIMESTAMP
    from tests.sample_records import Color, Everything

    params = bind(Everything(color=Color.BLUE, happened_at=datetime.min))
    assert params["color"].value == 3
    assert params["happened_at"].value == MIN_TIMESTAMP


def test_bind_covers_every_field_in_order_without_mutating() -> None:
    from inventory_store.binding import bind
    from inventory_store.records import record_spec
    from tests.sample_records import Everything

    record = Everything(tags=["x"])
    before = record.model_dump()
    params = bind(record)
    assert [p.name for p in params] == [f.name for f in record_spec(Everything).fields]
    assert record.model_dump() == before


def test_bind_mapping_types_declared_fields_and_runtime_values() -> None:
    from inventory_store.binding import BoundParameter, bind_mapping
    from inventory_store.kinds import ScalarKind
    from inventory_store.model import Part
    from inventory_store.records import record_spec

    explicit = BoundParameter("explicit", None, ScalarKind.UNIQUE_ID)
    params = bind_mapping(
        {"project_id": None, "limit": 10, "name": "R1", "explicit": explicit},
        spec=record_spec(Part),
    )
    assert params["project_id"].kind is ScalarKind.INT64
    assert params["limit"].kind is ScalarKind.INT32
    assert params["name"].kind is ScalarKind.TEXT
    assert params["explicit"] is explicit
    assert params.values() == {"project_id": None, "limit": 10, "name": "R1", "explicit": None}


def test_bind_mapping_rejects_untypeable_null() -> None:
    from inventory_store.binding import bind_mapping
    from inventory_store.errors import SchemaError

    with pytest.raises(SchemaError, match="'mystery'"):
        bind_mapping({"mystery": None})


def test_parameter_set_replaces_by_name_and_checks_references() -> None:
    from inventory_store.binding import BoundParameter, ParameterSet
    from inventory_store.errors import SchemaError

    params = ParameterSet([BoundParameter("a", 1), BoundParameter("b", 2)])
    params.add(BoundParameter("a", 3))
    assert params.values() == {"a": 3, "b": 2}
    assert len(params) == 2
    assert "b" in params

    assert [b.key for b in params.bindparams(["b", "a"])] == ["b", "a"]
    with pytest.raises(SchemaError, match="'c'"):
        params.bindparams(["c"])


def test_collection_elements_use_parseable_text() -> None:
    from datetime import timedelta

    from inventory_store.binding import element_text

    assert element_text(True) == "true"
    assert element_text(b"\x0a\xff") == "0aff"
    assert element_text(datetime(2024, 1, 2, 3, 4, 5)) == "2024-01-02T03:04:05"
    assert element_text(timedelta(seconds=1, microseconds=5)) == "1000005"
    assert element_text(7) == "7"
