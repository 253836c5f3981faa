from __future__ import annotations

import pytest


def _builder():
    from inventory_store.model import InventoryDb
    from inventory_store.queries import StatementBuilder
    from inventory_store.schema import SchemaGenerator

    return StatementBuilder(SchemaGenerator(InventoryDb, "inventory", "dbo"))


def _spec(record_type):
    from inventory_store.records import record_spec

    return record_spec(record_type)


def test_ownership_clause() -> None:
    from inventory_store.model import Part
    from inventory_store.queries import ownership_clause
    from tests.sample_records import Widget

    assert ownership_clause(_spec(Part)) == '("user_id" = :owner_id OR CAST(:owner_id AS integer) IS NULL)'
    assert ownership_clause(_spec(Part), shared=True) == (
        '("user_id" = :owner_id OR CAST(:owner_id AS integer) IS NULL OR "user_id" IS NULL)'
    )
    assert ownership_clause(_spec(Widget)) is None


def test_insert_skips_generated_key_and_returns_it() -> None:
    from inventory_store.model import PartType

    statement = _builder().insert(_spec(PartType))
    assert statement.sql == (
        'INSERT INTO "dbo"."part_types" ("parent_part_type_id", "name", "user_id", "date_created_utc") '
        'VALUES (:parent_part_type_id, :name, :user_id, :date_created_utc) RETURNING "part_type_id"'
    )
    assert statement.parameters == ("parent_part_type_id", "name", "user_id", "date_created_utc")


def test_insert_keeps_caller_supplied_key() -> None:
    from inventory_store.model import OAuthCredential

    statement = _builder().insert(_spec(OAuthCredential))
    assert statement.parameters[0] == "provider"
    assert statement.sql.endswith('RETURNING "provider"')


def test_select_by_key_is_owner_filtered() -> None:
    from inventory_store.model import Part

    statement = _builder().select_by_key(_spec(Part))
    assert statement.sql == (
        'SELECT * FROM "dbo"."parts" WHERE "part_id" = :part_id '
        'AND ("user_id" = :owner_id OR CAST(:owner_id AS integer) IS NULL)'
    )
    assert statement.parameters == ("part_id", "owner_id")


def test_select_with_predicate() -> None:
    from inventory_store.model import Part
    from inventory_store.predicate import translate

    fragment = translate(lambda p: (p.quantity > 5) | (p.quantity < 1), Part)
    statement = _builder().select(_spec(Part), where=fragment)
    assert statement.sql == (
        'SELECT * FROM "dbo"."parts" WHERE ("quantity" > :p0 OR "quantity" < :p1) '
        'AND ("user_id" = :owner_id OR CAST(:owner_id AS integer) IS NULL)'
    )
    assert statement.parameters == ("p0", "p1", "owner_id")


def test_update_sets_everything_but_key_and_owner() -> None:
    from inventory_store.model import PartType

    statement = _builder().update(_spec(PartType))
    assert statement.sql == (
        'UPDATE "dbo"."part_types" SET "parent_part_type_id" = :parent_part_type_id, "name" = :name, '
        '"date_created_utc" = :date_created_utc WHERE "part_type_id" = :part_type_id '
        'AND ("user_id" = :owner_id OR CAST(:owner_id AS integer) IS NULL)'
    )


def test_delete_and_count() -> None:
    from inventory_store.model import Part

    builder = _builder()
    assert builder.delete(_spec(Part)).sql.startswith('DELETE FROM "dbo"."parts" WHERE "part_id" = :part_id AND (')
    assert builder.count(_spec(Part)).sql.startswith('SELECT COUNT(*) FROM "dbo"."parts" WHERE (')


def test_page_orders_and_slices() -> None:
    from inventory_store.model import Part

    statement = _builder().page(_spec(Part), page=3, results=20, order_by="part_number", descending=True)
    assert statement.sql.endswith('ORDER BY "part_number" DESC OFFSET 40 ROWS FETCH NEXT 20 ROWS ONLY')


def test_page_defaults_to_key_and_rejects_unknown_order() -> None:
    from inventory_store.errors import SchemaError
    from inventory_store.model import Part

    builder = _builder()
    assert 'ORDER BY "part_id" ASC OFFSET 0 ROWS' in builder.page(_spec(Part), page=1, results=10).sql
    with pytest.raises(SchemaError, match="unknown field 'price; DROP TABLE'"):
        builder.page(_spec(Part), page=1, results=10, order_by="price; DROP TABLE")


def test_search_ranks_exact_prefix_and_substring() -> None:
    from inventory_store.model import Part

    statement = _builder().search(_spec(Part), ["part_number", "description"])
    assert "10 AS \"rank\"" in statement.sql
    assert "\"part_number\" ILIKE CONCAT(:search_text, '%')" in statement.sql
    assert "\"description\" ILIKE CONCAT('%', :search_text, '%')" in statement.sql
    assert statement.parameters == ("search_text", "owner_id")


def test_to_text_binds_only_referenced_parameters() -> None:
    from inventory_store.binding import BoundParameter, ParameterSet
    from inventory_store.kinds import ScalarKind
    from inventory_store.model import Part

    statement = _builder().select_by_key(_spec(Part))
    params = ParameterSet(
        [
            BoundParameter("part_id", 1, ScalarKind.INT64),
            BoundParameter("owner_id", None, ScalarKind.INT32),
            BoundParameter("unused", "x", ScalarKind.TEXT),
        ]
    )
    clause = statement.to_text(params)
    assert set(clause._bindparams) == {"part_id", "owner_id"}
