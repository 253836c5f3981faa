from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

import sqlalchemy as sa

from inventory_store.binding import ParameterSet
from inventory_store.errors import SchemaError
from inventory_store.kinds import column_type_for
from inventory_store.predicate import PredicateFragment
from inventory_store.records import RecordSpec
from inventory_store.schema import SchemaGenerator, TableDescriptor, quote


OWNER_PARAMETER = "owner_id"


@dataclass(frozen=True)
class Statement:
    sql: str
    # Names of the bind parameters the SQL references, in order of appearance.
    parameters: tuple[str, ...] = ()

    def to_text(self, params: ParameterSet) -> sa.TextClause:
        return sa.text(self.sql).bindparams(*params.bindparams(self.parameters))


def ownership_clause(spec: RecordSpec, shared: bool = False) -> str | None:
    """
    Row filter for the caller's identity, or None when the record has no owner field.

    A NULL identity sees every row. With `shared`, rows without an owner are visible
    to everyone as well.
    """
    owner = spec.owner
    if owner is None:
        return None
    column = quote(owner.name)
    sql_type = column_type_for(owner.kind, owner.nullable).sql_type
    clause = f"{column} = :{OWNER_PARAMETER} OR CAST(:{OWNER_PARAMETER} AS {sql_type}) IS NULL"
    if shared:
        clause += f" OR {column} IS NULL"
    return f"({clause})"


class StatementBuilder:
    """SQL text for the storage operations of one aggregate, driven by its table manifests."""

    def __init__(self, generator: SchemaGenerator) -> None:
        self.generator = generator

    def _table(self, spec: RecordSpec) -> TableDescriptor:
        return self.generator.table_for(spec.record_type)

    def _key(self, spec: RecordSpec) -> str:
        if spec.key is None:
            raise SchemaError("statement", f"{spec.name} has no primary key")
        return spec.key.name

    def _where(
        self, spec: RecordSpec, conditions: Iterable[str], params: list[str], shared: bool = False
    ) -> str:
        clauses = list(conditions)
        owner = ownership_clause(spec, shared=shared)
        if owner is not None:
            clauses.append(owner)
            params.append(OWNER_PARAMETER)
        return f" WHERE {' AND '.join(clauses)}" if clauses else ""

    def select(
        self, spec: RecordSpec, where: PredicateFragment | None = None, shared: bool = False
    ) -> Statement:
        params: list[str] = []
        conditions = []
        if where is not None:
            conditions.append(f"({where.sql})")
            params.extend(p.name for p in where.parameters)
        sql = f"SELECT * FROM {self.generator.qualified(self._table(spec).name)}"
        sql += self._where(spec, conditions, params, shared=shared)
        return Statement(sql, tuple(params))

    def select_by_key(self, spec: RecordSpec) -> Statement:
        key = self._key(spec)
        params = [key]
        sql = f"SELECT * FROM {self.generator.qualified(self._table(spec).name)}"
        sql += self._where(spec, [f"{quote(key)} = :{key}"], params)
        return Statement(sql, tuple(params))

    def insert(self, spec: RecordSpec, include_key: bool = False) -> Statement:
        columns = [f.name for f in spec.fields if include_key or not f.server_generated]
        table = self.generator.qualified(self._table(spec).name)
        if columns:
            names = ", ".join(quote(c) for c in columns)
            values = ", ".join(f":{c}" for c in columns)
            sql = f"INSERT INTO {table} ({names}) VALUES ({values})"
        else:
            sql = f"INSERT INTO {table} DEFAULT VALUES"
        if spec.key is not None:
            sql += f" RETURNING {quote(spec.key.name)}"
        return Statement(sql, tuple(columns))

    def update(self, spec: RecordSpec) -> Statement:
        key = self._key(spec)
        owner = spec.owner.name if spec.owner is not None else None
        columns = [f.name for f in spec.fields if f.name not in (key, owner)]
        if not columns:
            raise SchemaError("statement", f"{spec.name} has no updatable columns")
        params = list(columns) + [key]
        assignments = ", ".join(f"{quote(c)} = :{c}" for c in columns)
        sql = f"UPDATE {self.generator.qualified(self._table(spec).name)} SET {assignments}"
        sql += self._where(spec, [f"{quote(key)} = :{key}"], params)
        return Statement(sql, tuple(params))

    def delete(self, spec: RecordSpec) -> Statement:
        key = self._key(spec)
        params = [key]
        sql = f"DELETE FROM {self.generator.qualified(self._table(spec).name)}"
        sql += self._where(spec, [f"{quote(key)} = :{key}"], params)
        return Statement(sql, tuple(params))

    def count(self, spec: RecordSpec, where: PredicateFragment | None = None) -> Statement:
        return self.scalar(spec, "COUNT(*)", where=where)

    def scalar(
        self, spec: RecordSpec, expression: str, where: PredicateFragment | str | None = None
    ) -> Statement:
        """Single aggregate over the owner-filtered table, e.g. `SUM("quantity")`."""
        params: list[str] = []
        conditions = []
        if isinstance(where, PredicateFragment):
            conditions.append(f"({where.sql})")
            params.extend(p.name for p in where.parameters)
        elif where:
            conditions.append(f"({where})")
        sql = f"SELECT {expression} FROM {self.generator.qualified(self._table(spec).name)}"
        sql += self._where(spec, conditions, params)
        return Statement(sql, tuple(params))

    def page(
        self,
        spec: RecordSpec,
        page: int,
        results: int,
        order_by: str | None = None,
        descending: bool = False,
        where: str | None = None,
    ) -> Statement:
        """One page of rows; `page` is 1-based."""
        order_column = order_by or self._key(spec)
        if spec.field(order_column) is None:
            raise SchemaError("statement", f"cannot order {spec.name} by unknown field '{order_column}'")
        params: list[str] = []
        conditions = [f"({where})"] if where else []
        sql = f"SELECT * FROM {self.generator.qualified(self._table(spec).name)}"
        sql += self._where(spec, conditions, params)
        sql += f" ORDER BY {quote(order_column)} {'DESC' if descending else 'ASC'}"
        sql += f" OFFSET {int((page - 1) * results)} ROWS FETCH NEXT {int(results)} ROWS ONLY"
        return Statement(sql, tuple(params))

    def search(self, spec: RecordSpec, columns: Iterable[str], parameter: str = "search_text") -> Statement:
        """
        Rows matching text in any of `columns`, best match first.

        Each row is returned once with a "rank" column: 10 for an exact (case-insensitive)
        match, 100 for a prefix match, 200 for a substring match.
        """
        key = quote(self._key(spec))
        table = self.generator.qualified(self._table(spec).name)
        columns = list(columns)
        for column in columns:
            if spec.field(column) is None:
                raise SchemaError("statement", f"cannot search {spec.name} by unknown field '{column}'")
        params: list[str] = []
        branches = []
        for rank, pattern in (
            (10, f":{parameter}"),
            (100, f"CONCAT(:{parameter}, '%')"),
            (200, f"CONCAT('%', :{parameter}, '%')"),
        ):
            params.append(parameter)
            matches = " OR ".join(f"{quote(c)} ILIKE {pattern}" for c in columns)
            branch = f'SELECT {key}, {rank} AS "rank" FROM {table}'
            branch += self._where(spec, [f"({matches})"], params)
            branches.append(branch)
        sql = (
            f"WITH matches AS ({' UNION ALL '.join(branches)}) "
            f'SELECT m."rank", t.* FROM {table} t '
            f'INNER JOIN (SELECT {key}, MIN("rank") AS "rank" FROM matches GROUP BY {key}) m '
            f"ON m.{key} = t.{key} "
            f'ORDER BY m."rank" ASC, t.{key} ASC'
        )
        return Statement(sql, tuple(dict.fromkeys(params)))
