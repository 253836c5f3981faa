"""
Idempotent DDL for a database aggregate.

Every collection field of the aggregate becomes a table named after the field and
every field of the element record becomes a column. Running the generated script
against an up-to-date database is a no-op; running it after a record gained a field
adds the missing column (`ADD COLUMN IF NOT EXISTS`) without touching existing data.
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel

from inventory_store.errors import SchemaError
from inventory_store.kinds import COLLECTION_COLUMN_TYPE, ScalarKind, column_type_for
from inventory_store.records import FieldSpec, Record, RecordSpec, aggregate_tables


def quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


def _literal(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


@dataclass(frozen=True)
class ColumnDescriptor:
    name: str
    kind: ScalarKind
    sql_type: str
    default: str
    nullable: bool = False
    collection: bool = False
    primary_key: bool = False
    sequence: str | None = None


@dataclass(frozen=True)
class TableDescriptor:
    name: str
    spec: RecordSpec
    columns: tuple[ColumnDescriptor, ...]

    @property
    def primary_key(self) -> ColumnDescriptor | None:
        return next((c for c in self.columns if c.primary_key), None)


def describe_column(table_name: str, field: FieldSpec) -> ColumnDescriptor:
    column_type = COLLECTION_COLUMN_TYPE if field.collection else column_type_for(field.kind, field.nullable)
    return ColumnDescriptor(
        name=field.name,
        kind=field.kind,
        sql_type=column_type.sql_type,
        default=column_type.default,
        nullable=field.nullable,
        collection=field.collection,
        primary_key=field.primary_key,
        sequence=f"{table_name}_{field.name}_seq" if field.auto_increment else None,
    )


def describe_table(name: str, spec: RecordSpec) -> TableDescriptor:
    return TableDescriptor(name=name, spec=spec, columns=tuple(describe_column(name, f) for f in spec.fields))


class SchemaGenerator:
    def __init__(self, aggregate_type: type[BaseModel], database_name: str, schema_name: str = "dbo") -> None:
        self.database_name = database_name
        self.schema_name = schema_name
        self.tables: list[TableDescriptor] = [describe_table(name, spec) for name, spec in aggregate_tables(aggregate_type)]

    def qualified(self, name: str) -> str:
        return f"{quote(self.schema_name)}.{quote(name)}"

    def table_for(self, record_type: type[Record]) -> TableDescriptor:
        for table in self.tables:
            if table.spec.record_type is record_type:
                return table
        raise SchemaError("table_for", f"no table stores records of type {record_type.__name__}")

    def create_database(self) -> str:
        return f"CREATE DATABASE {quote(self.database_name)};"

    def create_schema(self) -> str:
        return f"CREATE SCHEMA IF NOT EXISTS {quote(self.schema_name)};"

    def create_sequences(self) -> list[str]:
        return [
            f"CREATE SEQUENCE IF NOT EXISTS {self.qualified(column.sequence)} START 1 INCREMENT 1;"
            for table in self.tables
            for column in table.columns
            if column.sequence
        ]

    def create_tables(self) -> list[str]:
        statements = []
        for table in self.tables:
            lines = [self._column_sql(column, retrofit=False) for column in table.columns]
            key = table.primary_key
            if key is not None:
                lines.append(f"CONSTRAINT {quote(table.name + '_pkey')} PRIMARY KEY ({quote(key.name)})")
            body = ",\n    ".join(lines)
            statements.append(f"CREATE TABLE IF NOT EXISTS {self.qualified(table.name)} (\n    {body}\n);")
        return statements

    def add_columns(self) -> list[str]:
        return [
            f"ALTER TABLE {self.qualified(table.name)} ADD COLUMN IF NOT EXISTS {self._column_sql(column, retrofit=True)};"
            for table in self.tables
            for column in table.columns
        ]

    def statements(self) -> list[str]:
        return [self.create_schema(), *self.create_sequences(), *self.create_tables(), *self.add_columns()]

    def script(self) -> str:
        return "\n".join(self.statements())

    def _column_sql(self, column: ColumnDescriptor, retrofit: bool) -> str:
        sql = f"{quote(column.name)} {column.sql_type}"
        if column.primary_key:
            if column.sequence:
                sql += f" DEFAULT nextval({_literal(self.qualified(column.sequence))}::regclass)"
            elif column.kind is ScalarKind.UNIQUE_ID:
                sql += f" DEFAULT {column.default}"
            sql += " NOT NULL"
            if retrofit and not column.sequence and column.kind is not ScalarKind.UNIQUE_ID:
                sql += f" DEFAULT {column.default}"
        elif not column.nullable and not column.collection:
            # Defaults only backfill rows of an existing table; a fresh table must get real values on insert.
            sql += " NOT NULL"
            if retrofit:
                sql += f" DEFAULT {column.default}"
        return sql
