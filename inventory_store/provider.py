"""
Async storage provider over PostgreSQL.

Construction is blocking: it creates the database if needed, applies the generated
schema and seeds default data (see `inventory_store.bootstrap`). After that every
operation opens its own connection, runs one statement (or a count plus a page) and
closes it again.

Rows are filtered by the caller's `UserContext` on every record type with an owner
field; a context without a user id sees all rows.
"""

from __future__ import annotations

import time
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any, TypeVar

import sqlalchemy as sa
from opentelemetry import trace
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncConnection

from inventory_store.binding import BoundParameter, ParameterSet, bind, bind_field
from inventory_store.bootstrap import bootstrap
from inventory_store.db import create_engine, database_name
from inventory_store.errors import NotFoundError, SchemaError, StorageConnectionError
from inventory_store.kinds import ScalarKind
from inventory_store.logging import logger
from inventory_store.materialize import from_db_value, materialize
from inventory_store.model import InventoryDb, Part, PartType
from inventory_store.observability import instrument_sqlalchemy, setup_tracing, track_operation
from inventory_store.predicate import Predicate, translate
from inventory_store.queries import OWNER_PARAMETER, StatementBuilder
from inventory_store.records import Record, RecordSpec, record_spec
from inventory_store.schema import SchemaGenerator
from inventory_store.schemas import (
    ConnectionResponse,
    MutationResult,
    PaginatedRequest,
    PaginatedResponse,
    SearchResult,
    SortDirection,
    UserContext,
)
from inventory_store.settings import SETTINGS, StorageSettings


R = TypeVar("R", bound=Record)

PART_SEARCH_COLUMNS = (
    "part_number",
    "digikey_part_number",
    "mouser_part_number",
    "arrow_part_number",
    "manufacturer_part_number",
    "description",
    "keywords",
    "location",
    "bin_number",
    "bin_number2",
)
LOW_STOCK_CONDITION = '"quantity" <= "low_stock_threshold"'


def stamp_owner(spec: RecordSpec, record: R, user: UserContext | None) -> R:
    """Copy of `record` with the owner field set from `user`; the caller's instance is never written to."""
    if spec.owner is None:
        return record.model_copy()
    return record.model_copy(update={spec.owner.name: user.user_id if user else None})


class StorageProvider:
    def __init__(self, settings: StorageSettings | None = None, aggregate: type[BaseModel] = InventoryDb) -> None:
        self.settings = settings or SETTINGS
        self.aggregate = aggregate
        self.generator = SchemaGenerator(aggregate, database_name(self.settings), self.settings.schema_name)
        self.statements = StatementBuilder(self.generator)
        bootstrap(self.settings, self.generator)
        self.engine = create_engine(self.settings)
        if self.settings.tracing_enabled:
            setup_tracing(service_name="inventory-store")
            instrument_sqlalchemy(self.engine)

    async def __aenter__(self) -> StorageProvider:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def _connect(self, operation: str, entity: str) -> AsyncIterator[AsyncConnection]:
        tracer = trace.get_tracer("inventory_store.provider")
        start = time.perf_counter()
        with tracer.start_as_current_span("storage_operation") as span, track_operation(operation, entity):
            span.set_attribute("storage.operation", operation)
            span.set_attribute("storage.entity", entity)
            try:
                async with self.engine.begin() as conn:
                    yield conn
            except (sa.exc.SQLAlchemyError, OSError) as ex:
                span.record_exception(ex)
                raise StorageConnectionError(operation, f"{entity}: {ex}", ex) from ex
        logger.info(
            "storage_operation_finished",
            operation=operation,
            entity=entity,
            latency_ms=int((time.perf_counter() - start) * 1000),
        )

    def _owner_parameters(self, spec: RecordSpec, user: UserContext | None) -> list[BoundParameter]:
        if spec.owner is None:
            return []
        return [bind_field(spec.owner, user.user_id if user else None, OWNER_PARAMETER)]

    def _key_parameter(self, spec: RecordSpec, key: Any) -> BoundParameter:
        if spec.key is None:
            raise SchemaError("statement", f"{spec.name} has no primary key")
        return bind_field(spec.key, key)

    async def insert(self, record: R, user: UserContext | None = None) -> R:
        spec = record_spec(type(record))
        record = stamp_owner(spec, record, user)
        statement = self.statements.insert(spec)
        async with self._connect("insert", spec.name) as conn:
            result = await conn.execute(statement.to_text(bind(record)))
            key = result.scalar_one() if spec.key is not None else None
        if spec.key is not None:
            setattr(record, spec.key.name, from_db_value(spec.key, key))
        return record

    async def get(self, record_type: type[R], key: Any, user: UserContext | None = None) -> R | None:
        spec = record_spec(record_type)
        statement = self.statements.select_by_key(spec)
        params = ParameterSet([self._key_parameter(spec, key), *self._owner_parameters(spec, user)])
        async with self._connect("get", spec.name) as conn:
            row = (await conn.execute(statement.to_text(params))).first()
        return materialize(record_type, row) if row is not None else None

    async def get_all(self, record_type: type[R], user: UserContext | None = None) -> list[R]:
        spec = record_spec(record_type)
        statement = self.statements.select(spec)
        params = ParameterSet(self._owner_parameters(spec, user))
        async with self._connect("get_all", spec.name) as conn:
            rows = (await conn.execute(statement.to_text(params))).all()
        return [materialize(record_type, row) for row in rows]

    async def find(self, record_type: type[R], predicate: Predicate, user: UserContext | None = None) -> list[R]:
        spec = record_spec(record_type)
        # Translation errors surface before a connection is opened.
        fragment = translate(predicate, record_type)
        statement = self.statements.select(spec, where=fragment)
        params = ParameterSet([*fragment.parameters, *self._owner_parameters(spec, user)])
        async with self._connect("find", spec.name) as conn:
            rows = (await conn.execute(statement.to_text(params))).all()
        return [materialize(record_type, row) for row in rows]

    async def count(
        self, record_type: type[R], predicate: Predicate | None = None, user: UserContext | None = None
    ) -> int:
        spec = record_spec(record_type)
        fragment = translate(predicate, record_type) if predicate is not None else None
        statement = self.statements.count(spec, where=fragment)
        params = ParameterSet(self._owner_parameters(spec, user))
        if fragment is not None:
            params.extend(fragment.parameters)
        async with self._connect("count", spec.name) as conn:
            return int((await conn.execute(statement.to_text(params))).scalar_one())

    async def get_page(
        self,
        record_type: type[R],
        request: PaginatedRequest,
        user: UserContext | None = None,
        where: str | None = None,
    ) -> PaginatedResponse[R]:
        spec = record_spec(record_type)
        count = self.statements.scalar(spec, "COUNT(*)", where=where)
        page = self.statements.page(
            spec,
            request.page,
            request.results,
            order_by=request.order_by,
            descending=request.direction is SortDirection.DESCENDING,
            where=where,
        )
        params = ParameterSet(self._owner_parameters(spec, user))
        async with self._connect("get_page", spec.name) as conn:
            total = (await conn.execute(count.to_text(params))).scalar_one()
            rows = (await conn.execute(page.to_text(params))).all()
        return PaginatedResponse[record_type](
            total_items=total,
            page_size=request.results,
            page=request.page,
            items=[materialize(record_type, row) for row in rows],
        )

    async def try_update(self, record: Record, user: UserContext | None = None) -> MutationResult:
        """Update by key; a missing or foreign row yields a NOT_FOUND result instead of raising."""
        spec = record_spec(type(record))
        record = stamp_owner(spec, record, user)
        statement = self.statements.update(spec)
        params = bind(record)
        params.extend(self._owner_parameters(spec, user))
        async with self._connect("update", spec.name) as conn:
            rowcount = (await conn.execute(statement.to_text(params))).rowcount
        return MutationResult.from_rowcount(rowcount, spec.name, getattr(record, spec.key.name))

    async def update(self, record: R, user: UserContext | None = None) -> R:
        outcome = await self.try_update(record, user)
        if not outcome.found:
            raise NotFoundError("update", outcome.entity, outcome.key)
        return stamp_owner(record_spec(type(record)), record, user)

    async def try_delete(self, record_type: type[Record], key: Any, user: UserContext | None = None) -> MutationResult:
        spec = record_spec(record_type)
        statement = self.statements.delete(spec)
        params = ParameterSet([self._key_parameter(spec, key), *self._owner_parameters(spec, user)])
        async with self._connect("delete", spec.name) as conn:
            rowcount = (await conn.execute(statement.to_text(params))).rowcount
        return MutationResult.from_rowcount(rowcount, spec.name, key)

    async def delete(self, record_type: type[Record], key: Any, user: UserContext | None = None) -> None:
        outcome = await self.try_delete(record_type, key, user)
        if not outcome.found:
            raise NotFoundError("delete", outcome.entity, outcome.key)

    async def get_database(self, user: UserContext | None = None) -> BaseModel:
        """Every table's rows visible to `user`, assembled into the aggregate type."""
        tables: dict[str, list[Record]] = {}
        for table in self.generator.tables:
            tables[table.name] = await self.get_all(table.spec.record_type, user)
        return self.aggregate(**tables)

    async def test_connection(self) -> ConnectionResponse:
        statement = sa.text("SELECT 1 FROM pg_database WHERE datname = :name").bindparams(
            name=self.generator.database_name
        )
        try:
            async with self._connect("test_connection", "database") as conn:
                exists = (await conn.execute(statement)).first() is not None
        except StorageConnectionError as ex:
            logger.info("storage_connection_failed", error=str(ex))
            return ConnectionResponse(is_success=False, database_exists=False, errors=[str(ex)])
        return ConnectionResponse(is_success=True, database_exists=exists)

    # Part types are shared: rows without an owner are visible to every user.

    async def get_part_types(self, user: UserContext | None = None) -> list[PartType]:
        spec = record_spec(PartType)
        statement = self.statements.select(spec, shared=True)
        params = ParameterSet(self._owner_parameters(spec, user))
        async with self._connect("get_part_types", spec.name) as conn:
            rows = (await conn.execute(statement.to_text(params))).all()
        return [materialize(PartType, row) for row in rows]

    async def get_or_create_part_type(self, part_type: PartType, user: UserContext | None = None) -> PartType:
        existing = await self.find(PartType, lambda p: p.name == part_type.name, user)
        if existing:
            return existing[0]
        return await self.insert(part_type, user)

    # Parts aggregates.

    async def get_unique_parts_count(self, user: UserContext | None = None) -> int:
        return await self.count(Part, user=user)

    async def get_parts_count(self, user: UserContext | None = None) -> int:
        total = await self._scalar(Part, 'CAST(SUM("quantity") AS bigint)', "get_parts_count", user)
        return int(total or 0)

    async def get_parts_value(self, user: UserContext | None = None) -> Decimal:
        total = await self._scalar(Part, 'SUM("cost" * "quantity")', "get_parts_value", user)
        return Decimal(total) if total is not None else Decimal(0)

    async def get_low_stock(
        self, request: PaginatedRequest, user: UserContext | None = None
    ) -> PaginatedResponse[Part]:
        return await self.get_page(Part, request, user, where=LOW_STOCK_CONDITION)

    async def search_parts(
        self, text: str, user: UserContext | None = None, columns: Iterable[str] = PART_SEARCH_COLUMNS
    ) -> list[SearchResult[Part]]:
        spec = record_spec(Part)
        statement = self.statements.search(spec, columns)
        params = ParameterSet(
            [BoundParameter("search_text", text, ScalarKind.TEXT), *self._owner_parameters(spec, user)]
        )
        async with self._connect("search_parts", spec.name) as conn:
            rows = (await conn.execute(statement.to_text(params))).all()
        return [SearchResult[Part](rank=row._mapping["rank"], result=materialize(Part, row)) for row in rows]

    async def _scalar(self, record_type: type[Record], expression: str, operation: str, user: UserContext | None) -> Any:
        spec = record_spec(record_type)
        statement = self.statements.scalar(spec, expression)
        params = ParameterSet(self._owner_parameters(spec, user))
        async with self._connect(operation, spec.name) as conn:
            return (await conn.execute(statement.to_text(params))).scalar_one()
