"""PostgreSQL implementation of DataStore.

Each collection maps to the table of the same name in ``db/tables.py``.
Records go in and come out as plain dicts, so services cannot tell this
store from InMemoryDataStore.

  query_ordered   SELECT ... WHERE ... ORDER BY <cols> NULLS LAST, seq
  query_one       SELECT ... WHERE ... ORDER BY seq LIMIT 1
  insert          INSERT ... RETURNING *
  update          UPDATE ... WHERE id = :id
  upsert          INSERT ... ON CONFLICT (<keys>) DO UPDATE ... RETURNING *
  count_where     SELECT count(*) ...

``id`` (UUID text) and ``created_at`` are filled in here when missing.
Unique violations surface as DuplicateRecordError, a missing row on
update as RecordNotFoundError, and any other SQLAlchemy failure as
DataStoreError. The first two subclass DataStoreError.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import Table, and_, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import assessment_service.db.tables  # noqa: F401  (registers tables on Base.metadata)
from assessment_service.db.engine import Base
from assessment_service.repos.data_store import (
    DataStoreError,
    DuplicateRecordError,
    Filters,
    Record,
    RecordNotFoundError,
)


class PgDataStore:
    """Satisfies the DataStore Protocol using PostgreSQL via SQLAlchemy Core.

    Every call runs in its own short transaction, so a multi-step flow
    is a sequence of independent writes, the same as against a hosted
    database API.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    def _table(self, collection: str) -> Table:
        try:
            return Base.metadata.tables[str(collection)]
        except KeyError:
            raise DataStoreError(f"unknown collection {collection!r}") from None

    def _where(self, table: Table, filters: Filters):
        clauses = []
        for key, expected in filters.items():
            column = table.c[key]
            if isinstance(expected, (list, tuple, set, frozenset)):
                clauses.append(column.in_(list(expected)))
            elif expected is None:
                clauses.append(column.is_(None))
            else:
                clauses.append(column == expected)
        return and_(*clauses) if clauses else None

    def _order(self, table: Table, order_by: Sequence[str]) -> list:
        terms = []
        for name in order_by:
            column = table.c[name.lstrip("-")]
            term = column.desc() if name.startswith("-") else column.asc()
            terms.append(term.nulls_last())
        terms.append(table.c.seq.asc())
        return terms

    async def query_ordered(
        self, collection: str, filters: Filters, order_by: Sequence[str] = ()
    ) -> list[Record]:
        table = self._table(collection)
        stmt = select(table).order_by(*self._order(table, order_by))
        where = self._where(table, filters)
        if where is not None:
            stmt = stmt.where(where)
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [dict(row._mapping) for row in result]
        except SQLAlchemyError as e:
            raise DataStoreError(f"{collection}: query failed") from e

    async def query_one(self, collection: str, filters: Filters) -> Record | None:
        table = self._table(collection)
        stmt = select(table).order_by(table.c.seq.asc()).limit(1)
        where = self._where(table, filters)
        if where is not None:
            stmt = stmt.where(where)
        try:
            async with self._session_factory() as session:
                row = (await session.execute(stmt)).first()
        except SQLAlchemyError as e:
            raise DataStoreError(f"{collection}: query failed") from e
        return dict(row._mapping) if row is not None else None

    async def insert(self, collection: str, record: Mapping[str, Any]) -> Record:
        table = self._table(collection)
        values = dict(record)
        values.setdefault("id", str(uuid.uuid4()))
        values.setdefault("created_at", int(time.time()))
        stmt = pg_insert(table).values(**values).returning(table)
        return await self._write_returning(collection, stmt)

    async def update(
        self, collection: str, record_id: str, patch: Mapping[str, Any]
    ) -> None:
        table = self._table(collection)
        stmt = update(table).where(table.c.id == record_id).values(**patch)
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                await session.commit()
        except IntegrityError as e:
            raise DuplicateRecordError(f"{collection}: constraint violated") from e
        except SQLAlchemyError as e:
            raise DataStoreError(f"{collection}: update failed") from e
        if result.rowcount == 0:
            raise RecordNotFoundError(f"{collection}: no record with id={record_id}")

    async def upsert(
        self,
        collection: str,
        record: Mapping[str, Any],
        conflict_keys: Sequence[str],
    ) -> Record:
        table = self._table(collection)
        values = dict(record)
        values.setdefault("id", str(uuid.uuid4()))
        values.setdefault("created_at", int(time.time()))
        stmt = pg_insert(table).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=list(conflict_keys),
            set_={
                k: stmt.excluded[k]
                for k in record
                if k not in conflict_keys and k != "id"
            },
        ).returning(table)
        return await self._write_returning(collection, stmt)

    async def count_where(self, collection: str, filters: Filters) -> int:
        table = self._table(collection)
        stmt = select(func.count()).select_from(table)
        where = self._where(table, filters)
        if where is not None:
            stmt = stmt.where(where)
        try:
            async with self._session_factory() as session:
                return int((await session.execute(stmt)).scalar_one())
        except SQLAlchemyError as e:
            raise DataStoreError(f"{collection}: count failed") from e

    async def _write_returning(self, collection: str, stmt) -> Record:
        try:
            async with self._session_factory() as session:
                row = (await session.execute(stmt)).one()
                await session.commit()
        except IntegrityError as e:
            raise DuplicateRecordError(f"{collection}: constraint violated") from e
        except SQLAlchemyError as e:
            raise DataStoreError(f"{collection}: write failed") from e
        return dict(row._mapping)
