"""Generic record store over the named collections the flow reads and writes.

Records are plain dicts keyed by column name. Filters are equality
matches; a list/tuple/set value means "one of", and ``None`` means
"is null". ``order_by`` names columns, ``-col`` for descending; every
query is finally ordered by ``seq`` (insertion order) so ties on
sequence numbers resolve deterministically. Nulls sort last.
"""

from __future__ import annotations

import itertools
import time
import uuid
from collections.abc import Mapping, Sequence
from copy import deepcopy
from enum import StrEnum
from typing import Any, Protocol, runtime_checkable

Record = dict[str, Any]
Filters = Mapping[str, Any]


class Collection(StrEnum):
    PROFILES = "profiles"
    ASSESSMENTS = "assessments"
    TOPICS = "topics"
    QUESTIONS = "questions"
    ANSWERS = "answers"
    ASSIGNMENTS = "assessment_assignments"
    TOPIC_ASSIGNMENTS = "topic_assignments"
    SUBMISSIONS = "assessment_submissions"
    SUBMITTED_ANSWERS = "submitted_answers"


# Mirrors the UNIQUE constraints in assessment_service.db.tables.
UNIQUE_KEYS: dict[str, tuple[tuple[str, ...], ...]] = {
    Collection.PROFILES: (("email",),),
    Collection.ASSIGNMENTS: (("user_id", "assessment_id"),),
    Collection.TOPIC_ASSIGNMENTS: (("submission_id", "topic_id"),),
    Collection.SUBMITTED_ANSWERS: (("submission_id", "question_id"),),
}


class DataStoreError(Exception):
    """A call to the backing store failed."""


class RecordNotFoundError(DataStoreError):
    pass


class DuplicateRecordError(DataStoreError):
    pass


@runtime_checkable
class DataStore(Protocol):
    async def query_ordered(
        self, collection: str, filters: Filters, order_by: Sequence[str] = ()
    ) -> list[Record]: ...
    async def query_one(self, collection: str, filters: Filters) -> Record | None: ...
    async def insert(self, collection: str, record: Mapping[str, Any]) -> Record: ...
    async def update(
        self, collection: str, record_id: str, patch: Mapping[str, Any]
    ) -> None: ...
    async def upsert(
        self,
        collection: str,
        record: Mapping[str, Any],
        conflict_keys: Sequence[str],
    ) -> Record: ...
    async def count_where(self, collection: str, filters: Filters) -> int: ...


def _matches(record: Mapping[str, Any], filters: Filters) -> bool:
    for key, expected in filters.items():
        actual = record.get(key)
        if isinstance(expected, (list, tuple, set, frozenset)):
            if actual not in expected:
                return False
        elif expected is None:
            if actual is not None:
                return False
        elif actual != expected:
            return False
    return True


def _sort_key(record: Mapping[str, Any], column: str) -> tuple[bool, Any]:
    value = record.get(column)
    # (is_null, value): nulls after everything else
    return (value is None, value if value is not None else 0)


def sort_records(records: list[Record], order_by: Sequence[str]) -> list[Record]:
    """Stable multi-column sort; ``seq`` is the implicit final key."""
    ordered = sorted(records, key=lambda r: r.get("seq", 0))
    for column in reversed(order_by):
        descending = column.startswith("-")
        name = column.lstrip("-")
        if descending:
            # Keep nulls last when reversing.
            present = [r for r in ordered if r.get(name) is not None]
            missing = [r for r in ordered if r.get(name) is None]
            present.sort(key=lambda r: r[name], reverse=True)
            ordered = present + missing
        else:
            ordered.sort(key=lambda r: _sort_key(r, name))
    return ordered


class InMemoryDataStore:
    """Dict-backed store for tests and for running without DATABASE_URL."""

    def __init__(self) -> None:
        self._tables: dict[str, list[Record]] = {}
        self._seq = itertools.count(1)

    def clear(self) -> None:
        self._tables.clear()
        self._seq = itertools.count(1)

    def _table(self, collection: str) -> list[Record]:
        return self._tables.setdefault(str(collection), [])

    def _check_unique(
        self, collection: str, record: Mapping[str, Any], ignore_id: str | None = None
    ) -> None:
        for keys in UNIQUE_KEYS.get(collection, ()):
            probe = {k: record.get(k) for k in keys}
            if any(v is None for v in probe.values()):
                continue
            for existing in self._table(collection):
                if existing["id"] != ignore_id and _matches(existing, probe):
                    raise DuplicateRecordError(
                        f"{collection}: duplicate {', '.join(keys)}"
                    )

    async def query_ordered(
        self, collection: str, filters: Filters, order_by: Sequence[str] = ()
    ) -> list[Record]:
        rows = [r for r in self._table(collection) if _matches(r, filters)]
        return deepcopy(sort_records(rows, order_by))

    async def query_one(self, collection: str, filters: Filters) -> Record | None:
        rows = await self.query_ordered(collection, filters)
        return rows[0] if rows else None

    async def insert(self, collection: str, record: Mapping[str, Any]) -> Record:
        row = dict(record)
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", int(time.time()))
        self._check_unique(collection, row)
        row["seq"] = next(self._seq)
        self._table(collection).append(row)
        return deepcopy(row)

    async def update(
        self, collection: str, record_id: str, patch: Mapping[str, Any]
    ) -> None:
        for row in self._table(collection):
            if row["id"] == record_id:
                self._check_unique(collection, {**row, **patch}, ignore_id=record_id)
                row.update(patch)
                return
        raise RecordNotFoundError(f"{collection}: no record with id={record_id}")

    async def upsert(
        self,
        collection: str,
        record: Mapping[str, Any],
        conflict_keys: Sequence[str],
    ) -> Record:
        probe = {k: record.get(k) for k in conflict_keys}
        for row in self._table(collection):
            if _matches(row, probe):
                row.update({k: v for k, v in record.items() if k != "id"})
                return deepcopy(row)
        return await self.insert(collection, record)

    async def count_where(self, collection: str, filters: Filters) -> int:
        return sum(1 for r in self._table(collection) if _matches(r, filters))
