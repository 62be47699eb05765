from __future__ import annotations

from datetime import datetime
from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

import pytest

import sql_record_store
from record_errors import BackendUnavailable
from record_store import Filter, RecordStore, Row, set_record_store
from sql_record_store import SqlRecordStore, metadata


@pytest.fixture()
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def immediate_to_thread(monkeypatch):
    async def immediate(func, *args, **kwargs):
        return func(*args, **kwargs)

    monkeypatch.setattr(sql_record_store, "to_thread", SimpleNamespace(run_sync=immediate))


@pytest.fixture(autouse=True)
def reset_record_store():
    set_record_store(None)
    yield
    set_record_store(None)


@pytest.fixture()
def store() -> SqlRecordStore:
    return SqlRecordStore(db_url="sqlite:///:memory:")


def seed(store: SqlRecordStore, table: str, *rows: Dict[str, Any]) -> None:
    with store.engine.begin() as conn:
        for row in rows:
            conn.execute(metadata.tables[table].insert().values(**row))


def fetch_row(store: SqlRecordStore, table: str, record_id: str) -> Optional[Dict[str, Any]]:
    tbl = metadata.tables[table]
    with store.engine.connect() as conn:
        row = conn.execute(tbl.select().where(tbl.c.id == record_id)).first()
    return dict(row._mapping) if row else None


def when(day: int, hour: int = 10) -> datetime:
    return datetime(2024, 5, day, hour, 0)


class FailingRecordStore(RecordStore):
    """Every call fails like an unreachable backend."""

    def __init__(self) -> None:
        self.calls = 0

    async def select(self, table, filters=(), *, order_by=None, ascending=True, limit=None):
        self.calls += 1
        raise BackendUnavailable("connection refused")

    async def update(self, table, record_id, values, *, only_if_null=None):
        self.calls += 1
        raise BackendUnavailable("connection refused")

    async def insert(self, table, values):
        self.calls += 1
        raise BackendUnavailable("connection refused")


class PartiallyFailingStore(RecordStore):
    """Delegates to a real store but fails chosen (action, table) pairs."""

    def __init__(self, inner: RecordStore, fail: Set[Tuple[str, str]]) -> None:
        self.inner = inner
        self.fail = fail
        self.selects: List[Tuple[str, Sequence[Filter]]] = []

    def _check(self, action: str, table: str) -> None:
        if (action, table) in self.fail:
            raise BackendUnavailable(f"{action} on {table} refused")

    async def select(self, table, filters=(), *, order_by=None, ascending=True, limit=None) -> List[Row]:
        self.selects.append((table, tuple(filters)))
        self._check("select", table)
        return await self.inner.select(table, filters, order_by=order_by, ascending=ascending, limit=limit)

    async def update(self, table, record_id, values, *, only_if_null=None) -> List[Row]:
        self._check("update", table)
        return await self.inner.update(table, record_id, values, only_if_null=only_if_null)

    async def insert(self, table, values) -> Row:
        self._check("insert", table)
        return await self.inner.insert(table, values)
