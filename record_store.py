"""Generic async query API over the hiring tables.

Callers describe reads with small filter objects; each backend translates
them into its own query language (PostgREST for Supabase, SQLAlchemy Core for
SQL databases).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import service_config

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


@dataclass(frozen=True)
class Eq:
    field: str
    value: Any


@dataclass(frozen=True)
class IEq:
    """Case-insensitive equality."""

    field: str
    value: str


@dataclass(frozen=True)
class IContains:
    """Case-insensitive substring match."""

    field: str
    value: str


@dataclass(frozen=True)
class In:
    field: str
    values: Tuple[Any, ...]

    def __init__(self, field: str, values: Sequence[Any]) -> None:
        object.__setattr__(self, "field", field)
        object.__setattr__(self, "values", tuple(values))


@dataclass(frozen=True)
class IsNull:
    field: str


@dataclass(frozen=True)
class Or:
    filters: Tuple["Filter", ...]

    def __init__(self, *filters: "Filter") -> None:
        object.__setattr__(self, "filters", tuple(filters))


Filter = Union[Eq, IEq, IContains, In, IsNull, Or]


class RecordStore:
    """Async CRUD access to the remote tables.

    Every method raises ``BackendUnavailable`` when the backend fails.
    """

    async def get(self, table: str, record_id: str) -> Optional[Row]:
        rows = await self.select(table, [Eq("id", record_id)], limit=1)
        return rows[0] if rows else None

    async def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: Optional[str] = None,
        ascending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Row]:
        raise NotImplementedError

    async def update(
        self,
        table: str,
        record_id: str,
        values: Row,
        *,
        only_if_null: Optional[str] = None,
    ) -> List[Row]:
        """Partial update by id; returns the rows actually written.

        With ``only_if_null`` the write only applies while that column is
        still null, in the same statement.
        """
        raise NotImplementedError

    async def insert(self, table: str, values: Row) -> Row:
        raise NotImplementedError


_record_store: Optional[RecordStore] = None


def get_record_store() -> RecordStore:
    global _record_store
    if _record_store is None:
        if service_config.use_supabase():
            from supabase_record_store import SupabaseRecordStore

            _record_store = SupabaseRecordStore()
        else:
            from sql_record_store import SqlRecordStore

            _record_store = SqlRecordStore()
        logger.info(
            "record_store_initialized",
            extra={"backend": service_config.RECORD_STORE_BACKEND},
        )
    return _record_store


def set_record_store(store: Optional[RecordStore]) -> None:
    """Swap the process-wide store (tests, alternative wiring)."""
    global _record_store
    _record_store = store
