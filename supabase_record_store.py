"""Record store backed by the Supabase async client (PostgREST)."""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime
from typing import Any, List, Optional, Sequence

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient, acreate_client

import service_config
from record_errors import BackendUnavailable
from record_store import Eq, Filter, IContains, IEq, In, IsNull, Or, RecordStore, Row

logger = logging.getLogger(__name__)

_RESERVED_CHARS = set(',.:()"\\ ')


def _jsonable(values: Row) -> Row:
    """PostgREST bodies are JSON; datetimes travel as ISO strings."""
    return {
        key: value.isoformat() if isinstance(value, (date, datetime)) else value
        for key, value in values.items()
    }


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _quote(value: Any) -> str:
    """Quote a value for the PostgREST logic-tree grammar used by ``or``."""
    text = str(value)
    if any(ch in _RESERVED_CHARS for ch in text):
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return text


def to_postgrest_condition(flt: Filter) -> str:
    """Render one filter as a ``column.operator.value`` condition string."""
    if isinstance(flt, Or):
        inner = ",".join(to_postgrest_condition(f) for f in flt.filters)
        return f"or({inner})"
    if isinstance(flt, Eq):
        if flt.value is None:
            return f"{flt.field}.is.null"
        return f"{flt.field}.eq.{_quote(flt.value)}"
    if isinstance(flt, IEq):
        return f"{flt.field}.ilike.{_quote(_escape_like(flt.value))}"
    if isinstance(flt, IContains):
        return f"{flt.field}.ilike.{_quote('*' + _escape_like(flt.value) + '*')}"
    if isinstance(flt, In):
        return f"{flt.field}.in.({','.join(_quote(v) for v in flt.values)})"
    if isinstance(flt, IsNull):
        return f"{flt.field}.is.null"
    raise ValueError(f"Unsupported filter: {flt!r}")


def apply_filter(query, flt: Filter):
    """Apply a filter to a postgrest request builder."""
    if isinstance(flt, Or):
        return query.or_(",".join(to_postgrest_condition(f) for f in flt.filters))
    if isinstance(flt, Eq):
        if flt.value is None:
            return query.is_(flt.field, "null")
        return query.eq(flt.field, flt.value)
    if isinstance(flt, IEq):
        return query.ilike(flt.field, _escape_like(flt.value))
    if isinstance(flt, IContains):
        return query.ilike(flt.field, f"%{_escape_like(flt.value)}%")
    if isinstance(flt, In):
        return query.in_(flt.field, list(flt.values))
    if isinstance(flt, IsNull):
        return query.is_(flt.field, "null")
    raise ValueError(f"Unsupported filter: {flt!r}")


class SupabaseRecordStore(RecordStore):
    """Remote tables reached through ``supabase.AsyncClient``."""

    def __init__(self, client: Optional[AsyncClient] = None) -> None:
        self._client = client
        self._client_lock = asyncio.Lock()

    async def _get_client(self) -> AsyncClient:
        if self._client is None:
            async with self._client_lock:
                if self._client is None:
                    try:
                        url, key = service_config.supabase_credentials()
                        self._client = await acreate_client(url, key)
                    except Exception as exc:
                        logger.error("supabase_client_unavailable", extra={"error": str(exc)}, exc_info=True)
                        raise BackendUnavailable(f"supabase client could not be created: {exc}") from exc
                    logger.info("supabase_client_created", extra={"url": url})
        return self._client

    # ------------------------------------------------------------------
    async def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: Optional[str] = None,
        ascending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Row]:
        client = await self._get_client()
        query = client.table(table).select("*")
        for flt in filters:
            query = apply_filter(query, flt)
        if order_by:
            query = query.order(order_by, desc=not ascending)
        if limit is not None:
            query = query.limit(limit)
        return await self._execute(query, table=table, action="select")

    async def update(
        self,
        table: str,
        record_id: str,
        values: Row,
        *,
        only_if_null: Optional[str] = None,
    ) -> List[Row]:
        client = await self._get_client()
        query = client.table(table).update(_jsonable(values)).eq("id", record_id)
        if only_if_null:
            query = query.is_(only_if_null, "null")
        return await self._execute(query, table=table, action="update")

    async def insert(self, table: str, values: Row) -> Row:
        client = await self._get_client()
        rows = await self._execute(client.table(table).insert(_jsonable(values)), table=table, action="insert")
        if not rows:
            raise BackendUnavailable(f"insert on {table} returned no row")
        return rows[0]

    # ------------------------------------------------------------------
    @staticmethod
    async def _execute(query, *, table: str, action: str) -> List[Row]:
        try:
            response = await query.execute()
        except (APIError, httpx.HTTPError) as exc:
            logger.warning(
                "supabase_query_failed",
                extra={"table": table, "action": action, "error": str(exc)},
            )
            raise BackendUnavailable(f"{action} on {table} failed: {exc}") from exc
        return list(response.data or [])
