# sql_record_store.py
"""
SQLAlchemy-backed record store.

Mirrors the remote schema (candidates, interviews, profiles, jobs) so the
service can run against Postgres directly or a local SQLite file. Blocking
SQLAlchemy calls run in a worker thread so callers stay async.
"""

import logging
import uuid
from datetime import datetime, timezone
from functools import partial
from typing import Any, Dict, List, Optional, Sequence

from anyio import to_thread
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    Text,
    and_,
    create_engine,
    false,
    func,
    or_,
    select,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

import service_config
from record_errors import BackendUnavailable
from record_models import CANDIDATES_TABLE, INTERVIEWS_TABLE, JOBS_TABLE, PROFILES_TABLE
from record_store import Eq, Filter, IContains, IEq, In, IsNull, Or, RecordStore, Row

logger = logging.getLogger(__name__)

metadata = MetaData()


def _now() -> datetime:
    return datetime.now(timezone.utc)


candidates_table = Table(
    CANDIDATES_TABLE,
    metadata,
    Column("id", String(64), primary_key=True),
    Column("name", Text, nullable=True),
    Column("email", String(320), nullable=True, index=True),
    Column("user_id", String(64), nullable=True, index=True),
    Column("first_name", String(255), nullable=True),
    Column("last_name", String(255), nullable=True),
    Column("created_at", DateTime, default=_now),
)

interviews_table = Table(
    INTERVIEWS_TABLE,
    metadata,
    Column("id", String(64), primary_key=True),
    Column("date", DateTime, nullable=False, index=True),
    Column("candidate_id", String(64), nullable=True, index=True),
    Column("candidate_name", Text, nullable=True),
    Column("interviewer_id", String(64), nullable=True),
    Column("position", String(255), nullable=False, default=""),
    Column("status", String(32), nullable=False, default="Scheduled"),
    Column("user_id", String(64), nullable=True, index=True),
    Column("settings", JSON, default=dict),
    Column("created_at", DateTime, default=_now),
)

profiles_table = Table(
    PROFILES_TABLE,
    metadata,
    Column("id", String(64), primary_key=True),
    Column("first_name", String(255), nullable=True),
    Column("last_name", String(255), nullable=True),
    Column("role", String(32), nullable=False, default="job_seeker"),
    Column("approved", Boolean, nullable=False, default=False),
)

jobs_table = Table(
    JOBS_TABLE,
    metadata,
    Column("id", String(64), primary_key=True),
    Column("title", String(255), nullable=False, default=""),
    Column("company", String(255), nullable=False, default=""),
    Column("location", String(255), nullable=True),
    Column("description", Text, nullable=True),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_at", DateTime, default=_now),
)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SqlRecordStore(RecordStore):
    """Record store over any SQLAlchemy URL."""

    def __init__(self, db_url: Optional[str] = None):
        """
        Args:
            db_url: Database URL (defaults to RECORD_STORE_DB_URL)
        """
        db_url = db_url or service_config.RECORD_STORE_DB_URL

        engine_kwargs: Dict[str, Any] = {"echo": False, "future": True}
        if db_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in db_url:
                # one shared connection, otherwise every worker thread sees an empty database
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_pre_ping"] = True

        self.engine = create_engine(db_url, **engine_kwargs)
        metadata.create_all(self.engine)
        logger.info("sql_record_store_ready", extra={"dialect": self.engine.dialect.name})

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
        call = partial(self._select_sync, table, list(filters), order_by, ascending, limit)
        return await to_thread.run_sync(call)

    async def update(
        self,
        table: str,
        record_id: str,
        values: Row,
        *,
        only_if_null: Optional[str] = None,
    ) -> List[Row]:
        call = partial(self._update_sync, table, record_id, dict(values), only_if_null)
        return await to_thread.run_sync(call)

    async def insert(self, table: str, values: Row) -> Row:
        call = partial(self._insert_sync, table, dict(values))
        return await to_thread.run_sync(call)

    # ------------------------------------------------------------------
    def _select_sync(
        self,
        table_name: str,
        filters: List[Filter],
        order_by: Optional[str],
        ascending: bool,
        limit: Optional[int],
    ) -> List[Row]:
        table = self._table(table_name)
        stmt = select(table)
        if filters:
            stmt = stmt.where(and_(*[self._compile(table, f) for f in filters]))
        if order_by:
            column = self._column(table, order_by)
            stmt = stmt.order_by(column.asc() if ascending else column.desc())
        if limit is not None:
            stmt = stmt.limit(limit)

        try:
            with self.engine.connect() as conn:
                return [dict(row._mapping) for row in conn.execute(stmt)]
        except SQLAlchemyError as exc:
            raise BackendUnavailable(f"select on {table_name} failed: {exc}") from exc

    def _update_sync(
        self,
        table_name: str,
        record_id: str,
        values: Row,
        only_if_null: Optional[str],
    ) -> List[Row]:
        table = self._table(table_name)
        stmt = table.update().where(table.c.id == record_id).values(**self._known_columns(table, values))
        if only_if_null:
            stmt = stmt.where(self._column(table, only_if_null).is_(None))

        try:
            with self.engine.begin() as conn:
                result = conn.execute(stmt)
                if not result.rowcount:
                    return []
                row = conn.execute(select(table).where(table.c.id == record_id)).first()
                return [dict(row._mapping)] if row else []
        except SQLAlchemyError as exc:
            raise BackendUnavailable(f"update on {table_name} failed: {exc}") from exc

    def _insert_sync(self, table_name: str, values: Row) -> Row:
        table = self._table(table_name)
        payload = self._known_columns(table, values)
        payload.setdefault("id", str(uuid.uuid4()))

        try:
            with self.engine.begin() as conn:
                conn.execute(table.insert().values(**payload))
                row = conn.execute(select(table).where(table.c.id == payload["id"])).first()
        except SQLAlchemyError as exc:
            raise BackendUnavailable(f"insert on {table_name} failed: {exc}") from exc
        return dict(row._mapping)

    # ------------------------------------------------------------------
    def _compile(self, table: Table, flt: Filter):
        if isinstance(flt, Or):
            return or_(*[self._compile(table, inner) for inner in flt.filters])
        column = self._column(table, flt.field)
        if isinstance(flt, Eq):
            return column.is_(None) if flt.value is None else column == flt.value
        if isinstance(flt, IEq):
            return func.lower(column) == (flt.value or "").lower()
        if isinstance(flt, IContains):
            return column.ilike(f"%{_escape_like(flt.value)}%", escape="\\")
        if isinstance(flt, In):
            return column.in_(flt.values) if flt.values else false()
        if isinstance(flt, IsNull):
            return column.is_(None)
        raise ValueError(f"Unsupported filter: {flt!r}")

    @staticmethod
    def _table(name: str) -> Table:
        try:
            return metadata.tables[name]
        except KeyError:
            raise ValueError(f"Unknown table: {name}") from None

    @staticmethod
    def _column(table: Table, name: str):
        if name not in table.c:
            raise ValueError(f"Unknown column {table.name}.{name}")
        return table.c[name]

    @staticmethod
    def _known_columns(table: Table, values: Row) -> Row:
        unknown = set(values) - set(table.c.keys())
        if unknown:
            logger.debug("sql_record_store_dropped_columns", extra={"table": table.name, "columns": sorted(unknown)})
        return {key: value for key, value in values.items() if key in table.c}
