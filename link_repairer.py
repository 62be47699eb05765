"""Write-back of missing user links discovered while resolving interviews."""

from __future__ import annotations

import logging
from typing import Optional

from record_models import CANDIDATES_TABLE, INTERVIEWS_TABLE
from record_store import RecordStore

logger = logging.getLogger(__name__)


class LinkRepairer:
    """Fills null ``user_id`` columns; never overwrites an existing link.

    Each repair is one conditional update, so repeated or concurrent repairs
    with the same ids leave the row in the same state. Failures are logged
    and reported as ``False``.
    """

    def __init__(self, store: RecordStore, correlation_id: Optional[str] = None) -> None:
        self.store = store
        self.correlation_id = correlation_id or "no-correlation-id"

    async def repair_candidate_link(self, candidate_id: str, user_id: str) -> bool:
        return await self._repair(CANDIDATES_TABLE, candidate_id, user_id)

    async def repair_interview_link(self, interview_id: str, user_id: str) -> bool:
        return await self._repair(INTERVIEWS_TABLE, interview_id, user_id)

    async def _repair(self, table: str, record_id: str, user_id: str) -> bool:
        if not record_id or not user_id:
            return False
        try:
            written = await self.store.update(
                table,
                record_id,
                {"user_id": user_id},
                only_if_null="user_id",
            )
        except Exception as exc:
            logger.warning(
                "link_repair_failed",
                extra={
                    "table": table,
                    "record_id": record_id,
                    "user_id": user_id,
                    "error": str(exc),
                    "correlation_id": self.correlation_id,
                },
                exc_info=True,
            )
            return False

        if written:
            logger.info(
                "link_repaired",
                extra={
                    "table": table,
                    "record_id": record_id,
                    "user_id": user_id,
                    "correlation_id": self.correlation_id,
                },
            )
        return bool(written)
