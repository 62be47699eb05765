"""Job seeker dashboard read-model: recommended jobs plus resolved interviews."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Tuple

from pydantic import ValidationError

import service_config
from identity_resolver import IdentityResolver
from record_errors import BackendUnavailable
from record_models import JOBS_TABLE, DashboardView, JobListing, UserIdentity
from record_store import RecordStore

logger = logging.getLogger(__name__)


class StaleDashboardResult(Exception):
    """Raised when a load finished after the session moved to another user."""


class DashboardAggregator:
    """Composes job listings and interview resolution into one view."""

    def __init__(
        self,
        store: RecordStore,
        resolver: Optional[IdentityResolver] = None,
        *,
        job_limit: Optional[int] = None,
    ) -> None:
        self.store = store
        self.resolver = resolver or IdentityResolver(store)
        self.job_limit = job_limit or service_config.DASHBOARD_JOB_LIMIT

    async def load_dashboard(self, user: UserIdentity, refresh_token: int = 0) -> DashboardView:
        jobs, resolution = await asyncio.gather(
            self._fetch_jobs(),
            self.resolver.resolve(user),
        )

        view = DashboardView(
            user_id=user.id,
            refresh_token=refresh_token,
            jobs=jobs,
            interviews=resolution.interviews,
            applications=[],
            interviews_failed=resolution.is_failed,
            resolution_outcome=resolution.outcome,
        )
        logger.info(
            "dashboard_loaded",
            extra={
                "user_id": user.id,
                "refresh_token": refresh_token,
                "jobs": len(view.jobs),
                "interviews": len(view.interviews),
                "resolution_outcome": resolution.outcome.value,
            },
        )
        return view

    async def _fetch_jobs(self) -> List[JobListing]:
        try:
            rows = await self.store.select(JOBS_TABLE, limit=self.job_limit)
        except BackendUnavailable:
            logger.error("dashboard_jobs_fetch_failed", exc_info=True)
            raise

        jobs: List[JobListing] = []
        for row in rows:
            try:
                jobs.append(JobListing.model_validate(row))
            except ValidationError as exc:
                logger.warning("job_row_skipped", extra={"job_id": row.get("id"), "error": str(exc)})
        return jobs


class DashboardSession:
    """Per-client holder that reloads only when the refresh key changes.

    The key is ``(user id, refresh token)``. A load that completes after the
    session switched to a different user (logout, account switch) is
    discarded instead of overwriting the current view, and a load for an
    older refresh token never replaces the view of a newer one.
    """

    def __init__(self, aggregator: DashboardAggregator) -> None:
        self.aggregator = aggregator
        self._current_user_id: Optional[str] = None
        self._view_key: Optional[Tuple[str, int]] = None
        self._view: Optional[DashboardView] = None

    @property
    def view(self) -> Optional[DashboardView]:
        return self._view

    def switch_user(self, user_id: Optional[str]) -> None:
        if user_id != self._current_user_id:
            self._current_user_id = user_id
            self._view = None
            self._view_key = None

    async def refresh(self, user: UserIdentity, refresh_token: int = 0) -> DashboardView:
        self.switch_user(user.id)
        key = (user.id, refresh_token)
        if self._view is not None and self._view_key == key:
            return self._view

        view = await self.aggregator.load_dashboard(user, refresh_token)

        if self._current_user_id != user.id:
            logger.info(
                "dashboard_result_discarded",
                extra={"user_id": user.id, "current_user_id": self._current_user_id},
            )
            raise StaleDashboardResult(f"dashboard for {user.id} finished after session changed")

        if self._view_key is not None and self._view_key[1] > refresh_token:
            logger.info(
                "dashboard_result_superseded",
                extra={"user_id": user.id, "refresh_token": refresh_token, "cached_token": self._view_key[1]},
            )
            return view

        self._view = view
        self._view_key = key
        return view


async def load_dashboard(user: UserIdentity, store: RecordStore, refresh_token: int = 0) -> DashboardView:
    return await DashboardAggregator(store).load_dashboard(user, refresh_token)
