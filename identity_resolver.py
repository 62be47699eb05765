"""Resolve which interview records belong to an authenticated user.

User accounts, candidate rows and interview rows are only loosely linked:
``user_id`` may be missing on candidates and interviews, and
``candidate_name`` on an interview may hold an email, a name or nothing.
The resolver walks a chain of lookups ordered from most to least trustworthy
and stops at the first one that finds anything:

1. interviews linked to the user directly (``interviews.user_id``)
2. interviews of candidates linked to the user (``candidates.user_id``)
3. interviews of candidates whose email is the user's email
4. a bounded window of recent interviews whose ``candidate_name`` mentions
   the user's email or its local-part

Links discovered through steps 2-4 are written back with ``LinkRepairer`` so
later resolutions stop at step 1.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import ValidationError

import service_config
from candidate_display import email_local_part
from link_repairer import LinkRepairer
from record_errors import RecordStoreError
from record_models import (
    CANDIDATES_TABLE,
    INTERVIEWS_TABLE,
    CandidateProfile,
    InterviewRecord,
    ResolutionOutcome,
    ResolutionResult,
    UserIdentity,
)
from record_store import Eq, IEq, In, RecordStore, Row, get_record_store

logger = logging.getLogger(__name__)


@dataclass
class ResolutionContext:
    """State shared by the strategies during one resolution pass."""

    store: RecordStore
    repairer: LinkRepairer
    user: UserIdentity
    free_text_window: int
    email_case_insensitive: bool
    repaired_interviews: int = 0
    repaired_candidates: int = 0


Strategy = Callable[[ResolutionContext], Awaitable[List[InterviewRecord]]]


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------
def _parse_interviews(rows: Iterable[Row]) -> List[InterviewRecord]:
    records: List[InterviewRecord] = []
    for row in rows:
        try:
            records.append(InterviewRecord.model_validate(row))
        except ValidationError as exc:
            logger.warning("interview_row_skipped", extra={"interview_id": row.get("id"), "error": str(exc)})
    return records


def _parse_candidates(rows: Iterable[Row]) -> List[CandidateProfile]:
    candidates: List[CandidateProfile] = []
    for row in rows:
        try:
            candidates.append(CandidateProfile.model_validate(row))
        except ValidationError as exc:
            logger.warning("candidate_row_skipped", extra={"candidate_id": row.get("id"), "error": str(exc)})
    return candidates


def _claimable(record: InterviewRecord, user: UserIdentity) -> bool:
    """An interview already linked to another account is never handed out."""
    return record.user_id is None or record.user_id == user.id


def _dedupe(records: Sequence[InterviewRecord]) -> List[InterviewRecord]:
    seen: Dict[str, InterviewRecord] = {}
    for record in records:
        seen.setdefault(record.id, record)
    return list(seen.values())


async def _claim_interviews(ctx: ResolutionContext, records: Sequence[InterviewRecord]) -> List[InterviewRecord]:
    claimed: List[InterviewRecord] = []
    for record in records:
        if not _claimable(record, ctx.user):
            logger.info(
                "interview_linked_to_other_user",
                extra={"interview_id": record.id, "user_id": ctx.user.id},
            )
            continue
        if record.user_id is None and await ctx.repairer.repair_interview_link(record.id, ctx.user.id):
            ctx.repaired_interviews += 1
            record = record.model_copy(update={"user_id": ctx.user.id})
        claimed.append(record)
    return claimed


async def _interviews_for_candidates(ctx: ResolutionContext, candidate_ids: List[str]) -> List[InterviewRecord]:
    if not candidate_ids:
        return []
    rows = await ctx.store.select(
        INTERVIEWS_TABLE,
        [In("candidate_id", candidate_ids)],
        order_by="date",
        ascending=True,
    )
    return await _claim_interviews(ctx, _parse_interviews(rows))


# ------------------------------------------------------------------
# Strategies
# ------------------------------------------------------------------
async def find_direct_links(ctx: ResolutionContext) -> List[InterviewRecord]:
    rows = await ctx.store.select(
        INTERVIEWS_TABLE,
        [Eq("user_id", ctx.user.id)],
        order_by="date",
        ascending=True,
    )
    return _parse_interviews(rows)


async def find_via_linked_candidates(ctx: ResolutionContext) -> List[InterviewRecord]:
    rows = await ctx.store.select(CANDIDATES_TABLE, [Eq("user_id", ctx.user.id)], order_by="id")
    candidate_ids = [candidate.id for candidate in _parse_candidates(rows)]
    return await _interviews_for_candidates(ctx, candidate_ids)


async def find_via_candidate_email(ctx: ResolutionContext) -> List[InterviewRecord]:
    email = ctx.user.email
    if not email:
        return []

    email_filter = IEq("email", email) if ctx.email_case_insensitive else Eq("email", email)
    rows = await ctx.store.select(CANDIDATES_TABLE, [email_filter], order_by="id")

    candidate_ids: List[str] = []
    for candidate in _parse_candidates(rows):
        if candidate.user_id and candidate.user_id != ctx.user.id:
            logger.info(
                "candidate_email_linked_to_other_user",
                extra={"candidate_id": candidate.id, "user_id": ctx.user.id},
            )
            continue
        if candidate.user_id is None and await ctx.repairer.repair_candidate_link(candidate.id, ctx.user.id):
            ctx.repaired_candidates += 1
        candidate_ids.append(candidate.id)

    return await _interviews_for_candidates(ctx, candidate_ids)


async def find_via_candidate_name(ctx: ResolutionContext) -> List[InterviewRecord]:
    email = ctx.user.email.lower()
    if not email:
        return []
    needles = {needle for needle in (email, email_local_part(email)) if needle}

    # Only the first window of rows is inspected; older legacy rows are missed.
    rows = await ctx.store.select(
        INTERVIEWS_TABLE,
        order_by="date",
        ascending=True,
        limit=ctx.free_text_window,
    )
    matches = [
        record
        for record in _parse_interviews(rows)
        if record.candidate_name and any(needle in record.candidate_name.lower() for needle in needles)
    ]
    return await _claim_interviews(ctx, matches)


STRATEGY_CHAIN: Tuple[Tuple[str, Strategy], ...] = (
    ("direct_link", find_direct_links),
    ("candidate_user_id", find_via_linked_candidates),
    ("candidate_email", find_via_candidate_email),
    ("free_text", find_via_candidate_name),
)


class IdentityResolver:
    """Runs the strategy chain for one user at a time."""

    def __init__(
        self,
        store: RecordStore,
        repairer: Optional[LinkRepairer] = None,
        *,
        free_text_window: Optional[int] = None,
        email_case_insensitive: Optional[bool] = None,
        strategies: Sequence[Tuple[str, Strategy]] = STRATEGY_CHAIN,
    ) -> None:
        self.store = store
        self.repairer = repairer or LinkRepairer(store)
        self.free_text_window = free_text_window or service_config.FREE_TEXT_WINDOW
        self.email_case_insensitive = (
            service_config.EMAIL_MATCH_CASE_INSENSITIVE if email_case_insensitive is None else email_case_insensitive
        )
        self.strategies = tuple(strategies)

    async def resolve(self, user: UserIdentity) -> ResolutionResult:
        ctx = ResolutionContext(
            store=self.store,
            repairer=self.repairer,
            user=user,
            free_text_window=self.free_text_window,
            email_case_insensitive=self.email_case_insensitive,
        )
        failed: List[str] = []

        for name, strategy in self.strategies:
            try:
                records = _dedupe(await strategy(ctx))
            except RecordStoreError as exc:
                logger.warning(
                    "resolution_strategy_failed",
                    extra={"strategy": name, "user_id": user.id, "error": str(exc)},
                    exc_info=True,
                )
                failed.append(name)
                continue

            if records:
                logger.info(
                    "interviews_resolved",
                    extra={
                        "strategy": name,
                        "user_id": user.id,
                        "count": len(records),
                        "repaired_interviews": ctx.repaired_interviews,
                        "repaired_candidates": ctx.repaired_candidates,
                    },
                )
                return ResolutionResult(
                    user_id=user.id,
                    outcome=ResolutionOutcome.RESOLVED,
                    interviews=records,
                    strategy=name,
                    failed_strategies=failed,
                    repaired_interviews=ctx.repaired_interviews,
                    repaired_candidates=ctx.repaired_candidates,
                )

        # zero rows is only trustworthy when every lookup actually ran
        outcome = ResolutionOutcome.FAILED if failed else ResolutionOutcome.EMPTY
        logger.info(
            "interviews_not_found",
            extra={"user_id": user.id, "outcome": outcome.value, "failed_strategies": failed},
        )
        return ResolutionResult(
            user_id=user.id,
            outcome=outcome,
            failed_strategies=failed,
            repaired_interviews=ctx.repaired_interviews,
            repaired_candidates=ctx.repaired_candidates,
        )


async def resolve(user: UserIdentity, store: Optional[RecordStore] = None) -> ResolutionResult:
    """Module-level entry point using the process-wide record store."""
    return await IdentityResolver(store or get_record_store()).resolve(user)
