"""Candidate, interviewer and interview listings for HR scheduling screens."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from pydantic import ValidationError

from candidate_display import display_name, format_candidates_for_form
from record_errors import BackendUnavailable
from record_models import (
    CANDIDATES_TABLE,
    INTERVIEWS_TABLE,
    PROFILES_TABLE,
    CandidateProfile,
    FormattedCandidate,
    InterviewerOption,
    InterviewListing,
    InterviewRecord,
    PersonProfile,
)
from record_store import Eq, In, Or, RecordStore, Row

logger = logging.getLogger(__name__)

UNNAMED_INTERVIEWER = "Unnamed Interviewer"


def _person_name(profile: PersonProfile) -> str:
    return f"{profile.first_name or ''} {profile.last_name or ''}".strip()


def _parse(model, rows: List[Row]) -> List:
    parsed = []
    for row in rows:
        try:
            parsed.append(model.model_validate(row))
        except ValidationError as exc:
            logger.warning(
                "directory_row_skipped",
                extra={"model": model.__name__, "record_id": row.get("id"), "error": str(exc)},
            )
    return parsed


class CandidateDirectory:
    """Merges the candidates table with job seeker profiles."""

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    async def list_candidate_profiles(self) -> List[CandidateProfile]:
        """Candidate rows plus job seekers that have no candidate row yet.

        Job seekers without a row are keyed by their profile id, which the
        scheduler later uses as the id of the auto-created candidate row.
        """
        candidates: Optional[List[CandidateProfile]] = None
        seekers: Optional[List[PersonProfile]] = None

        try:
            candidates = _parse(CandidateProfile, await self.store.select(CANDIDATES_TABLE))
        except BackendUnavailable as exc:
            logger.error("directory_candidates_fetch_failed", extra={"error": str(exc)})

        try:
            seekers = _parse(
                PersonProfile,
                await self.store.select(PROFILES_TABLE, [Eq("role", "job_seeker")]),
            )
        except BackendUnavailable as exc:
            logger.error("directory_profiles_fetch_failed", extra={"error": str(exc)})

        if candidates is None and seekers is None:
            raise BackendUnavailable("candidate directory unavailable")

        profiles_by_id: Dict[str, PersonProfile] = {p.id: p for p in seekers or []}
        merged: List[CandidateProfile] = []
        linked_users = set()

        for candidate in candidates or []:
            profile = profiles_by_id.get(candidate.user_id) if candidate.user_id else None
            if profile:
                linked_users.add(profile.id)
                candidate = candidate.model_copy(
                    update={
                        "first_name": profile.first_name or candidate.first_name,
                        "last_name": profile.last_name or candidate.last_name,
                    }
                )
            merged.append(candidate)

        for profile in seekers or []:
            if profile.id in linked_users or any(c.user_id == profile.id for c in merged):
                continue
            merged.append(
                CandidateProfile(
                    id=profile.id,
                    email="",
                    user_id=profile.id,
                    first_name=profile.first_name,
                    last_name=profile.last_name,
                )
            )

        return merged

    async def list_candidates(self) -> List[FormattedCandidate]:
        return format_candidates_for_form(await self.list_candidate_profiles())

    async def find_candidate(self, candidate_id: str) -> Optional[CandidateProfile]:
        for candidate in await self.list_candidate_profiles():
            if candidate.id == candidate_id:
                return candidate
        return None

    async def list_interviewers(self) -> List[InterviewerOption]:
        rows = await self.store.select(
            PROFILES_TABLE,
            [Or(Eq("role", "hr"), Eq("role", "admin")), Eq("approved", True)],
        )
        return [
            InterviewerOption(
                id=profile.id,
                name=_person_name(profile) or UNNAMED_INTERVIEWER,
                first_name=profile.first_name or "",
                last_name=profile.last_name or "",
            )
            for profile in _parse(PersonProfile, rows)
        ]

    async def list_interviews(self) -> List[InterviewListing]:
        """Every interview, newest first, with names joined in."""
        interviews: List[InterviewRecord] = _parse(
            InterviewRecord,
            await self.store.select(INTERVIEWS_TABLE, order_by="date", ascending=False),
        )

        candidate_ids = sorted({i.candidate_id for i in interviews if i.candidate_id})
        interviewer_ids = sorted({i.interviewer_id for i in interviews if i.interviewer_id})

        candidates: Dict[str, CandidateProfile] = {}
        if candidate_ids:
            rows = await self.store.select(CANDIDATES_TABLE, [In("id", candidate_ids)])
            candidates = {c.id: c for c in _parse(CandidateProfile, rows)}

        interviewers: Dict[str, PersonProfile] = {}
        if interviewer_ids:
            rows = await self.store.select(PROFILES_TABLE, [In("id", interviewer_ids)])
            interviewers = {p.id: p for p in _parse(PersonProfile, rows)}

        listings: List[InterviewListing] = []
        for interview in interviews:
            candidate = candidates.get(interview.candidate_id or "")
            interviewer = interviewers.get(interview.interviewer_id or "")
            stamped = (interview.candidate_name or "").strip()
            listings.append(
                InterviewListing(
                    id=interview.id,
                    date=interview.date,
                    candidate_id=interview.candidate_id,
                    candidate_name=stamped or (display_name(candidate) if candidate else "Unknown"),
                    interviewer_id=interviewer.id if interviewer else None,
                    interviewer_name=(_person_name(interviewer) or UNNAMED_INTERVIEWER) if interviewer else None,
                    position=interview.position,
                    status=interview.status,
                    user_id=interview.user_id or (candidate.user_id if candidate else None),
                    settings=interview.settings,
                )
            )
        return listings
