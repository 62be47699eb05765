"""Create interview rows from the HR scheduling form."""

from __future__ import annotations

import logging
from typing import Optional

from candidate_directory import CandidateDirectory
from candidate_display import display_name
from record_errors import RecordNotFound, SchedulingValidationError
from record_models import (
    CANDIDATES_TABLE,
    INTERVIEW_STATUSES,
    INTERVIEWS_TABLE,
    CandidateProfile,
    InterviewRecord,
    ScheduleInterviewRequest,
)
from record_store import RecordStore

logger = logging.getLogger(__name__)


class InterviewScheduler:
    """Stamps the candidate's display name onto new interviews.

    A candidate picked from the directory may be a job seeker without a
    candidate row; one is created under the selected id before the interview
    is inserted.
    """

    def __init__(self, store: RecordStore, directory: Optional[CandidateDirectory] = None) -> None:
        self.store = store
        self.directory = directory or CandidateDirectory(store)

    async def schedule_interview(self, request: ScheduleInterviewRequest) -> InterviewRecord:
        status = self._validate(request)
        candidate = await self.ensure_candidate(request.candidate_id)

        row = await self.store.insert(
            INTERVIEWS_TABLE,
            {
                "date": request.date,
                "candidate_id": candidate.id,
                "candidate_name": display_name(candidate),
                "interviewer_id": request.interviewer_id or None,
                "position": request.position.strip(),
                "status": status,
                "user_id": candidate.user_id,
                "settings": request.settings or {},
            },
        )
        interview = InterviewRecord.model_validate(row)
        logger.info(
            "interview_scheduled",
            extra={
                "interview_id": interview.id,
                "candidate_id": candidate.id,
                "candidate_name": interview.candidate_name,
            },
        )
        return interview

    async def ensure_candidate(self, candidate_id: str) -> CandidateProfile:
        """Return the candidate row for ``candidate_id``, creating it if needed."""
        row = await self.store.get(CANDIDATES_TABLE, candidate_id)
        if row:
            return CandidateProfile.model_validate(row)

        candidate = await self.directory.find_candidate(candidate_id)
        if candidate is None:
            raise RecordNotFound(f"No candidate or job seeker with id {candidate_id}")

        # name stays null unless given so later profile edits still show through
        created = await self.store.insert(
            CANDIDATES_TABLE,
            {
                "id": candidate.id,
                "name": (candidate.name or "").strip() or None,
                "email": candidate.email or "",
                "user_id": candidate.user_id,
                "first_name": candidate.first_name,
                "last_name": candidate.last_name,
            },
        )
        logger.info(
            "candidate_auto_created",
            extra={"candidate_id": candidate.id, "user_id": candidate.user_id},
        )
        return CandidateProfile.model_validate(created)

    @staticmethod
    def _validate(request: ScheduleInterviewRequest) -> str:
        if not (request.candidate_id or "").strip():
            raise SchedulingValidationError("Please select a candidate")
        if request.date is None:
            raise SchedulingValidationError("Please set an interview date")
        if not request.position.strip():
            raise SchedulingValidationError("Please enter a position title")

        for allowed in INTERVIEW_STATUSES:
            if request.status.strip().lower() == allowed.lower():
                return allowed
        raise SchedulingValidationError(f"status must be one of {INTERVIEW_STATUSES}, got {request.status}")
