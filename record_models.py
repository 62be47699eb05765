# record_models.py
"""
Pydantic models for the records exchanged with the remote store and the
read-models handed back to callers.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from record_errors import ResolutionFailed

CANDIDATES_TABLE = "candidates"
INTERVIEWS_TABLE = "interviews"
PROFILES_TABLE = "profiles"
JOBS_TABLE = "jobs"

INTERVIEW_STATUSES = ("Scheduled", "Completed", "Cancelled")
PROFILE_ROLES = ("admin", "hr", "job_seeker")


class UserIdentity(BaseModel):
    """Authenticated account acting on the service."""

    id: str = Field(..., description="Auth user id")
    email: str = Field(default="", description="Auth email, may be blank")

    @field_validator("email", mode="before")
    @classmethod
    def blank_email(cls, v: Optional[str]) -> str:
        return (v or "").strip()


class CandidateProfile(BaseModel):
    """Row of the candidates table."""

    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    user_id: Optional[str] = Field(None, description="Back-reference to the auth user, lazily repaired")
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class InterviewRecord(BaseModel):
    """Row of the interviews table."""

    id: str
    date: datetime
    candidate_id: Optional[str] = None
    candidate_name: Optional[str] = Field(None, description="Free-text snapshot stamped at creation")
    interviewer_id: Optional[str] = None
    position: str = ""
    status: str = "Scheduled"
    user_id: Optional[str] = None
    settings: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("status", mode="before")
    @classmethod
    def validate_status(cls, v: Optional[str]) -> str:
        if not v:
            return "Scheduled"
        for allowed in INTERVIEW_STATUSES:
            if str(v).strip().lower() == allowed.lower():
                return allowed
        raise ValueError(f"status must be one of {INTERVIEW_STATUSES}, got {v}")

    @field_validator("settings", mode="before")
    @classmethod
    def default_settings(cls, v: Any) -> Dict[str, Any]:
        return v or {}


class PersonProfile(BaseModel):
    """Row of the profiles table, one per auth user."""

    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str = "job_seeker"
    approved: bool = False

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: str) -> str:
        if v.lower() not in PROFILE_ROLES:
            raise ValueError(f"role must be one of {PROFILE_ROLES}, got {v}")
        return v.lower()


class JobListing(BaseModel):
    """Row of the jobs table; unknown columns are ignored."""

    id: str
    title: str = ""
    company: str = ""
    location: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("title", "company", mode="before")
    @classmethod
    def blank_text(cls, v: Optional[str]) -> str:
        return v or ""


class ResolutionOutcome(str, Enum):
    RESOLVED = "resolved"
    EMPTY = "empty"
    FAILED = "failed"


class ResolutionResult(BaseModel):
    """Interviews that belong to a user plus how they were found."""

    user_id: str
    outcome: ResolutionOutcome
    interviews: List[InterviewRecord] = Field(default_factory=list)
    strategy: Optional[str] = Field(None, description="Name of the strategy that produced the match")
    failed_strategies: List[str] = Field(default_factory=list)
    repaired_interviews: int = 0
    repaired_candidates: int = 0

    @property
    def is_empty(self) -> bool:
        return self.outcome == ResolutionOutcome.EMPTY

    @property
    def is_failed(self) -> bool:
        return self.outcome == ResolutionOutcome.FAILED

    def raise_for_failure(self) -> "ResolutionResult":
        if self.is_failed:
            raise ResolutionFailed(
                f"interview resolution failed for user {self.user_id} "
                f"(strategies: {', '.join(self.failed_strategies)})"
            )
        return self


class DashboardView(BaseModel):
    """Read-model rendered by the job seeker dashboard."""

    user_id: str
    refresh_token: int = 0
    jobs: List[JobListing] = Field(default_factory=list)
    interviews: List[InterviewRecord] = Field(default_factory=list)
    applications: List[Dict[str, Any]] = Field(default_factory=list, description="Reserved, always empty")
    interviews_failed: bool = False
    resolution_outcome: ResolutionOutcome = ResolutionOutcome.EMPTY


class FormattedCandidate(BaseModel):
    """Candidate entry as offered in selection lists."""

    id: str
    name: str
    email: str = ""
    user_id: Optional[str] = None
    first_name: str = ""
    last_name: str = ""


class InterviewerOption(BaseModel):
    id: str
    name: str
    first_name: str = ""
    last_name: str = ""


class InterviewListing(BaseModel):
    """Interview row joined with candidate and interviewer names for HR views."""

    id: str
    date: datetime
    candidate_id: Optional[str] = None
    candidate_name: str
    interviewer_id: Optional[str] = None
    interviewer_name: Optional[str] = None
    position: str
    status: str
    user_id: Optional[str] = None
    settings: Dict[str, Any] = Field(default_factory=dict)


class ScheduleInterviewRequest(BaseModel):
    """Attributes submitted by the scheduling form."""

    candidate_id: str = ""
    date: Optional[datetime] = None
    position: str = ""
    interviewer_id: Optional[str] = None
    status: str = "Scheduled"
    settings: Dict[str, Any] = Field(default_factory=dict)
