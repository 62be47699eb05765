"""FastAPI router exposing interview resolution, dashboard and scheduling."""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, Header, HTTPException, Query

import service_config
from candidate_directory import CandidateDirectory
from candidate_display import select_candidates_for_form
from dashboard_service import DashboardAggregator, DashboardSession, StaleDashboardResult
from identity_resolver import IdentityResolver
from interview_scheduler import InterviewScheduler
from record_errors import BackendUnavailable, RecordNotFound, SchedulingValidationError
from record_models import (
    DashboardView,
    FormattedCandidate,
    InterviewerOption,
    InterviewListing,
    InterviewRecord,
    ResolutionResult,
    ScheduleInterviewRequest,
    UserIdentity,
)
from record_store import RecordStore, get_record_store

logger = logging.getLogger(__name__)
router = APIRouter()

_dashboard_sessions: "OrderedDict[Tuple[str, str], DashboardSession]" = OrderedDict()


def _dashboard_session(user: UserIdentity, session_id: Optional[str], store: RecordStore) -> DashboardSession:
    """Per-client dashboard session, least recently used evicted past the limit."""
    key = (user.id, session_id or user.id)
    session = _dashboard_sessions.get(key)
    if session is None:
        session = DashboardSession(DashboardAggregator(store))
        _dashboard_sessions[key] = session
        while len(_dashboard_sessions) > service_config.DASHBOARD_SESSION_LIMIT:
            _dashboard_sessions.popitem(last=False)
    else:
        _dashboard_sessions.move_to_end(key)
    return session


def current_user(
    x_user_id: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
) -> UserIdentity:
    """Acting user as asserted by the authenticating gateway."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing user identity")
    return UserIdentity(id=x_user_id.strip(), email=x_user_email or "")


def record_store() -> RecordStore:
    return get_record_store()


def _unavailable(exc: Exception) -> HTTPException:
    return HTTPException(status_code=503, detail=f"Record store unavailable: {exc}")


@router.get("/me/interviews", response_model=ResolutionResult)
async def my_interviews(
    user: UserIdentity = Depends(current_user),
    store: RecordStore = Depends(record_store),
) -> ResolutionResult:
    result = await IdentityResolver(store).resolve(user)
    if result.is_failed:
        logger.warning("my_interviews_unavailable", extra={"user_id": user.id})
        raise HTTPException(status_code=503, detail="Interviews could not be loaded, please retry")
    return result


@router.get("/me/dashboard", response_model=DashboardView)
async def my_dashboard(
    refresh: int = Query(0, ge=0),
    x_session_id: Optional[str] = Header(None),
    user: UserIdentity = Depends(current_user),
    store: RecordStore = Depends(record_store),
) -> DashboardView:
    session = _dashboard_session(user, x_session_id, store)
    try:
        return await session.refresh(user, refresh)
    except BackendUnavailable as exc:
        raise _unavailable(exc) from exc
    except StaleDashboardResult as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@router.get("/candidates", response_model=List[FormattedCandidate])
async def list_candidates(
    valid_only: bool = Query(True),
    store: RecordStore = Depends(record_store),
) -> List[FormattedCandidate]:
    try:
        candidates = await CandidateDirectory(store).list_candidates()
    except BackendUnavailable as exc:
        raise _unavailable(exc) from exc
    return select_candidates_for_form(candidates) if valid_only else candidates


@router.get("/interviewers", response_model=List[InterviewerOption])
async def list_interviewers(store: RecordStore = Depends(record_store)) -> List[InterviewerOption]:
    try:
        return await CandidateDirectory(store).list_interviewers()
    except BackendUnavailable as exc:
        raise _unavailable(exc) from exc


@router.get("/interviews", response_model=List[InterviewListing])
async def list_interviews(store: RecordStore = Depends(record_store)) -> List[InterviewListing]:
    try:
        return await CandidateDirectory(store).list_interviews()
    except BackendUnavailable as exc:
        raise _unavailable(exc) from exc


@router.post("/interviews", response_model=InterviewRecord, status_code=201)
async def schedule_interview(
    request: ScheduleInterviewRequest,
    store: RecordStore = Depends(record_store),
) -> InterviewRecord:
    try:
        return await InterviewScheduler(store).schedule_interview(request)
    except SchedulingValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except BackendUnavailable as exc:
        raise _unavailable(exc) from exc
