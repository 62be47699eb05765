"""Single source of truth for how a candidate is named in listings and forms."""

from __future__ import annotations

from typing import Iterable, List, Optional, Union

from record_models import CandidateProfile, FormattedCandidate

UNKNOWN_CANDIDATE = "Unknown Candidate"


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def email_local_part(email: Optional[str]) -> str:
    return _clean(email).split("@", 1)[0].strip()


def display_name(candidate: Union[CandidateProfile, FormattedCandidate]) -> str:
    """Best human-readable name for a candidate; never empty.

    Order: explicit name, first + last name, email local-part, placeholder.
    """
    name = _clean(getattr(candidate, "name", None))
    if name:
        return name

    first = _clean(candidate.first_name)
    last = _clean(candidate.last_name)
    if first or last:
        return f"{first} {last}".strip()

    local = email_local_part(candidate.email)
    if local:
        return local

    return UNKNOWN_CANDIDATE


def is_valid_candidate(formatted: FormattedCandidate) -> bool:
    """False for entries that could only be named with the placeholder."""
    return bool(_clean(formatted.name)) and formatted.name != UNKNOWN_CANDIDATE


def format_candidate(candidate: CandidateProfile) -> FormattedCandidate:
    return FormattedCandidate(
        id=candidate.id,
        name=display_name(candidate),
        email=_clean(candidate.email),
        user_id=candidate.user_id,
        first_name=_clean(candidate.first_name),
        last_name=_clean(candidate.last_name),
    )


def format_candidates_for_form(candidates: Iterable[CandidateProfile]) -> List[FormattedCandidate]:
    return [format_candidate(candidate) for candidate in candidates]


def select_candidates_for_form(formatted: List[FormattedCandidate]) -> List[FormattedCandidate]:
    """Valid entries only, unless that would leave the form with nothing to pick."""
    valid = [entry for entry in formatted if is_valid_candidate(entry)]
    return valid or formatted
