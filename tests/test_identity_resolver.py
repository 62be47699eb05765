import pytest

from conftest import FailingRecordStore, PartiallyFailingStore, fetch_row, seed, when
from identity_resolver import IdentityResolver, _parse_interviews
from record_errors import ResolutionFailed
from record_models import CANDIDATES_TABLE, INTERVIEWS_TABLE, ResolutionOutcome, UserIdentity

pytestmark = pytest.mark.anyio

JANE = UserIdentity(id="u1", email="jane@co.com")


def _interview(interview_id, day, **fields):
    row = {"id": interview_id, "date": when(day), "position": "Engineer", "status": "Scheduled"}
    row.update(fields)
    return row


async def test_end_to_end_email_bridge_repairs_both_links(store):
    seed(store, CANDIDATES_TABLE, {"id": "c1", "email": "jane@co.com", "user_id": None})
    seed(
        store,
        INTERVIEWS_TABLE,
        _interview("i1", 3, candidate_id="c1", user_id=None, candidate_name="jane@co.com"),
    )

    result = await IdentityResolver(store).resolve(JANE)

    assert result.outcome == ResolutionOutcome.RESOLVED
    assert result.strategy == "candidate_email"
    assert [i.id for i in result.interviews] == ["i1"]
    assert fetch_row(store, CANDIDATES_TABLE, "c1")["user_id"] == "u1"
    assert fetch_row(store, INTERVIEWS_TABLE, "i1")["user_id"] == "u1"
    assert result.repaired_candidates == 1
    assert result.repaired_interviews == 1


async def test_second_resolution_takes_direct_path_after_repair(store):
    seed(store, CANDIDATES_TABLE, {"id": "c1", "email": "jane@co.com"})
    seed(store, INTERVIEWS_TABLE, _interview("i1", 3, candidate_id="c1"))
    resolver = IdentityResolver(store)

    await resolver.resolve(JANE)
    again = await resolver.resolve(JANE)

    assert again.strategy == "direct_link"
    assert again.repaired_interviews == 0


async def test_direct_link_short_circuits_fuzzy_matches(store):
    seed(
        store,
        INTERVIEWS_TABLE,
        _interview("direct", 5, user_id="u1", candidate_name="Jane Doe"),
        _interview("fuzzy", 1, user_id=None, candidate_name="jane@co.com"),
    )

    result = await IdentityResolver(store).resolve(JANE)

    assert result.strategy == "direct_link"
    assert [i.id for i in result.interviews] == ["direct"]
    assert fetch_row(store, INTERVIEWS_TABLE, "fuzzy")["user_id"] is None


async def test_direct_link_results_are_sorted_by_date(store):
    seed(
        store,
        INTERVIEWS_TABLE,
        _interview("late", 9, user_id="u1"),
        _interview("early", 2, user_id="u1"),
    )

    result = await IdentityResolver(store).resolve(JANE)

    assert [i.id for i in result.interviews] == ["early", "late"]


async def test_linked_candidate_bridge_repairs_interviews(store):
    seed(store, CANDIDATES_TABLE, {"id": "c7", "email": "other@co.com", "user_id": "u1"})
    seed(
        store,
        INTERVIEWS_TABLE,
        _interview("i2", 4, candidate_id="c7"),
        _interview("i1", 2, candidate_id="c7"),
    )

    result = await IdentityResolver(store).resolve(JANE)

    assert result.strategy == "candidate_user_id"
    assert [i.id for i in result.interviews] == ["i1", "i2"]
    assert all(i.user_id == "u1" for i in result.interviews)
    assert fetch_row(store, INTERVIEWS_TABLE, "i2")["user_id"] == "u1"


async def test_email_match_is_case_insensitive_by_default(store):
    seed(store, CANDIDATES_TABLE, {"id": "c1", "email": "Jane@Co.com"})
    seed(store, INTERVIEWS_TABLE, _interview("i1", 3, candidate_id="c1"))

    result = await IdentityResolver(store).resolve(JANE)

    assert result.strategy == "candidate_email"
    assert fetch_row(store, CANDIDATES_TABLE, "c1")["user_id"] == "u1"


async def test_email_match_can_be_case_sensitive(store):
    seed(store, CANDIDATES_TABLE, {"id": "c1", "email": "Jane@Co.com"})
    seed(store, INTERVIEWS_TABLE, _interview("i1", 3, candidate_id="c1", candidate_name="Someone"))

    result = await IdentityResolver(store, email_case_insensitive=False).resolve(JANE)

    assert result.outcome == ResolutionOutcome.EMPTY
    assert fetch_row(store, CANDIDATES_TABLE, "c1")["user_id"] is None


async def test_candidate_linked_to_other_account_is_left_alone(store):
    seed(store, CANDIDATES_TABLE, {"id": "c1", "email": "jane@co.com", "user_id": "u2"})
    seed(store, INTERVIEWS_TABLE, _interview("i1", 3, candidate_id="c1", candidate_name="J. Doe"))

    result = await IdentityResolver(store).resolve(JANE)

    assert result.outcome == ResolutionOutcome.EMPTY
    assert fetch_row(store, CANDIDATES_TABLE, "c1")["user_id"] == "u2"
    assert fetch_row(store, INTERVIEWS_TABLE, "i1")["user_id"] is None


async def test_email_candidate_is_linked_even_without_interviews(store):
    seed(store, CANDIDATES_TABLE, {"id": "c1", "email": "jane@co.com"})

    result = await IdentityResolver(store).resolve(JANE)

    assert result.outcome == ResolutionOutcome.EMPTY
    assert result.repaired_candidates == 1
    assert fetch_row(store, CANDIDATES_TABLE, "c1")["user_id"] == "u1"


async def test_free_text_fallback_matches_email_and_local_part(store):
    seed(
        store,
        INTERVIEWS_TABLE,
        _interview("by-email", 1, candidate_name="JANE@CO.COM"),
        _interview("unrelated", 2, candidate_name="Rahul Menon"),
        _interview("by-local", 3, candidate_name="jane (legacy import)"),
        _interview("blank", 4, candidate_name=None),
    )

    result = await IdentityResolver(store).resolve(JANE)

    assert result.strategy == "free_text"
    assert [i.id for i in result.interviews] == ["by-email", "by-local"]
    assert fetch_row(store, INTERVIEWS_TABLE, "by-local")["user_id"] == "u1"
    assert fetch_row(store, INTERVIEWS_TABLE, "unrelated")["user_id"] is None


async def test_free_text_fallback_only_inspects_its_window(store):
    seed(
        store,
        INTERVIEWS_TABLE,
        _interview("first", 1, candidate_name="Someone"),
        _interview("second", 2, candidate_name="Someone else"),
        _interview("outside", 3, candidate_name="jane@co.com"),
    )

    result = await IdentityResolver(store, free_text_window=2).resolve(JANE)

    assert result.outcome == ResolutionOutcome.EMPTY


async def test_free_text_fallback_skips_rows_owned_by_other_users(store):
    seed(store, INTERVIEWS_TABLE, _interview("taken", 1, candidate_name="jane@co.com", user_id="u2"))

    result = await IdentityResolver(store).resolve(JANE)

    assert result.outcome == ResolutionOutcome.EMPTY
    assert fetch_row(store, INTERVIEWS_TABLE, "taken")["user_id"] == "u2"


async def test_user_without_email_only_uses_id_strategies(store):
    seed(store, INTERVIEWS_TABLE, _interview("i1", 1, candidate_name="anything"))

    result = await IdentityResolver(store).resolve(UserIdentity(id="u9", email=""))

    assert result.outcome == ResolutionOutcome.EMPTY
    assert result.failed_strategies == []


async def test_no_matches_is_empty_not_error(store):
    result = await IdentityResolver(store).resolve(JANE)

    assert result.outcome == ResolutionOutcome.EMPTY
    assert result.interviews == []
    assert result.raise_for_failure() is result


async def test_backend_down_everywhere_is_failed():
    failing = FailingRecordStore()

    result = await IdentityResolver(failing).resolve(JANE)

    assert result.outcome == ResolutionOutcome.FAILED
    assert result.failed_strategies == ["direct_link", "candidate_user_id", "candidate_email", "free_text"]
    with pytest.raises(ResolutionFailed):
        result.raise_for_failure()


async def test_failing_strategy_falls_through_to_next(store):
    seed(store, CANDIDATES_TABLE, {"id": "c1", "email": "jane@co.com"})
    seed(store, INTERVIEWS_TABLE, _interview("i1", 3, candidate_id="c1"))
    flaky = PartiallyFailingStore(store, fail={("select", CANDIDATES_TABLE)})

    result = await IdentityResolver(flaky).resolve(JANE)

    # both candidate lookups fail, free-text has nothing to match on
    assert result.outcome == ResolutionOutcome.FAILED
    assert result.failed_strategies == ["candidate_user_id", "candidate_email"]


async def test_later_strategy_still_wins_after_earlier_failures(store):
    seed(store, INTERVIEWS_TABLE, _interview("i1", 3, candidate_name="jane@co.com"))
    flaky = PartiallyFailingStore(store, fail={("select", CANDIDATES_TABLE)})

    result = await IdentityResolver(flaky).resolve(JANE)

    assert result.outcome == ResolutionOutcome.RESOLVED
    assert result.strategy == "free_text"
    assert result.failed_strategies == ["candidate_user_id", "candidate_email"]


async def test_failing_repair_does_not_hide_results(store):
    seed(store, CANDIDATES_TABLE, {"id": "c1", "email": "jane@co.com"})
    seed(store, INTERVIEWS_TABLE, _interview("i1", 3, candidate_id="c1"))
    flaky = PartiallyFailingStore(
        store,
        fail={("update", CANDIDATES_TABLE), ("update", INTERVIEWS_TABLE)},
    )

    result = await IdentityResolver(flaky).resolve(JANE)

    assert result.outcome == ResolutionOutcome.RESOLVED
    assert [i.id for i in result.interviews] == ["i1"]
    assert result.interviews[0].user_id is None
    assert result.repaired_interviews == 0
    assert fetch_row(store, INTERVIEWS_TABLE, "i1")["user_id"] is None


async def test_results_are_deduplicated_by_id(store):
    async def duplicated(ctx):
        rows = await ctx.store.select(INTERVIEWS_TABLE)
        records = _parse_interviews(rows)
        return records + records

    seed(store, INTERVIEWS_TABLE, _interview("i1", 1))
    resolver = IdentityResolver(store, strategies=[("duplicated", duplicated)])

    result = await resolver.resolve(JANE)

    assert [i.id for i in result.interviews] == ["i1"]
