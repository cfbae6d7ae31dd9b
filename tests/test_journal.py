"""Tests for lifequest.journal: XP heuristic and finalization."""

import json

import pytest

from lifequest.errors import UnknownOrUnauthorizedEntity
from lifequest.journal import finalize_journal, is_positive, journal_base_xp, journal_xp_awards
from lifequest.ledger import grant_xp
from lifequest.llm import LLMError
from lifequest.models import FamilyMember, JournalEntry, Stat
from lifequest.storage import Storage


def _words(n: int) -> str:
    return " ".join(["walk"] * n)


# ── Heuristic ───────────────────────────────────────────


@pytest.mark.parametrize("words,xp", [(0, 5), (20, 5), (120, 12), (499, 49), (900, 50)])
def test_base_xp_scales_with_length(words, xp):
    assert journal_base_xp(_words(words), []) == xp


def test_meaningful_tags_add_half():
    assert journal_base_xp(_words(200), ["Personal-Growth"]) == 30
    assert journal_base_xp(_words(200), ["weather"]) == 20
    assert journal_base_xp(_words(900), ["reflection"]) == 75


def test_sentiment():
    assert is_positive("Finished the run and felt proud")
    assert is_positive("Nothing much happened")
    assert not is_positive("I procrastinated and gave up, felt lazy")


def test_positive_awards_every_stat_once():
    awards = journal_xp_awards(_words(200), [], ["s1", "s2", "s1"])
    assert [(a.stat_id, a.xp_amount) for a in awards] == [("s1", 20), ("s2", 20)]


def test_negative_entry_awards_negative_half():
    content = "I failed again and gave up. " + _words(200)
    awards = journal_xp_awards(content, [], ["s1"])
    assert awards[0].xp_amount == -10


def test_no_stats_no_awards():
    assert journal_xp_awards("great day", [], []) == []


# ── Finalization ────────────────────────────────────────


@pytest.fixture
def entry(storage: Storage) -> JournalEntry:
    stat = storage.save_stat(Stat(user_id="u1", name="Physical Health"))
    kid = storage.save_family_member(FamilyMember(user_id="u1", name="Milo"))
    return storage.save_journal(JournalEntry(
        user_id="u1",
        content="Completed a long hike with Milo, proud of us. " + _words(100),
        content_tags=["growth"],
        stat_ids=[stat.id],
        family_member_ids=[kid.id, "missing-member"],
    ))


async def test_finalize_awards_stats_and_family(storage: Storage, entry: JournalEntry, make_llm):
    llm = make_llm({"journal_enrichment": [json.dumps({"title": "Hike Day", "summary": "You hiked."})]})
    result = await finalize_journal(storage, llm, "u1", entry.id)

    expected = journal_base_xp(entry.content, entry.content_tags)
    assert [a.grant.xp_amount for a in result.awards] == [expected]
    assert result.failures == []
    assert len(result.family_grants) == 1

    stat = storage.get_stat(entry.stat_ids[0])
    assert stat.total_xp == expected
    member = storage.get_family_member(entry.family_member_ids[0])
    assert member.connection_xp == expected

    saved = storage.get_journal(entry.id)
    assert saved.is_finalized
    assert saved.title == "Hike Day"
    assert saved.summary == "You hiked."
    grants = storage.list_grants("u1")
    assert {g.source_type for g in grants} == {"journal"}
    assert {g.source_id for g in grants} == {entry.id}


async def test_finalize_survives_enrichment_failure(storage: Storage, entry: JournalEntry, make_llm):
    llm = make_llm({"journal_enrichment": [LLMError("offline")]})
    result = await finalize_journal(storage, llm, "u1", entry.id)
    assert result.journal.is_finalized
    assert storage.get_journal(entry.id).summary is None
    assert storage.get_stat(entry.stat_ids[0]).total_xp > 0


async def test_finalize_ignores_unparseable_enrichment(storage: Storage, entry: JournalEntry, make_llm):
    llm = make_llm({"journal_enrichment": ["Sure! Here's a title: Hike Day"]})
    await finalize_journal(storage, llm, "u1", entry.id)
    assert storage.get_journal(entry.id).title is None


async def test_finalize_twice_rejected(storage: Storage, entry: JournalEntry):
    await finalize_journal(storage, None, "u1", entry.id)
    with pytest.raises(ValueError, match="already finalized"):
        await finalize_journal(storage, None, "u1", entry.id)
    assert len([g for g in storage.list_grants("u1") if g.entity_type == "character_stat"]) == 1


async def test_finalize_foreign_entry_forbidden(storage: Storage, entry: JournalEntry):
    with pytest.raises(UnknownOrUnauthorizedEntity) as exc_info:
        await finalize_journal(storage, None, "intruder", entry.id)
    assert exc_info.value.forbidden


@pytest.fixture
def near_level_two(storage: Storage) -> JournalEntry:
    stat = storage.save_stat(Stat(user_id="u1", name="Physical Health"))
    grant_xp(storage, "u1", "character_stat", stat.id, 290, "manual")
    return storage.save_journal(JournalEntry(
        user_id="u1", content="Learned to pace myself, proud. " + _words(200), stat_ids=[stat.id],
    ))


async def test_finalize_titles_stats_that_level_up(storage: Storage, near_level_two: JournalEntry, make_llm):
    llm = make_llm({
        "level_title": ["Trail Trotter"],
        "journal_enrichment": [json.dumps({"title": "Pacing", "summary": "You paced."})],
    })
    result = await finalize_journal(storage, llm, "u1", near_level_two.id)

    assert result.awards[0].progression.leveled_up
    stat = storage.get_stat(near_level_two.stat_ids[0])
    assert stat.current_level == 2
    assert stat.total_xp == 310
    assert stat.level_title == "Trail Trotter"
    llm.assert_exhausted()


async def test_finalize_without_titles_skips_level_title(storage: Storage, near_level_two: JournalEntry, make_llm):
    llm = make_llm({"journal_enrichment": [json.dumps({"title": "Pacing", "summary": "You paced."})]})
    await finalize_journal(storage, llm, "u1", near_level_two.id, titles_enabled=False)

    assert [stage for stage, _ in llm.calls] == ["journal_enrichment"]
    stat = storage.get_stat(near_level_two.stat_ids[0])
    assert stat.current_level == 2
    assert stat.level_title is None
