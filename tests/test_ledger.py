"""Tests for lifequest.ledger: grants, awards, listing, replay, edits and aggregation."""

from datetime import date, datetime, timezone

import pytest

from lifequest.errors import InconsistentProgressionEdit, UnknownOrUnauthorizedEntity
from lifequest.ledger import (
    apply_awards,
    grant_xp,
    list_grants,
    record_progression_edit,
    replay_stat_totals,
    xp_by_stat,
)
from lifequest.models import FamilyMember, Stat, StatAward, XpGrant
from lifequest.storage import Storage


@pytest.fixture
def stat(storage: Storage) -> Stat:
    return storage.save_stat(Stat(user_id="u1", name="Physical Health"))


@pytest.fixture
def member(storage: Storage) -> FamilyMember:
    return storage.save_family_member(FamilyMember(user_id="u1", name="Milo"))


# ── grant_xp ────────────────────────────────────────────


def test_grant_to_stat_updates_totals_and_level(storage: Storage, stat: Stat) -> None:
    outcome = grant_xp(storage, "u1", "character_stat", stat.id, 650, "task", "t1", "done")

    assert outcome.grant.xp_amount == 650
    assert outcome.grant.source_id == "t1"
    assert outcome.progression.new_level == 3
    assert [e.level for e in outcome.progression.level_events] == [2, 3]

    saved = storage.get_stat(stat.id)
    assert saved.total_xp == 650
    assert saved.current_level == 3
    assert saved.current_xp == 50
    assert [g.id for g in storage.list_grants("u1")] == [outcome.grant.id]


def test_negative_grant_is_recorded_and_clamped(storage: Storage, stat: Stat) -> None:
    grant_xp(storage, "u1", "character_stat", stat.id, 100, "journal", "j1")
    outcome = grant_xp(storage, "u1", "character_stat", stat.id, -250, "journal", "j2")
    assert outcome.grant.xp_amount == -250
    assert storage.get_stat(stat.id).total_xp == 0


def test_grant_to_family_member_uses_linear_levels(storage: Storage, member: FamilyMember) -> None:
    outcome = grant_xp(storage, "u1", "family_member", member.id, 250, "journal", "j1")
    assert outcome.progression is None
    saved = storage.get_family_member(member.id)
    assert saved.connection_xp == 250
    assert saved.connection_level == 3


@pytest.mark.parametrize("entity_type", ["goal", "project", "adventure"])
def test_grant_to_entity_without_xp_field_only_writes_ledger(storage: Storage, entity_type) -> None:
    outcome = grant_xp(storage, "u1", entity_type, "whatever", 30, "manual")
    assert outcome.entity is None
    assert storage.list_grants("u1")[0].entity_type == entity_type


def test_unknown_target_writes_nothing(storage: Storage) -> None:
    with pytest.raises(UnknownOrUnauthorizedEntity) as exc_info:
        grant_xp(storage, "u1", "character_stat", "nope", 10, "manual")
    assert exc_info.value.forbidden is False
    assert storage.list_grants("u1") == []


def test_foreign_target_is_forbidden(storage: Storage, stat: Stat) -> None:
    with pytest.raises(UnknownOrUnauthorizedEntity) as exc_info:
        grant_xp(storage, "intruder", "character_stat", stat.id, 10, "manual")
    assert exc_info.value.forbidden is True
    assert storage.list_grants("intruder") == []
    assert storage.get_stat(stat.id).total_xp == 0


def test_ledger_row_survives_stat_update_failure(
    storage: Storage, stat: Stat, monkeypatch: pytest.MonkeyPatch
) -> None:
    def broken(_stat):
        raise OSError("disk full")

    monkeypatch.setattr(storage, "save_stat", broken)
    with pytest.raises(OSError):
        grant_xp(storage, "u1", "character_stat", stat.id, 40, "task", "t1")

    grants = storage.list_grants("u1")
    assert len(grants) == 1
    assert grants[0].xp_amount == 40
    assert storage.get_stat(stat.id).total_xp == 0


def test_ledger_row_survives_family_update_failure(
    storage: Storage, member: FamilyMember, monkeypatch: pytest.MonkeyPatch
) -> None:
    def broken(_member):
        raise OSError("disk full")

    monkeypatch.setattr(storage, "save_family_member", broken)
    with pytest.raises(OSError):
        grant_xp(storage, "u1", "family_member", member.id, 40, "journal", "j1")

    assert len(storage.list_grants("u1")) == 1
    assert storage.get_family_member(member.id).connection_xp == 0


# ── apply_awards ────────────────────────────────────────


def test_apply_awards_partial_failure_keeps_going(
    storage: Storage, stat: Stat, monkeypatch: pytest.MonkeyPatch
) -> None:
    other = storage.save_stat(Stat(user_id="u1", name="Mental Wellness"))
    real_save = storage.save_stat

    def flaky(s: Stat) -> Stat:
        if s.id == stat.id:
            raise OSError("locked")
        return real_save(s)

    monkeypatch.setattr(storage, "save_stat", flaky)
    awards = [
        StatAward(stat_id=stat.id, xp_amount=30, route="linked"),
        StatAward(stat_id=other.id, xp_amount=30, route="linked"),
    ]
    report = apply_awards(storage, "u1", awards, "task", "t1")

    assert [a.award.stat_id for a in report.applied] == [other.id]
    assert [f.stat_id for f in report.failures] == [stat.id]
    assert "locked" in report.failures[0].error
    # both ledger rows exist
    assert len(storage.list_grants("u1")) == 2


def test_missing_secondary_target_is_skipped_silently(storage: Storage, stat: Stat) -> None:
    awards = [
        StatAward(stat_id=stat.id, xp_amount=25, route="linked"),
        StatAward(stat_id="deleted-focus-stat", xp_amount=25, route="focus"),
        StatAward(stat_id="deleted-legacy-stat", xp_amount=25, route="legacy"),
    ]
    report = apply_awards(storage, "u1", awards, "task", "t1")
    assert len(report.applied) == 1
    assert report.failures == []


def test_missing_primary_target_is_reported(storage: Storage, stat: Stat) -> None:
    awards = [
        StatAward(stat_id="gone", xp_amount=25, route="linked"),
        StatAward(stat_id=stat.id, xp_amount=25, route="linked"),
    ]
    report = apply_awards(storage, "u1", awards, "task", "t1")
    assert [f.stat_id for f in report.failures] == ["gone"]
    assert storage.get_stat(stat.id).total_xp == 25


# ── list_grants / replay ────────────────────────────────


def test_list_grants_newest_first_with_filters(storage: Storage, stat: Stat, member: FamilyMember) -> None:
    first = grant_xp(storage, "u1", "character_stat", stat.id, 10, "task", "t1").grant
    second = grant_xp(storage, "u1", "family_member", member.id, 20, "journal", "j1").grant
    third = grant_xp(storage, "u1", "character_stat", stat.id, 30, "manual").grant

    assert [g.id for g in list_grants(storage, "u1")] == [third.id, second.id, first.id]
    assert [g.id for g in list_grants(storage, "u1", entity_type="character_stat")] == [third.id, first.id]
    assert [g.id for g in list_grants(storage, "u1", source_type="journal")] == [second.id]
    assert [g.id for g in list_grants(storage, "u1", limit=1, offset=1)] == [second.id]
    assert list_grants(storage, "someone-else") == []


def test_replay_restores_totals_from_ledger(storage: Storage, stat: Stat) -> None:
    grant_xp(storage, "u1", "character_stat", stat.id, 400, "task", "t1")
    grant_xp(storage, "u1", "character_stat", stat.id, 250, "task", "t2")

    drifted = storage.get_stat(stat.id)
    drifted.total_xp = 10
    drifted.current_level = 1
    storage.save_stat(drifted)

    corrected = replay_stat_totals(storage, "u1")
    assert [s.id for s in corrected] == [stat.id]
    restored = storage.get_stat(stat.id)
    assert restored.total_xp == 650
    assert restored.current_level == 3
    assert restored.current_xp == 50


def test_replay_leaves_consistent_stats_alone(storage: Storage, stat: Stat) -> None:
    grant_xp(storage, "u1", "character_stat", stat.id, 100, "task", "t1")
    assert replay_stat_totals(storage, "u1") == []


# ── Direct progression edits ────────────────────────────


def test_edit_is_ledgered_as_signed_delta(storage: Storage, stat: Stat) -> None:
    grant_xp(storage, "u1", "character_stat", stat.id, 100, "task", "t1")

    edited = record_progression_edit(storage, "u1", stat.id, 650, 3)
    assert (edited.total_xp, edited.current_level, edited.current_xp) == (650, 3, 50)
    row = list_grants(storage, "u1")[0]
    assert (row.source_type, row.xp_amount) == ("manual", 550)

    record_progression_edit(storage, "u1", stat.id, 100, 1)
    assert list_grants(storage, "u1")[0].xp_amount == -550


def test_edit_survives_replay(storage: Storage, stat: Stat) -> None:
    grant_xp(storage, "u1", "character_stat", stat.id, 650, "task", "t1")

    record_progression_edit(storage, "u1", stat.id, 1200, 4, 200)
    assert replay_stat_totals(storage, "u1") == []
    saved = storage.get_stat(stat.id)
    assert (saved.total_xp, saved.current_level) == (1200, 4)

    record_progression_edit(storage, "u1", stat.id, 100, 1)
    assert replay_stat_totals(storage, "u1") == []
    saved = storage.get_stat(stat.id)
    assert (saved.total_xp, saved.current_level, saved.current_xp) == (100, 1, 100)


def test_edit_without_change_writes_no_row(storage: Storage, stat: Stat) -> None:
    grant_xp(storage, "u1", "character_stat", stat.id, 100, "task", "t1")
    record_progression_edit(storage, "u1", stat.id, 100, 1)
    assert len(storage.list_grants("u1")) == 1


def test_inconsistent_edit_writes_nothing(storage: Storage, stat: Stat) -> None:
    with pytest.raises(InconsistentProgressionEdit):
        record_progression_edit(storage, "u1", stat.id, 100, 3)
    assert storage.list_grants("u1") == []
    assert storage.get_stat(stat.id).total_xp == 0


def test_edit_foreign_stat_forbidden(storage: Storage, stat: Stat) -> None:
    with pytest.raises(UnknownOrUnauthorizedEntity) as exc_info:
        record_progression_edit(storage, "intruder", stat.id, 400, 2)
    assert exc_info.value.forbidden


# ── xp_by_stat ──────────────────────────────────────────


def _grant_on(storage: Storage, entity_id: str, xp: int, day: date, source_type: str = "task",
              entity_type: str = "character_stat") -> None:
    storage.append_grant(XpGrant(
        user_id="u1", entity_type=entity_type, entity_id=entity_id, xp_amount=xp,
        source_type=source_type, created_at=datetime(day.year, day.month, day.day, 12, tzinfo=timezone.utc),
    ))


def test_xp_by_stat_sums_grants_in_window(storage: Storage, stat: Stat, member: FamilyMember) -> None:
    other = storage.save_stat(Stat(user_id="u1", name="Mental Wellness"))
    _grant_on(storage, stat.id, 30, date(2026, 3, 1))
    _grant_on(storage, stat.id, 20, date(2026, 3, 7))
    _grant_on(storage, stat.id, -5, date(2026, 3, 4), source_type="journal")
    _grant_on(storage, stat.id, 100, date(2026, 3, 8))
    _grant_on(storage, other.id, 40, date(2026, 2, 28))
    _grant_on(storage, member.id, 15, date(2026, 3, 2), entity_type="family_member")

    week = xp_by_stat(storage, "u1", date(2026, 3, 1), date(2026, 3, 7))
    assert [(t.stat_name, t.total_xp) for t in week] == [("Physical Health", 45)]

    everything = {t.stat_name: t.total_xp for t in xp_by_stat(storage, "u1")}
    assert everything == {"Physical Health": 145, "Mental Wellness": 40}

    tasks_only = xp_by_stat(storage, "u1", date(2026, 3, 1), date(2026, 3, 7), source_type="task")
    assert [t.total_xp for t in tasks_only] == [50]


def test_xp_by_stat_drops_deleted_stats(storage: Storage, stat: Stat) -> None:
    gone = storage.save_stat(Stat(user_id="u1", name="Juggling"))
    _grant_on(storage, gone.id, 10, date(2026, 3, 1))
    storage.delete_stat(gone.id)
    assert xp_by_stat(storage, "u1") == []


def test_xp_by_stat_rejects_reversed_range(storage: Storage) -> None:
    with pytest.raises(ValueError):
        xp_by_stat(storage, "u1", date(2026, 3, 7), date(2026, 3, 1))
