"""Tests for lifequest.storage: JSON tables, uniqueness, cascade, config."""

import json
from datetime import date

import pytest

from lifequest.errors import DuplicateEntity
from lifequest.models import Character, FamilyMember, Stat, Task, User, XpGrant
from lifequest.storage import Storage


def test_tables_dir_created(storage: Storage, tmp_path) -> None:
    Storage(tmp_path / "fresh")
    assert (tmp_path / "fresh" / "tables").is_dir()


def test_stat_roundtrip_through_json(storage: Storage) -> None:
    stat = storage.save_stat(Stat(user_id="u1", name="Physical Health", total_xp=450, current_level=2))
    raw = json.loads((storage.base_path / "tables" / "stats.json").read_text())
    assert raw[0]["id"] == stat.id
    assert isinstance(raw[0]["created_at"], str)

    loaded = storage.get_stat(stat.id)
    assert loaded == stat


def test_upsert_replaces_by_id(storage: Storage) -> None:
    stat = storage.save_stat(Stat(user_id="u1", name="Physical Health"))
    stat.total_xp = 100
    storage.save_stat(stat)
    stats = storage.list_stats("u1")
    assert len(stats) == 1
    assert stats[0].total_xp == 100


def test_stat_names_unique_per_owner(storage: Storage) -> None:
    storage.save_stat(Stat(user_id="u1", name="Reading"))
    with pytest.raises(DuplicateEntity):
        storage.save_stat(Stat(user_id="u1", name="  reading "))
    # another owner may reuse the name
    storage.save_stat(Stat(user_id="u2", name="Reading"))


def test_user_email_unique_and_normalized(storage: Storage) -> None:
    user = storage.create_user(User(email="Hero@Example.com"))
    assert user.email == "hero@example.com"
    assert storage.get_user_by_email("HERO@example.com").id == user.id
    with pytest.raises(DuplicateEntity):
        storage.create_user(User(email="hero@example.com"))


def test_list_tasks_filters(storage: Storage) -> None:
    today = date(2026, 3, 2)
    storage.save_task(Task(user_id="u1", title="a", source="ai", task_date=today))
    storage.save_task(Task(user_id="u1", title="b", source="todo", task_date=today))
    storage.save_task(Task(user_id="u1", title="c", source="ai", task_date=date(2026, 3, 1)))
    storage.save_task(Task(user_id="u2", title="d", source="ai", task_date=today))

    assert [t.title for t in storage.list_tasks("u1", task_date=today, source="ai")] == ["a"]
    assert len(storage.list_tasks("u1")) == 3
    assert storage.list_tasks("u1", status="completed") == []


def test_grants_are_append_only(storage: Storage) -> None:
    g1 = storage.append_grant(XpGrant(
        user_id="u1", entity_type="character_stat", entity_id="s1", xp_amount=10, source_type="task",
    ))
    g2 = storage.append_grant(XpGrant(
        user_id="u1", entity_type="character_stat", entity_id="s1", xp_amount=10, source_type="task",
    ))
    assert [g.id for g in storage.list_grants("u1")] == [g1.id, g2.id]


def test_delete_user_cascades(storage: Storage) -> None:
    user = storage.create_user(User(email="a@b.c"))
    other = storage.create_user(User(email="x@y.z"))
    storage.save_character(Character(user_id=user.id, name="A", character_class="Ranger"))
    storage.save_stat(Stat(user_id=user.id, name="Physical Health"))
    storage.save_stat(Stat(user_id=other.id, name="Physical Health"))
    storage.save_family_member(FamilyMember(user_id=user.id, name="Milo"))

    assert storage.delete_user(user.id) is True
    assert storage.get_user(user.id) is None
    assert storage.list_stats(user.id) == []
    assert storage.list_family_members(user.id) == []
    assert storage.get_active_character(user.id) is None
    assert len(storage.list_stats(other.id)) == 1
    assert storage.delete_user(user.id) is False


# ── Config ──────────────────────────────────────────────


def test_get_config_defaults(storage: Storage) -> None:
    config = storage.get_config()
    assert config["default_task_xp"] == 25
    assert config["level_titles_enabled"] is True
    assert config["llm_connection"]["provider_format"] == "openai"


def test_update_config_partial_merge(storage: Storage) -> None:
    storage.update_config({"llm_connection": {"model": "gpt-4o"}})
    result = storage.update_config({"default_task_xp": 40})
    assert result["default_task_xp"] == 40
    assert result["llm_connection"]["model"] == "gpt-4o"
    assert result["llm_connection"]["provider_format"] == "openai"

    reloaded = storage.get_config()
    assert reloaded == result


def test_update_config_rejects_non_positive_xp(storage: Storage) -> None:
    with pytest.raises(ValueError):
        storage.update_config({"default_task_xp": 0})


def test_update_config_rejects_unknown_provider_format(storage: Storage) -> None:
    with pytest.raises(ValueError, match="provider format"):
        storage.update_config({"llm_connection": {"provider_format": "bogus", "api_key": "k"}})
    assert storage.get_config()["llm_connection"]["provider_format"] == "openai"
    result = storage.update_config({"llm_connection": {"provider_format": "koboldcpp"}})
    assert result["llm_connection"]["provider_format"] == "koboldcpp"
