"""JSON file storage.

All state is stored in flat JSON files under a configurable base directory.
There is no database or ORM: every table is one JSON list, loaded and
dumped through a handful of helper methods, and every row is validated
through its pydantic model on the way in and out.

Directory layout:

    {base}/
      config.json             ← runtime settings, merged with defaults on read
      tables/
        users.json
        characters.json
        stats.json
        focuses.json
        family_members.json
        adhoc_tasks.json
        tasks.json
        journals.json
        xp_grants.json        ← append-only ledger
"""

from __future__ import annotations

import copy
import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel

from lifequest.errors import DuplicateEntity
from lifequest.llm import PROVIDER_FORMATS
from lifequest.models import (
    AdHocTask,
    Character,
    FamilyMember,
    Focus,
    JournalEntry,
    Stat,
    Task,
    User,
    XpGrant,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_TABLES: dict[str, type[BaseModel]] = {
    "users": User,
    "characters": Character,
    "stats": Stat,
    "focuses": Focus,
    "family_members": FamilyMember,
    "adhoc_tasks": AdHocTask,
    "tasks": Task,
    "journals": JournalEntry,
    "xp_grants": XpGrant,
}

_CONFIG_DEFAULTS: dict[str, Any] = {
    "llm_connection": {
        "provider_url": "",
        "api_key": "",
        "provider_format": "openai",
        "model": "",
    },
    "default_task_xp": 25,
    "level_titles_enabled": True,
}


class Storage:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._tables = base_path / "tables"
        self._tables.mkdir(parents=True, exist_ok=True)

    @property
    def base_path(self) -> Path:
        return self._base

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _table_path(self, table: str) -> Path:
        return self._tables / f"{table}.json"

    def _read_json(self, path: Path) -> Any:
        return json.loads(path.read_text())

    def _write_json(self, path: Path, data: Any) -> None:
        path.write_text(json.dumps(data, indent=2))

    def _rows(self, table: str, model: type[M]) -> list[M]:
        path = self._table_path(table)
        if not path.exists():
            return []
        return [model.model_validate(r) for r in self._read_json(path)]

    def _save_rows(self, table: str, rows: list[BaseModel]) -> None:
        self._write_json(self._table_path(table), [r.model_dump(mode="json") for r in rows])

    def _get(self, table: str, model: type[M], row_id: str) -> M | None:
        for row in self._rows(table, model):
            if row.id == row_id:
                return row
        return None

    def _upsert(self, table: str, row: M) -> M:
        """Replace the row with the same id, or append it."""
        rows = self._rows(table, type(row))
        for i, existing in enumerate(rows):
            if existing.id == row.id:
                rows[i] = row
                break
        else:
            rows.append(row)
        self._save_rows(table, rows)
        return row

    def _delete(self, table: str, model: type[BaseModel], row_id: str) -> bool:
        rows = self._rows(table, model)
        kept = [r for r in rows if r.id != row_id]
        if len(kept) == len(rows):
            return False
        self._save_rows(table, kept)
        return True

    def _owned(self, table: str, model: type[M], user_id: str) -> list[M]:
        return [r for r in self._rows(table, model) if r.user_id == user_id]

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> User:
        email = user.email.strip().lower()
        if self.get_user_by_email(email):
            raise DuplicateEntity(f"User with email '{email}' already exists")
        user.email = email
        return self._upsert("users", user)

    def save_user(self, user: User) -> User:
        return self._upsert("users", user)

    def get_user(self, user_id: str) -> User | None:
        return self._get("users", User, user_id)

    def get_user_by_email(self, email: str) -> User | None:
        email = email.strip().lower()
        for user in self._rows("users", User):
            if user.email == email:
                return user
        return None

    def list_users(self) -> list[User]:
        return self._rows("users", User)

    def delete_user(self, user_id: str) -> bool:
        """Delete a user and every row they own."""
        if not self._delete("users", User, user_id):
            return False
        for table, model in _TABLES.items():
            if table == "users":
                continue
            rows = self._rows(table, model)
            kept = [r for r in rows if r.user_id != user_id]
            if len(kept) != len(rows):
                self._save_rows(table, kept)
        logger.info("Deleted user %s and owned rows", user_id)
        return True

    # ------------------------------------------------------------------
    # Characters
    # ------------------------------------------------------------------

    def save_character(self, character: Character) -> Character:
        return self._upsert("characters", character)

    def get_character(self, character_id: str) -> Character | None:
        return self._get("characters", Character, character_id)

    def get_active_character(self, user_id: str) -> Character | None:
        for char in self._owned("characters", Character, user_id):
            if char.is_active:
                return char
        return None

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def save_stat(self, stat: Stat) -> Stat:
        """Upsert a stat. Names are unique per owner (case-insensitive)."""
        name = stat.name.strip().lower()
        for other in self._owned("stats", Stat, stat.user_id):
            if other.id != stat.id and other.name.strip().lower() == name:
                raise DuplicateEntity(f"Stat '{stat.name}' already exists")
        return self._upsert("stats", stat)

    def get_stat(self, stat_id: str) -> Stat | None:
        return self._get("stats", Stat, stat_id)

    def list_stats(self, user_id: str) -> list[Stat]:
        return self._owned("stats", Stat, user_id)

    def delete_stat(self, stat_id: str) -> bool:
        return self._delete("stats", Stat, stat_id)

    # ------------------------------------------------------------------
    # Focuses
    # ------------------------------------------------------------------

    def save_focus(self, focus: Focus) -> Focus:
        return self._upsert("focuses", focus)

    def get_focus(self, focus_id: str) -> Focus | None:
        return self._get("focuses", Focus, focus_id)

    def list_focuses(self, user_id: str) -> list[Focus]:
        return self._owned("focuses", Focus, user_id)

    # ------------------------------------------------------------------
    # Family members
    # ------------------------------------------------------------------

    def save_family_member(self, member: FamilyMember) -> FamilyMember:
        return self._upsert("family_members", member)

    def get_family_member(self, member_id: str) -> FamilyMember | None:
        return self._get("family_members", FamilyMember, member_id)

    def list_family_members(self, user_id: str) -> list[FamilyMember]:
        return self._owned("family_members", FamilyMember, user_id)

    # ------------------------------------------------------------------
    # Ad-hoc task definitions
    # ------------------------------------------------------------------

    def save_adhoc_task(self, adhoc: AdHocTask) -> AdHocTask:
        return self._upsert("adhoc_tasks", adhoc)

    def get_adhoc_task(self, adhoc_id: str) -> AdHocTask | None:
        return self._get("adhoc_tasks", AdHocTask, adhoc_id)

    def list_adhoc_tasks(self, user_id: str) -> list[AdHocTask]:
        return self._owned("adhoc_tasks", AdHocTask, user_id)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def save_task(self, task: Task) -> Task:
        return self._upsert("tasks", task)

    def get_task(self, task_id: str) -> Task | None:
        return self._get("tasks", Task, task_id)

    def list_tasks(
        self,
        user_id: str,
        *,
        task_date: date | None = None,
        source: str | None = None,
        status: str | None = None,
    ) -> list[Task]:
        tasks = self._owned("tasks", Task, user_id)
        if task_date is not None:
            tasks = [t for t in tasks if t.task_date == task_date]
        if source is not None:
            tasks = [t for t in tasks if t.source == source]
        if status is not None:
            tasks = [t for t in tasks if t.status == status]
        return tasks

    def delete_task(self, task_id: str) -> bool:
        return self._delete("tasks", Task, task_id)

    # ------------------------------------------------------------------
    # Journals
    # ------------------------------------------------------------------

    def save_journal(self, entry: JournalEntry) -> JournalEntry:
        return self._upsert("journals", entry)

    def get_journal(self, journal_id: str) -> JournalEntry | None:
        return self._get("journals", JournalEntry, journal_id)

    def list_journals(self, user_id: str) -> list[JournalEntry]:
        return self._owned("journals", JournalEntry, user_id)

    # ------------------------------------------------------------------
    # XP grants (append-only)
    # ------------------------------------------------------------------

    def append_grant(self, grant: XpGrant) -> XpGrant:
        grants = self._rows("xp_grants", XpGrant)
        grants.append(grant)
        self._save_rows("xp_grants", grants)
        return grant

    def list_grants(self, user_id: str) -> list[XpGrant]:
        """All grants owned by user_id, in insertion order."""
        return self._owned("xp_grants", XpGrant, user_id)

    # ------------------------------------------------------------------
    # Config
    # ------------------------------------------------------------------

    def _config_path(self) -> Path:
        return self._base / "config.json"

    def get_config(self) -> dict[str, Any]:
        """Read config, returning defaults merged with stored values."""
        config = copy.deepcopy(_CONFIG_DEFAULTS)
        path = self._config_path()
        if path.is_file():
            stored = self._read_json(path)
            if isinstance(stored.get("llm_connection"), dict):
                config["llm_connection"].update(stored["llm_connection"])
            for key in ("default_task_xp", "level_titles_enabled"):
                if key in stored:
                    config[key] = stored[key]
        return config

    def update_config(self, fields: dict[str, Any]) -> dict[str, Any]:
        """Merge fields into config and persist. Returns full config."""
        config = self.get_config()
        if isinstance(fields.get("llm_connection"), dict):
            fmt = fields["llm_connection"].get("provider_format")
            if fmt is not None and fmt not in PROVIDER_FORMATS:
                raise ValueError(f"Unknown provider format: {fmt}")
            config["llm_connection"].update(fields["llm_connection"])
        if "default_task_xp" in fields:
            xp = int(fields["default_task_xp"])
            if xp < 1:
                raise ValueError("default_task_xp must be positive")
            config["default_task_xp"] = xp
        if "level_titles_enabled" in fields:
            config["level_titles_enabled"] = bool(fields["level_titles_enabled"])
        self._write_json(self._config_path(), config)
        return config
