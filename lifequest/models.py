"""Core domain models.

Every storage table, service and route operates on these types.
Pydantic is used for validation and serialisation at every data boundary.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

EntityType = Literal[
    "character_stat",
    "family_member",
    "goal",
    "project",
    "adventure",
]

SourceType = Literal["journal", "quest", "task", "manual"]

TaskSource = Literal["ai", "quest", "experiment", "todo", "ad-hoc", "external"]

TaskStatus = Literal["pending", "completed", "skipped"]

AwardRoute = Literal["adhoc", "linked", "legacy", "focus"]


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Persisted rows
# ---------------------------------------------------------------------------

class User(BaseModel):
    id: str = Field(default_factory=new_id)
    email: str
    name: str = ""
    timezone: str = "UTC"
    created_at: datetime = Field(default_factory=utcnow)


class Character(BaseModel):
    """The player's avatar. One active character per user."""

    id: str = Field(default_factory=new_id)
    user_id: str
    name: str
    character_class: str
    backstory: str = ""
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)


class Stat(BaseModel):
    """A named progression track (e.g. "Physical Health")."""

    id: str = Field(default_factory=new_id)
    user_id: str
    character_id: str | None = None
    name: str
    description: str = ""
    current_level: int = Field(default=1, ge=1)
    total_xp: int = Field(default=0, ge=0)
    current_xp: int = 0  # XP earned inside the current level
    level_title: str | None = None
    system_default: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Focus(BaseModel):
    """Day-of-week theme whose stat receives XP from linked tasks."""

    id: str = Field(default_factory=new_id)
    user_id: str
    name: str
    description: str = ""
    day_of_week: int = Field(ge=0, le=6)  # 0 = Monday
    stat_id: str | None = None


class FamilyMember(BaseModel):
    id: str = Field(default_factory=new_id)
    user_id: str
    name: str
    relationship: str = ""
    interests: list[str] = Field(default_factory=list)
    connection_xp: int = 0
    connection_level: int = 1
    updated_at: datetime = Field(default_factory=utcnow)


class AdHocTask(BaseModel):
    """User-defined one-off with its own XP value and a single target stat."""

    id: str = Field(default_factory=new_id)
    user_id: str
    title: str
    description: str = ""
    stat_id: str
    custom_xp: int = Field(ge=1)
    created_at: datetime = Field(default_factory=utcnow)


class Task(BaseModel):
    id: str = Field(default_factory=new_id)
    user_id: str
    title: str
    description: str = ""
    source: TaskSource = "external"
    status: TaskStatus = "pending"
    estimated_xp: int = Field(default=0, ge=0)
    linked_stat_ids: list[str] = Field(default_factory=list)
    stat_id: str | None = None  # legacy single-stat link
    focus_id: str | None = None
    adhoc_task_id: str | None = None
    family_member_id: str | None = None
    task_date: date | None = None
    feedback: str | None = None
    completed_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)


class JournalEntry(BaseModel):
    id: str = Field(default_factory=new_id)
    user_id: str
    content: str
    title: str | None = None
    summary: str | None = None
    content_tags: list[str] = Field(default_factory=list)
    stat_ids: list[str] = Field(default_factory=list)
    family_member_ids: list[str] = Field(default_factory=list)
    is_finalized: bool = False
    finalized_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)


class XpGrant(BaseModel):
    """One immutable ledger row: one award to one entity from one source."""

    id: str = Field(default_factory=new_id)
    user_id: str
    entity_type: EntityType
    entity_id: str
    xp_amount: int  # signed; struggling journal content yields negatives
    source_type: SourceType
    source_id: str | None = None
    reason: str = ""
    created_at: datetime = Field(default_factory=utcnow)


# ---------------------------------------------------------------------------
# Derived values (never persisted as rows of their own)
# ---------------------------------------------------------------------------

class LevelEvent(BaseModel):
    level: int
    xp_required: int
    title: str | None = None


class XpApplication(BaseModel):
    """Outcome of applying an XP delta to a (total XP, level) pair."""

    old_total_xp: int
    new_total_xp: int
    old_level: int
    new_level: int
    leveled_up: bool
    levels_gained: int
    level_events: list[LevelEvent] = Field(default_factory=list)


class XpProgress(BaseModel):
    current_level_xp: int
    xp_in_current_level: int
    xp_to_next_level: int
    progress_percent: int
    can_level_up: bool


class StatAward(BaseModel):
    stat_id: str
    xp_amount: int
    route: AwardRoute

    @property
    def is_primary(self) -> bool:
        """Explicit links and ad-hoc definitions must resolve; the rest are best effort."""
        return self.route in ("adhoc", "linked")
