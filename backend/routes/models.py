"""Pydantic request models for API endpoints."""

from datetime import date

from pydantic import BaseModel, Field

from lifequest.models import EntityType, SourceType, TaskSource


class CreateUser(BaseModel):
    email: str
    name: str = ""
    character_name: str | None = None
    character_class: str = "Adventurer"
    backstory: str = ""


class CreateStat(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = ""


class UpdateStat(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None


class SetProgression(BaseModel):
    total_xp: int
    current_level: int
    current_xp: int | None = None


class AwardXp(BaseModel):
    xp_amount: int
    reason: str = ""


class CreateFocus(BaseModel):
    name: str
    description: str = ""
    day_of_week: int = Field(ge=0, le=6)
    stat_id: str | None = None


class CreateAdHocTask(BaseModel):
    title: str
    description: str = ""
    stat_id: str
    custom_xp: int = Field(ge=1, le=1000)


class CreateTask(BaseModel):
    title: str
    description: str = ""
    source: TaskSource = "external"
    estimated_xp: int = Field(default=0, ge=0)
    linked_stat_ids: list[str] = Field(default_factory=list)
    stat_id: str | None = None
    focus_id: str | None = None
    family_member_id: str | None = None
    task_date: date | None = None


class CompleteTask(BaseModel):
    status: str = "completed"
    feedback: str | None = None


class CreateFamilyMember(BaseModel):
    name: str
    relationship: str = ""
    interests: list[str] = Field(default_factory=list)


class CreateJournal(BaseModel):
    content: str
    title: str | None = None
    content_tags: list[str] = Field(default_factory=list)
    stat_ids: list[str] = Field(default_factory=list)
    family_member_ids: list[str] = Field(default_factory=list)


class CreateXpGrant(BaseModel):
    entity_type: EntityType
    entity_id: str
    xp_amount: int
    source_type: SourceType = "manual"
    source_id: str | None = None
    reason: str = ""


class GenerateTasks(BaseModel):
    force: bool = False
    for_date: date | None = None
