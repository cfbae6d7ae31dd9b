"""Daily AI task generation, for one user or as a batch over all users.

Each run asks the LLM for one personal task and one family task:

    {"personalTask": {"title", "description", "targetStats": [names], "estimatedXp"},
     "familyTask":   {..., "targetFamilyMember": name}}

Stat and family references come back as names; anything that doesn't match
the user's rows is dropped. The batch is triggered from outside (cron hits
POST /api/scheduled/generate) and walks users one at a time; one user's
failure is recorded and the loop moves on.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from pydantic import BaseModel, Field

from lifequest.llm import LLM, LLMError, parse_json_output
from lifequest.models import FamilyMember, Focus, Stat, Task, User, utcnow
from lifequest.prompts import TASK_GENERATION_TEMPLATE, render_prompt
from lifequest.storage import Storage

logger = logging.getLogger(__name__)

MIN_GENERATED_XP = 10
MAX_GENERATED_XP = 50
DEFAULT_GENERATED_XP = 25
FAMILY_STAT_NAME = "Family Bonding"


class UserGenerationError(BaseModel):
    user_id: str
    error: str


class BatchResult(BaseModel):
    total_users_processed: int = 0
    successful_generations: int = 0
    skipped_users: int = 0
    errors: list[UserGenerationError] = Field(default_factory=list)


def _clamp_xp(value: Any) -> int:
    try:
        xp = int(value)
    except (TypeError, ValueError):
        return DEFAULT_GENERATED_XP
    return max(MIN_GENERATED_XP, min(MAX_GENERATED_XP, xp))


def _stat_ids(names: Any, stats_by_name: dict[str, Stat]) -> list[str]:
    if not isinstance(names, list):
        return []
    ids = []
    for name in names:
        stat = stats_by_name.get(str(name).strip().lower())
        if stat is not None and stat.id not in ids:
            ids.append(stat.id)
    return ids


def _build_task(
    suggestion: dict[str, Any],
    user_id: str,
    today: date,
    stats_by_name: dict[str, Stat],
    focus: Focus | None,
) -> Task:
    title = str(suggestion.get("title") or "").strip()
    if not title:
        raise LLMError("Generated task is missing a title")
    return Task(
        user_id=user_id,
        title=title,
        description=str(suggestion.get("description") or ""),
        source="ai",
        estimated_xp=_clamp_xp(suggestion.get("estimatedXp")),
        linked_stat_ids=_stat_ids(suggestion.get("targetStats"), stats_by_name),
        focus_id=focus.id if focus else None,
        task_date=today,
    )


def _find_member(name: Any, family: list[FamilyMember]) -> FamilyMember | None:
    if not isinstance(name, str):
        return None
    wanted = name.strip().lower()
    for member in family:
        if member.name.lower() == wanted:
            return member
    return None


async def generate_daily_tasks(
    storage: Storage,
    llm: LLM | None,
    user_id: str,
    today: date | None = None,
    force: bool = False,
) -> list[Task]:
    """Create today's personal and family tasks for one user.

    Returns the existing AI tasks instead when the user already has some for
    today, unless force is set, in which case pending ones are replaced. A
    failed forced run leaves the old tasks in place.
    """
    today = today or utcnow().date()
    character = storage.get_active_character(user_id)
    if character is None:
        raise ValueError("User has no active character")

    existing = storage.list_tasks(user_id, task_date=today, source="ai")
    if existing and not force:
        return existing

    if llm is None:
        raise LLMError("No LLM connection configured")

    stats = storage.list_stats(user_id)
    family = storage.list_family_members(user_id)
    focus = next((f for f in storage.list_focuses(user_id) if f.day_of_week == today.weekday()), None)

    prompt = render_prompt(TASK_GENERATION_TEMPLATE, {
        "character_name": character.name,
        "character_class": character.character_class,
        "backstory": character.backstory or "(none)",
        "stats": [s.model_dump() for s in stats],
        "focus": focus.name if focus else "",
        "family": [m.model_dump() for m in family],
    })
    raw = await llm("task_generation", prompt)
    data = parse_json_output(raw)
    if not data or not isinstance(data.get("personalTask"), dict) or not isinstance(data.get("familyTask"), dict):
        raise LLMError("Task generation returned an invalid response")

    stats_by_name = {s.name.lower(): s for s in stats}
    personal = _build_task(data["personalTask"], user_id, today, stats_by_name, focus)
    family_task = _build_task(data["familyTask"], user_id, today, stats_by_name, None)

    bonding = stats_by_name.get(FAMILY_STAT_NAME.lower())
    if bonding is not None and bonding.id not in family_task.linked_stat_ids:
        family_task.linked_stat_ids.append(bonding.id)
    member = _find_member(data["familyTask"].get("targetFamilyMember"), family)
    if member is not None:
        family_task.family_member_id = member.id

    for task in existing:
        if task.status == "pending":
            storage.delete_task(task.id)
    storage.save_task(personal)
    storage.save_task(family_task)
    logger.info("Generated daily tasks for user %s on %s", user_id, today)
    return [personal, family_task]


def eligible_users(storage: Storage) -> list[User]:
    """Users with at least one active character."""
    return [u for u in storage.list_users() if storage.get_active_character(u.id) is not None]


async def generate_for_all_users(
    storage: Storage,
    llm: LLM | None,
    force: bool = False,
    today: date | None = None,
) -> BatchResult:
    today = today or utcnow().date()
    users = eligible_users(storage)
    result = BatchResult(total_users_processed=len(users))

    for user in users:
        if not force and storage.list_tasks(user.id, task_date=today, source="ai"):
            result.skipped_users += 1
            continue
        try:
            await generate_daily_tasks(storage, llm, user.id, today, force=force)
        except Exception as e:
            logger.exception("Daily task generation failed for user %s", user.id)
            result.errors.append(UserGenerationError(user_id=user.id, error=str(e)))
        else:
            result.successful_generations += 1

    logger.info(
        "Scheduled generation: %d users, %d generated, %d skipped, %d failed",
        result.total_users_processed, result.successful_generations,
        result.skipped_users, len(result.errors),
    )
    return result
