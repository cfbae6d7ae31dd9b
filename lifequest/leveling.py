"""Explicit level-ups for stats whose stored level lags behind their XP.

Rows get into that state through imports or direct progression edits;
regular XP grants keep level and XP in step on their own. Titles for new
levels are requested here as well, for both paths.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel

from lifequest.errors import UnknownOrUnauthorizedEntity
from lifequest.ledger import AppliedAward
from lifequest.llm import LLM
from lifequest.models import LevelEvent, Stat, XpApplication, utcnow
from lifequest.progression import current_level_xp, is_ready_to_level_up, level_for_total_xp, level_up
from lifequest.storage import Storage
from lifequest.titles import title_level_events

logger = logging.getLogger(__name__)


class LevelUpOpportunity(BaseModel):
    stat_id: str
    name: str
    current_level: int
    total_xp: int
    new_level: int
    levels_gained: int


class StatLevelUp(BaseModel):
    stat: Stat
    result: XpApplication


def get_owned_stat(storage: Storage, user_id: str, stat_id: str) -> Stat:
    stat = storage.get_stat(stat_id)
    if stat is None:
        raise UnknownOrUnauthorizedEntity("character_stat", stat_id)
    if stat.user_id != user_id:
        raise UnknownOrUnauthorizedEntity("character_stat", stat_id, forbidden=True)
    return stat


async def title_new_levels(
    storage: Storage, llm: LLM | None, user_id: str, stat: Stat, events: list[LevelEvent]
) -> Stat:
    """Title every event and store the highest one on the stat.

    The LLM call can take a while, so only level_title is written back, onto
    a fresh read of the row. XP granted in the meantime stays intact.
    """
    if not events:
        return stat
    character = storage.get_active_character(user_id)
    await title_level_events(
        llm,
        stat.name,
        events,
        character.character_class if character else "Adventurer",
        character.backstory if character else "",
    )
    fresh = storage.get_stat(stat.id)
    if fresh is None:
        logger.warning("stat %s disappeared while titling its level-up", stat.id)
        return stat
    fresh.level_title = events[-1].title
    return storage.save_stat(fresh)


async def title_leveled_awards(
    storage: Storage, llm: LLM | None, user_id: str, applied: list[AppliedAward]
) -> None:
    """Title the new levels of every stat an award pushed up."""
    for item in applied:
        if item.progression is None or not item.progression.leveled_up:
            continue
        stat = storage.get_stat(item.award.stat_id)
        if stat is not None:
            await title_new_levels(storage, llm, user_id, stat, item.progression.level_events)


def level_up_opportunities(storage: Storage, user_id: str) -> list[LevelUpOpportunity]:
    opportunities = []
    for stat in storage.list_stats(user_id):
        if not is_ready_to_level_up(stat.total_xp, stat.current_level):
            continue
        new_level = level_for_total_xp(stat.total_xp)
        opportunities.append(LevelUpOpportunity(
            stat_id=stat.id,
            name=stat.name,
            current_level=stat.current_level,
            total_xp=stat.total_xp,
            new_level=new_level,
            levels_gained=new_level - stat.current_level,
        ))
    return opportunities


async def level_up_stat(
    storage: Storage,
    llm: LLM | None,
    user_id: str,
    stat_id: str,
    titles_enabled: bool = True,
) -> StatLevelUp:
    """Raise NotReadyForLevelUp if the stat's XP doesn't reach the next level."""
    stat = get_owned_stat(storage, user_id, stat_id)
    result = level_up(stat.total_xp, stat.current_level)

    stat.current_level = result.new_level
    stat.current_xp = current_level_xp(stat.total_xp, stat.current_level)
    stat.updated_at = utcnow()
    storage.save_stat(stat)
    logger.info("stat %s leveled up %d -> %d", stat.id, result.old_level, result.new_level)

    if titles_enabled:
        stat = await title_new_levels(storage, llm, user_id, stat, result.level_events)
    return StatLevelUp(stat=stat, result=result)


async def level_up_all(
    storage: Storage, llm: LLM | None, user_id: str, titles_enabled: bool = True
) -> list[StatLevelUp]:
    return [
        await level_up_stat(storage, llm, user_id, opp.stat_id, titles_enabled)
        for opp in level_up_opportunities(storage, user_id)
    ]
