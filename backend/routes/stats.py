"""Stat CRUD, progression view/edit, manual XP and explicit level-up endpoints."""

from fastapi import APIRouter, Depends

from lifequest.ledger import grant_xp, record_progression_edit
from lifequest.leveling import (
    get_owned_stat,
    level_up_all,
    level_up_opportunities,
    level_up_stat,
    title_new_levels,
)
from lifequest.llm import LLM
from lifequest.models import Stat, User, utcnow
from lifequest.progression import xp_progress
from lifequest.storage import Storage

from .deps import current_user, get_llm, get_settings, get_storage
from .models import AwardXp, CreateStat, SetProgression, UpdateStat
from .views import stat_view

router = APIRouter()


@router.get("/stats")
async def list_stats(user: User = Depends(current_user), storage: Storage = Depends(get_storage)):
    """List the user's stats with progress."""
    return [stat_view(s) for s in storage.list_stats(user.id)]


@router.post("/stats", status_code=201)
async def create_stat(
    body: CreateStat, user: User = Depends(current_user), storage: Storage = Depends(get_storage),
):
    """Create a custom stat. Names are unique per user."""
    character = storage.get_active_character(user.id)
    stat = storage.save_stat(Stat(
        user_id=user.id,
        character_id=character.id if character else None,
        name=body.name.strip(),
        description=body.description,
    ))
    return stat_view(stat)


# Fixed paths go before /stats/{stat_id}

@router.get("/stats/level-up-opportunities")
async def get_level_up_opportunities(
    user: User = Depends(current_user), storage: Storage = Depends(get_storage),
):
    """Stats whose XP already reaches a higher level than the stored one."""
    return level_up_opportunities(storage, user.id)


@router.post("/stats/level-up-all")
async def post_level_up_all(
    user: User = Depends(current_user),
    storage: Storage = Depends(get_storage),
    llm: LLM | None = Depends(get_llm),
    settings: dict = Depends(get_settings),
):
    """Level up every eligible stat."""
    results = await level_up_all(storage, llm, user.id, settings["level_titles_enabled"])
    return {"results": results, "count": len(results)}


@router.get("/stats/{stat_id}")
async def get_stat(
    stat_id: str, user: User = Depends(current_user), storage: Storage = Depends(get_storage),
):
    return stat_view(get_owned_stat(storage, user.id, stat_id))


@router.patch("/stats/{stat_id}")
async def update_stat(
    stat_id: str,
    body: UpdateStat,
    user: User = Depends(current_user),
    storage: Storage = Depends(get_storage),
):
    """Rename or re-describe a stat."""
    stat = get_owned_stat(storage, user.id, stat_id)
    if body.name is not None:
        if stat.system_default and body.name.strip() != stat.name:
            raise ValueError("System default stats cannot be renamed")
        stat.name = body.name.strip()
    if body.description is not None:
        stat.description = body.description
    stat.updated_at = utcnow()
    return stat_view(storage.save_stat(stat))


@router.delete("/stats/{stat_id}")
async def delete_stat(
    stat_id: str, user: User = Depends(current_user), storage: Storage = Depends(get_storage),
):
    """Delete a custom stat. System defaults stay."""
    stat = get_owned_stat(storage, user.id, stat_id)
    if stat.system_default:
        raise ValueError("System default stats cannot be deleted")
    storage.delete_stat(stat.id)
    return {"ok": True}


@router.get("/stats/{stat_id}/progression")
async def get_progression(
    stat_id: str, user: User = Depends(current_user), storage: Storage = Depends(get_storage),
):
    """Stat with its in-level progress."""
    stat = get_owned_stat(storage, user.id, stat_id)
    return {"stat": stat, "progress": xp_progress(stat.total_xp, stat.current_level)}


@router.put("/stats/{stat_id}/progression")
async def set_progression(
    stat_id: str,
    body: SetProgression,
    user: User = Depends(current_user),
    storage: Storage = Depends(get_storage),
):
    """Directly set level and XP. Rejected unless the pair fits the XP curve."""
    stat = record_progression_edit(
        storage, user.id, stat_id, body.total_xp, body.current_level, body.current_xp,
    )
    return {"stat": stat, "progress": xp_progress(stat.total_xp, stat.current_level)}


@router.post("/stats/{stat_id}/award-xp")
async def award_xp(
    stat_id: str,
    body: AwardXp,
    user: User = Depends(current_user),
    storage: Storage = Depends(get_storage),
    llm: LLM | None = Depends(get_llm),
    settings: dict = Depends(get_settings),
):
    """Manual XP grant to one stat."""
    if body.xp_amount == 0:
        raise ValueError("XP amount must not be zero")
    outcome = grant_xp(
        storage, user.id, "character_stat", stat_id, body.xp_amount,
        "manual", None, body.reason or "Manual award",
    )
    stat = outcome.entity
    if outcome.progression.leveled_up and settings["level_titles_enabled"]:
        stat = await title_new_levels(storage, llm, user.id, stat, outcome.progression.level_events)
    return {"grant": outcome.grant, "progression": outcome.progression, "stat": stat_view(stat)}


@router.post("/stats/{stat_id}/level-up")
async def post_level_up(
    stat_id: str,
    user: User = Depends(current_user),
    storage: Storage = Depends(get_storage),
    llm: LLM | None = Depends(get_llm),
    settings: dict = Depends(get_settings),
):
    """Catch a lagging stat up to its XP. 400 when it isn't ready."""
    return await level_up_stat(storage, llm, user.id, stat_id, settings["level_titles_enabled"])
