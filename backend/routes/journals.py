"""Journal entry and XP ledger endpoints."""

from datetime import date

from fastapi import APIRouter, Depends

from lifequest.journal import finalize_journal
from lifequest.ledger import grant_xp, list_grants, replay_stat_totals, xp_by_stat
from lifequest.llm import LLM
from lifequest.models import JournalEntry, User
from lifequest.storage import Storage

from .deps import current_user, get_llm, get_settings, get_storage
from .models import CreateJournal, CreateXpGrant

router = APIRouter()


@router.get("/journals")
async def list_journals(user: User = Depends(current_user), storage: Storage = Depends(get_storage)):
    return storage.list_journals(user.id)


@router.post("/journals", status_code=201)
async def create_journal(
    body: CreateJournal, user: User = Depends(current_user), storage: Storage = Depends(get_storage),
):
    if not body.content.strip():
        raise ValueError("Journal content must not be empty")
    return storage.save_journal(JournalEntry(user_id=user.id, **body.model_dump()))


@router.post("/journals/{journal_id}/finalize")
async def post_finalize_journal(
    journal_id: str,
    user: User = Depends(current_user),
    storage: Storage = Depends(get_storage),
    llm: LLM | None = Depends(get_llm),
    settings: dict = Depends(get_settings),
):
    """Finalize an entry and award XP to its linked stats and family members."""
    return await finalize_journal(storage, llm, user.id, journal_id, settings["level_titles_enabled"])


@router.get("/xp-grants")
async def get_xp_grants(
    entity_type: str | None = None,
    entity_id: str | None = None,
    source_type: str | None = None,
    source_id: str | None = None,
    limit: int | None = None,
    offset: int = 0,
    user: User = Depends(current_user),
    storage: Storage = Depends(get_storage),
):
    """Ledger rows, newest first."""
    if offset < 0 or (limit is not None and limit < 0):
        raise ValueError("limit and offset must not be negative")
    return list_grants(
        storage, user.id,
        entity_type=entity_type, entity_id=entity_id,
        source_type=source_type, source_id=source_id,
        limit=limit, offset=offset,
    )


@router.get("/xp-grants/by-stat")
async def get_xp_by_stat(
    start: date | None = None,
    end: date | None = None,
    source_type: str | None = None,
    user: User = Depends(current_user),
    storage: Storage = Depends(get_storage),
):
    """Net XP per stat over a date range (quest and weekly summaries)."""
    return xp_by_stat(storage, user.id, start, end, source_type)


@router.post("/xp-grants", status_code=201)
async def post_xp_grant(
    body: CreateXpGrant, user: User = Depends(current_user), storage: Storage = Depends(get_storage),
):
    """Record a grant against any entity type."""
    outcome = grant_xp(
        storage, user.id, body.entity_type, body.entity_id, body.xp_amount,
        body.source_type, body.source_id, body.reason,
    )
    return outcome


@router.post("/xp-grants/replay")
async def post_replay(user: User = Depends(current_user), storage: Storage = Depends(get_storage)):
    """Rebuild stat totals from the ledger. Returns the stats that changed."""
    return {"corrected": replay_stat_totals(storage, user.id)}
