"""Health check and runtime settings endpoints."""

from fastapi import APIRouter, Depends

from lifequest.models import User
from lifequest.progression import level_requirements
from lifequest.storage import Storage

from .deps import current_user, get_storage

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/settings")
async def get_settings(
    storage: Storage = Depends(get_storage), user: User = Depends(current_user),
):
    """Get runtime settings (LLM connection, default task XP, level titles)."""
    return storage.get_config()


@router.patch("/settings")
async def update_settings(
    body: dict, storage: Storage = Depends(get_storage), user: User = Depends(current_user),
):
    """Update runtime settings (partial merge)."""
    return storage.update_config(body)


@router.get("/levels")
async def get_levels(max_level: int = 20, user: User = Depends(current_user)):
    """Cumulative XP required for each level."""
    if not 1 <= max_level <= 100:
        raise ValueError("max_level must be between 1 and 100")
    return level_requirements(max_level)
