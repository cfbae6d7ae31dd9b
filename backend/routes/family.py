"""Focus and family member endpoints."""

from fastapi import APIRouter, Depends

from lifequest.leveling import get_owned_stat
from lifequest.models import FamilyMember, Focus, User
from lifequest.storage import Storage

from .deps import current_user, get_storage
from .models import CreateFamilyMember, CreateFocus

router = APIRouter()


@router.get("/focuses")
async def list_focuses(user: User = Depends(current_user), storage: Storage = Depends(get_storage)):
    return storage.list_focuses(user.id)


@router.post("/focuses", status_code=201)
async def create_focus(
    body: CreateFocus, user: User = Depends(current_user), storage: Storage = Depends(get_storage),
):
    """Create a day-of-week focus, optionally tied to a stat."""
    if body.stat_id:
        get_owned_stat(storage, user.id, body.stat_id)
    return storage.save_focus(Focus(user_id=user.id, **body.model_dump()))


@router.get("/family")
async def list_family(user: User = Depends(current_user), storage: Storage = Depends(get_storage)):
    return storage.list_family_members(user.id)


@router.post("/family", status_code=201)
async def create_family_member(
    body: CreateFamilyMember, user: User = Depends(current_user), storage: Storage = Depends(get_storage),
):
    return storage.save_family_member(FamilyMember(user_id=user.id, **body.model_dump()))
