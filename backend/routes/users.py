"""User onboarding and account endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from lifequest.auth import TokenAuth
from lifequest.models import User
from lifequest.onboarding import onboard_user
from lifequest.storage import Storage

from .deps import current_user, get_auth, get_storage
from .models import CreateUser
from .views import stat_view

router = APIRouter()


@router.post("/users", status_code=201)
async def create_user(
    body: CreateUser,
    storage: Storage = Depends(get_storage),
    auth: TokenAuth = Depends(get_auth),
):
    """Create a user, their character and default stats. Returns a bearer token."""
    if "@" not in body.email:
        raise ValueError("Invalid email address")
    user, character, stats = onboard_user(
        storage,
        email=body.email,
        name=body.name,
        character_name=body.character_name,
        character_class=body.character_class,
        backstory=body.backstory,
    )
    return {
        "user": user,
        "character": character,
        "stats": [stat_view(s) for s in stats],
        "token": auth.issue(user.id, user.email),
    }


@router.get("/users/me")
async def get_me(user: User = Depends(current_user)):
    """The authenticated user."""
    return user


@router.delete("/users/me")
async def delete_me(user: User = Depends(current_user), storage: Storage = Depends(get_storage)):
    """Delete the account and everything it owns."""
    storage.delete_user(user.id)
    return {"ok": True}


@router.get("/characters/me")
async def get_my_character(user: User = Depends(current_user), storage: Storage = Depends(get_storage)):
    """Active character with its stats."""
    character = storage.get_active_character(user.id)
    if character is None:
        raise HTTPException(404, "Character not found")
    return {
        "character": character,
        "stats": [stat_view(s) for s in storage.list_stats(user.id)],
    }
