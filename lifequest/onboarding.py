"""New-user setup: user row, active character, default stats."""

from __future__ import annotations

import logging

from lifequest.models import Character, Stat, User
from lifequest.storage import Storage

logger = logging.getLogger(__name__)

DEFAULT_STATS: list[tuple[str, str]] = [
    ("Physical Health", "Exercise, sleep, nutrition and overall fitness"),
    ("Mental Wellness", "Stress management, mindfulness and emotional balance"),
    ("Family Bonding", "Quality time and connection with family"),
    ("Professional Growth", "Career skills, learning and work achievements"),
    ("Creative Expression", "Art, writing, music and other creative pursuits"),
    ("Social Connection", "Friendships, community and belonging in groups"),
]


def seed_default_stats(storage: Storage, user_id: str, character_id: str | None) -> list[Stat]:
    """Create any system-default stat the user doesn't have yet."""
    existing = {s.name.lower() for s in storage.list_stats(user_id)}
    created = []
    for name, description in DEFAULT_STATS:
        if name.lower() in existing:
            continue
        created.append(storage.save_stat(Stat(
            user_id=user_id,
            character_id=character_id,
            name=name,
            description=description,
            system_default=True,
        )))
    return created


def onboard_user(
    storage: Storage,
    email: str,
    name: str = "",
    character_name: str | None = None,
    character_class: str = "Adventurer",
    backstory: str = "",
) -> tuple[User, Character, list[Stat]]:
    """Create the user, their character and the six default stats.

    Raises DuplicateEntity when the email is taken.
    """
    user = storage.create_user(User(email=email, name=name))
    character = storage.save_character(Character(
        user_id=user.id,
        name=character_name or name or email.split("@")[0],
        character_class=character_class,
        backstory=backstory,
    ))
    stats = seed_default_stats(storage, user.id, character.id)
    logger.info("Onboarded user %s with %d default stats", user.id, len(stats))
    return user, character, stats
