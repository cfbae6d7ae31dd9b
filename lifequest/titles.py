"""Level titles: a short humorous name for each level a stat reaches.

Titles are narrative garnish. generate_level_title() never raises; when the
LLM is missing, fails, or answers with something unusable, it returns a
title from the fixed table below.
"""

from __future__ import annotations

import logging
import re

from lifequest.llm import LLM, LLMError
from lifequest.models import LevelEvent
from lifequest.prompts import LEVEL_TITLE_TEMPLATE, PromptError, render_prompt

logger = logging.getLogger(__name__)

MIN_TITLE_LEN = 2
MAX_TITLE_LEN = 50

FALLBACK_TITLES: dict[str, list[str]] = {
    "Physical Health": [
        "Couch Escapee", "Gym Explorer", "Fitness Enthusiast", "Athletic Achiever",
        "Wellness Warrior", "Health Champion", "Fitness Guru", "Physical Peak",
        "Body Master", "Strength Legend",
    ],
    "Mental Wellness": [
        "Stress Rookie", "Calm Seeker", "Mindful Student", "Zen Apprentice",
        "Peace Practitioner", "Clarity Champion", "Mindfulness Master", "Mental Monk",
        "Wisdom Keeper", "Enlightened One",
    ],
    "Family Bonding": [
        "Family Friend", "Quality Timer", "Memory Maker", "Connection Creator",
        "Bonding Builder", "Family Champion", "Love Leader", "Relationship Master",
        "Family Guru", "Bond Legend",
    ],
    "Professional Growth": [
        "Career Climber", "Skill Seeker", "Growth Minded", "Professional Player",
        "Career Champion", "Skill Master", "Growth Guru", "Professional Peak",
        "Career Legend", "Success Sage",
    ],
    "Creative Expression": [
        "Creative Curious", "Art Explorer", "Creative Craft", "Artistic Achiever",
        "Creative Champion", "Art Master", "Creative Guru", "Artistic Peak",
        "Creative Legend", "Imagination Icon",
    ],
    "Social Connection": [
        "Social Starter", "Friend Finder", "Social Seeker", "Connection Creator",
        "Social Champion", "Friend Master", "Social Guru", "Connection Peak",
        "Social Legend", "Network Ninja",
    ],
}

_LEVEL_PREFIX = re.compile(r"^(level\s+\d+:?\s*)", re.IGNORECASE)
_STAT_LEVEL_PREFIX = re.compile(r"^\w+\s+(level|lvl)\s+\d+:?\s*", re.IGNORECASE)


def level_tier(level: int) -> str:
    if level <= 2:
        return "beginner"
    if level <= 5:
        return "novice"
    if level <= 10:
        return "intermediate"
    if level <= 15:
        return "advanced"
    return "master"


def fallback_title(stat_name: str, level: int) -> str:
    """Deterministic title; unknown stats borrow the Physical Health table."""
    titles = FALLBACK_TITLES.get(stat_name, FALLBACK_TITLES["Physical Health"])
    index = min(max(level, 1) - 1, len(titles) - 1)
    return titles[index]


def clean_title(raw: str) -> str:
    """Strip quotes and "Level N:" style prefixes from an LLM answer."""
    title = raw.strip().splitlines()[0] if raw.strip() else ""
    title = title.replace('"', "").replace("'", "")
    title = _LEVEL_PREFIX.sub("", title)
    title = _STAT_LEVEL_PREFIX.sub("", title)
    return title.strip()


async def generate_level_title(
    llm: LLM | None,
    stat_name: str,
    level: int,
    character_class: str = "Adventurer",
    backstory: str = "",
) -> str:
    if llm is None:
        return fallback_title(stat_name, level)

    try:
        prompt = render_prompt(LEVEL_TITLE_TEMPLATE, {
            "stat_name": stat_name,
            "level": level,
            "tier": level_tier(level),
            "character_class": character_class,
            "backstory": backstory,
        })
        raw = await llm("level_title", prompt)
    except (LLMError, PromptError) as e:
        logger.warning("Level title generation failed for %s L%d: %s", stat_name, level, e)
        return fallback_title(stat_name, level)
    except Exception:
        logger.exception("Unexpected error generating level title for %s L%d", stat_name, level)
        return fallback_title(stat_name, level)

    title = clean_title(raw)
    if not MIN_TITLE_LEN <= len(title) <= MAX_TITLE_LEN:
        logger.warning("Generated title length invalid: %r", title)
        return fallback_title(stat_name, level)
    return title


async def title_level_events(
    llm: LLM | None,
    stat_name: str,
    events: list[LevelEvent],
    character_class: str = "Adventurer",
    backstory: str = "",
) -> list[LevelEvent]:
    """Fill in `title` on each event, in order. Returns the same list."""
    for event in events:
        event.title = await generate_level_title(
            llm, stat_name, event.level, character_class, backstory,
        )
    return events
