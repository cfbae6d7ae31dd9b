"""Handlebars prompt templates for the content-generation stages."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pybars

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


# ── Helpers ──────────────────────────────────────────────


def _helper_join(this, items, sep=", "):
    """{{join array}} or {{join array " / "}}: inline list."""
    return str(sep).join(str(i) for i in (items or []))


_HELPERS: dict[str, Callable] = {
    "join": _helper_join,
}


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context, helpers=_HELPERS))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


# ── Templates ────────────────────────────────────────────

LEVEL_TITLE_TEMPLATE = """\
You are a creative D&D Dungeon Master who names level-ups for a life-gamification app.
Generate a humorous level title for a character's stat progression:

Stat Category: {{{stat_name}}}
New Level: {{level}} ({{tier}})
Character Class: {{{character_class}}}
{{#if backstory}}Character backstory: {{{backstory}}}
{{/if}}
The title should:
- Be 2-6 words long
- Be humorous but appropriate for all ages
- Reflect the character's class and backstory
- Match the level progression (low levels = humble/beginner, high levels = impressive/master)
- Be specific to the "{{{stat_name}}}" stat category

Examples:
- Physical Health Level 2: "Enthusiastic Couch Escapee"
- Mental Wellness Level 5: "Zen Garden Apprentice"
- Family Bonding Level 10: "Master Bedtime Storyteller"

Generate only the title, no additional text:"""

TASK_GENERATION_TEMPLATE = """\
You are a D&D life-gamification assistant. Generate exactly 2 daily tasks for a \
{{{character_class}}} character named {{{character_name}}}.

1. personalTask: personal growth, learning, health or adventure.
2. familyTask: connecting with a family member.

Character background:
{{{backstory}}}

Character stats:
{{#each stats}}- {{{name}}}: Level {{current_level}} ({{total_xp}} XP total)
{{/each}}
{{#if focus}}
Today's focus: {{{focus}}}
{{/if}}
{{#if family}}
Family members:
{{#each family}}- {{{name}}}{{#if relationship}} ({{{relationship}}}){{/if}}{{#if interests}}, interests: {{{join interests}}}{{/if}}
{{/each}}
{{/if}}
Rules:
- Be specific and actionable, completable today
- targetStats must use the stat names listed above
- estimatedXp between 10 and 50
- Return valid JSON only

Response format:
{
  "personalTask": {"title": "...", "description": "...", "targetStats": ["..."], "estimatedXp": 25},
  "familyTask": {"title": "...", "description": "...", "targetStats": ["Family Bonding"], "estimatedXp": 25, "targetFamilyMember": "name"}
}"""

JOURNAL_ENRICHMENT_TEMPLATE = """\
Read this journal entry and return JSON with a short title (max 8 words) and a \
one-paragraph summary written in the second person.

Journal entry:
{{{content}}}
{{#if tags}}
Tags: {{{join tags}}}
{{/if}}
Return only: {"title": "...", "summary": "..."}"""
