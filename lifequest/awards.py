"""Stat-award resolution for completed tasks.

A task can point at stats three ways, accumulated over several schema
revisions:

    linked_stat_ids   current multi-stat list
    stat_id           legacy single-stat field
    focus_id          focus of the day, whose stat is the fallback target

Ad-hoc tasks bypass all of that: their definition names one stat and a
custom XP value.

Nothing here touches storage. The caller fetches the focus and ad-hoc rows
first and hands them in as plain mappings.
"""

from __future__ import annotations

from collections.abc import Mapping

from lifequest.models import AdHocTask, AwardRoute, StatAward, Task

DEFAULT_TASK_XP = 25


def resolve_awards(
    task: Task,
    *,
    focus_stats: Mapping[str, str | None] | None = None,
    adhoc_tasks: Mapping[str, AdHocTask] | None = None,
    default_xp: int = DEFAULT_TASK_XP,
) -> list[StatAward]:
    """Return one award per distinct target stat, in first-seen order."""
    if task.status != "completed":
        return []
    if task.source == "todo":
        return []

    if task.adhoc_task_id and adhoc_tasks:
        definition = adhoc_tasks.get(task.adhoc_task_id)
        if definition is not None:
            return [StatAward(stat_id=definition.stat_id, xp_amount=definition.custom_xp, route="adhoc")]

    candidates: list[tuple[str, AwardRoute]] = [(sid, "linked") for sid in task.linked_stat_ids]
    if task.stat_id:
        candidates.append((task.stat_id, "legacy"))
    if task.focus_id and focus_stats:
        focus_stat = focus_stats.get(task.focus_id)
        if focus_stat:
            candidates.append((focus_stat, "focus"))

    amount = task.estimated_xp if task.estimated_xp > 0 else default_xp
    awards: list[StatAward] = []
    seen: set[str] = set()
    for stat_id, route in candidates:
        if not stat_id or stat_id in seen:
            continue
        seen.add(stat_id)
        awards.append(StatAward(stat_id=stat_id, xp_amount=amount, route=route))
    return awards


def normalize_task_fields(
    source: str,
    estimated_xp: int,
    linked_stat_ids: list[str],
    stat_id: str | None,
) -> tuple[int, list[str], str | None]:
    """Apply write-time rules to a task's XP fields.

    Todo tasks live outside the progression system: whatever the client
    sends, they are stored with zero XP and no stat targets.
    """
    if source == "todo":
        return 0, [], None
    # keep order, drop repeats and blanks
    linked = list(dict.fromkeys(sid for sid in linked_stat_ids if sid))
    return max(0, estimated_xp), linked, stat_id or None
