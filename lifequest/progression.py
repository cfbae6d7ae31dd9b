"""Progression engine: XP thresholds, level resolution, level-up events.

Threshold curve (cumulative XP needed to *have reached* a level):

    level 1   0      (always reachable)
    level 2   300
    level 3   600
    level 4   1000
    level 5   1500
    level L   100 * L * (L + 1) / 2

Two ways a stat moves up:
  apply_xp   - XP is granted; the level follows the new total immediately.
  level_up   - the stored level lags behind its XP (imported or directly
               edited rows); the caller explicitly catches it up.

Everything here is pure and synchronous. Callers persist the results.
"""

from __future__ import annotations

from math import isqrt

from lifequest.errors import InconsistentProgressionEdit, NotReadyForLevelUp
from lifequest.models import LevelEvent, XpApplication, XpProgress

XP_STEP = 100
FAMILY_XP_PER_LEVEL = 100


def total_xp_for_level(level: int) -> int:
    """Cumulative XP required to reach ``level``."""
    if level <= 1:
        return 0
    return XP_STEP * level * (level + 1) // 2


def level_for_total_xp(total_xp: int) -> int:
    """Largest level whose threshold is <= total_xp."""
    if total_xp < 0:
        raise ValueError("Total XP cannot be negative")
    # threshold(L) <= T  <=>  L(L+1)/2 <= T // XP_STEP
    steps = total_xp // XP_STEP
    level = (isqrt(8 * steps + 1) - 1) // 2
    return max(1, level)


def _check_inputs(total_xp: int, level: int) -> None:
    if total_xp < 0:
        raise ValueError("Total XP cannot be negative")
    if level < 1:
        raise ValueError("Current level must be positive")


def _events(from_level: int, to_level: int) -> list[LevelEvent]:
    return [
        LevelEvent(level=lvl, xp_required=total_xp_for_level(lvl))
        for lvl in range(from_level + 1, to_level + 1)
    ]


def apply_xp(current_total_xp: int, current_level: int, xp_delta: int) -> XpApplication:
    """Apply an XP delta and report every level crossed.

    Totals are clamped at 0. A positive delta never lowers the level, even
    for rows whose stored level is ahead of their XP. A negative delta
    recomputes the level from the new total and emits no events.
    """
    _check_inputs(current_total_xp, current_level)

    new_total = max(0, current_total_xp + xp_delta)
    if xp_delta == 0:
        new_level = current_level
    elif xp_delta > 0:
        new_level = max(current_level, level_for_total_xp(new_total))
    else:
        new_level = level_for_total_xp(new_total)

    gained = max(0, new_level - current_level)
    return XpApplication(
        old_total_xp=current_total_xp,
        new_total_xp=new_total,
        old_level=current_level,
        new_level=new_level,
        leveled_up=gained > 0,
        levels_gained=gained,
        level_events=_events(current_level, new_level) if gained else [],
    )


def is_ready_to_level_up(total_xp: int, current_level: int) -> bool:
    if total_xp < 0 or current_level < 1:
        return False
    return total_xp >= total_xp_for_level(current_level + 1)


def level_up(total_xp: int, current_level: int) -> XpApplication:
    """Catch a lagging level up to its XP. Raises NotReadyForLevelUp otherwise."""
    _check_inputs(total_xp, current_level)
    if not is_ready_to_level_up(total_xp, current_level):
        raise NotReadyForLevelUp(total_xp, current_level, total_xp_for_level(current_level + 1))

    new_level = level_for_total_xp(total_xp)
    return XpApplication(
        old_total_xp=total_xp,
        new_total_xp=total_xp,
        old_level=current_level,
        new_level=new_level,
        leveled_up=True,
        levels_gained=new_level - current_level,
        level_events=_events(current_level, new_level),
    )


def current_level_xp(total_xp: int, level: int) -> int:
    return total_xp - total_xp_for_level(level)


def validate_progression(total_xp: int, current_level: int, current_xp: int | None = None) -> None:
    """Reject a directly edited (total XP, level[, current XP]) triple that doesn't fit the curve."""
    if total_xp < 0:
        raise InconsistentProgressionEdit("Total XP cannot be negative")
    if current_level < 1:
        raise InconsistentProgressionEdit("Current level must be positive")

    expected = level_for_total_xp(total_xp)
    if current_level > expected:
        raise InconsistentProgressionEdit(
            f"Total XP ({total_xp}) is too low for level {current_level}. "
            f"Minimum required: {total_xp_for_level(current_level)}"
        )
    if current_level < expected:
        raise InconsistentProgressionEdit(
            f"Total XP ({total_xp}) is too high for level {current_level}. "
            f"Should be level {expected}."
        )
    if current_xp is not None and current_xp != current_level_xp(total_xp, current_level):
        raise InconsistentProgressionEdit(
            f"Current XP ({current_xp}) does not match total XP ({total_xp}) "
            f"at level {current_level}. Expected {current_level_xp(total_xp, current_level)}."
        )


def xp_progress(total_xp: int, current_level: int) -> XpProgress:
    """Progress inside the current level, for display."""
    _check_inputs(total_xp, current_level)
    start = total_xp_for_level(current_level)
    end = total_xp_for_level(current_level + 1)
    span = end - start
    inside = max(0, total_xp - start)
    percent = round(inside / span * 100) if span else 100
    return XpProgress(
        current_level_xp=inside,
        xp_in_current_level=span,
        xp_to_next_level=max(0, end - total_xp),
        progress_percent=min(100, max(0, percent)),
        can_level_up=total_xp >= end,
    )


def level_requirements(max_level: int = 20) -> list[dict[str, int]]:
    """Threshold table for levels 1..max_level."""
    rows = []
    for level in range(1, max_level + 1):
        total = total_xp_for_level(level)
        rows.append({
            "level": level,
            "total_xp": total,
            "xp_to_reach": total - total_xp_for_level(level - 1),
        })
    return rows


def connection_level(connection_xp: int) -> int:
    """Family members level linearly: every 100 XP is one level."""
    return max(1, connection_xp // FAMILY_XP_PER_LEVEL + 1)
