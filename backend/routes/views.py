"""Response shaping shared by several route modules."""

from typing import Any

from lifequest.models import Stat
from lifequest.progression import xp_progress


def stat_view(stat: Stat) -> dict[str, Any]:
    """Stat row plus its in-level progress, as the dashboard renders it."""
    data = stat.model_dump(mode="json")
    data["progress"] = xp_progress(stat.total_xp, stat.current_level).model_dump()
    return data
