"""Task completion: mark the task done, then award XP to its stats.

The task row is written before any award is applied. Awards go through
ledger.apply_awards, so a broken target shows up in `failures` while the
completion itself still succeeds. Stats that level up get a title for each
new level (best effort, see titles.py).
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from lifequest.awards import DEFAULT_TASK_XP, resolve_awards
from lifequest.errors import UnknownOrUnauthorizedEntity
from lifequest.ledger import AppliedAward, AwardFailure, apply_awards
from lifequest.leveling import title_leveled_awards
from lifequest.llm import LLM
from lifequest.models import AdHocTask, Task, utcnow
from lifequest.storage import Storage

logger = logging.getLogger(__name__)

COMPLETION_STATUSES = ("completed", "skipped")


class CompletionResult(BaseModel):
    task: Task
    awards: list[AppliedAward] = Field(default_factory=list)
    failures: list[AwardFailure] = Field(default_factory=list)

    @property
    def total_xp_awarded(self) -> int:
        return sum(a.grant.xp_amount for a in self.awards)


def get_owned_task(storage: Storage, user_id: str, task_id: str) -> Task:
    task = storage.get_task(task_id)
    if task is None:
        raise UnknownOrUnauthorizedEntity("task", task_id)
    if task.user_id != user_id:
        raise UnknownOrUnauthorizedEntity("task", task_id, forbidden=True)
    return task


async def complete_task(
    storage: Storage,
    llm: LLM | None,
    user_id: str,
    task_id: str,
    status: str = "completed",
    feedback: str | None = None,
    default_xp: int = DEFAULT_TASK_XP,
    titles_enabled: bool = True,
) -> CompletionResult:
    if status not in COMPLETION_STATUSES:
        raise ValueError(f"Invalid completion status: {status}")
    task = get_owned_task(storage, user_id, task_id)
    if task.status != "pending":
        raise ValueError(f"Task is already {task.status}")

    task.status = status
    task.feedback = feedback
    if status == "completed":
        task.completed_at = utcnow()
    storage.save_task(task)

    focus_stats = {f.id: f.stat_id for f in storage.list_focuses(user_id)}
    adhoc_tasks: dict[str, AdHocTask] = {}
    if task.adhoc_task_id:
        adhoc = storage.get_adhoc_task(task.adhoc_task_id)
        if adhoc is not None and adhoc.user_id == user_id:
            adhoc_tasks[adhoc.id] = adhoc

    awards = resolve_awards(
        task, focus_stats=focus_stats, adhoc_tasks=adhoc_tasks, default_xp=default_xp,
    )
    report = apply_awards(
        storage, user_id, awards, "task", task.id, reason=f"Completed task: {task.title}",
    )
    if report.failures:
        logger.warning("Task %s: %d award(s) failed", task.id, len(report.failures))

    if titles_enabled:
        await title_leveled_awards(storage, llm, user_id, report.applied)

    return CompletionResult(task=task, awards=report.applied, failures=report.failures)

