"""Task, ad-hoc task and daily generation endpoints."""

from datetime import date

from fastapi import APIRouter, Depends

from lifequest.awards import normalize_task_fields
from lifequest.completion import complete_task, get_owned_task
from lifequest.leveling import get_owned_stat
from lifequest.llm import LLM
from lifequest.models import AdHocTask, Task, User, utcnow
from lifequest.scheduling import generate_daily_tasks
from lifequest.storage import Storage

from .deps import current_user, get_llm, get_settings, get_storage
from .models import CompleteTask, CreateAdHocTask, CreateTask, GenerateTasks

router = APIRouter()


# ── Ad-hoc definitions ───────────────────────────────────


@router.get("/adhoc-tasks")
async def list_adhoc_tasks(user: User = Depends(current_user), storage: Storage = Depends(get_storage)):
    return storage.list_adhoc_tasks(user.id)


@router.post("/adhoc-tasks", status_code=201)
async def create_adhoc_task(
    body: CreateAdHocTask, user: User = Depends(current_user), storage: Storage = Depends(get_storage),
):
    """Define a one-off task with its own XP and spawn a pending task for it."""
    get_owned_stat(storage, user.id, body.stat_id)
    adhoc = storage.save_adhoc_task(AdHocTask(user_id=user.id, **body.model_dump()))
    task = storage.save_task(Task(
        user_id=user.id,
        title=adhoc.title,
        description=adhoc.description,
        source="ad-hoc",
        estimated_xp=adhoc.custom_xp,
        stat_id=adhoc.stat_id,
        adhoc_task_id=adhoc.id,
        task_date=utcnow().date(),
    ))
    return {"adhoc_task": adhoc, "task": task}


# ── Tasks ────────────────────────────────────────────────


@router.get("/tasks")
async def list_tasks(
    task_date: date | None = None,
    source: str | None = None,
    status: str | None = None,
    user: User = Depends(current_user),
    storage: Storage = Depends(get_storage),
):
    """List tasks, optionally filtered by date, source or status."""
    return storage.list_tasks(user.id, task_date=task_date, source=source, status=status)


@router.post("/tasks", status_code=201)
async def create_task(
    body: CreateTask, user: User = Depends(current_user), storage: Storage = Depends(get_storage),
):
    """Create a task. Todo tasks are stored without XP or stat links."""
    if body.source == "ad-hoc":
        raise ValueError("Ad-hoc tasks are created through /adhoc-tasks")
    estimated_xp, linked, stat_id = normalize_task_fields(
        body.source, body.estimated_xp, body.linked_stat_ids, body.stat_id,
    )
    for sid in linked:
        get_owned_stat(storage, user.id, sid)
    focus_id = body.focus_id if body.source != "todo" else None
    task = Task(
        user_id=user.id,
        title=body.title,
        description=body.description,
        source=body.source,
        estimated_xp=estimated_xp,
        linked_stat_ids=linked,
        stat_id=stat_id,
        focus_id=focus_id,
        family_member_id=body.family_member_id,
        task_date=body.task_date or utcnow().date(),
    )
    return storage.save_task(task)


@router.post("/tasks/generate", status_code=201)
async def generate_tasks(
    body: GenerateTasks | None = None,
    user: User = Depends(current_user),
    storage: Storage = Depends(get_storage),
    llm: LLM | None = Depends(get_llm),
):
    """Generate today's personal and family tasks for the current user."""
    body = body or GenerateTasks()
    return await generate_daily_tasks(storage, llm, user.id, body.for_date, force=body.force)


@router.get("/tasks/{task_id}")
async def get_task(
    task_id: str, user: User = Depends(current_user), storage: Storage = Depends(get_storage),
):
    return get_owned_task(storage, user.id, task_id)


@router.delete("/tasks/{task_id}")
async def delete_task(
    task_id: str, user: User = Depends(current_user), storage: Storage = Depends(get_storage),
):
    task = get_owned_task(storage, user.id, task_id)
    storage.delete_task(task.id)
    return {"ok": True}


@router.post("/tasks/{task_id}/complete")
async def post_complete_task(
    task_id: str,
    body: CompleteTask | None = None,
    user: User = Depends(current_user),
    storage: Storage = Depends(get_storage),
    llm: LLM | None = Depends(get_llm),
    settings: dict = Depends(get_settings),
):
    """Complete or skip a task. Completed tasks award XP to their stats."""
    body = body or CompleteTask()
    result = await complete_task(
        storage, llm, user.id, task_id,
        status=body.status,
        feedback=body.feedback,
        default_xp=settings["default_task_xp"],
        titles_enabled=settings["level_titles_enabled"],
    )
    return {
        "task": result.task,
        "awards": result.awards,
        "failures": result.failures,
        "total_xp_awarded": result.total_xp_awarded,
    }
