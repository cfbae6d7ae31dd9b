"""Batch task generation, triggered by an external scheduler."""

from fastapi import APIRouter, Depends

from lifequest.llm import LLM
from lifequest.scheduling import generate_for_all_users
from lifequest.storage import Storage

from .deps import get_llm, get_storage, require_scheduler_secret
from .models import GenerateTasks

router = APIRouter()


@router.post("/scheduled/generate", dependencies=[Depends(require_scheduler_secret)])
async def scheduled_generate(
    body: GenerateTasks | None = None,
    storage: Storage = Depends(get_storage),
    llm: LLM | None = Depends(get_llm),
):
    """Generate daily tasks for every eligible user. Needs X-Scheduler-Secret."""
    body = body or GenerateTasks()
    return await generate_for_all_users(storage, llm, force=body.force, today=body.for_date)
