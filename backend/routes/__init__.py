"""FastAPI API endpoints under /api.

Endpoint groups: health/settings/levels, users and characters, stats
(CRUD, progression, manual XP, level-up), tasks and ad-hoc tasks, focuses
and family, journals and the XP ledger, scheduled generation. Every route
except /health, POST /users and /scheduled/generate needs a bearer token.
"""

from fastapi import APIRouter

from .family import router as family_router
from .journals import router as journals_router
from .scheduled import router as scheduled_router
from .settings import router as settings_router
from .stats import router as stats_router
from .tasks import router as tasks_router
from .users import router as users_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(users_router)
router.include_router(stats_router)
router.include_router(tasks_router)
router.include_router(family_router)
router.include_router(journals_router)
router.include_router(scheduled_router)
