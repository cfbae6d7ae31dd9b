import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backend.routes import router
from lifequest.auth import AuthError, TokenAuth
from lifequest.errors import DuplicateEntity, ProgressionError, UnknownOrUnauthorizedEntity
from lifequest.llm import LLM, LLMError
from lifequest.storage import Storage

load_dotenv(Path(__file__).parent.parent / ".env")

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"
DEV_JWT_SECRET = "lifequest-dev-secret"


def _error(status: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status, content={"detail": str(exc)})


def _install_error_handlers(app: FastAPI) -> None:
    """Map domain exceptions to HTTP status codes."""

    @app.exception_handler(UnknownOrUnauthorizedEntity)
    async def unknown_entity(request: Request, exc: UnknownOrUnauthorizedEntity):
        return _error(403 if exc.forbidden else 404, exc)

    @app.exception_handler(ProgressionError)
    async def progression_error(request: Request, exc: ProgressionError):
        return _error(400, exc)

    @app.exception_handler(DuplicateEntity)
    async def duplicate(request: Request, exc: DuplicateEntity):
        return _error(409, exc)

    @app.exception_handler(ValueError)
    async def bad_value(request: Request, exc: ValueError):
        return _error(400, exc)

    @app.exception_handler(AuthError)
    async def unauthorized(request: Request, exc: AuthError):
        return JSONResponse(
            status_code=401, content={"detail": str(exc)}, headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(LLMError)
    async def llm_unavailable(request: Request, exc: LLMError):
        logger.warning("LLM failure on %s: %s", request.url.path, exc)
        return _error(503, exc)


def create_app(
    data_dir: Path | None = None,
    llm: LLM | None = None,
    auth: TokenAuth | None = None,
    scheduler_secret: str | None = None,
) -> FastAPI:
    """Build the app. Collaborators are created once here and kept on app.state.

    `llm` overrides the connection from config.json (tests pass a stub).
    """
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))

    app = FastAPI(title="LifeQuest")
    app.state.storage = Storage(resolved)
    app.state.llm = llm
    app.state.auth = auth or TokenAuth(
        os.getenv("JWT_SECRET", DEV_JWT_SECRET),
        float(os.getenv("JWT_EXPIRES_HOURS", "168")),
    )
    app.state.scheduler_secret = scheduler_secret or os.getenv("SCHEDULER_SECRET", "")

    _install_error_handlers(app)
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()
