"""Request dependencies: storage, LLM, settings and the authenticated user."""

import logging

from fastapi import Depends, Header, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from lifequest.auth import AuthError, TokenAuth
from lifequest.llm import LLM, llm_from_config
from lifequest.models import User
from lifequest.storage import Storage

logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)


def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def get_auth(request: Request) -> TokenAuth:
    return request.app.state.auth


def get_settings(storage: Storage = Depends(get_storage)) -> dict:
    return storage.get_config()


def get_llm(request: Request, settings: dict = Depends(get_settings)) -> LLM | None:
    """The injected LLM if there is one, otherwise one built from current settings.

    A broken connection config yields None: titles fall back to the static
    tables and XP writes go through regardless.
    """
    if request.app.state.llm is not None:
        return request.app.state.llm
    try:
        return llm_from_config(settings["llm_connection"])
    except ValueError as e:
        logger.warning("Ignoring LLM connection settings: %s", e)
        return None


def current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    auth: TokenAuth = Depends(get_auth),
    storage: Storage = Depends(get_storage),
) -> User:
    if credentials is None:
        raise AuthError("Missing bearer token")
    claims = auth.verify(credentials.credentials)
    user = storage.get_user(claims.user_id)
    if user is None:
        raise AuthError("Unknown user")
    return user


def require_scheduler_secret(
    request: Request, x_scheduler_secret: str | None = Header(default=None),
) -> None:
    expected = request.app.state.scheduler_secret
    if not expected or x_scheduler_secret != expected:
        raise HTTPException(401, "Invalid scheduler secret")
