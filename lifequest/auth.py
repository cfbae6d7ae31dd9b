"""Bearer-token issuing and verification (HS256 JWT).

One TokenAuth is built at startup from JWT_SECRET / JWT_EXPIRES_HOURS and
handed to the app; nothing here reads the environment.
"""

from __future__ import annotations

from datetime import timedelta

import jwt
from pydantic import BaseModel

from lifequest.models import utcnow

ALGORITHM = "HS256"


class AuthError(Exception):
    """Missing, malformed, expired or otherwise invalid token."""


class TokenClaims(BaseModel):
    user_id: str
    email: str


class TokenAuth:
    def __init__(self, secret: str, expires_hours: float = 24 * 7) -> None:
        if not secret:
            raise ValueError("JWT secret must not be empty")
        self._secret = secret
        self._ttl = timedelta(hours=expires_hours)

    def issue(self, user_id: str, email: str) -> str:
        now = utcnow()
        payload = {
            "sub": user_id,
            "email": email,
            "iat": now,
            "exp": now + self._ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> TokenClaims:
        try:
            payload = jwt.decode(
                token, self._secret, algorithms=[ALGORITHM], options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise AuthError("Token has expired") from e
        except jwt.InvalidTokenError as e:
            raise AuthError(f"Invalid token: {e}") from e
        return TokenClaims(user_id=payload["sub"], email=payload.get("email", ""))
