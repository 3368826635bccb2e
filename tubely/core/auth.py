from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from tubely.services.errors import Unauthenticated

from .config import Settings, get_settings


security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    user_id: UUID


def validate_token(token: str, settings: Settings) -> UUID:
    """Decode a bearer token and return the user id carried in its subject."""
    try:
        payload = jwt.decode(
            token,
            settings.secrets.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"verify_aud": settings.jwt_audience is not None},
        )
    except jwt.PyJWTError as exc:
        raise Unauthenticated("Couldn't validate JWT") from exc

    subject = payload.get("sub")
    if not subject:
        raise Unauthenticated("Token has no subject")
    try:
        return UUID(str(subject))
    except ValueError as exc:
        raise Unauthenticated("Token subject is not a user id") from exc


async def get_auth_context(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_settings),
) -> AuthContext:
    if not credentials:
        raise Unauthenticated("Couldn't find JWT")

    context = AuthContext(user_id=validate_token(credentials.credentials, settings))
    request.state.auth = context
    return context


__all__ = ["AuthContext", "get_auth_context", "validate_token"]
