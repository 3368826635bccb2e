from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import jwt
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from tubely.api.deps import AuthDependency
from tubely.core.config import Settings, get_settings
from tubely.media.tools import tool_versions

from .schemas import EnvCheckResponse


router = APIRouter(prefix="/admin", tags=["admin"])


class DevTokenRequest(BaseModel):
    user_id: UUID | None = Field(default=None, examples=["0f8fad5b-d9cb-469f-a165-70867728950e"])
    expires_in_s: int = Field(default=3600, ge=60, le=24 * 3600)


class DevTokenResponse(BaseModel):
    token: str
    user_id: UUID


@router.get("/env-check", response_model=EnvCheckResponse, summary="Validate ffmpeg toolchain")
async def env_check(context: AuthDependency, settings: Settings = Depends(get_settings)) -> EnvCheckResponse:
    results = await asyncio.to_thread(tool_versions, settings)
    return EnvCheckResponse(**results)


@router.post("/dev-token", response_model=DevTokenResponse, summary="Mint development JWT")
async def mint_dev_token(payload: DevTokenRequest, settings: Settings = Depends(get_settings)) -> DevTokenResponse:
    if settings.environment_lower not in {"development", "dev"}:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="dev_token_disabled")

    user_id = payload.user_id or uuid4()
    issued_at = datetime.now(timezone.utc)
    expires_at = issued_at + timedelta(seconds=payload.expires_in_s)
    claims: dict[str, object] = {
        "sub": str(user_id),
        "iat": int(issued_at.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    if settings.jwt_issuer:
        claims["iss"] = settings.jwt_issuer
    if settings.jwt_audience:
        claims["aud"] = settings.jwt_audience

    token = jwt.encode(claims, settings.secrets.jwt_secret, algorithm=settings.jwt_algorithm)
    return DevTokenResponse(token=token, user_id=user_id)


__all__ = ["router"]
