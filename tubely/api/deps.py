from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tubely.core.auth import AuthContext, get_auth_context
from tubely.core.config import Settings, get_settings
from tubely.core.storage import ObjectPublisher
from tubely.media.tools import MediaTool
from tubely.media.tools import get_media_tool as build_media_tool
from tubely.services.ingest_service import VideoIngestService
from tubely.services.video_store import VideoStore


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    session_factory = request.app.state.session_factory
    if not isinstance(session_factory, async_sessionmaker):  # pragma: no cover - misconfigured app
        raise RuntimeError("session_factory_not_configured")
    async with session_factory() as session:
        yield session


def get_app_settings() -> Settings:
    return get_settings()


def get_publisher(request: Request) -> ObjectPublisher:
    publisher: ObjectPublisher = request.app.state.publisher
    return publisher


def get_media_tool(settings: Settings = Depends(get_app_settings)) -> MediaTool:
    return build_media_tool(settings)


def get_video_store(session: AsyncSession = Depends(get_session)) -> VideoStore:
    return VideoStore(session)


def get_ingest_service(
    settings: Settings = Depends(get_app_settings),
    media_tool: MediaTool = Depends(get_media_tool),
    publisher: ObjectPublisher = Depends(get_publisher),
    store: VideoStore = Depends(get_video_store),
) -> VideoIngestService:
    return VideoIngestService(settings, media_tool, publisher, store)


IngestServiceDependency = Annotated[VideoIngestService, Depends(get_ingest_service)]
VideoStoreDependency = Annotated[VideoStore, Depends(get_video_store)]
AuthDependency = Annotated[AuthContext, Depends(get_auth_context)]


__all__ = [
    "get_session",
    "get_app_settings",
    "get_publisher",
    "get_media_tool",
    "get_video_store",
    "get_ingest_service",
    "IngestServiceDependency",
    "VideoStoreDependency",
    "AuthDependency",
]
