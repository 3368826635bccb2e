from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tubely.core.logging import get_logger
from tubely.db.models import Video


@dataclass(frozen=True, slots=True)
class VideoRecord:
    """Snapshot of a row in the ``videos`` table."""

    id: UUID
    user_id: UUID
    title: str
    description: str | None = None
    thumbnail_url: str | None = None
    video_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def with_video_url(self, url: str) -> "VideoRecord":
        return replace(self, video_url=url)

    @classmethod
    def from_row(cls, row: Video) -> "VideoRecord":
        return cls(
            id=UUID(row.id),
            user_id=UUID(row.user_id),
            title=row.title,
            description=row.description,
            thumbnail_url=row.thumbnail_url,
            video_url=row.video_url,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


class VideoStore:
    """Video metadata persistence backed by the async SQLAlchemy session."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.logger = get_logger(component="video_store")

    async def get_video(self, video_id: UUID) -> VideoRecord | None:
        row = await self.session.get(Video, str(video_id))
        if row is None:
            return None
        return VideoRecord.from_row(row)

    async def list_videos(self, user_id: UUID) -> list[VideoRecord]:
        stmt = select(Video).where(Video.user_id == str(user_id)).order_by(Video.created_at.desc())
        rows = (await self.session.execute(stmt)).scalars().all()
        return [VideoRecord.from_row(row) for row in rows]

    async def create_video(self, *, user_id: UUID, title: str, description: str | None) -> VideoRecord:
        row = Video(id=str(uuid4()), user_id=str(user_id), title=title, description=description)
        self.session.add(row)
        await self.session.commit()
        await self.session.refresh(row)
        self.logger.info("video_created", video_id=row.id, user_id=row.user_id)
        return VideoRecord.from_row(row)

    async def update_video(self, record: VideoRecord) -> VideoRecord:
        """Write every mutable field of ``record``; the last writer wins."""
        row = await self.session.get(Video, str(record.id))
        if row is None:
            raise LookupError(str(record.id))
        row.title = record.title
        row.description = record.description
        row.thumbnail_url = record.thumbnail_url
        row.video_url = record.video_url
        try:
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        await self.session.refresh(row)
        return VideoRecord.from_row(row)


__all__ = ["VideoRecord", "VideoStore"]
