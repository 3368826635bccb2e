from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from tubely.core.config import Settings
from tubely.core.logging import get_logger
from tubely.core.storage import ObjectPublisher
from tubely.media import (
    MediaTool,
    ProbeResult,
    extension_for,
    generate_key,
    scoped_file,
    staged_upload,
)
from tubely.media.staging import AsyncReadable

from .errors import (
    NormalizeFailed,
    NotAuthorized,
    PersistFailed,
    ProbeFailed,
    PublishFailed,
    TubelyError,
    UnsupportedMediaType,
)
from .video_store import VideoRecord, VideoStore


@dataclass(frozen=True, slots=True)
class UploadRequest:
    video_id: UUID
    owner_id: UUID
    stream: AsyncReadable
    content_type: Optional[str]


@dataclass(frozen=True, slots=True)
class PublishedAsset:
    storage_key: str
    public_url: str


@dataclass(frozen=True, slots=True)
class IngestResult:
    asset: PublishedAsset
    video: VideoRecord


def parse_media_type(value: Optional[str]) -> Optional[str]:
    """Return the bare ``type/subtype`` of a Content-Type header, lower-cased."""
    if not value:
        return None
    media_type = value.split(";", 1)[0].strip().lower()
    if media_type.count("/") != 1 or media_type.startswith("/") or media_type.endswith("/"):
        return None
    return media_type


class VideoIngestService:
    """Stage, probe, normalise and publish an uploaded video, then record its URL.

    Temporary files are registered on a single exit stack so they are removed
    whichever step fails. The object is published before the metadata record
    is written, so no reader sees a URL that does not resolve yet.
    """

    def __init__(self, settings: Settings, media_tool: MediaTool, publisher: ObjectPublisher, store: VideoStore):
        self.settings = settings
        self.media_tool = media_tool
        self.publisher = publisher
        self.store = store
        self.logger = get_logger(component="ingest_service")

    async def ingest(self, upload: UploadRequest) -> IngestResult:
        logger = self.logger.bind(video_id=str(upload.video_id), user_id=str(upload.owner_id))

        media_type = parse_media_type(upload.content_type)
        if media_type != self.settings.accepted_video_type:
            logger.info("ingest_rejected_media_type", declared=upload.content_type)
            raise UnsupportedMediaType()

        async with AsyncExitStack() as stack:
            staged = await stack.enter_async_context(
                staged_upload(
                    upload.stream,
                    staging_dir=self.settings.staging_dir,
                    max_bytes=self.settings.max_video_upload_bytes,
                    suffix=f".{extension_for(media_type)}",
                )
            )
            logger.info("ingest_staged", size_bytes=staged.size_bytes)

            probe = await self._probe(staged.path)
            logger.info(
                "ingest_probe_complete",
                width=probe.width,
                height=probe.height,
                orientation=probe.orientation.value,
                codec=probe.codec_name,
            )

            normalized_path = stack.enter_context(scoped_file(await self._normalize(staged.path)))
            logger.info("ingest_normalized", path=str(normalized_path))

            record = await self._load_record(upload.video_id)

            key = generate_key(probe.orientation, extension_for(media_type))
            try:
                body = stack.enter_context(normalized_path.open("rb"))
            except OSError as exc:
                raise NormalizeFailed("File convert read error") from exc
            public_url = await self._publish(key, media_type, body)

            updated = await self._persist(record.with_video_url(public_url))

        logger.info("ingest_complete", storage_key=key, video_url=public_url)
        return IngestResult(asset=PublishedAsset(storage_key=key, public_url=public_url), video=updated)

    async def _probe(self, path: Path) -> ProbeResult:
        try:
            return await asyncio.to_thread(self.media_tool.probe, path)
        except TubelyError:
            raise
        except Exception as exc:
            raise ProbeFailed() from exc

    async def _normalize(self, path: Path) -> Path:
        try:
            return await asyncio.to_thread(self.media_tool.normalize, path)
        except TubelyError:
            raise
        except Exception as exc:
            raise NormalizeFailed() from exc

    async def _load_record(self, video_id: UUID) -> VideoRecord:
        # A failed lookup and a missing record are reported the same way.
        try:
            record = await self.store.get_video(video_id)
        except SQLAlchemyError as exc:
            raise NotAuthorized() from exc
        if record is None:
            raise NotAuthorized()
        return record

    async def _publish(self, key: str, media_type: str, body) -> str:
        try:
            return await asyncio.to_thread(self.publisher.publish, key, media_type, body)
        except TubelyError:
            raise
        except Exception as exc:
            raise PublishFailed() from exc

    async def _persist(self, record: VideoRecord) -> VideoRecord:
        try:
            return await self.store.update_video(record)
        except (SQLAlchemyError, LookupError) as exc:
            raise PersistFailed() from exc


__all__ = [
    "UploadRequest",
    "PublishedAsset",
    "IngestResult",
    "VideoIngestService",
    "parse_media_type",
]
