from __future__ import annotations

import asyncio
import tempfile
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Iterator, Optional, Protocol

from tubely.core.logging import get_logger
from tubely.services.errors import StagingFailed, UploadTooLarge

DEFAULT_CHUNK_SIZE = 1024 * 1024
STAGING_PREFIX = "tubely-upload-"

logger = get_logger(component="staging")


class AsyncReadable(Protocol):
    async def read(self, size: int = -1) -> bytes: ...


@dataclass(frozen=True, slots=True)
class StagedFile:
    path: Path
    size_bytes: int


@asynccontextmanager
async def staged_upload(
    stream: AsyncReadable,
    *,
    staging_dir: Optional[Path],
    max_bytes: int,
    suffix: str = ".mp4",
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> AsyncIterator[StagedFile]:
    """Copy ``stream`` into a uniquely named local file and remove it on exit.

    The copy is chunked and aborts as soon as more than ``max_bytes`` have been
    read, so an oversized upload is never held in memory or fully written.

    Raises:
        UploadTooLarge: The stream is longer than ``max_bytes``.
        StagingFailed: The staging file could not be created or written.
    """
    path: Optional[Path] = None
    try:
        try:
            path = await asyncio.to_thread(_create_staging_file, staging_dir, suffix)
        except OSError as exc:
            raise StagingFailed("File create error") from exc
        logger.info("staging_file_created", path=str(path))

        size_bytes = await _copy_stream(stream, path, max_bytes=max_bytes, chunk_size=chunk_size)
        logger.info("staging_file_written", path=str(path), size_bytes=size_bytes)
        yield StagedFile(path=path, size_bytes=size_bytes)
    finally:
        if path is not None:
            await asyncio.to_thread(_remove, path)


@contextmanager
def scoped_file(path: Path) -> Iterator[Path]:
    """Yield ``path`` and delete it when the block exits, however it exits."""
    try:
        yield path
    finally:
        _remove(path)


def _create_staging_file(staging_dir: Optional[Path], suffix: str) -> Path:
    if staging_dir is not None:
        staging_dir.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        delete=False,
        prefix=STAGING_PREFIX,
        suffix=suffix,
        dir=str(staging_dir) if staging_dir is not None else None,
    ) as handle:
        return Path(handle.name)


async def _copy_stream(stream: AsyncReadable, target: Path, *, max_bytes: int, chunk_size: int) -> int:
    written = 0
    try:
        handle = await asyncio.to_thread(target.open, "wb")
        try:
            while True:
                chunk = await stream.read(chunk_size)
                if not chunk:
                    break
                written += len(chunk)
                if written > max_bytes:
                    raise UploadTooLarge(f"Upload exceeds {max_bytes} bytes")
                await asyncio.to_thread(handle.write, chunk)
        finally:
            await asyncio.to_thread(handle.close)
    except OSError as exc:
        raise StagingFailed("File save error") from exc
    return written


def _remove(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
        logger.info("staging_file_removed", path=str(path))
    except OSError as cleanup_error:
        logger.warning("staging_file_cleanup_failed", path=str(path), error=str(cleanup_error))


__all__ = ["AsyncReadable", "StagedFile", "staged_upload", "scoped_file", "DEFAULT_CHUNK_SIZE", "STAGING_PREFIX"]
