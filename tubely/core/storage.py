from __future__ import annotations

import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, BinaryIO

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from tubely.services.errors import PublishFailed

from .config import Settings
from .logging import get_logger


class ObjectStore(ABC):
    @abstractmethod
    def put_object(self, key: str, body: BinaryIO, *, content_type: str) -> None: ...


class LocalObjectStore(ObjectStore):
    """Filesystem-backed object store suitable for development."""

    def __init__(self, base_path: Path):
        self.base_path = base_path.resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _resolve(self, key: str) -> Path:
        target = (self.base_path / key).resolve()
        if not target.is_relative_to(self.base_path):
            raise ValueError(f"Object key escapes the storage root: {key}")
        return target

    def put_object(self, key: str, body: BinaryIO, *, content_type: str) -> None:
        target = self._resolve(key)
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("wb") as handle:
            shutil.copyfileobj(body, handle)


class S3ObjectStore(ObjectStore):
    """S3 object store; ``upload_fileobj`` streams large bodies as multipart."""

    def __init__(self, bucket: str, client: Any):
        self.bucket = bucket
        self.client = client

    def put_object(self, key: str, body: BinaryIO, *, content_type: str) -> None:
        self.client.upload_fileobj(body, self.bucket, key, ExtraArgs={"ContentType": content_type})


class ObjectPublisher:
    """Stores objects and derives their public URL from a configured base."""

    def __init__(self, store: ObjectStore, public_base_url: str):
        self.store = store
        self.public_base_url = public_base_url
        self.logger = get_logger(component="object_publisher")

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url.rstrip('/')}/{key.lstrip('/')}"

    def publish(self, key: str, content_type: str, body: BinaryIO) -> str:
        try:
            self.store.put_object(key, body, content_type=content_type)
        except (BotoCoreError, ClientError, OSError, ValueError) as exc:
            self.logger.error("object_publish_failed", key=key, error=str(exc))
            raise PublishFailed() from exc
        url = self.public_url(key)
        self.logger.info("object_published", key=key, content_type=content_type, url=url)
        return url


def build_s3_client(settings: Settings) -> Any:
    return boto3.client("s3", region_name=settings.s3_region, endpoint_url=settings.s3_endpoint_url)


def get_object_store(settings: Settings) -> ObjectStore:
    if settings.storage_backend == "local":
        return LocalObjectStore(base_path=Path(settings.assets_root))
    if settings.storage_backend == "s3":
        if not settings.s3_bucket:
            raise ValueError("TUBELY_S3_BUCKET is required for the s3 storage backend.")
        return S3ObjectStore(settings.s3_bucket, build_s3_client(settings))
    raise ValueError(f"Unsupported storage backend: {settings.storage_backend}")


def get_publisher(settings: Settings) -> ObjectPublisher:
    return ObjectPublisher(get_object_store(settings), settings.public_asset_base)


__all__ = [
    "ObjectStore",
    "LocalObjectStore",
    "S3ObjectStore",
    "ObjectPublisher",
    "build_s3_client",
    "get_object_store",
    "get_publisher",
]
