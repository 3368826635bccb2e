"""Error taxonomy shared by the upload pipeline and the HTTP layer.

Every error carries the HTTP status it maps to and a stable machine-readable
code. Callers chain the originating exception (``raise X(...) from exc``) so the
cause survives for logging while the client only sees ``code`` and ``message``.
"""

from __future__ import annotations


class TubelyError(Exception):
    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "Internal error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


IngestionError = TubelyError


class InvalidID(TubelyError):
    status_code = 400
    code = "invalid_id"
    default_message = "Invalid ID"


class VideoNotFound(TubelyError):
    status_code = 404
    code = "video_not_found"
    default_message = "Couldn't find video"


class Unauthenticated(TubelyError):
    status_code = 401
    code = "unauthenticated"
    default_message = "Couldn't validate bearer token"


class UnsupportedMediaType(TubelyError):
    status_code = 400
    code = "unsupported_media_type"
    default_message = "Bad file type"


class InvalidUpload(TubelyError):
    status_code = 400
    code = "invalid_upload"
    default_message = "Unable to parse form file"


class UploadTooLarge(TubelyError):
    status_code = 413
    code = "upload_too_large"
    default_message = "Upload exceeds the configured size limit"


class StagingFailed(TubelyError):
    code = "staging_failed"
    default_message = "File save error"


class ProbeFailed(TubelyError):
    code = "probe_failed"
    default_message = "File information error"


class NormalizeFailed(TubelyError):
    code = "normalize_failed"
    default_message = "File convert error"


class NotAuthorized(TubelyError):
    status_code = 401
    code = "not_authorized"
    default_message = "Unauthorized"


class PublishFailed(TubelyError):
    code = "publish_failed"
    default_message = "Object storage upload error"


class PersistFailed(TubelyError):
    code = "persist_failed"
    default_message = "Database error"


__all__ = [
    "TubelyError",
    "IngestionError",
    "InvalidID",
    "VideoNotFound",
    "Unauthenticated",
    "UnsupportedMediaType",
    "InvalidUpload",
    "UploadTooLarge",
    "StagingFailed",
    "ProbeFailed",
    "NormalizeFailed",
    "NotAuthorized",
    "PublishFailed",
    "PersistFailed",
]
