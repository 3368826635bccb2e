from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException

from tubely.api import deps
from tubely.services.errors import InvalidID, InvalidUpload, VideoNotFound
from tubely.services.ingest_service import UploadRequest

from . import schemas


router = APIRouter(prefix="/videos", tags=["videos"])

_ERROR_RESPONSES = {
    400: {"model": schemas.ErrorResponse},
    401: {"model": schemas.ErrorResponse},
    404: {"model": schemas.ErrorResponse},
    413: {"model": schemas.ErrorResponse},
    500: {"model": schemas.ErrorResponse},
}

# The form is read inside the handler so the id and token are checked before any body bytes are consumed.
_VIDEO_UPLOAD_BODY = {
    "requestBody": {
        "required": True,
        "content": {
            "multipart/form-data": {
                "schema": {
                    "type": "object",
                    "required": ["video"],
                    "properties": {"video": {"type": "string", "format": "binary"}},
                }
            }
        },
    }
}


def parse_video_id(video_id: str) -> UUID:
    try:
        return UUID(video_id)
    except ValueError as exc:
        raise InvalidID() from exc


VideoIdDependency = Annotated[UUID, Depends(parse_video_id)]


@router.post("", response_model=schemas.VideoResponse, status_code=status.HTTP_201_CREATED)
async def create_video(
    payload: schemas.VideoCreateRequest,
    store: deps.VideoStoreDependency,
    context: deps.AuthDependency,
) -> schemas.VideoResponse:
    record = await store.create_video(user_id=context.user_id, title=payload.title, description=payload.description)
    return schemas.VideoResponse.from_record(record)


@router.get("", response_model=list[schemas.VideoResponse])
async def list_videos(store: deps.VideoStoreDependency, context: deps.AuthDependency) -> list[schemas.VideoResponse]:
    return [schemas.VideoResponse.from_record(record) for record in await store.list_videos(context.user_id)]


@router.get("/{video_id}", response_model=schemas.VideoResponse, responses=_ERROR_RESPONSES)
async def get_video(video_id: VideoIdDependency, store: deps.VideoStoreDependency) -> schemas.VideoResponse:
    record = await store.get_video(video_id)
    if record is None:
        raise VideoNotFound()
    return schemas.VideoResponse.from_record(record)


@router.post(
    "/{video_id}/video",
    response_model=schemas.VideoResponse,
    responses=_ERROR_RESPONSES,
    openapi_extra=_VIDEO_UPLOAD_BODY,
)
async def upload_video(
    request: Request,
    video_id: VideoIdDependency,
    context: deps.AuthDependency,
    service: deps.IngestServiceDependency,
) -> schemas.VideoResponse:
    """Store a new MP4 for an existing video and point the record at it."""
    try:
        form = await request.form()
    except StarletteHTTPException as exc:
        raise InvalidUpload() from exc

    try:
        video = form.get("video")
        if not isinstance(video, UploadFile):
            raise InvalidUpload()
        result = await service.ingest(
            UploadRequest(
                video_id=video_id,
                owner_id=context.user_id,
                stream=video,
                content_type=video.content_type,
            )
        )
    finally:
        await form.close()
    return schemas.VideoResponse.from_record(result.video)


__all__ = ["router", "parse_video_id"]
