"""API route handlers for the media slot."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from mediaslot import __version__
from mediaslot.config import settings
from mediaslot.errors import StoreError, TranscodeError
from mediaslot.orchestrator.pipeline import run_transcode
from mediaslot.schemas.slot import (
    SLOT_CATEGORIES,
    SUBTITLE_PREFIX,
    VIDEO_PREFIX,
    SlotObject,
    SlotView,
    TranscodeResult,
    UploadUrlRequest,
    UploadUrlResponse,
    find_slot_object,
    slot_key,
)
from mediaslot.services.object_store import ObjectStore, get_object_store
from mediaslot.services.transcoder import FFmpegTranscoder

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def get_transcoder() -> FFmpegTranscoder:
    """Dependency: ffmpeg invoker built from current settings."""
    return FFmpegTranscoder.from_settings()


# ============================================================================
# Endpoint Handlers
# ============================================================================

@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": __version__,
    }


@router.get(
    "/video",
    response_model=SlotView,
    response_model_by_alias=True,
    response_model_exclude_unset=True,
)
async def get_video(store: ObjectStore = Depends(get_object_store)):
    """Describe the video (and subtitle) currently in the slot.

    Returns {"video": null} when no video has been uploaded. The subtitle
    entry carries only key and url.
    """
    try:
        objects = await store.list_objects()
    except StoreError as e:
        logger.error(f"Error listing video: {e}")
        raise HTTPException(status_code=500, detail="Failed to get video info")

    video = find_slot_object(objects, VIDEO_PREFIX)
    if video is None:
        return SlotView(video=None)

    subtitle = find_slot_object(objects, SUBTITLE_PREFIX)
    return SlotView(
        video=SlotObject(
            key=video.key,
            url=store.public_url(video.key),
            size=video.size,
            last_modified=video.last_modified,
        ),
        subtitle=SlotObject(key=subtitle.key, url=store.public_url(subtitle.key))
        if subtitle
        else None,
    )


@router.post("/upload-url", response_model=UploadUrlResponse, response_model_by_alias=True)
async def create_upload_url(
    request: UploadUrlRequest,
    store: ObjectStore = Depends(get_object_store),
):
    """Issue a presigned PUT URL for a direct upload into the slot.

    The object key is fixed by category: video.<ext> or subtitle.<ext>.
    """
    if not request.file_name or not request.file_type or not request.category:
        raise HTTPException(status_code=400, detail="Missing fileName, fileType, or category")

    if request.category not in SLOT_CATEGORIES:
        raise HTTPException(status_code=400, detail='Category must be "video" or "subtitle"')

    key = slot_key(request.category, request.file_name)

    try:
        upload_url = await store.presigned_upload_url(
            key, request.file_type, expires_in=settings.storage.upload_url_expiry
        )
    except StoreError as e:
        logger.error(f"Error generating upload URL: {e}")
        raise HTTPException(status_code=500, detail="Failed to generate upload URL")

    return UploadUrlResponse(upload_url=upload_url, key=key)


@router.delete("/video")
async def delete_video(store: ObjectStore = Depends(get_object_store)):
    """Delete every video and subtitle object from the bucket."""
    try:
        await store.delete_all()
    except StoreError as e:
        logger.error(f"Error deleting files: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete files")

    return {"message": "All files deleted"}


@router.post("/transcode", response_model=TranscodeResult)
async def transcode_video(
    store: ObjectStore = Depends(get_object_store),
    transcoder: FFmpegTranscoder = Depends(get_transcoder),
):
    """Replace the current video with an audio re-encoded video.mp4.

    Blocks until the pipeline finishes. Responds 404 when no video is
    present and 500 for any other stage failure.
    """
    try:
        return await run_transcode(store, transcoder=transcoder)
    except TranscodeError as e:
        body = TranscodeResult(success=False, error=e.message)
        return JSONResponse(status_code=e.status_code, content=body.model_dump(exclude_none=True))
