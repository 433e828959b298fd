"""Transcode pipeline orchestrator.

Replaces the slot's current video with an audio-normalised MP4:
- Locate the video object in the store
- Download it to a scratch file
- Re-encode its audio with ffmpeg, copying the video stream
- Publish the result as video.mp4
- Retire the original object if it had a different key
- Remove scratch files on every exit path

Stages run strictly in sequence. The first failing stage ends the run and
is the one reported; retire and cleanup failures after a successful publish
are reported as warnings on an otherwise successful result.

The store is assumed to have a single writer: nothing prevents a concurrent
upload or second run from racing this one, and the last writer wins.
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Optional

from mediaslot.config import TranscodeConfig, settings
from mediaslot.errors import DeleteError, DownloadError, NotFoundError, PublishError, StoreError, TranscodeError
from mediaslot.orchestrator.state import TRANSCODE_STAGES, next_stage
from mediaslot.schemas.slot import (
    CANONICAL_CONTENT_TYPE,
    CANONICAL_KEY,
    VIDEO_PREFIX,
    StoredObject,
    TranscodeResult,
    find_slot_object,
    key_extension,
)
from mediaslot.services.object_store import ObjectStore, get_object_store
from mediaslot.services.scratch import ScratchSpace
from mediaslot.services.transcoder import FFmpegTranscoder

logger = logging.getLogger(__name__)


@dataclass
class TranscodeJob:
    """State of a single transcode run. Never persisted."""

    source_key: Optional[str] = None
    source_ext: Optional[str] = None
    input_path: Optional[Path] = None
    output_path: Optional[Path] = None
    target_key: str = CANONICAL_KEY
    stage: str = "locating"
    error: Optional[str] = None
    warnings: list[str] = field(default_factory=list)
    step_log: Dict[str, float] = field(default_factory=dict)


async def run_transcode(
    store: Optional[ObjectStore] = None,
    *,
    transcoder: Optional[FFmpegTranscoder] = None,
    scratch_dir: Optional[Path] = None,
    config: Optional[TranscodeConfig] = None,
    progress_callback: Optional[Callable[[str], None]] = None,
) -> TranscodeResult:
    """Run the transcode pipeline once against the slot's current video.

    Args:
        store: Object store; defaults to the configured singleton
        transcoder: ffmpeg invoker; defaults to one built from settings
        scratch_dir: Directory for scratch files; defaults to settings
        config: Transcode settings used for the download stage
        progress_callback: Optional callback for stage descriptions (e.g. CLI display)

    Returns:
        Successful TranscodeResult with key 'video.mp4' and any warnings

    Raises:
        NotFoundError: No video object in the store (no scratch files created)
        DownloadError: Source could not be fetched
        ProcessError: ffmpeg could not run or failed
        PublishError: Result could not be uploaded (original left in place)
        TranscodeError: Store listing failed
    """
    store = store or get_object_store()
    transcoder = transcoder or FFmpegTranscoder.from_settings()
    cfg = config or settings.transcode

    job = TranscodeJob()
    pipeline_start = time.monotonic()
    logger.info("Starting transcode run")

    scratch = ScratchSpace(scratch_dir)

    try:
        # Step 1: Locate
        step_start = _begin_stage(job, "locating", progress_callback)
        source = await _locate_video(store)
        job.source_key = source.key
        job.source_ext = key_extension(source.key)
        _end_stage(job, step_start)
        logger.info(f"Source video: {source.key} ({source.size} bytes)")

        async with scratch:
            # Step 2: Download into a fresh scratch file
            job.stage = next_stage(job.stage)
            step_start = _begin_stage(job, job.stage, progress_callback)
            try:
                job.input_path = scratch.allocate("input", job.source_ext)
                job.output_path = scratch.allocate("output", "mp4")
            except (OSError, ValueError) as e:
                raise DownloadError(f"Failed to prepare scratch files: {e}") from e
            await store.fetch_public(source.key, job.input_path, config=cfg)
            _end_stage(job, step_start)

            # Step 3: Transcode
            job.stage = next_stage(job.stage)
            step_start = _begin_stage(job, job.stage, progress_callback)
            await transcoder.transcode(job.input_path, job.output_path)
            _end_stage(job, step_start)

            # Step 4: Publish under the canonical key
            job.stage = next_stage(job.stage)
            step_start = _begin_stage(job, job.stage, progress_callback)
            try:
                await store.upload_file(job.output_path, job.target_key, CANONICAL_CONTENT_TYPE)
            except StoreError as e:
                raise PublishError(f"Failed to publish {job.target_key}", detail=str(e)) from e
            _end_stage(job, step_start)

            # Step 5: Retire the original; failure leaves a stray object only
            job.stage = next_stage(job.stage)
            if job.source_key != job.target_key:
                step_start = _begin_stage(job, job.stage, progress_callback)
                try:
                    await store.delete_object(job.source_key)
                except StoreError as e:
                    failure = DeleteError(
                        f"Published {job.target_key} but failed to delete {job.source_key}",
                        detail=str(e),
                    )
                    logger.warning(f"{failure.message}: {failure.detail}")
                    job.warnings.append(f"{failure.message}: {failure.detail}")
                _end_stage(job, step_start)

        # Cleanup problems never change the outcome, only surface as warnings
        job.warnings.extend(scratch.cleanup_errors)
        job.stage = next_stage(job.stage)

    except TranscodeError as e:
        failed_stage = job.stage
        job.stage = "failed"
        job.error = e.message
        logger.error(
            f"Transcode failed at {failed_stage}: {type(e).__name__}: {e.message}"
            + (f" ({e.detail[-500:]})" if e.detail else "")
        )
        raise

    finally:
        total = time.monotonic() - pipeline_start
        logger.info(f"Transcode run finished as {job.stage} in {total:.2f}s, steps: {job.step_log}")

    return TranscodeResult(success=True, key=job.target_key, warnings=job.warnings)


async def _locate_video(store: ObjectStore) -> StoredObject:
    """Find the slot's video object.

    Raises:
        NotFoundError: If no key starts with the video prefix
        TranscodeError: If the store cannot be listed
    """
    try:
        objects = await store.list_objects()
    except StoreError as e:
        raise TranscodeError("Failed to list stored objects", detail=str(e), stage="locating") from e

    source = find_slot_object(objects, VIDEO_PREFIX)
    if source is None:
        raise NotFoundError("No video found")
    return source


def _begin_stage(
    job: TranscodeJob, stage: str, progress_callback: Optional[Callable[[str], None]]
) -> float:
    job.stage = stage
    logger.info(f"Starting {stage} step")
    if progress_callback:
        progress_callback(f"{TRANSCODE_STAGES[stage]}...")
    return time.monotonic()


def _end_stage(job: TranscodeJob, step_start: float) -> None:
    step_duration = time.monotonic() - step_start
    job.step_log[job.stage] = step_duration
    logger.info(f"{job.stage.capitalize()} step completed in {step_duration:.2f}s")
