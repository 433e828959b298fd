"""Stage constants and transition logic for the transcode orchestrator.

Defines the ordered stages a transcode run moves through. Runs are never
persisted or resumed; the stage is tracked so failures and timings can be
attributed to the step that produced them.
"""

# Transcode stages in execution order
TRANSCODE_STAGES = {
    "locating": "Finding the current video in the store",
    "downloading": "Fetching the source video to scratch storage",
    "transcoding": "Re-encoding the audio track with ffmpeg",
    "publishing": "Uploading the result under the canonical key",
    "retiring": "Deleting the original video object",
    "complete": "Run finished successfully",
    "failed": "Run stopped at the first failing stage",
}

# Stage transitions for active steps
STAGE_TRANSITIONS = {
    "locating": "downloading",
    "downloading": "transcoding",
    "transcoding": "publishing",
    "publishing": "retiring",
    "retiring": "complete",
}


def next_stage(stage: str) -> str:
    """Return the stage that follows stage.

    Raises:
        ValueError: If stage is terminal or unknown
    """
    if stage not in STAGE_TRANSITIONS:
        raise ValueError(f"No transition from stage '{stage}'")
    return STAGE_TRANSITIONS[stage]
