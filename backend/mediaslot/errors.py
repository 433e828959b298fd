"""Transcode pipeline errors.

Every stage failure of a transcode run is a TranscodeError subclass. Each
carries the stage it was raised in and the HTTP-equivalent status the API
reports for it. Only the first failure of a run is ever reported.
"""

from typing import Optional


class TranscodeError(Exception):
    """Base exception for transcode pipeline failures."""

    status_code: int = 500
    stage: str = "unknown"

    def __init__(
        self,
        message: str,
        detail: Optional[str] = None,
        stage: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.detail = detail
        if stage is not None:
            self.stage = stage


class NotFoundError(TranscodeError):
    """No video object is present in the slot."""

    status_code = 404
    stage = "locating"


class DownloadError(TranscodeError):
    """Fetching the source video failed.

    Raised for network errors, non-2xx responses, redirect chains longer
    than the configured bound, and local write failures.
    """

    stage = "downloading"


class ProcessError(TranscodeError):
    """The external transcoder could not be spawned or exited non-zero."""

    stage = "transcoding"

    def __init__(
        self,
        message: str,
        exit_code: Optional[int] = None,
        diagnostics: str = "",
        timed_out: bool = False,
    ):
        super().__init__(message, detail=diagnostics or None)
        self.exit_code = exit_code
        self.diagnostics = diagnostics
        self.timed_out = timed_out


class PublishError(TranscodeError):
    """Uploading the transcoded video to the store failed."""

    stage = "publishing"


class DeleteError(TranscodeError):
    """Retiring the original object failed.

    Never reported as the outcome of a run: a publish has already
    succeeded, so this is converted to a warning on the result.
    """

    stage = "retiring"


class StoreError(Exception):
    """A plain object store operation (list, delete, presign, CORS) failed."""
