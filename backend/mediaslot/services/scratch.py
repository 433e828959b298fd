"""Scratch file management for transcode runs.

Allocates uniquely named local paths for one run and removes every one of
them when the run ends, whichever way it ends. Implements path traversal
protection so an allocated name can never escape the scratch directory.
"""

import logging
import uuid
from pathlib import Path
from typing import Optional

from mediaslot.config import settings

logger = logging.getLogger(__name__)


class ScratchSpace:
    """
    Scoped set of scratch files for a single transcode run.

    Files are created as:
    - {base_dir}/{stem}-{uuid4 hex}.{extension}

    Use as a context manager (sync or async); on exit every allocated
    path that exists is deleted. A failed deletion is logged and recorded
    in cleanup_errors and does not stop the remaining deletions. Exceptions
    raised inside the block propagate unchanged.
    """

    def __init__(self, base_dir: str | Path | None = None):
        """
        Initialize ScratchSpace with base directory.

        Args:
            base_dir: Directory for scratch files.
                     If None, uses settings.transcode.scratch_dir
        """
        if base_dir is None:
            base_dir = settings.transcode.scratch_dir

        self.base_dir = Path(base_dir).resolve()
        self.paths: list[Path] = []
        self.cleanup_errors: list[str] = []

    def allocate(self, stem: str, extension: str) -> Path:
        """
        Reserve a unique path in the scratch directory.

        The file itself is not created; the caller writes to it.

        Args:
            stem: Human-readable prefix (e.g. 'input', 'output')
            extension: File extension without the dot

        Returns:
            Resolved path that will be removed on cleanup

        Raises:
            ValueError: If the resulting path falls outside base_dir
        """
        self.base_dir.mkdir(parents=True, exist_ok=True)
        filename = f"{stem}-{uuid.uuid4().hex}.{extension}"
        path = (self.base_dir / filename).resolve()

        # Path traversal protection
        if not path.is_relative_to(self.base_dir) or path.parent != self.base_dir:
            raise ValueError("Invalid scratch path")

        self.paths.append(path)
        return path

    def cleanup(self) -> list[str]:
        """
        Delete every allocated path that still exists.

        Returns:
            Error messages for paths that could not be removed
        """
        errors: list[str] = []
        for path in self.paths:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                message = f"Failed to remove scratch file {path}: {e}"
                logger.warning(message)
                errors.append(message)
        self.paths = []
        self.cleanup_errors.extend(errors)
        return errors

    def __enter__(self) -> "ScratchSpace":
        return self

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        self.cleanup()
        return None

    async def __aenter__(self) -> "ScratchSpace":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> Optional[bool]:
        self.cleanup()
        return None
