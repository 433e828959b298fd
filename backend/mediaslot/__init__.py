"""Media Slot - single shared video/subtitle slot backed by object storage.

This module provides startup validation functions to ensure required
dependencies are available before a transcode runs.
Call validate_dependencies() during application startup.
"""

import logging
import subprocess

__version__ = "0.1.0"

logger = logging.getLogger(__name__)


def validate_dependencies(ffmpeg_path: str | None = None) -> None:
    """Validate required system dependencies are available.

    Args:
        ffmpeg_path: Executable to check. Defaults to settings.transcode.ffmpeg_path.

    Raises:
        RuntimeError: If ffmpeg is not found or not functional.
    """
    if ffmpeg_path is None:
        from mediaslot.config import settings

        ffmpeg_path = settings.transcode.ffmpeg_path

    try:
        result = subprocess.run(
            [ffmpeg_path, "-version"],
            capture_output=True,
            check=True,
            text=True,
        )
        version_line = result.stdout.split("\n")[0]
        logger.info(f"ffmpeg validated: {version_line}")
    except (subprocess.CalledProcessError, OSError) as e:
        raise RuntimeError(
            f"ffmpeg not found at '{ffmpeg_path}'. Install ffmpeg to enable transcoding.\n"
            "Ubuntu/Debian: sudo apt-get install ffmpeg\n"
            "macOS: brew install ffmpeg\n"
            "Windows: https://ffmpeg.org/download.html"
        ) from e
