"""ffmpeg invocation for audio normalisation.

Runs ffmpeg as an asyncio subprocess with a fixed argument template:
video stream copied, audio re-encoded to AAC at a fixed bitrate, output
overwritten. stderr is drained concurrently so the wait never blocks the
event loop; lines carrying a time= position are logged for observability
only and never drive control flow.
"""

import asyncio
import contextlib
import logging
import re
from pathlib import Path
from typing import Optional

from mediaslot.config import TranscodeConfig, settings
from mediaslot.errors import ProcessError

logger = logging.getLogger(__name__)

_LINE_SPLIT = re.compile(rb"[\r\n]")
_PROGRESS_MARKER = b"time="
_READ_SIZE = 64 * 1024
# A single unterminated line longer than this is dropped from progress logging
_MAX_PENDING_LINE = 64 * 1024


def build_transcode_command(
    input_path: Path,
    output_path: Path,
    ffmpeg_path: str = "ffmpeg",
    audio_codec: str = "aac",
    audio_bitrate: str = "192k",
) -> list[str]:
    """Build the ffmpeg argument list.

    -c:v copy: Video stream passed through without re-encoding
    -c:a aac -b:a 192k: Audio re-encoded at a fixed bitrate
    -y: Overwrite output file
    """
    return [
        ffmpeg_path,
        "-hide_banner",
        "-nostdin",
        "-y",
        "-i",
        str(input_path),
        "-c:v",
        "copy",
        "-c:a",
        audio_codec,
        "-b:a",
        audio_bitrate,
        str(output_path),
    ]


class DiagnosticBuffer:
    """Bounded buffer for subprocess diagnostic output.

    Keeps the most recent max_bytes; ffmpeg reports the actual failure
    at the end of its output.
    """

    def __init__(self, max_bytes: int):
        self.max_bytes = max_bytes
        self._data = bytearray()
        self.truncated = False

    def append(self, chunk: bytes) -> None:
        self._data.extend(chunk)
        overflow = len(self._data) - self.max_bytes
        if overflow > 0:
            del self._data[:overflow]
            self.truncated = True

    def __len__(self) -> int:
        return len(self._data)

    def text(self) -> str:
        return self._data.decode("utf-8", errors="replace")


class FFmpegTranscoder:
    """Run ffmpeg to re-encode the audio track of a video.

    Args:
        ffmpeg_path: ffmpeg executable
        audio_codec: Target audio codec
        audio_bitrate: Target audio bitrate (ffmpeg syntax, e.g. '192k')
        timeout: Seconds to wait for ffmpeg before killing it (None = no limit)
        max_diagnostic_bytes: Ceiling on buffered stderr output
    """

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        audio_codec: str = "aac",
        audio_bitrate: str = "192k",
        timeout: Optional[float] = 3600.0,
        max_diagnostic_bytes: int = 10 * 1024 * 1024,
    ):
        self.ffmpeg_path = ffmpeg_path
        self.audio_codec = audio_codec
        self.audio_bitrate = audio_bitrate
        self.timeout = timeout
        self.max_diagnostic_bytes = max_diagnostic_bytes

    @classmethod
    def from_settings(cls, config: Optional[TranscodeConfig] = None) -> "FFmpegTranscoder":
        cfg = config or settings.transcode
        return cls(
            ffmpeg_path=cfg.ffmpeg_path,
            audio_codec=cfg.audio_codec,
            audio_bitrate=cfg.audio_bitrate,
            timeout=cfg.timeout_seconds,
            max_diagnostic_bytes=cfg.max_diagnostic_bytes,
        )

    async def transcode(self, input_path: Path, output_path: Path) -> None:
        """Transcode input_path into output_path.

        Raises:
            ProcessError: If ffmpeg cannot be spawned, exits non-zero, or
                exceeds the timeout (the process is killed first)
        """
        cmd = build_transcode_command(
            input_path,
            output_path,
            ffmpeg_path=self.ffmpeg_path,
            audio_codec=self.audio_codec,
            audio_bitrate=self.audio_bitrate,
        )
        logger.info("Running ffmpeg: %s", " ".join(cmd))

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            # Executable missing or not runnable: same outcome as a failed run
            raise ProcessError(
                f"Failed to start {self.ffmpeg_path}: {e}",
                exit_code=None,
                diagnostics=str(e),
            ) from e

        diagnostics = DiagnosticBuffer(self.max_diagnostic_bytes)
        reader = asyncio.create_task(_drain_stderr(proc.stderr, diagnostics))

        try:
            exit_code = await asyncio.wait_for(proc.wait(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error("ffmpeg exceeded %ss, killing pid %s", self.timeout, proc.pid)
            await _kill(proc, reader)
            raise ProcessError(
                f"ffmpeg timed out after {self.timeout}s",
                exit_code=proc.returncode,
                diagnostics=diagnostics.text(),
                timed_out=True,
            )
        except asyncio.CancelledError:
            await _kill(proc, reader)
            raise

        await reader

        if diagnostics.truncated:
            logger.warning(
                "ffmpeg diagnostics exceeded %d bytes; kept the most recent output",
                self.max_diagnostic_bytes,
            )

        if exit_code != 0:
            text = diagnostics.text()
            logger.error("ffmpeg exited with code %s: %s", exit_code, text[-2000:])
            raise ProcessError(
                f"ffmpeg exited with code {exit_code}",
                exit_code=exit_code,
                diagnostics=text,
            )

        logger.info("ffmpeg complete: %s", output_path)


async def _drain_stderr(stream: asyncio.StreamReader, diagnostics: DiagnosticBuffer) -> None:
    """Read stderr to EOF, buffering it and logging progress lines."""
    pending = b""
    while True:
        chunk = await stream.read(_READ_SIZE)
        if not chunk:
            break
        diagnostics.append(chunk)

        pending += chunk
        lines = _LINE_SPLIT.split(pending)
        pending = lines.pop()
        if len(pending) > _MAX_PENDING_LINE:
            pending = b""
        for line in lines:
            _log_progress(line)

    _log_progress(pending)


def _log_progress(line: bytes) -> None:
    if _PROGRESS_MARKER in line:
        logger.debug("ffmpeg progress: %s", line.decode("utf-8", errors="replace").strip())


async def _kill(proc: asyncio.subprocess.Process, reader: asyncio.Task) -> None:
    """Kill and reap the subprocess, then stop the stderr reader."""
    with contextlib.suppress(ProcessLookupError):
        proc.kill()
    await proc.wait()
    reader.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await reader
