"""ffmpeg invocation, using small shell scripts in place of ffmpeg."""

import stat
import sys
from pathlib import Path

import pytest

from mediaslot.config import TranscodeConfig
from mediaslot.errors import ProcessError
from mediaslot.services.transcoder import DiagnosticBuffer, FFmpegTranscoder, build_transcode_command

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="uses /bin/sh scripts")


def _fake_ffmpeg(tmp_path: Path, body: str) -> str:
    script = tmp_path / "fake-ffmpeg"
    script.write_text("#!/bin/sh\n" + body + "\n")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(script)


def test_command_copies_video_and_encodes_aac_192k():
    cmd = build_transcode_command(Path("/tmp/in.mov"), Path("/tmp/out.mp4"))

    assert cmd[0] == "ffmpeg"
    assert "-y" in cmd
    assert cmd[cmd.index("-i") + 1] == "/tmp/in.mov"
    assert cmd[cmd.index("-c:v") + 1] == "copy"
    assert cmd[cmd.index("-c:a") + 1] == "aac"
    assert cmd[cmd.index("-b:a") + 1] == "192k"
    assert cmd[-1] == "/tmp/out.mp4"


def test_from_settings_uses_transcode_config():
    cfg = TranscodeConfig(ffmpeg_path="/opt/ffmpeg", timeout_seconds=12, max_diagnostic_bytes=100)

    transcoder = FFmpegTranscoder.from_settings(cfg)

    assert transcoder.ffmpeg_path == "/opt/ffmpeg"
    assert transcoder.timeout == 12
    assert transcoder.max_diagnostic_bytes == 100
    assert transcoder.audio_bitrate == "192k"


def test_diagnostic_buffer_keeps_most_recent_bytes():
    buffer = DiagnosticBuffer(max_bytes=8)

    buffer.append(b"0123456789")
    buffer.append(b"ab")

    assert len(buffer) == 8
    assert buffer.text() == "456789ab"
    assert buffer.truncated is True


@pytest.mark.asyncio
async def test_missing_executable_is_a_process_error(tmp_path):
    transcoder = FFmpegTranscoder(ffmpeg_path=str(tmp_path / "no-such-ffmpeg"))

    with pytest.raises(ProcessError) as exc_info:
        await transcoder.transcode(tmp_path / "in.mov", tmp_path / "out.mp4")

    assert exc_info.value.exit_code is None
    assert "Failed to start" in exc_info.value.message


@posix_only
@pytest.mark.asyncio
async def test_successful_run_produces_output(tmp_path):
    ffmpeg = _fake_ffmpeg(
        tmp_path,
        'echo "frame=  10 fps=0.0 size=0kB time=00:00:01.00 bitrate=N/A speed=2x" >&2\n'
        'for last; do :; done\n'
        'cp "$5" "$last"',
    )
    input_path = tmp_path / "in.mov"
    input_path.write_bytes(b"movie")
    output_path = tmp_path / "out.mp4"

    await FFmpegTranscoder(ffmpeg_path=ffmpeg).transcode(input_path, output_path)

    assert output_path.read_bytes() == b"movie"


@posix_only
@pytest.mark.asyncio
async def test_non_zero_exit_carries_diagnostics(tmp_path):
    ffmpeg = _fake_ffmpeg(
        tmp_path,
        'echo "in.mov: Invalid data found when processing input" >&2\nexit 1',
    )

    with pytest.raises(ProcessError) as exc_info:
        await FFmpegTranscoder(ffmpeg_path=ffmpeg).transcode(tmp_path / "in.mov", tmp_path / "out.mp4")

    assert exc_info.value.exit_code == 1
    assert "Invalid data found" in exc_info.value.diagnostics
    assert exc_info.value.timed_out is False


@posix_only
@pytest.mark.asyncio
async def test_diagnostics_are_capped(tmp_path):
    ffmpeg = _fake_ffmpeg(tmp_path, "yes xxxxxxxxx | head -c 200000 >&2\nexit 1")

    with pytest.raises(ProcessError) as exc_info:
        await FFmpegTranscoder(ffmpeg_path=ffmpeg, max_diagnostic_bytes=1000).transcode(
            tmp_path / "in.mov", tmp_path / "out.mp4"
        )

    assert len(exc_info.value.diagnostics) == 1000


@posix_only
@pytest.mark.asyncio
async def test_timeout_kills_process(tmp_path):
    ffmpeg = _fake_ffmpeg(tmp_path, "exec sleep 30")

    with pytest.raises(ProcessError) as exc_info:
        await FFmpegTranscoder(ffmpeg_path=ffmpeg, timeout=0.5).transcode(
            tmp_path / "in.mov", tmp_path / "out.mp4"
        )

    assert exc_info.value.timed_out is True
    assert exc_info.value.exit_code is not None
