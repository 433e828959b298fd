"""Operator CLI against the in-memory store."""

import pytest
from typer.testing import CliRunner

from mediaslot.cli import commands
from mediaslot.config import settings
from mediaslot.services.transcoder import FFmpegTranscoder

from conftest import StubStore

runner = CliRunner()


@pytest.fixture
def cli_store(monkeypatch, tmp_path):
    store = StubStore({"video.mov": b"movie", "subtitle.vtt": b"WEBVTT"})
    monkeypatch.setattr(commands, "get_object_store", lambda: store)
    monkeypatch.setattr(settings.transcode, "scratch_dir", tmp_path / "scratch")
    return store


def test_status_lists_slot_objects(cli_store):
    result = runner.invoke(commands.app, ["status"])

    assert result.exit_code == 0
    assert "video.mov" in result.output
    assert "subtitle.vtt" in result.output


def test_status_on_empty_slot(cli_store):
    cli_store.objects = {}

    result = runner.invoke(commands.app, ["status"])

    assert result.exit_code == 0
    assert "Slot is empty" in result.output


def test_clear_with_yes_deletes_everything(cli_store):
    result = runner.invoke(commands.app, ["clear", "--yes"])

    assert result.exit_code == 0
    assert "Deleted 2 file(s)" in result.output
    assert cli_store.objects == {}


def test_clear_aborts_without_confirmation(cli_store):
    result = runner.invoke(commands.app, ["clear"], input="n\n")

    assert result.exit_code != 0
    assert len(cli_store.objects) == 2


def test_upload_url_rejects_unknown_category(cli_store):
    result = runner.invoke(commands.app, ["upload-url", "a.png", "--type", "image/png", "--category", "poster"])

    assert result.exit_code == 1
    assert cli_store.calls == []


def test_upload_url_prints_key(cli_store):
    result = runner.invoke(commands.app, ["upload-url", "Clip.MKV", "--type", "video/x-matroska"])

    assert result.exit_code == 0
    assert "video.mkv" in result.output
    assert cli_store.calls == [("presign", "video.mkv", "video/x-matroska", 7200)]


def test_transcode_publishes_canonical_key(cli_store, monkeypatch):
    monkeypatch.setattr(commands, "validate_dependencies", lambda: None)
    monkeypatch.setattr(
        FFmpegTranscoder, "from_settings", classmethod(lambda cls, config=None: _Passthrough())
    )

    result = runner.invoke(commands.app, ["transcode"])

    assert result.exit_code == 0, result.output
    assert "Published video.mp4" in result.output
    assert cli_store.objects["video.mp4"] == b"movie"
    assert "video.mov" not in cli_store.objects


def test_transcode_without_video_exits_1(cli_store, monkeypatch):
    monkeypatch.setattr(commands, "validate_dependencies", lambda: None)
    cli_store.objects = {"subtitle.vtt": b"WEBVTT"}

    result = runner.invoke(commands.app, ["transcode"])

    assert result.exit_code == 1
    assert "No video found" in result.output


class _Passthrough:
    async def transcode(self, input_path, output_path):
        output_path.write_bytes(input_path.read_bytes())
