"""Shared fixtures: in-memory object store and transcoder stand-ins."""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from mediaslot.errors import DownloadError, ProcessError, StoreError
from mediaslot.schemas.slot import StoredObject

PUBLIC_BASE = "https://pub.example"


class StubStore:
    """In-memory stand-in for ObjectStore with switchable failures."""

    def __init__(self, objects: dict[str, bytes] | None = None):
        self.objects = dict(objects or {})
        self.bucket = "slot"
        self.public_base_url = PUBLIC_BASE
        self.calls: list[tuple] = []
        self.fail_list = False
        self.fail_fetch = False
        self.fail_upload = False
        self.fail_delete = False

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    async def list_objects(self) -> list[StoredObject]:
        self.calls.append(("list",))
        if self.fail_list:
            raise StoreError("list failed")
        return [
            StoredObject(
                key=key,
                size=len(data),
                last_modified=datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc),
            )
            for key, data in self.objects.items()
        ]

    async def fetch_public(self, key: str, dest: Path, config=None) -> int:
        self.calls.append(("fetch", self.public_url(key)))
        if self.fail_fetch:
            Path(dest).write_bytes(b"partial")
            raise DownloadError(f"HTTP 500 fetching {self.public_url(key)}")
        data = self.objects[key]
        Path(dest).write_bytes(data)
        return len(data)

    async def upload_file(self, path: Path, key: str, content_type: str) -> None:
        self.calls.append(("upload", key, content_type))
        if self.fail_upload:
            raise StoreError("upload failed")
        self.objects[key] = Path(path).read_bytes()

    async def delete_object(self, key: str) -> None:
        self.calls.append(("delete", key))
        if self.fail_delete:
            raise StoreError("delete failed")
        self.objects.pop(key, None)

    async def delete_all(self) -> list[str]:
        self.calls.append(("delete_all",))
        if self.fail_delete:
            raise StoreError("delete failed")
        keys = list(self.objects)
        self.objects.clear()
        return keys

    async def presigned_upload_url(self, key: str, content_type: str, expires_in: int = 3600) -> str:
        self.calls.append(("presign", key, content_type, expires_in))
        return f"https://upload.example/{key}?expires={expires_in}"

    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]


class StubTranscoder:
    """Records calls; writes a fake output file or fails like ffmpeg would."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[tuple[Path, Path]] = []

    async def transcode(self, input_path: Path, output_path: Path) -> None:
        self.calls.append((input_path, output_path))
        if self.fail:
            output_path.write_bytes(b"partial")
            raise ProcessError(
                "ffmpeg exited with code 1",
                exit_code=1,
                diagnostics="input: Invalid data found when processing input",
            )
        output_path.write_bytes(b"aac:" + input_path.read_bytes())


@pytest.fixture
def store():
    return StubStore()


@pytest.fixture
def transcoder():
    return StubTranscoder()


@pytest.fixture
def scratch_dir(tmp_path):
    return tmp_path / "scratch"
