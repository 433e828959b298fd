"""Pydantic schemas and key conventions for the media slot.

The slot holds at most one video object and at most one subtitle object,
told apart by a fixed key prefix. Transcoded output is always published
under the canonical key.
"""

import re
from datetime import datetime
from typing import Iterable, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

VIDEO_PREFIX = "video."
SUBTITLE_PREFIX = "subtitle."
CANONICAL_KEY = "video.mp4"
CANONICAL_CONTENT_TYPE = "video/mp4"

SLOT_CATEGORIES = ("video", "subtitle")

_UNSAFE_EXTENSION_CHARS = re.compile(r"[^a-z0-9]")


class StoredObject(BaseModel):
    """Read-only view of one object as listed by the store."""

    key: str
    size: int = 0
    last_modified: Optional[datetime] = None


class SlotObject(BaseModel):
    """Slot entry as returned to API callers."""

    model_config = ConfigDict(populate_by_name=True)

    key: str
    url: str
    size: Optional[int] = None
    last_modified: Optional[datetime] = Field(default=None, alias="lastModified")


class SlotView(BaseModel):
    """Response schema for GET /api/video."""

    video: Optional[SlotObject] = None
    subtitle: Optional[SlotObject] = None


class TranscodeResult(BaseModel):
    """Terminal outcome of one transcode run."""

    success: bool
    key: Optional[str] = None
    error: Optional[str] = None
    warnings: list[str] = Field(default_factory=list)


class UploadUrlRequest(BaseModel):
    """Request schema for POST /api/upload-url.

    Fields are optional so that missing values produce the same 400
    response as invalid ones instead of a 422 validation error.
    """

    model_config = ConfigDict(populate_by_name=True)

    file_name: Optional[str] = Field(default=None, alias="fileName")
    file_type: Optional[str] = Field(default=None, alias="fileType")
    category: Optional[str] = None


class UploadUrlResponse(BaseModel):
    """Response schema for POST /api/upload-url."""

    model_config = ConfigDict(populate_by_name=True)

    upload_url: str = Field(alias="uploadUrl")
    key: str


def find_slot_object(
    objects: Iterable[StoredObject], prefix: str
) -> Optional[StoredObject]:
    """Return the first object whose key starts with prefix (case-sensitive)."""
    for obj in objects:
        if obj.key.startswith(prefix):
            return obj
    return None


def key_extension(key: str) -> str:
    """Extension of an object key, lower-cased and reduced to [a-z0-9].

    Used to name local scratch files, so anything that could escape a
    filename is dropped. Falls back to 'bin' when nothing is left.
    """
    _, dot, ext = key.rpartition(".")
    if not dot:
        return "bin"
    ext = _UNSAFE_EXTENSION_CHARS.sub("", ext.lower())
    return ext or "bin"


def slot_key(category: Literal["video", "subtitle"], file_name: str) -> str:
    """Fixed slot key for an upload: '<category>.<ext>'.

    The extension is the lower-cased segment after the last dot of the
    uploaded file name (the whole name when it has no dot).
    """
    ext = file_name.split(".")[-1].lower()
    return f"{category}.{ext}"


def public_object_url(base_url: str, key: str) -> str:
    """Public URL of an object under the bucket's public base URL."""
    return f"{base_url.rstrip('/')}/{key}"
