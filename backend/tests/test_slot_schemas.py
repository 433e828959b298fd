"""Slot key conventions."""

import pytest

from mediaslot.schemas.slot import (
    StoredObject,
    find_slot_object,
    key_extension,
    public_object_url,
    slot_key,
)


@pytest.mark.parametrize(
    "key, expected",
    [
        ("video.mov", "mov"),
        ("video.MP4", "mp4"),
        ("video.tar.gz", "gz"),
        ("video.", "bin"),
        ("video", "bin"),
        ("video.M/x", "mx"),
    ],
)
def test_key_extension(key, expected):
    assert key_extension(key) == expected


def test_slot_key_lowercases_last_extension():
    assert slot_key("video", "Holiday.Clip.MOV") == "video.mov"
    assert slot_key("subtitle", "captions.en.VTT") == "subtitle.vtt"


def test_slot_key_without_dot_uses_whole_name():
    assert slot_key("video", "README") == "video.readme"


def test_find_slot_object_is_prefix_and_case_sensitive():
    objects = [
        StoredObject(key="Video.mov"),
        StoredObject(key="subtitle.vtt"),
        StoredObject(key="video.webm"),
    ]

    assert find_slot_object(objects, "video.").key == "video.webm"
    assert find_slot_object(objects, "subtitle.").key == "subtitle.vtt"
    assert find_slot_object([], "video.") is None


def test_public_object_url_joins_with_single_slash():
    assert public_object_url("https://pub.example/", "video.mp4") == "https://pub.example/video.mp4"
