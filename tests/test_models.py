import math

import pytest

from soundboardtui.models import Clip, PlaybackParams, SortMode, clamp_ratio, parse_clip


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (0.1, 0.5),
        (0.5, 0.5),
        (1.0, 1.0),
        (1.75, 1.75),
        (2.0, 2.0),
        (3, 2.0),
        (-4.0, 0.5),
    ],
)
def test_clamp_ratio(value: float, expected: float) -> None:
    assert clamp_ratio(value) == expected


@pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf, "1.0", True])
def test_clamp_ratio_rejects_non_finite(value) -> None:
    with pytest.raises(ValueError):
        clamp_ratio(value)


def test_playback_params_default_is_identity() -> None:
    params = PlaybackParams()
    assert params.speed == 1.0
    assert params.pitch == 1.0
    assert params.is_identity


def test_playback_params_clamped_on_construction() -> None:
    params = PlaybackParams(speed=5.0, pitch=0.0)
    assert params.speed == 2.0
    assert params.pitch == 0.5
    assert not params.is_identity


def test_playback_params_adjust_independently() -> None:
    params = PlaybackParams().with_speed(1.5)
    assert params.speed == 1.5
    assert params.pitch == 1.0
    params = params.with_pitch(9.0)
    assert params.speed == 1.5
    assert params.pitch == 2.0


def test_playback_params_nudge_stops_at_bounds() -> None:
    params = PlaybackParams(speed=1.9)
    params = params.nudge_speed(0.1).nudge_speed(0.1)
    assert params.speed == 2.0
    params = PlaybackParams(pitch=0.6).nudge_pitch(-0.1).nudge_pitch(-0.1)
    assert params.pitch == 0.5


def test_sort_mode_toggle_and_parse() -> None:
    assert SortMode.RECENT.toggled() is SortMode.POPULAR
    assert SortMode.POPULAR.toggled() is SortMode.RECENT
    assert SortMode.parse(" Popular ") is SortMode.POPULAR
    assert SortMode.parse("newest") is None


def test_parse_clip_full_payload() -> None:
    clip = parse_clip(
        {
            "id": 7,
            "title": "Laugh",
            "description": "Friday",
            "audioUrl": "/data/audio/7.mp3",
            "thumbnailUrl": None,
            "fileSizeBytes": 2048,
            "uploadedBy": "sam",
            "uploadDate": "2024-01-02T03:04:05",
            "isProcessed": True,
            "playCount": 12,
        }
    )
    assert clip == Clip(
        id=7,
        title="Laugh",
        description="Friday",
        uploaded_by="sam",
        audio_url="/data/audio/7.mp3",
        is_processed=True,
        play_count=12,
        file_size_bytes=2048,
        upload_date="2024-01-02T03:04:05",
    )
    assert clip.playable


def test_parse_clip_defaults_to_unprocessed() -> None:
    clip = parse_clip({"id": "abc", "title": "Pending"})
    assert clip is not None
    assert clip.id == "abc"
    assert not clip.is_processed
    assert not clip.playable


@pytest.mark.parametrize(
    "payload",
    [
        None,
        [],
        {"title": "No id"},
        {"id": 1},
        {"id": 1, "title": "   "},
        {"id": True, "title": "Bool id"},
        {"id": 1, "title": "Bad flag", "isProcessed": "yes"},
    ],
)
def test_parse_clip_rejects_malformed(payload) -> None:
    assert parse_clip(payload) is None


def test_clip_with_title_keeps_identity() -> None:
    clip = Clip(id=1, title="Old", is_processed=True)
    renamed = clip.with_title("New")
    assert renamed.id == 1
    assert renamed.title == "New"
    assert renamed.is_processed
    assert clip.title == "Old"
