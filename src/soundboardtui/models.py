from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Union

ClipId = Union[int, str]

MIN_RATIO = 0.5
MAX_RATIO = 2.0
DEFAULT_RATIO = 1.0


class SortMode(Enum):
    RECENT = "recent"
    POPULAR = "popular"

    def toggled(self) -> SortMode:
        return SortMode.POPULAR if self is SortMode.RECENT else SortMode.RECENT

    @classmethod
    def parse(cls, value: str) -> SortMode | None:
        key = value.strip().casefold()
        for mode in cls:
            if mode.value == key:
                return mode
        return None


@dataclass(frozen=True)
class Clip:
    id: ClipId
    title: str
    description: str | None = None
    uploaded_by: str | None = None
    thumbnail_url: str | None = None
    audio_url: str | None = None
    is_processed: bool = False
    play_count: int | None = None
    file_size_bytes: int | None = None
    upload_date: str | None = None
    last_played: str | None = None

    @property
    def playable(self) -> bool:
        return self.is_processed

    def with_title(self, title: str) -> Clip:
        return replace(self, title=title)


def clamp_ratio(value: float) -> float:
    """Clamp a speed/pitch ratio to the supported range.

    Out-of-range values snap to the nearest bound. NaN and infinities are
    rejected rather than silently clamped.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Ratio must be a number: {value!r}")
    if math.isnan(value) or math.isinf(value):
        raise ValueError(f"Ratio must be finite: {value!r}")
    return max(MIN_RATIO, min(MAX_RATIO, float(value)))


@dataclass(frozen=True)
class PlaybackParams:
    speed: float = DEFAULT_RATIO
    pitch: float = DEFAULT_RATIO

    def __post_init__(self) -> None:
        object.__setattr__(self, "speed", clamp_ratio(self.speed))
        object.__setattr__(self, "pitch", clamp_ratio(self.pitch))

    @property
    def is_identity(self) -> bool:
        return self.speed == DEFAULT_RATIO and self.pitch == DEFAULT_RATIO

    def with_speed(self, speed: float) -> PlaybackParams:
        return PlaybackParams(speed=speed, pitch=self.pitch)

    def with_pitch(self, pitch: float) -> PlaybackParams:
        return PlaybackParams(speed=self.speed, pitch=pitch)

    def nudge_speed(self, delta: float) -> PlaybackParams:
        return self.with_speed(round(self.speed + delta, 2))

    def nudge_pitch(self, delta: float) -> PlaybackParams:
        return self.with_pitch(round(self.pitch + delta, 2))


def parse_clip(data: Any) -> Clip | None:
    """Build a Clip from an API payload, or None when required fields are bad."""
    if not isinstance(data, dict):
        return None
    clip_id = _as_id(data.get("id"))
    title = _as_str(data.get("title"))
    if clip_id is None or title is None:
        return None
    is_processed = data.get("isProcessed")
    if is_processed is not None and not isinstance(is_processed, bool):
        return None
    return Clip(
        id=clip_id,
        title=title,
        description=_as_str(data.get("description")),
        uploaded_by=_as_str(data.get("uploadedBy")),
        thumbnail_url=_as_str(data.get("thumbnailUrl")),
        audio_url=_as_str(data.get("audioUrl")),
        is_processed=bool(is_processed),
        play_count=_as_nonneg_int(data.get("playCount")),
        file_size_bytes=_as_nonneg_int(data.get("fileSizeBytes")),
        upload_date=_as_str(data.get("uploadDate")),
        last_played=_as_str(data.get("lastPlayed")),
    )


def _as_id(value: Any) -> ClipId | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _as_str(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _as_nonneg_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int) and value >= 0:
        return value
    return None
