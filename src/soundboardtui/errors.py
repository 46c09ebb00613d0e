from __future__ import annotations


class SoundboardError(Exception):
    """Base class for failures surfaced to the user."""


class NotReadyError(SoundboardError):
    """Playback was requested for a clip that is still processing."""


class PlaybackError(SoundboardError):
    """The local player could not be started."""


class UploadValidationError(SoundboardError):
    """An upload was submitted without its required fields."""
