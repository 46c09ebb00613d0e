from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
from typing import Callable, Protocol

from .api import build_stream_url
from .errors import NotReadyError, PlaybackError
from .models import Clip, PlaybackParams

logger = logging.getLogger(__name__)

NOT_READY_MESSAGE = "Audio not available yet. The clip may still be processing."

_PLAYER_ARGS = {
    "mpv": ["--no-video", "--really-quiet"],
    "ffplay": ["-nodisp", "-autoexit", "-loglevel", "quiet"],
    "vlc": ["--intf", "dummy", "--play-and-exit"],
}
_STOP_TIMEOUT = 1.0


class MediaHandle(Protocol):
    def stop(self) -> None: ...


MediaLauncher = Callable[[str], MediaHandle]


class ProcessHandle:
    def __init__(self, process: subprocess.Popen) -> None:
        self.process = process

    def stop(self) -> None:
        if self.process.poll() is not None:
            return
        self.process.terminate()
        try:
            self.process.wait(timeout=_STOP_TIMEOUT)
        except subprocess.TimeoutExpired:
            self.process.kill()
            self.process.wait()


class ProcessLauncher:
    """Start playback of a stream URL in an external player process."""

    def __init__(self, command: str | None = None) -> None:
        self._command = command
        self._argv: list[str] | None = None

    def __call__(self, url: str) -> ProcessHandle:
        argv = [*self._resolve_argv(), url]
        try:
            process = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as exc:
            raise PlaybackError(f"Failed to start player: {exc}") from exc
        return ProcessHandle(process)

    def _resolve_argv(self) -> list[str]:
        if self._argv is None:
            self._argv = find_player_argv(self._command)
        return self._argv


def find_player_argv(command: str | None = None) -> list[str]:
    if command:
        argv = shlex.split(command)
        if not argv or shutil.which(argv[0]) is None:
            raise PlaybackError(f"Missing command: {command}")
        return argv
    for name, args in _PLAYER_ARGS.items():
        path = shutil.which(name)
        if path:
            return [path, *args]
    raise PlaybackError("Missing command: mpv, ffplay or vlc")


class PlaybackManager:
    """Owns the single active playback handle.

    Starting a new clip always stops the previous one first, so at most one
    stream plays at any time.
    """

    def __init__(self, base_url: str, launcher: MediaLauncher | None = None) -> None:
        self.base_url = base_url
        self._launcher = launcher or ProcessLauncher()
        self._current: MediaHandle | None = None
        self._current_clip: Clip | None = None

    @property
    def current(self) -> MediaHandle | None:
        return self._current

    @property
    def current_clip(self) -> Clip | None:
        return self._current_clip

    def is_playing(self) -> bool:
        return self._current is not None

    def stream_url(self, clip: Clip, params: PlaybackParams) -> str:
        return build_stream_url(self.base_url, clip.id, params)

    def play(self, clip: Clip, params: PlaybackParams | None = None) -> MediaHandle:
        if not clip.is_processed:
            raise NotReadyError(NOT_READY_MESSAGE)
        params = params or PlaybackParams()
        self.stop_current()
        url = self.stream_url(clip, params)
        handle = self._launcher(url)
        self._current = handle
        self._current_clip = clip
        logger.info("Playing clip %s (speed=%s, pitch=%s)", clip.id, params.speed, params.pitch)
        return handle

    def stop_current(self) -> None:
        handle = self._current
        if handle is None:
            return
        self._current = None
        self._current_clip = None
        handle.stop()
        logger.debug("Stopped current playback")
