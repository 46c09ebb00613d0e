from __future__ import annotations

from typing import Callable

from rich.text import Text
from textual import events
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.message import Message
from textual.timer import Timer
from textual.widget import Widget
from textual.widgets import Button, Input, Label, ProgressBar, Static

from ..gesture import GestureRecognizer, GestureState
from ..models import Clip, ClipId, PlaybackParams

SAMPLE_INTERVAL = 1 / 60
PARAM_STEP = 0.1

Callback = Callable[[], None]


class WidgetTimerScheduler:
    """Sample hold progress on a fixed 1/60 s widget timer.

    Each request arms a one-shot ``set_timer``; cancelling stops it.
    """

    def __init__(self, widget: Widget) -> None:
        self._widget = widget

    def request_frame(self, callback: Callback) -> Timer:
        return self._widget.set_timer(SAMPLE_INTERVAL, callback)

    def cancel_frame(self, handle: Timer) -> None:
        handle.stop()


class OutsideClickHub:
    """Deliver clicks to listeners whose owner widget was not clicked."""

    def __init__(self) -> None:
        self._listeners: dict[int, tuple[Widget, Callback]] = {}
        self._next_key = 0

    def __len__(self) -> int:
        return len(self._listeners)

    def subscribe(self, owner: Widget, callback: Callback) -> Callback:
        key = self._next_key
        self._next_key += 1
        self._listeners[key] = (owner, callback)

        def detach() -> None:
            self._listeners.pop(key, None)

        return detach

    def dispatch(self, target: Widget | None) -> None:
        for owner, callback in list(self._listeners.values()):
            if target is not None and _is_within(target, owner):
                continue
            callback()


def _is_within(target: Widget, owner: Widget) -> bool:
    node = target
    while node is not None:
        if node is owner:
            return True
        node = node.parent
    return False


class ClipItem(Widget, can_focus=True):
    BINDINGS = [
        ("enter", "tap", "Play"),
        ("space", "toggle_panel", "Panel"),
        ("escape", "collapse", "Close Panel"),
        ("0", "reset_params", "Reset"),
        ("d", "delete", "Delete"),
    ]

    DEFAULT_CSS = """
    ClipItem {
        height: auto;
        padding: 0 1;
        margin: 0 0 1 0;
        border: round $primary 40%;
        background: $surface;
    }

    ClipItem:focus {
        border: round $accent;
    }

    ClipItem.-expanded {
        border: heavy $accent;
        background: $panel;
    }

    ClipItem .clip-meta {
        color: $text-muted;
    }

    ClipItem .hold-bar {
        height: 1;
    }

    ClipItem .clip-panel {
        height: auto;
        display: none;
    }

    ClipItem.-expanded .clip-panel {
        display: block;
    }

    ClipItem .panel-row {
        height: auto;
    }
    """

    class PlayRequested(Message):
        def __init__(self, item: ClipItem, clip: Clip, params: PlaybackParams) -> None:
            super().__init__()
            self.item = item
            self.clip = clip
            self.params = params

    class DeleteRequested(Message):
        def __init__(self, item: ClipItem, clip_id: ClipId) -> None:
            super().__init__()
            self.item = item
            self.clip_id = clip_id

    class RenameRequested(Message):
        def __init__(self, item: ClipItem, clip_id: ClipId, title: str) -> None:
            super().__init__()
            self.item = item
            self.clip_id = clip_id
            self.title = title

    def __init__(self, clip: Clip, hub: OutsideClickHub, *, playing: bool = False) -> None:
        super().__init__(classes="clip-item")
        self.clip = clip
        self.params = PlaybackParams()
        self._hub = hub
        self._playing = playing
        self._header = Label(_format_header(clip, playing), classes="clip-title")
        self._meta = Static(_format_meta(clip), classes="clip-meta")
        self._bar = ProgressBar(
            total=100,
            show_percentage=False,
            show_eta=False,
            classes="hold-bar",
        )
        self._params_label = Label(_format_params(self.params), classes="params-label")
        self._title_input = Input(
            value=clip.title,
            placeholder="Title (this session only)",
            classes="title-input",
        )
        self.recognizer = GestureRecognizer(
            on_tap=self._play,
            scheduler=WidgetTimerScheduler(self),
            on_expand=self._on_expand,
            on_collapse=self._on_collapse,
            on_progress=self._on_progress,
            subscribe_outside=lambda callback: self._hub.subscribe(self, callback),
        )

    def compose(self) -> ComposeResult:
        yield self._header
        yield self._meta
        yield self._bar
        with Vertical(classes="clip-panel"):
            yield self._params_label
            with Horizontal(classes="panel-row"):
                yield Button("Speed -", name="speed_down")
                yield Button("Speed +", name="speed_up")
                yield Button("Pitch -", name="pitch_down")
                yield Button("Pitch +", name="pitch_up")
                yield Button("Reset", name="reset")
            yield self._title_input
            with Horizontal(classes="panel-row"):
                yield Button("Play", name="play", variant="primary")
                yield Button("Delete", name="delete", variant="error")

    def on_mount(self) -> None:
        self._bar.update(total=100, progress=0)

    def on_unmount(self) -> None:
        self.recognizer.teardown()

    @property
    def expanded(self) -> bool:
        return self.recognizer.state is GestureState.EXPANDED

    def set_clip(self, clip: Clip) -> None:
        self.clip = clip
        self._header.update(_format_header(clip, self._playing))
        self._meta.update(_format_meta(clip))
        if not self._title_input.has_focus:
            self._title_input.value = clip.title

    def set_playing(self, playing: bool) -> None:
        if self._playing == playing:
            return
        self._playing = playing
        self._header.update(_format_header(self.clip, playing))

    def set_params(self, params: PlaybackParams) -> None:
        self.params = params
        self._params_label.update(_format_params(params))

    def on_key(self, event: events.Key) -> None:
        if self._title_input.has_focus:
            return
        character = event.character or ""
        speed_delta = _speed_delta(character)
        if speed_delta is not None:
            self.action_nudge_speed(speed_delta)
            event.stop()
            return
        pitch_delta = _pitch_delta(character)
        if pitch_delta is not None:
            self.action_nudge_pitch(pitch_delta)
            event.stop()

    def on_mouse_down(self, event: events.MouseDown) -> None:
        if event.button != 1:
            return
        self.recognizer.press_start()

    def on_mouse_up(self, event: events.MouseUp) -> None:
        if event.button != 1:
            return
        self.recognizer.press_end()

    def on_leave(self, event: events.Leave) -> None:
        if self._pointer_inside():
            return
        self.recognizer.pointer_leave()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        name = event.button.name
        if name == "speed_down":
            self.action_nudge_speed(-PARAM_STEP)
        elif name == "speed_up":
            self.action_nudge_speed(PARAM_STEP)
        elif name == "pitch_down":
            self.action_nudge_pitch(-PARAM_STEP)
        elif name == "pitch_up":
            self.action_nudge_pitch(PARAM_STEP)
        elif name == "reset":
            self.action_reset_params()
        elif name == "play":
            self._play()
        elif name == "delete":
            self.action_delete()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        title = event.value.strip()
        if title and title != self.clip.title:
            self.post_message(self.RenameRequested(self, self.clip.id, title))

    def action_tap(self) -> None:
        if self.recognizer.state is GestureState.IDLE:
            self._play()

    def action_toggle_panel(self) -> None:
        self.recognizer.toggle_panel()

    def action_collapse(self) -> None:
        self.recognizer.collapse()

    def action_nudge_speed(self, delta: float) -> None:
        self.set_params(self.params.nudge_speed(delta))

    def action_nudge_pitch(self, delta: float) -> None:
        self.set_params(self.params.nudge_pitch(delta))

    def action_reset_params(self) -> None:
        self.set_params(PlaybackParams())

    def action_delete(self) -> None:
        self.post_message(self.DeleteRequested(self, self.clip.id))

    def _play(self) -> None:
        self.post_message(self.PlayRequested(self, self.clip, self.params))

    def _on_expand(self) -> None:
        self.add_class("-expanded")
        self._bar.update(progress=0)

    def _on_collapse(self) -> None:
        self.remove_class("-expanded")

    def _on_progress(self, value: float) -> None:
        if self.recognizer.state is GestureState.HOLDING:
            self._bar.update(progress=value * 100)
        else:
            self._bar.update(progress=0)

    def _pointer_inside(self) -> bool:
        position = self.app.mouse_position
        return self.region.contains(position.x, position.y)


def _format_header(clip: Clip, playing: bool) -> Text:
    text = Text()
    text.append("▶ " if playing else "  ", style="bold green")
    text.append(clip.title, style="bold")
    if not clip.is_processed:
        text.append("  Processing...", style="black on yellow")
    return text


def _format_meta(clip: Clip) -> str:
    parts = [f"by {clip.uploaded_by or 'anonymous'}"]
    if clip.play_count is not None:
        plays = "play" if clip.play_count == 1 else "plays"
        parts.append(f"{clip.play_count} {plays}")
    size = _format_size(clip.file_size_bytes)
    if size:
        parts.append(size)
    if clip.description:
        parts.append(_truncate(clip.description, 60))
    return "  |  ".join(parts)


def _format_params(params: PlaybackParams) -> str:
    return f"Speed {params.speed:.2f}x   Pitch {params.pitch:.2f}x   ([ ] speed, {{ }} pitch, 0 reset)"


def _speed_delta(character: str) -> float | None:
    if character == "[":
        return -PARAM_STEP
    if character == "]":
        return PARAM_STEP
    return None


def _pitch_delta(character: str) -> float | None:
    if character == "{":
        return -PARAM_STEP
    if character == "}":
        return PARAM_STEP
    return None


def _format_size(value: int | None) -> str | None:
    if value is None:
        return None
    return f"{value / 1024 / 1024:.2f} MB"


def _truncate(text: str, limit: int) -> str:
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."
