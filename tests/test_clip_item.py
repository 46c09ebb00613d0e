from __future__ import annotations

from soundboardtui.models import Clip, PlaybackParams
from soundboardtui.ui.clip_item import (
    SAMPLE_INTERVAL,
    OutsideClickHub,
    WidgetTimerScheduler,
    _format_header,
    _format_meta,
    _format_params,
    _pitch_delta,
    _speed_delta,
)


class Node:
    def __init__(self, parent: Node | None = None) -> None:
        self.parent = parent


def test_outside_click_skips_owner_and_descendants() -> None:
    hub = OutsideClickHub()
    screen = Node()
    item = Node(screen)
    button = Node(Node(item))
    other = Node(screen)
    calls: list[str] = []
    hub.subscribe(item, lambda: calls.append("collapse"))

    hub.dispatch(item)
    hub.dispatch(button)
    assert calls == []

    hub.dispatch(other)
    hub.dispatch(None)
    assert calls == ["collapse", "collapse"]


def test_outside_click_detach() -> None:
    hub = OutsideClickHub()
    item = Node()
    calls: list[str] = []
    detach = hub.subscribe(item, lambda: calls.append("collapse"))
    assert len(hub) == 1
    detach()
    detach()
    assert len(hub) == 0
    hub.dispatch(Node())
    assert calls == []


def test_listener_may_detach_during_dispatch() -> None:
    hub = OutsideClickHub()
    calls: list[str] = []
    detachers = []

    def collapse() -> None:
        calls.append("collapse")
        detachers[0]()

    detachers.append(hub.subscribe(Node(), collapse))
    hub.subscribe(Node(), lambda: calls.append("second"))
    hub.dispatch(Node())
    assert calls == ["collapse", "second"]
    assert len(hub) == 1


def test_header_marks_processing_and_playing() -> None:
    clip = Clip(id=1, title="Laugh", is_processed=False)
    assert "Processing" in _format_header(clip, playing=False).plain
    playing = _format_header(Clip(id=1, title="Laugh", is_processed=True), True)
    assert playing.plain.startswith("▶ ")
    assert "Processing" not in playing.plain


def test_meta_line() -> None:
    clip = Clip(id=1, title="Laugh", uploaded_by=None, play_count=1, file_size_bytes=1048576, description="a  b")
    assert _format_meta(clip) == "by anonymous  |  1 play  |  1.00 MB  |  a b"


def test_params_label_and_key_deltas() -> None:
    assert _format_params(PlaybackParams(speed=1.5, pitch=0.8)).startswith("Speed 1.50x   Pitch 0.80x")
    assert _speed_delta("]") == 0.1
    assert _speed_delta("[") == -0.1
    assert _pitch_delta("}") == 0.1
    assert _pitch_delta("{") == -0.1
    assert _speed_delta("x") is None
    assert _pitch_delta("") is None


class FakeTimer:
    def __init__(self) -> None:
        self.stopped = False

    def stop(self) -> None:
        self.stopped = True


class TimerWidget:
    def __init__(self) -> None:
        self.armed: list[tuple[float, object, FakeTimer]] = []

    def set_timer(self, delay: float, callback) -> FakeTimer:
        timer = FakeTimer()
        self.armed.append((delay, callback, timer))
        return timer


def test_timer_scheduler_arms_one_shot_ticks() -> None:
    widget = TimerWidget()
    scheduler = WidgetTimerScheduler(widget)

    def sample() -> None:
        pass

    handle = scheduler.request_frame(sample)
    assert widget.armed == [(SAMPLE_INTERVAL, sample, handle)]
    scheduler.cancel_frame(handle)
    assert handle.stopped
