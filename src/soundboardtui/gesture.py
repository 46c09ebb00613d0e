from __future__ import annotations

import time
from enum import Enum
from typing import Any, Callable, Protocol

HOLD_DURATION = 0.3
_TIE_TOLERANCE = 1e-9

Callback = Callable[[], None]
ProgressCallback = Callable[[float], None]
Detach = Callable[[], None]
OutsideClickSubscriber = Callable[[Callback], Detach]


class GestureState(Enum):
    IDLE = "idle"
    HOLDING = "holding"
    EXPANDED = "expanded"


class FrameScheduler(Protocol):
    def request_frame(self, callback: Callback) -> Any: ...

    def cancel_frame(self, handle: Any) -> None: ...


class GestureRecognizer:
    """Tell a quick tap from a sustained hold on a single item.

    A press that is released before ``hold_duration`` fires ``on_tap``. A press
    held for ``hold_duration`` or longer expands the item instead and never
    taps. Progress is sampled on each tick of ``scheduler`` against
    ``clock``, both injectable so tests can drive time by hand.

    While expanded, a click-outside listener obtained from
    ``subscribe_outside`` is attached; it is detached whenever the item leaves
    the expanded state.
    """

    def __init__(
        self,
        on_tap: Callback,
        scheduler: FrameScheduler,
        *,
        on_expand: Callback | None = None,
        on_collapse: Callback | None = None,
        on_progress: ProgressCallback | None = None,
        subscribe_outside: OutsideClickSubscriber | None = None,
        clock: Callable[[], float] = time.monotonic,
        hold_duration: float = HOLD_DURATION,
    ) -> None:
        if hold_duration <= 0:
            raise ValueError("Hold duration must be positive")
        self._on_tap = on_tap
        self._scheduler = scheduler
        self._on_expand = on_expand
        self._on_collapse = on_collapse
        self._on_progress = on_progress
        self._subscribe_outside = subscribe_outside
        self._clock = clock
        self.hold_duration = hold_duration
        self.state = GestureState.IDLE
        self.progress = 0.0
        self._started_at: float | None = None
        self._frame: Any = None
        self._detach_outside: Detach | None = None

    @property
    def expanded(self) -> bool:
        return self.state is GestureState.EXPANDED

    def press_start(self) -> None:
        if self.state is not GestureState.IDLE:
            return
        self.state = GestureState.HOLDING
        self._started_at = self._clock()
        self._set_progress(0.0)
        self._request_frame()

    def press_end(self) -> None:
        if self.state is not GestureState.HOLDING:
            return
        self._cancel_frame()
        if self._elapsed_progress() >= 1.0:
            self._expand()
            return
        self._reset()
        self._on_tap()

    def pointer_leave(self) -> None:
        if self.state is not GestureState.HOLDING:
            return
        self._cancel_frame()
        self._reset()

    def click_outside(self) -> None:
        self.collapse()

    def collapse(self) -> None:
        if self.state is not GestureState.EXPANDED:
            return
        self._detach()
        self._reset()
        if self._on_collapse is not None:
            self._on_collapse()

    def toggle_panel(self) -> None:
        if self.state is GestureState.EXPANDED:
            self.collapse()
        elif self.state is GestureState.IDLE:
            self._expand()

    def teardown(self) -> None:
        self._cancel_frame()
        self._detach()
        self._reset()

    def _sample(self) -> None:
        self._frame = None
        if self.state is not GestureState.HOLDING:
            return
        progress = self._elapsed_progress()
        if progress >= 1.0:
            self._expand()
            return
        self._set_progress(progress)
        self._request_frame()

    def _expand(self) -> None:
        self.state = GestureState.EXPANDED
        self._started_at = None
        self._set_progress(1.0)
        if self._subscribe_outside is not None and self._detach_outside is None:
            self._detach_outside = self._subscribe_outside(self.click_outside)
        if self._on_expand is not None:
            self._on_expand()

    def _elapsed_progress(self) -> float:
        if self._started_at is None:
            return 0.0
        elapsed = self._clock() - self._started_at
        # Ties at the boundary count as a completed hold.
        if elapsed + _TIE_TOLERANCE >= self.hold_duration:
            return 1.0
        return max(0.0, min(1.0, elapsed / self.hold_duration))

    def _set_progress(self, value: float) -> None:
        self.progress = value
        if self._on_progress is not None:
            self._on_progress(value)

    def _request_frame(self) -> None:
        self._frame = self._scheduler.request_frame(self._sample)

    def _cancel_frame(self) -> None:
        frame = self._frame
        if frame is None:
            return
        self._frame = None
        self._scheduler.cancel_frame(frame)

    def _detach(self) -> None:
        detach = self._detach_outside
        if detach is None:
            return
        self._detach_outside = None
        detach()

    def _reset(self) -> None:
        self.state = GestureState.IDLE
        self._started_at = None
        self._set_progress(0.0)
