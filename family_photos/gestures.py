"""Single / double tap disambiguation.

``TapClassifier`` is a pure state machine fed with press, move and release
events (positions in pixels, timestamps in milliseconds). It never looks at a
clock itself: callers report time through the events and through ``poll``.
``TapHandler`` drives it from an asyncio loop and fires callbacks.
"""

import asyncio
import enum
import logging
import math
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_DELAY_MS = 300
DEFAULT_MOVE_THRESHOLD_PX = 10


class TapOutcome(enum.StrEnum):
    single = "single"
    double = "double"
    suppressed = "suppressed"


@dataclass
class TapEvent:
    outcome: TapOutcome
    x: float
    y: float
    timestamp: float


@dataclass
class _Point:
    x: float
    y: float
    timestamp: float

    def distance_to(self, x: float, y: float) -> float:
        return math.hypot(x - self.x, y - self.y)


class TapClassifier:
    def __init__(
        self,
        delay_ms: float = DEFAULT_DELAY_MS,
        move_threshold_px: float = DEFAULT_MOVE_THRESHOLD_PX,
    ):
        if delay_ms <= 0:
            raise ValueError("delay_ms must be positive")
        if move_threshold_px < 0:
            raise ValueError("move_threshold_px must not be negative")
        self.delay_ms = delay_ms
        self.move_threshold_px = move_threshold_px
        self._press: Optional[_Point] = None
        self._moved = False
        self._pending: Optional[_Point] = None

    @property
    def pending_deadline(self) -> Optional[float]:
        """When the pending tap becomes a single, if one is waiting."""
        if self._pending is None:
            return None
        return self._pending.timestamp + self.delay_ms

    def press(self, x: float, y: float, timestamp: float) -> None:
        self._press = _Point(x, y, timestamp)
        self._moved = False

    def move(self, x: float, y: float, timestamp: float) -> None:
        if self._press is None:
            return
        if self._press.distance_to(x, y) > self.move_threshold_px:
            self._moved = True

    def release(self, x: float, y: float, timestamp: float) -> list[TapEvent]:
        """Finish a press. Returns every outcome decided by this release."""
        events = self.poll(timestamp)
        press, moved = self._press, self._moved
        self._press = None
        self._moved = False

        if press is None:
            return events
        if moved or press.distance_to(x, y) > self.move_threshold_px:
            events.append(TapEvent(TapOutcome.suppressed, press.x, press.y, timestamp))
            return events

        pending = self._pending
        if pending is not None:
            time_diff = timestamp - pending.timestamp
            if time_diff < self.delay_ms and pending.distance_to(x, y) < self.move_threshold_px:
                self._pending = None
                events.append(TapEvent(TapOutcome.double, x, y, timestamp))
                return events
            # Too far from the first tap: it stands alone
            self._pending = None
            events.append(
                TapEvent(TapOutcome.single, pending.x, pending.y, pending.timestamp)
            )

        self._pending = _Point(x, y, timestamp)
        return events

    def poll(self, now: float) -> list[TapEvent]:
        """Fire the pending single tap if its window has closed."""
        deadline = self.pending_deadline
        if deadline is None or now < deadline:
            return []
        pending = self._pending
        self._pending = None
        return [TapEvent(TapOutcome.single, pending.x, pending.y, pending.timestamp)]

    def reset(self) -> None:
        self._press = None
        self._moved = False
        self._pending = None


class TapHandler:
    """Runs a ``TapClassifier`` on the event loop.

    The single-tap timer is scheduled with ``loop.call_later`` and cancelled by
    ``close()``, after which no callback fires.
    """

    def __init__(
        self,
        on_single: Optional[Callable[[TapEvent], None]] = None,
        on_double: Optional[Callable[[TapEvent], None]] = None,
        delay_ms: float = DEFAULT_DELAY_MS,
        move_threshold_px: float = DEFAULT_MOVE_THRESHOLD_PX,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.classifier = TapClassifier(delay_ms=delay_ms, move_threshold_px=move_threshold_px)
        self.on_single = on_single
        self.on_double = on_double
        self._loop = loop
        self._timer: Optional[asyncio.TimerHandle] = None
        self._closed = False

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _now_ms(self) -> float:
        return self.loop.time() * 1000

    def press(self, x: float, y: float) -> None:
        if not self._closed:
            self.classifier.press(x, y, self._now_ms())

    def move(self, x: float, y: float) -> None:
        if not self._closed:
            self.classifier.move(x, y, self._now_ms())

    def release(self, x: float, y: float) -> None:
        if self._closed:
            return
        self._cancel_timer()
        self._dispatch(self.classifier.release(x, y, self._now_ms()))
        self._schedule()

    def _schedule(self) -> None:
        deadline = self.classifier.pending_deadline
        if deadline is None:
            return
        delay = max(0.0, (deadline - self._now_ms()) / 1000)
        self._timer = self.loop.call_later(delay, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        if self._closed:
            return
        deadline = self.classifier.pending_deadline
        # Timer resolution can land a hair before the deadline
        self._dispatch(self.classifier.poll(deadline if deadline is not None else self._now_ms()))

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _dispatch(self, events: list[TapEvent]) -> None:
        for event in events:
            if event.outcome == TapOutcome.single and self.on_single:
                self.on_single(event)
            elif event.outcome == TapOutcome.double and self.on_double:
                self.on_double(event)
            elif event.outcome == TapOutcome.suppressed:
                logger.debug("Tap at (%s, %s) suppressed by movement", event.x, event.y)

    def close(self) -> None:
        self._closed = True
        self._cancel_timer()
        self.classifier.reset()
