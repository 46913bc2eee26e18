"""States, requests and helpers shared by the DUT power switching logic."""

from __future__ import annotations

import math
import threading
import weakref
from collections import deque
from datetime import timedelta
from enum import Enum

from .led import BlinkPattern, BlinkPatternBuilder

MAX_AGE = 0.3
THREAD_INTERVAL = 0.1
TASK_INTERVAL = 0.2
MAX_CURRENT = 5.0
MAX_VOLTAGE = 48.0
MIN_VOLTAGE = -1.0

PWR_LINE_ASSERTED = 0
DISCHARGE_LINE_ASSERTED = 0


class OutputRequest(Enum):
    """A request to change the DUT power output."""

    Idle = 0
    On = 1
    Off = 2
    OffFloating = 3


class OutputState(Enum):
    """The state the DUT power output is in."""

    On = 0
    Off = 1
    OffFloating = 2
    Changing = 3
    InvertedPolarity = 4
    OverCurrent = 5
    OverVoltage = 6
    RealtimeViolation = 7


def _total_order_key(value: float) -> tuple[int, float]:
    if math.isnan(value):
        return (2 if math.copysign(1.0, value) > 0 else 0, 0.0)
    return (1, value)


class MedianFilter:
    """Median over the last ``size`` values stepped in."""

    def __init__(self, size: int) -> None:
        if size <= 0:
            raise ValueError("median filter size must be positive")
        self.size = size
        self._history: deque[float] = deque(maxlen=size)

    def step(self, value: float) -> float | None:
        """Add a value and return the median, or None until the window is full.

        For an even window size the mean of the two centre values is returned.
        """
        self._history.append(value)
        if len(self._history) < self.size:
            return None

        ordered = sorted(self._history, key=_total_order_key)
        half = self.size // 2
        if self.size % 2 == 0:
            return (ordered[half - 1] + ordered[half]) / 2.0
        return ordered[half]


class TickCounter:
    """A counter the power loop advances whenever it makes progress."""

    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def increment(self) -> None:
        with self._lock:
            self._value = (self._value + 1) & 0xFFFFFFFF


class TickReader:
    """Watches a TickCounter without keeping it alive."""

    def __init__(self, counter: TickCounter) -> None:
        self._src = weakref.ref(counter)
        self._value = counter.value

    def is_stale(self) -> bool:
        """Return True if no progress was made since the previous call.

        A counter that no longer exists is always stale.
        """
        counter = self._src()
        if counter is None:
            return True
        previous = self._value
        self._value = counter.value
        return previous == self._value


def compat_request(value: int) -> OutputRequest | None:
    """Map a compat request body (0 or 1) to an output request."""
    if value == 0:
        return OutputRequest.Off
    if value == 1:
        return OutputRequest.On
    return None


def compat_response(state: OutputState) -> int | None:
    """Map an output state to the compat response, or None while changing."""
    if state is OutputState.On:
        return 1
    if state is OutputState.Changing:
        return None
    return 0


def _error_pattern() -> BlinkPattern:
    builder = BlinkPatternBuilder(1.0)
    for _ in range(3):
        (
            builder.step_to(1.0)
            .stay_for(timedelta(milliseconds=50))
            .step_to(0.0)
            .stay_for(timedelta(milliseconds=50))
        )
    return builder.stay_for(timedelta(milliseconds=400)).forever()


def led_pattern_for_state(state: OutputState) -> BlinkPattern | None:
    """Return the power LED pattern for a state, or None to leave it as is."""
    if state is OutputState.On:
        return BlinkPattern.solid(1.0)
    if state in (OutputState.Off, OutputState.OffFloating):
        return BlinkPattern.solid(0.0)
    if state is OutputState.Changing:
        return None
    return _error_pattern()