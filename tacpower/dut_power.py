"""Switching of the DUT power output with over-voltage/-current protection."""

from __future__ import annotations

import os
import queue
import threading
import time
from collections.abc import Callable
from typing import Protocol

from .led import BlinkPattern
from .measurement import Measurement
from .power_states import (
    DISCHARGE_LINE_ASSERTED,
    MAX_AGE,
    MAX_CURRENT,
    MAX_VOLTAGE,
    MIN_VOLTAGE,
    PWR_LINE_ASSERTED,
    THREAD_INTERVAL,
    MedianFilter,
    OutputRequest,
    OutputState,
    TickCounter,
    TickReader,
    led_pattern_for_state,
)

Feedback = Callable[[], "tuple[Measurement, Measurement] | None"]


class OutputLine(Protocol):
    """A digital output line, such as a GPIO."""

    def set_value(self, value: int) -> None: ...


def _realtime_priority() -> None:
    try:
        os.sched_setscheduler(0, os.SCHED_FIFO, os.sched_param(10))
    except (AttributeError, OSError) as err:
        raise RuntimeError(f"Failed to set up realtime priority {err!r}") from err


class DutPowerController:
    """Drives the DUT power and discharge lines from voltage/current feedback.

    ``feedback`` returns a fresh (voltage, current) pair of measurements, or
    None if no new reading is available yet. Outputs are turned off whenever
    a fault is detected or readings become older than the allowed age.
    """

    def __init__(
        self,
        pwr_line: OutputLine,
        discharge_line: OutputLine,
        feedback: Feedback,
        *,
        on_state: Callable[[OutputState], None] | None = None,
        on_led: Callable[[BlinkPattern], None] | None = None,
        interval: float = THREAD_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        realtime: bool = False,
    ) -> None:
        self._pwr_line = pwr_line
        self._discharge_line = discharge_line
        self._feedback = feedback
        self._on_state = on_state
        self._on_led = on_led
        self._interval = interval
        self._clock = clock
        self._realtime = realtime

        # Power off and discharging is the safe initial condition.
        pwr_line.set_value(1 - PWR_LINE_ASSERTED)
        discharge_line.set_value(DISCHARGE_LINE_ASSERTED)

        self._lock = threading.Lock()
        self._pending = OutputRequest.Idle
        self._state = OutputState.Off
        self._published: OutputState | None = None
        self._last_ts: float | None = None
        self._volt_filter = MedianFilter(4)
        self._curr_filter = MedianFilter(4)
        self._tick = TickCounter()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # Public interface

    def request(self, req: OutputRequest) -> None:
        """Queue a request; it takes effect at the next valid measurement."""
        self._publish(OutputState.Changing, only_if_changed=False)
        with self._lock:
            self._pending = req

    def state(self) -> OutputState | None:
        """Return the last published state, or None before the first step."""
        with self._lock:
            return self._published

    def tick(self) -> TickReader:
        """Return a reader that tells whether the control loop makes progress."""
        return TickReader(self._tick)

    def step(self) -> bool:
        """Run one iteration of the control loop.

        Returns True if a filtered measurement was evaluated.
        """
        try:
            return self._evaluate()
        finally:
            with self._lock:
                current = self._state
            self._publish(current, only_if_changed=True)

    def start(self) -> None:
        """Run the control loop in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        result: queue.Queue[BaseException | None] = queue.Queue(maxsize=1)
        self._thread = threading.Thread(
            target=self._run, args=(result,), name="tacd power", daemon=True
        )
        self._thread.start()
        error = result.get()
        if error is not None:
            self._thread.join()
            self._thread = None
            raise error

    def stop(self) -> None:
        """Stop the control loop and put the output into its safe state."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        self._turn_off_with_reason(OutputState.Off)
        self._publish(OutputState.Off, only_if_changed=True)

    def __enter__(self) -> DutPowerController:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    # Internals

    def _run(self, result: queue.Queue[BaseException | None]) -> None:
        if self._realtime:
            try:
                _realtime_priority()
            except RuntimeError as err:
                result.put(err)
                return
        result.put(None)
        while not self._stop_event.wait(self._interval):
            self.step()

    def _publish(self, state: OutputState, *, only_if_changed: bool) -> None:
        with self._lock:
            if only_if_changed and self._published == state:
                return
            self._published = state
        if self._on_state is not None:
            self._on_state(state)
        pattern = led_pattern_for_state(state)
        if pattern is not None and self._on_led is not None:
            self._on_led(pattern)

    def _turn_off_with_reason(self, reason: OutputState) -> None:
        self._pwr_line.set_value(1 - PWR_LINE_ASSERTED)
        self._discharge_line.set_value(DISCHARGE_LINE_ASSERTED)
        with self._lock:
            self._state = reason

    def _take_request(self) -> OutputRequest:
        with self._lock:
            req, self._pending = self._pending, OutputRequest.Idle
        return req

    def _evaluate(self) -> bool:
        feedback = self._feedback()
        if feedback is not None:
            self._last_ts = feedback[0].ts.instant

        too_old = (
            self._last_ts is not None and self._clock() - self._last_ts > MAX_AGE
        )
        if too_old:
            self._turn_off_with_reason(OutputState.RealtimeViolation)
        else:
            self._tick.increment()

        if feedback is None:
            return False

        # Both filters are stepped so their histories stay aligned.
        volt = self._volt_filter.step(feedback[0].value)
        curr = self._curr_filter.step(feedback[1].value)
        if volt is None or curr is None:
            return False

        # The request is consumed even if a fault prevents acting on it, so
        # the output does not surprisingly turn on once the fault clears.
        req = self._take_request()

        if volt > MAX_VOLTAGE:
            self._turn_off_with_reason(OutputState.OverVoltage)
            return True
        if volt < MIN_VOLTAGE:
            self._turn_off_with_reason(OutputState.InvertedPolarity)
            return True
        if curr > MAX_CURRENT:
            self._turn_off_with_reason(OutputState.OverCurrent)
            return True

        if req is OutputRequest.On:
            self._discharge_line.set_value(1 - DISCHARGE_LINE_ASSERTED)
            self._pwr_line.set_value(PWR_LINE_ASSERTED)
            new_state = OutputState.On
        elif req is OutputRequest.Off:
            self._discharge_line.set_value(DISCHARGE_LINE_ASSERTED)
            self._pwr_line.set_value(1 - PWR_LINE_ASSERTED)
            new_state = OutputState.Off
        elif req is OutputRequest.OffFloating:
            self._discharge_line.set_value(1 - DISCHARGE_LINE_ASSERTED)
            self._pwr_line.set_value(1 - PWR_LINE_ASSERTED)
            new_state = OutputState.OffFloating
        else:
            return True

        with self._lock:
            self._state = new_state
        return True