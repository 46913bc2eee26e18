"""Timestamped measurements based on the monotonic clock."""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True, order=True)
class Timestamp:
    """A point in monotonic time, as returned by ``time.monotonic()``."""

    instant: float

    @classmethod
    def now(cls) -> Timestamp:
        """Return a timestamp for the current moment."""
        return cls(time.monotonic())

    def _age(self) -> float:
        return time.monotonic() - self.instant

    def _system_seconds(self) -> float:
        return time.time() - self._age()

    def in_system_time(self) -> datetime:
        """Map the monotonic instant onto calendar time (UTC).

        The monotonic clock is unrelated to the system clock, so this is an
        approximation: ``now_system - (now_monotonic - instant)``.
        """
        return datetime.fromtimestamp(self._system_seconds(), tz=timezone.utc)

    def to_js(self) -> float:
        """Return milliseconds since the Unix epoch, as used by JavaScript."""
        return 1000.0 * self._system_seconds()


@dataclass(frozen=True)
class Measurement:
    """A measured value together with the moment it was taken."""

    ts: Timestamp
    value: float

    @classmethod
    def now(cls, value: float) -> Measurement:
        """Create a measurement stamped with the current time."""
        return cls(Timestamp.now(), value)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready representation of the measurement."""
        return {"ts": self.ts.to_js(), "value": self.value}