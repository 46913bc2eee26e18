"""SoC temperature monitoring with a coarse overheating warning."""

from __future__ import annotations

import threading
from collections.abc import Callable
from enum import Enum
from pathlib import Path

from .measurement import Measurement

HWMON_DIR = "/sys/class/hwmon/hwmon0"
UPDATE_INTERVAL = 0.5
TEMPERATURE_SOC_CRITICAL = 90.0
TEMPERATURE_SOC_HIGH = 70.0

_DEMO_MILLIDEGREES = 30_000


class Warning(Enum):  # noqa: A001
    """Overheating level of the SoC."""

    Okay = "Okay"
    SocHigh = "SocHigh"
    SocCritical = "SocCritical"

    @classmethod
    def from_temperature(cls, soc: float) -> Warning:
        """Classify a SoC temperature in degrees Celsius."""
        if soc > TEMPERATURE_SOC_CRITICAL:
            return cls.SocCritical
        if soc > TEMPERATURE_SOC_HIGH:
            return cls.SocHigh
        return cls.Okay


def read_soc_temperature(hwmon_dir: str | Path | None = HWMON_DIR) -> float:
    """Read the first temperature input of a hwmon device in degrees Celsius.

    A hwmon_dir of None returns a fixed demo value.
    """
    if hwmon_dir is None:
        millidegrees = _DEMO_MILLIDEGREES
    else:
        millidegrees = int((Path(hwmon_dir) / "temp1_input").read_text().strip())
    return millidegrees / 1000.0


class TemperatureMonitor:
    """Periodically reads the SoC temperature and reports changes."""

    def __init__(
        self,
        hwmon_dir: str | Path | None = HWMON_DIR,
        on_measurement: Callable[[Measurement], None] | None = None,
        on_warning: Callable[[Warning], None] | None = None,
        interval: float = UPDATE_INTERVAL,
    ) -> None:
        self.hwmon_dir = hwmon_dir
        self.on_measurement = on_measurement
        self.on_warning = on_warning
        self.interval = interval
        self.soc_temperature: Measurement | None = None
        self.warning: Warning | None = None
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def poll_once(self) -> Measurement:
        """Take one reading, update the state and notify listeners."""
        value = read_soc_temperature(self.hwmon_dir)

        # The warning is only reported when it changes, which makes it much
        # cheaper to follow than the full temperature feed.
        warning = Warning.from_temperature(value)
        if warning != self.warning:
            self.warning = warning
            if self.on_warning is not None:
                self.on_warning(warning)

        measurement = Measurement.now(value)
        self.soc_temperature = measurement
        if self.on_measurement is not None:
            self.on_measurement(measurement)
        return measurement

    def _run(self) -> None:
        while not self._stop.is_set():
            self.poll_once()
            self._stop.wait(self.interval)

    def start(self) -> None:
        """Start polling in a background thread."""
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="temperatures", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        """Stop the background thread and wait for it to finish."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def __enter__(self) -> TemperatureMonitor:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()