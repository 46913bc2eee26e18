"""LED blink patterns and control of LEDs in the sysfs LED class."""

from __future__ import annotations

import errno
import logging
import math
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any

LEDS_CLASS_DIR = "/sys/class/leds"

_SECOND = timedelta(seconds=1)
_MILLISECOND = timedelta(milliseconds=1)

_DEMO_FILES = {
    "tac:green:out0/max_brightness": "1",
    "tac:green:out1/max_brightness": "1",
    "tac:green:dutpwr/max_brightness": "1",
    "rgb:status/max_brightness": "65535",
    "rgb:status/multi_index": "red green blue",
}

log = logging.getLogger(__name__)


def _round_half_away(value: float) -> float:
    return math.copysign(math.floor(abs(value) + 0.5), value)


@dataclass
class BlinkPattern:
    """A sequence of (brightness, duration) steps, repeated a number of times.

    A repetition count of -1 repeats the pattern forever.
    """

    repetitions: int
    steps: list[tuple[float, timedelta]] = field(default_factory=list)

    @classmethod
    def solid(cls, value: float) -> BlinkPattern:
        """Return a pattern that stays at a constant brightness."""
        return cls(1, [(value, _SECOND), (value, _SECOND)])

    def is_on(self) -> bool:
        return all(brightness >= 0.5 for brightness, _ in self.steps)

    def is_off(self) -> bool:
        return all(brightness < 0.5 for brightness, _ in self.steps)

    def is_blinking(self) -> bool:
        return not (self.is_on() or self.is_off())

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready representation of the pattern."""
        return {
            "repetitions": self.repetitions,
            "steps": [
                [
                    brightness,
                    {
                        "secs": duration // _SECOND,
                        "nanos": (duration % _SECOND).microseconds * 1000,
                    },
                ]
                for brightness, duration in self.steps
            ],
        }


class BlinkPatternBuilder:
    """Chainable construction of a BlinkPattern."""

    def __init__(self, initial: float) -> None:
        self._value = initial
        self._steps: list[tuple[float, timedelta]] = []

    def fade_to(self, brightness: float, duration: timedelta) -> BlinkPatternBuilder:
        self._value = brightness
        self._steps.append((brightness, duration))
        return self

    def step_to(self, brightness: float) -> BlinkPatternBuilder:
        return self.fade_to(brightness, timedelta(0))

    def stay_for(self, duration: timedelta) -> BlinkPatternBuilder:
        return self.fade_to(self._value, duration)

    def repeat(self, repetitions: int) -> BlinkPattern:
        return BlinkPattern(repetitions, list(self._steps))

    def once(self) -> BlinkPattern:
        return self.repeat(1)

    def forever(self) -> BlinkPattern:
        return self.repeat(-1)


class SysfsLed:
    """An LED exposed below the sysfs LED class directory."""

    def __init__(self, name: str, base_dir: str | Path = LEDS_CLASS_DIR) -> None:
        self.name = name
        self.path = Path(base_dir) / name
        if not self.path.is_dir():
            raise FileNotFoundError(errno.ENOENT, f"LED {name} not found", str(self.path))

    def read_file(self, name: str) -> str:
        return (self.path / name).read_text().strip()

    def write_file(self, name: str, data: str | bytes) -> None:
        target = self.path / name
        if isinstance(data, bytes):
            target.write_bytes(data)
        else:
            target.write_text(data)

    def max_brightness(self) -> int:
        return int(self.read_file("max_brightness"))

    def brightness(self) -> int:
        return int(self.read_file("brightness"))

    def set_brightness(self, value: int) -> None:
        self.write_file("brightness", str(value))

    def set_pattern(self, pattern: BlinkPattern) -> None:
        """Program the LED's pattern trigger with the given pattern."""
        maximum = float(self.max_brightness())
        encoded = "".join(
            f"{int(_round_half_away(brightness * maximum))} {duration // _MILLISECOND} "
            for brightness, duration in pattern.steps
        )
        self.write_file("trigger", "pattern")
        self.write_file("pattern", encoded)
        self.write_file("repeat", str(pattern.repetitions))

    def set_rgb_color(self, r: int, g: int, b: int) -> None:
        """Set the intensities of a multicolor LED in its channel order."""
        values = {"red": r, "green": g, "blue": b}
        parts = []
        for color_name in self.read_file("multi_index").split():
            if color_name not in values:
                raise ValueError(f"unknown LED color channel {color_name!r}")
            parts.append(f"{values[color_name]} ")
        self.write_file("multi_intensity", "".join(parts))


class DemoLed(SysfsLed):
    """An LED backed by a fixed table of files; writes are only logged."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.path = Path(name)
        self.written: dict[str, str] = {}

    def read_file(self, name: str) -> str:
        key = f"{self.name}/{name}"
        try:
            return _DEMO_FILES[key]
        except KeyError:
            raise FileNotFoundError(errno.ENOENT, f"{key} not found", key) from None

    def write_file(self, name: str, data: str | bytes) -> None:
        text = data.decode() if isinstance(data, bytes) else data
        log.info("LED: Write %s to %s/%s", text, self.name, name)
        self.written[name] = text


def get_led_checked(
    hardware_name: str, base_dir: str | Path | None = LEDS_CLASS_DIR
) -> SysfsLed | None:
    """Open an LED, or return None if it is missing or cannot be set up.

    A base_dir of None selects a demo LED that needs no hardware.
    """
    try:
        if base_dir is None:
            return DemoLed(hardware_name)
        return SysfsLed(hardware_name, base_dir)
    except FileNotFoundError:
        log.info("Hardware does not have LED %s, ignoring", hardware_name)
    except OSError as err:
        log.error("Failed to set up LED %s: %s", hardware_name, err)
    return None


def color_to_rgb(led: SysfsLed, color: tuple[float, float, float]) -> tuple[int, int, int]:
    """Scale an (r, g, b) color in 0..1 to the LED's range and apply it.

    The top of the range is max_brightness - 1, as some LEDs stay dark at
    their maximum value. Returns the intensities that were written.
    """
    maximum = float(led.max_brightness() - 1)
    r, g, b = (max(0, int(channel * maximum)) for channel in color)
    try:
        led.set_rgb_color(r, g, b)
    except OSError as err:
        log.warning("Failed to set LED color: %s", err)
    return r, g, b