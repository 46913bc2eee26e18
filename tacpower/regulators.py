"""Switching of the power regulators for IOBus and UART."""

from __future__ import annotations

import logging
from pathlib import Path

PLATFORM_DIR = "/sys/devices/platform"
IOBUS_REGULATOR = "output-iobus-12v"
UART_REGULATOR = "output-vuart"

log = logging.getLogger(__name__)


def regulator_set(
    name: str, state: bool, base_dir: str | Path | None = PLATFORM_DIR
) -> None:
    """Enable or disable a regulator via its sysfs state file.

    A base_dir of None only logs what would have been done.
    """
    text = "enabled" if state else "disabled"
    if base_dir is None:
        log.info("Regulator: would set %s to %s but don't feel like it", name, text)
        return
    (Path(base_dir) / name / "state").write_text(text)


class Regulator:
    """A regulator that remembers the state it was last set to."""

    def __init__(
        self,
        name: str,
        initial: bool = True,
        base_dir: str | Path | None = PLATFORM_DIR,
    ) -> None:
        self.name = name
        self.base_dir = base_dir
        self.state: bool | None = None
        self.set(initial)

    def set(self, state: bool) -> None:
        """Apply a new state to the hardware and record it."""
        regulator_set(self.name, state, self.base_dir)
        self.state = state