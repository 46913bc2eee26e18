"""Information about the running system and its bootloader."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path

DT_CHOSEN = "/sys/firmware/devicetree/base/chosen/"

_DEMO_DATA_STR = {
    "barebox-version": "barebox-2022.11.0-20221121-1",
    "baseboard-factory-data/pcba-hardware-release": "lxatac-S01-R03-B02-C00",
    "powerboard-factory-data/pcba-hardware-release": "lxatac-S05-R03-V01-C00",
}

_DEMO_DATA_NUM = {
    "baseboard-factory-data/modification": 0,
    "baseboard-factory-data/factory-timestamp": 1678086417,
    "powerboard-factory-data/modification": 0,
    "powerboard-factory-data/factory-timestamp": 1678086418,
}

_U32_RE = re.compile(r"\+?[0-9]+")
_U32_MAX = 0xFFFFFFFF


def read_dt_property(path: str, base_dir: str | Path | None = DT_CHOSEN) -> str:
    """Read a NUL-terminated string property below the devicetree chosen node.

    A base_dir of None reads from a fixed table of demo values.
    """
    if base_dir is None:
        return _DEMO_DATA_STR[path]
    raw = (Path(base_dir) / path).read_bytes()
    if not raw.endswith(b"\0"):
        raise ValueError(f"devicetree property {path} is not NUL-terminated")
    return raw[:-1].decode("utf-8")


def read_dt_property_u32(path: str, base_dir: str | Path | None = DT_CHOSEN) -> int:
    """Read a devicetree string property and parse it as an unsigned 32 bit integer."""
    if base_dir is None:
        return _DEMO_DATA_NUM[path]
    text = read_dt_property(path, base_dir)
    if not _U32_RE.fullmatch(text):
        raise ValueError(f"devicetree property {path} is not a number: {text!r}")
    value = int(text)
    if value > _U32_MAX:
        raise ValueError(f"devicetree property {path} is out of range: {text!r}")
    return value


def format_release(template: str, changeset: int) -> str:
    """Fill the '-C??' placeholder of a hardware release with the changeset."""
    return template.replace("-C??", f"-C{changeset:02}")


@dataclass(frozen=True)
class Uname:
    """Kernel and host identification."""

    sysname: str
    nodename: str
    release: str
    version: str
    machine: str

    @classmethod
    def get(cls) -> Uname:
        uts = os.uname()
        return cls(uts.sysname, uts.nodename, uts.release, uts.version, uts.machine)


@dataclass(frozen=True)
class Barebox:
    """Bootloader version and factory data of the boards."""

    version: str
    baseboard_release: str
    powerboard_release: str
    baseboard_timestamp: int
    powerboard_timestamp: int

    @classmethod
    def from_devicetree(cls, base_dir: str | Path | None = DT_CHOSEN) -> Barebox:
        """Collect the information from the devicetree chosen node."""

        def release(board: str) -> str:
            template = read_dt_property(
                f"{board}-factory-data/pcba-hardware-release", base_dir
            )
            changeset = read_dt_property_u32(f"{board}-factory-data/modification", base_dir)
            return format_release(template, changeset)

        return cls(
            version=read_dt_property("barebox-version", base_dir),
            baseboard_release=release("baseboard"),
            powerboard_release=release("powerboard"),
            baseboard_timestamp=read_dt_property_u32(
                "baseboard-factory-data/factory-timestamp", base_dir
            ),
            powerboard_timestamp=read_dt_property_u32(
                "powerboard-factory-data/factory-timestamp", base_dir
            ),
        )