"""Monitoring of the IOBus server and the IOBus power supply."""

from __future__ import annotations

import json
import logging
import urllib.request
from collections.abc import Callable, Mapping
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

CURRENT_MAX = 0.2
VOLTAGE_MIN = 10.0
SERVER_URL = "http://127.0.0.1:8080"

log = logging.getLogger(__name__)

JsonFetch = Callable[[str], Any]


class LSSState(Enum):
    """State of the CANopen layer setting service."""

    Idle = "Idle"
    Scanning = "Scanning"


def _load(data: Mapping[str, Any] | str | bytes) -> Mapping[str, Any]:
    if isinstance(data, (str, bytes)):
        data = json.loads(data)
    if not isinstance(data, Mapping):
        raise ValueError("expected a JSON object")
    return data


def _field(data: Mapping[str, Any], name: str, kind: type) -> Any:
    if name not in data:
        raise ValueError(f"missing field `{name}`")
    value = data[name]
    if kind is int and (isinstance(value, bool) or not isinstance(value, int)):
        raise ValueError(f"field `{name}` must be an integer")
    if not isinstance(value, kind):
        raise ValueError(f"field `{name}` must be of type {kind.__name__}")
    return value


@dataclass(frozen=True)
class Nodes:
    """Nodes found on the IOBus."""

    code: int
    error_message: str
    result: list[str] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: Mapping[str, Any] | str | bytes) -> Nodes:
        obj = _load(data)
        code = _field(obj, "code", int)
        if not 0 <= code <= 0xFFFFFFFF:
            raise ValueError("field `code` is out of range")
        result = _field(obj, "result", list)
        if not all(isinstance(item, str) for item in result):
            raise ValueError("field `result` must hold strings")
        return cls(code, _field(obj, "error_message", str), list(result))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ServerInfo:
    """Status information reported by the IOBus server."""

    hostname: str
    started: str
    can_interface: str
    can_interface_is_up: bool
    lss_state: LSSState
    can_tx_error: bool

    @classmethod
    def from_json(cls, data: Mapping[str, Any] | str | bytes) -> ServerInfo:
        obj = _load(data)
        state = _field(obj, "lss_state", str)
        try:
            lss_state = LSSState(state)
        except ValueError:
            raise ValueError(f"unknown lss_state {state!r}") from None
        return cls(
            hostname=_field(obj, "hostname", str),
            started=_field(obj, "started", str),
            can_interface=_field(obj, "can_interface", str),
            can_interface_is_up=_field(obj, "can_interface_is_up", bool),
            lss_state=lss_state,
            can_tx_error=_field(obj, "can_tx_error", bool),
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["lss_state"] = self.lss_state.value
        return data


def supply_fault(pwr_en: bool | None, current: float, voltage: float) -> bool:
    """Return True on undervoltage while powered or on overcurrent."""
    undervolt = bool(pwr_en) and voltage < VOLTAGE_MIN
    overcurrent = current > CURRENT_MAX
    return undervolt or overcurrent


def _fetch_json(url: str) -> Any:
    with urllib.request.urlopen(url, timeout=5) as response:
        return json.load(response)


_DEMO_RESPONSES = {
    "server-info": {
        "hostname": "lxatac-1000",
        "started": "some time ago",
        "can_interface": "can0",
        "can_interface_is_up": True,
        "lss_state": "Idle",
        "can_tx_error": False,
    },
    "nodes": {"code": 0, "error_message": "", "result": []},
}


def _demo_fetch(url: str) -> Any:
    name = url.rstrip("/").rsplit("/", 1)[-1]
    return _DEMO_RESPONSES[name]


class IoBusMonitor:
    """Polls the IOBus server and tracks the health of the IOBus supply.

    A server_url of None serves fixed demo responses instead.
    """

    def __init__(
        self,
        server_url: str | None = SERVER_URL,
        fetch: JsonFetch | None = None,
        on_server_info: Callable[[ServerInfo], None] | None = None,
        on_nodes: Callable[[Nodes], None] | None = None,
        on_supply_fault: Callable[[bool], None] | None = None,
    ) -> None:
        self.server_url = server_url or ""
        if fetch is None:
            fetch = _demo_fetch if server_url is None else _fetch_json
        self._fetch = fetch
        self.on_server_info = on_server_info
        self.on_nodes = on_nodes
        self.on_supply_fault = on_supply_fault
        self.server_info: ServerInfo | None = None
        self.nodes: Nodes | None = None
        self.supply_fault: bool | None = None

    def _get(self, path: str, parse: Callable[[Any], Any]) -> Any:
        try:
            return parse(self._fetch(f"{self.server_url}/{path}/"))
        except (OSError, ValueError, KeyError) as err:
            log.debug("Failed to query IOBus server %s: %s", path, err)
            return None

    def poll_once(
        self, pwr_en: bool | None, current: float, voltage: float
    ) -> bool:
        """Run one polling round and return the current supply fault status."""
        info = self._get("server-info", ServerInfo.from_json)
        if info is not None and info != self.server_info:
            self.server_info = info
            if self.on_server_info is not None:
                self.on_server_info(info)

        nodes = self._get("nodes", Nodes.from_json)
        if nodes is not None and nodes != self.nodes:
            self.nodes = nodes
            if self.on_nodes is not None:
                self.on_nodes(nodes)

        fault = supply_fault(pwr_en, current, voltage)
        if fault != self.supply_fault:
            self.supply_fault = fault
            if self.on_supply_fault is not None:
                self.on_supply_fault(fault)
        return fault