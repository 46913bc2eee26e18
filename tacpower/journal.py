"""Filtering and server-sent-event streaming of system journal entries."""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from urllib.parse import parse_qsl

MAX_ELEMENTS = 2048
DEFAULT_HISTORY_LEN = 10

_U64_RE = re.compile(r"\+?[0-9]+")
_U64_MAX = 2**64 - 1

JournalRecord = Mapping[str, str]


@dataclass(frozen=True)
class QueryParams:
    """Query parameters accepted by the journal endpoint."""

    history_len: int | None = None
    unit: str | None = None


@dataclass(frozen=True)
class UnitFilter:
    """Lets through records of one systemd unit, or all if no unit is set."""

    unit: str | None = None

    def filter(self, record: JournalRecord) -> JournalRecord | None:
        """Return the record if it should be sent, otherwise None."""
        if self.unit is None:
            return record
        unit = record.get("UNIT")
        if unit is None:
            unit = record.get("_SYSTEMD_UNIT")
        if unit is None:
            return None
        return record if unit == self.unit else None


def parse_query(query: str) -> QueryParams:
    """Parse a URL query string into QueryParams.

    Raises ValueError for duplicate fields or a history_len that is not an
    unsigned 64 bit integer. Unknown fields are ignored.
    """
    fields: dict[str, str] = {}
    for key, value in parse_qsl(query, keep_blank_values=True):
        if key in fields:
            raise ValueError(f"duplicate field `{key}`")
        fields[key] = value

    history_len = None
    if "history_len" in fields:
        text = fields["history_len"]
        if not _U64_RE.fullmatch(text):
            raise ValueError(f"invalid digit found in history_len: {text!r}")
        history_len = int(text)
        if history_len > _U64_MAX:
            raise ValueError(f"history_len is too large: {text!r}")

    return QueryParams(history_len=history_len, unit=fields.get("unit"))


def select_history(
    previous_entries: Iterable[JournalRecord],
    history_len: int,
    unit_filter: UnitFilter,
) -> list[JournalRecord]:
    """Collect up to history_len matching entries going back from the tail.

    ``previous_entries`` yields entries newest first. At most MAX_ELEMENTS
    entries are looked at. The result is in chronological order.
    """
    collected: list[JournalRecord] = []
    remaining = history_len
    looked_at = 0
    entries = iter(previous_entries)

    while remaining > 0 and looked_at < MAX_ELEMENTS:
        entry = next(entries, None)
        if entry is None:
            break
        if unit_filter.filter(entry) is not None:
            collected.append(entry)
            remaining -= 1
        looked_at += 1

    collected.reverse()
    return collected


def sse_event(event: str, data: str) -> str:
    """Encode one server-sent event."""
    lines = [f"event: {event}"]
    lines.extend(f"data: {line}" for line in data.split("\n"))
    return "\n".join(lines) + "\n\n"


def stream_entries(
    records: Iterable[JournalRecord], unit_filter: UnitFilter
) -> Iterator[str]:
    """Yield an "entry" event for each matching record.

    If reading the records fails with an OSError the stream ends with an
    "error" event carrying the message, as the client has already been told
    that the request succeeded.
    """
    try:
        for record in records:
            if unit_filter.filter(record) is not None:
                payload = json.dumps(
                    dict(record), sort_keys=True, separators=(",", ":")
                )
                yield sse_event("entry", payload)
    except OSError as err:
        yield sse_event("error", str(err))