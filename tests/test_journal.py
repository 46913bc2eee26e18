import json

import pytest

from tacpower.journal import (
    MAX_ELEMENTS,
    QueryParams,
    UnitFilter,
    parse_query,
    select_history,
    sse_event,
    stream_entries,
)


def _record(unit, message="Says HI!", key="UNIT"):
    return {key: unit, "MESSAGE": message}


def _failing_records():
    yield _record("tacd.service")
    raise OSError("Simulation ended")


def test_filter_without_unit_passes_everything():
    record = {"MESSAGE": "no unit"}
    assert UnitFilter().filter(record) is record


def test_filter_matches_unit():
    record = _record("tacd.service")
    assert UnitFilter("tacd.service").filter(record) is record
    assert UnitFilter("other.service").filter(record) is None


def test_filter_falls_back_to_systemd_unit():
    record = _record("tacd.service", key="_SYSTEMD_UNIT")
    assert UnitFilter("tacd.service").filter(record) is record


def test_filter_prefers_unit_field():
    record = {"UNIT": "a.service", "_SYSTEMD_UNIT": "b.service"}
    assert UnitFilter("a.service").filter(record) is record
    assert UnitFilter("b.service").filter(record) is None


def test_filter_rejects_record_without_unit():
    assert UnitFilter("tacd.service").filter({"MESSAGE": "x"}) is None


def test_parse_query_fields():
    assert parse_query("history_len=5&unit=tacd.service") == QueryParams(5, "tacd.service")


def test_parse_query_empty():
    assert parse_query("") == QueryParams(None, None)


@pytest.mark.parametrize("query", ["history_len=abc", "history_len=-1", "history_len="])
def test_parse_query_rejects_bad_history_len(query):
    with pytest.raises(ValueError):
        parse_query(query)


def test_parse_query_rejects_duplicates():
    with pytest.raises(ValueError):
        parse_query("unit=a&unit=b")


def test_select_history_returns_chronological_matches():
    newest_first = [
        _record("tacd.service", "3"),
        _record("other.service", "x"),
        _record("tacd.service", "2"),
        _record("tacd.service", "1"),
    ]
    selected = select_history(newest_first, 2, UnitFilter("tacd.service"))
    assert [r["MESSAGE"] for r in selected] == ["2", "3"]


def test_select_history_zero_length():
    assert select_history([_record("a")], 0, UnitFilter()) == []


def test_select_history_stops_at_element_limit():
    entries = [_record("other.service")] * MAX_ELEMENTS + [_record("tacd.service")]
    assert select_history(entries, 1, UnitFilter("tacd.service")) == []


def test_select_history_short_journal():
    entries = [_record("a", "2"), _record("a", "1")]
    selected = select_history(entries, 10, UnitFilter())
    assert [r["MESSAGE"] for r in selected] == ["1", "2"]


def test_sse_event_format():
    assert sse_event("entry", "x") == "event: entry\ndata: x\n\n"


def test_stream_entries_filters_and_encodes():
    records = [_record("tacd.service", "hello"), _record("other.service")]
    events = list(stream_entries(records, UnitFilter("tacd.service")))
    assert len(events) == 1
    lines = events[0].splitlines()
    assert lines[0] == "event: entry"
    assert json.loads(lines[1][len("data: "):]) == records[0]


def test_stream_entries_reports_error():
    events = list(stream_entries(_failing_records(), UnitFilter()))
    assert len(events) == 2
    assert events[-1] == sse_event("error", "Simulation ended")