import os

import pytest

from tacpower.system import (
    Barebox,
    Uname,
    format_release,
    read_dt_property,
    read_dt_property_u32,
)


def _write_prop(base, name, data):
    path = base / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


@pytest.fixture
def chosen(tmp_path):
    _write_prop(tmp_path, "barebox-version", b"barebox-2022.11.0-20221121-1\0")
    _write_prop(
        tmp_path,
        "baseboard-factory-data/pcba-hardware-release",
        b"lxatac-S01-R03-B02-C??\0",
    )
    _write_prop(tmp_path, "baseboard-factory-data/modification", b"7\0")
    _write_prop(tmp_path, "baseboard-factory-data/factory-timestamp", b"1678086417\0")
    _write_prop(
        tmp_path,
        "powerboard-factory-data/pcba-hardware-release",
        b"lxatac-S05-R03-V01-C00\0",
    )
    _write_prop(tmp_path, "powerboard-factory-data/modification", b"0\0")
    _write_prop(tmp_path, "powerboard-factory-data/factory-timestamp", b"1678086418\0")
    return tmp_path


def test_demo_barebox():
    bb = Barebox.from_devicetree(None)
    assert bb.version == "barebox-2022.11.0-20221121-1"
    assert bb.baseboard_release == "lxatac-S01-R03-B02-C00"
    assert bb.powerboard_release == "lxatac-S05-R03-V01-C00"
    assert bb.baseboard_timestamp == 1678086417
    assert bb.powerboard_timestamp == 1678086418


def test_barebox_from_files(chosen):
    bb = Barebox.from_devicetree(chosen)
    assert bb.version == "barebox-2022.11.0-20221121-1"
    assert bb.baseboard_release == "lxatac-S01-R03-B02-C07"
    assert bb.powerboard_release == "lxatac-S05-R03-V01-C00"
    assert bb.baseboard_timestamp == 1678086417


def test_format_release_pads_changeset():
    assert format_release("board-C??", 3) == "board-C03"


def test_format_release_without_placeholder_is_unchanged():
    assert format_release("lxatac-S05-R03-V01-C00", 12) == "lxatac-S05-R03-V01-C00"


def test_read_property_strips_nul(tmp_path):
    _write_prop(tmp_path, "prop", b"hello\0")
    assert read_dt_property("prop", tmp_path) == "hello"


def test_read_property_requires_nul(tmp_path):
    _write_prop(tmp_path, "prop", b"hello")
    with pytest.raises(ValueError):
        read_dt_property("prop", tmp_path)


def test_read_property_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_dt_property("missing", tmp_path)


def test_read_u32_roundtrip(tmp_path):
    _write_prop(tmp_path, "num", b"4294967295\0")
    assert read_dt_property_u32("num", tmp_path) == 0xFFFFFFFF


@pytest.mark.parametrize("text", [b"-1\0", b"4294967296\0", b"abc\0", b"\0"])
def test_read_u32_rejects_invalid(tmp_path, text):
    _write_prop(tmp_path, "num", text)
    with pytest.raises(ValueError):
        read_dt_property_u32("num", tmp_path)


def test_demo_unknown_property():
    with pytest.raises(KeyError):
        read_dt_property("nonexistent", None)


def test_uname_matches_os():
    uts = os.uname()
    u = Uname.get()
    assert (u.sysname, u.nodename, u.release, u.version, u.machine) == (
        uts.sysname,
        uts.nodename,
        uts.release,
        uts.version,
        uts.machine,
    )