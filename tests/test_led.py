from datetime import timedelta

import pytest

from tacpower.led import (
    BlinkPattern,
    BlinkPatternBuilder,
    DemoLed,
    SysfsLed,
    color_to_rgb,
    get_led_checked,
)


@pytest.fixture
def led_dir(tmp_path):
    led = tmp_path / "tac:green:test"
    led.mkdir()
    (led / "max_brightness").write_text("255\n")
    (led / "multi_index").write_text("red green blue\n")
    return tmp_path


def test_solid_on_and_off():
    assert BlinkPattern.solid(1.0).is_on()
    assert BlinkPattern.solid(0.0).is_off()
    assert not BlinkPattern.solid(1.0).is_blinking()


def test_threshold_is_half_brightness():
    assert BlinkPattern.solid(0.5).is_on()
    assert not BlinkPattern.solid(0.49).is_on()


def test_error_pattern_is_blinking():
    builder = BlinkPatternBuilder(1.0)
    for _ in range(3):
        builder = (
            builder.step_to(1.0)
            .stay_for(timedelta(milliseconds=50))
            .step_to(0.0)
            .stay_for(timedelta(milliseconds=50))
        )
    pattern = builder.stay_for(timedelta(milliseconds=400)).forever()
    assert pattern.is_blinking()
    assert pattern.repetitions == -1
    assert pattern.steps[-1] == (0.0, timedelta(milliseconds=400))


def test_stay_for_keeps_last_value():
    duration = timedelta(milliseconds=300)
    pattern = BlinkPatternBuilder(0.3).stay_for(duration).once()
    assert pattern.steps == [(0.3, duration)]
    assert pattern.repetitions == 1


def test_step_to_has_zero_duration():
    pattern = BlinkPatternBuilder(0.0).step_to(0.7).repeat(4)
    assert pattern.steps == [(0.7, timedelta(0))]
    assert pattern.repetitions == 4


def test_solid_to_dict():
    assert BlinkPattern.solid(1.0).to_dict() == {
        "repetitions": 1,
        "steps": [[1.0, {"secs": 1, "nanos": 0}], [1.0, {"secs": 1, "nanos": 0}]],
    }


def test_to_dict_sub_second_duration():
    pattern = BlinkPatternBuilder(0.0).fade_to(1.0, timedelta(milliseconds=50)).forever()
    assert pattern.to_dict()["steps"] == [[1.0, {"secs": 0, "nanos": 50000000}]]


def test_set_pattern_writes_sysfs_files(led_dir):
    led = SysfsLed("tac:green:test", led_dir)
    led.set_pattern(BlinkPattern.solid(1.0))
    base = led_dir / "tac:green:test"
    assert (base / "trigger").read_text() == "pattern"
    assert (base / "pattern").read_text() == "255 1000 255 1000 "
    assert (base / "repeat").read_text() == "1"


def test_set_pattern_rounds_half_away_from_zero(led_dir):
    (led_dir / "tac:green:test" / "max_brightness").write_text("3\n")
    led = SysfsLed("tac:green:test", led_dir)
    pattern = BlinkPatternBuilder(0.0).fade_to(0.5, timedelta(milliseconds=100)).forever()
    led.set_pattern(pattern)
    assert led.read_file("pattern") == "2 100"
    assert led.read_file("repeat") == "-1"


def test_brightness_round_trip(led_dir):
    led = SysfsLed("tac:green:test", led_dir)
    led.set_brightness(42)
    assert led.brightness() == 42
    assert led.max_brightness() == 255


def test_set_rgb_color_follows_channel_order(led_dir):
    led = SysfsLed("tac:green:test", led_dir)
    led.set_rgb_color(1, 2, 3)
    assert led.read_file("multi_intensity") == "1 2 3"
    (led_dir / "tac:green:test" / "multi_index").write_text("blue red green\n")
    led.set_rgb_color(1, 2, 3)
    assert (led_dir / "tac:green:test" / "multi_intensity").read_text() == "3 1 2 "


def test_set_rgb_color_unknown_channel(led_dir):
    (led_dir / "tac:green:test" / "multi_index").write_text("red amber\n")
    led = SysfsLed("tac:green:test", led_dir)
    with pytest.raises(ValueError):
        led.set_rgb_color(1, 2, 3)


def test_missing_led(tmp_path):
    with pytest.raises(FileNotFoundError):
        SysfsLed("missing", tmp_path)
    assert get_led_checked("missing", tmp_path) is None


def test_get_led_checked_finds_led(led_dir):
    led = get_led_checked("tac:green:test", led_dir)
    assert led.max_brightness() == 255


def test_demo_led_reads_table():
    led = get_led_checked("rgb:status", None)
    assert isinstance(led, DemoLed)
    assert led.max_brightness() == 65535
    assert led.read_file("multi_index") == "red green blue"


def test_demo_led_missing_file():
    led = DemoLed("tac:green:out0")
    with pytest.raises(FileNotFoundError):
        led.read_file("multi_index")


def test_demo_led_set_pattern_records_writes():
    led = DemoLed("tac:green:out0")
    led.set_pattern(BlinkPattern.solid(1.0))
    assert led.written == {
        "trigger": "pattern",
        "pattern": "1 1000 1 1000 ",
        "repeat": "1",
    }


def test_color_to_rgb_uses_max_minus_one():
    led = DemoLed("rgb:status")
    assert color_to_rgb(led, (1.0, 0.0, 1.0)) == (65534, 0, 65534)
    assert led.written["multi_intensity"] == "65534 0 65534 "


def test_color_to_rgb_saturates_negative():
    led = DemoLed("rgb:status")
    assert color_to_rgb(led, (-1.0, 0.0, 0.0)) == (0, 0, 0)
    assert led.written["multi_intensity"] == "0 0 0 "