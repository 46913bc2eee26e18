import gc

import pytest

from tacpower.power_states import (
    MedianFilter,
    OutputRequest,
    OutputState,
    TickCounter,
    TickReader,
    compat_request,
    compat_response,
    led_pattern_for_state,
)


def test_output_request_from_int_roundtrip():
    for req in OutputRequest:
        assert OutputRequest(req.value) is req


def test_output_request_invalid_value():
    with pytest.raises(ValueError):
        OutputRequest(4)


def test_output_state_from_int_roundtrip():
    for state in OutputState:
        assert OutputState(state.value) is state


def test_output_state_invalid_value():
    with pytest.raises(ValueError):
        OutputState(8)


def test_median_filter_needs_full_window():
    filt = MedianFilter(4)
    assert filt.step(1.0) is None
    assert filt.step(1.0) is None
    assert filt.step(1.0) is None
    assert filt.step(1.0) == 1.0


def test_median_filter_even_window_mean_of_centre():
    filt = MedianFilter(4)
    results = [filt.step(v) for v in (2.0, 9.0, 2.0, -5.0)]
    assert results[-1] == 2.0


def test_median_filter_odd_window():
    filt = MedianFilter(3)
    results = [filt.step(v) for v in (5.0, 1.0, 3.0)]
    assert results == [None, None, 3.0]


def test_median_filter_rejects_single_transient():
    filt = MedianFilter(4)
    for v in (10.0, 10.0, 10.0):
        filt.step(v)
    assert filt.step(100.0) == 10.0
    assert filt.step(10.0) == 10.0


def test_median_filter_sliding_window():
    filt = MedianFilter(3)
    for v in (1.0, 1.0, 1.0):
        filt.step(v)
    assert filt.step(7.0) == 1.0
    assert filt.step(7.0) == 7.0


def test_median_filter_invalid_size():
    with pytest.raises(ValueError):
        MedianFilter(0)


def test_tick_reader_stale_without_progress():
    counter = TickCounter()
    reader = TickReader(counter)
    assert reader.is_stale() is True


def test_tick_reader_fresh_after_progress():
    counter = TickCounter()
    reader = TickReader(counter)
    counter.increment()
    assert reader.is_stale() is False
    assert reader.is_stale() is True


def test_tick_reader_stale_when_counter_gone():
    counter = TickCounter()
    reader = TickReader(counter)
    counter.increment()
    del counter
    gc.collect()
    assert reader.is_stale() is True


def test_compat_request_mapping():
    assert compat_request(0) is OutputRequest.Off
    assert compat_request(1) is OutputRequest.On
    assert compat_request(2) is None


def test_compat_response_mapping():
    assert compat_response(OutputState.On) == 1
    assert compat_response(OutputState.Changing) is None
    for state in OutputState:
        if state not in (OutputState.On, OutputState.Changing):
            assert compat_response(state) == 0


def test_led_pattern_on_and_off():
    assert led_pattern_for_state(OutputState.On).is_on()
    assert led_pattern_for_state(OutputState.Off).is_off()
    assert led_pattern_for_state(OutputState.OffFloating).is_off()
    assert led_pattern_for_state(OutputState.Changing) is None


@pytest.mark.parametrize(
    "state",
    [
        OutputState.InvertedPolarity,
        OutputState.OverCurrent,
        OutputState.OverVoltage,
        OutputState.RealtimeViolation,
    ],
)
def test_led_pattern_errors_blink_forever(state):
    pattern = led_pattern_for_state(state)
    assert pattern.is_blinking()
    assert pattern.repetitions == -1