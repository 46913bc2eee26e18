# tacpower

Building blocks for a test automation controller that switches and watches
the power supply of a device under test (DUT), drives its status LEDs, reads
its sensors and serves files over HTTP.

## Modules

- `tacpower.measurement`: `Timestamp` (a point on the monotonic clock) and
  `Measurement` (a value with a timestamp). `Timestamp.to_js()` gives
  milliseconds since the Unix epoch; `Measurement.to_dict()` gives a
  JSON-ready dict.
- `tacpower.led`: `BlinkPattern` (with `solid()`, `is_on()`, `is_off()`,
  `is_blinking()`, `to_dict()`), the chainable `BlinkPatternBuilder`
  (`fade_to`, `step_to`, `stay_for`, `repeat`, `once`, `forever`),
  `SysfsLed` for LEDs below `/sys/class/leds` (brightness, pattern trigger,
  multicolor intensities), `DemoLed` that only logs its writes,
  `get_led_checked()` and `color_to_rgb()`.
- `tacpower.power_states`: `OutputRequest` and `OutputState` enums,
  `MedianFilter`, `TickCounter` and `TickReader` for progress checks, and the
  helpers `compat_request()`, `compat_response()` (the "0"/"1" power port
  convention) and `led_pattern_for_state()`.
- `tacpower.dut_power`: `DutPowerController`, which drives a power line and a
  discharge line from voltage/current feedback. Readings pass through a
  four-value median filter; the output is turned off on over-voltage
  (> 48 V), inverted polarity (< -1 V), over-current (> 5 A) or readings
  older than 300 ms. It can be stepped by hand with `step()` or run in a
  background thread with `start()`/`stop()` or as a context manager.
- `tacpower.temperatures`: `read_soc_temperature()`, the `Warning` levels
  (above 70 °C high, above 90 °C critical) and `TemperatureMonitor`.
- `tacpower.system`: `Uname.get()`, devicetree property readers and
  `Barebox.from_devicetree()`.
- `tacpower.journal`: `UnitFilter`, `parse_query()`, `select_history()`,
  `sse_event()` and `stream_entries()` for turning journal records into
  server-sent events.
- `tacpower.iobus`: `ServerInfo`, `Nodes`, `supply_fault()` and
  `IoBusMonitor`, which polls an IOBus server over HTTP (or serves demo
  responses when its `server_url` is `None`).
- `tacpower.regulators`: `regulator_set()` and `Regulator`, switching
  regulators through their sysfs `state` file.
- `tacpower.setup_mode`: `SetupMode`, which allows reading and writing the
  authorized keys file only while setup mode is active, and only ever lets
  clients leave setup mode.
- `tacpower.serve_dir`: static file serving with `If-Modified-Since`
  handling, pre-compressed `.gz` variants, directory listings and a 404 page.
- `tacpower.http_server`: `HttpServer`, a WSGI application that routes to the
  web interface directory, `/srv`, the editable labgrid configuration files
  and `/v1/openapi.json`, plus the `tacpower-http` command.

Several modules take a `base_dir` (or similar) argument; `None` selects fixed
demo data so they can be used without the hardware.

## Installing

```
pip install .
```

## Example

```python
from datetime import timedelta

from tacpower.led import BlinkPatternBuilder

pattern = (
    BlinkPatternBuilder(1.0)
    .step_to(1.0).stay_for(timedelta(milliseconds=50))
    .step_to(0.0).stay_for(timedelta(milliseconds=50))
    .stay_for(timedelta(milliseconds=400))
    .forever()
)
print(pattern.is_blinking())  # True
```

## Running the HTTP server

```
tacpower-http --help
```

Options:

- `--host` (default `::`, which also accepts IPv4) and `--port`
  (default 80, or 8080 with `--demo`).
- `--demo` serves `web/build`, `demo_files/srv/www` and the configuration
  files below `demo_files` relative to the working directory.
- `--openapi FILE` serves that file at `/v1/openapi.json`; without it that
  path answers 404.

Configuration files under `/v1/labgrid/...` can be read with GET and replaced
with PUT.

## What it does not do

The package has no message broker or REST/MQTT topic layer, no ADC or GPIO
drivers (the power controller is given line objects and a feedback callable),
no access to the systemd journal itself (only filtering and encoding of
records you pass in), and no display or button user interface. The HTTP
server does not expose the journal, setup mode or power control endpoints.

## Tests

```
pip install .[test]
pytest
```