"""Serving of static files and directory listings from disk."""

from __future__ import annotations

import html
import mimetypes
import os
import stat
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

BUILD_TIMESTAMP = 0

HTML_MIME = "text/html;charset=utf-8"

_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

DIR_LISTING = """<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8" />
    <link rel="icon" href="/favicon.ico" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <meta name="description" content="Directory Listing" />
    <link rel="apple-touch-icon" href="/logo192.png" />
    <title>Index of <DIR_NAME/></title>
    <style>
      * {
        margin: 0;
        padding: 0;
      }

      a {
        text-decoration: none;
      }

      a:hover {
        text-decoration: underline;
      }

      a:visited {
        color: black;
      }

      h2 {
        color: #606060;
        margin-top: 0.5em;
        margin-bottom: 0.5em;
      }

      img {
        float: right;
        width: 7em;
      }

      main {
        background-color: #fbfbfb;
        box-shadow: 0 0 1em #00000012;
        margin: 0 auto;
        max-width: 60em;
        min-height: 100vh;
        padding: 2em;
        width: 100%;
      }

      table {
        margin-top: 7em;
        width: 100%;
      }

      td {
        text-align: right;
        padding: 0.2em 0.5em;
      }

      td:first-child {
        text-align: left;
      }

      tr:nth-child(even) {
        background-color: #00000012;
      }
    </style>
  </head>
  <body>
    <main>
      <img src="/logo.svg" />
      <h1>Index of</h1>
      <h2><DIR_NAME/></h2>
      <a href="/">Back to the web interface</a>
      <table>
        <tr>
          <th>Name</th>
          <th>Last modified</th>
          <th>Size</th>
        </tr>
        <TABLE_ROWS/>
      </table>
    </main>
  </body>
</html>
"""

NOT_FOUND = """<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8" />
    <link rel="icon" href="/favicon.ico" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <meta name="description" content="File not found" />
    <link rel="apple-touch-icon" href="/logo192.png" />
    <title>404 Not Found</title>
    <style>
      a:visited {
        color: black;
      }

      img {
        width: 10em;
      }

      main {
        background-color: #fbfbfb;
        border-radius: 2em;
        box-shadow: 0 0 1em #00000045;
        left: 50%;
        max-width: 50em;
        padding: 2em;
        position: absolute;
        text-align: center;
        top: 50%;
        transform: translate(-50%,-50%);
      }
    </style>
  </head>
  <body>
    <main>
      <img src="/logo.svg" />
      <h1>404 Not Found</h1>
      <p>Sorry. I could not find what you are looking for.</p>
      <a href="/">Go back to the user interface?</a>
    </main>
  </body>
</html>
"""

Headers = Mapping[str, "str | Sequence[str]"]


@dataclass
class Response:
    """A minimal HTTP response."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @classmethod
    def not_found(cls) -> Response:
        return cls(404, {"Content-Type": HTML_MIME}, NOT_FOUND.encode())


def _header_values(headers: Headers | None, name: str) -> list[str]:
    if not headers:
        return []
    wanted = name.lower()
    values: list[str] = []
    for key, value in headers.items():
        if key.lower() != wanted:
            continue
        if isinstance(value, str):
            values.append(value)
        else:
            values.extend(value)
    return values


def _rfc2822(ts: float, zone: str) -> str:
    dt = datetime.fromtimestamp(ts, timezone.utc)
    return (
        f"{_WEEKDAYS[dt.weekday()]}, {dt.day:02d} {_MONTHS[dt.month - 1]} "
        f"{dt.year:04d} {dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} {zone}"
    )


def _encode_text(text: str) -> str:
    return html.escape(text, quote=False)


def _encode_attribute(text: str) -> str:
    return _encode_text(text).replace('"', "&quot;")


def _mime_for(path: Path) -> str:
    mime, _ = mimetypes.guess_type(path.name)
    if mime is None:
        return "application/octet-stream"
    if mime.startswith("text/"):
        return f"{mime};charset=utf-8"
    return mime


def clamp_timestamp(ts: float, build_timestamp: int = BUILD_TIMESTAMP) -> float:
    """Clamp a file timestamp (seconds since the epoch) to the build time.

    File timestamps in images may be faked to be old; clamping makes sure
    clients reload files after an update.
    """
    return max(float(build_timestamp), ts)


def http_date(ts: float) -> str:
    """Format seconds since the epoch as an HTTP date in GMT."""
    return _rfc2822(ts, "GMT")


def safe_join(base_path: str | Path, rel_path: str) -> tuple[Path, bool]:
    """Join rel_path to base_path keeping only normal path components.

    Returns the joined path and whether it is the base path itself.
    """
    base = Path(base_path)
    parts = [part for part in rel_path.split("/") if part not in ("", ".", "..")]
    path = base.joinpath(*parts)
    return path, path == base


def redirect_dir(url_path: str) -> Response:
    """Redirect to the same URL with a trailing slash."""
    if not url_path.endswith("/"):
        url_path += "/"
    return Response(302, {"Location": url_path})


def dir_listing(fs_path: str | Path, is_root: bool) -> Response:
    """Return an HTML page listing the contents of a directory."""
    fs_path = Path(fs_path)
    rows: list[tuple[bool, str, str]] = []

    with os.scandir(fs_path) as entries:
        for entry in entries:
            metadata = entry.stat(follow_symlinks=False)
            is_dir = stat.S_ISDIR(metadata.st_mode)
            last_modified = _rfc2822(metadata.st_mtime, "+0000")
            name = os.fsencode(entry.name).decode("utf-8", "replace")
            if is_dir:
                name += "/"

            row = f"""<tr>
              <td><a href="{_encode_attribute(name)}">{_encode_text(name)}</a></td>
              <td>{_encode_text(last_modified)}</td>
              <td>{metadata.st_size}</td>
            </tr>"""
            rows.append((is_dir, name, row))

    # Directories first, otherwise alphabetical.
    rows.sort(key=lambda r: (not r[0], r[1].encode("utf-8")))

    table_rows = ""
    if not is_root:
        table_rows += """<tr>
                  <td><a href="..">..</a></td>
                  <td>-</td>
                  <td>-</td>
                """
    table_rows += "".join(row for _, _, row in rows)

    # Placeholders look like tags so names (which are escaped) cannot inject them.
    page = DIR_LISTING.replace("<DIR_NAME/>", _encode_text(str(fs_path))).replace(
        "<TABLE_ROWS/>", table_rows
    )
    return Response(200, {"Content-Type": HTML_MIME}, page.encode())


def serve_file(
    headers: Headers | None,
    fs_path: str | Path,
    build_timestamp: int = BUILD_TIMESTAMP,
) -> Response:
    """Serve a file, honouring If-Modified-Since and a matching .gz variant.

    Raises OSError if the file cannot be read.
    """
    fs_path = Path(fs_path)
    meta = fs_path.stat()
    last_modified = http_date(clamp_timestamp(meta.st_mtime, build_timestamp))

    if_modified_since = _header_values(headers, "If-Modified-Since")
    if if_modified_since and if_modified_since[-1] == last_modified:
        return Response(304)

    gz_path = Path(f"{fs_path}.gz")
    try:
        gz_meta = gz_path.stat()
        have_gz = stat.S_ISREG(gz_meta.st_mode) and gz_meta.st_mtime_ns == meta.st_mtime_ns
    except OSError:
        have_gz = False

    accept_gz = any(
        encoding.strip() == "gzip"
        for value in _header_values(headers, "Accept-Encoding")
        for encoding in value.split(",")
    )

    response_headers = {
        "Last-Modified": last_modified,
        "Cache-Control": "max-age=30, must-revalidate",
        "Content-Type": _mime_for(fs_path),
    }
    body = fs_path.read_bytes()

    if have_gz and accept_gz:
        response_headers["Content-Encoding"] = "gzip"
        return Response(200, response_headers, gz_path.read_bytes())
    return Response(200, response_headers, body)


def serve_dir(
    base_path: str | Path,
    directory_listings: bool,
    url_path: str,
    rel_path: str,
    headers: Headers | None = None,
    build_timestamp: int = BUILD_TIMESTAMP,
) -> Response:
    """Serve rel_path below base_path, answering 404 if anything goes wrong."""
    path, is_root = safe_join(base_path, rel_path)
    index_path = path / "index.html"
    is_dir = path.is_dir()
    has_index = is_dir and index_path.is_file()

    try:
        if not is_dir:
            return serve_file(headers, path, build_timestamp)
        if not url_path.endswith("/"):
            return redirect_dir(url_path)
        if directory_listings and not has_index:
            return dir_listing(path, is_root)
        return serve_file(headers, index_path, build_timestamp)
    except OSError:
        return Response.not_found()