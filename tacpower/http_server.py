"""The HTTP server exposing the web interface, static files and config files."""

from __future__ import annotations

import argparse
import socket
from collections.abc import Iterable, Mapping
from http import HTTPStatus
from pathlib import Path
from typing import Any, Callable
from urllib.parse import unquote, urlsplit
from wsgiref.simple_server import WSGIServer, make_server

from .serve_dir import BUILD_TIMESTAMP, Headers, Response, serve_dir

WEBUI_DIR = "/usr/share/tacd/webui"
EXTRA_DIR = "/srv/www"
FS_PREFIX = ""
FALLBACK_HOST = "::"
FALLBACK_PORT = 80

DEMO_WEBUI_DIR = "web/build"
DEMO_EXTRA_DIR = "demo_files/srv/www"
DEMO_FS_PREFIX = "demo_files"
DEMO_PORT = 8080

# Files that may be read and written from the web interface.
EXPOSED_FILES_RW = (
    ("/etc/labgrid/configuration.yaml", "/v1/labgrid/configuration"),
    ("/etc/labgrid/environment", "/v1/labgrid/environment"),
    ("/etc/labgrid/userconfig.yaml", "/v1/labgrid/userconfig"),
)

OPENAPI_PATH = "/v1/openapi.json"


def _method_not_allowed() -> Response:
    return Response(405)


class _IPv6WSGIServer(WSGIServer):
    address_family = socket.AF_INET6


class HttpServer:
    """Routes requests to the web UI, extra files and editable config files."""

    def __init__(
        self,
        webui_dir: str | Path = WEBUI_DIR,
        extra_dir: str | Path = EXTRA_DIR,
        fs_prefix: str = FS_PREFIX,
        openapi_json: bytes | None = None,
        build_timestamp: int = BUILD_TIMESTAMP,
    ) -> None:
        self.openapi_json = openapi_json
        self.build_timestamp = build_timestamp
        self.files = {
            web_path: Path(fs_prefix + fs_path) for fs_path, web_path in EXPOSED_FILES_RW
        }
        # Checked in order; the root mount matches everything.
        self.dirs = (
            ("/srv", Path(extra_dir), True),
            ("/", Path(webui_dir), False),
        )

    def handle(
        self,
        method: str,
        path: str,
        headers: Headers | None = None,
        body: bytes = b"",
    ) -> Response:
        """Answer a single request."""
        method = method.upper()
        url_path = urlsplit(path).path or "/"

        if url_path == OPENAPI_PATH:
            if method != "GET":
                return _method_not_allowed()
            if self.openapi_json is None:
                return Response(404)
            return Response(200, {"Content-Type": "application/json"}, self.openapi_json)

        if url_path in self.files:
            fs_path = self.files[url_path]
            if method == "GET":
                return self._read_file(fs_path)
            if method == "PUT":
                return self._write_file(fs_path, body)
            return _method_not_allowed()

        for web_path, fs_dir, listings in self.dirs:
            rel_path = self._match(web_path, url_path)
            if rel_path is None:
                continue
            if method != "GET":
                return _method_not_allowed()
            return serve_dir(
                fs_dir, listings, url_path, unquote(rel_path), headers, self.build_timestamp
            )

        return Response(404)

    @staticmethod
    def _match(web_path: str, url_path: str) -> str | None:
        if web_path == "/":
            return url_path[1:]
        if url_path == web_path:
            return ""
        if url_path.startswith(web_path + "/"):
            return url_path[len(web_path) + 1 :]
        return None

    @staticmethod
    def _read_file(fs_path: Path) -> Response:
        try:
            content = fs_path.read_bytes()
        except FileNotFoundError:
            return Response(404)
        except OSError:
            return Response(500)
        return Response(200, {"Content-Type": "application/octet-stream"}, content)

    @staticmethod
    def _write_file(fs_path: Path, body: bytes) -> Response:
        try:
            fs_path.write_bytes(body)
        except OSError as err:
            return Response(500, {"Content-Type": "text/plain"}, str(err).encode())
        return Response(204)

    def wsgi_app(
        self,
        environ: Mapping[str, Any],
        start_response: Callable[..., Any],
    ) -> Iterable[bytes]:
        """WSGI entry point."""
        headers = {
            key[5:].replace("_", "-").title(): value
            for key, value in environ.items()
            if key.startswith("HTTP_")
        }
        try:
            length = int(environ.get("CONTENT_LENGTH") or 0)
        except ValueError:
            length = 0
        body = environ["wsgi.input"].read(length) if length > 0 else b""

        path = environ.get("PATH_INFO") or "/"
        query = environ.get("QUERY_STRING")
        if query:
            path = f"{path}?{query}"

        response = self.handle(environ.get("REQUEST_METHOD", "GET"), path, headers, body)
        status = HTTPStatus(response.status)
        response_headers = list(response.headers.items())
        response_headers.append(("Content-Length", str(len(response.body))))
        start_response(f"{status.value} {status.phrase}", response_headers)
        return [response.body]

    def serve(self, host: str = FALLBACK_HOST, port: int = FALLBACK_PORT) -> None:
        """Listen on host:port and serve requests forever.

        An IPv6 wildcard address also accepts IPv4 connections.
        """
        server_class = _IPv6WSGIServer if ":" in host else WSGIServer
        with make_server(host, port, self.wsgi_app, server_class=server_class) as httpd:
            httpd.serve_forever()


def main(argv: list[str] | None = None) -> int:
    """Run the HTTP server."""
    parser = argparse.ArgumentParser(description="Serve the web interface and files.")
    parser.add_argument("--demo", action="store_true", help="serve from local demo files")
    parser.add_argument("--host", default=FALLBACK_HOST)
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--openapi", type=Path, default=None, help="openapi.json to serve")
    args = parser.parse_args(argv)

    openapi = args.openapi.read_bytes() if args.openapi is not None else None
    if args.demo:
        server = HttpServer(DEMO_WEBUI_DIR, DEMO_EXTRA_DIR, DEMO_FS_PREFIX, openapi)
        port = DEMO_PORT if args.port is None else args.port
    else:
        server = HttpServer(openapi_json=openapi)
        port = FALLBACK_PORT if args.port is None else args.port

    try:
        server.serve(args.host, port)
    except OSError as err:
        raise SystemExit(
            f"Could not bind web API to port, is there already another service running? ({err})"
        ) from err
    return 0