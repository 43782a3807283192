from __future__ import annotations

import os
import shutil
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from typing import Sequence

import structlog

from promote_release.core import SmokeTestError

log = structlog.get_logger(__name__)

NOT_FOUND_BODY = b"404: Not Found\n"


def resolve_request(path: str, directories: Sequence[Path]) -> Path | None:
    """
    Map a request path to the first file named like its last segment,
    searching `directories` in order.
    """
    name = path.split("?", 1)[0].rsplit("/", 1)[-1]
    if not name or name in (".", ".."):
        return None
    for d in directories:
        candidate = d / name
        if candidate.is_file():
            return candidate
    return None


def _make_handler(directories: Sequence[Path]) -> type[BaseHTTPRequestHandler]:
    dirs = list(directories)

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:
            found = resolve_request(self.path, dirs)
            if found is None:
                self.send_response(404)
                self.send_header("Content-Length", str(len(NOT_FOUND_BODY)))
                self.end_headers()
                self.wfile.write(NOT_FOUND_BODY)
                return
            with found.open("rb") as f:
                self.send_response(200)
                self.send_header("Content-Length", str(os.fstat(f.fileno()).st_size))
                self.end_headers()
                shutil.copyfileobj(f, self.wfile)

        def log_message(self, format: str, *args: object) -> None:
            log.debug("smoke server request", request=format % args)

    return Handler


class LocalDistServer:
    """
    Static file server on an OS-assigned 127.0.0.1 port, serving one
    request at a time from a background thread.
    """

    def __init__(self, directories: Sequence[Path]) -> None:
        self.directories = list(directories)
        try:
            self._server = HTTPServer(("127.0.0.1", 0), _make_handler(self.directories))
        except OSError as e:
            raise SmokeTestError(f"failed to bind the smoke test server: {e}") from e
        self._thread = threading.Thread(
            target=self._server.serve_forever, name="smoke-server", daemon=True
        )
        self._thread.start()
        log.info("smoke test server listening", addr=self.addr)

    @property
    def addr(self) -> str:
        host, port = self._server.server_address[:2]
        return f"{host}:{port}"

    def close(self) -> None:
        if not self._thread.is_alive():
            return
        log.info("shutting down smoke test server")
        self._server.shutdown()
        self._server.server_close()
        self._thread.join()

    def __enter__(self) -> "LocalDistServer":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
