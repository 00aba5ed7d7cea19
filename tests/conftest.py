# tests/conftest.py
"""
Local HTTP server used by the requester and worker tests.

Routes:
- /ok                -> 200 "hello"
- /json              -> 200 {"name": "test", "count": 3}
- /status/<code>     -> <code> "status <code>"
- /slow?delay=<sec>  -> waits before sending anything
- /slow-body         -> sends headers and half the body, then stalls
- /trickle?count=<n>&interval=<sec> -> sends the body one byte at a time
- /set-cookie        -> 200 with Set-Cookie: session=abc
- /echo              -> 200 JSON of method, path, headers and body
- <absolute URL>     -> requests arriving through the server acting as a proxy
"""
from __future__ import annotations

import json
import socket
import threading
import time
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Dict, List
from urllib.parse import parse_qs, urlsplit

import pytest


@dataclass
class RecordedRequest:
    method: str
    path: str
    headers: Dict[str, str]
    body: bytes


@dataclass
class LocalHttpServer:
    base_url: str
    requests: List[RecordedRequest] = field(default_factory=list)

    def url(self, path: str) -> str:
        return self.base_url + path


def _make_handler(server_state: LocalHttpServer):
    class Handler(BaseHTTPRequestHandler):
        protocol_version = "HTTP/1.1"

        def log_message(self, format, *args):  # noqa: A002
            return None

        def _send(self, status: int, body: bytes, headers: Dict[str, str] | None = None) -> None:
            self.send_response(status)
            self.send_header("Content-Length", str(len(body)))
            for k, v in (headers or {}).items():
                self.send_header(k, v)
            self.end_headers()
            self.wfile.write(body)

        def _handle(self) -> None:
            length = int(self.headers.get("Content-Length") or 0)
            body = self.rfile.read(length) if length else b""
            server_state.requests.append(
                RecordedRequest(method=self.command, path=self.path, headers=dict(self.headers), body=body)
            )

            if self.path.startswith("http://"):
                self._send(200, self.path.encode("utf-8"))
                return

            parts = urlsplit(self.path)
            path = parts.path
            query = parse_qs(parts.query)

            if path == "/ok":
                self._send(200, b"hello", {"Content-Type": "text/plain; charset=utf-8"})
            elif path == "/json":
                self._send(200, b'{"name": "test", "count": 3}', {"Content-Type": "application/json"})
            elif path == "/html":
                self._send(
                    200,
                    b"<html><head><title>Sign in</title></head><body><form id='login'></form></body></html>",
                    {"Content-Type": "text/html"},
                )
            elif path.startswith("/status/"):
                code = int(path.rsplit("/", 1)[1])
                self._send(code, f"status {code}".encode("utf-8"))
            elif path == "/slow":
                time.sleep(float(query.get("delay", ["1"])[0]))
                self._send(200, b"late")
            elif path == "/slow-body":
                payload = b"x" * 64
                self.send_response(200)
                self.send_header("Content-Length", str(len(payload) * 2))
                self.end_headers()
                self.wfile.write(payload)
                self.wfile.flush()
                time.sleep(1.0)
                try:
                    self.wfile.write(payload)
                except OSError:
                    pass
            elif path == "/trickle":
                count = int(query.get("count", ["10"])[0])
                interval = float(query.get("interval", ["0.3"])[0])
                self.send_response(200)
                self.send_header("Content-Length", str(count))
                self.end_headers()
                try:
                    for _ in range(count):
                        self.wfile.write(b"x")
                        self.wfile.flush()
                        time.sleep(interval)
                except OSError:
                    pass
            elif path == "/set-cookie":
                self._send(200, b"cookie set", {"Set-Cookie": "session=abc; Path=/"})
            elif path == "/echo":
                echo = {
                    "method": self.command,
                    "path": self.path,
                    "headers": dict(self.headers),
                    "body": body.decode("latin-1"),
                }
                self._send(200, json.dumps(echo).encode("utf-8"), {"Content-Type": "application/json"})
            else:
                self._send(404, b"not found")

        do_GET = _handle
        do_POST = _handle
        do_PUT = _handle
        do_PATCH = _handle
        do_DELETE = _handle

    return Handler


@pytest.fixture
def http_server():
    state = LocalHttpServer(base_url="")
    server = ThreadingHTTPServer(("127.0.0.1", 0), _make_handler(state))
    server.daemon_threads = True
    host, port = server.server_address[:2]
    state.base_url = f"http://{host}:{port}"

    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield state
    finally:
        server.shutdown()
        server.server_close()


@pytest.fixture
def closed_port_url() -> str:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return f"http://127.0.0.1:{port}/"
