import json
import threading
import time
from collections import Counter
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import parse_qs, urlsplit

import pytest


class _Handler(BaseHTTPRequestHandler):
    hits: Counter = Counter()

    def log_message(self, format, *args):
        pass

    def _reply(self, status, body=b"", headers=None):
        self.send_response(status)
        for key, value in (headers or {}).items():
            self.send_header(key, value)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    def _route(self):
        parts = urlsplit(self.path)
        self.hits[parts.path] += 1
        length = int(self.headers.get("Content-Length") or 0)
        payload = self.rfile.read(length) if length else b""

        if parts.path == "/ok":
            self._reply(200, b"<html>ok</html>", {"Content-Type": "text/html"})
        elif parts.path == "/redir":
            self._reply(301, headers={"Location": "/ok"})
        elif parts.path == "/bad":
            self._reply(500, b"boom")
        elif parts.path == "/slow":
            time.sleep(1.0)
            try:
                self._reply(200, b"late")
            except OSError:
                pass
        elif parts.path == "/echo":
            echoed = {
                "method": self.command,
                "query": {k: v[0] for k, v in parse_qs(parts.query).items()},
                "x_test": self.headers.get("X-Test"),
                "content_type": self.headers.get("Content-Type"),
                "body": payload.decode("utf-8"),
            }
            self._reply(200, json.dumps(echoed, sort_keys=True).encode("utf-8"))
        else:
            self._reply(404, b"missing")

    do_GET = _route
    do_POST = _route
    do_HEAD = _route


@pytest.fixture
def local_server():
    """Serve a handful of fixed routes on 127.0.0.1; yields (base_url, hit counter)."""

    _Handler.hits = Counter()
    server = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    host, port = server.server_address[:2]
    try:
        yield f"http://{host}:{port}", _Handler.hits
    finally:
        server.shutdown()
        server.server_close()
