# tests/conftest.py
import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
os.environ.setdefault("MPLBACKEND", "Agg")

import json
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest


class FakeCollector:
    """Colector HTTP local: responde con `status` tras esperar `delay` segundos."""

    def __init__(self) -> None:
        self.status = 201
        self.body = '{"ok": true}'
        self.delay = 0.0
        self.drip = 0.0  # pausa entre bytes del cuerpo
        self.requests = []

        collector = self

        class Handler(BaseHTTPRequestHandler):
            def do_POST(self):
                length = int(self.headers.get("Content-Length", 0))
                raw = self.rfile.read(length).decode("utf-8")
                collector.requests.append(
                    {"path": self.path, "headers": dict(self.headers), "json": json.loads(raw)}
                )
                if collector.delay:
                    time.sleep(collector.delay)
                try:
                    payload = collector.body.encode("utf-8")
                    self.send_response(collector.status)
                    self.send_header("Content-Type", "application/json")
                    self.send_header("Content-Length", str(len(payload)))
                    self.end_headers()
                    if collector.drip:
                        for i in range(len(payload)):
                            self.wfile.write(payload[i:i + 1])
                            time.sleep(collector.drip)
                    else:
                        self.wfile.write(payload)
                except (BrokenPipeError, ConnectionResetError):
                    # El cliente ya abandonó por timeout
                    pass

            def log_message(self, *args):
                pass

        self.server = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
        self.server.daemon_threads = True
        self.thread = threading.Thread(target=self.server.serve_forever, daemon=True)

    @property
    def base_url(self) -> str:
        host, port = self.server.server_address[:2]
        return f"http://{host}:{port}"

    def start(self) -> None:
        self.thread.start()

    def stop(self) -> None:
        self.server.shutdown()
        self.server.server_close()


@pytest.fixture
def collector():
    c = FakeCollector()
    c.start()
    yield c
    c.stop()


@pytest.fixture
def closed_port_url():
    # Puerto reservado y liberado: nadie escucha ahí
    server = ThreadingHTTPServer(("127.0.0.1", 0), BaseHTTPRequestHandler)
    host, port = server.server_address[:2]
    server.server_close()
    return f"http://{host}:{port}"
