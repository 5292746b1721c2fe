from __future__ import annotations

import socket
import threading
import time

import pytest

from wxrisk.providers.base import HTTPProvider, RequestConfig, UpstreamUnavailable
from wxrisk.providers.metar import AviationWeatherProvider


class SilentServer:
    """Accepts TCP connections and never answers them."""

    def __init__(self) -> None:
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._sock.bind(("127.0.0.1", 0))
        self._sock.listen(8)
        self._sock.settimeout(0.05)
        self._stopped = threading.Event()
        self._connections = []
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    @property
    def url(self) -> str:
        host, port = self._sock.getsockname()
        return f"http://{host}:{port}/api/data/metar"

    @property
    def attempts(self) -> int:
        return len(self._connections)

    def _serve(self) -> None:
        while True:
            try:
                conn, _ = self._sock.accept()
            except socket.timeout:
                if self._stopped.is_set():
                    return
                continue
            self._connections.append(conn)

    def stop(self) -> None:
        self._stopped.set()
        self._thread.join(timeout=2)
        for conn in self._connections:
            conn.close()
        self._sock.close()


@pytest.fixture
def silent_server():
    server = SilentServer()
    yield server
    server.stop()


def test_timeout_is_not_retried(silent_server):
    provider = AviationWeatherProvider(base_url=silent_server.url, request_config=RequestConfig(timeout=0.3))

    started = time.monotonic()
    with pytest.raises(UpstreamUnavailable):
        provider.latest("KJFK")
    elapsed = time.monotonic() - started

    silent_server.stop()
    assert silent_server.attempts == 1
    assert elapsed < 1.0


def test_session_retries_server_errors_only():
    provider = HTTPProvider(request_config=RequestConfig(retries=3))
    retry = provider.session.get_adapter("https://example.test").max_retries

    assert retry.status == 3
    assert retry.connect == 0
    assert retry.read == 0
    assert 503 in retry.status_forcelist
    assert 429 not in retry.status_forcelist
