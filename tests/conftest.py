"""
pytest configuration and fixtures.
"""

import socket
import threading
from typing import Generator, List, Optional

import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from httpupgrade import UpgradeConfig
from httpupgrade.handshake import build_upgrade_response, generate_secret_key, respond_to_upgrade
from httpupgrade.http import HTTPResponse, HTTPStatus, parse_request


@pytest.fixture
def sample_upgrade_request() -> bytes:
    """Sample upgrade request as a client sends it."""
    return (
        b"GET / HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Upgrade: hornetq-remoting\r\n"
        b"Connection: Upgrade\r\n"
        b"Sec-HornetQRemoting-Key: AAAAAAAAAAAAAAAAAAAAAA==\r\n"
        b"\r\n"
    )


@pytest.fixture
def config() -> UpgradeConfig:
    """Default test configuration."""
    return UpgradeConfig(host="127.0.0.1", port=8080, timeout=5.0, handshake_timeout=5.0)


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


class UpgradeTestServer:
    """
    Single-purpose upgrade server running in a background thread.

    Modes:
        accept     - valid 101 response, then echo whatever the client sends
        wrong_key  - 101 with an accept value computed from another key
        no_accept  - 101 without the accept header
        plain      - 200 OK, no upgrade
        silent     - read the request, never answer
        hang_up    - read the request, close the socket

    A non-zero ``delay`` holds the response back that many seconds.
    """

    def __init__(self, port: int, config: UpgradeConfig, mode: str = "accept", greeting: bytes = b""):
        self.port = port
        self.config = config
        self.mode = mode
        self.greeting = greeting
        self.delay = 0.0
        self.requests: List[bytes] = []
        self.received: List[bytes] = []

        self._listener: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self._clients: List[socket.socket] = []
        self._stop = threading.Event()

    def start(self):
        """Bind and start accepting in the background."""
        self._listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._listener.bind(('127.0.0.1', self.port))
        self._listener.listen(8)
        self._listener.settimeout(0.1)

        self._thread = threading.Thread(target=self._accept_loop, daemon=True)
        self._thread.start()

    def _accept_loop(self):
        while not self._stop.is_set():
            try:
                client, address = self._listener.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            self._clients.append(client)
            threading.Thread(target=self._serve, args=(client, address), daemon=True).start()

    def _serve(self, client: socket.socket, address):
        client.settimeout(5.0)
        try:
            data = b""
            while b"\r\n\r\n" not in data:
                chunk = client.recv(1024)
                if not chunk:
                    return
                data += chunk
            self.requests.append(data)

            if self.mode == "silent":
                self._stop.wait(10.0)
                return
            if self.mode == "hang_up":
                client.close()
                return

            if self.delay and self._stop.wait(self.delay):
                return

            client.sendall(self._response_for(parse_request(data, address)).to_bytes() + self.greeting)

            if self.mode == "accept":
                self._echo(client)
        except OSError:
            pass

    def _response_for(self, request) -> HTTPResponse:
        if self.mode == "accept":
            return respond_to_upgrade(request, self.config)
        if self.mode == "wrong_key":
            return build_upgrade_response(generate_secret_key(), self.config)
        if self.mode == "no_accept":
            return HTTPResponse(
                status=HTTPStatus.SWITCHING_PROTOCOLS,
                headers={"Upgrade": self.config.protocol, "Connection": "Upgrade"},
            )
        return HTTPResponse(status=HTTPStatus.OK).set_body("no upgrade here")

    def _echo(self, client: socket.socket):
        while not self._stop.is_set():
            try:
                chunk = client.recv(1024)
            except socket.timeout:
                continue
            if not chunk:
                return
            self.received.append(chunk)
            client.sendall(chunk)

    def stop(self):
        """Stop accepting and close every socket."""
        self._stop.set()
        if self._listener is not None:
            self._listener.close()
        for client in self._clients:
            try:
                client.close()
            except OSError:
                pass
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)


@pytest.fixture
def upgrade_server(free_port: int) -> Generator[UpgradeTestServer, None, None]:
    """An upgrade server in 'accept' mode; tests may change .mode before connecting."""
    server_config = UpgradeConfig(host="127.0.0.1", port=free_port)
    server = UpgradeTestServer(free_port, server_config)
    server.start()

    yield server

    server.stop()


@pytest.fixture
def client_config(upgrade_server: UpgradeTestServer) -> UpgradeConfig:
    """Client configuration pointing at the upgrade server."""
    return UpgradeConfig(
        host="127.0.0.1",
        port=upgrade_server.port,
        timeout=5.0,
        handshake_timeout=5.0,
    )
