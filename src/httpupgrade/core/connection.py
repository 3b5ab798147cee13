"""
=============================================================================
CLIENT CONNECTION
=============================================================================

A minimal HTTP/1.1 client connection that can be switched into a raw
byte stream after a successful upgrade.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL!
=============================================================================

The server's 101 response and the first bytes of the binary protocol may
arrive in the SAME recv():

    recv() → b"HTTP/1.1 101 Switching Protocols\r\n...\r\n\r\n\x00\x01HELLO"
                                                           └── binary ──┘

So we buffer until the blank line (\r\n\r\n) that ends the response head,
parse only the head, and keep everything after it. Those leftover bytes
belong to the binary protocol and are handed over with the socket.

=============================================================================
CONNECTION LIFECYCLE
=============================================================================

    OPEN ──send_request()──► REQUEST_SENT ──response──► RESPONDED
      │                           │                        │
      │                           │               perform_upgrade()
      │                           │                        ▼
      │                           │                    UPGRADED  (socket now
      │                           │                        │      owned by the
      ▼                           ▼                        │      UpgradedStream)
    CLOSED ◄───────────────── close() ◄────────────────────┘

All socket reads and writes happen on the connection's IoThread. close()
may be called from any thread: shutdown(SHUT_RDWR) wakes up a recv()
blocked on the I/O thread.

The socket timeout covers connect and the request write only. Waiting for
the response head is bounded by the caller (HandshakeOrchestrator.wait),
and the UpgradedStream is handed over in blocking mode.

=============================================================================
"""

import socket
import threading
import time
import logging
import uuid
from enum import Enum
from typing import Callable, Optional, Tuple

from ..http.request import ClientRequest, HTTPParseError
from ..http.response import HTTPResponse, parse_response
from ..http.status_codes import HTTPStatus
from .io_thread import IoThread


logger = logging.getLogger(__name__)

HEADER_TERMINATOR = b"\r\n\r\n"

ResponseCallback = Callable[[HTTPResponse], None]
FailureCallback = Callable[[Exception], None]


class ConnectionState(Enum):
    """Client connection lifecycle states."""
    OPEN = "open"                  # Connected, nothing sent yet
    REQUEST_SENT = "request_sent"  # Request written, waiting for the head
    RESPONDED = "responded"        # Response head received
    UPGRADED = "upgraded"          # Socket handed to the binary layer
    CLOSED = "closed"              # Socket released


class UpgradedStream:
    """
    The raw bidirectional byte stream left after a successful upgrade.

    Bytes the server sent right after its response head are returned by
    recv() before anything new is read from the socket.

    Usage:
        with result.stream as stream:
            stream.send(b"Hello")
            reply = stream.recv(1024)
    """

    def __init__(self, sock: socket.socket, pending: bytes = b"", connection_id: str = ""):
        self.socket = sock
        self.connection_id = connection_id
        self._pending = pending
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, data: bytes) -> None:
        """Write all of ``data`` to the stream."""
        self.socket.sendall(data)

    def recv(self, size: int) -> bytes:
        """
        Read up to ``size`` bytes. Returns b"" when the peer closed.
        """
        if self._pending:
            chunk, self._pending = self._pending[:size], self._pending[size:]
            return chunk
        return self.socket.recv(size)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # Peer already gone
        try:
            self.socket.close()
        except OSError:
            pass
        logger.debug(f"[{self.connection_id}] Upgraded stream closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class ClientConnection:
    """
    One TCP connection to an HTTP server, able to perform a protocol upgrade.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    Connection Responsibilities                      │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │  1. REQUEST/RESPONSE                                                │
    │     └── Serialize the request, read exactly one response head       │
    │     └── Report the outcome through a completion callback            │
    │                                                                     │
    │  2. I/O THREAD                                                      │
    │     └── The exchange runs on this connection's IoThread             │
    │                                                                     │
    │  3. UPGRADE HANDOFF                                                 │
    │     └── After a 101, hand the socket + buffered bytes over, once    │
    │                                                                     │
    │  4. CLOSE                                                           │
    │     └── Safe from any thread, idempotent                            │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

    Attributes:
        socket: The connected socket.
        address: Server (host, port).
        id: Short connection identifier for logs.
        state: Current connection state.
    """

    def __init__(
        self,
        sock: socket.socket,
        address: Tuple[str, int],
        buffer_size: int = 1024,
        max_header_size: int = 64 * 1024,
        io_thread: Optional[IoThread] = None,
    ):
        self.socket = sock
        self.address = address
        self.buffer_size = buffer_size
        self.max_header_size = max_header_size

        self.id = str(uuid.uuid4())[:8]
        self.state = ConnectionState.OPEN
        self.created_at = time.time()
        self.response: Optional[HTTPResponse] = None

        self._pending = b""
        self._lock = threading.Lock()

        self._io = io_thread or IoThread(name=self.id)
        if not self._io.is_alive():
            self._io.start()

    # =========================================================================
    # OPENING
    # =========================================================================

    @classmethod
    def open(
        cls,
        host: str,
        port: int,
        timeout: Optional[float] = 30.0,
        tcp_nodelay: bool = True,
        keep_alive: bool = True,
        buffer_size: int = 1024,
        max_header_size: int = 64 * 1024,
    ) -> "ClientConnection":
        """
        Connect to ``host:port``.

        Raises:
            OSError: If the TCP connection cannot be established.
        """
        sock = socket.create_connection((host, port), timeout=timeout)
        try:
            if tcp_nodelay:
                sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            if keep_alive:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
        except OSError:
            sock.close()
            raise

        conn = cls(sock, (host, port), buffer_size=buffer_size, max_header_size=max_header_size)
        logger.debug(f"[{conn.id}] Connected to {host}:{port}")
        return conn

    @classmethod
    def from_config(cls, config) -> "ClientConnection":
        """Connect using an UpgradeConfig."""
        return cls.open(
            config.host,
            config.port,
            timeout=config.timeout,
            tcp_nodelay=config.tcp_nodelay,
            keep_alive=config.keep_alive,
            buffer_size=config.buffer_size,
            max_header_size=config.max_header_size,
        )

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def io_thread(self) -> IoThread:
        return self._io

    @property
    def authority(self) -> str:
        """host:port, as sent in the Host header."""
        return f"{self.address[0]}:{self.address[1]}"

    @property
    def is_open(self) -> bool:
        return self.state not in (ConnectionState.CLOSED, ConnectionState.UPGRADED)

    @property
    def is_upgraded(self) -> bool:
        return self.state == ConnectionState.UPGRADED

    # =========================================================================
    # REQUEST / RESPONSE
    # =========================================================================

    def send_request(
        self,
        request: ClientRequest,
        on_response: ResponseCallback,
        on_failure: FailureCallback,
    ) -> None:
        """
        Send ``request`` on the I/O thread and report the response head.

        Exactly one of the callbacks is invoked, on the I/O thread:
        on_response(response) once the head is parsed, or on_failure(error)
        if the exchange fails before that.

        Raises:
            RuntimeError: If the I/O thread no longer accepts work.
        """
        self._io.execute(self._exchange, request, on_response, on_failure)

    def _exchange(
        self,
        request: ClientRequest,
        on_response: ResponseCallback,
        on_failure: FailureCallback,
    ) -> None:
        try:
            response = self._round_trip(request)
        except (OSError, HTTPParseError) as e:
            logger.debug(f"[{self.id}] Exchange failed: {type(e).__name__}: {e}")
            on_failure(e)
            return
        except Exception as e:
            logger.exception(f"[{self.id}] Unexpected error during exchange")
            on_failure(e)
            return

        on_response(response)

    def _round_trip(self, request: ClientRequest) -> HTTPResponse:
        with self._lock:
            if self.state != ConnectionState.OPEN:
                raise ConnectionError(f"Cannot send request in state {self.state.value}")
            self.state = ConnectionState.REQUEST_SENT

        self.socket.sendall(request.to_bytes(host=self.authority))
        logger.debug(f"[{self.id}] Sent {request.request_line}")

        # The wait for the head is bounded by the caller (handshake_timeout),
        # and close() wakes a blocked recv().
        self.socket.settimeout(None)

        head, extra = self._read_head()
        response = parse_response(head)

        with self._lock:
            if self.state != ConnectionState.REQUEST_SENT:
                raise ConnectionError("Connection closed while reading the response")
            self.response = response
            self._pending = extra
            self.state = ConnectionState.RESPONDED

        logger.debug(f"[{self.id}] Received {response.status_line}")
        return response

    def _read_head(self) -> Tuple[bytes, bytes]:
        """
        Read until the blank line ending the response head.

        Returns:
            (head including the terminator, bytes received after it)
        """
        buffer = b""
        while True:
            header_end = buffer.find(HEADER_TERMINATOR)
            if header_end != -1:
                split = header_end + len(HEADER_TERMINATOR)
                return buffer[:split], buffer[split:]

            if len(buffer) > self.max_header_size:
                raise HTTPParseError(f"Response head too large: {len(buffer)} bytes", status_code=502)

            chunk = self.socket.recv(self.buffer_size)
            if not chunk:
                raise ConnectionError("Connection closed before a response was received")
            buffer += chunk

    # =========================================================================
    # UPGRADE
    # =========================================================================

    def perform_upgrade(self) -> UpgradedStream:
        """
        Hand the socket over as a raw byte stream.

        Allowed once, after a 101 response. The connection stops doing I/O
        and no longer owns the socket.

        Raises:
            RuntimeError: If no 101 response was received, the connection is
                          closed, or the upgrade already happened.
        """
        with self._lock:
            if self.state == ConnectionState.UPGRADED:
                raise RuntimeError("Connection was already upgraded")
            if self.state != ConnectionState.RESPONDED or self.response is None:
                raise RuntimeError(f"Cannot upgrade in state {self.state.value}")
            if self.response.status != HTTPStatus.SWITCHING_PROTOCOLS:
                raise RuntimeError(f"Server answered {self.response.status_line}, not 101")

            self.state = ConnectionState.UPGRADED
            pending, self._pending = self._pending, b""

        self._io.shutdown()
        # The binary layer owns the socket now and starts out blocking
        self.socket.settimeout(None)
        logger.debug(f"[{self.id}] Upgraded, {len(pending)} byte(s) already buffered")
        return UpgradedStream(self.socket, pending, connection_id=self.id)

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection. Safe to call from any thread, more than once.

        After an upgrade the socket belongs to the UpgradedStream and is
        left alone; only the I/O thread is stopped.
        """
        with self._lock:
            previous = self.state
            if previous not in (ConnectionState.CLOSED, ConnectionState.UPGRADED):
                self.state = ConnectionState.CLOSED

        self._io.shutdown()

        if previous in (ConnectionState.CLOSED, ConnectionState.UPGRADED):
            return

        try:
            # Wakes up a recv() blocked on the I/O thread
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # Already disconnected

        try:
            self.socket.close()
        except OSError:
            pass

        logger.debug(f"[{self.id}] Connection closed after {time.time() - self.created_at:.3f}s")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
