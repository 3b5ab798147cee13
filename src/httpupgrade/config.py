"""
=============================================================================
UPGRADE CONFIGURATION
=============================================================================

Centralized configuration for one upgrade client.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   Priority (highest to lowest):                                     │
    │                                                                     │
    │   1. Command-line arguments                                         │
    │      └── python -m httpupgrade http://broker:8080/ --timeout 5      │
    │                                                                     │
    │   2. Environment variables                                          │
    │      └── UPGRADE_PORT=8080 python -m httpupgrade                    │
    │                                                                     │
    │   3. Default values (in this dataclass)                             │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PROTOCOL IDENTITY
=============================================================================

Three settings must match what the server expects, or every handshake
is rejected:

    protocol      → Upgrade: hornetq-remoting
    header_label  → Sec-HornetQRemoting-Key / Sec-HornetQRemoting-Accept
    magic         → salt mixed into the accept value

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from .handshake.keys import MAGIC_CONSTANT


@dataclass
class UpgradeConfig:
    """
    Configuration for the upgrade client.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    TARGET
    - host, port, path

    PROTOCOL
    - protocol, header_label, magic

    TIMEOUTS
    - timeout (socket I/O), handshake_timeout (wait for the server's answer)

    SOCKET
    - buffer_size, max_header_size, tcp_nodelay, keep_alive

    LOGGING
    - log_level

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # TARGET
    # ─────────────────────────────────────────────────────────────────────

    host: str = "localhost"
    port: int = 8080
    path: str = "/"
    """Resource the upgrade GET is sent to."""

    # ─────────────────────────────────────────────────────────────────────
    # PROTOCOL
    # ─────────────────────────────────────────────────────────────────────

    protocol: str = "hornetq-remoting"
    """Token sent in the Upgrade header."""

    header_label: str = "HornetQRemoting"
    """Middle part of the Sec-<label>-Key / Sec-<label>-Accept headers."""

    magic: str = MAGIC_CONSTANT
    """Salt shared with the server for the accept value."""

    # ─────────────────────────────────────────────────────────────────────
    # TIMEOUTS
    # ─────────────────────────────────────────────────────────────────────

    timeout: Optional[float] = 30.0
    """
    Socket timeout for connect and for writing the request, in seconds.
    None = blocking (infinite wait). The response wait is bounded by
    handshake_timeout instead, and the upgraded stream is blocking.
    """

    handshake_timeout: float = 600.0
    """
    How long the caller waits for the upgrade response (10 minutes).
    After this the attempt is rejected and the connection closed.
    """

    # ─────────────────────────────────────────────────────────────────────
    # SOCKET
    # ─────────────────────────────────────────────────────────────────────

    buffer_size: int = 1024
    max_header_size: int = 64 * 1024
    """Responses with a longer head are treated as a transport failure."""

    tcp_nodelay: bool = True
    keep_alive: bool = True

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"

    @property
    def key_header(self) -> str:
        return f"Sec-{self.header_label}-Key"

    @property
    def accept_header(self) -> str:
        return f"Sec-{self.header_label}-Accept"

    @property
    def authority(self) -> str:
        """Value for the Host header."""
        return f"{self.host}:{self.port}"

    @classmethod
    def from_env(cls) -> "UpgradeConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        UPGRADE_HOST              Server host (default: localhost)
        UPGRADE_PORT              Server port (default: 8080)
        UPGRADE_PATH              Upgrade resource (default: /)
        UPGRADE_PROTOCOL          Upgrade token (default: hornetq-remoting)
        UPGRADE_HEADER_LABEL      Header label (default: HornetQRemoting)
        UPGRADE_TIMEOUT           Socket timeout in seconds (default: 30)
        UPGRADE_HANDSHAKE_TIMEOUT Wait bound in seconds (default: 600)
        UPGRADE_LOG_LEVEL         Logging level (default: INFO)

        =====================================================================
        """
        return cls(
            host=os.getenv("UPGRADE_HOST", "localhost"),
            port=int(os.getenv("UPGRADE_PORT", "8080")),
            path=os.getenv("UPGRADE_PATH", "/"),
            protocol=os.getenv("UPGRADE_PROTOCOL", "hornetq-remoting"),
            header_label=os.getenv("UPGRADE_HEADER_LABEL", "HornetQRemoting"),
            timeout=float(os.getenv("UPGRADE_TIMEOUT", "30")),
            handshake_timeout=float(os.getenv("UPGRADE_HANDSHAKE_TIMEOUT", "600")),
            log_level=os.getenv("UPGRADE_LOG_LEVEL", "INFO"),
        )

    @classmethod
    def from_url(cls, url: str, **overrides) -> "UpgradeConfig":
        """
        Create configuration from a server URL such as http://localhost:8080/.

        Only plain http:// is supported (no TLS).
        """
        parsed = urlparse(url)
        if parsed.scheme != "http":
            raise ValueError(f"Unsupported URL scheme: {parsed.scheme!r} (expected 'http')")
        if not parsed.hostname:
            raise ValueError(f"URL has no host: {url!r}")

        values = dict(
            host=parsed.hostname,
            port=parsed.port or 80,
            path=parsed.path or "/",
        )
        if parsed.query:
            values["path"] += "?" + parsed.query
        values.update(overrides)
        return cls(**values)

    def validate(self) -> None:
        """
        Validate configuration values.

        Called before any socket is opened so that mistakes fail fast.
        """
        if not 0 < self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 1-65535.")

        if not self.path.startswith("/"):
            raise ValueError(f"path must start with '/': {self.path!r}")

        for name in ("protocol", "header_label", "magic"):
            value = getattr(self, name)
            if not value or any(c in value for c in " \t\r\n:"):
                raise ValueError(f"{name} must be a non-empty token, got {value!r}")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.handshake_timeout <= 0:
            raise ValueError("handshake_timeout must be > 0")

        if self.buffer_size < 1:
            raise ValueError("buffer_size must be >= 1")

        if self.max_header_size < self.buffer_size:
            raise ValueError("max_header_size must be >= buffer_size")
