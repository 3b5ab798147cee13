"""
=============================================================================
HTTPUPGRADE - Raw Binary Protocols Bootstrapped Over HTTP/1.1 Upgrade
=============================================================================

Opens an ordinary HTTP connection, asks the server to switch to a private
binary protocol with an `Upgrade` request, verifies the server's proof,
and hands the socket over as a raw byte stream.

=============================================================================
WHY UPGRADE OVER HTTP?
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                     │
    │   client ──HTTP──► proxy / load balancer / firewall ──HTTP──► server│
    │                                                                     │
    │   GET / HTTP/1.1                                                    │
    │   Upgrade: hornetq-remoting                                         │
    │   Sec-HornetQRemoting-Key: <random>                                 │
    │                                                                     │
    │   HTTP/1.1 101 Switching Protocols                                  │
    │   Sec-HornetQRemoting-Accept: base64(sha1(<random> + MAGIC))        │
    │                                                                     │
    │   ... from here on, raw binary protocol bytes ...                   │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

Infrastructure that already allows HTTP lets the connection through. The
accept value makes sure the client never switches a socket into binary
mode because of a forged, cached or mismatched response.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    httpupgrade/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m httpupgrade)
    ├── config.py            # UpgradeConfig dataclass
    ├── codec/
    │   └── flexbase64.py    # Base64 encode/decode with line wrapping
    ├── handshake/
    │   ├── keys.py          # Secret key + accept value
    │   ├── result.py        # HandshakeResult / RejectReason
    │   ├── attempt.py       # One-shot attempt completion
    │   ├── orchestrator.py  # Client handshake state machine
    │   └── acceptor.py      # Server side of the handshake
    ├── http/
    │   ├── request.py       # Request building and parsing
    │   ├── response.py      # Response building and parsing
    │   └── status_codes.py  # HTTP status enum
    └── core/
        ├── connection.py    # Client connection + upgraded stream
        └── io_thread.py     # Per-connection I/O thread

=============================================================================
QUICK START
=============================================================================

    from httpupgrade import ClientConnection, HandshakeOrchestrator, UpgradeConfig

    config = UpgradeConfig.from_url("http://localhost:8080/")
    connection = ClientConnection.from_config(config)

    result = HandshakeOrchestrator(connection, config).upgrade(timeout=10)
    if result.upgraded:
        with result.stream as stream:
            stream.send(b"Hello, HornetQ!")
    else:
        print(f"Upgrade rejected: {result.reason.value} ({result.detail})")

=============================================================================
"""

__version__ = "1.0.0"

from .config import UpgradeConfig
from .core import ClientConnection, UpgradedStream
from .handshake import (
    MAGIC_CONSTANT,
    DigestUnavailable,
    HandshakeOrchestrator,
    HandshakeResult,
    RejectReason,
    compute_accept_value,
    generate_secret_key,
)

__all__ = [
    "UpgradeConfig",
    "ClientConnection",
    "UpgradedStream",
    "MAGIC_CONSTANT",
    "DigestUnavailable",
    "HandshakeOrchestrator",
    "HandshakeResult",
    "RejectReason",
    "compute_accept_value",
    "generate_secret_key",
    "__version__",
]
