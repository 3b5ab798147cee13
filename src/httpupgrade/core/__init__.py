"""
=============================================================================
CORE CLIENT COMPONENTS
=============================================================================

The low-level plumbing under the handshake:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                     │
    │   ClientConnection   TCP socket, request/response, upgrade handoff  │
    │         │                                                           │
    │         └── IoThread  runs every socket read/write of the connection│
    │                                                                     │
    │   UpgradedStream     the raw socket once HTTP is over               │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .connection import ClientConnection, ConnectionState, UpgradedStream
from .io_thread import IoThread

__all__ = [
    "ClientConnection",  # TCP connection speaking just enough HTTP/1.1
    "ConnectionState",   # Enum for connection lifecycle states
    "UpgradedStream",    # Raw byte stream handed off after a 101
    "IoThread",          # Runs the connection's socket I/O
]
