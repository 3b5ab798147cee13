"""
=============================================================================
UPGRADE HANDSHAKE
=============================================================================

    keys.py          secret key generation, accept value computation
    result.py        HandshakeResult / RejectReason
    attempt.py       one attempt: secret key + one-shot result slot
    orchestrator.py  client: request → response → validate → handoff
    acceptor.py      server: validate request → 101 response

=============================================================================
"""

from .keys import (
    MAGIC_CONSTANT,
    DigestUnavailable,
    compute_accept_value,
    ensure_digest_available,
    generate_secret_key,
)
from .result import HandshakeResult, RejectReason
from .attempt import HandshakeAttempt
from .orchestrator import HandshakeOrchestrator, HandshakeState
from .acceptor import (
    UpgradeRequestError,
    build_upgrade_response,
    check_upgrade_request,
    respond_to_upgrade,
)

__all__ = [
    "MAGIC_CONSTANT",
    "DigestUnavailable",
    "compute_accept_value",
    "ensure_digest_available",
    "generate_secret_key",
    "HandshakeResult",
    "RejectReason",
    "HandshakeAttempt",
    "HandshakeOrchestrator",
    "HandshakeState",
    "UpgradeRequestError",
    "build_upgrade_response",
    "check_upgrade_request",
    "respond_to_upgrade",
]
