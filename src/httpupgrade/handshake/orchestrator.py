"""
=============================================================================
HANDSHAKE ORCHESTRATOR
=============================================================================

Drives one upgrade attempt end to end on a ClientConnection.

=============================================================================
STATE MACHINE
=============================================================================

    INIT ──start()──► REQUEST_SENT ──┬──► UPGRADED   (accept value matches)
                                     │
                                     └──► REJECTED   (transport failure,
                                                      wrong status,
                                                      missing accept header,
                                                      accept mismatch,
                                                      timeout)

UPGRADED and REJECTED are terminal. There are no retries: one attempt is
one request and one response. To try again, open a new connection.

=============================================================================
WHAT RUNS WHERE
=============================================================================

    caller thread                          I/O thread
    ─────────────                          ──────────
    start():
      attempt = HandshakeAttempt()   (secret key)
      build request
      connection.send_request() ─────────► write request, read head
                                           _on_response():
    wait():                                  check status
      attempt.wait(timeout) ◄──────────────  compare accept values
                                             attempt.conclude(result)
    upgrade():
      UPGRADED → perform_upgrade() (once)
      REJECTED → close()

The callbacks only compare two short strings and hash 60 bytes. They never
block and never touch the network.

=============================================================================
"""

import logging
from enum import Enum
from typing import TYPE_CHECKING, Optional

from ..http.request import ClientRequest
from ..http.response import HTTPResponse
from ..http.status_codes import HTTPStatus
from .attempt import HandshakeAttempt
from .keys import compute_accept_value, ensure_digest_available
from .result import HandshakeResult, RejectReason

if TYPE_CHECKING:
    from ..config import UpgradeConfig
    from ..core.connection import ClientConnection


logger = logging.getLogger(__name__)


class HandshakeState(Enum):
    INIT = "init"
    REQUEST_SENT = "request_sent"
    UPGRADED = "upgraded"
    REJECTED = "rejected"


class HandshakeOrchestrator:
    """
    Runs the upgrade handshake over one connection.

    Usage:
        with ClientConnection.from_config(config) as conn:
            result = HandshakeOrchestrator(conn, config).upgrade()
            if result.upgraded:
                with result.stream as stream:
                    stream.send(b"Hello")
            else:
                print(result.reason, result.detail)

    Raises:
        DigestUnavailable: At construction, if SHA-1 cannot be used.
    """

    def __init__(self, connection: "ClientConnection", config: "UpgradeConfig"):
        ensure_digest_available()

        self.connection = connection
        self.config = config
        self.state = HandshakeState.INIT
        self.attempt: Optional[HandshakeAttempt] = None

    # =========================================================================
    # INIT → REQUEST_SENT
    # =========================================================================

    def build_request(self, secret_key: str) -> ClientRequest:
        """The upgrade GET carrying ``secret_key``."""
        return (
            ClientRequest(method="GET", path=self.config.path)
            .add_header("Upgrade", self.config.protocol)
            .add_header("Connection", "Upgrade")
            .add_header(self.config.key_header, secret_key)
        )

    def start(self) -> HandshakeAttempt:
        """
        Generate the secret key and send the upgrade request.

        Returns:
            The attempt, bound to one secret key for its whole lifetime.

        Raises:
            RuntimeError: If this orchestrator already started an attempt.
        """
        if self.state != HandshakeState.INIT:
            raise RuntimeError(f"Handshake already started (state: {self.state.value})")

        attempt = HandshakeAttempt()
        self.attempt = attempt
        self.state = HandshakeState.REQUEST_SENT

        request = self.build_request(attempt.secret_key)
        logger.debug(
            f"[{self.connection.id}] Requesting upgrade to {self.config.protocol!r} "
            f"on {self.config.path}"
        )

        try:
            self.connection.send_request(
                request,
                lambda response: self._on_response(attempt, response),
                lambda error: self._on_failure(attempt, error),
            )
        except RuntimeError as e:
            self._on_failure(attempt, e)

        return attempt

    # =========================================================================
    # COMPLETION CALLBACKS (I/O thread)
    # =========================================================================

    def _on_response(self, attempt: HandshakeAttempt, response: HTTPResponse) -> None:
        try:
            result = self.verify_response(attempt.secret_key, response)
        except Exception as e:
            logger.exception(f"[{self.connection.id}] Failed to verify upgrade response")
            result = HandshakeResult.rejected(
                RejectReason.TRANSPORT_FAILURE, f"{type(e).__name__}: {e}"
            )
        attempt.conclude(result)

    def _on_failure(self, attempt: HandshakeAttempt, error: Exception) -> None:
        attempt.conclude(
            HandshakeResult.rejected(
                RejectReason.TRANSPORT_FAILURE, f"{type(error).__name__}: {error}"
            )
        )

    def verify_response(self, secret_key: str, response: HTTPResponse) -> HandshakeResult:
        """
        Check the server's response against the secret key that was sent.

        The accept header NAME is matched case-insensitively (HTTP rules);
        its VALUE must equal the expected accept value exactly.
        """
        if response.status != HTTPStatus.SWITCHING_PROTOCOLS:
            return HandshakeResult.rejected(
                RejectReason.TRANSPORT_FAILURE,
                f"Server answered {response.status_line!r} instead of 101",
            )

        accept_header = self.config.accept_header
        accept_value = response.get_header(accept_header)
        if accept_value is None:
            return HandshakeResult.rejected(
                RejectReason.MISSING_ACCEPT_HEADER,
                f"{accept_header} header not found",
            )

        expected = compute_accept_value(secret_key, self.config.magic)
        if accept_value != expected:
            return HandshakeResult.rejected(
                RejectReason.ACCEPT_MISMATCH,
                f"{accept_header} value of {accept_value} did not match expected {expected}",
            )

        return HandshakeResult.accepted()

    # =========================================================================
    # WAIT + HANDOFF
    # =========================================================================

    def wait(self, timeout: Optional[float] = None) -> HandshakeResult:
        """
        Wait for the attempt to conclude.

        Args:
            timeout: Seconds to wait (default: config.handshake_timeout).

        Returns:
            The attempt's result. A timeout yields Rejected(TIMEOUT) and any
            response arriving later is ignored.
        """
        if self.attempt is None:
            raise RuntimeError("Handshake not started")

        if timeout is None:
            timeout = self.config.handshake_timeout

        result = self.attempt.wait(timeout)
        self.state = HandshakeState.UPGRADED if result.upgraded else HandshakeState.REJECTED
        return result

    def upgrade(self, timeout: Optional[float] = None) -> HandshakeResult:
        """
        Run the whole handshake: start, wait, then hand off or close.

        Returns:
            Upgraded (with ``stream`` set to the raw UpgradedStream) or
            Rejected(reason). A rejected connection has already been closed.
        """
        self.start()
        result = self.wait(timeout)

        if not result.upgraded:
            logger.warning(f"[{self.connection.id}] Upgrade to {self.config.protocol!r} rejected: {result}")
            self.connection.close()
            return result

        try:
            stream = self.connection.perform_upgrade()
        except RuntimeError as e:
            self.state = HandshakeState.REJECTED
            self.connection.close()
            return HandshakeResult.rejected(RejectReason.TRANSPORT_FAILURE, str(e))

        logger.info(f"[{self.connection.id}] Connection upgraded to {self.config.protocol!r}")
        return result.with_stream(stream)
