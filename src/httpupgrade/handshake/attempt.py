"""
=============================================================================
HANDSHAKE ATTEMPT
=============================================================================

Binds one secret key to one in-flight request/response exchange and
delivers exactly one result to the waiting caller.

=============================================================================
ONE-SHOT COMPLETION
=============================================================================

Three parties may try to conclude an attempt:

    I/O thread   ── response callback ──┐
    I/O thread   ── failure callback  ──┼──►  conclude(result)  ──►  Event.set()
    caller       ── wait() timed out  ──┘

Only the FIRST conclusion counts. It stores the result and releases the
event. Every later call returns False and changes nothing, so a response
that arrives after a timeout can never flip a rejected attempt into an
upgraded one, and the event is never released twice.

    ┌─────────────────────────────────────────────────────────────────────┐
    │   caller thread                 I/O thread                          │
    │                                                                     │
    │   attempt = HandshakeAttempt()  (secret key generated here)         │
    │   io.execute(exchange) ───────► send request                        │
    │   attempt.wait(timeout)         read response                       │
    │        │                        compute accept, compare             │
    │        │ ◄──────────────────── attempt.conclude(result)             │
    │        ▼                                                            │
    │   result                                                            │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import logging
import threading
from typing import Optional

from .keys import generate_secret_key
from .result import HandshakeResult, RejectReason


logger = logging.getLogger(__name__)


class HandshakeAttempt:
    """
    One upgrade attempt: a secret key plus a single-assignment result slot.

    Attributes:
        secret_key: The Base64 key sent in the request (never logged).
    """

    def __init__(self, secret_key: Optional[str] = None):
        self.secret_key = secret_key if secret_key is not None else generate_secret_key()
        self._result: Optional[HandshakeResult] = None
        self._lock = threading.Lock()
        self._done = threading.Event()

    @property
    def concluded(self) -> bool:
        return self._done.is_set()

    @property
    def result(self) -> Optional[HandshakeResult]:
        """The result, or None while the exchange is still in flight."""
        return self._result

    def conclude(self, result: HandshakeResult) -> bool:
        """
        Store the result and release the waiter, once.

        Returns:
            True if this call concluded the attempt, False if it was
            already concluded (the call is then a no-op).
        """
        with self._lock:
            if self._result is not None:
                logger.debug(f"Ignoring late conclusion: {result}")
                return False
            self._result = result
        self._done.set()
        return True

    def wait(self, timeout: Optional[float] = None) -> HandshakeResult:
        """
        Block until the attempt concludes or the timeout elapses.

        On timeout the attempt is concluded as Rejected(TIMEOUT). If the
        I/O thread concluded it in the meantime, that result wins.

        Args:
            timeout: Seconds to wait. None waits forever.

        Returns:
            The single result of this attempt.
        """
        if not self._done.wait(timeout):
            self.conclude(
                HandshakeResult.rejected(
                    RejectReason.TIMEOUT,
                    f"No upgrade response within {timeout}s",
                )
            )
        return self._result
