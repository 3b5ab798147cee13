"""
Outcome of one upgrade handshake attempt.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional


class RejectReason(Enum):
    """Why an upgrade was refused. Each cause has its own member."""
    TRANSPORT_FAILURE = "transport_failure"          # Exchange failed or wrong status
    MISSING_ACCEPT_HEADER = "missing_accept_header"  # No accept header in response
    ACCEPT_MISMATCH = "accept_mismatch"              # Accept value did not match
    TIMEOUT = "timeout"                              # No response within the wait bound


@dataclass(frozen=True)
class HandshakeResult:
    """
    Either Upgraded or Rejected(reason).

    An upgraded result carries the raw stream once it has been handed off.
    A rejected connection must be closed and never treated as binary.

    Attributes:
        upgraded: True when the server proved it accepted the upgrade.
        reason: Why the attempt was rejected (None when upgraded).
        detail: Human readable diagnostic (never contains the secret key).
        stream: The handed-off raw stream (only on upgrade).
    """

    upgraded: bool
    reason: Optional[RejectReason] = None
    detail: Optional[str] = None
    stream: Optional[Any] = field(default=None, compare=False, repr=False)

    @classmethod
    def accepted(cls) -> "HandshakeResult":
        return cls(upgraded=True)

    @classmethod
    def rejected(cls, reason: RejectReason, detail: Optional[str] = None) -> "HandshakeResult":
        return cls(upgraded=False, reason=reason, detail=detail)

    def with_stream(self, stream: Any) -> "HandshakeResult":
        """Attach the handed-off stream to an upgraded result."""
        if not self.upgraded:
            raise ValueError("Only an upgraded result can carry a stream")
        return replace(self, stream=stream)

    def __str__(self) -> str:
        if self.upgraded:
            return "Upgraded"
        if self.detail:
            return f"Rejected({self.reason.value}): {self.detail}"
        return f"Rejected({self.reason.value})"
