"""
=============================================================================
HTTP STATUS CODES (RFC 7231)
=============================================================================

The status codes the upgrade handshake sends or reacts to.

    ┌────────┬───────────────────────────────────────────────────────────┐
    │ Code   │ Meaning during an upgrade                                 │
    ├────────┼───────────────────────────────────────────────────────────┤
    │ 101    │ Server agreed, the connection now speaks the new protocol │
    │ 400    │ Upgrade request was malformed (missing or bad key)        │
    │ 405    │ Upgrade request used a method other than GET              │
    │ other  │ Plain HTTP answer: the upgrade did not happen             │
    └────────┴───────────────────────────────────────────────────────────┘

Anything other than 101 means the socket is still speaking HTTP and must
never be used as a binary channel.

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    This enum extends IntEnum, so status codes can be used as integers:

        >>> HTTPStatus.SWITCHING_PROTOCOLS == 101
        True
        >>> HTTPStatus.SWITCHING_PROTOCOLS.phrase
        'Switching Protocols'
    """

    SWITCHING_PROTOCOLS = 101    # Server is switching protocols (upgrade)

    OK = 200

    BAD_REQUEST = 400            # Malformed upgrade request
    METHOD_NOT_ALLOWED = 405     # Upgrade must be a GET

    @property
    def phrase(self) -> str:
        """Reason phrase used in the status line."""
        return _STATUS_PHRASES.get(self, "Unknown")

    @classmethod
    def phrase_for(cls, code: int) -> str:
        """Reason phrase for any integer code, known or not."""
        try:
            return cls(code).phrase
        except ValueError:
            return "Unknown"


_STATUS_PHRASES = {
    HTTPStatus.SWITCHING_PROTOCOLS: "Switching Protocols",
    HTTPStatus.OK: "OK",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
}
