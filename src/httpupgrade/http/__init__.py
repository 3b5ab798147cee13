"""
=============================================================================
HTTP MESSAGES
=============================================================================

The small part of HTTP/1.1 the upgrade handshake needs: building and
parsing requests, building and parsing response heads, status codes.

    REQUEST:                          RESPONSE:
    GET / HTTP/1.1\r\n                HTTP/1.1 101 Switching Protocols\r\n
    Upgrade: <protocol>\r\n           Upgrade: <protocol>\r\n
    Sec-<Label>-Key: ...\r\n          Sec-<Label>-Accept: ...\r\n
    \r\n                              \r\n

=============================================================================
"""

from .request import (
    ClientRequest,
    HTTPRequest,
    RequestParser,
    HTTPParseError,
    parse_request,
)
from .response import HTTPResponse, ResponseParser, parse_response
from .status_codes import HTTPStatus

__all__ = [
    # Requests
    "ClientRequest",
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",

    # Responses
    "HTTPResponse",
    "ResponseParser",
    "parse_response",

    # Status codes
    "HTTPStatus",
]
