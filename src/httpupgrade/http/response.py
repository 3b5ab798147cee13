"""
=============================================================================
HTTP RESPONSES
=============================================================================

The server's answer decides whether the socket switches protocols:

    HTTP/1.1 101 Switching Protocols\r\n      ← status line
    Upgrade: hornetq-remoting\r\n
    Connection: Upgrade\r\n
    Sec-HornetQRemoting-Accept: s3pPLM...=\r\n ← proof the server understood
    \r\n
    <from here on: raw binary protocol bytes>

A 101 response has no body. The blank line is the exact point where HTTP
ends and the binary protocol begins, so the client must stop reading HTTP
there and hand any bytes already buffered past it to the binary layer.

=============================================================================
CLIENT vs SERVER USE
=============================================================================

    ResponseParser.parse()   client: raw head bytes → HTTPResponse
    HTTPResponse.to_bytes()  server: HTTPResponse → raw bytes

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Union
import re

from .request import HTTPParseError, parse_headers
from .status_codes import HTTPStatus


@dataclass
class HTTPResponse:
    """
    An HTTP response, parsed (client) or to be sent (server).

    Attributes:
        status: Numeric status code.
        headers: Header dictionary. Parsed responses use lowercase names;
                 responses built by a server keep their original case.
        body: Body bytes (always empty for 101).
        version: HTTP version.
        reason: Reason phrase; derived from the status when empty.
    """

    status: int = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"
    reason: str = ""

    @property
    def status_line(self) -> str:
        reason = self.reason or HTTPStatus.phrase_for(int(self.status))
        return f"{self.version} {int(self.status)} {reason}"

    @property
    def is_switching_protocols(self) -> bool:
        return int(self.status) == HTTPStatus.SWITCHING_PROTOCOLS

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header lookup. The value is returned unchanged."""
        lowered = name.lower()
        for header_name, value in self.headers.items():
            if header_name.lower() == lowered:
                return value
        return default

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        self.body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def to_bytes(self) -> bytes:
        """
        Serialize the response.

        Content-Length is added for final (non-1xx) responses only; a 101
        response is followed directly by the new protocol's bytes.
        """
        response_headers = dict(self.headers)
        if int(self.status) >= 200 and self.get_header("Content-Length") is None:
            response_headers["Content-Length"] = str(len(self.body))

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        return ("\r\n".join(lines) + "\r\n").encode("latin-1") + self.body


class ResponseParser:
    """
    Parses a raw response head (status line + headers) into an HTTPResponse.

    STATUS_LINE_PATTERN: ^(HTTP/\\d\\.\\d) (\\d{3})(?: (.*))?$

        The reason phrase is optional per RFC 7230.
    """

    STATUS_LINE_PATTERN = re.compile(r"^(HTTP/\d\.\d) (\d{3})(?: (.*))?$")

    def parse(self, head: bytes) -> HTTPResponse:
        """
        Parse the bytes up to (and optionally including) the blank line.

        A repeated header keeps its first value.

        Raises:
            HTTPParseError: If the status line is malformed.
        """
        header_end = head.find(b"\r\n\r\n")
        if header_end != -1:
            head = head[:header_end]

        lines = head.decode("latin-1").split("\r\n")
        match = self.STATUS_LINE_PATTERN.match(lines[0])
        if not match:
            raise HTTPParseError(f"Invalid status line: {lines[0]!r}", status_code=502)

        version, status, reason = match.groups()
        return HTTPResponse(
            status=int(status),
            headers=parse_headers(lines[1:], combine=False),
            version=version,
            reason=(reason or "").strip(),
        )


def parse_response(head: bytes) -> HTTPResponse:
    """Parse a response head with a one-off ResponseParser."""
    return ResponseParser().parse(head)
