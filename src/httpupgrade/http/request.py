"""
=============================================================================
HTTP REQUESTS
=============================================================================

Both directions of the upgrade request live here:

    CLIENT SIDE: ClientRequest builds and serializes the GET that asks the
                 server to switch protocols.

    SERVER SIDE: RequestParser turns the raw bytes a server receives into an
                 HTTPRequest so the acceptor can check the upgrade headers.

=============================================================================
THE UPGRADE REQUEST
=============================================================================

    GET / HTTP/1.1\r\n
    Host: localhost:8080\r\n
    Upgrade: hornetq-remoting\r\n            ← protocol we want
    Connection: Upgrade\r\n                  ← hop-by-hop: proxies keep it
    Sec-HornetQRemoting-Key: 3q2+7w...==\r\n ← fresh secret for this attempt
    \r\n

There is no body. Everything the server needs is in the headers.

=============================================================================
PARSING NOTES
=============================================================================

1. LINE ENDINGS: HTTP uses CRLF (\r\n); headers end with \r\n\r\n
2. CASE: header NAMES are case-insensitive, header VALUES are not.
   We store names lowercase for lookups. The accept value must still be
   compared exactly as received.
3. DUPLICATES: repeated request headers are combined with ", " (RFC 7230).
   In responses the first occurrence wins, so a repeated accept header is
   compared by its first value.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse, unquote
import re


class HTTPParseError(Exception):
    """
    Raised when an HTTP message cannot be parsed.

    Carries the HTTP status a server should answer with:

        400 Bad Request      - Malformed syntax
        405 Method Not Allowed - Unknown method
        413 Payload Too Large  - Message exceeds size limit
        505 HTTP Version Not Supported
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")


def parse_headers(lines: List[str], combine: bool = True) -> Dict[str, str]:
    """
    Parse header lines into a dictionary with lowercase names.

    Handles obsolete line folding (continuation lines start with space or
    tab). Malformed lines are skipped.

    Args:
        lines: Header lines without the start line.
        combine: Join repeated headers with ", " (True) or keep only the
                 first occurrence (False).

    Returns:
        Dictionary of lowercase header name → value.
    """
    headers: Dict[str, str] = {}
    current_name = None

    for line in lines:
        if not line:
            continue

        if line[0] in (" ", "\t"):
            if current_name is not None:
                headers[current_name] += " " + line.strip()
            continue

        match = HEADER_PATTERN.match(line)
        if not match:
            continue

        name, value = match.groups()
        name = name.strip().lower()
        value = value.strip()
        if name in headers and not combine:
            current_name = None
            continue

        current_name = name

        if name in headers:
            headers[name] += ", " + value
        else:
            headers[name] = value

    return headers


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request (server side).

    Attributes:
        method: HTTP method (GET for upgrades).
        path: Request path without query string.
        version: "HTTP/1.1" or "HTTP/1.0".
        headers: Header dictionary with LOWERCASE names.
        body: Raw body bytes (empty for upgrade requests).
        client_address: (ip, port) of the peer.
        raw: The unparsed request bytes.
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    client_address: Tuple[str, int] = ("", 0)
    raw: bytes = field(default=b"", repr=False)

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

    REQUEST_LINE_PATTERN: ^([A-Z]+) ([^ ]+) (HTTP/\\d\\.\\d)$

        ([A-Z]+)       - METHOD
        ([^ ]+)        - URI (anything except space)
        (HTTP/\\d\\.\\d) - Version
    """

    VALID_METHODS = {"GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS", "TRACE", "CONNECT"}

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")

    def __init__(self, max_request_size: int = 64 * 1024):
        self.max_request_size = max_request_size

    def parse(self, data: bytes, client_address: Tuple[str, int] = ("", 0)) -> HTTPRequest:
        """
        Parse a complete request.

        Args:
            data: Raw bytes, at least up to the blank line ending the headers.
            client_address: The peer's (ip, port).

        Returns:
            Parsed HTTPRequest.

        Raises:
            HTTPParseError: If the request is malformed or too large.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(f"Request too large: {len(data)} bytes", status_code=413)

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("latin-1")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, path, version = self._parse_request_line(lines[0])
        headers = parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError(f"Invalid Content-Length: {headers['content-length']}")
        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            body=body[:content_length],
            client_address=client_address,
            raw=data,
        )

    def _parse_request_line(self, line: str) -> Tuple[str, str, str]:
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line}")

        method, uri, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(f"Unsupported HTTP version: {version}", status_code=505)

        path = unquote(urlparse(uri).path) or "/"
        return method, path, version


def parse_request(
    data: bytes,
    client_address: Tuple[str, int] = ("", 0),
    max_size: int = 64 * 1024,
) -> HTTPRequest:
    """Parse a request with a one-off RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)


@dataclass
class ClientRequest:
    """
    An outgoing HTTP request (client side).

    Headers keep the case they were added with, since that is what goes on
    the wire. Host is filled in by the connection when serializing.

    Example:
        request = ClientRequest(path="/")
        request.add_header("Upgrade", "hornetq-remoting")
        conn.send_request(request, on_response, on_failure)
    """

    method: str = "GET"
    path: str = "/"
    version: str = "HTTP/1.1"
    headers: List[Tuple[str, str]] = field(default_factory=list)

    def add_header(self, name: str, value: str) -> "ClientRequest":
        """Append a header. Returns self for chaining."""
        if "\r" in value or "\n" in value:
            raise ValueError(f"Header {name} contains a line break")
        self.headers.append((name, value))
        return self

    def get_header(self, name: str) -> Optional[str]:
        """First value of a header (case-insensitive name)."""
        lowered = name.lower()
        for header_name, value in self.headers:
            if header_name.lower() == lowered:
                return value
        return None

    @property
    def request_line(self) -> str:
        return f"{self.method} {self.path} {self.version}"

    def to_bytes(self, host: Optional[str] = None) -> bytes:
        """
        Serialize for sending over the socket.

        Args:
            host: Value for the Host header, added first if the request
                  does not already carry one.
        """
        lines = [self.request_line]
        if host is not None and self.get_header("Host") is None:
            lines.append(f"Host: {host}")
        for name, value in self.headers:
            lines.append(f"{name}: {value}")
        lines.append("")
        return ("\r\n".join(lines) + "\r\n").encode("latin-1")
