"""
Unit tests for HTTP request building and parsing.
"""

import pytest

from httpupgrade.http.request import (
    ClientRequest,
    HTTPParseError,
    RequestParser,
    parse_headers,
    parse_request,
)


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_upgrade_request(self, sample_upgrade_request: bytes):
        """Test parsing the upgrade GET."""
        parser = RequestParser()
        request = parser.parse(sample_upgrade_request, ("127.0.0.1", 12345))

        assert request.method == "GET"
        assert request.path == "/"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("127.0.0.1", 12345)
        assert request.body == b""

    def test_parse_headers(self, sample_upgrade_request: bytes):
        """Test that headers are parsed with lowercase names."""
        request = parse_request(sample_upgrade_request)

        assert request.host == "localhost:8080"
        assert request.headers["upgrade"] == "hornetq-remoting"
        assert request.get_header("Sec-HornetQRemoting-Key") == "AAAAAAAAAAAAAAAAAAAAAA=="
        assert request.get_header("missing", "default") == "default"

    def test_query_is_stripped_from_path(self):
        """Test that the path excludes the query string."""
        request = parse_request(b"GET /broker?x=1 HTTP/1.1\r\nHost: a\r\n\r\n")

        assert request.path == "/broker"

    def test_body_with_content_length(self):
        """Test that the body is cut at Content-Length."""
        request = parse_request(b"POST / HTTP/1.1\r\nContent-Length: 3\r\n\r\nabcdef")

        assert request.body == b"abc"

    def test_invalid_request_line(self):
        """Test that a malformed request line is rejected."""
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"NOT A REQUEST\r\n\r\n")

        assert exc_info.value.status_code == 400

    def test_invalid_method(self):
        """Test that an unknown method gives 405."""
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"BREW / HTTP/1.1\r\n\r\n")

        assert exc_info.value.status_code == 405

    def test_unsupported_version(self):
        """Test that HTTP/2.0 gives 505."""
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"GET / HTTP/2.0\r\n\r\n")

        assert exc_info.value.status_code == 505

    def test_incomplete_request(self):
        """Test that a request without the blank line is rejected."""
        with pytest.raises(HTTPParseError, match="Incomplete"):
            parse_request(b"GET / HTTP/1.1\r\nHost: a\r\n")

    def test_request_too_large(self):
        """Test the size limit."""
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"GET / HTTP/1.1\r\n" + b"X: y\r\n" * 100 + b"\r\n", max_size=64)

        assert exc_info.value.status_code == 413

    def test_invalid_content_length(self):
        """Test that a non-numeric Content-Length is rejected."""
        with pytest.raises(HTTPParseError, match="Content-Length"):
            parse_request(b"POST / HTTP/1.1\r\nContent-Length: lots\r\n\r\n")


class TestParseHeaders:
    """Tests for parse_headers()."""

    def test_duplicates_are_combined(self):
        """Test that repeated headers are joined with ', '."""
        headers = parse_headers(["Upgrade: a", "upgrade: b"])

        assert headers == {"upgrade": "a, b"}

    def test_duplicates_keep_first(self):
        """Test that combine=False keeps the first value and drops its folds."""
        headers = parse_headers(["Upgrade: a", "upgrade: b", " more"], combine=False)

        assert headers == {"upgrade": "a"}

    def test_folded_lines(self):
        """Test obsolete line folding."""
        headers = parse_headers(["X-Long: first", "\tsecond"])

        assert headers["x-long"] == "first second"

    def test_malformed_lines_skipped(self):
        """Test that lines without a colon are ignored."""
        assert parse_headers(["garbage", "Host: a"]) == {"host": "a"}

    def test_value_keeps_case(self):
        """Test that only the name is lowercased."""
        assert parse_headers(["Sec-X-Accept: AbC="]) == {"sec-x-accept": "AbC="}


class TestClientRequest:
    """Tests for ClientRequest."""

    def test_to_bytes(self):
        """Test the serialized upgrade request."""
        request = (
            ClientRequest(path="/")
            .add_header("Upgrade", "hornetq-remoting")
            .add_header("Connection", "Upgrade")
        )

        assert request.to_bytes(host="localhost:8080") == (
            b"GET / HTTP/1.1\r\n"
            b"Host: localhost:8080\r\n"
            b"Upgrade: hornetq-remoting\r\n"
            b"Connection: Upgrade\r\n"
            b"\r\n"
        )

    def test_explicit_host_not_duplicated(self):
        """Test that an existing Host header wins."""
        request = ClientRequest().add_header("Host", "broker")

        assert request.to_bytes(host="other").count(b"Host:") == 1
        assert b"Host: broker\r\n" in request.to_bytes(host="other")

    def test_header_case_is_kept(self):
        """Test that names go on the wire as added."""
        request = ClientRequest().add_header("Sec-HornetQRemoting-Key", "k")

        assert b"Sec-HornetQRemoting-Key: k\r\n" in request.to_bytes()
        assert request.get_header("sec-hornetqremoting-key") == "k"

    def test_line_break_in_value_rejected(self):
        """Test that header injection is refused."""
        with pytest.raises(ValueError):
            ClientRequest().add_header("X", "a\r\nEvil: 1")

    def test_round_trip_through_parser(self):
        """Test that the server-side parser reads what the client writes."""
        request = ClientRequest(path="/messaging").add_header("Upgrade", "acme")

        parsed = parse_request(request.to_bytes(host="h:1"))

        assert parsed.path == "/messaging"
        assert parsed.host == "h:1"
        assert parsed.get_header("upgrade") == "acme"
