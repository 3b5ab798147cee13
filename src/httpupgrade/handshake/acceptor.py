"""
=============================================================================
UPGRADE ACCEPTOR (SERVER SIDE)
=============================================================================

The server's half of the handshake. A server that wants to speak the
binary protocol:

1. Parses the request and checks it with check_upgrade_request()
2. Answers with build_upgrade_response() (101 + accept header)
3. Stops speaking HTTP on that socket

If the check fails, the server answers 400 and keeps speaking HTTP.

=============================================================================
"""

import logging
from typing import TYPE_CHECKING

from ..codec import flexbase64
from ..http.request import HTTPParseError, HTTPRequest
from ..http.response import HTTPResponse
from ..http.status_codes import HTTPStatus
from .keys import SECRET_KEY_LENGTH, compute_accept_value

if TYPE_CHECKING:
    from ..config import UpgradeConfig


logger = logging.getLogger(__name__)


class UpgradeRequestError(HTTPParseError):
    """The request is not a valid upgrade request (answer 400)."""


def check_upgrade_request(request: HTTPRequest, config: "UpgradeConfig") -> str:
    """
    Validate an incoming upgrade request.

    Args:
        request: The parsed request.
        config: Protocol token and header label to expect.

    Returns:
        The client's secret key, as sent.

    Raises:
        UpgradeRequestError: If the method, Upgrade header or key is wrong.
    """
    if request.method != "GET":
        raise UpgradeRequestError(
            f"Upgrade requires GET, got {request.method}",
            status_code=HTTPStatus.METHOD_NOT_ALLOWED,
        )

    upgrade = request.get_header("upgrade", "")
    tokens = [token.strip().lower() for token in upgrade.split(",")]
    if config.protocol.lower() not in tokens:
        raise UpgradeRequestError(f"Upgrade header {upgrade!r} does not offer {config.protocol!r}")

    key = request.get_header(config.key_header)
    if not key:
        raise UpgradeRequestError(f"{config.key_header} header not found")

    try:
        raw_key = flexbase64.decode(key)
    except ValueError:
        raise UpgradeRequestError(f"{config.key_header} is not valid Base64")
    if len(raw_key) != SECRET_KEY_LENGTH:
        raise UpgradeRequestError(
            f"{config.key_header} must encode {SECRET_KEY_LENGTH} bytes, got {len(raw_key)}"
        )

    return key


def build_upgrade_response(secret_key: str, config: "UpgradeConfig") -> HTTPResponse:
    """The 101 response proving the server accepted ``secret_key``."""
    return HTTPResponse(
        status=HTTPStatus.SWITCHING_PROTOCOLS,
        headers={
            "Upgrade": config.protocol,
            "Connection": "Upgrade",
            config.accept_header: compute_accept_value(secret_key, config.magic),
        },
    )


def respond_to_upgrade(request: HTTPRequest, config: "UpgradeConfig") -> HTTPResponse:
    """
    Answer a request: 101 if it is a valid upgrade, an error response otherwise.
    """
    try:
        key = check_upgrade_request(request, config)
    except UpgradeRequestError as e:
        logger.warning(f"Refusing upgrade from {request.client_address[0]}: {e}")
        return HTTPResponse(status=e.status_code, headers={"Connection": "close"}).set_body(str(e))

    return build_upgrade_response(key, config)
