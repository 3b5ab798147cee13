"""
=============================================================================
HANDSHAKE KEYS
=============================================================================

The two values exchanged during the upgrade handshake:

    CLIENT                                            SERVER
      │                                                  │
      │  Sec-<Label>-Key: <base64 of 16 random bytes>    │
      │ ───────────────────────────────────────────────► │
      │                                                  │
      │  Sec-<Label>-Accept: base64(sha1(key + MAGIC))   │
      │ ◄─────────────────────────────────────────────── │
      │                                                  │

Both sides compute the accept value on their own. The client only trusts
the connection when the server echoes the exact value, which proves the
server read this request and understands this protocol (a cache or a
plain HTTP server cannot produce it).

=============================================================================
"""

import hashlib
import logging
import secrets

from ..codec import flexbase64


logger = logging.getLogger(__name__)


# Shared with the server implementation. Changing it breaks every handshake.
MAGIC_CONSTANT = "CF70DEB8-70F9-4FBA-8B4F-DFC3E723B4CD"

SECRET_KEY_LENGTH = 16

DIGEST_ALGORITHM = "sha1"


class DigestUnavailable(RuntimeError):
    """
    Raised when the runtime cannot provide the SHA-1 digest.

    This is a configuration problem of the whole process (e.g. a FIPS-only
    OpenSSL build), not a failure of one handshake attempt.
    """


def _new_digest():
    try:
        return hashlib.new(DIGEST_ALGORITHM)
    except ValueError as e:
        raise DigestUnavailable(
            f"Digest algorithm {DIGEST_ALGORITHM!r} is not available: {e}"
        ) from e


def ensure_digest_available() -> None:
    """Fail fast if SHA-1 cannot be used for accept values."""
    _new_digest()


def generate_secret_key() -> str:
    """
    Create a fresh secret key for one handshake attempt.

    Returns:
        16 bytes from the OS CSPRNG, Base64 encoded without line wrapping.
    """
    return flexbase64.encode(secrets.token_bytes(SECRET_KEY_LENGTH), wrap=False)


def compute_accept_value(secret_key: str, magic: str = MAGIC_CONSTANT) -> str:
    """
    Compute the value the server must return in its accept header.

    Args:
        secret_key: The Base64 text sent in the key header.
        magic: The protocol magic shared by client and server.

    Returns:
        base64(sha1(utf8(secret_key + magic))), unwrapped.

    Raises:
        DigestUnavailable: If SHA-1 is missing from the runtime.
    """
    digest = _new_digest()
    digest.update((secret_key + magic).encode("utf-8"))
    return flexbase64.encode(digest.digest(), wrap=False)
