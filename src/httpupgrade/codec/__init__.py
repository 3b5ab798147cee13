"""
Base64 codec used by the upgrade handshake.
"""

from .flexbase64 import (
    Base64DecodeError,
    decode,
    encode,
    encoded_length,
)

__all__ = [
    "Base64DecodeError",
    "decode",
    "encode",
    "encoded_length",
]
