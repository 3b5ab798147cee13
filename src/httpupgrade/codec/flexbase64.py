"""
=============================================================================
FLEXIBLE BASE64 CODEC
=============================================================================

Encodes and decodes Base64 (RFC 4648 alphabet) with optional MIME-style
line wrapping. The upgrade handshake only ever encodes: the secret key
sent by the client and the accept value sent back by the server are both
Base64 text. Decoding is provided so the server side (and tests) can check
that a key really carries 16 bytes.

=============================================================================
HOW BASE64 WORKS
=============================================================================

Every 3 input bytes (24 bits) become 4 output symbols (6 bits each):

    bytes:    0x4D       0x61       0x6E
    bits:     01001101   01100001   01101110
    groups:   010011 010110 000101 101110
    symbols:    T      W      F      u

A trailing group of 1 or 2 bytes is padded so that the output length is
always a multiple of 4:

    1 byte  left over  →  2 symbols + "=="
    2 bytes left over  →  3 symbols + "="

=============================================================================
LINE WRAPPING
=============================================================================

With wrap=True the output is split into 76-character lines, each one
terminated by CRLF (the last line included):

    <76 chars>\r\n
    <76 chars>\r\n
    <up to 76 chars>\r\n

Since 76 is a multiple of 4, a line break never splits a symbol group.

=============================================================================
"""

from typing import Union


LINE_LENGTH = 76
CRLF = b"\r\n"
PAD = ord("=")

ENCODING_TABLE = b"ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"

# Lowest symbol in the alphabet is "+" (43), highest is "z" (122).
DECODING_OFFSET = ord("+")


def _build_decoding_table() -> bytes:
    # Slot value is (alphabet index + 1); zero marks an illegal symbol.
    table = bytearray(80)
    for index, symbol in enumerate(ENCODING_TABLE):
        table[symbol - DECODING_OFFSET] = index + 1
    return bytes(table)


DECODING_TABLE = _build_decoding_table()

_WHITESPACE = frozenset(b" \t\r\n")


class Base64DecodeError(ValueError):
    """Raised when text is not valid Base64."""


def encoded_length(length: int, wrap: bool = False) -> int:
    """
    Exact size of the encoded output for ``length`` input bytes.

    Args:
        length: Number of input bytes.
        wrap: Whether 76-character CRLF-terminated lines are produced.

    Returns:
        Number of characters encode() will produce.
    """
    if length < 0:
        raise ValueError(f"length must be >= 0, got {length}")

    chars = (length + 2) // 3 * 4
    if wrap:
        lines = (chars + LINE_LENGTH - 1) // LINE_LENGTH
        chars += lines * len(CRLF)
    return chars


def encode(source: bytes, wrap: bool = False) -> str:
    """
    Encode bytes into Base64 text.

    The output buffer is allocated once at its final size and filled in
    place, then decoded to str in a single step.

    Args:
        source: Bytes to encode (any length, including zero).
        wrap: Split output into 76-character lines terminated by CRLF.

    Returns:
        The Base64 text.
    """
    source = bytes(source)
    limit = len(source)
    target = bytearray(encoded_length(limit, wrap))
    table = ENCODING_TABLE

    pos = 0
    opos = 0
    count = 0

    # ─────────────────────────────────────────────────────────────────────
    # FULL GROUPS: ( 6 | 2) (4 | 4) (2 | 6)
    # ─────────────────────────────────────────────────────────────────────
    full = limit - limit % 3
    while pos < full:
        b0 = source[pos]
        b1 = source[pos + 1]
        b2 = source[pos + 2]
        pos += 3

        target[opos] = table[b0 >> 2]
        target[opos + 1] = table[((b0 & 0x03) << 4) | (b1 >> 4)]
        target[opos + 2] = table[((b1 & 0x0F) << 2) | (b2 >> 6)]
        target[opos + 3] = table[b2 & 0x3F]
        opos += 4

        if wrap:
            count += 4
            if count >= LINE_LENGTH:
                count = 0
                target[opos:opos + 2] = CRLF
                opos += 2

    # ─────────────────────────────────────────────────────────────────────
    # TRAILING GROUP: 1 or 2 bytes, padded with "==" or "="
    # ─────────────────────────────────────────────────────────────────────
    remainder = limit - full
    if remainder:
        b0 = source[pos]
        target[opos] = table[b0 >> 2]
        if remainder == 1:
            target[opos + 1] = table[(b0 & 0x03) << 4]
            target[opos + 2] = PAD
        else:
            b1 = source[pos + 1]
            target[opos + 1] = table[((b0 & 0x03) << 4) | (b1 >> 4)]
            target[opos + 2] = table[(b1 & 0x0F) << 2]
        target[opos + 3] = PAD
        opos += 4
        count += 4

    if wrap and count:
        target[opos:opos + 2] = CRLF
        opos += 2

    return target.decode("ascii")


def decode(text: Union[str, bytes]) -> bytes:
    """
    Decode Base64 text into bytes.

    CR, LF, space and tab are skipped so wrapped output decodes as-is.
    Padding is required: the number of symbols (padding included) must be
    a multiple of 4, and nothing but padding or whitespace may follow the
    first "=".

    Args:
        text: Base64 text, as str or ASCII bytes.

    Returns:
        The decoded bytes.

    Raises:
        Base64DecodeError: On an illegal symbol or malformed padding.
    """
    if isinstance(text, str):
        try:
            data = text.encode("ascii")
        except UnicodeEncodeError as e:
            raise Base64DecodeError(f"Non-ASCII character in Base64 text: {e}") from e
    else:
        data = bytes(text)

    output = bytearray()
    table = DECODING_TABLE

    accumulator = 0
    state = 0        # symbols collected in the current group
    padding = 0

    for position, symbol in enumerate(data):
        if symbol in _WHITESPACE:
            continue

        if symbol == PAD:
            padding += 1
            continue

        if padding:
            raise Base64DecodeError(f"Data after padding at position {position}")

        slot = symbol - DECODING_OFFSET
        value = table[slot] if 0 <= slot < len(table) else 0
        if value == 0:
            raise Base64DecodeError(
                f"Illegal Base64 symbol {chr(symbol)!r} at position {position}"
            )

        accumulator = (accumulator << 6) | (value - 1)
        state += 1
        if state == 4:
            output += accumulator.to_bytes(3, "big")
            accumulator = 0
            state = 0

    # ─────────────────────────────────────────────────────────────────────
    # VALIDATE THE TRAILING GROUP
    # ─────────────────────────────────────────────────────────────────────
    if state == 0:
        if padding:
            raise Base64DecodeError(f"Unexpected padding: {padding} '=' after a full group")
    elif state == 1:
        raise Base64DecodeError("Truncated Base64 input: dangling symbol")
    elif state + padding != 4:
        raise Base64DecodeError(
            f"Incorrect padding: {state} symbols followed by {padding} '='"
        )
    elif state == 2:
        output.append((accumulator >> 4) & 0xFF)
    else:
        output += ((accumulator >> 2) & 0xFFFF).to_bytes(2, "big")

    return bytes(output)
