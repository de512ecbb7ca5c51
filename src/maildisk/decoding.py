"""Reverse per-part Content-Transfer-Encodings into raw bytes."""

import base64
import binascii
import re

from .errors import DecodeError


WHITESPACE = re.compile(rb"\s+")
# One pass: a hex escape, or a soft line break
QP_ESCAPE = re.compile(rb"=(?:([0-9A-Fa-f]{2})|\r?\n)")


def decode_base64(data: bytes) -> bytes:
    """Decode base64, ignoring the line folds the transport inserts."""
    stripped = WHITESPACE.sub(b"", data)
    try:
        return base64.b64decode(stripped, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Invalid base64 payload: {e}") from e


def _qp_replace(match: re.Match) -> bytes:
    hex_digits = match.group(1)
    if hex_digits is None:
        return b""
    return bytes([int(hex_digits, 16)])


def decode_quoted_printable(data: bytes) -> bytes:
    """Decode `=XX` escapes and drop soft line breaks. Nothing else is touched."""
    return QP_ESCAPE.sub(_qp_replace, data)


def decode(data: bytes, encoding: str | None) -> bytes:
    """Decode `data` according to a transfer-encoding token.

    The token is compared case-insensitively. Unknown or missing tokens
    (7bit, 8bit, binary) return the input unchanged.
    """
    token = (encoding or "").strip().lower()
    if token == "base64":
        return decode_base64(data)
    if token == "quoted-printable":
        return decode_quoted_printable(data)
    return data
