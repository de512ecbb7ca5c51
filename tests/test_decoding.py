"""Tests for transfer-encoding decoding."""

import base64
import os

import pytest

from maildisk.decoding import decode, decode_base64, decode_quoted_printable
from maildisk.errors import DecodeError


def fold(text: bytes, width: int = 76) -> bytes:
    return b"\r\n".join(text[i:i + width] for i in range(0, len(text), width))


class TestBase64:
    def test_folded_lines(self):
        data = os.urandom(1000)
        folded = fold(base64.b64encode(data)) + b"\r\n"
        assert decode_base64(folded) == data

    def test_bare_newlines_and_spaces(self):
        encoded = base64.b64encode(b"hello world")
        assert decode_base64(b" " + encoded[:6] + b"\n" + encoded[6:] + b"\t\n") == b"hello world"

    def test_empty(self):
        assert decode_base64(b"") == b""
        assert decode_base64(b"\r\n") == b""

    def test_invalid(self):
        with pytest.raises(DecodeError):
            decode_base64(b"not*base64!")

    def test_bad_padding(self):
        with pytest.raises(DecodeError):
            decode_base64(b"abc")


class TestQuotedPrintable:
    def test_hex_escape(self):
        assert decode_quoted_printable(b"caf=C3=A9") == "café".encode()

    def test_lowercase_hex(self):
        assert decode_quoted_printable(b"caf=c3=a9") == "café".encode()

    def test_soft_line_break(self):
        assert decode_quoted_printable(b"abc=\r\ndef") == b"abcdef"
        assert decode_quoted_printable(b"abc=\ndef") == b"abcdef"

    def test_hard_line_breaks_kept(self):
        assert decode_quoted_printable(b"line one\r\nline two") == b"line one\r\nline two"

    def test_decoded_equals_not_rescanned(self):
        # =3D decodes to "=", which must not combine with the following "41"
        assert decode_quoted_printable(b"=3D41") == b"=41"

    def test_stray_equals_kept(self):
        assert decode_quoted_printable(b"a=zz") == b"a=zz"


class TestDecode:
    @pytest.mark.parametrize("token", ["base64", "BASE64", "Base64", " base64 "])
    def test_base64_token_case_insensitive(self, token):
        assert decode(b"aGk=", token) == b"hi"

    def test_quoted_printable_token(self):
        assert decode(b"=41", "Quoted-Printable") == b"A"

    @pytest.mark.parametrize("token", ["7bit", "8bit", "binary", "x-unknown", "", None])
    def test_identity(self, token):
        assert decode(b"=41 aGk=", token) == b"=41 aGk="
