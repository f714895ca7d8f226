import pytest

from uwsgiproxy.utils import strutils


def test_always_bytes():
    assert strutils.always_bytes(bytes(range(256))) == bytes(range(256))
    assert strutils.always_bytes("foo") == b"foo"
    assert strutils.always_bytes("\udcff", "utf-8", "surrogateescape") == b"\xff"
    with pytest.raises(ValueError):
        strutils.always_bytes("★", "ascii")
    with pytest.raises(TypeError):
        strutils.always_bytes(42, "ascii")
    assert strutils.always_bytes(None) is None


def test_bytes_to_escaped_str():
    assert strutils.bytes_to_escaped_str(b"foo") == "foo"
    assert strutils.bytes_to_escaped_str(b"\b") == r"\x08"
    assert strutils.bytes_to_escaped_str(rb"&!?=\)") == r"&!?=\\)"
    assert strutils.bytes_to_escaped_str(b"\xc3\xbc") == r"\xc3\xbc"
    assert strutils.bytes_to_escaped_str(b"'") == r"'"
    assert strutils.bytes_to_escaped_str(b'"') == r'"'
    assert strutils.bytes_to_escaped_str(b"HTTP/1.1 200 OK\r\n") == r"HTTP/1.1 200 OK\r\n"

    with pytest.raises(ValueError):
        strutils.bytes_to_escaped_str("such unicode")
