"""
The uwsgi wire protocol, as spoken between a web server and an application server.

Every uwsgi packet starts with a 4-byte header:

- modifier1, a single byte selecting the packet type
  (0 means "WSGI request with a variable block"),
- datasize, the length of the packet body as a little-endian unsigned 16-bit integer,
- modifier2, a single byte, 0 for plain requests.

For requests, the packet body is the variable block: a sequence of
name/value pairs, each encoded as a little-endian uint16 length followed by the
raw bytes. The request body follows the packet without any further framing.

    https://uwsgi-docs.readthedocs.io/en/latest/Protocol.html
"""

import asyncio
import struct
from collections.abc import Mapping

from uwsgiproxy.utils import strutils

MODIFIER_WSGI = 0
"""modifier1 for a standard request with a variable block."""

HEADER = struct.Struct("<BHB")
HEADER_SIZE = HEADER.size
MAX_SIZE = 0xFFFF

_length = struct.Struct("<H")


def _always_bytes(x: str | bytes) -> bytes:
    return strutils.always_bytes(x, "utf-8", "surrogateescape")


def pack_header(size: int, modifier1: int = MODIFIER_WSGI, modifier2: int = 0) -> bytes:
    """
    Pack the packet header for a packet body of the given size.

    *Raises:*
     - ValueError, if the size does not fit into 16 bits.
    """
    if not 0 <= size <= MAX_SIZE:
        raise ValueError(
            f"uwsgi packet size out of range: {size} bytes (maximum is {MAX_SIZE})."
        )
    return HEADER.pack(modifier1, size, modifier2)


def unpack_header(data: bytes) -> tuple[int, int, int]:
    """
    Returns a (modifier1, datasize, modifier2) tuple.

    *Raises:*
     - ValueError, if data is not exactly four bytes long.
    """
    if len(data) != HEADER_SIZE:
        raise ValueError(
            f"uwsgi header must be {HEADER_SIZE} bytes, got {len(data)} bytes."
        )
    return HEADER.unpack(data)


def _pack_string(s: str | bytes) -> bytes:
    b = _always_bytes(s)
    if len(b) > MAX_SIZE:
        raise ValueError(
            f"uwsgi variable too long: {len(b)} bytes (maximum is {MAX_SIZE})."
        )
    return _length.pack(len(b)) + b


def encode_vars(vars: Mapping[str, str] | Mapping[bytes, bytes]) -> bytes:
    """
    Serialize a variable block.

    *Raises:*
     - ValueError, if a name, a value or the complete block does not fit
       into a 16-bit length.
    """
    buf = bytearray()
    for name, value in vars.items():
        buf += _pack_string(name)
        buf += _pack_string(value)
    if len(buf) > MAX_SIZE:
        raise ValueError(
            f"uwsgi variable block too large: {len(buf)} bytes (maximum is {MAX_SIZE})."
        )
    return bytes(buf)


def _unpack_string(data: bytes, offset: int) -> tuple[str, int]:
    if offset + _length.size > len(data):
        raise ValueError(f"Truncated uwsgi variable block at offset {offset}.")
    (length,) = _length.unpack_from(data, offset)
    offset += _length.size
    if offset + length > len(data):
        raise ValueError(f"Truncated uwsgi variable block at offset {offset}.")
    return data[offset : offset + length].decode("utf-8", "surrogateescape"), offset + length


def decode_vars(data: bytes) -> dict[str, str]:
    """
    Parse a variable block. Later duplicates of a name replace earlier ones.

    *Raises:*
     - ValueError, if the block is truncated.
    """
    vars: dict[str, str] = {}
    offset = 0
    while offset < len(data):
        name, offset = _unpack_string(data, offset)
        value, offset = _unpack_string(data, offset)
        vars[name] = value
    return vars


async def read_packet(reader: asyncio.StreamReader) -> tuple[int, dict[str, str]]:
    """
    Read a request packet, as an application server would.
    Any request body remains in the reader.

    Returns:
        A (modifier1, vars) tuple.

    *Raises:*
     - asyncio.IncompleteReadError, if the stream ends early.
     - ValueError, if the variable block is malformed.
    """
    modifier1, size, _ = unpack_header(await reader.readexactly(HEADER_SIZE))
    block = await reader.readexactly(size)
    return modifier1, decode_vars(block)
