"""
The uwsgi transport: one request, one connection, one response.

    - Dial the application server (dial hint or the request's upstream over TCP).
    - Send the packet header, the variable block and the request body.
    - Parse the HTTP response the application server writes back on the same connection.

The returned response keeps the connection open until its body has been
consumed or the response is closed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Union

import h11
from h11._readers import ChunkedReader
from h11._readers import ContentLengthReader
from h11._readers import Http10Reader
from h11._receivebuffer import ReceiveBuffer

from uwsgiproxy import config
from uwsgiproxy import directives
from uwsgiproxy import environ
from uwsgiproxy import exceptions
from uwsgiproxy import http
from uwsgiproxy.net import dial
from uwsgiproxy.net import uwsgi
from uwsgiproxy.net.http import http1
from uwsgiproxy.net.http import url
from uwsgiproxy.registry import ModuleInfo
from uwsgiproxy.utils import strutils

logger = logging.getLogger(__name__)

READ_SIZE = 65535

TBodyReader = Union[ChunkedReader, ContentLengthReader, Http10Reader]


def make_body_reader(expected_size: int | None) -> TBodyReader:
    if expected_size is None:
        return ChunkedReader()
    elif expected_size == -1:
        return Http10Reader()
    else:
        return ContentLengthReader(expected_size)


class ConnectionBody(http.ResponseBody):
    """
    A response body that is read from the application server connection.
    The connection is closed as soon as the body is complete.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        buf: ReceiveBuffer,
        body_reader: TBodyReader,
        address: str,
    ):
        self.reader = reader
        self.writer = writer
        self.buf = buf
        self.body_reader = body_reader
        self.address = address
        self.done = False

    async def read_chunk(self) -> bytes | None:
        while not self.done:
            try:
                h11_event = self.body_reader(self.buf)
                if h11_event is None:
                    data = await self.reader.read(READ_SIZE)
                    if data:
                        self.buf += data
                        continue
                    h11_event = self.body_reader.read_eof()
            except h11.ProtocolError as e:
                await self.aclose()
                raise exceptions.TransportError(
                    f"HTTP/1 protocol error in response body: {e}"
                ) from e
            except OSError as e:
                await self.aclose()
                raise exceptions.TransportError(
                    f"Error reading response body from {self.address}: {e}"
                ) from e

            if isinstance(h11_event, h11.Data):
                data = bytes(h11_event.data)
                if data:
                    return data
            elif isinstance(h11_event, h11.EndOfMessage):
                await self.aclose()
            else:  # pragma: no cover
                raise AssertionError(f"Unexpected event: {h11_event}")
        return None

    async def aclose(self) -> None:
        if not self.writer.is_closing():
            logger.debug(f"server disconnect {self.address}")
            self.writer.close()
        self.done = True


async def _close(writer: asyncio.StreamWriter) -> None:
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass


async def _release(stream: http.RequestStream | None) -> None:
    aclose = getattr(stream, "aclose", None)
    if aclose is not None:
        await aclose()


async def _write_body(
    writer: asyncio.StreamWriter, stream: http.RequestStream | None
) -> None:
    if stream is None:
        return
    if isinstance(stream, (bytes, bytearray, memoryview)):
        writer.write(stream)
        return
    async for chunk in stream:
        writer.write(chunk)
        await writer.drain()


async def _read_response(
    request: http.Request,
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    address: str,
) -> http.Response:
    buf = ReceiveBuffer()
    while True:
        response_head = buf.maybe_extract_lines()
        if response_head is not None:
            break
        data = await reader.read(READ_SIZE)
        if not data:
            if buf:
                raise ValueError(
                    f"unexpected server response: {strutils.bytes_to_escaped_str(bytes(buf)[:200])}"
                )
            raise ValueError("server closed connection without sending a response")
        buf += data

    response = http1.read_response_head([bytes(x) for x in response_head])
    http1.validate_headers(response.headers)
    expected_size = http1.expected_http_body_size(request, response)
    if expected_size == 0:
        logger.debug(f"server disconnect {address}")
        writer.close()
        response.data.content = b""
        response.data.timestamp_end = response.data.timestamp_start
    else:
        response.body = ConnectionBody(
            reader, writer, buf, make_body_reader(expected_size), address
        )
    return response


class Transport:
    """
    Sends HTTP requests to an application server using the uwsgi protocol.

    `params` are static variables that are added to every request.
    They take precedence over variables derived from the request.
    The mapping is copied and never modified afterwards, so a single transport
    can be shared by any number of concurrent requests.
    """

    MODULE_ID = "http.reverse_proxy.transport.uwsgi"

    params: Mapping[str, str]

    def __init__(self, params: Mapping[str, str] | None = None):
        self.params = MappingProxyType(dict(params or {}))

    def __repr__(self):
        return f"Transport(params={dict(self.params)!r})"

    @classmethod
    def module_info(cls) -> ModuleInfo:
        return ModuleInfo(id=cls.MODULE_ID, new=cls, validate=cls.validate)

    @classmethod
    def from_directives(cls, text: str) -> Transport:
        return cls(directives.parse(text))

    @classmethod
    def from_config(cls, text: str) -> Transport:
        return cls(config.load(text))

    def validate(self) -> None:
        """
        Check that all static parameters can be sent.

        *Raises:*
         - OptionsError, if a parameter has an empty name or is too long.
        """
        for name, value in self.params.items():
            if not name:
                raise exceptions.OptionsError("uwsgi_param names must not be empty.")
            try:
                uwsgi.encode_vars({name: value})
            except ValueError as e:
                raise exceptions.OptionsError(f"Invalid uwsgi_param {name}: {e}")

    @staticmethod
    def dial_info(request: http.Request) -> dial.DialInfo:
        if request.dial_info is not None:
            return request.dial_info
        return dial.DialInfo("tcp", url.join_host_port(request.host, request.port))

    async def round_trip(self, request: http.Request) -> http.Response:
        """
        Send the request and return the response as soon as its head has been received.

        *Raises:*
         - TransportError, if the application server cannot be reached,
           the connection fails, or the response is malformed.
         - ValueError, if the request cannot be encoded (e.g. a malformed client address).
        """
        address = "<unknown>"
        try:
            dial_info = self.dial_info(request)
            address = str(dial_info)
            reader, writer = await dial.open_connection(dial_info)
        except (OSError, ValueError) as e:
            await _release(request.stream)
            logger.info(
                f"error establishing server connection to {address}: {e}",
                extra={"client": request.peername},
            )
            raise exceptions.TransportError(
                f"Cannot connect to {address}: {e}"
            ) from e
        except BaseException:
            await _release(request.stream)
            raise
        logger.debug(f"server connect {address}", extra={"client": request.peername})

        try:
            try:
                block = environ.encode_request(request, self.params)
                writer.write(uwsgi.pack_header(len(block)))
                writer.write(block)
                await writer.drain()
                await _write_body(writer, request.stream)
            finally:
                await _release(request.stream)
            await writer.drain()
        except OSError as e:
            await _close(writer)
            raise exceptions.TransportError(
                f"Error sending request to {address}: {e}"
            ) from e
        except BaseException:
            await _close(writer)
            raise

        try:
            return await _read_response(request, reader, writer, address)
        except (OSError, ValueError) as e:
            await _close(writer)
            raise exceptions.TransportError(
                f"Cannot parse response from {address}: {e}"
            ) from e
        except BaseException:
            await _close(writer)
            raise
