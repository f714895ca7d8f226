import abc
import time
import urllib.parse
from collections.abc import AsyncIterable
from collections.abc import AsyncIterator
from collections.abc import Iterable
from collections.abc import Iterator
from dataclasses import dataclass
from dataclasses import field
from typing import Union

from uwsgiproxy.coretypes import multidict
from uwsgiproxy.net.dial import DialInfo
from uwsgiproxy.net.http.url import default_port
from uwsgiproxy.net.http.url import hostport
from uwsgiproxy.net.http.url import unquote
from uwsgiproxy.utils import strutils


# While headers _should_ be ASCII, it's not uncommon for certain headers to be utf-8 encoded.
def _native(x: bytes) -> str:
    return x.decode("utf-8", "surrogateescape")


def _always_bytes(x: str | bytes) -> bytes:
    return strutils.always_bytes(x, "utf-8", "surrogateescape")


# This cannot be easily typed with mypy yet, so we just specify MultiDict without concrete types.
class Headers(multidict.MultiDict):  # type: ignore
    """
    Header class which allows both convenient access to individual headers as well as
    direct access to the underlying raw data. Provides a full dictionary interface.

    Create headers with keyword arguments:
    >>> h = Headers(host="example.com", content_type="application/xml")

    Headers mostly behave like a normal dict:
    >>> h["Host"]
    "example.com"

    Headers are case insensitive:
    >>> h["host"]
    "example.com"

    Headers can also be created from a list of raw (header_name, header_value) byte tuples:
    >>> h = Headers([
        (b"Host",b"example.com"),
        (b"Accept",b"text/html"),
        (b"accept",b"application/xml")
    ])

    Multiple headers are folded into a single header as per RFC 7230:
    >>> h["Accept"]
    "text/html, application/xml"

    Setting a header removes all existing headers with the same name:
    >>> h["Accept"] = "application/text"
    >>> h["Accept"]
    "application/text"

    `bytes(h)` returns an HTTP/1 header block:
    >>> print(bytes(h))
    Host: example.com
    Accept: application/text

    For full control, the raw header fields can be accessed:
    >>> h.fields
    """

    def __init__(self, fields: Iterable[tuple[bytes, bytes]] = (), **headers):
        """
        *Args:*
         - *fields:* (optional) list of ``(name, value)`` header byte tuples,
           e.g. ``[(b"Host", b"example.com")]``. All names and values must be bytes.
         - *\\*\\*headers:* Additional headers to set. Will overwrite existing values from `fields`.
           For convenience, underscores in header names will be transformed to dashes -
           this behaviour does not extend to other methods.
        """
        super().__init__(fields)

        for key, value in self.fields:
            if not isinstance(key, bytes) or not isinstance(value, bytes):
                raise TypeError("Header fields must be bytes.")

        # content_type -> content-type
        self.update(
            {
                _always_bytes(name).replace(b"_", b"-"): _always_bytes(value)
                for name, value in headers.items()
            }
        )

    fields: tuple[tuple[bytes, bytes], ...]

    @staticmethod
    def _reduce_values(values) -> str:
        # Headers can be folded
        return ", ".join(values)

    @staticmethod
    def _kconv(key) -> str:
        # Headers are case-insensitive
        return key.lower()

    def __bytes__(self) -> bytes:
        if self.fields:
            return b"\r\n".join(b": ".join(field) for field in self.fields) + b"\r\n"
        else:
            return b""

    def __delitem__(self, key: str | bytes) -> None:
        key = _always_bytes(key)
        super().__delitem__(key)

    def __iter__(self) -> Iterator[str]:
        for x in super().__iter__():
            yield _native(x)

    def get_all(self, name: str | bytes) -> list[str]:
        """
        Like `Headers.get`, but does not fold multiple headers into a single one.

        *See also:* <https://tools.ietf.org/html/rfc7230#section-3.2.2>
        """
        name = _always_bytes(name)
        return [_native(x) for x in super().get_all(name)]

    def set_all(self, name: str | bytes, values: Iterable[str | bytes]):
        """
        Explicitly set multiple headers for the given key.
        See `Headers.get_all`.
        """
        name = _always_bytes(name)
        values = [_always_bytes(x) for x in values]
        return super().set_all(name, values)

    def insert(self, index: int, key: str | bytes, value: str | bytes):
        key = _always_bytes(key)
        value = _always_bytes(value)
        super().insert(index, key, value)

    def items(self, multi=False):
        if multi:
            return ((_native(k), _native(v)) for k, v in self.fields)
        else:
            return super().items()


RequestStream = Union[bytes, AsyncIterable[bytes]]


@dataclass
class Request:
    """
    An inbound HTTP request that has already been parsed by the host proxy.

    `host` and `port` describe the upstream the request should be sent to,
    whereas `host_header` is what the client asked for.
    """

    host: str
    port: int
    method: str
    scheme: str
    path: str
    """The request target as received, including the query string, e.g. `/search?q=foo`."""
    http_version: str
    headers: Headers = field(default_factory=Headers)
    tls: bool = False
    """True if the client connection used TLS."""
    peername: str = ""
    """The client address as "host:port", IPv6 hosts are enclosed in brackets."""
    stream: RequestStream | None = None
    """
    The request body, either as bytes or as an async iterable of chunks.
    The transport closes async generators once the body has been sent.
    """
    dial_info: DialInfo | None = None
    """Overrides the network address that is dialed for this request."""
    timestamp_start: float = field(default_factory=time.time)

    def __post_init__(self):
        if not isinstance(self.headers, Headers):
            raise TypeError(
                f"Expected Headers for headers, but got {type(self.headers)}."
            )

    @classmethod
    def make(
        cls,
        method: str,
        url: str,
        content: bytes | None = None,
        headers: Headers | dict[str, str] | Iterable[tuple[bytes, bytes]] = (),
        **kwargs,
    ) -> "Request":
        """
        Simplified API for creating request objects.
        """
        parsed = urllib.parse.urlsplit(url)
        if not parsed.hostname:
            raise ValueError(f"No hostname given: {url!r}")
        scheme = parsed.scheme or "http"
        port = parsed.port or default_port(scheme) or 80

        if isinstance(headers, Headers):
            pass
        elif isinstance(headers, dict):
            headers = Headers(
                (_always_bytes(k), _always_bytes(v)) for k, v in headers.items()
            )
        else:
            headers = Headers(headers)
        if "host" not in headers:
            headers.insert(0, "Host", hostport(scheme, parsed.hostname, port))
        if content is not None and "content-length" not in headers:
            headers["Content-Length"] = str(len(content))

        path = parsed.path or "/"
        if parsed.query:
            path += "?" + parsed.query

        kwargs.setdefault("tls", scheme == "https")
        return cls(
            host=parsed.hostname,
            port=port,
            method=method.upper(),
            scheme=scheme,
            path=path,
            http_version="HTTP/1.1",
            headers=headers,
            stream=content,
            **kwargs,
        )

    @property
    def query_string(self) -> str:
        """
        The raw query string, without the leading question mark.
        """
        _, _, query = self.path.partition("?")
        return query

    @property
    def decoded_path(self) -> str:
        """
        The percent-decoded path component, without the query string.
        """
        path, _, _ = self.path.partition("?")
        return unquote(path)

    @property
    def host_header(self) -> str:
        """
        The host the client asked for: the *Host* header if present,
        the upstream authority otherwise.
        """
        if "host" in self.headers:
            return self.headers["host"]
        return hostport(self.scheme, self.host, self.port)

    @property
    def pretty_url(self) -> str:
        return f"{self.scheme}://{self.host_header}{self.path}"


class ResponseBody(metaclass=abc.ABCMeta):
    """
    A response body that is still being received.
    """

    @abc.abstractmethod
    async def read_chunk(self) -> bytes | None:
        """
        Return the next chunk of body data, or None once the body is complete.
        """

    @abc.abstractmethod
    async def aclose(self) -> None:
        """
        Stop receiving and release the underlying connection. Idempotent.
        """


@dataclass
class ResponseData:
    http_version: bytes
    status_code: int
    reason: bytes
    headers: Headers
    content: bytes | None
    timestamp_start: float
    timestamp_end: float | None


class Response:
    """
    An HTTP response as returned by the application server.

    The body is streamed from the backend connection. Either iterate over the
    response (`async for chunk in response`), read it completely with
    `await response.read()`, or close it with `await response.aclose()`.
    """

    data: ResponseData
    body: ResponseBody | None

    def __init__(
        self,
        http_version: bytes,
        status_code: int,
        reason: bytes,
        headers: Headers | tuple[tuple[bytes, bytes], ...],
        content: bytes | None,
        timestamp_start: float,
        timestamp_end: float | None,
    ):
        # str is accepted for convenience, the raw values are bytes.
        if isinstance(http_version, str):
            http_version = http_version.encode("ascii", "strict")
        if isinstance(reason, str):
            reason = reason.encode("ascii", "strict")
        if isinstance(headers, tuple):
            headers = Headers(headers)
        if not isinstance(headers, Headers):
            raise TypeError(f"Expected Headers, got {type(headers)}")

        self.data = ResponseData(
            http_version=http_version,
            status_code=status_code,
            reason=reason,
            headers=headers,
            content=content,
            timestamp_start=timestamp_start,
            timestamp_end=timestamp_end,
        )
        self.body = None

    def __repr__(self) -> str:
        if self.data.content is not None:
            details = f"{len(self.data.content)}b"
        elif self.body is not None:
            details = "streaming"
        else:
            details = "no content"
        return f"Response({self.status_code} {self.reason}, {details})"

    @classmethod
    def make(
        cls,
        status_code: int = 200,
        content: bytes | str = b"",
        headers: Headers | dict[str, str] | Iterable[tuple[bytes, bytes]] = (),
    ) -> "Response":
        """
        Simplified API for creating response objects.
        """
        if isinstance(headers, Headers):
            pass
        elif isinstance(headers, dict):
            headers = Headers(
                (_always_bytes(k), _always_bytes(v)) for k, v in headers.items()
            )
        else:
            headers = Headers(headers)
        content = _always_bytes(content)
        if "content-length" not in headers:
            headers["Content-Length"] = str(len(content))

        return cls(
            http_version=b"HTTP/1.1",
            status_code=status_code,
            reason=b"",
            headers=headers,
            content=content,
            timestamp_start=time.time(),
            timestamp_end=time.time(),
        )

    @property
    def http_version(self) -> str:
        """
        HTTP version string, for example `HTTP/1.1`.
        """
        return self.data.http_version.decode("utf-8", "surrogateescape")

    @property
    def status_code(self) -> int:
        return self.data.status_code

    @property
    def reason(self) -> str:
        """
        HTTP reason phrase, for example "Not Found".
        """
        # Encoding: http://stackoverflow.com/a/16674906/934719
        return self.data.reason.decode("ISO-8859-1")

    @property
    def headers(self) -> Headers:
        return self.data.headers

    @property
    def content(self) -> bytes | None:
        """
        The response body, or None if it has not been read yet.
        """
        return self.data.content

    @property
    def text(self) -> str | None:
        if self.data.content is None:
            return None
        return self.data.content.decode("utf-8", "replace")

    async def iter_content(self) -> AsyncIterator[bytes]:
        """
        Yield the body as it is received from the backend.
        The connection is released once the body is exhausted or iteration is aborted.
        """
        if self.body is None:
            if self.data.content:
                yield self.data.content
            return
        body, self.body = self.body, None
        try:
            while (chunk := await body.read_chunk()) is not None:
                yield chunk
        finally:
            await body.aclose()
            self.data.timestamp_end = time.time()

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self.iter_content()

    async def read(self) -> bytes:
        """
        Read the complete body and store it in `Response.content`.
        """
        if self.data.content is None:
            chunks = [chunk async for chunk in self.iter_content()]
            self.data.content = b"".join(chunks)
        return self.data.content

    async def aclose(self) -> None:
        """
        Discard any unread body data and close the backend connection.
        """
        if self.body is not None:
            body, self.body = self.body, None
            await body.aclose()
            self.data.timestamp_end = time.time()

    async def __aenter__(self) -> "Response":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
