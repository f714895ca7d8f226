import pytest

from uwsgiproxy import http
from uwsgiproxy.http import Headers
from uwsgiproxy.http import Request
from uwsgiproxy.http import Response
from uwsgiproxy.net.dial import DialInfo
from uwsgiproxy.test.tutils import treq
from uwsgiproxy.test.tutils import tresp


class TestHeaders:
    def _2host(self):
        return Headers(((b"Host", b"example.com"), (b"host", b"example.org")))

    def test_init(self):
        headers = Headers()
        assert len(headers) == 0

        headers = Headers([(b"Host", b"example.com")])
        assert len(headers) == 1
        assert headers["Host"] == "example.com"

        headers = Headers(Host="example.com")
        assert len(headers) == 1
        assert headers["Host"] == "example.com"

        headers = Headers([(b"Host", b"invalid")], Host="example.com")
        assert len(headers) == 1
        assert headers["Host"] == "example.com"

        headers = Headers(content_type="foobar")
        assert headers["Content-Type"] == "foobar"

        with pytest.raises(TypeError):
            Headers([("foo", "bar")])

    def test_fold(self):
        headers = Headers([(b"Accept", b"text/html"), (b"accept", b"application/xml")])
        assert headers["accept"] == "text/html, application/xml"
        assert headers.get_all("ACCEPT") == ["text/html", "application/xml"]

    def test_iter(self):
        headers = Headers([(b"X-Custom-Id", b"1"), (b"x-custom-id", b"2"), (b"A", b"b")])
        assert list(headers) == ["X-Custom-Id", "A"]

    def test_set(self):
        headers = self._2host()
        headers["Host"] = "example.net"
        assert headers.fields == ((b"Host", b"example.net"),)
        del headers["host"]
        assert not headers

    def test_bytes(self):
        headers = Headers(Host="example.com")
        assert bytes(headers) == b"Host: example.com\r\n"
        assert bytes(Headers()) == b""

    def test_items(self):
        headers = self._2host()
        assert list(headers.items()) == [("Host", "example.com, example.org")]
        assert list(headers.items(multi=True)) == [
            ("Host", "example.com"),
            ("host", "example.org"),
        ]


class TestRequest:
    def test_init(self):
        with pytest.raises(TypeError):
            treq(headers=())

    def test_make(self):
        r = Request.make("get", "https://example.com/search?q=foo%20bar")
        assert r.method == "GET"
        assert r.scheme == "https"
        assert r.host == "example.com"
        assert r.port == 443
        assert r.tls
        assert r.path == "/search?q=foo%20bar"
        assert r.http_version == "HTTP/1.1"
        assert r.headers["Host"] == "example.com"
        assert r.stream is None

        r = Request.make("POST", "http://[::1]:8080", b"data", {"X-Foo": "bar"})
        assert r.host == "::1"
        assert r.port == 8080
        assert not r.tls
        assert r.path == "/"
        assert r.headers.fields == (
            (b"Host", b"[::1]:8080"),
            (b"X-Foo", b"bar"),
            (b"Content-Length", b"4"),
        )
        assert r.stream == b"data"

        r = Request.make("GET", "http://example.com", headers=[(b"Host", b"other")])
        assert r.headers["host"] == "other"

        dial_info = DialInfo("unix", "/tmp/app.sock")
        r = Request.make(
            "GET", "http://example.com", peername="[::1]:1234", dial_info=dial_info
        )
        assert r.peername == "[::1]:1234"
        assert r.dial_info is dial_info

        with pytest.raises(ValueError, match="No hostname"):
            Request.make("GET", "/relative")

    def test_query_string(self):
        assert treq(path="/status?x=1&y=2").query_string == "x=1&y=2"
        assert treq(path="/status?").query_string == ""
        assert treq(path="/status").query_string == ""
        assert treq(path="/a?b?c").query_string == "b?c"

    def test_decoded_path(self):
        assert treq(path="/caf%C3%A9?x=%20").decoded_path == "/café"
        assert treq(path="/a%2Fb").decoded_path == "/a/b"
        assert treq(path="/").decoded_path == "/"

    def test_host_header(self):
        assert treq(headers=Headers(host="example.com")).host_header == "example.com"
        assert treq(headers=Headers(), host="backend", port=80).host_header == "backend"
        assert (
            treq(headers=Headers(), host="::1", port=8080).host_header == "[::1]:8080"
        )

    def test_pretty_url(self):
        r = treq(headers=Headers(host="example.com"), path="/a?b=c")
        assert r.pretty_url == "http://example.com/a?b=c"


class FakeBody(http.ResponseBody):
    def __init__(self, *chunks: bytes):
        self.chunks = list(chunks)
        self.closed = 0

    async def read_chunk(self):
        if self.chunks:
            return self.chunks.pop(0)
        return None

    async def aclose(self):
        self.closed += 1


class TestResponse:
    def test_init(self):
        r = tresp(http_version="HTTP/1.0", reason="Not OK", headers=((b"a", b"b"),))
        assert r.http_version == "HTTP/1.0"
        assert r.reason == "Not OK"
        assert r.headers["a"] == "b"
        with pytest.raises(TypeError):
            tresp(headers=[])

    def test_make(self):
        r = Response.make(404, "not found", {"Content-Type": "text/plain"})
        assert r.status_code == 404
        assert r.content == b"not found"
        assert r.text == "not found"
        assert r.headers["content-length"] == "9"

    def test_repr(self):
        r = tresp()
        assert repr(r) == "Response(200 OK, 7b)"
        r = tresp(content=None)
        assert repr(r) == "Response(200 OK, no content)"
        r.body = FakeBody()
        assert repr(r) == "Response(200 OK, streaming)"

    @pytest.mark.asyncio
    async def test_iter_content(self):
        r = tresp(content=None)
        body = FakeBody(b"foo", b"bar")
        r.body = body
        assert [chunk async for chunk in r] == [b"foo", b"bar"]
        assert body.closed == 1
        assert r.body is None
        assert r.data.timestamp_end is not None
        # the body can only be consumed once
        assert [chunk async for chunk in r] == []

    @pytest.mark.asyncio
    async def test_read(self):
        r = tresp(content=None)
        body = FakeBody(b"foo", b"bar")
        r.body = body
        assert await r.read() == b"foobar"
        assert r.content == b"foobar"
        assert r.text == "foobar"
        assert await r.read() == b"foobar"
        assert body.closed == 1

        assert await tresp().read() == b"message"
        assert [chunk async for chunk in tresp()] == [b"message"]

    @pytest.mark.asyncio
    async def test_aclose(self):
        r = tresp(content=None)
        body = FakeBody(b"foo")
        r.body = body
        async with r:
            pass
        assert body.closed == 1
        await r.aclose()
        assert body.closed == 1
        assert r.content is None
        assert r.text is None
