import pytest

from uwsgiproxy import environ
from uwsgiproxy.http import Headers
from uwsgiproxy.http import Request
from uwsgiproxy.net import uwsgi
from uwsgiproxy.test.tutils import treq


def status_request(**kwargs) -> Request:
    kwargs.setdefault("peername", "10.0.0.7:51234")
    return Request.make("GET", "http://example.com/status?x=1", **kwargs)


def test_header_var_name():
    assert environ.header_var_name("X-Custom-Id") == "HTTP_X_CUSTOM_ID"
    assert environ.header_var_name("accept") == "HTTP_ACCEPT"
    assert environ.header_var_name("Content-Type") == "HTTP_CONTENT_TYPE"


@pytest.mark.parametrize(
    "peername,expected",
    [
        ("10.0.0.7:51234", ("10.0.0.7", "51234")),
        ("[::1]:8080", ("::1", "8080")),
        ("[2001:db8::1]:443", ("2001:db8::1", "443")),
        ("host:", ("host", "")),
    ],
)
def test_split_peername(peername, expected):
    assert environ.split_peername(peername) == expected


@pytest.mark.parametrize("peername", ["", "10.0.0.7", "localhost"])
def test_split_peername_err(peername):
    with pytest.raises(ValueError, match="no port"):
        environ.split_peername(peername)


@pytest.mark.parametrize(
    "host,tls,expected",
    [
        ("example.com", False, ("example.com", "80")),
        ("example.com", True, ("example.com", "443")),
        ("example.com:8080", False, ("example.com", "8080")),
        ("example.com:", True, ("example.com", "443")),
        ("[::1]:8443", True, ("::1", "8443")),
        # not a valid host:port, the whole value is used as the name
        ("::1", False, ("::1", "80")),
        ("", False, ("", "80")),
    ],
)
def test_server_name_port(host, tls, expected):
    assert environ.server_name_port(host, tls) == expected


def test_derive_vars():
    vars = environ.derive_vars(status_request())
    assert vars == {
        "QUERY_STRING": "x=1",
        "REQUEST_METHOD": "GET",
        "CONTENT_TYPE": "",
        "CONTENT_LENGTH": "",
        "REQUEST_URI": "/status?x=1",
        "PATH_INFO": "/status",
        "SERVER_PROTOCOL": "HTTP/1.1",
        "REQUEST_SCHEME": "http",
        "HTTPS": "",
        "REMOTE_ADDR": "10.0.0.7",
        "REMOTE_PORT": "51234",
        "SERVER_NAME": "example.com",
        "SERVER_PORT": "80",
        "HTTP_HOST": "example.com",
    }


def test_derive_vars_https():
    r = Request.make(
        "POST",
        "https://example.com:8443/api/caf%C3%A9",
        b"{}",
        {"Content-Type": "application/json"},
        peername="[::1]:4711",
    )
    vars = environ.derive_vars(r)
    assert vars["HTTPS"] == "on"
    assert vars["REQUEST_SCHEME"] == "https"
    assert vars["SERVER_NAME"] == "example.com"
    assert vars["SERVER_PORT"] == "8443"
    assert vars["HTTP_HOST"] == "example.com:8443"
    assert vars["REMOTE_ADDR"] == "::1"
    assert vars["REMOTE_PORT"] == "4711"
    assert vars["CONTENT_TYPE"] == "application/json"
    assert vars["CONTENT_LENGTH"] == "2"
    assert vars["HTTP_CONTENT_TYPE"] == "application/json"
    assert vars["HTTP_CONTENT_LENGTH"] == "2"
    assert vars["REQUEST_URI"] == "/api/caf%C3%A9"
    assert vars["PATH_INFO"] == "/api/café"
    assert vars["QUERY_STRING"] == ""


def test_derive_vars_tls_without_https_scheme():
    # HTTPS follows the client connection, not the upstream scheme
    r = treq(tls=True, headers=Headers(host="example.com"))
    vars = environ.derive_vars(r)
    assert vars["HTTPS"] == "on"
    assert vars["REQUEST_SCHEME"] == "http"
    assert vars["SERVER_PORT"] == "443"


def test_derive_vars_headers():
    r = status_request(
        headers=[
            (b"X-Custom-Id", b"abc"),
            (b"Accept", b"text/html"),
            (b"accept", b"application/json"),
        ]
    )
    vars = environ.derive_vars(r)
    assert vars["HTTP_X_CUSTOM_ID"] == "abc"
    assert vars["HTTP_ACCEPT"] == "text/html, application/json"
    assert vars["HTTP_HOST"] == "example.com"


def test_derive_vars_host_header():
    r = treq(
        host="10.1.1.1",
        port=3031,
        headers=Headers(host="public.example.com:8080"),
    )
    vars = environ.derive_vars(r)
    assert vars["HTTP_HOST"] == "public.example.com:8080"
    assert vars["SERVER_NAME"] == "public.example.com"
    assert vars["SERVER_PORT"] == "8080"

    r = treq(host="10.1.1.1", port=3031, headers=Headers())
    vars = environ.derive_vars(r)
    assert vars["HTTP_HOST"] == "10.1.1.1:3031"
    assert vars["SERVER_NAME"] == "10.1.1.1"
    assert vars["SERVER_PORT"] == "3031"


def test_derive_vars_bad_peername():
    with pytest.raises(ValueError, match="Invalid client address"):
        environ.derive_vars(status_request(peername="10.0.0.7"))


def test_make_vars():
    params = {"SCRIPT_NAME": "/app", "HTTP_HOST": "override.example.com"}
    vars = environ.make_vars(status_request(), params)
    assert vars["SCRIPT_NAME"] == "/app"
    assert vars["HTTP_HOST"] == "override.example.com"
    # derived values that are not overridden stay as they are
    assert vars["SERVER_NAME"] == "example.com"
    assert environ.make_vars(status_request(), {}) == environ.derive_vars(
        status_request()
    )


def test_encode_request():
    params = {"SCRIPT_NAME": "/app"}
    block = environ.encode_request(status_request(), params)
    vars = uwsgi.decode_vars(block)
    assert vars == environ.make_vars(status_request(), params)
    assert vars["SCRIPT_NAME"] == "/app"
    assert vars["QUERY_STRING"] == "x=1"


def test_encode_request_too_large():
    r = status_request(headers={"X-Big": "x" * 70000})
    with pytest.raises(ValueError, match="too long"):
        environ.encode_request(r, {})
