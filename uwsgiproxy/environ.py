"""
Translate HTTP requests into uwsgi variable blocks.

The variables follow the CGI/WSGI naming conventions. The block is built in
two steps: `derive_vars` computes everything that is known from the request,
then the statically configured parameters are laid over it, so that a
configured `SCRIPT_NAME` or `HTTP_HOST` always replaces the derived value.
"""

from collections.abc import Mapping

from uwsgiproxy import http
from uwsgiproxy.net import uwsgi
from uwsgiproxy.net.http import url


def header_var_name(name: str) -> str:
    """
    `X-Custom-Id` -> `HTTP_X_CUSTOM_ID`
    """
    return "HTTP_" + name.upper().replace("-", "_")


def split_peername(peername: str) -> tuple[str, str]:
    """
    Split the client address into host and port on the last colon.
    Brackets around IPv6 hosts are removed.

    *Raises:*
     - ValueError, if the address has no port separator.
    """
    host, sep, port = peername.rpartition(":")
    if not sep:
        raise ValueError(f"Invalid client address (no port): {peername!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host, port


def server_name_port(host: str, tls: bool) -> tuple[str, str]:
    """
    Split the requested host into SERVER_NAME and SERVER_PORT.
    If no port is given, the default port for the scheme is assumed.
    """
    try:
        name, port = url.split_host_port(host)
    except ValueError:
        name, port = host, ""
    if not port:
        port = "443" if tls else "80"
    return name, port


def derive_vars(request: http.Request) -> dict[str, str]:
    """
    Compute the request variables, without any configured parameters.

    *Raises:*
     - ValueError, if the client address is malformed.
    """
    remote_addr, remote_port = split_peername(request.peername)
    host = request.host_header
    server_name, server_port = server_name_port(host, request.tls)

    vars = {
        "QUERY_STRING": request.query_string,
        "REQUEST_METHOD": request.method,
        "CONTENT_TYPE": request.headers.get("content-type", ""),
        "CONTENT_LENGTH": request.headers.get("content-length", ""),
        "REQUEST_URI": request.path,
        "PATH_INFO": request.decoded_path,
        "SERVER_PROTOCOL": request.http_version,
        "REQUEST_SCHEME": request.scheme,
        "HTTPS": "on" if request.tls else "",
        "REMOTE_ADDR": remote_addr,
        "REMOTE_PORT": remote_port,
        "SERVER_NAME": server_name,
        "SERVER_PORT": server_port,
        "HTTP_HOST": host,
    }
    for name in request.headers:
        vars[header_var_name(name)] = ", ".join(request.headers.get_all(name))
    return vars


def make_vars(request: http.Request, params: Mapping[str, str]) -> dict[str, str]:
    """
    The complete variable block for a request: derived variables, overridden by `params`.
    """
    return {**derive_vars(request), **params}


def encode_request(request: http.Request, params: Mapping[str, str]) -> bytes:
    """
    Serialize the variable block for a request.

    *Raises:*
     - ValueError, if the request cannot be represented as a uwsgi packet.
    """
    return uwsgi.encode_vars(make_vars(request, params))
