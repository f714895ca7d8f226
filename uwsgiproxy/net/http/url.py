from __future__ import annotations

import urllib.parse
from typing import AnyStr

from uwsgiproxy.net import check


def split_host_port(hostport: str) -> tuple[str, str]:
    """
    Split a network address of the form "host:port", "[host]:port" or
    "[ipv6-host%zone]:port" into host and port. The port is returned as-is
    and may be empty ("example.com:").

    Brackets around an IPv6 literal are removed from the host.

    Raises:
        ValueError, if the address has no port or is malformed
        (e.g. an IPv6 literal without brackets).
    """
    i = hostport.rfind(":")
    if i < 0:
        raise ValueError(f"missing port in address: {hostport!r}")

    j = k = 0
    if hostport.startswith("["):
        end = hostport.find("]")
        if end < 0:
            raise ValueError(f"missing ']' in address: {hostport!r}")
        if end + 1 == len(hostport):
            raise ValueError(f"missing port in address: {hostport!r}")
        elif end + 1 != i:
            if hostport[end + 1] == ":":
                raise ValueError(f"too many colons in address: {hostport!r}")
            raise ValueError(f"missing port in address: {hostport!r}")
        host = hostport[1:end]
        j, k = 1, end + 1
    else:
        host = hostport[:i]
        if ":" in host:
            raise ValueError(f"too many colons in address: {hostport!r}")

    if "[" in hostport[j:]:
        raise ValueError(f"unexpected '[' in address: {hostport!r}")
    if "]" in hostport[k:]:
        raise ValueError(f"unexpected ']' in address: {hostport!r}")

    return host, hostport[i + 1 :]


def join_host_port(host: str, port: int | str) -> str:
    """
    The inverse of `split_host_port`: IPv6 literals are wrapped in brackets.
    """
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def parse_address(address: str) -> tuple[str, int]:
    """
    Parse a "host:port" dial address into a (host, port) tuple.

    Raises:
        ValueError, if the host or the port is invalid.
    """
    host, port_str = split_host_port(address)
    try:
        port = int(port_str)
    except ValueError:
        raise ValueError(f"Invalid port: {port_str!r}")
    if not check.is_valid_port(port):
        raise ValueError(f"Invalid port: {port}")
    if host and not check.is_valid_host(host.split("%", 1)[0]):
        raise ValueError(f"Invalid hostname: {host}")
    return host, port


def default_port(scheme: AnyStr) -> int | None:
    return {
        "http": 80,
        b"http": 80,
        "https": 443,
        b"https": 443,
    }.get(scheme, None)


def hostport(scheme: str, host: str, port: int) -> str:
    """
    Returns the host component, with a port specification if needed.
    """
    if ":" in host:
        host = f"[{host}]"
    if default_port(scheme) == port:
        return host
    else:
        return "%s:%d" % (host, port)


def unquote(s: str) -> str:
    """
    Args:
        s: A surrogate-escaped str
    Returns:
        A surrogate-escaped str
    """
    return urllib.parse.unquote(s, errors="surrogateescape")
