"""
Dial hints describe which network address should be connected to for a request.

The host proxy may resolve the upstream itself (e.g. to a unix socket) and
attach the result to the request as `DialInfo`. Without a hint, the request's
upstream host and port are dialed over TCP.
"""

import asyncio
import socket
from dataclasses import dataclass

from uwsgiproxy.net.http import url

NETWORKS = ("tcp", "tcp4", "tcp6", "unix")

_families = {
    "tcp": 0,
    "tcp4": socket.AF_INET,
    "tcp6": socket.AF_INET6,
}


@dataclass(frozen=True)
class DialInfo:
    network: str
    """One of "tcp", "tcp4", "tcp6" or "unix"."""
    address: str
    """ "host:port" for TCP networks, a filesystem path for unix sockets."""

    def __post_init__(self):
        if self.network not in NETWORKS:
            raise ValueError(f"Unsupported network: {self.network!r}")
        if not self.address:
            raise ValueError("No address given.")

    def __str__(self) -> str:
        return f"{self.network}/{self.address}"

    @classmethod
    def parse(cls, spec: str) -> "DialInfo":
        """
        Parses a dial specification, e.g.:

         - unix//run/uwsgi/app.sock
         - tcp/127.0.0.1:3031
         - tcp6/[::1]:3031
         - localhost:3031

        *Raises:*
         - ValueError, if the specification is invalid.
        """
        network, sep, address = spec.partition("/")
        if not sep or network not in NETWORKS:
            network, address = "tcp", spec
        info = cls(network, address)
        if info.network != "unix":
            url.parse_address(info.address)
        return info


async def open_connection(
    dial_info: DialInfo,
) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """
    Open a new stream connection for the given dial hint.

    *Raises:*
     - OSError, if the connection cannot be established.
     - ValueError, if the TCP address is malformed.
    """
    if dial_info.network == "unix":
        return await asyncio.open_unix_connection(dial_info.address)

    host, port = url.parse_address(dial_info.address)
    return await asyncio.open_connection(
        host or "localhost",
        port,
        family=_families[dial_info.network],
    )
