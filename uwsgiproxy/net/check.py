"""
Validity checks for the host and port of a dial address.
"""

import ipaddress
import re

# One DNS label. Underscores are accepted, internal host names use them.
_label_valid = re.compile(r"[a-z\d_](?:[a-z\d\-_]{0,61}[a-z\d_])?$", re.IGNORECASE)


def is_valid_host(host: str) -> bool:
    """
    True if host is an IPv4/IPv6 address or a hostname,
    optionally fully qualified with a trailing dot.
    """
    try:
        ipaddress.ip_address(host)
        return True
    except ValueError:
        pass
    try:
        name = host.encode("idna").decode("ascii")
    except UnicodeError:
        return False
    name = name.removesuffix(".")
    # RFC1035: 253 characters in text form
    if not name or len(name) > 253:
        return False
    return all(_label_valid.match(label) for label in name.split("."))


def is_valid_port(port: int) -> bool:
    return 0 <= port <= 65535
