from __future__ import annotations

import logging
import os
import socket
import tempfile

import pytest

from uwsgiproxy import log

try:
    s = socket.socket(socket.AF_INET6, socket.SOCK_STREAM)
    s.bind(("::1", 0))
    s.close()
except OSError:
    no_ipv6 = True
else:
    no_ipv6 = False


@pytest.fixture()
def ipv6():
    if no_ipv6:
        pytest.skip("Host has no IPv6 support")


@pytest.fixture()
def unix_socket_path():
    if os.name == "nt":
        pytest.skip("Skipping due to Windows")
    # AF_UNIX paths are limited to ~100 characters, pytest's tmp_path is often longer.
    with tempfile.TemporaryDirectory() as d:
        yield os.path.join(d, "uwsgi.sock")


@pytest.fixture(autouse=True)
def _uninstall_log_handlers():
    yield
    for h in list(logging.getLogger().handlers):
        if isinstance(h, log.UwsgiLogHandler):
            h.uninstall()

