from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import AsyncIterator
from collections.abc import Sequence
from pathlib import Path
from typing import BinaryIO
from typing import IO

from uwsgiproxy import config
from uwsgiproxy import directives
from uwsgiproxy import exceptions
from uwsgiproxy import http
from uwsgiproxy import log
from uwsgiproxy import version
from uwsgiproxy.net.dial import DialInfo
from uwsgiproxy.tools import cmdline
from uwsgiproxy.transport import Transport

logger = logging.getLogger(__name__)

CHUNK_SIZE = 65536


def process_params(args) -> dict[str, str]:
    """
    Collect the static uwsgi parameters from --conf, --params-file and --param, in that order.
    Later sources take precedence.
    """
    params: dict[str, str] = {}
    if args.conf:
        if not Path(args.conf).expanduser().is_file():
            raise exceptions.OptionsError(f"No such config file: {args.conf}")
        params.update(config.load_paths(args.conf))
    if args.params_file:
        try:
            text = Path(args.params_file).expanduser().read_text("utf8")
        except (OSError, UnicodeDecodeError) as e:
            raise exceptions.OptionsError(f"Error reading {args.params_file}: {e}")
        try:
            params.update(directives.parse(text))
        except exceptions.DirectiveError as e:
            raise exceptions.DirectiveError(f"Error reading {args.params_file}: {e}")
    for spec in args.params:
        key, sep, value = spec.partition("=")
        if not sep or not key:
            raise exceptions.OptionsError(
                f"Invalid parameter {spec!r}, expected KEY=VALUE."
            )
        params[key] = value
    return params


def parse_header(spec: str) -> tuple[bytes, bytes]:
    name, sep, value = spec.partition(":")
    if not sep or not name.strip():
        raise exceptions.OptionsError(f"Invalid header {spec!r}, expected NAME: VALUE.")
    return name.strip().encode(), value.strip().encode()


async def read_file(path: Path) -> AsyncIterator[bytes]:
    with path.open("rb") as f:
        while chunk := f.read(CHUNK_SIZE):
            yield chunk


def make_request(args) -> http.Request:
    dial_info = DialInfo.parse(args.dial)
    headers = http.Headers([parse_header(h) for h in args.headers])

    content: bytes | None = None
    stream: http.RequestStream | None = None
    if args.data is not None:
        content = args.data.encode()
    elif args.data_file:
        path = Path(args.data_file).expanduser()
        try:
            size = path.stat().st_size
        except OSError as e:
            raise exceptions.OptionsError(f"Error reading {args.data_file}: {e}")
        if "content-length" not in headers:
            headers["Content-Length"] = str(size)
        stream = read_file(path)

    if args.method:
        method = args.method
    elif content is not None or stream is not None:
        method = "POST"
    else:
        method = "GET"

    kwargs = {}
    if args.https:
        kwargs["tls"] = True
    request = http.Request.make(
        method,
        args.url,
        content,
        headers,
        peername=args.peer,
        dial_info=dial_info,
        **kwargs,
    )
    if stream is not None:
        request.stream = stream
    return request


def format_head(response: http.Response) -> bytes:
    status_line = f"{response.http_version} {response.status_code} {response.reason}"
    return status_line.encode() + b"\r\n" + bytes(response.headers) + b"\r\n"


async def request(
    transport: Transport, req: http.Request, out: BinaryIO, include: bool = False
) -> http.Response:
    logger.info(f"{req.method} {req.pretty_url}", extra={"client": req.peername})
    async with await transport.round_trip(req) as response:
        logger.info(
            f"<< {response.status_code} {response.reason}",
            extra={"client": req.peername},
        )
        if include:
            out.write(format_head(response))
        async for chunk in response:
            out.write(chunk)
        out.flush()
    return response


def run(
    arguments: Sequence[str] | None,
    out: BinaryIO | None = None,
    err: IO[str] | None = None,
) -> int:
    """
    Run the uwsgi-request command line tool and return its exit code.
    """
    out = out or sys.stdout.buffer
    err = err or sys.stderr
    parser = cmdline.uwsgi_request()
    args = parser.parse_args(arguments)

    if args.version:
        print(version.get_dev_version())
        return 0
    if not args.dial or not args.url:
        parser.print_usage(err)
        return 1

    verbosity = args.log_level
    if args.quiet:
        verbosity = "error"
    if args.verbose:
        verbosity = args.verbose
    handler = log.setup(verbosity, err)

    try:
        transport = Transport(process_params(args))
        transport.validate()
        req = make_request(args)
        asyncio.run(request(transport, req, out, args.include))
    except (exceptions.OptionsError, exceptions.TransportError, ValueError) as e:
        print(f"{parser.prog}: {e}", file=err)
        return 1
    finally:
        handler.uninstall()
    return 0


def uwsgi_request(args=None) -> int | None:  # pragma: no cover
    sys.exit(run(args))
