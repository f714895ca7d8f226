import argparse

from uwsgiproxy import log


def common_options(parser):
    parser.add_argument(
        "--version",
        action="store_true",
        help="show version number and exit",
        dest="version",
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", dest="quiet", help="Quiet."
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_const",
        dest="verbose",
        const="debug",
        help="Increase log verbosity.",
    )


def uwsgi_request():
    parser = argparse.ArgumentParser(
        usage="%(prog)s [options] DIAL URL",
        description="Send a single HTTP request to an application server using the uwsgi protocol.",
    )
    common_options(parser)
    parser.add_argument(
        "dial",
        nargs="?",
        metavar="DIAL",
        help="""
            Address of the application server, e.g. 127.0.0.1:3031,
            tcp6/[::1]:3031 or unix//run/uwsgi/app.sock.
        """,
    )
    parser.add_argument(
        "url",
        nargs="?",
        metavar="URL",
        help="The request URL, e.g. http://example.com/status?x=1",
    )

    group = parser.add_argument_group("Request Options")
    group.add_argument(
        "-X",
        "--request",
        type=str,
        dest="method",
        metavar="METHOD",
        help="Request method. Defaults to GET, or POST if a body is given.",
    )
    group.add_argument(
        "-H",
        "--header",
        type=str,
        dest="headers",
        default=[],
        action="append",
        metavar="HEADER",
        help='Add a request header, e.g. "Accept: text/html". May be passed multiple times.',
    )
    body = group.add_mutually_exclusive_group()
    body.add_argument(
        "-d", "--data", type=str, dest="data", metavar="DATA", help="Request body."
    )
    body.add_argument(
        "--data-file",
        type=str,
        dest="data_file",
        metavar="PATH",
        help="Stream the request body from a file.",
    )
    group.add_argument(
        "--https",
        action="store_true",
        dest="https",
        help="Report the request as received over TLS, regardless of the URL scheme.",
    )
    group.add_argument(
        "--peer",
        type=str,
        dest="peer",
        default="127.0.0.1:0",
        metavar="HOST:PORT",
        help="Client address to report to the application server.",
    )
    group.add_argument(
        "-i",
        "--include",
        action="store_true",
        dest="include",
        help="Print the response status line and headers.",
    )

    group = parser.add_argument_group("uwsgi Parameters")
    group.add_argument(
        "--param",
        type=str,
        dest="params",
        default=[],
        action="append",
        metavar="KEY=VALUE",
        help="""
            Set a static uwsgi parameter. May be passed multiple times.
            Takes precedence over --params-file and --conf.
        """,
    )
    group.add_argument(
        "--params-file",
        type=str,
        dest="params_file",
        metavar="PATH",
        help="Read uwsgi_param directives from a file.",
    )
    group.add_argument(
        "--conf",
        type=str,
        dest="conf",
        metavar="PATH",
        help="Read uwsgi_params from a YAML or JSON file.",
    )
    group.add_argument(
        "--log-level",
        type=str,
        dest="log_level",
        default="info",
        choices=log.LogLevels,
        help="Log verbosity.",
    )
    return parser
