"""
Exceptions that may be visible to users of uwsgiproxy.

We mostly use builtin exceptions (ValueError for malformed input, OSError for
socket errors) and specialize where a caller needs to tell failures apart:

- configuration problems are reported at load time as `OptionsError`,
- everything that goes wrong while talking to the backend is a `TransportError`.
"""


class UwsgiProxyException(Exception):
    """
    Base class for all exceptions thrown by uwsgiproxy.
    """

    def __init__(self, message=None):
        super().__init__(message)


class OptionsError(UwsgiProxyException):
    pass


class DirectiveError(OptionsError):
    """
    Raised for malformed static parameter directives.
    """


class TransportError(UwsgiProxyException):
    """
    The backend could not be reached, the connection failed while sending,
    or the backend's reply is not a well-formed HTTP response.
    """
