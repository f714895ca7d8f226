from __future__ import annotations

import logging
import os
import sys
from typing import IO

LogLevels = [
    "error",
    "warn",
    "info",
    "debug",
]


class UwsgiFormatter(logging.Formatter):
    with_client = "[%s][%s] %s"
    without_client = "[%s] %s"

    default_time_format = "%H:%M:%S"
    default_msec_format = "%s.%03d"

    def format(self, record: logging.LogRecord) -> str:
        time = self.formatTime(record)
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        if client := getattr(record, "client", None):
            return self.with_client % (time, client, message)
        else:
            return self.without_client % (time, message)


class UwsgiLogHandler(logging.Handler):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._initiated_in_test = os.environ.get("PYTEST_CURRENT_TEST")

    def filter(self, record: logging.LogRecord) -> bool:
        # We can't remove stale handlers here because that would modify .handlers during iteration!
        return bool(
            super().filter(record)
            and (
                not self._initiated_in_test
                or self._initiated_in_test == os.environ.get("PYTEST_CURRENT_TEST")
            )
        )

    def install(self) -> None:
        if self._initiated_in_test:
            for h in list(logging.getLogger().handlers):
                if (
                    isinstance(h, UwsgiLogHandler)
                    and h._initiated_in_test != self._initiated_in_test
                ):
                    h.uninstall()

        logging.getLogger().addHandler(self)

    def uninstall(self) -> None:
        logging.getLogger().removeHandler(self)


class TermLogHandler(UwsgiLogHandler):
    def __init__(self, out: IO[str] | None = None):
        super().__init__()
        self.file: IO[str] = out or sys.stderr
        self.formatter = UwsgiFormatter()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            print(self.format(record), file=self.file)
        except OSError:
            # We cannot print, exit immediately.
            sys.exit(1)


def setup(verbosity: str = "info", out: IO[str] | None = None) -> TermLogHandler:
    """
    Log to the terminal with the given verbosity (one of `LogLevels`).
    """
    if verbosity not in LogLevels:
        raise ValueError(f"Invalid log verbosity: {verbosity}")
    handler = TermLogHandler(out)
    handler.setLevel(verbosity.upper())
    handler.install()
    logging.getLogger().setLevel(logging.DEBUG)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    return handler
