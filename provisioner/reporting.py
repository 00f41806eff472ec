"""User-facing message channel and CLI logging setup."""

from __future__ import annotations

import logging
import sys
from typing import Protocol, TextIO

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class UserReporter(Protocol):
    def info(self, message: str) -> None:
        """Print an informational line for the operator."""

    def msg_pair(self, label: str, value: str) -> None:
        """Print a labelled value, e.g. an address that was resolved."""

    def error(self, message: str) -> None:
        """Surface a recoverable or aggregated error to the operator."""

    def fatal(self, message: str) -> None:
        """Surface an error that ends the provisioning run."""


class ConsoleReporter:
    def __init__(self, *, out: TextIO | None = None, err: TextIO | None = None) -> None:
        self._out = out
        self._err = err

    def info(self, message: str) -> None:
        print(message, file=self._out or sys.stdout)

    def msg_pair(self, label: str, value: str) -> None:
        print(f"{label}: {value}", file=self._out or sys.stdout)

    def error(self, message: str) -> None:
        print(f"ERROR: {message}", file=self._err or sys.stderr)

    def fatal(self, message: str) -> None:
        print(f"FATAL: {message}", file=self._err or sys.stderr)


def configure_logging(*, verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%dT%H:%M:%S",
        stream=sys.stderr,
    )
