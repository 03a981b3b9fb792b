"""Contracts an application's options object fulfils.

:class:`CliOptions` is required by :func:`cliapp.app.with_options`. The
other two protocols are optional capabilities: :class:`~cliapp.app.App`
checks for them at the point of use and silently skips the step when the
options object does not provide it.

A minimal options class::

    class ServerOptions:
        def __init__(self) -> None:
            self.port = 8080

        def flags(self) -> NamedFlagSets:
            fss = NamedFlagSets()
            fss.flag_set("insecure serving").int_flag(
                "port", self.port, "Port to listen on.", target=(self, "port"))
            return fss

        def validate(self) -> list[Exception]:
            if not 0 < self.port < 65536:
                return [ValueError(f"--port {self.port} must be between 1 and 65535")]
            return []
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from cliapp.sections import NamedFlagSets


@runtime_checkable
class CliOptions(Protocol):
    """Options read from the command line (and optionally a config file)."""

    def flags(self) -> NamedFlagSets:
        """Return the flag groups to register on the command."""
        ...

    def validate(self) -> list[Exception]:
        """Return every validation failure; an empty list means valid."""
        ...


@runtime_checkable
class CompletableOptions(Protocol):
    """Options that fill in defaults and derived values before validation."""

    def complete(self) -> None:
        ...


@runtime_checkable
class PrintableOptions(Protocol):
    """Options that can render themselves for the startup log."""

    def describe(self) -> str:
        ...
