"""Exception hierarchy for cliapp.

All exceptions inherit from :class:`CliappError`.
:meth:`cliapp.app.App.execute` catches every failure, prints
``Error: <message>`` to stderr and returns
:data:`~cliapp.exit_codes.EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    CliappError
    +-- InvalidArgsError
    +-- ConfigError
    +-- AggregateError
    +-- FlagLookupError
    +-- NotATerminalError
"""

from __future__ import annotations

from typing import Sequence


class CliappError(Exception):
    """Base exception for all cliapp errors.

    Args:
        message: Human-readable error description printed to stderr.
    """

    def __init__(self, message: str):
        super().__init__(message)


class InvalidArgsError(CliappError):
    """Raised by a positional-argument validator that rejects the arguments."""


class ConfigError(CliappError):
    """Raised when a config file cannot be read or unmarshalled onto the options."""


class FlagLookupError(CliappError):
    """Raised at construction time when a required flag is missing from a registry.

    This is a programming error in the application wiring, not a runtime
    condition, so it surfaces from :func:`cliapp.app.new_app` instead of
    being reported as a command failure.
    """


class NotATerminalError(CliappError):
    """Raised by :func:`cliapp.terminal.terminal_size` for a non-tty stream."""


class AggregateError(CliappError):
    """Several errors combined into one failure.

    A single error keeps its own message; several are rendered as
    ``[first, second, ...]``. Duplicate messages are reported once.

    Args:
        errors: The individual errors, in the order they were found.
    """

    def __init__(self, errors: Sequence[BaseException]):
        self.errors = list(errors)
        super().__init__(_aggregate_message(self.errors))


def _aggregate_message(errors: Sequence[BaseException]) -> str:
    messages: list[str] = []
    for err in errors:
        msg = str(err)
        if msg not in messages:
            messages.append(msg)
    if len(messages) == 1:
        return messages[0]
    return "[" + ", ".join(messages) + "]"
