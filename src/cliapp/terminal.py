"""Terminal size detection for help-text wrapping."""

from __future__ import annotations

import io
import os
from typing import IO, Any

from cliapp.exceptions import NotATerminalError


def terminal_size(stream: IO[Any]) -> tuple[int, int]:
    """Return the ``(width, height)`` of the terminal behind *stream*.

    Usually *stream* is the process stdout; stderr is often redirected
    separately and gives the wrong answer.

    Raises:
        NotATerminalError: If *stream* has no file descriptor or the
            descriptor is not a tty.
        OSError: If the size query itself fails.
    """
    try:
        fd = stream.fileno()
    except (AttributeError, ValueError, io.UnsupportedOperation) as exc:
        raise NotATerminalError("given stream is no terminal") from exc

    if not os.isatty(fd):
        raise NotATerminalError("given stream is no terminal")

    size = os.get_terminal_size(fd)
    return size.columns, size.lines
