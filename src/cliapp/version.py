"""Build metadata and the ``--version`` flag.

Release pipelines stamp the module-level ``GIT_*`` and ``BUILD_DATE``
values (for example by rewriting this file or by calling
:func:`set_build_info` from the application's entry point). :func:`get`
combines them with interpreter details into an :class:`Info` model.

The version flag accepts ``--version`` (same as ``--version=true``) to print
the metadata table and ``--version=raw`` to print the model's repr.
"""

from __future__ import annotations

import platform
import sys
from typing import Optional

import typer
from pydantic import BaseModel

from cliapp.exceptions import InvalidArgsError
from cliapp.flags import Flag, FlagSet

VERSION_FLAG_NAME = "version"

VERSION_FALSE = "false"
VERSION_TRUE = "true"
VERSION_RAW = "raw"

GIT_VERSION = "v0.0.0-master"
GIT_COMMIT = ""
GIT_TREE_STATE = ""
BUILD_DATE = "1970-01-01T00:00:00Z"


class Info(BaseModel):
    """Version metadata of the running binary."""

    git_version: str
    git_commit: str
    git_tree_state: str
    build_date: str
    python_version: str
    compiler: str
    platform: str

    def __str__(self) -> str:
        return self.git_version

    def text(self) -> str:
        """Render the metadata as an aligned two-column table."""
        rows = [
            ("gitVersion:", self.git_version),
            ("gitCommit:", self.git_commit),
            ("gitTreeState:", self.git_tree_state),
            ("buildDate:", self.build_date),
            ("pythonVersion:", self.python_version),
            ("compiler:", self.compiler),
            ("platform:", self.platform),
        ]
        width = max(len(label) for label, _ in rows)
        return "\n".join(f"{label.ljust(width)} {value}".rstrip() for label, value in rows)


def set_build_info(
    git_version: Optional[str] = None,
    git_commit: Optional[str] = None,
    git_tree_state: Optional[str] = None,
    build_date: Optional[str] = None,
) -> None:
    """Override the stamped build metadata; ``None`` keeps the current value."""
    global GIT_VERSION, GIT_COMMIT, GIT_TREE_STATE, BUILD_DATE
    if git_version is not None:
        GIT_VERSION = git_version
    if git_commit is not None:
        GIT_COMMIT = git_commit
    if git_tree_state is not None:
        GIT_TREE_STATE = git_tree_state
    if build_date is not None:
        BUILD_DATE = build_date


def get() -> Info:
    """Return the metadata for this build."""
    return Info(
        git_version=GIT_VERSION,
        git_commit=GIT_COMMIT,
        git_tree_state=GIT_TREE_STATE,
        build_date=BUILD_DATE,
        python_version=platform.python_version(),
        compiler=sys.implementation.name,
        platform=f"{sys.platform}/{platform.machine()}",
    )


def define_flags(fs: FlagSet) -> Flag:
    """Define ``--version[=true|raw]`` on *fs*."""
    return fs.string_flag(
        VERSION_FLAG_NAME,
        VERSION_FALSE,
        "Print version information and quit.",
        no_opt_default=VERSION_TRUE,
    )


def requested(flag: Flag) -> str:
    """Normalise the version flag's value to ``false``, ``true`` or ``raw``.

    Raises:
        InvalidArgsError: For any other value.
    """
    value = str(flag.value).strip().lower()
    if value == VERSION_RAW:
        return VERSION_RAW
    if value in ("1", "t", "true"):
        return VERSION_TRUE
    if value in ("", "0", "f", "false"):
        return VERSION_FALSE
    raise InvalidArgsError(
        f'invalid argument "{flag.value}" for "--{flag.name}" flag: '
        "expected true, false or raw"
    )


def print_and_exit_if_requested(flag: Flag) -> None:
    """Print version metadata and stop the command if *flag* asks for it.

    Raises:
        typer.Exit: After printing, so the caller's remaining steps never run.
    """
    mode = requested(flag)
    if mode == VERSION_RAW:
        typer.echo(repr(get()))
        raise typer.Exit()
    if mode == VERSION_TRUE:
        typer.echo(get().text())
        raise typer.Exit()
