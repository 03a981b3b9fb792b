"""Shared test fixtures for cliapp.

Provides an options class exercising every capability of the options
contract, output fixtures that keep diagnostics predictable, and an
isolated environment so config file discovery never touches the real
home directory.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import pytest

from cliapp.output import OutputManager, reset_output, set_output
from cliapp.sections import NamedFlagSets


# ---------------------------------------------------------------------------
# Sample options
# ---------------------------------------------------------------------------


class ServerOptions:
    """Options with flags in two groups plus complete/validate/describe."""

    bind_address: str
    port: int
    debug: bool
    tags: list[str]

    def __init__(self) -> None:
        self.bind_address = "127.0.0.1"
        self.port = 8080
        self.debug = False
        self.tags = []
        self.calls: list[str] = []
        self.complete_error: Optional[Exception] = None
        self.validation_errors: list[Exception] = []

    def flags(self) -> NamedFlagSets:
        fss = NamedFlagSets()
        fs = fss.flag_set("insecure serving")
        fs.string_flag(
            "bind-address",
            self.bind_address,
            "The IP address on which to serve the --port.",
            target=(self, "bind_address"),
        )
        fs.int_flag("port", self.port, "The port on which to serve.", target=(self, "port"))
        misc = fss.flag_set("misc")
        misc.bool_flag("debug", self.debug, "Enable debug handlers.", target=(self, "debug"))
        misc.strings_flag("tags", self.tags, "Tags attached to the server.", target=(self, "tags"))
        return fss

    def complete(self) -> None:
        self.calls.append("complete")
        if self.complete_error is not None:
            raise self.complete_error

    def validate(self) -> list[Exception]:
        self.calls.append("validate")
        return list(self.validation_errors)

    def describe(self) -> str:
        return f"{self.bind_address}:{self.port}"


class BareOptions:
    """Options implementing only the required part of the contract."""

    def __init__(self) -> None:
        self.name = "bare"
        self.validated = False

    def flags(self) -> NamedFlagSets:
        fss = NamedFlagSets()
        fss.flag_set("generic").string_flag("name", self.name, "Name.", target=(self, "name"))
        return fss

    def validate(self) -> list[Exception]:
        self.validated = True
        return []


@pytest.fixture
def server_options() -> ServerOptions:
    return ServerOptions()


@pytest.fixture
def bare_options() -> BareOptions:
    return BareOptions()


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def plain_output() -> OutputManager:
    """Install a colourless OutputManager for every test.

    Colourless output goes through ``print`` against the current
    ``sys.stderr``, so ``capsys`` sees it regardless of when the manager
    was created.
    """
    output = OutputManager(no_color=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def verbose_output() -> OutputManager:
    """Install a colourless OutputManager with debug output enabled."""
    output = OutputManager(no_color=True, verbose=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# Environment isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run every test from an empty directory with a private HOME.

    Clears the environment variables the test applications read so the
    developer's shell cannot leak into config resolution.
    """
    home = tmp_path / "home"
    work = tmp_path / "work"
    home.mkdir()
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("NO_COLOR", raising=False)
    for var in ("DEMO_PORT", "DEMO_BIND_ADDRESS", "DEMO_SERVER_PORT", "DEMO_TAGS"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(work)
    return work
