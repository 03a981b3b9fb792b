"""Tests for the App builder and its execution lifecycle.

Covers:
- Option application order and construction-time wiring errors
- Subcommand dispatch with and without the version/config flags
- Positional argument validation
- complete -> validate -> describe ordering and error aggregation
- --version short-circuit
- Config file, environment, and flag precedence
- Startup banner and silence
- Sectioned help output and the help command
"""

from __future__ import annotations

from pathlib import Path

import pytest

from cliapp import app as app_module
from cliapp import version
from cliapp.app import (
    App,
    format_basename,
    new_app,
    with_commands,
    with_default_valid_args,
    with_description,
    with_name,
    with_no_config,
    with_no_version,
    with_options,
    with_run_func,
    with_silence,
    with_valid_args,
)
from cliapp.command import Command, with_command_options, with_command_run_func
from cliapp.exceptions import FlagLookupError, InvalidArgsError


class Recorder:
    """Run function that remembers the basenames it was called with."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    def __call__(self, basename: str) -> None:
        self.calls.append(basename)


@pytest.fixture()
def recorder() -> Recorder:
    return Recorder()


# ------------------------------------------------------------------ #
# Construction
# ------------------------------------------------------------------ #


class TestConstruction:
    def test_new_app_returns_app(self):
        app = new_app("Demo", "demo")
        assert isinstance(app, App)
        assert app.name == "Demo"
        assert app.basename == "demo"
        assert app.command().name == "demo"

    def test_later_options_win(self):
        app = new_app("Demo", "demo", with_name("first"), with_name("second"))
        assert app.name == "second"
        assert app.command().short_help == "second"

    def test_description_is_long_help(self):
        app = new_app("Demo", "demo", with_description("Serves demo data."))
        assert app.command().help == "Serves demo data."

    def test_global_flags_registered(self):
        app = new_app("Demo", "demo")
        assert "version" in app.flags
        assert "config" in app.flags
        assert "help" in app.flags

    def test_no_version_no_config(self):
        app = new_app("Demo", "demo", with_no_version(), with_no_config())
        assert "version" not in app.flags
        assert "config" not in app.flags
        assert "help" in app.flags

    def test_option_flags_merged(self, server_options):
        app = new_app("Demo", "demo", with_options(server_options))
        for name in ("bind-address", "port", "debug", "tags"):
            assert name in app.flags

    def test_missing_registry_flag_is_fatal(self, monkeypatch):
        monkeypatch.setattr(app_module, "CONFIG_FLAG_NAME", "no-such-flag")
        with pytest.raises(FlagLookupError, match="no-such-flag"):
            new_app("Demo", "demo")

    def test_terminal_width_from_stdout(self, monkeypatch):
        monkeypatch.setattr(app_module, "terminal_size", lambda stream: (100, 40))
        assert new_app("Demo", "demo").command().columns == 100

    def test_terminal_width_failure_warns(self, capsys, monkeypatch):
        def fail(stream):
            raise OSError("ioctl failed")

        monkeypatch.setattr(app_module, "terminal_size", fail)
        app = new_app("Demo", "demo")
        assert app.command().columns == 0
        assert "Warning: cannot determine terminal width: ioctl failed" in capsys.readouterr().err

    def test_config_is_none_before_run(self):
        assert new_app("Demo", "demo").config is None

    def test_format_basename_non_windows(self, monkeypatch):
        monkeypatch.setattr(app_module.sys, "platform", "linux")
        assert format_basename("Demo.exe") == "Demo.exe"

    def test_format_basename_windows(self, monkeypatch):
        monkeypatch.setattr(app_module.sys, "platform", "win32")
        assert format_basename("Demo.EXE") == "demo"


# ------------------------------------------------------------------ #
# Subcommands
# ------------------------------------------------------------------ #


class TestSubcommands:
    def _ping_app(self, calls):
        ping = Command("ping", "Check the server answers.", with_command_run_func(calls.append))
        return new_app("Demo", "demo", with_no_version(), with_no_config(), with_commands(ping))

    def test_ping_runs(self):
        calls: list[list[str]] = []
        app = self._ping_app(calls)
        assert app.execute(["ping"]) == 0
        assert calls == [[]]

    def test_ping_passes_extra_args(self):
        calls: list[list[str]] = []
        app = self._ping_app(calls)
        assert app.execute(["ping", "extra"]) == 0
        assert calls == [["extra"]]

    def test_nested_commands(self):
        calls: list[list[str]] = []
        migrate = Command("migrate <dir>", "Run migrations.", with_command_run_func(calls.append))
        db = Command("db", "Database tools.")
        db.add_command(migrate)
        app = new_app("Demo", "demo", with_commands(db))

        assert app.execute(["db", "migrate", "up"]) == 0
        assert calls == [["up"]]

    def test_command_options_bound(self, bare_options):
        seen: list[str] = []
        sub = Command(
            "greet",
            "Say hello.",
            with_command_options(bare_options),
            with_command_run_func(lambda args: seen.append(bare_options.name)),
        )
        app = new_app("Demo", "demo", with_commands(sub))

        assert app.execute(["greet", "--name", "world"]) == 0
        assert seen == ["world"]

    def test_subcommand_error_reported(self, capsys):
        def fail(args):
            raise RuntimeError("ping failed")

        ping = Command("ping", "Ping.", with_command_run_func(fail))
        app = new_app("Demo", "demo", with_commands(ping))

        assert app.execute(["ping"]) == 1
        assert "Error: ping failed" in capsys.readouterr().err

    def test_unknown_subcommand(self, capsys):
        app = self._ping_app([])
        assert app.execute(["pong"]) == 1
        assert "No such command" in capsys.readouterr().err

    def test_no_args_without_run_func_prints_help(self, capsys):
        app = self._ping_app([])
        assert app.execute([]) == 0
        captured = capsys.readouterr()
        assert captured.out.startswith("Usage:\n  demo [flags]\n")
        assert "Available Commands:" in captured.out
        assert captured.err == ""

    def test_nested_group_without_run_func_prints_help(self, capsys):
        db = Command("db", "Database tools.")
        db.add_command(Command("migrate", "Run migrations.", with_command_run_func(lambda a: None)))
        app = new_app("Demo", "demo", with_commands(db))

        assert app.execute(["db"]) == 0
        out = capsys.readouterr().out
        assert "Usage:\n  demo db [flags]" in out
        assert "Run migrations." in out

    def test_leaf_without_run_func_prints_help(self, capsys):
        app = new_app("Demo", "demo", with_commands(Command("ping", "Check the server answers.")))
        assert app.execute(["ping"]) == 0
        assert "Usage:\n  demo ping [flags]" in capsys.readouterr().out

    def test_root_run_func_with_commands(self, recorder):
        calls: list[list[str]] = []
        ping = Command("ping", "Ping.", with_command_run_func(calls.append))
        app = new_app(
            "Demo", "demo", with_no_config(), with_commands(ping), with_run_func(recorder), with_silence()
        )

        assert app.execute([]) == 0
        assert recorder.calls == ["demo"]

        assert app.execute(["ping"]) == 0
        assert recorder.calls == ["demo"]
        assert calls == [[]]


# ------------------------------------------------------------------ #
# Positional arguments
# ------------------------------------------------------------------ #


class TestValidArgs:
    def test_default_valid_args_rejects(self, capsys, recorder):
        app = new_app(
            "Demo", "demo", with_no_config(), with_default_valid_args(), with_run_func(recorder)
        )

        assert app.execute(["foo"]) == 1
        err = capsys.readouterr().err
        assert '"demo" does not take any arguments, got "foo"' in err
        assert recorder.calls == []

    def test_default_valid_args_accepts_none(self, recorder):
        app = new_app(
            "Demo", "demo", with_no_config(), with_default_valid_args(), with_run_func(recorder), with_silence()
        )
        assert app.execute([]) == 0
        assert recorder.calls == ["demo"]

    def test_args_accepted_without_validator(self, recorder):
        app = new_app("Demo", "demo", with_no_config(), with_run_func(recorder), with_silence())
        assert app.execute(["anything"]) == 0
        assert recorder.calls == ["demo"]

    def test_custom_validator(self, capsys, recorder):
        def exactly_one(ctx, args):
            if len(args) != 1:
                raise InvalidArgsError(f"accepts 1 arg(s), received {len(args)}")

        app = new_app(
            "Demo", "demo", with_no_config(), with_valid_args(exactly_one), with_run_func(recorder)
        )
        assert app.execute(["a", "b"]) == 1
        assert "accepts 1 arg(s), received 2" in capsys.readouterr().err


# ------------------------------------------------------------------ #
# Option lifecycle
# ------------------------------------------------------------------ #


class TestOptionLifecycle:
    def test_complete_then_validate(self, server_options, recorder):
        app = new_app(
            "Demo", "demo", with_options(server_options), with_run_func(recorder), with_silence()
        )
        assert app.execute([]) == 0
        assert server_options.calls == ["complete", "validate"]
        assert recorder.calls == ["demo"]

    def test_complete_failure_skips_validate(self, capsys, server_options, recorder):
        server_options.complete_error = ValueError("cannot resolve host")
        app = new_app(
            "Demo", "demo", with_options(server_options), with_run_func(recorder), with_silence()
        )

        assert app.execute([]) == 1
        assert "Error: cannot resolve host" in capsys.readouterr().err
        assert server_options.calls == ["complete"]
        assert recorder.calls == []

    def test_validation_errors_aggregated(self, capsys, server_options, recorder):
        server_options.validation_errors = [ValueError("errA"), ValueError("errB")]
        app = new_app(
            "Demo", "demo", with_options(server_options), with_run_func(recorder), with_silence()
        )

        assert app.execute([]) == 1
        error_lines = [
            line for line in capsys.readouterr().err.splitlines() if line.startswith("Error:")
        ]
        assert len(error_lines) == 1
        assert "errA" in error_lines[0]
        assert "errB" in error_lines[0]
        assert recorder.calls == []

    def test_describe_logged(self, capsys, server_options, recorder):
        app = new_app(
            "Demo", "demo", with_options(server_options), with_run_func(recorder), with_silence()
        )
        app.execute(["--port", "9000"])
        assert "==> Config: `127.0.0.1:9000`" in capsys.readouterr().err

    def test_options_without_capabilities(self, bare_options, recorder):
        app = new_app(
            "Demo", "demo", with_options(bare_options), with_run_func(recorder), with_silence()
        )
        assert app.execute(["--name", "x"]) == 0
        assert bare_options.validated is True
        assert bare_options.name == "x"

    def test_run_func_error(self, capsys):
        def run(basename):
            raise RuntimeError(f"{basename} crashed")

        app = new_app("Demo", "demo", with_no_config(), with_run_func(run), with_silence())
        assert app.execute([]) == 1
        assert "Error: demo crashed" in capsys.readouterr().err

    def test_unknown_flag(self, capsys, recorder):
        app = new_app("Demo", "demo", with_run_func(recorder))
        assert app.execute(["--bogus"]) == 1
        assert "No such option" in capsys.readouterr().err
        assert recorder.calls == []

    def test_run_exits_with_code(self, recorder):
        app = new_app("Demo", "demo", with_no_config(), with_run_func(recorder), with_silence())
        with pytest.raises(SystemExit) as exc_info:
            app.run([])
        assert exc_info.value.code == 0


# ------------------------------------------------------------------ #
# Version flag
# ------------------------------------------------------------------ #


class TestVersionFlag:
    def test_version_short_circuits(self, capsys, server_options, recorder):
        app = new_app("Demo", "demo", with_options(server_options), with_run_func(recorder))

        assert app.execute(["--version"]) == 0
        captured = capsys.readouterr()
        assert "gitVersion:" in captured.out
        assert version.GIT_VERSION in captured.out
        assert recorder.calls == []
        assert server_options.calls == []

    def test_version_raw(self, capsys, recorder):
        app = new_app("Demo", "demo", with_run_func(recorder))
        assert app.execute(["--version=raw"]) == 0
        assert capsys.readouterr().out.startswith("Info(")
        assert recorder.calls == []

    def test_bare_version_ignores_following_arg(self, capsys, recorder):
        app = new_app("Demo", "demo", with_run_func(recorder))
        assert app.execute(["--version", "extra"]) == 0
        assert "gitVersion:" in capsys.readouterr().out
        assert recorder.calls == []

    def test_bare_version_before_flag(self, capsys, server_options, recorder):
        app = new_app("Demo", "demo", with_options(server_options), with_run_func(recorder))
        assert app.execute(["--version", "--port", "9000"]) == 0
        assert "gitVersion:" in capsys.readouterr().out

    def test_bare_version_before_subcommand(self):
        calls: list[list[str]] = []
        ping = Command("ping", "Ping.", with_command_run_func(calls.append))
        app = new_app("Demo", "demo", with_no_config(), with_commands(ping))
        assert app.execute(["--version", "ping"]) == 0
        assert calls == [[]]

    def test_version_false_runs(self, recorder):
        app = new_app("Demo", "demo", with_run_func(recorder), with_silence())
        assert app.execute(["--version=false"]) == 0
        assert recorder.calls == ["demo"]

    def test_version_invalid_value(self, capsys, recorder):
        app = new_app("Demo", "demo", with_run_func(recorder))
        assert app.execute(["--version=maybe"]) == 1
        assert 'invalid argument "maybe"' in capsys.readouterr().err

    def test_version_unknown_with_no_version(self, recorder):
        app = new_app("Demo", "demo", with_no_version(), with_run_func(recorder))
        assert app.execute(["--version"]) == 1


# ------------------------------------------------------------------ #
# Config binding
# ------------------------------------------------------------------ #


class TestConfigBinding:
    def test_config_file_applied(self, isolated_env: Path, server_options, recorder):
        (isolated_env / "demo.yaml").write_text("port: 9090\nbind-address: 10.0.0.1\n")
        app = new_app(
            "Demo", "demo", with_options(server_options), with_run_func(recorder), with_silence()
        )

        assert app.execute([]) == 0
        assert server_options.port == 9090
        assert server_options.bind_address == "10.0.0.1"
        assert app.config is not None
        assert app.config.config_file_used() == "demo.yaml"

    def test_flag_beats_config_file(self, isolated_env: Path, server_options, recorder):
        (isolated_env / "demo.yaml").write_text("port: 9090\n")
        app = new_app(
            "Demo", "demo", with_options(server_options), with_run_func(recorder), with_silence()
        )

        assert app.execute(["--port", "7070"]) == 0
        assert server_options.port == 7070

    def test_env_beats_config_file(self, isolated_env: Path, monkeypatch, server_options, recorder):
        (isolated_env / "demo.yaml").write_text("port: 9090\n")
        monkeypatch.setenv("DEMO_PORT", "6060")
        app = new_app(
            "Demo", "demo", with_options(server_options), with_run_func(recorder), with_silence()
        )

        assert app.execute([]) == 0
        assert server_options.port == 6060

    def test_flag_beats_env(self, monkeypatch, server_options, recorder):
        monkeypatch.setenv("DEMO_PORT", "6060")
        app = new_app(
            "Demo", "demo", with_options(server_options), with_run_func(recorder), with_silence()
        )

        assert app.execute(["--port", "7070"]) == 0
        assert server_options.port == 7070

    def test_explicit_config_file(self, tmp_path: Path, server_options, recorder):
        cfg = tmp_path / "custom.json"
        cfg.write_text('{"port": 5050, "tags": ["a", "b"]}')
        app = new_app(
            "Demo", "demo", with_options(server_options), with_run_func(recorder), with_silence()
        )

        assert app.execute(["-c", str(cfg)]) == 0
        assert server_options.port == 5050
        assert server_options.tags == ["a", "b"]

    def test_missing_explicit_config_file(self, capsys, server_options, recorder):
        app = new_app("Demo", "demo", with_options(server_options), with_run_func(recorder))

        assert app.execute(["--config", "missing.yaml"]) == 1
        assert "failed to read configuration file(missing.yaml)" in capsys.readouterr().err
        assert recorder.calls == []

    def test_bad_value_in_config_file(self, isolated_env: Path, capsys, server_options, recorder):
        (isolated_env / "demo.yaml").write_text("port: not-a-number\n")
        app = new_app("Demo", "demo", with_options(server_options), with_run_func(recorder))

        assert app.execute([]) == 1
        assert "cannot decode 'port'" in capsys.readouterr().err

    def test_no_config_skips_file(self, isolated_env: Path, server_options, recorder):
        (isolated_env / "demo.yaml").write_text("port: 9090\n")
        app = new_app(
            "Demo",
            "demo",
            with_options(server_options),
            with_no_config(),
            with_run_func(recorder),
            with_silence(),
        )

        assert app.execute([]) == 0
        assert server_options.port == 8080
        assert app.config is None


# ------------------------------------------------------------------ #
# Startup banner
# ------------------------------------------------------------------ #


class TestBanner:
    def test_banner_logged(self, capsys, recorder):
        app = new_app("Demo Server", "demo", with_run_func(recorder))
        assert app.execute([]) == 0
        err = capsys.readouterr().err
        assert "==> Starting Demo Server ..." in err
        assert f"==> Version: `{version.GIT_VERSION}`" in err
        assert "==> Config file used: ``" in err

    def test_banner_without_version_and_config(self, capsys, recorder):
        app = new_app("Demo", "demo", with_no_version(), with_no_config(), with_run_func(recorder))
        app.execute([])
        err = capsys.readouterr().err
        assert "==> Starting Demo ..." in err
        assert "Version:" not in err
        assert "Config file used" not in err

    def test_silence(self, capsys, recorder):
        app = new_app("Demo", "demo", with_run_func(recorder), with_silence())
        app.execute([])
        assert "Starting" not in capsys.readouterr().err

    def test_flags_dumped_in_verbose_mode(self, capsys, verbose_output, recorder):
        app = new_app("Demo", "demo", with_run_func(recorder), with_silence())
        app.execute([])
        err = capsys.readouterr().err
        assert "[debug] WorkingDir:" in err
        assert '[debug] FLAG: --version="false"' in err


# ------------------------------------------------------------------ #
# Help
# ------------------------------------------------------------------ #


class TestHelp:
    def test_root_help(self, capsys, server_options, recorder):
        app = new_app(
            "Demo",
            "demo",
            with_options(server_options),
            with_description("Serves demo data."),
            with_run_func(recorder),
        )

        assert app.execute(["--help"]) == 0
        out = capsys.readouterr().out
        assert out.startswith("Serves demo data.\n\nUsage:\n  demo [flags]\n")
        assert out.index("II flags:") < out.index("MM flags:") < out.index("GG flags:")
        assert "  -c, --config FILE" in out
        assert "  -h, --help" in out
        assert 'string[="true"]' in out
        assert '(default "127.0.0.1")' in out
        assert recorder.calls == []

    def test_short_help_flag(self, capsys, recorder):
        app = new_app("Demo", "demo", with_run_func(recorder))
        assert app.execute(["-h"]) == 0
        assert "Usage:\n  demo [flags]" in capsys.readouterr().out

    def test_no_run_func_prints_help(self, capsys):
        app = new_app("Demo", "demo")
        assert app.execute([]) == 0
        assert "Usage:\n  demo [flags]" in capsys.readouterr().out

    def test_group_help_lists_commands(self, capsys):
        ping = Command("ping", "Check the server answers.", with_command_run_func(lambda a: None))
        app = new_app("Demo", "demo", with_commands(ping))

        assert app.execute(["--help"]) == 0
        out = capsys.readouterr().out
        assert "Available Commands:" in out
        assert "Check the server answers." in out
        assert "Help about any command." in out
        assert 'Use "demo [command] --help"' in out

    def test_subcommand_help(self, capsys):
        ping = Command("ping", "Check the server answers.", with_command_run_func(lambda a: None))
        app = new_app("Demo", "demo", with_commands(ping))

        assert app.execute(["ping", "-H"]) == 0
        out = capsys.readouterr().out
        assert "Usage:\n  demo ping [flags]" in out
        assert "Help for the ping command." in out

    def test_help_command(self, capsys):
        ping = Command("ping", "Check the server answers.", with_command_run_func(lambda a: None))
        app = new_app("Demo", "demo", with_commands(ping))

        assert app.execute(["help", "ping"]) == 0
        out = capsys.readouterr().out
        assert out.startswith("Check the server answers.")
        assert "Usage:\n  demo ping [flags]" in out

    def test_help_unknown_topic(self, capsys):
        ping = Command("ping", "Ping.", with_command_run_func(lambda a: None))
        app = new_app("Demo", "demo", with_commands(ping))

        assert app.execute(["help", "nope"]) == 0
        err = capsys.readouterr().err
        assert 'Unknown help topic "nope"' in err
        assert "Usage:\n  demo [flags]" in err

    def test_help_unknown_nested_topic(self, capsys):
        ping = Command("ping", "Ping.", with_command_run_func(lambda a: None))
        app = new_app("Demo", "demo", with_commands(ping))

        assert app.execute(["help", "nope", "more"]) == 0
        assert 'Unknown help topic "nope more"' in capsys.readouterr().err
