"""Application bootstrap: build the root command and run the option lifecycle.

:func:`new_app` assembles an :class:`App` from a name, a binary basename and
a list of :data:`Option` callables. The root click command is built once,
during construction, and wires together:

* the flag groups exposed by the application's options
  (:class:`~cliapp.options.CliOptions`),
* the global ``--help``, ``--version`` and ``--config`` flags,
* child :class:`~cliapp.command.Command` objects plus a ``help`` command,
* sectioned help output wrapped to the terminal width.

:meth:`App.run` is the console-script entry point. The selected root command
runs the lifecycle in :meth:`App._run_command`: dump flags, honour
``--version``, load the config file onto the options, log the startup
banner, complete/validate/describe the options, and finally call the
application's :data:`RunFunc`.

Example::

    def run(basename: str) -> None:
        serve(opts)

    opts = ServerOptions()
    app = new_app(
        "IAM API Server",
        "iam-apiserver",
        with_options(opts),
        with_description("The IAM API server validates and configures data."),
        with_default_valid_args(),
        with_run_func(run),
    )
    app.run()
"""

from __future__ import annotations

import os
import sys
from typing import Callable, NoReturn, Optional, Sequence

import click

from cliapp import version
from cliapp.command import Command
from cliapp.config import CONFIG_FLAG_NAME, ConfigLoader, define_config_flag, new_loader
from cliapp.exceptions import AggregateError, InvalidArgsError, NotATerminalError
from cliapp.exit_codes import EXIT_GENERIC_FAILURE, EXIT_SUCCESS
from cliapp.flags import Flag, FlagSet, print_flags, register
from cliapp.help import (
    FLAG_HELP,
    SectionedCommand,
    SectionedGroup,
    add_global_flags,
    help_command,
)
from cliapp.options import CliOptions, CompletableOptions, PrintableOptions
from cliapp.output import debug, error, progress, warning
from cliapp.sections import NamedFlagSets
from cliapp.terminal import terminal_size

RunFunc = Callable[[str], None]
"""Application entry point; receives the basename and raises on failure."""

PositionalArgs = Callable[[click.Context, list[str]], None]
"""Validator for non-flag arguments; raises to reject them."""

Option = Callable[["App"], None]
"""Mutates an :class:`App` before its command is built."""


def with_options(opt: CliOptions) -> Option:
    """Read the application's parameters from the command line and config file into *opt*."""

    def apply(a: App) -> None:
        a.options = opt

    return apply


def with_run_func(run: RunFunc) -> Option:
    """Set the application's startup callback."""

    def apply(a: App) -> None:
        a.run_func = run

    return apply


def with_description(description: str) -> Option:
    """Set the long description shown at the top of the help text."""

    def apply(a: App) -> None:
        a.description = description

    return apply


def with_name(name: str) -> Option:
    """Override the display name given to :func:`new_app`."""

    def apply(a: App) -> None:
        a.name = name

    return apply


def with_silence() -> Option:
    """Don't log the startup banner, version and config file lines."""

    def apply(a: App) -> None:
        a.silence = True

    return apply


def with_no_version() -> Option:
    """Don't provide the ``--version`` flag."""

    def apply(a: App) -> None:
        a.no_version = True

    return apply


def with_no_config() -> Option:
    """Don't provide the ``--config`` flag or load a config file."""

    def apply(a: App) -> None:
        a.no_config = True

    return apply


def with_valid_args(args: PositionalArgs) -> Option:
    """Validate the root command's non-flag arguments with *args*."""

    def apply(a: App) -> None:
        a.args = args

    return apply


def with_default_valid_args() -> Option:
    """Reject any non-empty non-flag argument to the root command."""

    def validate(ctx: click.Context, args: list[str]) -> None:
        for arg in args:
            if len(arg) > 0:
                raise InvalidArgsError(
                    f'"{ctx.command_path}" does not take any arguments, got "{arg}"'
                )

    return with_valid_args(validate)


def with_commands(*commands: Command) -> Option:
    """Attach *commands* as subcommands of the root command."""

    def apply(a: App) -> None:
        a.commands.extend(commands)

    return apply


def format_basename(basename: str) -> str:
    """Normalise a binary name: on Windows, lower-case it and drop ``.exe``."""
    if sys.platform == "win32":
        basename = basename.lower()
        if basename.endswith(".exe"):
            basename = basename[: -len(".exe")]
    return basename


class App:
    """A command-line application.

    Create it with :func:`new_app` (or directly; the constructor takes the
    same arguments). The root command is built exactly once, at the end of
    construction, after every option has been applied.

    Args:
        name: Display name, used as the root command's short help.
        basename: Binary name, used as the command name, config file stem
            and environment variable prefix.
        *opts: :data:`Option` callables applied in order; later ones win.
    """

    def __init__(self, name: str, basename: str, *opts: Option) -> None:
        self.name = name
        self.basename = basename
        self.description = ""
        self.options: Optional[CliOptions] = None
        self.run_func: Optional[RunFunc] = None
        self.silence = False
        self.no_version = False
        self.no_config = False
        self.commands: list[Command] = []
        self.args: Optional[PositionalArgs] = None

        # Flags other packages provide, copied into the "global" group by name.
        self._registry = FlagSet("global-registry")
        version.define_flags(self._registry)
        define_config_flag(self._registry)

        self._flags = FlagSet(basename)
        self._version_flag: Optional[Flag] = None
        self._config_flag: Optional[Flag] = None
        self._config: Optional[ConfigLoader] = None

        for opt in opts:
            opt(self)

        self._cmd = self._build_command()

    def __repr__(self) -> str:
        return f"App(name={self.name!r}, basename={self.basename!r})"

    def command(self) -> click.Command:
        """Return the root click command."""
        return self._cmd

    @property
    def flags(self) -> FlagSet:
        """Every flag parsed by the root command."""
        return self._flags

    @property
    def config(self) -> Optional[ConfigLoader]:
        """The loader used by the last run, or ``None`` before a run or with ``no_config``."""
        return self._config

    def _build_command(self) -> click.Command:
        use = format_basename(self.basename)

        named_flag_sets = NamedFlagSets()
        if self.options is not None:
            named_flag_sets = self.options.flags()

        try:
            cols, _ = terminal_size(sys.stdout)
        except NotATerminalError:
            # Unknown width: help text is not wrapped.
            cols = 0
        except OSError as exc:
            warning(f"cannot determine terminal width: {exc}")
            cols = 0

        global_fs = named_flag_sets.flag_set("global")
        if not self.no_version:
            self._version_flag = register(global_fs, self._registry, version.VERSION_FLAG_NAME)
        if not self.no_config:
            self._config_flag = register(global_fs, self._registry, CONFIG_FLAG_NAME)
        add_global_flags(global_fs, use)

        for name in named_flag_sets.order:
            self._flags.add_flag_set(named_flag_sets.flag_sets[name])

        params: list[click.Parameter] = list(self._flags.click_options(skip=(FLAG_HELP,)))
        callback = self._run_command if self.run_func is not None else self._print_help
        common = dict(
            name=use,
            help=self.description,
            short_help=self.name,
            callback=callback,
            context_settings={"help_option_names": ["-h", "--help"]},
            named_flag_sets=named_flag_sets,
            columns=cols,
            use=use,
        )

        if self.commands:
            # With no run func the callback prints help.
            cmd: click.Command = SectionedGroup(
                params=params,
                invoke_without_command=True,
                no_args_is_help=False,
                **common,
            )
            for command in self.commands:
                cmd.add_command(command.click_command(cols))
            cmd.add_command(help_command(self.name))
            return cmd

        params.append(click.Argument(["args"], nargs=-1))
        return SectionedCommand(params=params, **common)

    def execute(self, args: Optional[Sequence[str]] = None) -> int:
        """Run the command tree on *args* (default ``sys.argv[1:]``).

        Failures are printed to stderr as ``Error: <message>`` and all exit
        with :data:`~cliapp.exit_codes.EXIT_GENERIC_FAILURE`.

        Returns:
            The process exit code.
        """
        try:
            rv = self._cmd.main(
                args=list(args) if args is not None else None,
                prog_name=self._cmd.name,
                standalone_mode=False,
            )
        except click.ClickException as exc:
            error(exc.format_message())
            return EXIT_GENERIC_FAILURE
        except click.Abort:
            error("Aborted!")
            return EXIT_GENERIC_FAILURE
        except Exception as exc:
            error(str(exc) or type(exc).__name__)
            return EXIT_GENERIC_FAILURE

        # click returns the exit code of typer.Exit from the version check.
        if isinstance(rv, int) and not isinstance(rv, bool):
            return rv
        return EXIT_SUCCESS

    def run(self, args: Optional[Sequence[str]] = None) -> NoReturn:
        """Launch the application and exit the process with its status."""
        sys.exit(self.execute(args))

    def _print_help(self, args: tuple[str, ...] = ()) -> None:
        ctx = click.get_current_context()
        if ctx.invoked_subcommand is None:
            click.echo(ctx.get_help())

    def _run_command(self, args: tuple[str, ...] = ()) -> None:
        ctx = click.get_current_context()
        if ctx.invoked_subcommand is not None:
            return

        if self.args is not None:
            self.args(ctx, list(args))

        _print_work_dir()
        print_flags(self._flags)

        if self._version_flag is not None:
            version.print_and_exit_if_requested(self._version_flag)

        if self._config_flag is not None:
            loader = new_loader(self.basename, self._config_flag.value)
            loader.read_in_config()
            loader.bind_flags(self._flags)
            if self.options is not None:
                loader.unmarshal(self.options)
            self._config = loader

        if not self.silence:
            progress(f"Starting {self.name} ...")
            if self._version_flag is not None:
                progress(f"Version: `{version.get()}`")
            if self._config is not None:
                progress(f"Config file used: `{self._config.config_file_used()}`")

        if self.options is not None:
            _apply_option_rules(self.options)

        if self.run_func is not None:
            self.run_func(self.basename)


def new_app(name: str, basename: str, *opts: Option) -> App:
    """Create an application and build its root command.

    Args:
        name: Display name.
        basename: Binary name.
        *opts: :data:`Option` callables applied in order.
    """
    return App(name, basename, *opts)


def _print_work_dir() -> None:
    debug(f"WorkingDir: {os.getcwd()}")


def _apply_option_rules(options: CliOptions) -> None:
    if isinstance(options, CompletableOptions):
        options.complete()

    errs = options.validate()
    if errs:
        raise AggregateError(errs)

    if isinstance(options, PrintableOptions):
        progress(f"Config: `{options.describe()}`")
