"""Subcommands attached to an :class:`~cliapp.app.App`.

A :class:`Command` carries data only -- usage string, description, options,
children, and a run function. :meth:`Command.click_command` turns it into
the click command that the application's root dispatches to. Matching
arguments to commands stays click's job.

Example::

    ping = Command(
        "ping <host>",
        "Check that a host answers.",
        with_command_run_func(lambda args: do_ping(args[0])),
    )
    app = new_app("Ping tool", "pinger", with_commands(ping))
"""

from __future__ import annotations

from typing import Callable, Optional

import click

from cliapp.flags import FlagSet
from cliapp.help import (
    FLAG_HELP,
    FLAG_HELP_SHORTHAND,
    SectionedCommand,
    SectionedGroup,
    add_help_command_flag,
)
from cliapp.options import CliOptions
from cliapp.sections import NamedFlagSets

RunCommandFunc = Callable[[list[str]], None]
"""Subcommand entry point; receives the positional arguments and raises on failure."""

CommandOption = Callable[["Command"], None]


def with_command_options(opt: CliOptions) -> CommandOption:
    """Register the flags of *opt* on the command."""

    def apply(c: Command) -> None:
        c.options = opt

    return apply


def with_command_run_func(run: RunCommandFunc) -> CommandOption:
    """Set the function called when the command is selected."""

    def apply(c: Command) -> None:
        c.run_func = run

    return apply


class Command:
    """A subcommand of an application.

    Args:
        usage: One-line usage; the first word is the command name.
        desc: Short description shown in command listings and help.
        *opts: :data:`CommandOption` callables applied in order.
    """

    def __init__(self, usage: str, desc: str, *opts: CommandOption) -> None:
        self.usage = usage
        self.desc = desc
        self.options: Optional[CliOptions] = None
        self.commands: list[Command] = []
        self.run_func: Optional[RunCommandFunc] = None

        for opt in opts:
            opt(self)

    def __repr__(self) -> str:
        return f"Command(usage={self.usage!r})"

    @property
    def name(self) -> str:
        return self.usage.split(" ")[0]

    def add_command(self, cmd: Command) -> None:
        """Add *cmd* as a child of this command."""
        self.commands.append(cmd)

    def add_commands(self, *cmds: Command) -> None:
        """Add several children at once."""
        self.commands.extend(cmds)

    def click_command(self, columns: int = 0) -> click.Command:
        """Build the click command (a group when there are children).

        Args:
            columns: Width help text is wrapped to; ``0`` disables wrapping.
        """
        fss = self.options.flags() if self.options is not None else NamedFlagSets()
        add_help_command_flag(self.usage, fss.flag_set("global"))

        flags = FlagSet(self.name, sort_flags=False)
        for name in fss.order:
            flags.add_flag_set(fss.flag_sets[name])

        params: list[click.Parameter] = list(flags.click_options(skip=(FLAG_HELP,)))
        common = dict(
            name=self.name,
            help=self.desc,
            short_help=self.desc,
            callback=self._run_command,
            context_settings={"help_option_names": [f"-{FLAG_HELP_SHORTHAND}", f"--{FLAG_HELP}"]},
            named_flag_sets=fss,
            columns=columns,
            use=self.usage,
        )

        if self.commands:
            group = SectionedGroup(
                params=params, invoke_without_command=True, no_args_is_help=False, **common
            )
            for child in self.commands:
                group.add_command(child.click_command(columns))
            return group

        params.append(click.Argument(["args"], nargs=-1))
        return SectionedCommand(params=params, **common)

    def _run_command(self, args: tuple[str, ...] = ()) -> None:
        ctx = click.get_current_context()
        if ctx.invoked_subcommand is not None:
            return
        if self.run_func is None:
            click.echo(ctx.get_help())
            return
        self.run_func(list(args))
