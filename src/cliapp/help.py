"""Help flags, the ``help`` command, and sectioned help rendering.

Commands built by :class:`~cliapp.app.App` and :class:`~cliapp.command.Command`
use :class:`SectionedCommand` / :class:`SectionedGroup` instead of click's
default help layout. Help text is::

    <long description>

    Usage:
      iam-apiserver [flags]

    GG flags:
      -c, --config FILE   Read configuration from specified FILE, ...
      -h, --help          help for iam-apiserver

with one section per named flag group, rendered by
:func:`cliapp.sections.render_sections` at the terminal width captured when
the command was built.
"""

from __future__ import annotations

from typing import Any, Optional

import click
import typer

from cliapp.flags import Flag, FlagSet, expand_no_opt_defaults
from cliapp.sections import NamedFlagSets, render_sections

FLAG_HELP = "help"
FLAG_HELP_SHORTHAND = "H"

USAGE_FMT = "Usage:\n  {}\n"


def add_global_flags(fs: FlagSet, name: str) -> Flag:
    """Define the root command's ``--help/-h`` flag on *fs*."""
    return fs.bool_flag(FLAG_HELP, False, f"help for {name}", shorthand="h")


def add_help_command_flag(usage: str, fs: FlagSet) -> Flag:
    """Define a subcommand's ``--help/-H`` flag on *fs*."""
    return fs.bool_flag(
        FLAG_HELP,
        False,
        f"Help for the {usage.split(' ')[0]} command.",
        shorthand=FLAG_HELP_SHORTHAND,
    )


class SectionedHelpMixin:
    """Render help as a usage line followed by named flag sections.

    Args:
        named_flag_sets: Groups shown in the help, in order.
        columns: Width descriptions are wrapped to; ``0`` disables wrapping.
        use: The usage string; its first word is the command name.
    """

    def __init__(
        self,
        *args: Any,
        named_flag_sets: Optional[NamedFlagSets] = None,
        columns: int = 0,
        use: str = "",
        **kwargs: Any,
    ) -> None:
        super().__init__(*args, **kwargs)
        self.named_flag_sets = named_flag_sets if named_flag_sets is not None else NamedFlagSets()
        self.columns = columns
        self.use = use

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        flags = [flag for fs in self.named_flag_sets.flag_sets.values() for flag in fs]
        args = expand_no_opt_defaults(flags, args, self.allow_interspersed_args)
        return super().parse_args(ctx, args)

    def use_line(self, ctx: click.Context) -> str:
        """The command path plus usage string, with ``[flags]`` when it has flags."""
        use = self.use or (ctx.info_name or "")
        line = f"{ctx.parent.command_path} {use}" if ctx.parent is not None else use
        has_flags = any(
            fs.has_available_flags() for fs in self.named_flag_sets.flag_sets.values()
        )
        if has_flags and "[flags]" not in line:
            line += " [flags]"
        return line

    def render_usage(self, ctx: click.Context) -> str:
        """Usage line and flag sections, without the long description."""
        return USAGE_FMT.format(self.use_line(ctx)) + render_sections(
            self.named_flag_sets, self.columns
        )

    def get_usage(self, ctx: click.Context) -> str:
        return USAGE_FMT.format(self.use_line(ctx)).rstrip("\n")

    def get_help(self, ctx: click.Context) -> str:
        parts = []
        long_help = getattr(self, "help", None)
        if long_help:
            parts.append(f"{long_help}\n\n")
        parts.append(USAGE_FMT.format(self.use_line(ctx)))
        parts.append(self._commands_text(ctx))
        parts.append(render_sections(self.named_flag_sets, self.columns))
        if isinstance(self, click.Group) and self.list_commands(ctx):
            parts.append(
                f'\nUse "{ctx.command_path} [command] --help" for more information '
                "about a command.\n"
            )
        return "".join(parts).rstrip("\n")

    def _commands_text(self, ctx: click.Context) -> str:
        if not isinstance(self, click.Group):
            return ""
        names = self.list_commands(ctx)
        if not names:
            return ""
        width = max(11, max(len(name) for name in names))
        lines = ["\nAvailable Commands:"]
        for name in names:
            sub = self.get_command(ctx, name)
            if sub is None or sub.hidden:
                continue
            short = sub.get_short_help_str(limit=80)
            lines.append(f"  {name.ljust(width)} {short}".rstrip())
        return "\n".join(lines) + "\n"


class SectionedCommand(SectionedHelpMixin, click.Command):
    """A leaf click command with sectioned help."""


class SectionedGroup(SectionedHelpMixin, click.Group):
    """A click group with sectioned help."""


def help_command(name: str) -> click.Command:
    """Build the ``help [command]`` command for an application called *name*."""

    @click.pass_context
    def show_help(ctx: click.Context, command: tuple[str, ...]) -> None:
        root_ctx = ctx.find_root()
        target: Optional[click.Command] = root_ctx.command
        target_ctx = root_ctx
        for part in command:
            if not isinstance(target, click.Group):
                break
            sub = target.get_command(target_ctx, part)
            if sub is None:
                target = None
                break
            target_ctx = click.Context(sub, info_name=part, parent=target_ctx)
            target = sub

        if target is None:
            typer.echo(f"Unknown help topic \"{' '.join(command)}\"", err=True)
            root = root_ctx.command
            if isinstance(root, SectionedHelpMixin):
                typer.echo(root.render_usage(root_ctx), err=True, nl=False)
            else:
                typer.echo(root.get_usage(root_ctx), err=True)
            return

        typer.echo(target.get_help(target_ctx))

    return click.Command(
        "help",
        callback=show_help,
        params=[click.Argument(["command"], nargs=-1)],
        short_help="Help about any command.",
        help=(
            "Help provides help for any command in the application.\n"
            f"Simply type {name} help [path to command] for full details."
        ),
    )
