"""cliapp -- scaffold for multi-command command-line applications.

An application is described by a name, a binary basename, an options object
and a run function. cliapp builds the click command tree, groups the
option flags into named help sections wrapped to the terminal width, loads
a JSON/YAML config file onto the options, validates them, and calls the run
function::

    from cliapp import new_app, with_options, with_run_func

    app = new_app("IAM API Server", "iam-apiserver",
                  with_options(opts), with_run_func(run))
    app.run()

Modules:
    app: The App builder, its options, and the execution lifecycle.
    command: Subcommands attached to an App.
    flags: Typed flags and flag sets backed by click options.
    sections: Named flag groups and sectioned help rendering.
    options: Protocols the application's options object implements.
    config: Config file, environment, and flag precedence.
    version: Build metadata and the --version flag.
    terminal: Terminal size detection.
    output: Diagnostic output on stderr with Rich support.
    exceptions: Exception hierarchy with exit-code mapping.
"""

from cliapp.app import (
    App,
    Option,
    PositionalArgs,
    RunFunc,
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
from cliapp.flags import Flag, FlagKind, FlagSet
from cliapp.options import CliOptions, CompletableOptions, PrintableOptions
from cliapp.sections import NamedFlagSets, print_sections

__version__ = "0.1.0"

__all__ = [
    "App",
    "CliOptions",
    "Command",
    "CompletableOptions",
    "Flag",
    "FlagKind",
    "FlagSet",
    "NamedFlagSets",
    "Option",
    "PositionalArgs",
    "PrintableOptions",
    "RunFunc",
    "new_app",
    "print_sections",
    "with_command_options",
    "with_command_run_func",
    "with_commands",
    "with_default_valid_args",
    "with_description",
    "with_name",
    "with_no_config",
    "with_no_version",
    "with_options",
    "with_run_func",
    "with_silence",
    "with_valid_args",
]
