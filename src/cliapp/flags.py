"""Typed command-line flags backed by :class:`click.Option`.

A :class:`FlagSet` is an ordered collection of :class:`Flag` objects. Each
flag knows how to turn itself into a ``click.Option`` for parsing and how to
render its own usage line, so the same flag can be parsed by one command and
listed in the help sections of another.

Flags may be bound to an attribute of an options object with
``target=(obj, "attr")``: the attribute receives the default at definition
time and the parsed value when the command line is processed::

    fs = FlagSet("generic")
    fs.string_flag("bind-address", "0.0.0.0", "The IP address to listen on.",
                   target=(opts, "bind_address"))

Usage lines follow the familiar layout of Go's pflag package: a back-quoted
word in the usage text becomes the value placeholder, non-zero defaults are
appended as ``(default ...)``, and descriptions are wrapped to a column
width on request.
"""

from __future__ import annotations

import enum
import itertools
import re
from typing import Any, Iterable, Iterator, Optional, Sequence

import click
from click.core import ParameterSource
from click.formatting import wrap_text

from cliapp.exceptions import FlagLookupError
from cliapp.output import debug

# Below this many columns for the description, wrapping is not attempted.
_MIN_WRAP = 24
_BLOCK_INDENT = 16


class FlagKind(str, enum.Enum):
    """Value types a :class:`Flag` can carry."""

    BOOL = "bool"
    STRING = "string"
    INT = "int"
    FLOAT = "float"
    STRINGS = "strings"


_CLICK_TYPES: dict[FlagKind, click.ParamType] = {
    FlagKind.BOOL: click.BOOL,
    FlagKind.STRING: click.STRING,
    FlagKind.INT: click.INT,
    FlagKind.FLOAT: click.FLOAT,
    FlagKind.STRINGS: click.STRING,
}


def word_sep_normalize(name: str) -> str:
    """Normalise a flag name so ``_`` separators become ``-``."""
    return name.replace("_", "-")


class Flag:
    """A single named command-line flag.

    Args:
        name: Long name, without dashes. Underscores are normalised to dashes.
        kind: Value type.
        default: Default value; also the initial :attr:`value`.
        usage: Help text. A back-quoted word names the value placeholder.
        shorthand: Optional one-letter short name.
        no_opt_default: Value used when the flag is given without a value
            (``--version`` means ``--version=true``).
        hidden: Keep the flag out of usage listings.
        target: ``(obj, attr)`` pair that mirrors the flag's value.
    """

    def __init__(
        self,
        name: str,
        kind: FlagKind,
        default: Any,
        usage: str,
        shorthand: str = "",
        no_opt_default: Optional[str] = None,
        hidden: bool = False,
        target: Optional[tuple[Any, str]] = None,
    ) -> None:
        if shorthand and len(shorthand) != 1:
            raise ValueError(
                f"{shorthand!r} shorthand is more than one ASCII character"
            )
        self.name = word_sep_normalize(name)
        self.kind = FlagKind(kind)
        self.default = default
        self.usage = usage
        self.shorthand = shorthand
        self.no_opt_default = no_opt_default
        self.hidden = hidden
        self.value: Any = default
        self.changed = False
        self._target = target
        if target is not None:
            setattr(target[0], target[1], default)

    def __repr__(self) -> str:
        return f"Flag(name={self.name!r}, kind={self.kind.value!r}, value={self.value!r})"

    @property
    def dest(self) -> str:
        """Identifier click uses to store the parsed value."""
        return re.sub(r"\W", "_", self.name)

    def set(self, value: Any, changed: bool = True) -> None:
        """Store *value* (and mirror it onto the bound target, if any)."""
        if self.kind == FlagKind.STRINGS:
            value = _split_strings(value)
        self.value = value
        self.changed = changed
        if self._target is not None:
            setattr(self._target[0], self._target[1], value)

    def value_string(self) -> str:
        """Render the current value the way it is shown in flag dumps."""
        return _format_value(self.kind, self.value)

    def default_is_zero_value(self) -> bool:
        if self.kind == FlagKind.STRINGS:
            return not self.default
        if self.kind == FlagKind.BOOL:
            return not self.default
        return self.default in (None, "", 0)

    def to_click_option(self) -> click.Option:
        """Build the ``click.Option`` that parses this flag."""
        long_name = f"--{self.name}"
        decls = [long_name]
        kwargs: dict[str, Any] = {
            "hidden": self.hidden,
            "expose_value": False,
            "callback": self._on_parse,
            "help": unquote_usage(self)[1],
        }

        if self.kind == FlagKind.BOOL and self.no_opt_default is None:
            if self.default:
                decls = [f"{long_name}/--no-{self.name}"]
            kwargs["is_flag"] = True
            kwargs["default"] = bool(self.default)
        elif self.no_opt_default is not None:
            # Bare uses are rewritten by expand_no_opt_defaults before parsing.
            kwargs["type"] = click.STRING
            kwargs["default"] = _format_value(self.kind, self.default)
        elif self.kind == FlagKind.STRINGS:
            kwargs["multiple"] = True
            kwargs["type"] = click.STRING
            kwargs["default"] = tuple(self.default or ())
        else:
            kwargs["type"] = _CLICK_TYPES[self.kind]
            kwargs["default"] = self.default

        if self.shorthand:
            decls.append(f"-{self.shorthand}")
        decls.append(self.dest)
        return click.Option(decls, **kwargs)

    def _on_parse(self, ctx: click.Context, param: click.Parameter, value: Any) -> Any:
        source = ctx.get_parameter_source(param.name)
        if self.no_opt_default is not None and self.kind == FlagKind.BOOL:
            value = _parse_bool(value)
        self.set(value, changed=source not in (None, ParameterSource.DEFAULT))
        return value


class FlagSet:
    """An ordered collection of :class:`Flag` objects.

    Args:
        name: Name of the set, used in error messages.
        sort_flags: List flags alphabetically in usage output and iteration.
    """

    def __init__(self, name: str = "", sort_flags: bool = True) -> None:
        self.name = name
        self.sort_flags = sort_flags
        self._flags: dict[str, Flag] = {}

    def __repr__(self) -> str:
        return f"FlagSet(name={self.name!r}, flags={list(self._flags)!r})"

    def __iter__(self) -> Iterator[Flag]:
        flags = list(self._flags.values())
        if self.sort_flags:
            flags.sort(key=lambda f: f.name)
        return iter(flags)

    def __len__(self) -> int:
        return len(self._flags)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and word_sep_normalize(name) in self._flags

    def has_flags(self) -> bool:
        return len(self._flags) > 0

    def has_available_flags(self) -> bool:
        return any(not f.hidden for f in self._flags.values())

    def lookup(self, name: str) -> Optional[Flag]:
        """Return the flag called *name*, or ``None``."""
        return self._flags.get(word_sep_normalize(name))

    def add_flag(self, flag: Flag) -> Flag:
        """Add *flag*; a second flag with the same long or short name is an error."""
        if flag.name in self._flags:
            raise ValueError(f"{self.name} flag redefined: {flag.name}")
        if flag.shorthand:
            for existing in self._flags.values():
                if existing.shorthand == flag.shorthand:
                    raise ValueError(
                        f"unable to redefine {flag.shorthand!r} shorthand in "
                        f"{self.name!r} flagset: it's already used for "
                        f"{existing.name!r} flag"
                    )
        self._flags[flag.name] = flag
        return flag

    def add_flag_set(self, other: Optional["FlagSet"]) -> None:
        """Add every flag of *other* that is not already present."""
        if other is None:
            return
        for flag in other._flags.values():
            if flag.name not in self._flags:
                self.add_flag(flag)

    # --- typed constructors ---

    def bool_flag(
        self,
        name: str,
        default: bool = False,
        usage: str = "",
        *,
        shorthand: str = "",
        target: Optional[tuple[Any, str]] = None,
    ) -> Flag:
        return self.add_flag(
            Flag(name, FlagKind.BOOL, default, usage, shorthand=shorthand, target=target)
        )

    def string_flag(
        self,
        name: str,
        default: str = "",
        usage: str = "",
        *,
        shorthand: str = "",
        no_opt_default: Optional[str] = None,
        target: Optional[tuple[Any, str]] = None,
    ) -> Flag:
        return self.add_flag(
            Flag(
                name,
                FlagKind.STRING,
                default,
                usage,
                shorthand=shorthand,
                no_opt_default=no_opt_default,
                target=target,
            )
        )

    def int_flag(
        self,
        name: str,
        default: int = 0,
        usage: str = "",
        *,
        shorthand: str = "",
        target: Optional[tuple[Any, str]] = None,
    ) -> Flag:
        return self.add_flag(
            Flag(name, FlagKind.INT, default, usage, shorthand=shorthand, target=target)
        )

    def float_flag(
        self,
        name: str,
        default: float = 0.0,
        usage: str = "",
        *,
        shorthand: str = "",
        target: Optional[tuple[Any, str]] = None,
    ) -> Flag:
        return self.add_flag(
            Flag(name, FlagKind.FLOAT, default, usage, shorthand=shorthand, target=target)
        )

    def strings_flag(
        self,
        name: str,
        default: Optional[list[str]] = None,
        usage: str = "",
        *,
        shorthand: str = "",
        target: Optional[tuple[Any, str]] = None,
    ) -> Flag:
        return self.add_flag(
            Flag(
                name,
                FlagKind.STRINGS,
                list(default or []),
                usage,
                shorthand=shorthand,
                target=target,
            )
        )

    # --- usage rendering ---

    def click_options(self, skip: tuple[str, ...] = ()) -> list[click.Option]:
        """Convert the flags (except those named in *skip*) to click options."""
        return [f.to_click_option() for f in self if f.name not in skip]

    def flag_usages(self) -> str:
        """Usage lines for every visible flag, unwrapped."""
        return self.flag_usages_wrapped(0)

    def flag_usages_wrapped(self, cols: int, min_column: int = 0) -> str:
        """Usage lines for every visible flag, descriptions wrapped to *cols*.

        ``cols == 0`` disables wrapping. Descriptions start in a shared column
        after the longest flag name, or at *min_column* if that is further
        right. When fewer than 24 columns remain for descriptions they move to
        their own line below the flag name, indented by 16.
        """
        entries: list[tuple[str, str]] = []
        maxlen = 0
        for flag in self:
            if flag.hidden:
                continue
            if flag.shorthand:
                line = f"  -{flag.shorthand}, --{flag.name}"
            else:
                line = f"      --{flag.name}"

            varname, usage = unquote_usage(flag)
            if varname:
                line += " " + varname
            if flag.no_opt_default is not None:
                if flag.kind == FlagKind.STRING:
                    line += f'[="{flag.no_opt_default}"]'
                elif flag.kind != FlagKind.BOOL or flag.no_opt_default != "true":
                    line += f"[={flag.no_opt_default}]"
            maxlen = max(maxlen, len(line) + 1)

            if not flag.default_is_zero_value():
                default = _format_value(flag.kind, flag.default)
                if flag.kind == FlagKind.STRING:
                    usage += f' (default "{default}")'
                else:
                    usage += f" (default {default})"
            entries.append((line, usage))

        column = max(maxlen + 2, min_column)
        out = []
        for line, usage in entries:
            wrapped = _wrap(column, cols, usage)
            head = line.ljust(column)
            if wrapped.startswith("\n"):
                head = head.rstrip()
            out.append(head + wrapped + "\n")
        return "".join(out)


def unquote_usage(flag: Flag) -> tuple[str, str]:
    """Extract the value placeholder from a flag's usage text.

    The first back-quoted word names the placeholder and is kept in the
    usage without quotes. Otherwise the placeholder is the flag kind, and
    bool flags get none.
    """
    match = re.search(r"`([^`]*)`", flag.usage)
    if match:
        name = match.group(1)
        return name, flag.usage[: match.start()] + name + flag.usage[match.end():]
    if flag.kind == FlagKind.BOOL:
        return "", flag.usage
    return flag.kind.value, flag.usage


def register(local: FlagSet, registry: FlagSet, global_name: str) -> Flag:
    """Copy the flag *global_name* from *registry* into *local*.

    Raises:
        FlagLookupError: If *registry* has no such flag.
    """
    flag = registry.lookup(global_name)
    if flag is None:
        raise FlagLookupError(
            f"failed to find flag in global flagset ({registry.name}): {global_name}"
        )
    if flag.name not in local:
        local.add_flag(flag)
    return flag


def expand_no_opt_defaults(
    flags: Iterable[Flag], args: Sequence[str], interspersed: bool = True
) -> list[str]:
    """Attach the no-option default to bare uses of flags that have one.

    ``--version`` becomes ``--version=true`` and ``-V`` becomes ``-Vtrue``, so
    the token after a bare flag is never taken as its value. Only
    ``--version=raw`` (or ``-Vraw``) sets another value.

    Tokens after ``--`` are left alone, and so is everything from the first
    positional argument on when *interspersed* is false (a group stops
    parsing its own options there).
    """
    bare: dict[str, str] = {}
    takes_value: set[str] = set()
    for flag in flags:
        names = [f"--{flag.name}"]
        if flag.shorthand:
            names.append(f"-{flag.shorthand}")
        for name in names:
            if flag.no_opt_default is not None:
                bare[name] = flag.no_opt_default
            elif flag.kind != FlagKind.BOOL:
                takes_value.add(name)

    out: list[str] = []
    rest = iter(args)
    for arg in rest:
        if arg == "--":
            out.append(arg)
            break
        if arg in bare:
            sep = "=" if arg.startswith("--") else ""
            out.append(f"{arg}{sep}{bare[arg]}")
            continue
        out.append(arg)
        if arg in takes_value:
            out.extend(itertools.islice(rest, 1))
        elif not interspersed and not arg.startswith("-"):
            break
    out.extend(rest)
    return out


def print_flags(flags: FlagSet) -> None:
    """Debug-log every flag as ``FLAG: --name="value"``."""
    for flag in flags:
        debug(f'FLAG: --{flag.name}="{flag.value_string()}"')


def _wrap(i: int, w: int, s: str) -> str:
    """Wrap *s* to width *w* for a description starting at column *i*."""
    if w == 0:
        return s.replace("\n", "\n" + " " * i)

    width = w - i
    lead = ""
    if width < _MIN_WRAP:
        i = _BLOCK_INDENT
        width = w - i
        lead = "\n" + " " * i
        if width < _MIN_WRAP:
            return lead + s.replace("\n", lead)

    lines: list[str] = []
    for paragraph in s.split("\n"):
        lines.extend(wrap_text(paragraph, width).splitlines() or [""])
    return lead + ("\n" + " " * i).join(lines)


def _split_strings(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    items: list[str] = []
    for item in value:
        items.extend(part for part in str(item).split(",") if part)
    return items


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "t", "true", "yes", "on")


def _format_value(kind: FlagKind, value: Any) -> str:
    if kind == FlagKind.BOOL:
        return "true" if value else "false"
    if kind == FlagKind.STRINGS:
        return "[" + ",".join(value or []) + "]"
    if value is None:
        return ""
    return str(value)
