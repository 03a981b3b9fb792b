"""Named flag groups and their sectioned help rendering.

Applications group related flags into named buckets ("generic", "secure
serving", "global", ...). The buckets only affect help output: every flag is
still parsed by whichever command the groups are merged into.
"""

from __future__ import annotations

from typing import IO, Any

from cliapp.flags import FlagSet

# Above this width, descriptions get their own line.
_SECTION_MIN_COLUMNS = 24


class NamedFlagSets:
    """Flag sets keyed by name, remembering the order names were first used.

    Attributes:
        order: Group names in first-reference order, without duplicates.
        flag_sets: The :class:`~cliapp.flags.FlagSet` for each name.
    """

    def __init__(self) -> None:
        self.order: list[str] = []
        self.flag_sets: dict[str, FlagSet] = {}

    def __repr__(self) -> str:
        return f"NamedFlagSets(order={self.order!r})"

    def flag_set(self, name: str) -> FlagSet:
        """Return the flag set called *name*, creating it on first use."""
        if name not in self.flag_sets:
            self.flag_sets[name] = FlagSet(name)
            self.order.append(name)
        return self.flag_sets[name]


def section_header(name: str) -> str:
    return f"{(name[:1] * 2).upper()} flags:"


def render_sections(fss: NamedFlagSets, cols: int) -> str:
    """Return the text :func:`print_sections` writes."""
    out = []
    for name in fss.order:
        fs = fss.flag_sets[name]
        if not fs.has_flags():
            continue

        if cols > _SECTION_MIN_COLUMNS:
            # Push descriptions below the flag names so the whole width is
            # available to them.
            usages = fs.flag_usages_wrapped(cols, min_column=cols - 9)
        else:
            usages = fs.flag_usages_wrapped(0)
        out.append(f"\n{section_header(name)}\n{usages}")
    return "".join(out)


def print_sections(w: IO[Any], fss: NamedFlagSets, cols: int) -> None:
    """Write one help section per non-empty group of *fss*, in group order.

    Each section is a blank line, a ``"<XX> flags:"`` header and the group's
    flag usages. With ``cols > 24`` descriptions are wrapped to *cols*; with
    ``cols <= 24`` (``0`` meaning unknown width) nothing is wrapped.
    """
    w.write(render_sections(fss, cols))
