"""Locate `backquote` and $(new style) substitution regions in a command line.

Regions are found, not run. The flat, insertion-ordered entry list
doubles as a tree through each entry's depth: the deepest terminated
region runs first, and the caller re-scans the rebuilt string after
splicing its output back in.
"""

from collections.abc import Callable
from dataclasses import dataclass, field

from loguru import logger

from shellplan import host

BACKQUOTE = "`"
NEW_STYLE_OPEN = "$("
NEW_STYLE_CLOSE = ")"


@dataclass
class BackquoteEntry:
    """One substitution region; ``start_offset`` points past its opener."""

    master: str = field(repr=False)
    start_offset: int
    length: int
    tree_depth: int
    new_style: bool
    terminated: bool = False
    abandoned: bool = False

    @property
    def text(self) -> str:
        return self.master[self.start_offset : self.start_offset + self.length]

    @property
    def prefix_length(self) -> int:
        """Characters taken by the opener: 2 for ``$(``, 1 for a backquote."""
        return len(NEW_STYLE_OPEN) if self.new_style else len(BACKQUOTE)

    @property
    def live(self) -> bool:
        return not self.terminated and not self.abandoned

    def contains(self, offset: int) -> bool:
        return self.start_offset <= offset <= self.start_offset + self.length


@dataclass
class BackquoteContext:
    entries: list[BackquoteEntry] = field(default_factory=list)
    max_depth: int = 0
    current_depth: int = 0

    @property
    def match_count(self) -> int:
        return len(self.entries)

    def open(self, master: str, offset: int, new_style: bool) -> BackquoteEntry:
        self.current_depth += 1
        entry = BackquoteEntry(
            master=master,
            start_offset=offset,
            length=len(master) - offset,
            tree_depth=self.current_depth,
            new_style=new_style,
        )
        self.max_depth = max(self.max_depth, entry.tree_depth)
        self.entries.append(entry)
        return entry

    def terminate(self, offset: int, new_style: bool) -> BackquoteEntry | None:
        """Close the innermost open region matching a closer at offset.

        A backquote only ever closes an open backquote region directly on
        top; under an open ``$(`` it starts a new region instead. A ``)``
        abandons any backquote regions above the ``$(`` it closes.
        """
        for entry in reversed(self.entries):
            if not entry.live:
                continue
            if entry.new_style == new_style:
                entry.terminated = True
                entry.length = offset - entry.start_offset
                self.current_depth -= 1
                return entry
            if not new_style:
                return None
            entry.abandoned = True
            entry.length = offset - entry.start_offset
            self.current_depth -= 1
        return None

    def execution_order(self) -> list[BackquoteEntry]:
        """Terminated entries, deepest first, left to right within a depth."""
        return [
            entry
            for depth in range(self.max_depth, 0, -1)
            for entry in self.entries
            if entry.terminated and entry.tree_depth == depth
        ]


def parse_substitutions(
    text: str, *, is_escape_char: Callable[[str], bool] = host.is_escape_char
) -> BackquoteContext:
    """Scan text once and record every substitution region.

    An escape hides the character after it, and nothing inside double
    quotes counts. Regions still open at the end run to the end of text.
    """
    context = BackquoteContext()
    quote_open = False
    index = 0

    while index < len(text):
        c = text[index]
        if is_escape_char(c):
            index += 2
            continue

        if c == '"':
            quote_open = not quote_open
        if quote_open:
            index += 1
            continue

        if c == BACKQUOTE:
            if context.terminate(index, new_style=False) is None:
                context.open(text, index + 1, new_style=False)
        elif c == NEW_STYLE_CLOSE:
            context.terminate(index, new_style=True)
        elif text.startswith(NEW_STYLE_OPEN, index):
            context.open(text, index + len(NEW_STYLE_OPEN), new_style=True)
            index += 1
        index += 1

    logger.debug(
        "substitution.parsed matches={} max_depth={}", context.match_count, context.max_depth
    )
    return context


def find_next_substitution(
    text: str, *, is_escape_char: Callable[[str], bool] = host.is_escape_char
) -> tuple[BackquoteEntry, int] | None:
    """Return the next region to run and the length of its opener, or None."""
    order = parse_substitutions(text, is_escape_char=is_escape_char).execution_order()
    if not order:
        return None
    entry = order[0]
    return entry, entry.prefix_length


def find_best_substitution_at(
    text: str, cursor: int, *, is_escape_char: Callable[[str], bool] = host.is_escape_char
) -> BackquoteEntry | None:
    """Return the innermost region around cursor, finished or not."""
    context = parse_substitutions(text, is_escape_char=is_escape_char)
    for depth in range(context.max_depth, 0, -1):
        for entry in context.entries:
            if entry.tree_depth == depth and entry.contains(cursor):
                return entry
    return None
