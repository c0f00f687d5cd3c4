"""Readline tab completion driven by the command-line parser."""

import os
import readline
from dataclasses import dataclass
from functools import lru_cache

from shellplan import host
from shellplan.operators import recognize_operator
from shellplan.pipeline import build_execution_plan
from shellplan.substitution import find_best_substitution_at
from shellplan.tokenizer import parse_cmdline

COMPLETER_DELIMS = " \t\n&|<>`()"

_matches: list[str] = []


@dataclass
class CompletionTarget:
    """What the cursor is on, as far as completion cares.

    ``expression`` is the innermost substitution region around the
    cursor (or the whole line) and starts at ``expression_offset``.
    ``prefix`` is the part of the current word before the cursor.
    """

    expression: str
    expression_offset: int
    word: str
    prefix: str
    is_command: bool


def find_completion_target(line: str, cursor: int) -> CompletionTarget:
    region = find_best_substitution_at(line, cursor)
    if region is not None:
        expression, base = region.text, region.start_offset
    else:
        expression, base = line, 0

    ctx = parse_cmdline(expression, cursor - base)
    plan, info = build_execution_plan(ctx, resolve_path=host.keep_path_literal)
    with plan:
        if info.exec_context is not None and info.is_program_arg:
            cmd = info.exec_context.cmd_to_exec
            word = cmd.argv[info.arg_index] if info.arg_index < cmd.argc else ""
            return CompletionTarget(
                expression=expression,
                expression_offset=base,
                word=word,
                prefix=word[: info.arg_offset],
                is_command=info.arg_index == 0,
            )

    # A redirection target: complete the path after the operator.
    word = ctx.argv[ctx.current_arg] if ctx.current_arg < ctx.argc else ""
    op = recognize_operator(word)
    skip = op.length if op is not None else 0
    return CompletionTarget(
        expression=expression,
        expression_offset=base,
        word=word[skip:],
        prefix=word[skip : max(skip, ctx.current_arg_offset)],
        is_command=ctx.argc == 0,
    )


def setup_completion() -> None:
    """Configure readline for tab completion."""
    readline.set_completer(completer)
    readline.set_completer_delims(COMPLETER_DELIMS)
    readline.parse_and_bind("tab: complete")


def invalidate_path_cache() -> None:
    """Clear the cached PATH commands (call after PATH changes)."""
    _get_path_commands.cache_clear()


def completer(text: str, state: int) -> str | None:
    """Readline completer function.

    On state 0, compute all matches. On subsequent states, return the next.
    """
    global _matches

    if state == 0:
        line = readline.get_line_buffer()
        target = find_completion_target(line, readline.get_endidx())
        complete = _complete_command if target.is_command else _complete_path
        _matches = _fit_to_text(complete(target.prefix), target.prefix, text)

    if state < len(_matches):
        return _matches[state]
    return None


def _fit_to_text(matches: list[str], prefix: str, text: str) -> list[str]:
    """Trim matches for the parsed prefix down to the part readline replaces.

    Readline splits words on spaces alone, so inside quotes its text is
    only the tail of the prefix.
    """
    if prefix.endswith(text):
        cut = len(prefix) - len(text)
        return [match[cut:] for match in matches]
    if text.endswith(prefix):
        lead = text[: len(text) - len(prefix)]
        return [lead + match for match in matches]
    return [match for match in matches if match.startswith(text)]


def _complete_command(text: str) -> list[str]:
    """Complete a command name from PATH executables and local paths."""
    matches = [cmd for cmd in _get_path_commands() if cmd.startswith(text)]
    matches.extend(_complete_path(text))
    return sorted(set(matches))


def _complete_path(text: str) -> list[str]:
    """Complete a file or directory path."""
    dirname = os.path.dirname(text)
    basename = os.path.basename(text)
    search_dir = dirname or "."

    matches: list[str] = []
    try:
        for entry in os.listdir(search_dir):
            if entry.startswith(basename):
                full = os.path.join(dirname, entry) if dirname else entry
                if os.path.isdir(os.path.join(search_dir, entry)):
                    full += os.sep
                matches.append(full)
    except OSError:
        pass

    return sorted(matches)


@lru_cache(maxsize=1)
def _get_path_commands() -> frozenset[str]:
    """Get all executable command names from PATH (cached)."""
    commands: set[str] = set()
    path = os.environ.get("PATH", "")

    for directory in path.split(os.pathsep):
        try:
            for entry in os.listdir(directory):
                full_path = os.path.join(directory, entry)
                if os.access(full_path, os.X_OK):
                    commands.add(entry)
        except OSError:
            continue

    return frozenset(commands)
