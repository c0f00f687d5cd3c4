"""Meta commands understood by the plan inspector itself."""

import readline
import sys
from collections.abc import Callable
from typing import TYPE_CHECKING, TypeAlias

from shellplan.context import build_cmd_context_for_cmd_buck_pass
from shellplan.report import format_cmd_context, format_substitutions
from shellplan.substitution import find_next_substitution, parse_substitutions
from shellplan.tokenizer import build_cmdline_from_context, parse_cmdline

if TYPE_CHECKING:
    from shellplan.shell import Shell

BuiltinHandler: TypeAlias = Callable[[str, "Shell"], int]

BUILTINS_HELP: dict[str, str] = {
    "exit": "exit [code]       - Exit the inspector",
    "help": "help              - Show this help message",
    "history": "history           - Show command history",
    "split": "split LINE        - Show only the argument split of LINE",
    "rebuild": "rebuild LINE      - Split LINE and join it back without escapes",
    "subst": "subst LINE        - Show substitution regions and the next to run",
    "buckpass": "buckpass LINE     - Show LINE wrapped for the command interpreter",
}


def builtin_exit(rest: str, shell: "Shell") -> int:
    try:
        code = int(rest) if rest else 0
    except ValueError:
        print(f"exit: numeric argument required: {rest}", file=sys.stderr)
        return 2
    shell.save_history()
    sys.exit(code)


def builtin_help(rest: str, shell: "Shell") -> int:
    print("shellplan - type a command line to see how it is split and planned.\n")
    for line in BUILTINS_HELP.values():
        print(f"  {line}")
    print()
    return 0


def builtin_history(rest: str, shell: "Shell") -> int:
    length = readline.get_current_history_length()
    for i in range(1, length + 1):
        print(f"  {i}  {readline.get_history_item(i)}")
    return 0


def builtin_split(rest: str, shell: "Shell") -> int:
    print("\n".join(format_cmd_context(parse_cmdline(rest, len(rest)))))
    return 0


def builtin_rebuild(rest: str, shell: "Shell") -> int:
    cmdline, _, _ = build_cmdline_from_context(parse_cmdline(rest), remove_escapes=True)
    print(cmdline)
    return 0


def builtin_subst(rest: str, shell: "Shell") -> int:
    lines = format_substitutions(parse_substitutions(rest))
    found = find_next_substitution(rest)
    if found is None:
        lines.append("next: none")
    else:
        entry, prefix_length = found
        lines.append(f"next: {entry.text!r} prefix={prefix_length}")
    print("\n".join(lines))
    return 0


def builtin_buckpass(rest: str, shell: "Shell") -> int:
    cmdline, _, _ = build_cmdline_from_context(build_cmd_context_for_cmd_buck_pass(rest))
    print(cmdline)
    return 0


BUILTIN_REGISTRY: dict[str, BuiltinHandler] = {
    "exit": builtin_exit,
    "help": builtin_help,
    "history": builtin_history,
    "split": builtin_split,
    "rebuild": builtin_rebuild,
    "subst": builtin_subst,
    "buckpass": builtin_buckpass,
}
