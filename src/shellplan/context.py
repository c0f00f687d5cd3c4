"""Argument lists produced by the command-line splitter."""

import shutil
from collections.abc import Callable
from dataclasses import dataclass, field

from shellplan import host
from shellplan.errors import InvalidArgumentError

CMD_PROGRAM = "cmd"
CMD_RUN_SWITCH = "/c"


@dataclass
class ArgContext:
    """Quote metadata for one argument."""

    quoted: bool = False
    quote_terminated: bool = False


@dataclass
class CmdContext:
    """A command line split into arguments, plus where the cursor sits.

    ``current_arg`` may equal ``argc`` when the cursor is past the final
    argument, as in ``"cd "``.
    """

    argv: list[str] = field(default_factory=list)
    arg_contexts: list[ArgContext] = field(default_factory=list)
    current_arg: int = 0
    current_arg_offset: int = 0
    trailing_chars: bool = False

    @property
    def argc(self) -> int:
        return len(self.argv)

    def validate(self) -> None:
        """Raise InvalidArgumentError if the invariants do not hold."""
        if len(self.argv) != len(self.arg_contexts):
            raise InvalidArgumentError(
                f"argv has {len(self.argv)} entries but arg_contexts has {len(self.arg_contexts)}"
            )
        if not 0 <= self.current_arg <= self.argc:
            raise InvalidArgumentError(
                f"current_arg {self.current_arg} outside 0..{self.argc}"
            )
        if self.current_arg_offset < 0:
            raise InvalidArgumentError(f"negative current_arg_offset {self.current_arg_offset}")

    def append(self, arg: str, quoted: bool = False, quote_terminated: bool = False) -> None:
        self.argv.append(arg)
        self.arg_contexts.append(ArgContext(quoted, quote_terminated))


def copy_cmd_context(ctx: CmdContext) -> CmdContext:
    """Return an independent copy; mutating one never affects the other."""
    return CmdContext(
        argv=list(ctx.argv),
        arg_contexts=[ArgContext(a.quoted, a.quote_terminated) for a in ctx.arg_contexts],
        current_arg=ctx.current_arg,
        current_arg_offset=ctx.current_arg_offset,
        trailing_chars=ctx.trailing_chars,
    )


def strip_escapes(arg: str, is_escape_char: Callable[[str], bool] = host.is_escape_char) -> str:
    """Collapse each escape + literal pair into the literal.

    A dangling escape at the very end is dropped.
    """
    out: list[str] = []
    i = 0
    while i < len(arg):
        if is_escape_char(arg[i]):
            i += 1
            if i >= len(arg):
                break
        out.append(arg[i])
        i += 1
    return "".join(out)


def remove_escapes(
    argv: list[str], is_escape_char: Callable[[str], bool] = host.is_escape_char
) -> None:
    """Remove escapes from every argument, in place.

    Each entry is replaced only once its new value is complete, so a
    MemoryError part way through leaves every entry either old or new.
    """
    for index, arg in enumerate(argv):
        if any(is_escape_char(c) for c in arg):
            argv[index] = strip_escapes(arg, is_escape_char)


def remove_escapes_from_cmd_context(
    ctx: CmdContext, is_escape_char: Callable[[str], bool] = host.is_escape_char
) -> CmdContext:
    """Return a copy of ctx whose arguments carry no escapes."""
    result = copy_cmd_context(ctx)
    remove_escapes(result.argv, is_escape_char)
    return result


def arg_needs_quotes(arg: str) -> bool:
    return " " in arg


def check_if_arg_needs_quotes(ctx: CmdContext, arg_index: int) -> None:
    """Mark an argument quoted if its (possibly replaced) text has a space.

    Arguments that were already quoted stay quoted.
    """
    if not 0 <= arg_index < ctx.argc:
        raise InvalidArgumentError(f"argument index {arg_index} outside 0..{ctx.argc - 1}")
    if arg_needs_quotes(ctx.argv[arg_index]):
        ctx.arg_contexts[arg_index] = ArgContext(quoted=True, quote_terminated=True)


def build_cmd_context_for_cmd_buck_pass(cmdline: str) -> CmdContext:
    """Wrap a whole command line as ``cmd /c "<cmdline>"``.

    The command interpreter accepts redirections and separators encoded
    into that single argument, so this hands off anything the caller
    does not want to run itself.
    """
    program = shutil.which(CMD_PROGRAM) or CMD_PROGRAM
    ctx = CmdContext()
    ctx.append(program)
    ctx.append(CMD_RUN_SWITCH)
    ctx.append(cmdline, quoted=True, quote_terminated=True)
    check_if_arg_needs_quotes(ctx, 0)
    return ctx
