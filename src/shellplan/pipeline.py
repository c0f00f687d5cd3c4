"""Turn a split command line into a plan of linked commands with redirections."""

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import TypeAlias

from loguru import logger

from shellplan import host
from shellplan.context import CmdContext, copy_cmd_context
from shellplan.errors import InvalidArgumentError, PathResolutionError
from shellplan.operators import (
    REDIRECTIONS,
    TRAILING_SEPARATORS,
    is_program_separator,
    recognize_operator,
)
from shellplan.redirection import (
    Append,
    Buffer,
    Default,
    File,
    Null,
    Overwrite,
    Pipe,
    StdErrSink,
    StdInSource,
    StdOutSink,
    ToStdErr,
    ToStdOut,
    release,
)

PathResolver: TypeAlias = Callable[[str, bool], str]


class LinkType(Enum):
    """How a command relates to the one after it."""

    NONE = "none"
    UNCONDITIONAL = "&"
    CONCURRENT = "|"
    ON_FAILURE = "||"
    ON_SUCCESS = "&&"
    NEVER = "never"


@dataclass(eq=False)
class SingleExecContext:
    """One program to launch, with its arguments and streams."""

    cmd_to_exec: CmdContext = field(default_factory=CmdContext)
    stdin: StdInSource = field(default_factory=Default)
    stdout: StdOutSink = field(default_factory=Default)
    stderr: StdErrSink = field(default_factory=Default)
    wait_for_completion: bool = True
    run_on_second_console: bool = False
    next: "SingleExecContext | None" = field(default=None, repr=False)
    next_link: LinkType = LinkType.NONE
    reference_count: int = field(default=1, repr=False)

    def reference(self) -> None:
        if self.reference_count <= 0:
            raise InvalidArgumentError("exec context already released")
        self.reference_count += 1

    def dereference(self) -> bool:
        """Drop one reference; return True if that released the context."""
        if self.reference_count <= 0:
            raise InvalidArgumentError("exec context already released")
        self.reference_count -= 1
        if self.reference_count:
            return False
        for stream in (self.stdin, self.stdout, self.stderr):
            release(stream)
        return True

    def set_stdin(self, source: StdInSource) -> None:
        release(self.stdin)
        self.stdin = source

    def set_stdout(self, sink: StdOutSink) -> None:
        release(self.stdout)
        self.stdout = sink

    def set_stderr(self, sink: StdErrSink) -> None:
        release(self.stderr)
        self.stderr = sink


@dataclass(eq=False)
class ExecPlan:
    """Every command of one expression, plus the expression as a whole.

    ``entire_cmd`` is what gets handed to a child shell when the caller
    would rather not run the commands itself.
    """

    entire_cmd: SingleExecContext = field(default_factory=SingleExecContext)
    first_cmd: SingleExecContext | None = None
    number_commands: int = 0
    wait_for_completion: bool = True

    def commands(self) -> Iterator[SingleExecContext]:
        command = self.first_cmd
        while command is not None:
            yield command
            command = command.next

    def close(self) -> None:
        """Drop the plan's reference to every command it holds."""
        command = self.first_cmd
        self.first_cmd = None
        while command is not None:
            next_command = command.next
            command.next = None
            command.dereference()
            command = next_command
        if self.entire_cmd.reference_count:
            self.entire_cmd.dereference()

    def __enter__(self) -> "ExecPlan":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


@dataclass
class CursorInfo:
    """Where the cursor argument ended up after planning.

    ``is_program_arg`` is False when the cursor sits on a redirection or a
    separator; ``arg_index`` is then meaningless.
    """

    exec_context: SingleExecContext | None = None
    is_program_arg: bool = False
    arg_index: int = 0
    arg_offset: int = 0


def _command_end(ctx: CmdContext, start: int) -> int:
    """Index of the separator that ends the command starting at start."""
    last = ctx.argc - 1
    for index in range(start, ctx.argc):
        if not ctx.arg_contexts[index].quoted and is_program_separator(
            ctx.argv[index], index == last
        ):
            return index
    return ctx.argc


def _resolve_target(
    name: str, resolve_path: PathResolver, is_device_name: Callable[[str], bool]
) -> str:
    if not name or is_device_name(name):
        return name
    try:
        return resolve_path(name, True)
    except OSError as e:
        raise PathResolutionError(name, str(e)) from e


def _apply_redirect(command: SingleExecContext, operator: str, path: str) -> None:
    match operator:
        case "<":
            command.set_stdin(File(path))
        case ">" | "1>":
            command.set_stdout(Overwrite(path))
        case ">>" | "1>>":
            command.set_stdout(Append(path))
        case ">&2" | "1>&2":
            command.set_stdout(ToStdErr())
            if isinstance(command.stderr, ToStdOut):
                command.stderr = Default()
        case "2>":
            command.set_stderr(Overwrite(path))
        case "2>>":
            command.set_stderr(Append(path))
        case "2>&1":
            command.set_stderr(ToStdOut())
            if isinstance(command.stdout, ToStdErr):
                command.stdout = Default()


def _parse_single_command(
    ctx: CmdContext,
    start: int,
    end: int,
    resolve_path: PathResolver,
    is_device_name: Callable[[str], bool],
) -> tuple[SingleExecContext, CursorInfo]:
    """Build one command from ctx.argv[start:end], pulling out redirections."""
    command = SingleExecContext()
    cursor = CursorInfo(exec_context=command)
    cmd = command.cmd_to_exec

    try:
        index = start
        while index < end:
            arg = ctx.argv[index]
            arg_ctx = ctx.arg_contexts[index]
            op = None if arg_ctx.quoted else recognize_operator(arg)

            if op is None or op.text not in REDIRECTIONS:
                if index == ctx.current_arg:
                    cursor.is_program_arg = True
                    cursor.arg_index = cmd.argc
                    cursor.arg_offset = ctx.current_arg_offset
                    cmd.current_arg = cmd.argc
                    cmd.current_arg_offset = ctx.current_arg_offset
                cmd.append(arg, arg_ctx.quoted, arg_ctx.quote_terminated)
                index += 1
                continue

            if index == ctx.current_arg:
                cursor.arg_offset = ctx.current_arg_offset
            path = ""
            if not op.terminates_arg:
                offset = op.length
                while len(arg) == offset and index + 1 < end:
                    index += 1
                    arg = ctx.argv[index]
                    offset = 0
                    if index == ctx.current_arg:
                        cursor.arg_offset = ctx.current_arg_offset
                path = _resolve_target(arg[offset:], resolve_path, is_device_name)
            _apply_redirect(command, op.text, path)
            index += 1
    except BaseException:
        command.dereference()
        raise

    return command, cursor


def _link(previous: SingleExecContext, command: SingleExecContext, separator: str) -> None:
    previous.next = command
    match separator:
        case "&&":
            previous.next_link = LinkType.ON_SUCCESS
        case "||":
            previous.next_link = LinkType.ON_FAILURE
        case "|":
            previous.next_link = LinkType.CONCURRENT
            if isinstance(previous.stdout, Default):
                previous.stdout = Pipe()
            if isinstance(command.stdin, Default):
                command.stdin = Pipe()
            previous.wait_for_completion = False
        case _:
            previous.next_link = LinkType.UNCONDITIONAL


def _apply_trailing_separator(plan: ExecPlan, command: SingleExecContext, separator: str) -> None:
    """Apply ``&``, ``&!`` or ``&!!`` ending the expression."""
    entire = plan.entire_cmd
    plan.wait_for_completion = False
    entire.wait_for_completion = False
    command.wait_for_completion = False

    match separator:
        case "&!":
            entire.stdin = Null()
            entire.stdout = Buffer(retain=True)
            entire.stderr = Buffer(retain=True)
            # A piped stdin stays connected; explicit output targets give way.
            if isinstance(command.stdin, Default):
                command.set_stdin(Null())
            command.set_stdout(Buffer(retain=True))
            command.set_stderr(Buffer(retain=True))
        case "&!!":
            entire.run_on_second_console = True
            command.run_on_second_console = True

    whole = entire.cmd_to_exec
    del whole.argv[-1]
    del whole.arg_contexts[-1]
    if whole.current_arg >= whole.argc:
        whole.current_arg = whole.argc
        whole.current_arg_offset = 0


def build_execution_plan(
    ctx: CmdContext,
    *,
    resolve_path: PathResolver = host.user_path_to_full_path,
    is_device_name: Callable[[str], bool] = host.is_device_name,
) -> tuple[ExecPlan, CursorInfo]:
    """Build an ExecPlan from a split command line.

    Redirection targets other than device names are resolved with
    resolve_path; a failure raises PathResolutionError after releasing
    everything built so far. ctx itself is never modified.
    """
    ctx.validate()
    plan = ExecPlan(entire_cmd=SingleExecContext(cmd_to_exec=copy_cmd_context(ctx)))
    cursor = CursorInfo()
    if ctx.argc == 0:
        return plan, cursor

    last_index = ctx.argc - 1
    previous: SingleExecContext | None = None
    separator = ""
    found = False
    index = 0

    try:
        while index < ctx.argc:
            end = _command_end(ctx, index)
            command, local_cursor = _parse_single_command(
                ctx, index, end, resolve_path, is_device_name
            )
            if previous is None:
                plan.first_cmd = command
            else:
                _link(previous, command, separator)
            plan.number_commands += 1
            previous = command

            consumed_end = end
            if (
                end == last_index
                and not ctx.arg_contexts[end].quoted
                and ctx.argv[end] in TRAILING_SEPARATORS
            ):
                _apply_trailing_separator(plan, command, ctx.argv[end])
                consumed_end = ctx.argc

            if index <= ctx.current_arg < consumed_end:
                cursor = local_cursor
                found = True

            index = consumed_end
            skipped = False
            while (
                index < ctx.argc
                and not ctx.arg_contexts[index].quoted
                and is_program_separator(ctx.argv[index])
            ):
                separator = ctx.argv[index]
                skipped = True
                index += 1

            if skipped and index == ctx.argc:
                # "a &&" or "a |": keep the link, with nothing yet to run.
                successor = SingleExecContext()
                _link(previous, successor, separator)
                plan.number_commands += 1
                previous = successor
    except BaseException:
        plan.close()
        raise

    if not found and ctx.current_arg >= ctx.argc and previous is not None:
        tail = previous.cmd_to_exec
        tail.current_arg = tail.argc
        tail.current_arg_offset = 0
        cursor = CursorInfo(
            exec_context=previous, is_program_arg=True, arg_index=tail.argc, arg_offset=0
        )

    logger.debug(
        "pipeline.planned commands={} wait={} cursor_program_arg={}",
        plan.number_commands,
        plan.wait_for_completion,
        cursor.is_program_arg,
    )
    return plan, cursor
