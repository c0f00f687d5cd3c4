"""Render parse results and plans as text for the plan inspector."""

from shellplan import host
from shellplan.context import CmdContext
from shellplan.pipeline import ExecPlan, PathResolver, build_execution_plan
from shellplan.redirection import describe
from shellplan.substitution import BackquoteContext, parse_substitutions
from shellplan.tokenizer import build_cmdline_from_context, parse_cmdline


def format_cmd_context(ctx: CmdContext) -> list[str]:
    lines = [
        f"args: argc={ctx.argc} current={ctx.current_arg}:{ctx.current_arg_offset}"
        + (" trailing" if ctx.trailing_chars else "")
    ]
    for index, (arg, arg_ctx) in enumerate(zip(ctx.argv, ctx.arg_contexts)):
        flags = ""
        if arg_ctx.quoted:
            flags = " quoted" if arg_ctx.quote_terminated else " quoted-open"
        elif arg_ctx.quote_terminated:
            flags = " quoted-target"
        lines.append(f"  [{index}] {arg!r}{flags}")
    return lines


def format_substitutions(context: BackquoteContext) -> list[str]:
    if not context.entries:
        return []
    lines = [f"substitutions: {context.match_count} max_depth={context.max_depth}"]
    for entry in context.entries:
        style = "$()" if entry.new_style else "``"
        if entry.terminated:
            state = "terminated"
        elif entry.abandoned:
            state = "abandoned"
        else:
            state = "open"
        lines.append(
            f"  depth={entry.tree_depth} {style} at {entry.start_offset} {entry.text!r} {state}"
        )
    return lines


def format_plan(plan: ExecPlan) -> list[str]:
    lines = [
        f"plan: commands={plan.number_commands} wait={'yes' if plan.wait_for_completion else 'no'}"
    ]
    for index, command in enumerate(plan.commands()):
        cmdline, _, _ = build_cmdline_from_context(command.cmd_to_exec)
        line = (
            f"  {index}: {cmdline!r}"
            f" stdin={describe(command.stdin)}"
            f" stdout={describe(command.stdout)}"
            f" stderr={describe(command.stderr)}"
            f" wait={'yes' if command.wait_for_completion else 'no'}"
        )
        if command.run_on_second_console:
            line += " console=new"
        if command.next is not None:
            line += f" then={command.next_link.name.lower()}"
        lines.append(line)
    return lines


def format_line(
    line: str,
    cursor: int | None = None,
    resolve_path: PathResolver = host.user_path_to_full_path,
) -> str:
    """Everything the parser makes of line, one fact per output line."""
    if cursor is None:
        cursor = len(line)
    ctx = parse_cmdline(line, cursor)
    output = format_cmd_context(ctx)
    output.extend(format_substitutions(parse_substitutions(line)))
    plan, _ = build_execution_plan(ctx, resolve_path=resolve_path)
    with plan:
        output.extend(format_plan(plan))
    return "\n".join(output)
