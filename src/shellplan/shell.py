"""Plan inspector loop: prompt, read, split, plan, print, repeat."""

import argparse
import contextlib
import os
import readline
import sys

from loguru import logger

from shellplan import host
from shellplan.builtins import BUILTIN_REGISTRY
from shellplan.completion import setup_completion
from shellplan.errors import ShellPlanError
from shellplan.logging_utils import configure_logging
from shellplan.report import format_line

HISTORY_ENV = "SHELLPLAN_HISTORY"
HISTORY_FILE = os.path.expanduser(os.environ.get(HISTORY_ENV, "~/.shellplan_history"))


class Shell:
    """Inspector state and main loop."""

    def __init__(self, resolve_paths: bool = True, history_file: str = HISTORY_FILE) -> None:
        self.resolve_path = host.user_path_to_full_path if resolve_paths else host.keep_path_literal
        self.history_file = history_file
        self.last_exit_code: int = 0

    def load_history(self) -> None:
        with contextlib.suppress(FileNotFoundError, PermissionError, OSError):
            readline.read_history_file(self.history_file)

    def save_history(self) -> None:
        with contextlib.suppress(PermissionError, OSError):
            readline.write_history_file(self.history_file)

    def get_prompt(self) -> str:
        cwd = os.getcwd()
        home = os.path.expanduser("~")
        if cwd == home:
            display = "~"
        elif cwd.startswith(home + os.sep):
            display = "~" + os.sep + cwd[len(home) + 1 :]
        else:
            display = cwd
        return f"{display} plan> "

    def run_command(self, line: str, cursor: int | None = None) -> int:
        """Run a meta command, or show how line splits and plans.

        The cursor defaults to the end of the line, where it sits after
        typing. Returns the exit code, also kept in last_exit_code.
        """
        word, _, rest = line.strip().partition(" ")
        if word in BUILTIN_REGISTRY:
            self.last_exit_code = BUILTIN_REGISTRY[word](rest.strip(), self)
            return self.last_exit_code

        try:
            print(format_line(line, cursor, resolve_path=self.resolve_path))
        except ShellPlanError as e:
            logger.debug("shell.command_failed line={!r} error={}", line, e)
            print(f"shellplan: {e}", file=sys.stderr)
            self.last_exit_code = 1
        else:
            self.last_exit_code = 0
        return self.last_exit_code

    def run(self) -> None:
        """Main loop."""
        self.load_history()
        readline.set_history_length(1000)
        setup_completion()

        while True:
            try:
                line = input(self.get_prompt())
            except (EOFError, KeyboardInterrupt):
                print()
                break

            if not line.strip() or line.lstrip().startswith("#"):
                continue

            self.run_command(line)

        self.save_history()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shellplan",
        description="Show how a command line is split into arguments and planned into commands.",
    )
    parser.add_argument("-c", dest="command", help="inspect COMMAND and exit")
    parser.add_argument(
        "--cursor", type=int, default=None, help="cursor offset within COMMAND (default: end)"
    )
    parser.add_argument(
        "--no-resolve",
        action="store_true",
        help="keep redirection targets as typed instead of resolving them",
    )
    parser.add_argument(
        "--log-level", default=None, help="log level (default: $SHELLPLAN_LOG_LEVEL or WARNING)"
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    shell = Shell(resolve_paths=not args.no_resolve)

    if args.command is not None:
        raise SystemExit(shell.run_command(args.command, args.cursor))

    shell.run()
