"""Exceptions raised by the command-line parser and plan builder."""


class ShellPlanError(Exception):
    """Base class for everything this package raises."""


class InvalidArgumentError(ShellPlanError, ValueError):
    """A caller handed over a structure that breaks its own invariants."""


class PathResolutionError(ShellPlanError):
    """A redirection target could not be turned into a full path."""

    def __init__(self, path: str, reason: str = "") -> None:
        self.path = path
        self.reason = reason
        message = f"cannot resolve redirection target `{path}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)
