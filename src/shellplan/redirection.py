"""Where a command's stdin comes from and where its stdout/stderr go."""

from dataclasses import dataclass, field
from typing import Any, TypeAlias


@dataclass(frozen=True)
class Default:
    """Inherit the stream from the shell."""


@dataclass(frozen=True)
class Null:
    """Read nothing / discard everything."""


@dataclass(frozen=True)
class Pipe:
    """Connected to the neighbouring command.

    ``handle`` is filled in by whoever launches the processes.
    """

    handle: Any = field(default=None, compare=False)


@dataclass(frozen=True)
class File:
    path: str


@dataclass(frozen=True)
class Overwrite:
    path: str


@dataclass(frozen=True)
class Append:
    path: str


@dataclass(frozen=True)
class Buffer:
    """Captured into an in-memory buffer.

    With ``retain`` the buffer outlives the process so its output can be
    fetched later.
    """

    retain: bool = False
    handle: Any = field(default=None, compare=False)


@dataclass(frozen=True)
class ToStdErr:
    """Stdout merged into stderr (``>&2``)."""


@dataclass(frozen=True)
class ToStdOut:
    """Stderr merged into stdout (``2>&1``)."""


StdInSource: TypeAlias = Default | Null | Pipe | File
StdOutSink: TypeAlias = Default | Null | Overwrite | Append | Pipe | Buffer | ToStdErr
StdErrSink: TypeAlias = Default | Null | Overwrite | Append | Buffer | ToStdOut


def release(stream: StdInSource | StdOutSink | StdErrSink) -> None:
    """Close any handle a Pipe or Buffer picked up during execution."""
    match stream:
        case Pipe(handle=handle) | Buffer(handle=handle) if handle is not None:
            close = getattr(handle, "close", None)
            if close is not None:
                close()


def describe(stream: StdInSource | StdOutSink | StdErrSink) -> str:
    """Short human readable form, used by the plan inspector."""
    match stream:
        case Default():
            return "default"
        case Null():
            return "null"
        case Pipe():
            return "pipe"
        case File(path=path):
            return f"file({path})"
        case Overwrite(path=path):
            return f"overwrite({path})"
        case Append(path=path):
            return f"append({path})"
        case Buffer(retain=retain):
            return "buffer(retain)" if retain else "buffer"
        case ToStdErr():
            return "stderr"
        case ToStdOut():
            return "stdout"
    raise TypeError(f"not a redirection: {stream!r}")
