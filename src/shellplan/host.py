"""Default host collaborators: escape predicate, device names, path resolution."""

import os
import re

from loguru import logger

from shellplan.errors import PathResolutionError

ESCAPE_CHAR = "^"

DEVICE_PREFIX = "\\\\.\\"
LONG_PATH_PREFIX = "\\\\?\\"

_SIMPLE_DEVICES = {"CON", "AUX", "PRN", "NUL"}
_NUMBERED_DEVICE = re.compile(r"(LPT|COM)[1-9]", re.IGNORECASE)
_DRIVE_LETTER = re.compile(r"[A-Za-z]:")
_RAW_DISK_PREFIXES = ("PHYSICALDRIVE", "HARDDISK", "CDROM")


def is_escape_char(char: str) -> bool:
    return char == ESCAPE_CHAR


def is_device_name(name: str) -> bool:
    """Return True if name refers to a device rather than a file.

    A device name carries no path information: ``NUL`` is a device,
    ``.\\NUL`` is not. The ``\\\\.\\`` prefix is allowed and additionally
    admits drive letters and raw disk names.
    """
    prefixed = name.startswith(DEVICE_PREFIX)
    bare = name[len(DEVICE_PREFIX) :] if prefixed else name

    if prefixed:
        if _DRIVE_LETTER.fullmatch(bare):
            return True
        if bare.upper().startswith(_RAW_DISK_PREFIXES):
            return True

    if bare.upper() in _SIMPLE_DEVICES:
        return True
    return _NUMBERED_DEVICE.fullmatch(bare) is not None


def does_expression_specify_path(expression: str) -> bool:
    """True if expression has its own path information and skips PATH lookup."""
    return any(c in "\\/:" for c in expression)


def user_path_to_full_path(path: str, escaped: bool = True) -> str:
    """Resolve a user supplied path against the current directory.

    On Windows an escaped path gets the ``\\\\?\\`` long path prefix so
    later consumers do not reinterpret it.
    """
    try:
        full = os.path.abspath(os.path.expanduser(path))
    except (OSError, ValueError) as e:
        logger.warning("host.resolve_failed path={} error={}", path, e)
        raise PathResolutionError(path, str(e)) from e

    if escaped and os.name == "nt" and not full.startswith((LONG_PATH_PREFIX, DEVICE_PREFIX)):
        full = LONG_PATH_PREFIX + full
    return full


def keep_path_literal(path: str, escaped: bool = True) -> str:
    """Resolver that leaves redirection targets exactly as typed."""
    return path
