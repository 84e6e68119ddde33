"""Texts of the error messages the shell prints."""

from __future__ import annotations

COMMAND_NOT_FOUND = 1
PERMISSION_DENIED = 2
AMBIGUOUS_REDIRECT = 4
NO_SUCH_FILE = 5
IS_A_DIRECTORY = 6
NUMERIC_REQUIRED = 7
NOT_EXECUTABLE = 126
NOT_IN_PATH = 127

OPEN_FAILED = 1
MISSING_TARGET = 2
CWD_LOST = 3

_SUFFIXES = {
    COMMAND_NOT_FOUND: ": command not found",
    PERMISSION_DENIED: ": Permission denied",
    NO_SUCH_FILE: ": No such file or directory",
    IS_A_DIRECTORY: ": Is a directory",
    NUMERIC_REQUIRED: ": numeric argument required",
    NOT_EXECUTABLE: ": permission denied",
}


def error_message(subject: str, status: int, path_set: bool = True) -> str:
    """Return the message for a failed command or argument.

    For a command not found on the path, ``path_set`` tells whether
    ``PATH`` had a value. Raises ``ValueError`` for an unknown status.
    """
    if status == AMBIGUOUS_REDIRECT:
        return f"sheru: {subject}: ambiguous redirect"
    if status == NOT_IN_PATH:
        suffix = (
            ": command not found" if path_set else ": No such file or directory"
        )
        return subject + suffix
    try:
        return subject + _SUFFIXES[status]
    except KeyError:
        raise ValueError(f"unknown error status {status}") from None


def redirect_error_message(
    kind: int, subject: str | None = None, reason: str | None = None
) -> str:
    """Return the message for a redirection or working-directory failure.

    ``OPEN_FAILED`` needs the ``reason`` the system gave.
    """
    if kind == OPEN_FAILED:
        if reason is None:
            raise ValueError("an open failure needs a reason")
        return f"sheru: {subject}: {reason}"
    if kind == MISSING_TARGET:
        return f"sheru: {subject}: No such file or directory"
    if kind == CWD_LOST:
        return (
            "cd: error retrieving current directory: getcwd: "
            "cannot access parent directories: No such file or directory"
        )
    raise ValueError(f"unknown redirection error kind {kind}")


def syntax_error_message(token: str | None) -> str:
    """Return the message for an operator in the wrong place."""
    shown = token if token is not None else "newline"
    return f"sheru: syntax error near unexpected token `{shown}'"