"""The commands the shell runs itself: echo, cd, pwd, env, export, unset, exit."""

from __future__ import annotations

import os
import sys
from collections.abc import Sequence
from enum import IntEnum
from typing import TextIO

from .environment import Environment, normalize_status, parse_int
from .errors import CWD_LOST, NUMERIC_REQUIRED, error_message, redirect_error_message

BUILTINS = frozenset({"exit", "cd", "echo", "export", "env", "unset", "pwd"})


class ShellExit(Exception):
    """Raised by ``exit``: the shell should stop with ``status``."""

    def __init__(self, status: int) -> None:
        super().__init__(f"exit {status}")
        self.status = normalize_status(status)


class ExportMode(IntEnum):
    """How an ``export`` argument changes a variable.

    The value is also the length of the operator that follows the name.
    """

    NOT = 0
    SET = 1
    APPEND = 2


def _out(stream: TextIO | None) -> TextIO:
    return stream if stream is not None else sys.stdout


def _err(stream: TextIO | None) -> TextIO:
    return stream if stream is not None else sys.stderr


def _say(stream: TextIO, line: str) -> None:
    stream.write(line + "\n")


def is_builtin(name: str | None) -> bool:
    """Tell whether ``name`` is run by the shell itself."""
    return name in BUILTINS


def _n_flag(arg: str) -> bool:
    return len(arg) > 1 and arg[0] == "-" and set(arg[1:]) == {"n"}


def _extra_flags(args: Sequence[str]) -> int:
    count = 0
    for arg in args:
        if not arg.startswith("-") or set(arg[1:]) - {"n"}:
            break
        count += 1
    return count


def echo(argv: Sequence[str], stdout: TextIO | None = None) -> int:
    """Print the arguments separated by spaces; ``-n`` drops the newline."""
    out = _out(stdout)
    args = list(argv[1:])
    newline = True
    if args and _n_flag(args[0]):
        newline = False
        rest = args[1:]
        args = rest[_extra_flags(rest):]
    text = " ".join(args) + ("\n" if newline else "")
    try:
        out.write(text)
    except OSError as exc:
        _say(sys.stderr, f"sheru: echo: write error: {exc.strerror or exc}")
        return 1
    return 0


def _update_pwd(env: Environment, cwd: str) -> None:
    if "PWD" in env:
        env.set("OLDPWD", env.get("PWD"))
    env.set("PWD", cwd)


def cd(argv: Sequence[str], env: Environment, stderr: TextIO | None = None) -> int:
    """Change the working directory and update ``PWD`` and ``OLDPWD``."""
    err = _err(stderr)
    arg = argv[1] if len(argv) > 1 else None
    if not arg:
        path = env.lookup("HOME")
        if not path:
            _say(err, "sheru: cd: HOME not set")
            return 1
    elif len(argv) > 2:
        _say(err, "sheru: cd: too many arguments")
        return 1
    else:
        path = arg
    try:
        os.chdir(path)
    except OSError as exc:
        reason = exc.strerror or str(exc)
        _say(err, f"{arg}: {reason}" if arg else reason)
        return 1
    try:
        cwd = os.getcwd()
    except OSError:
        _say(err, redirect_error_message(CWD_LOST))
        return 0
    _update_pwd(env, cwd)
    return 0


def pwd(env: Environment, stdout: TextIO | None = None) -> int:
    """Print the working directory, or the last known one if it is gone."""
    out = _out(stdout)
    try:
        cwd = os.getcwd()
    except OSError:
        cwd = env.get("PWD") or ""
    _say(out, cwd)
    return 0


def print_env(env: Environment, stdout: TextIO | None = None) -> int:
    """Print every variable that has a value as ``KEY=VALUE``."""
    out = _out(stdout)
    for key, value in env.items():
        if value is not None:
            _say(out, f"{key}={value}")
    return 0


def export_syntax(arg: str) -> tuple[str, ExportMode, str]:
    """Split an ``export`` argument into name, mode and value.

    Raises ``ValueError`` when the name is not a valid identifier or the
    operator after it is not ``=`` or ``+=``.
    """
    if not arg or not (arg[0].isascii() and (arg[0].isalpha() or arg[0] == "_")):
        raise ValueError(f"not a valid identifier: {arg!r}")
    end = 0
    while end < len(arg) and arg[end] not in "=+":
        char = arg[end]
        if not (char.isascii() and (char.isalnum() or char == "_")):
            raise ValueError(f"not a valid identifier: {arg!r}")
        end += 1
    name = arg[:end]
    rest = arg[end:]
    if rest.startswith("="):
        return name, ExportMode.SET, rest[1:]
    if rest.startswith("+="):
        return name, ExportMode.APPEND, rest[2:]
    if not rest:
        return name, ExportMode.NOT, ""
    raise ValueError(f"not a valid identifier: {arg!r}")


def _export_one(env: Environment, name: str, mode: ExportMode, value: str) -> None:
    if name in env:
        if mode == ExportMode.SET:
            env.set(name, value)
        elif mode == ExportMode.APPEND:
            env.append(name, value)
        return
    env.set(name, value or None)


def _print_exports(env: Environment, out: TextIO) -> None:
    entries = sorted(env.items(), key=lambda item: f"{item[0]}={item[1] or ''}")
    for key, value in entries:
        if value is not None:
            _say(out, f'declare -x {key}="{value}"')
        else:
            _say(out, f"declare -x {key}")


def export(
    argv: Sequence[str],
    env: Environment,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> int:
    """Set, append to or declare variables; with no arguments list them sorted."""
    if len(argv) < 2:
        _print_exports(env, _out(stdout))
        return 0
    err = _err(stderr)
    status = 0
    for arg in argv[1:]:
        try:
            name, mode, value = export_syntax(arg)
        except ValueError:
            _say(err, f"export :'{arg}': not a valid identifier")
            status = 1
            continue
        _export_one(env, name, mode, value)
    return status


def unset(argv: Sequence[str], env: Environment) -> int:
    """Remove the variable named by the first argument."""
    if len(argv) > 1:
        env.unset(argv[1])
    return 0


def _numeric(arg: str) -> bool:
    digits = arg[1:] if arg[:1] in ("+", "-") else arg
    return all(char in "0123456789" for char in digits)


def exit_builtin(
    argv: Sequence[str], env: Environment, stderr: TextIO | None = None
) -> int:
    """Raise ``ShellExit``; with too many arguments return 1 and stay."""
    err = _err(stderr)
    if len(argv) > 2:
        _say(err, "sheru: exit: too many arguments")
        return 1
    if len(argv) == 2:
        arg = argv[1]
        if _numeric(arg):
            raise ShellExit(parse_int(arg))
        _say(err, "sheru: exit: " + error_message(arg, NUMERIC_REQUIRED))
        raise ShellExit(2)
    raise ShellExit(env.status)


def run_builtin(
    argv: Sequence[str],
    env: Environment,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> int:
    """Run the builtin named by ``argv[0]``, record and return its status."""
    if not argv or not is_builtin(argv[0]):
        return env.status
    name = argv[0]
    if name == "cd":
        status = cd(argv, env, stderr)
    elif name == "export":
        status = export(argv, env, stdout, stderr)
    elif name == "unset":
        status = unset(argv, env)
    elif name == "exit":
        status = exit_builtin(argv, env, stderr)
    elif name == "echo":
        status = echo(argv, stdout)
    elif name == "env":
        status = print_env(env, stdout)
    else:
        status = pwd(env, stdout)
    env.set_status(status)
    return env.status