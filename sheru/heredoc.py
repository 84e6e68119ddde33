"""Reading here-documents before a pipeline runs."""

from __future__ import annotations

from collections.abc import Callable, Iterable

from .environment import Environment
from .expansion import expand_heredoc_line
from .parser import Command
from .tokens import TokenKind

ReadLine = Callable[[], "str | None"]


class HeredocInterrupted(Exception):
    """Reading a here-document was interrupted; the status becomes 130."""

    status = 130


def read_heredoc(
    delimiter: str,
    read_line: ReadLine,
    expand: bool = False,
    env: Environment | None = None,
) -> str:
    """Read lines until ``delimiter`` or end of input and return them.

    Each line is ended with a newline. With ``expand`` set, variables in
    the lines are expanded from ``env``. A ``KeyboardInterrupt`` raised by
    ``read_line`` becomes ``HeredocInterrupted``.
    """
    if expand and env is None:
        raise ValueError("expansion needs an environment")
    lines: list[str] = []
    while True:
        try:
            line = read_line()
        except KeyboardInterrupt:
            raise HeredocInterrupted("here-document interrupted") from None
        if line is None or line == delimiter:
            break
        if expand and env is not None:
            line = expand_heredoc_line(line, env)
        lines.append(line + "\n")
    return "".join(lines)


def collect_heredocs(
    commands: Iterable[Command],
    read_line: ReadLine,
    expand: bool = True,
    env: Environment | None = None,
) -> list[Command]:
    """Read every here-document of ``commands`` in order.

    Only a here-document that is the last input redirection of its command
    keeps its text; earlier ones are read and discarded. A quoted delimiter
    turns expansion off for its here-document.
    """
    commands = list(commands)
    for command in commands:
        last = len(command.inputs) - 1
        for index, redirection in enumerate(command.inputs):
            if redirection.kind != TokenKind.HEREDOC:
                continue
            content = read_heredoc(
                redirection.target,
                read_line,
                expand and not redirection.quoted,
                env,
            )
            if index == last:
                redirection.content = content
    return commands