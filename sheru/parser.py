"""Grouping expanded words into the commands of a pipeline."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field

from .expansion import Word
from .tokens import ShellSyntaxError, TokenKind

MAX_HEREDOCS = 16

_INPUT_KINDS = frozenset({TokenKind.INPUT, TokenKind.HEREDOC})


class TooManyHeredocs(Exception):
    """A line asks for more here-documents than the shell allows."""

    status = 2

    def __init__(self) -> None:
        super().__init__("maximum here-document count exceeded")


@dataclass
class Redirection:
    """One redirection of a command.

    ``ambiguous`` is set when the target did not expand to a single field.
    ``quoted`` tells that quotes were removed from the target; for a
    here-document this turns expansion of its lines off. ``content`` holds
    the text a here-document collected.
    """

    kind: TokenKind
    target: str
    ambiguous: bool = False
    quoted: bool = False
    content: str | None = None


@dataclass
class Command:
    """A simple command: its arguments and its redirections, in order."""

    argv: list[str] = field(default_factory=list)
    inputs: list[Redirection] = field(default_factory=list)
    outputs: list[Redirection] = field(default_factory=list)

    @property
    def name(self) -> str | None:
        """The command name, or ``None`` when there are no arguments."""
        return self.argv[0] if self.argv else None


def count_heredocs(words: Iterable[Word]) -> int:
    """Count the here-document operators among ``words``."""
    return sum(1 for word in words if word.kind == TokenKind.HEREDOC)


def _segments(words: Sequence[Word]) -> Iterator[list[Word]]:
    segment: list[Word] = []
    for word in words:
        if word.kind == TokenKind.PIPE:
            yield segment
            segment = []
        else:
            segment.append(word)
    yield segment


def _build_command(segment: list[Word]) -> Command:
    command = Command()
    stream = iter(segment)
    for word in stream:
        if word.kind.is_redirection:
            target = next(stream, None)
            if target is None:
                raise ShellSyntaxError.unexpected(None)
            redirection = Redirection(
                word.kind,
                target.text,
                ambiguous=target.kind == TokenKind.AMBIGUOUS,
                quoted=target.quoted,
            )
            if word.kind in _INPUT_KINDS:
                command.inputs.append(redirection)
            else:
                command.outputs.append(redirection)
        elif word.kind == TokenKind.WORD and (word.text or not word.vanished):
            command.argv.append(word.text)
    return command


def parse_pipeline(words: Sequence[Word]) -> list[Command]:
    """Turn expanded, unquoted words into the commands of a pipeline.

    Words that an unquoted expansion left empty are dropped; an empty word
    written with quotes is kept. Raises ``TooManyHeredocs`` when the line
    has more than sixteen here-documents.
    """
    if not words:
        return []
    if count_heredocs(words) > MAX_HEREDOCS:
        raise TooManyHeredocs()
    return [_build_command(segment) for segment in _segments(words)]