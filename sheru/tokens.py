"""Splitting a command line into words and operators, and checking syntax."""

from __future__ import annotations

from enum import IntEnum

_WHITESPACE = frozenset(" \t\n\v\f\r")
_SPECIAL = frozenset("|<>")


class TokenKind(IntEnum):
    """Kind of a token; the order of the operators matters to the parser."""

    AMBIGUOUS = -1
    INPUT = 0
    OUTPUT = 1
    APPEND = 2
    PIPE = 3
    HEREDOC = 4
    WORD = 5

    @property
    def is_redirection(self) -> bool:
        return self in _REDIRECTIONS


_REDIRECTIONS = frozenset(
    {TokenKind.INPUT, TokenKind.OUTPUT, TokenKind.APPEND, TokenKind.HEREDOC}
)

_OPERATORS = {
    "<<": TokenKind.HEREDOC,
    ">>": TokenKind.APPEND,
    "|": TokenKind.PIPE,
    "<": TokenKind.INPUT,
    ">": TokenKind.OUTPUT,
}


class ShellSyntaxError(Exception):
    """A command line that cannot be parsed; the shell's status becomes 2."""

    status = 2

    def __init__(self, message: str, token: str | None = None) -> None:
        super().__init__(message)
        self.token = token

    @classmethod
    def unexpected(cls, token: str | None) -> ShellSyntaxError:
        shown = token if token is not None else "newline"
        return cls(f"syntax error near unexpected token `{shown}'", token)


def is_whitespace(char: str) -> bool:
    """Space or one of the ASCII control characters 9 to 13."""
    return char in _WHITESPACE


def is_special(char: str) -> bool:
    """A character that starts an operator: ``|``, ``<`` or ``>``."""
    return char in _SPECIAL


def skip_quoted(line: str, pos: int) -> tuple[int, bool]:
    """Scan a word starting at ``pos``.

    Returns the index where the word ends and whether every quote in it
    was closed. Whitespace and operators end the word only outside quotes.
    """
    quote: str | None = None
    while pos < len(line):
        char = line[pos]
        if char in "'\"":
            if quote is None:
                quote = char
            elif char == quote:
                quote = None
        elif quote is None and (is_whitespace(char) or is_special(char)):
            break
        pos += 1
    return pos, quote is None


def split_tokens(line: str) -> list[str]:
    """Split ``line`` into words and operators, quotes left in place.

    Raises ``ShellSyntaxError`` when a quote is not closed.
    """
    tokens: list[str] = []
    pos = 0
    size = len(line)
    while True:
        while pos < size and is_whitespace(line[pos]):
            pos += 1
        if pos >= size:
            return tokens
        char = line[pos]
        if char in "<>" and line[pos + 1 : pos + 2] == char:
            tokens.append(char * 2)
            pos += 2
        elif is_special(char):
            tokens.append(char)
            pos += 1
        else:
            end, closed = skip_quoted(line, pos)
            if not closed:
                raise ShellSyntaxError("syntax error non end quots")
            tokens.append(line[pos:end])
            pos = end


def token_kind(text: str) -> TokenKind:
    """Classify one token; anything that is not an operator is a word."""
    return _OPERATORS.get(text, TokenKind.WORD)


def classify(words: list[str]) -> list[TokenKind]:
    """Classify every token of a split line."""
    return [token_kind(word) for word in words]


def check_syntax(words: list[str], kinds: list[TokenKind]) -> None:
    """Raise ``ShellSyntaxError`` at the first misplaced operator.

    A pipe needs a word before it and something after it; a redirection
    needs a word after it. The offending operator is reported.
    """
    count = len(kinds)
    for index, kind in enumerate(kinds):
        at_end = index + 1 >= count
        if kind == TokenKind.PIPE:
            if at_end or index == 0 or kinds[index - 1] != TokenKind.WORD:
                raise ShellSyntaxError.unexpected(words[index])
        elif kind in _REDIRECTIONS:
            if at_end or kinds[index + 1] != TokenKind.WORD:
                raise ShellSyntaxError.unexpected(words[index])