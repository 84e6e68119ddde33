"""Variable expansion, field splitting and quote removal for parsed words."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .environment import Environment, key_len
from .tokens import TokenKind

DEFAULT_IFS = " \t\n"

_REDIRECT_TARGET_AFTER = frozenset(
    {TokenKind.INPUT, TokenKind.OUTPUT, TokenKind.APPEND}
)


@dataclass
class Word:
    """One token after expansion.

    ``mask`` marks the characters that came from an expansion; quotes among
    them are literal. ``vanished`` is set when an unquoted expansion left
    nothing, so the word is dropped from the command. ``quoted`` is set by
    quote removal when at least one pair of quotes was taken out.
    """

    text: str
    kind: TokenKind = TokenKind.WORD
    mask: tuple[bool, ...] | None = None
    vanished: bool = False
    quoted: bool = False

    def __post_init__(self) -> None:
        if self.mask is None:
            self.mask = (False,) * len(self.text)
        else:
            self.mask = tuple(self.mask)
        if len(self.mask) != len(self.text):
            raise ValueError("mask length does not match the text")


def is_ifs(char: str, ifs: str | None = "") -> bool:
    """Tell whether ``char`` separates fields.

    An empty or missing ``ifs`` means space, tab and newline.
    """
    return char in (ifs or DEFAULT_IFS)


def ifs_split(text: str, ifs: str | None = "") -> list[str]:
    """Split ``text`` on separator characters, dropping empty fields."""
    fields: list[str] = []
    current: list[str] = []
    for char in text:
        if is_ifs(char, ifs):
            if current:
                fields.append("".join(current))
                current = []
        else:
            current.append(char)
    if current:
        fields.append("".join(current))
    return fields


def single_field(text: str, ifs: str | None = "") -> bool:
    """Tell whether ``text`` splits into exactly one field."""
    return len(ifs_split(text, ifs)) == 1


def _starts_name(char: str) -> bool:
    return char.isascii() and (char.isalnum() or char in "_?")


def _expand_word(
    text: str, redirect_target: bool, env: Environment, ifs: str
) -> list[Word]:
    done: list[Word] = []
    chars = text
    mask: list[bool] = [False] * len(text)
    pos = 0
    in_single = in_double = False
    while pos < len(chars):
        char = chars[pos]
        if char == "'" and not in_double:
            in_single = not in_single
        elif char == '"' and not in_single:
            in_double = not in_double
        elif (
            char == "$"
            and not in_single
            and pos + 1 < len(chars)
            and _starts_name(chars[pos + 1])
        ):
            end = key_len(chars, pos + 1)
            value = env.lookup(chars[pos + 1 :])
            full = not in_double
            one_field = single_field(value, ifs)
            if redirect_target and full and not one_field:
                done.append(Word(chars, TokenKind.AMBIGUOUS, mask))
                return done
            if value and full and not one_field:
                fields = ifs_split(value, ifs)
                prefix, prefix_mask = chars[:pos], mask[:pos]
                suffix, suffix_mask = chars[end:], mask[end:]
                pieces: list[tuple[str, list[bool]]] = []
                if prefix:
                    if fields and not is_ifs(value[0], ifs):
                        first, fields = fields[0], fields[1:]
                        pieces.append(
                            (prefix + first, prefix_mask + [True] * len(first))
                        )
                    else:
                        pieces.append((prefix, prefix_mask))
                pieces.extend((field, [True] * len(field)) for field in fields)
                last_text, last_mask = pieces.pop() if pieces else ("", [])
                done.extend(Word(piece, TokenKind.WORD, bits) for piece, bits in pieces)
                pos = len(last_text)
                chars = last_text + suffix
                mask = last_mask + suffix_mask
                continue
            chars = chars[:pos] + value + chars[end:]
            mask = mask[:pos] + [True] * len(value) + mask[end:]
            pos += len(value)
            continue
        pos += 1
    done.append(Word(chars, TokenKind.WORD, mask, vanished=not chars))
    return done


def expand_words(
    words: Sequence[str], kinds: Sequence[TokenKind], env: Environment
) -> list[Word]:
    """Expand ``$NAME`` and ``$?`` in the words of a classified line.

    Unquoted expansions are split into fields. A redirection target that
    would not expand to exactly one field becomes an ``AMBIGUOUS`` word
    holding its text as it stood. Here-document delimiters are not expanded.
    """
    ifs = env.lookup("IFS")
    result: list[Word] = []
    previous: TokenKind | None = None
    for text, kind in zip(words, kinds):
        if kind != TokenKind.WORD or previous == TokenKind.HEREDOC:
            result.append(Word(text, kind))
        else:
            target = previous in _REDIRECT_TARGET_AFTER
            result.extend(_expand_word(text, target, env, ifs))
        previous = kind
    return result


def _unquote(
    text: str, mask: Sequence[bool] | None
) -> tuple[str, list[bool], bool]:
    flags = list(mask) if mask is not None else [False] * len(text)
    if len(flags) != len(text):
        raise ValueError("mask length does not match the text")
    out_chars: list[str] = []
    out_mask: list[bool] = []
    open_char: str | None = None
    open_at = 0
    removed = False
    for char, literal in zip(text, flags):
        if char in "'\"" and not literal:
            if open_char is None:
                open_char = char
                open_at = len(out_chars)
                out_chars.append(char)
                out_mask.append(literal)
                continue
            if char == open_char:
                del out_chars[open_at]
                del out_mask[open_at]
                open_char = None
                removed = True
                continue
        out_chars.append(char)
        out_mask.append(literal)
    return "".join(out_chars), out_mask, removed


def remove_quotes(text: str, mask: Sequence[bool] | None = None) -> str:
    """Remove matching pairs of quotes whose characters are not masked."""
    return _unquote(text, mask)[0]


def unquote_words(words: Iterable[Word]) -> list[Word]:
    """Remove quotes from every plain word, recording whether any were taken out."""
    result: list[Word] = []
    for word in words:
        if word.kind != TokenKind.WORD:
            result.append(word)
            continue
        text, mask, removed = _unquote(word.text, word.mask)
        result.append(
            Word(text, word.kind, mask, vanished=word.vanished, quoted=removed)
        )
    return result


def expand_heredoc_line(line: str, env: Environment) -> str:
    """Expand variables in one here-document line; quotes are not special."""
    parts: list[str] = []
    pos = 0
    while pos < len(line):
        if line[pos] == "$" and pos + 1 < len(line):
            pos += 1
            parts.append(env.lookup(line[pos:]))
            pos = key_len(line, pos)
        else:
            parts.append(line[pos])
            pos += 1
    return "".join(parts)