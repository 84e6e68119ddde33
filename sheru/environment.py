"""Shell variables, the exit status and the helpers that read them."""

from __future__ import annotations

import sys
from collections.abc import Callable, Iterable, Iterator, Mapping

DEFAULT_PATH = "/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin"
SHLVL_LIMIT = 999

_DIGITS = frozenset("0123456789")
_SPACES = frozenset(" \t\n\v\f\r")


def _is_name_char(char: str) -> bool:
    return char.isascii() and (char.isalnum() or char == "_")


def key_len(text: str, pos: int) -> int:
    """Return the index just past the variable name that starts at ``pos``.

    ``?`` and ``$`` are one-character names; otherwise the name runs over
    ASCII letters, digits and underscores.
    """
    if pos < len(text) and text[pos] in "?$":
        return pos + 1
    end = pos
    while end < len(text) and _is_name_char(text[end]):
        end += 1
    return end


def parse_int(text: str | None) -> int:
    """Read a leading decimal integer the way ``atoi`` does, wrapping to 32 bits."""
    if text is None:
        return 0
    pos = 0
    while pos < len(text) and text[pos] in _SPACES:
        pos += 1
    sign = 1
    if pos < len(text) and text[pos] in "+-":
        if text[pos] == "-":
            sign = -1
        pos += 1
    start = pos
    while pos < len(text) and text[pos] in _DIGITS:
        pos += 1
    value = int(text[start:pos]) * sign if pos > start else 0
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value >= (1 << 31) else value


def normalize_status(code: int) -> int:
    """Bring an exit status into the range 0..255."""
    return code % 256


def _default_warn(message: str) -> None:
    print(message, file=sys.stderr)


class Environment:
    """Ordered shell variables plus the status of the last command.

    A variable may exist without a value (``export NAME``); its value is
    then ``None``.
    """

    def __init__(
        self, entries: Iterable[str] | Mapping[str, str | None] = ()
    ) -> None:
        self._vars: dict[str, str | None] = {}
        self.status = 0
        if isinstance(entries, Mapping):
            for key, value in entries.items():
                self._vars.setdefault(key, value)
        else:
            for entry in entries:
                key, sep, value = entry.partition("=")
                if sep:
                    self._vars.setdefault(key, value)
        if "PATH" not in self._vars:
            self._vars["PATH"] = DEFAULT_PATH

    def __contains__(self, key: object) -> bool:
        return key in self._vars

    def __iter__(self) -> Iterator[str]:
        return iter(self._vars)

    def __len__(self) -> int:
        return len(self._vars)

    def get(self, key: str) -> str | None:
        """Return the value of ``key``, or ``None`` if unset or valueless."""
        return self._vars.get(key)

    def lookup(self, text: str) -> str:
        """Expand the variable name at the start of ``text``.

        ``?`` gives the last status; an empty name, ``$`` or an unknown
        variable give the empty string.
        """
        if not text or text[0] == "$":
            return ""
        if text[0] == "?":
            return str(self.status)
        name = text[: key_len(text, 0)]
        return self._vars.get(name) or ""

    def set(self, key: str, value: str | None) -> None:
        """Create ``key`` or replace its value, keeping its position."""
        self._vars[key] = value

    def append(self, key: str, value: str) -> None:
        """Append ``value`` to the current value of ``key``."""
        self._vars[key] = (self._vars.get(key) or "") + value

    def unset(self, key: str) -> None:
        """Remove ``key`` if it exists."""
        self._vars.pop(key, None)

    def items(self) -> list[tuple[str, str | None]]:
        """Return the variables as ``(key, value)`` pairs in order."""
        return list(self._vars.items())

    def to_envp(self) -> list[str]:
        """Return ``KEY=VALUE`` strings for a child process."""
        return [f"{key}={value or ''}" for key, value in self._vars.items()]

    def to_dict(self) -> dict[str, str]:
        """Return the variables as a plain mapping for a child process."""
        return {key: value or "" for key, value in self._vars.items()}

    def init_shlvl(self, warn: Callable[[str], None] | None = None) -> int:
        """Raise ``SHLVL`` by one and return the new level."""
        report = warn or _default_warn
        raw = self.lookup("SHLVL")
        level = 0
        if all(char in _DIGITS for char in raw):
            level = parse_int(raw)
            if level >= SHLVL_LIMIT:
                report(
                    f"sheru: warning: shell level ({level + 1}) "
                    "too high, resetting to 1"
                )
                level = 0
        level += 1
        self._vars["SHLVL"] = str(level)
        return level

    def set_status(self, code: int) -> None:
        """Record the status of the last command, reduced modulo 256."""
        self.status = normalize_status(code)