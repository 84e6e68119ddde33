"""The interactive loop: prompt, reading lines and running them."""

from __future__ import annotations

import os
import signal
import sys
from collections.abc import Callable, Mapping
from typing import TextIO

from .builtins import ShellExit
from .environment import Environment
from .executor import Executor
from .expansion import expand_words, unquote_words
from .heredoc import HeredocInterrupted, collect_heredocs
from .parser import MAX_HEREDOCS, TooManyHeredocs, parse_pipeline
from .tokens import ShellSyntaxError, TokenKind, check_syntax, classify, split_tokens

try:
    import readline as _readline
except ImportError:  # pragma: no cover - platform without readline
    _readline = None

FALLBACK_PROMPT = "minishell >"
HEREDOC_PROMPT = "> "
INTERRUPT_STATUS = 130

ReadLine = Callable[[str], "str | None"]


def _session_name(session_manager: str | None) -> str | None:
    if session_manager is None:
        return None
    rest = session_manager[6:]
    end = 0
    while end < len(rest) and rest[end].isascii() and rest[end].isalnum():
        end += 1
    return rest[:end] or None


def build_prompt(environ: Mapping[str, str]) -> str:
    """Build the prompt from ``USER`` and the host named in ``SESSION_MANAGER``.

    Without both, the prompt is ``minishell >``.
    """
    user = environ.get("USER")
    session = _session_name(environ.get("SESSION_MANAGER"))
    if user is None or session is None:
        return FALLBACK_PROMPT
    prefix = f"{user}@" if user else ""
    return f"{prefix}{session}:~$ "


def _default_read_line(prompt: str) -> str | None:
    try:
        return input(prompt)
    except EOFError:
        return None


class Shell:
    """A shell session: its variables, its prompt and the way it reads lines."""

    def __init__(
        self,
        environ: Mapping[str, str] | None = None,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
        read_line: ReadLine | None = None,
    ) -> None:
        source = os.environ if environ is None else environ
        self.stdout = stdout if stdout is not None else sys.stdout
        self.stderr = stderr if stderr is not None else sys.stderr
        self._uses_readline = read_line is None
        self._read_line = read_line if read_line is not None else _default_read_line
        self.env = Environment(dict(source))
        self.env.set_status(0)
        self.env.init_shlvl(self._warn)
        self.prompt = build_prompt(source)
        self.executor = Executor(self.env, self.stdout, self.stderr)
        self.history: list[str] = []

    def _warn(self, message: str) -> None:
        self.stderr.write(message + "\n")

    def _heredoc_line(self) -> str | None:
        return self._read_line(HEREDOC_PROMPT)

    def _remember(self, line: str) -> None:
        self.history.append(line)
        if self._uses_readline and _readline is not None:
            _readline.add_history(line)

    def run_line(self, line: str) -> int:
        """Parse and run one command line and return the resulting status.

        Raises ``ShellExit`` when the line asks the shell to stop.
        """
        try:
            words = split_tokens(line)
            if not words:
                return self.env.status
            kinds = classify(words)
            check_syntax(words, kinds)
        except ShellSyntaxError as exc:
            self._warn(f"sheru: {exc}")
            self.env.set_status(exc.status)
            return self.env.status
        if sum(1 for kind in kinds if kind == TokenKind.HEREDOC) > MAX_HEREDOCS:
            self._warn(str(TooManyHeredocs()))
            raise ShellExit(TooManyHeredocs.status)
        expanded = unquote_words(expand_words(words, kinds, self.env))
        try:
            commands = parse_pipeline(expanded)
        except TooManyHeredocs as exc:
            self._warn(str(exc))
            raise ShellExit(exc.status) from None
        except ShellSyntaxError as exc:
            self._warn(f"sheru: {exc}")
            self.env.set_status(exc.status)
            return self.env.status
        if any(
            redirection.kind == TokenKind.HEREDOC
            for command in commands
            for redirection in command.inputs
        ):
            try:
                collect_heredocs(commands, self._heredoc_line, True, self.env)
            except HeredocInterrupted:
                self.env.set_status(HeredocInterrupted.status)
                return self.env.status
        return self.executor.run(commands)

    def loop(self) -> int:
        """Read and run lines until end of input or ``exit``; return the exit status."""
        while True:
            try:
                line = self._read_line(self.prompt)
            except KeyboardInterrupt:
                self.stdout.write("\n")
                self.env.set_status(INTERRUPT_STATUS)
                continue
            if line is None:
                self.stdout.write("exit\n")
                return 0
            if not line:
                continue
            self._remember(line)
            try:
                self.run_line(line)
            except ShellExit as exc:
                return exc.status
            except KeyboardInterrupt:
                self.env.set_status(INTERRUPT_STATUS)


def main(argv: list[str] | None = None) -> int:
    """Start an interactive shell on the process environment."""
    quit_signal = getattr(signal, "SIGQUIT", None)
    if quit_signal is not None:
        signal.signal(quit_signal, signal.SIG_IGN)
    shell = Shell()
    return shell.loop()