"""Running pipelines: command lookup, redirections and child processes."""

from __future__ import annotations

import codecs
import io
import os
import signal
import subprocess
import sys
import tempfile
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import IO, TextIO

from .builtins import ShellExit, is_builtin, run_builtin
from .environment import Environment
from .errors import (
    AMBIGUOUS_REDIRECT,
    IS_A_DIRECTORY,
    MISSING_TARGET,
    NO_SUCH_FILE,
    NOT_EXECUTABLE,
    NOT_IN_PATH,
    OPEN_FAILED,
    error_message,
    redirect_error_message,
)
from .parser import Command
from .tokens import TokenKind

_LOOKUP_STATUS = {
    NO_SUCH_FILE: 127,
    IS_A_DIRECTORY: 126,
    NOT_EXECUTABLE: 126,
    NOT_IN_PATH: 127,
}

_CHUNK = 65536


class CommandLookupError(Exception):
    """A command could not be found or cannot be run."""

    def __init__(self, name: str, status: int, message: str) -> None:
        super().__init__(message)
        self.name = name
        self.status = status


class RedirectionError(Exception):
    """A redirection could not be set up; the command's status becomes 1."""

    status = 1


def find_executable(name: str, env: Environment) -> str:
    """Return the path that runs ``name``.

    A name holding a slash is used as it is; otherwise each directory of
    ``PATH`` is tried in turn. Raises ``CommandLookupError`` with status
    126 or 127 and the message the shell prints.
    """
    path_value = env.get("PATH") or ""

    def fail(code: int) -> CommandLookupError:
        message = error_message(name, code, bool(path_value))
        return CommandLookupError(name, _LOOKUP_STATUS[code], message)

    if not name or name in (".", ".."):
        raise fail(NOT_IN_PATH)
    if "/" in name:
        if not os.access(name, os.F_OK):
            raise fail(NO_SUCH_FILE)
        if os.path.isdir(name):
            raise fail(IS_A_DIRECTORY)
        if os.access(name, os.X_OK):
            return name
        raise fail(NOT_EXECUTABLE)
    code = NOT_IN_PATH
    for directory in (part for part in path_value.split(":") if part):
        candidate = f"{directory}/{name}"
        if os.access(candidate, os.F_OK):
            if os.access(candidate, os.X_OK):
                return candidate
            code = NOT_EXECUTABLE
        else:
            code = NOT_IN_PATH
    raise fail(code)


def decode_returncode(returncode: int) -> int:
    """Turn a subprocess return code into a shell status.

    A child killed by a signal gives 128 plus the signal number.
    """
    if returncode >= 0:
        return returncode
    return 128 - returncode


def _fileno(stream: IO | TextIO) -> int | None:
    try:
        return stream.fileno()
    except (AttributeError, OSError, ValueError):
        return None


def _flush(stream: IO | TextIO) -> None:
    try:
        stream.flush()
    except (AttributeError, OSError, ValueError):
        pass


def _write_all(fd: int, data: bytes) -> None:
    view = memoryview(data)
    while view:
        written = os.write(fd, view)
        view = view[written:]


def _feed(fd: int, data: bytes) -> None:
    try:
        _write_all(fd, data)
    except BrokenPipeError:
        pass
    finally:
        os.close(fd)


def _default_signals() -> None:
    signal.signal(signal.SIGINT, signal.SIG_DFL)
    quit_signal = getattr(signal, "SIGQUIT", None)
    if quit_signal is not None:
        signal.signal(quit_signal, signal.SIG_DFL)


def _wait(process: subprocess.Popen) -> int:
    while True:
        try:
            return process.wait()
        except KeyboardInterrupt:
            continue


def _copy_env(env: Environment) -> Environment:
    clone = Environment(dict(env.items()))
    if "PATH" not in env:
        clone.unset("PATH")
    clone.status = env.status
    return clone


def _heredoc_fd(content: str) -> int:
    fd, name = tempfile.mkstemp(prefix="sheru-heredoc-")
    try:
        os.unlink(name)
        _write_all(fd, content.encode())
        os.lseek(fd, 0, os.SEEK_SET)
    except BaseException:
        os.close(fd)
        raise
    return fd


def _open_fd(target: str, flags: int, parent: bool) -> int:
    try:
        return os.open(target, flags, 0o644)
    except OSError as exc:
        reason = exc.strerror or str(exc)
        if parent:
            message = redirect_error_message(OPEN_FAILED, target, reason)
        else:
            message = f"{target}: {reason}"
        raise RedirectionError(message) from None


def _ambiguous(target: str, parent: bool) -> RedirectionError:
    if parent:
        return RedirectionError(redirect_error_message(MISSING_TARGET, target))
    return RedirectionError(error_message(target, AMBIGUOUS_REDIRECT))


def _open_redirections(
    command: Command, parent: bool
) -> tuple[int | None, int | None]:
    """Open a command's inputs, then its outputs, keeping the last of each."""
    stdin_fd: int | None = None
    stdout_fd: int | None = None
    try:
        last = len(command.inputs) - 1
        for index, redirection in enumerate(command.inputs):
            if redirection.ambiguous:
                raise _ambiguous(redirection.target, parent)
            if redirection.kind == TokenKind.INPUT:
                fd = _open_fd(redirection.target, os.O_RDONLY, parent)
            elif index == last:
                fd = _heredoc_fd(redirection.content or "")
            else:
                continue
            if stdin_fd is not None:
                os.close(stdin_fd)
            stdin_fd = fd
        for redirection in command.outputs:
            if redirection.ambiguous:
                raise _ambiguous(redirection.target, parent)
            mode = os.O_TRUNC if redirection.kind == TokenKind.OUTPUT else os.O_APPEND
            fd = _open_fd(
                redirection.target, os.O_CREAT | os.O_WRONLY | mode, parent
            )
            if stdout_fd is not None:
                os.close(stdout_fd)
            stdout_fd = fd
    except BaseException:
        for fd in (stdin_fd, stdout_fd):
            if fd is not None:
                os.close(fd)
        raise
    return stdin_fd, stdout_fd


@dataclass
class _Stage:
    status: int = 0
    process: subprocess.Popen | None = None
    threads: list[threading.Thread] = field(default_factory=list)


class Executor:
    """Runs parsed pipelines against an environment.

    A lone builtin runs in the shell itself and may change the
    environment; every command of a longer pipeline runs apart, builtins
    against a copy of the environment.
    """

    def __init__(
        self,
        env: Environment,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
    ) -> None:
        self.env = env
        self.stdout = stdout if stdout is not None else sys.stdout
        self.stderr = stderr if stderr is not None else sys.stderr
        self._lock = threading.Lock()

    def run(self, commands: Iterable[Command]) -> int:
        """Run a pipeline, record the status of its last command and return it."""
        commands = list(commands)
        if not commands:
            return self.env.status
        if len(commands) == 1 and is_builtin(commands[0].name):
            return self._run_alone(commands[0])
        return self._run_pipeline(commands)

    def _emit(self, stream: IO | TextIO, text: str) -> None:
        if text:
            with self._lock:
                stream.write(text)

    def _report(self, message: str) -> None:
        self._emit(self.stderr, message + "\n")

    def _run_alone(self, command: Command) -> int:
        try:
            stdin_fd, stdout_fd = _open_redirections(command, parent=True)
        except RedirectionError as exc:
            self._report(str(exc))
            self.env.set_status(RedirectionError.status)
            return self.env.status
        if stdin_fd is not None:
            os.close(stdin_fd)
        if stdout_fd is None:
            return run_builtin(command.argv, self.env, self.stdout, self.stderr)
        with open(stdout_fd, "w", encoding="utf-8") as out:
            return run_builtin(command.argv, self.env, out, self.stderr)

    def _run_pipeline(self, commands: list[Command]) -> int:
        status_before = self.env.status
        last = len(commands) - 1
        stages: list[_Stage] = []
        pending: int | None = None
        try:
            for index, command in enumerate(commands):
                read_end, pending = pending, None
                write_end = None
                if index < last:
                    pending, write_end = os.pipe()
                stages.append(
                    self._start(command, read_end, write_end, status_before)
                )
        finally:
            if pending is not None:
                os.close(pending)
        status = 0
        for stage in stages:
            status = self._finish(stage)
        self.env.set_status(status)
        return self.env.status

    def _finish(self, stage: _Stage) -> int:
        returncode = 0
        if stage.process is not None:
            returncode = _wait(stage.process)
            stage.status = decode_returncode(returncode)
        for thread in stage.threads:
            thread.join()
        if returncode < 0:
            if -returncode == getattr(signal, "SIGQUIT", None):
                self._report("Quit (core dumped)")
            elif -returncode == signal.SIGINT:
                self._emit(self.stdout, "\n")
        return stage.status

    def _start(
        self,
        command: Command,
        read_end: int | None,
        write_end: int | None,
        status_before: int,
    ) -> _Stage:
        handed = False
        try:
            try:
                stdin_fd, stdout_fd = _open_redirections(command, parent=False)
            except RedirectionError as exc:
                self._report(str(exc))
                return _Stage(RedirectionError.status)
            try:
                if not command.argv:
                    return _Stage(status_before)
                if is_builtin(command.name):
                    stage, handed = self._start_builtin(command, stdout_fd, write_end)
                    return stage
                stdin = stdin_fd if stdin_fd is not None else read_end
                stdout = stdout_fd if stdout_fd is not None else write_end
                return self._spawn(command, stdin, stdout)
            finally:
                for fd in (stdin_fd, stdout_fd):
                    if fd is not None:
                        os.close(fd)
        finally:
            if read_end is not None:
                os.close(read_end)
            if write_end is not None and not handed:
                os.close(write_end)

    def _builtin_status(
        self, argv: list[str], env: Environment, out: IO | TextIO
    ) -> int:
        try:
            return run_builtin(argv, env, out, self.stderr)
        except ShellExit as exc:
            return exc.status

    def _start_builtin(
        self, command: Command, stdout_fd: int | None, write_end: int | None
    ) -> tuple[_Stage, bool]:
        env = _copy_env(self.env)
        if stdout_fd is not None:
            with open(stdout_fd, "w", encoding="utf-8", closefd=False) as out:
                status = self._builtin_status(command.argv, env, out)
            return _Stage(status), False
        if write_end is None:
            return _Stage(self._builtin_status(command.argv, env, self.stdout)), False
        buffer = io.StringIO()
        status = self._builtin_status(command.argv, env, buffer)
        thread = threading.Thread(
            target=_feed, args=(write_end, buffer.getvalue().encode()), daemon=True
        )
        thread.start()
        return _Stage(status, threads=[thread]), True

    def _pump(self, pipe: IO[bytes], stream: IO | TextIO) -> threading.Thread:
        def work() -> None:
            decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
            with pipe:
                while chunk := pipe.read1(_CHUNK):
                    self._emit(stream, decoder.decode(chunk))
                self._emit(stream, decoder.decode(b"", final=True))

        thread = threading.Thread(target=work, daemon=True)
        thread.start()
        return thread

    def _spawn(
        self, command: Command, stdin: int | None, stdout: int | None
    ) -> _Stage:
        try:
            path = find_executable(command.argv[0], self.env)
        except CommandLookupError as exc:
            self._report(str(exc))
            return _Stage(exc.status)
        if stdout is None:
            out_fd = _fileno(self.stdout)
            stdout = out_fd if out_fd is not None else subprocess.PIPE
        err_fd = _fileno(self.stderr)
        stderr = err_fd if err_fd is not None else subprocess.PIPE
        _flush(self.stdout)
        _flush(self.stderr)
        try:
            process = subprocess.Popen(
                command.argv,
                executable=path,
                stdin=stdin,
                stdout=stdout,
                stderr=stderr,
                env=self.env.to_dict(),
                preexec_fn=_default_signals if os.name == "posix" else None,
            )
        except OSError as exc:
            self._report(f"sheru: {exc.strerror or exc}")
            return _Stage(1)
        threads: list[threading.Thread] = []
        if process.stdout is not None:
            threads.append(self._pump(process.stdout, self.stdout))
        if process.stderr is not None:
            threads.append(self._pump(process.stderr, self.stderr))
        return _Stage(0, process, threads)