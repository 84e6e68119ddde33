import io
import os
import signal

import pytest

from sheru.builtins import ShellExit
from sheru.environment import DEFAULT_PATH, Environment
from sheru.executor import (
    CommandLookupError,
    Executor,
    decode_returncode,
    find_executable,
)
from sheru.parser import Command, Redirection
from sheru.tokens import TokenKind


def make_env(**extra):
    values = {"PATH": os.environ.get("PATH", DEFAULT_PATH)}
    values.update(extra)
    return Environment(values)


def make_executor(env=None):
    env = env if env is not None else make_env()
    out, err = io.StringIO(), io.StringIO()
    return Executor(env, out, err), out, err


def heredoc(content):
    return Redirection(TokenKind.HEREDOC, "EOF", content=content)


def write_script(path, executable=True):
    path.write_text("#!/bin/sh\nexit 0\n")
    path.chmod(0o755 if executable else 0o644)
    return path


def test_decode_returncode_plain_status():
    assert decode_returncode(0) == 0
    assert decode_returncode(42) == 42


def test_decode_returncode_signal():
    assert decode_returncode(-signal.SIGINT) == 130


def test_find_executable_with_slash(tmp_path):
    script = write_script(tmp_path / "tool")
    assert find_executable(str(script), make_env()) == str(script)


def test_find_executable_missing_with_slash(tmp_path):
    name = str(tmp_path / "missing")
    with pytest.raises(CommandLookupError) as info:
        find_executable(name, make_env())
    assert info.value.status == 127
    assert str(info.value) == f"{name}: No such file or directory"


def test_find_executable_directory(tmp_path):
    with pytest.raises(CommandLookupError) as info:
        find_executable(str(tmp_path), make_env())
    assert info.value.status == 126
    assert str(info.value) == f"{tmp_path}: Is a directory"


def test_find_executable_not_executable_with_slash(tmp_path):
    script = write_script(tmp_path / "tool", executable=False)
    with pytest.raises(CommandLookupError) as info:
        find_executable(str(script), make_env())
    assert info.value.status == 126
    assert str(info.value) == f"{script}: permission denied"


def test_find_executable_searches_path(tmp_path):
    write_script(tmp_path / "tool")
    env = Environment({"PATH": str(tmp_path)})
    assert find_executable("tool", env) == f"{tmp_path}/tool"


def test_find_executable_not_found():
    env = Environment({"PATH": "/nonexistent-dir"})
    with pytest.raises(CommandLookupError) as info:
        find_executable("nosuchcmd", env)
    assert info.value.status == 127
    assert str(info.value) == "nosuchcmd: command not found"


def test_find_executable_empty_path_message():
    env = Environment({"PATH": ""})
    with pytest.raises(CommandLookupError) as info:
        find_executable("nosuchcmd", env)
    assert str(info.value) == "nosuchcmd: No such file or directory"


@pytest.mark.parametrize("name", ["", ".", ".."])
def test_find_executable_rejects_dot_names(name):
    with pytest.raises(CommandLookupError) as info:
        find_executable(name, make_env())
    assert info.value.status == 127


def test_find_executable_last_directory_decides(tmp_path):
    first, second = tmp_path / "a", tmp_path / "b"
    first.mkdir()
    second.mkdir()
    write_script(first / "tool", executable=False)
    with pytest.raises(CommandLookupError) as info:
        find_executable("tool", Environment({"PATH": f"{first}:{second}"}))
    assert info.value.status == 127
    with pytest.raises(CommandLookupError) as info:
        find_executable("tool", Environment({"PATH": f"{second}:{first}"}))
    assert info.value.status == 126
    assert str(info.value) == "tool: permission denied"


def test_run_empty_pipeline_keeps_status():
    env = make_env()
    env.status = 4
    executor, _, _ = make_executor(env)
    assert executor.run([]) == 4


def test_run_external_command():
    executor, out, _ = make_executor()
    assert executor.run([Command(["printf", "hello"])]) == 0
    assert out.getvalue() == "hello"
    assert executor.env.status == 0


def test_run_heredoc_input():
    executor, out, _ = make_executor()
    command = Command(["cat"], inputs=[heredoc("one\ntwo\n")])
    assert executor.run([command]) == 0
    assert out.getvalue() == "one\ntwo\n"


def test_only_last_input_is_used(tmp_path):
    source = tmp_path / "in.txt"
    source.write_text("from file\n")
    executor, out, _ = make_executor()
    command = Command(
        ["cat"],
        inputs=[heredoc("ignored\n"), Redirection(TokenKind.INPUT, str(source))],
    )
    executor.run([command])
    assert out.getvalue() == "from file\n"


def test_output_redirection_creates_every_file(tmp_path):
    first, second = tmp_path / "first", tmp_path / "second"
    executor, out, _ = make_executor()
    command = Command(
        ["printf", "x"],
        outputs=[
            Redirection(TokenKind.OUTPUT, str(first)),
            Redirection(TokenKind.OUTPUT, str(second)),
        ],
    )
    assert executor.run([command]) == 0
    assert first.read_text() == ""
    assert second.read_text() == "x"
    assert out.getvalue() == ""


def test_append_redirection(tmp_path):
    target = tmp_path / "log"
    target.write_text("a")
    executor, _, _ = make_executor()
    command = Command(["printf", "b"], outputs=[Redirection(TokenKind.APPEND, str(target))])
    executor.run([command])
    assert target.read_text() == "ab"


def test_pipeline_passes_data():
    executor, out, _ = make_executor()
    status = executor.run(
        [Command(["printf", "abc"]), Command(["tr", "a-z", "A-Z"])]
    )
    assert status == 0
    assert out.getvalue() == "ABC"


def test_pipeline_status_is_last_command():
    executor, _, _ = make_executor()
    assert executor.run([Command(["sh", "-c", "exit 3"]), Command(["true"])]) == 0
    assert executor.run([Command(["true"]), Command(["sh", "-c", "exit 3"])]) == 3


def test_command_not_found():
    env = make_env()
    executor, _, err = make_executor(env)
    assert executor.run([Command(["nosuchcmd_sheru"])]) == 127
    assert err.getvalue() == "nosuchcmd_sheru: command not found\n"


def test_killed_by_signal():
    executor, _, _ = make_executor()
    assert executor.run([Command(["sh", "-c", "kill -TERM $$"])]) == 143


def test_child_missing_input_message(tmp_path):
    missing = str(tmp_path / "nope")
    executor, out, err = make_executor()
    command = Command(["cat"], inputs=[Redirection(TokenKind.INPUT, missing)])
    assert executor.run([command]) == 1
    assert err.getvalue().startswith(f"{missing}: ")
    assert out.getvalue() == ""


def test_child_ambiguous_redirect():
    executor, _, err = make_executor()
    command = Command(
        ["cat"], outputs=[Redirection(TokenKind.OUTPUT, "$X", ambiguous=True)]
    )
    assert executor.run([command]) == 1
    assert err.getvalue() == "sheru: $X: ambiguous redirect\n"


def test_builtin_alone_redirects_output(tmp_path):
    target = tmp_path / "out"
    executor, out, _ = make_executor()
    command = Command(["echo", "hi"], outputs=[Redirection(TokenKind.OUTPUT, str(target))])
    assert executor.run([command]) == 0
    assert target.read_text() == "hi\n"
    assert out.getvalue() == ""


def test_builtin_alone_missing_input(tmp_path):
    missing = str(tmp_path / "nope")
    target = tmp_path / "out"
    executor, _, err = make_executor()
    command = Command(
        ["echo", "x"],
        inputs=[Redirection(TokenKind.INPUT, missing)],
        outputs=[Redirection(TokenKind.OUTPUT, str(target))],
    )
    assert executor.run([command]) == 1
    assert err.getvalue().startswith(f"sheru: {missing}: ")
    assert not target.exists()


def test_builtin_alone_ambiguous_message():
    executor, _, err = make_executor()
    command = Command(
        ["echo"], outputs=[Redirection(TokenKind.OUTPUT, "$X", ambiguous=True)]
    )
    assert executor.run([command]) == 1
    assert err.getvalue() == "sheru: $X: No such file or directory\n"


def test_builtin_alone_changes_environment():
    executor, _, _ = make_executor()
    executor.run([Command(["export", "FOO=bar"])])
    assert executor.env.get("FOO") == "bar"


def test_builtin_in_pipeline_uses_a_copy():
    executor, _, _ = make_executor()
    status = executor.run(
        [Command(["export", "FOO=bar"]), Command(["cat"], inputs=[heredoc("")])]
    )
    assert status == 0
    assert "FOO" not in executor.env


def test_builtin_output_feeds_pipeline():
    executor, out, _ = make_executor()
    executor.run([Command(["echo", "hi"]), Command(["cat"])])
    assert out.getvalue() == "hi\n"


def test_exit_alone_raises():
    executor, _, _ = make_executor()
    with pytest.raises(ShellExit) as info:
        executor.run([Command(["exit", "5"])])
    assert info.value.status == 5


def test_exit_in_pipeline_sets_status():
    executor, _, _ = make_executor()
    assert executor.run([Command(["true"]), Command(["exit", "7"])]) == 7


def test_empty_command_keeps_previous_status():
    env = make_env()
    env.status = 5
    executor, _, _ = make_executor(env)
    assert executor.run([Command()]) == 5


def test_child_sees_environment():
    env = make_env(GREETING="hello")
    executor, out, _ = make_executor(env)
    executor.run([Command(["sh", "-c", 'printf "%s" "$GREETING"'])])
    assert out.getvalue() == "hello"