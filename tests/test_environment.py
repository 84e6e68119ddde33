import pytest

from sheru.environment import (
    DEFAULT_PATH,
    Environment,
    key_len,
    normalize_status,
    parse_int,
)


def test_entries_split_on_first_equals():
    env = Environment(["A=1", "B=x=y", "PATH=/bin"])
    assert env.get("A") == "1"
    assert env.get("B") == "x=y"
    assert env.get("PATH") == "/bin"


def test_default_path_added_when_missing():
    env = Environment(["HOME=/home/me"])
    assert env.get("PATH") == DEFAULT_PATH
    assert env.to_envp()[-1] == "PATH=" + DEFAULT_PATH


def test_entries_without_equals_are_skipped():
    env = Environment(["NOVALUE", "A=b"])
    assert "NOVALUE" not in env
    assert env.get("A") == "b"


def test_first_duplicate_wins():
    env = Environment(["A=first", "A=second"])
    assert env.get("A") == "first"


def test_mapping_input():
    env = Environment({"X": "y", "PATH": "/usr/bin"})
    assert env.to_dict() == {"X": "y", "PATH": "/usr/bin"}


def test_lookup_reads_name_prefix():
    env = Environment(["HOME=/home/me"])
    assert env.lookup("HOME/rest") == "/home/me"
    assert env.lookup("HOMEX") == ""
    assert env.lookup("") == ""
    assert env.lookup("$HOME") == ""


def test_lookup_status():
    env = Environment([])
    env.set_status(42)
    assert env.lookup("?") == "42"
    assert env.lookup("?abc") == "42"


def test_set_status_wraps():
    env = Environment([])
    env.set_status(256)
    assert env.status == 0
    env.set_status(300)
    assert env.status == normalize_status(300 - 256)


@pytest.mark.parametrize("code", [-300, -1, 0, 5, 255, 256, 1000])
def test_normalize_status_range(code):
    result = normalize_status(code)
    assert 0 <= result < 256
    assert normalize_status(code + 256) == result


def test_key_len():
    assert key_len("HOME", 0) == len("HOME")
    assert key_len("a_b-c", 0) == len("a_b")
    assert key_len("?x", 0) == 1
    assert key_len("x$", 1) == 2
    assert key_len("ab", 2) == 2


@pytest.mark.parametrize(
    "text, expected",
    [
        ("  -42abc", -42),
        ("+7", 7),
        ("\t\n12", 12),
        ("abc", 0),
        ("", 0),
        (None, 0),
        ("2147483648", -2147483648),
    ],
)
def test_parse_int(text, expected):
    assert parse_int(text) == expected


def test_set_append_unset():
    env = Environment(["A=1"])
    env.set("B", None)
    assert "B" in env
    assert env.get("B") is None
    env.append("A", "2")
    assert env.get("A") == "12"
    env.append("B", "v")
    assert env.get("B") == "v"
    env.unset("A")
    assert "A" not in env
    env.unset("missing")
    assert [key for key, _ in env.items()] == ["PATH", "B"]


def test_set_keeps_position():
    env = Environment(["A=1", "B=2"])
    env.set("A", "3")
    assert [key for key, _ in env.items()][:2] == ["A", "B"]


def test_to_envp_round_trip():
    entries = ["A=1", "B=two words", "PATH=/bin"]
    env = Environment(entries)
    assert env.to_envp() == entries
    assert Environment(env.to_envp()).to_envp() == entries


def test_to_envp_valueless():
    env = Environment(["PATH=/bin"])
    env.set("EMPTY", None)
    assert "EMPTY=" in env.to_envp()


def test_shlvl_missing_starts_at_one():
    env = Environment([])
    assert env.init_shlvl() == 1
    assert env.get("SHLVL") == "1"


def test_shlvl_increments():
    env = Environment(["SHLVL=3"])
    level = env.init_shlvl()
    assert level == parse_int("3") + 1
    assert env.get("SHLVL") == str(level)


def test_shlvl_non_numeric_resets():
    env = Environment(["SHLVL=abc"])
    assert env.init_shlvl() == 1


def test_shlvl_too_high_warns():
    messages = []
    env = Environment(["SHLVL=999"])
    assert env.init_shlvl(messages.append) == 1
    assert messages == [
        "sheru: warning: shell level (1000) too high, resetting to 1"
    ]