# sheru

A small interactive command shell. It reads a line and splits it into
words and operators. It then checks the syntax, expands variables,
removes quotes and runs the pipeline that results.

## Features

- Pipelines joined with `|`.
- Redirections: `<`, `>`, `>>` and here-documents with `<<`.
  - At most sixteen here-documents are allowed on one line. A line with
    more makes the shell stop with status 2.
  - A quoted here-document delimiter turns off variable expansion in the
    document's lines.
- Single and double quotes.
- `$NAME` and `$?` expansion. Unquoted expansions are split into fields
  on `IFS`, or on space, tab and newline when `IFS` is unset or empty.
  - A redirection target that does not expand to exactly one field is
    reported as an ambiguous redirect.
- Built-in commands:
  - `echo`, with `-n`
  - `cd`, which updates `PWD` and `OLDPWD`
  - `pwd`
  - `env`
  - `export`: `NAME`, `NAME=value` and `NAME+=value`. With no arguments
    it lists the variables in sorted order.
  - `unset`
  - `exit`
- Other commands are looked up through `PATH`. When the environment the
  shell starts with has no `PATH`, a default value is used. A command not
  found gives status 127. A command that cannot be run, or a directory,
  gives status 126.
- `SHLVL` is raised by one at start-up. From 999 upward it is reset to 1,
  with a warning.
- A command killed by a signal gives status 128 plus the signal number.

## Installing

```
pip install .
```

## Running

Start the interactive shell with:

```
sheru
```

The prompt is `USER@host:~$ `. The host is taken from `SESSION_MANAGER`;
when that is not available the prompt is `minishell >`.

- Ctrl-D leaves the shell.
- `exit` also leaves it, with an optional status.
- Ctrl-C at the prompt starts a fresh line and sets the status to 130.

## Using it from Python

```python
import sys
from sheru.shell import Shell

shell = Shell(environ={"PATH": "/usr/bin:/bin"}, stdout=sys.stdout, stderr=sys.stderr)
status = shell.run_line('echo "hello $USER" | tr a-z A-Z')
```

`Shell.run_line` returns the status of the line. It raises
`sheru.builtins.ShellExit` when the line asks the shell to stop.
`Shell.loop` reads lines until end of input or `exit`, and returns the
exit status. You can pass `read_line`, a function that takes a prompt and
returns a line or `None`, to feed the shell without a terminal.

Each stage can be used on its own:

```python
from sheru.environment import Environment
from sheru.expansion import expand_words, unquote_words
from sheru.parser import parse_pipeline
from sheru.tokens import check_syntax, classify, split_tokens

env = Environment({"NAME": "world"})
words = split_tokens("cat < in.txt | grep $NAME > out.txt")
kinds = classify(words)
check_syntax(words, kinds)
commands = parse_pipeline(unquote_words(expand_words(words, kinds, env)))
```

`sheru.executor.Executor` runs such a list of commands against an
`Environment`. `sheru.heredoc.collect_heredocs` fills in the text of
here-documents before a run.

## What it does not do

The shell has no support for the following:

- `;`, `&&`, `||` or `&`
- subshells
- command substitution
- globbing
- job control
- scripts given as files

`unset` removes only the variable named by its first argument. History
is kept only for the session.

## Tests

```
pip install ".[test]"
pytest
```