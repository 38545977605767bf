# minishell

A small shell in the spirit of `bash`, used as a library. It splits a
command line into a pipeline, honours single and double quotes, handles
`<`, `>`, `>>` and `<<` redirections, reads here-documents, runs the
builtins `echo`, `cd`, `pwd`, `env`, `export`, `unset` and `exit`, and
starts everything else as a child program found through the `PATH`
variable of its `Environment`.

## Running a line

```python
import sys
from minishell.environment import Environment
from minishell.executor import run_line

env = Environment({"PATH": "/usr/bin:/bin", "HOME": "/tmp"})
status = run_line("echo hello | tr a-z A-Z > out.txt", env,
                  sys.stdin, sys.stdout, sys.stderr, input)
```

`run_line` returns the status of the last command and also stores it in
the environment under `?`. A syntax error (for example a redirection
without a target, or a pipe with nothing after it) is written to
`stderr` as `minishell: syntax error ...` and gives status 2. A command
that cannot be found gives status 127; a redirection file that cannot
be opened gives status 1.

A here-document (`cat << EOF`) reads its lines through the `read_line`
callable that is passed in: it is called with the prompt `"> "` and
returns a line, or `None` at end of input. When it is left out, lines
are read with `input()`. With several `<<` on one command, every body is
read but only the last feeds the command. A `KeyboardInterrupt` while
reading becomes `HeredocInterrupted`, and the line ends with status 130.

A builtin that is the only command of a line runs in the shell itself:
`cd`, `export` and `unset` change the shell's state, and `exit` raises
`minishell.builtins.ShellExit`, whose `code` is the status the shell
should end with. Inside a pipeline each builtin runs with a private copy
of the environment, so it cannot change the shell's variables or
directory, and `exit` only ends that stage.

## The pieces

- `minishell.lexer` – `split_pipeline`, `tokenize`, `split_words`,
  `split_redirections`, `unquote` and `check_name_arg`: quote-aware
  splitting of a line into commands and tokens.
- `minishell.parser` – `parse_line` and `parse_command` turn text into
  `Command` objects (`name`, `args`, `infile`, `outfile`, `outfiles`,
  `outfile_mode`, `is_heredoc`, `heredoc_delimiters`, `heredoc_quoted`,
  `is_pipe`), with quotes removed; malformed input raises `ParseError`.
  The helpers `is_redirection`, `find_command`, `find_args`,
  `find_infile`, `find_outfile`, `find_outfiles`, `append_mode` and
  `heredoc_delimiters` work on token lists.
- `minishell.environment` – `Environment`, an ordered variable table
  with `get`, `set`, `unset`, `items` and `to_envp`, built from a
  mapping or from `NAME=value` strings.
- `minishell.builtins` – `is_builtin`, `run_builtin` and one function
  per builtin (`builtin_echo`, `builtin_cd`, `builtin_pwd`,
  `builtin_env`, `builtin_export`, `builtin_unset`, `builtin_exit`);
  `sorted_declarations` gives the `declare -x` listing that a bare
  `export` prints.
- `minishell.heredoc` – `read_heredoc` and `collect_heredocs`.
- `minishell.executor` – `find_executable`, `open_input`,
  `open_outputs`, `run_commands` and `run_line`.

## Parsing only

```python
from minishell.parser import parse_line

for command in parse_line("grep -v '#' < notes.txt | sort >> sorted.txt"):
    print(command)
```

## What it does not do

- There is no interactive prompt or command to start: the package runs
  lines that the caller hands it, and keeps no history.
- Variables are not expanded: `$HOME` or `$?` in a line are passed on
  as written, and here-document bodies are used exactly as typed.
- The environment starts with whatever the caller puts in it; nothing
  such as `SHLVL` or `PWD` is set up from the running process.