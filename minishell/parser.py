"""Turning a command line into a list of commands with their redirections."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from minishell.lexer import PIPE, split_pipeline, tokenize, unquote

HEREDOC = "<<"
INPUT = "<"
OUTPUT = ">"
APPEND = ">>"
QUOTES = "'\""


class ParseError(ValueError):
    """Raised when a command line is not well formed."""


@dataclass
class Command:
    """One command of a pipeline, with quotes already removed from its words."""

    name: str | None = None
    args: list[str] = field(default_factory=list)
    infile: str | None = None
    outfile: str | None = None
    outfiles: list[str] = field(default_factory=list)
    outfile_mode: int = 0
    is_heredoc: bool = False
    heredoc_delimiters: list[str] = field(default_factory=list)
    heredoc_quoted: bool = False
    is_pipe: bool = False


def is_redirection(token: str) -> bool:
    """Return True if ``token`` is a redirection operator."""
    return token.startswith(INPUT) or token.startswith(OUTPUT)


def _target(tokens: Sequence[str], index: int) -> str:
    """Return the word after the redirection at ``index``, or raise ParseError."""
    if index + 1 >= len(tokens) or is_redirection(tokens[index + 1]):
        raise ParseError(f"syntax error near unexpected token `{tokens[index]}'")
    return tokens[index + 1]


def find_command(tokens: Sequence[str]) -> str | None:
    """Return the first word that is not a redirection or its target.

    None is returned when there is no such word or a redirection has no target.
    """
    i = 0
    while i < len(tokens):
        if is_redirection(tokens[i]):
            if i + 1 >= len(tokens) or is_redirection(tokens[i + 1]):
                return None
            i += 2
        else:
            return tokens[i]
    return None


def find_args(tokens: Sequence[str]) -> list[str]:
    """Return the command word and its arguments, leaving out redirections."""
    args: list[str] = []
    i = 0
    while i < len(tokens):
        if is_redirection(tokens[i]):
            _target(tokens, i)
            i += 2
        else:
            args.append(tokens[i])
            i += 1
    return args


def find_infile(tokens: Sequence[str]) -> str | None:
    """Return the target of the last ``<`` redirection, if any."""
    infile = None
    for i, token in enumerate(tokens):
        if token == INPUT:
            infile = _target(tokens, i)
    return infile


def find_outfiles(tokens: Sequence[str]) -> list[str]:
    """Return the targets of every ``>`` and ``>>`` redirection in order."""
    return [_target(tokens, i) for i, token in enumerate(tokens) if token in (OUTPUT, APPEND)]


def find_outfile(tokens: Sequence[str]) -> str | None:
    """Return the target of the last ``>`` or ``>>`` redirection, if any."""
    outfiles = find_outfiles(tokens)
    return outfiles[-1] if outfiles else None


def append_mode(tokens: Sequence[str]) -> int:
    """Return 2 if the last output redirection appends, 1 if it truncates, 0 if none."""
    mode = 0
    for token in tokens:
        if token.startswith(APPEND):
            mode = 2
        elif token.startswith(OUTPUT):
            mode = 1
    return mode


def heredoc_delimiters(tokens: Sequence[str]) -> list[str]:
    """Return the delimiter words of every ``<<`` in order."""
    delimiters: list[str] = []
    i = 0
    while i < len(tokens):
        if tokens[i].startswith(HEREDOC):
            delimiters.append(_target(tokens, i))
            i += 1
        i += 1
    return delimiters


def parse_command(text: str, is_pipe: bool) -> Command:
    """Parse the text of one pipeline stage into a Command."""
    tokens = tokenize(text)
    args = find_args(tokens)
    name = find_command(tokens)
    infile = find_infile(tokens)
    outfiles = find_outfiles(tokens)
    delimiters = heredoc_delimiters(tokens)
    return Command(
        name=unquote(name) if name is not None else None,
        args=[unquote(arg) for arg in args],
        infile=unquote(infile) if infile is not None else None,
        outfile=unquote(outfiles[-1]) if outfiles else None,
        outfiles=[unquote(path) for path in outfiles],
        outfile_mode=append_mode(tokens),
        is_heredoc=HEREDOC in tokens,
        heredoc_delimiters=[unquote(d) for d in delimiters],
        heredoc_quoted=any(ch in QUOTES for d in delimiters for ch in d),
        is_pipe=is_pipe,
    )


def parse_line(line: str) -> list[Command]:
    """Parse a whole command line into its pipeline of commands."""
    parts = split_pipeline(line)
    commands: list[Command] = []
    position = 0
    while position < len(parts):
        text = parts[position]
        is_pipe = position + 1 < len(parts) and parts[position + 1] == PIPE
        if text == PIPE or not tokenize(text):
            if is_pipe or position > 0 or text == PIPE:
                raise ParseError("syntax error near unexpected token `|'")
            return commands
        if is_pipe and position + 2 >= len(parts):
            raise ParseError("syntax error near unexpected token `|'")
        commands.append(parse_command(text, is_pipe))
        if not is_pipe:
            break
        position += 2
    return commands