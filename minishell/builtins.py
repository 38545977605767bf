"""Commands that the shell runs itself instead of starting a program."""

from __future__ import annotations

import errno
import os
import re
from collections.abc import Callable, Sequence
from typing import TextIO

from minishell.environment import Environment

INVALID_CHARACTERS = "!@#$%^&*()-+=[]{}\\|;:'\"<>/?`~ "

BUILTINS = frozenset({"exit", "pwd", "cd", "export", "unset", "env", "echo"})

_NUMERIC = re.compile(r"[+-]?[0-9]*")


class ShellExit(Exception):
    """Raised by ``exit`` to end the shell with ``code``."""

    def __init__(self, code: int) -> None:
        super().__init__(code)
        self.code = code


def is_builtin(name: str | None) -> bool:
    """Return True if ``name`` is one of the shell's own commands."""
    return name in BUILTINS


def run_builtin(
    args: Sequence[str], env: Environment, stdout: TextIO, stderr: TextIO
) -> int:
    """Run the builtin named by ``args[0]`` and return its exit status.

    A name that is not a builtin gives status 1.
    """
    if not args:
        return 1
    handlers: dict[str, Callable[[], int]] = {
        "exit": lambda: builtin_exit(args, stdout, stderr),
        "pwd": lambda: builtin_pwd(env, stdout, stderr),
        "cd": lambda: builtin_cd(args, env, stderr),
        "export": lambda: builtin_export(args, env, stdout),
        "unset": lambda: builtin_unset(args, env),
        "env": lambda: builtin_env(args, env, stdout, stderr),
        "echo": lambda: builtin_echo(args, stdout),
    }
    handler = handlers.get(args[0])
    return handler() if handler is not None else 1


def builtin_echo(args: Sequence[str], stdout: TextIO) -> int:
    """Write the arguments separated by spaces; a leading ``-n...`` drops the newline."""
    words = list(args[1:])
    newline = True
    if words and words[0].startswith("-") and set(words[0][1:]) <= {"n"}:
        newline = False
        words = words[1:]
    try:
        stdout.write(" ".join(words))
        if newline:
            stdout.write("\n")
        stdout.flush()
    except BrokenPipeError:
        return 1
    return 0


def _error_text(path: str) -> str:
    """Return the system's description of why ``path`` cannot be entered."""
    try:
        os.stat(path)
    except OSError as exc:
        return exc.strerror or os.strerror(exc.errno or errno.ENOENT)
    return os.strerror(errno.EACCES)


def _cd_target(args: Sequence[str], env: Environment) -> str | None:
    if len(args) < 2 or args[1] in ("~", "--"):
        return env.get("HOME")
    if args[1] == "-":
        return env.get("OLDPWD")
    return args[1]


def builtin_cd(args: Sequence[str], env: Environment, stderr: TextIO) -> int:
    """Change directory and update ``PWD`` and ``OLDPWD``."""
    if len(args) > 2:
        stderr.write("minishell: cd: too many arguments\n")
        return 1
    path = _cd_target(args, env)
    if path is None:
        stderr.write("minishell: cd: HOME not set\n")
        return 1
    if not os.access(path, os.R_OK | os.X_OK):
        stderr.write(f"minishell: cd: {_error_text(path)}\n")
        return 1
    try:
        os.chdir(path)
    except OSError as exc:
        stderr.write(f"minishell: cd: {exc.strerror}\n")
        return 1
    env.set("OLDPWD", env.get("PWD") or "")
    try:
        env.set("PWD", os.getcwd())
    except OSError:
        old = env.get("PWD")
        if old and path == "..":
            env.set("PWD", old + "/..")
        else:
            env.set("PWD", "..")
    return 0


def builtin_pwd(env: Environment, stdout: TextIO, stderr: TextIO) -> int:
    """Print the working directory, falling back on ``PWD`` when it is gone."""
    try:
        cwd = os.getcwd()
    except OSError as exc:
        saved = env.get("PWD")
        if saved is not None:
            stdout.write(f"{saved}\n")
            return 0
        stderr.write(f"minishell: pwd: {exc.strerror}\n")
        return 1
    stdout.write(f"{cwd}\n")
    return 0


def builtin_env(
    args: Sequence[str], env: Environment, stdout: TextIO, stderr: TextIO
) -> int:
    """Print every variable with a non-empty value; arguments are refused."""
    if len(args) > 1:
        stderr.write(f"env: ‘{args[1]}’: No such file or directory\n")
        return 1
    for name, value in env.items():
        if value:
            stdout.write(f"{name}={value}\n")
    return 0


def export_name(arg: str) -> str:
    """Return the part of ``arg`` before its first ``=``, or all of it."""
    return arg.partition("=")[0]


def valid_export_name(name: str) -> bool:
    """Return True if ``name`` may be used as a variable name by ``export``."""
    if name[:1].isdigit() and name[:1] in "0123456789":
        return False
    return not any(ch in INVALID_CHARACTERS for ch in name)


def _export_one(arg: str, env: Environment, stdout: TextIO) -> int:
    name, sep, value = arg.partition("=")
    if (sep and arg.startswith("=")) or not valid_export_name(name):
        stdout.write(f"export: `{arg}': not a valid identifier\n")
        return 1
    env.set(name, value)
    return 0


def builtin_export(args: Sequence[str], env: Environment, stdout: TextIO) -> int:
    """Set each ``NAME=value`` argument, or list the variables when there are none."""
    for arg in args[1:]:
        status = _export_one(arg, env, stdout)
        if status:
            return status
    if len(args) < 2:
        for line in sorted_declarations(env):
            stdout.write(f"{line}\n")
    return 0


def builtin_unset(args: Sequence[str], env: Environment) -> int:
    """Remove each named variable."""
    for name in args[1:]:
        env.unset(name)
    return 0


def _parse_exit_code(text: str) -> int:
    sign = -1 if text.startswith("-") else 1
    digits = text.lstrip("+-")
    return (sign * int(digits) if digits else 0) & 0xFF


def builtin_exit(args: Sequence[str], stdout: TextIO, stderr: TextIO) -> int:
    """End the shell through ShellExit; too many arguments give status 1."""
    if len(args) <= 1:
        stdout.write("exit\n")
        raise ShellExit(0)
    if len(args) == 2:
        arg = args[1]
        if not arg or not _NUMERIC.fullmatch(arg):
            stderr.write("exit: numeric argument required\n")
            raise ShellExit(2)
        raise ShellExit(_parse_exit_code(arg))
    stderr.write("exit: too many arguments\n")
    return 1


def _prefix_compare(name: str, other: str) -> int:
    """Compare ``name`` with the first ``len(name)`` characters of ``other``."""
    if not name:
        return 0
    head = other[: len(name)]
    return (name > head) - (name < head)


def sorted_declarations(env: Environment) -> list[str]:
    """Return ``declare -x NAME='value'`` lines ordered by variable name."""
    ordered: list[tuple[str, str]] = []
    for name, value in env.items():
        if not ordered or _prefix_compare(name, ordered[0][0]) < 0:
            ordered.insert(0, (name, value))
            continue
        index = 0
        while index + 1 < len(ordered) and _prefix_compare(name, ordered[index + 1][0]) > 0:
            index += 1
        ordered.insert(index + 1, (name, value))
    return [f"declare -x {name}='{value}'" for name, value in ordered]