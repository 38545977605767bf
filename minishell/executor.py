"""Running parsed commands: builtins in the shell, programs as child processes."""

from __future__ import annotations

import codecs
import io
import os
import signal
import subprocess
import sys
import threading
from collections.abc import Callable, Iterator, Sequence
from contextlib import ExitStack, contextmanager
from typing import IO, Any, BinaryIO

from minishell.builtins import ShellExit, is_builtin, run_builtin
from minishell.environment import Environment
from minishell.heredoc import HeredocInterrupted, collect_heredocs
from minishell.parser import Command, ParseError, parse_line

NOT_FOUND_STATUS = 127
REDIRECTION_FAILED_STATUS = 1
SYNTAX_ERROR_STATUS = 2
OUTPUT_PERMISSIONS = 0o600
_CHUNK = 65536

ReadLine = Callable[[str], "str | None"]


def find_executable(name: str, env: Environment) -> str | None:
    """Return the path that would run ``name``, searching ``PATH`` in ``env``."""
    if "/" in name and os.access(name, os.F_OK | os.X_OK):
        return name
    search = env.get("PATH")
    if search is None:
        return None
    for directory in search.split(":"):
        if not directory:
            continue
        candidate = f"{directory}/{name}"
        if os.access(candidate, os.F_OK | os.X_OK):
            return candidate
    return None


def open_input(command: Command) -> BinaryIO | None:
    """Open the command's input file for reading, or return None if it has none."""
    if command.infile is None:
        return None
    return open(command.infile, "rb")


def _open_output(path: str, append: bool) -> BinaryIO:
    flags = os.O_WRONLY | os.O_CREAT | (os.O_APPEND if append else os.O_TRUNC)
    fd = os.open(path, flags, OUTPUT_PERMISSIONS)
    return os.fdopen(fd, "wb")


def open_outputs(command: Command) -> BinaryIO | None:
    """Create every output file of the command and open the last one.

    All files use the mode of the last redirection: append for ``>>``,
    truncate for ``>``. None is returned when there is no output file.
    """
    append = command.outfile_mode == 2
    for path in command.outfiles:
        _open_output(path, append).close()
    if command.outfile is None:
        return None
    return _open_output(command.outfile, append)


def _fileno(stream: Any) -> int | None:
    try:
        return stream.fileno()
    except (AttributeError, OSError, ValueError):
        return None


def _flush(stream: Any) -> None:
    try:
        stream.flush()
    except (AttributeError, OSError, ValueError):
        pass


def _write_fd(fd: int, text: str) -> None:
    data = text.encode()
    try:
        while data:
            written = os.write(fd, data)
            data = data[written:]
    except OSError:
        pass


def _write_all(fd: int, data: bytes) -> None:
    try:
        with os.fdopen(fd, "wb") as sink:
            sink.write(data)
    except OSError:
        pass


def _copy_out(fd: int, stream: IO[Any]) -> None:
    text = isinstance(stream, io.TextIOBase)
    decoder = codecs.getincrementaldecoder("utf-8")("replace")
    with os.fdopen(fd, "rb") as source:
        while chunk := source.read(_CHUNK):
            stream.write(decoder.decode(chunk) if text else chunk)
        if text:
            stream.write(decoder.decode(b"", final=True))
    _flush(stream)


class _Plumbing:
    """File descriptors shared by the stages of a pipeline, and the threads feeding them."""

    def __init__(self) -> None:
        self._owned: list[int] = []
        self._threads: list[threading.Thread] = []

    def _start(self, target: Callable[..., None], *args: Any) -> None:
        thread = threading.Thread(target=target, args=args, daemon=True)
        thread.start()
        self._threads.append(thread)

    def pipe(self) -> tuple[int, int]:
        read_end, write_end = os.pipe()
        self._owned += [read_end, write_end]
        return read_end, write_end

    def feed(self, data: bytes) -> int:
        """Return a descriptor from which ``data`` can be read."""
        read_end, write_end = os.pipe()
        self._owned.append(read_end)
        self._start(_write_all, write_end, data)
        return read_end

    def input_from(self, stream: IO[Any]) -> int:
        fd = _fileno(stream)
        if fd is not None:
            return fd
        data = stream.read()
        return self.feed(data.encode() if isinstance(data, str) else data)

    def output_to(self, stream: IO[Any]) -> int:
        fd = _fileno(stream)
        if fd is not None:
            _flush(stream)
            return fd
        read_end, write_end = os.pipe()
        self._owned.append(write_end)
        self._start(_copy_out, read_end, stream)
        return write_end

    def release(self) -> None:
        """Close the parent's copies of the descriptors."""
        owned, self._owned = self._owned, []
        for fd in owned:
            try:
                os.close(fd)
            except OSError:
                pass

    def join(self) -> None:
        for thread in self._threads:
            thread.join()


class _Stage:
    """One started stage of a pipeline."""

    def start(self) -> None:
        """Begin running; stages that run at creation do nothing here."""

    def wait(self) -> int:
        raise NotImplementedError


class _Done(_Stage):
    def __init__(self, status: int) -> None:
        self.status = status

    def wait(self) -> int:
        return self.status


class _ProcessStage(_Stage):
    def __init__(self, process: subprocess.Popen[bytes]) -> None:
        self.process = process

    def wait(self) -> int:
        code = self.process.wait()
        return 128 - code if code < 0 else code


class _BuiltinStage(_Stage):
    """A builtin running beside the pipeline's processes with a private environment."""

    def __init__(self, args: Sequence[str], env: Environment, out_fd: int, err_fd: int) -> None:
        self.args = list(args)
        self.env = Environment(dict(env.items()))
        self.status = 1
        self._out = os.fdopen(os.dup(out_fd), "w", encoding="utf-8")
        self._err = os.fdopen(os.dup(err_fd), "w", encoding="utf-8")
        self._thread = threading.Thread(target=self._run, daemon=True)

    def _run(self) -> None:
        try:
            self.status = run_builtin(self.args, self.env, self._out, self._err)
        except ShellExit as exc:
            self.status = exc.code
        except BrokenPipeError:
            self.status = 1
        finally:
            for stream in (self._out, self._err):
                try:
                    stream.close()
                except OSError:
                    pass

    def start(self) -> None:
        self._thread.start()

    def wait(self) -> int:
        self._thread.join()
        return self.status


@contextmanager
def _ignoring_interrupts() -> Iterator[None]:
    """Ignore SIGINT and SIGQUIT in the shell while children run."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return
    saved = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGQUIT)}
    for sig in saved:
        signal.signal(sig, signal.SIG_IGN)
    try:
        yield
    finally:
        for sig, handler in saved.items():
            signal.signal(sig, handler if handler is not None else signal.SIG_DFL)


def _not_found(name: str, err_fd: int) -> _Stage:
    _write_fd(err_fd, f"pipex: command not found: {name}\n\n")
    return _Done(NOT_FOUND_STATUS)


def _launch(
    command: Command, env: Environment, in_fd: int, out_fd: int, err_fd: int, in_pipeline: bool
) -> _Stage:
    args = command.args
    if not args:
        _write_fd(err_fd, "pipex: command not found:\n")
        return _Done(NOT_FOUND_STATUS)
    if in_pipeline and is_builtin(args[0]):
        return _BuiltinStage(args, env, out_fd, err_fd)
    path = find_executable(args[0], env)
    if path is None:
        return _not_found(args[0], err_fd)
    try:
        process = subprocess.Popen(
            args,
            executable=path,
            stdin=in_fd,
            stdout=out_fd,
            stderr=err_fd,
            env=dict(env.items()),
        )
    except OSError:
        return _not_found(args[0], err_fd)
    return _ProcessStage(process)


def _start_stage(
    command: Command,
    body: str | None,
    env: Environment,
    plumbing: _Plumbing,
    fds: tuple[int, int, int],
    infile_first: bool,
    in_pipeline: bool,
) -> _Stage:
    in_fd, out_fd, err_fd = fds
    with ExitStack() as files:
        try:
            infile = open_input(command) if infile_first or not command.is_heredoc else None
            if infile is not None:
                in_fd = files.enter_context(infile).fileno()
            elif command.is_heredoc:
                in_fd = plumbing.feed((body or "").encode())
            target = open_outputs(command)
            if target is not None:
                out_fd = files.enter_context(target).fileno()
        except OSError as exc:
            _write_fd(err_fd, f"open: {exc.strerror or exc}\n")
            return _Done(REDIRECTION_FAILED_STATUS)
        return _launch(command, env, in_fd, out_fd, err_fd, in_pipeline)


def _current_dir() -> str | None:
    try:
        return os.getcwd()
    except OSError:
        return None


def _run_stages(
    commands: Sequence[Command],
    bodies: Sequence[str | None],
    env: Environment,
    stdin: IO[Any],
    stdout: IO[Any],
    stderr: IO[Any],
) -> int:
    plumbing = _Plumbing()
    in_pipeline = len(commands) > 1
    try:
        shell_in = plumbing.input_from(stdin)
        shell_out = plumbing.output_to(stdout)
        shell_err = plumbing.output_to(stderr)
        links = [plumbing.pipe() for _ in commands[1:]]
        last = len(commands) - 1
        stages: list[_Stage] = []
        for i, (command, body) in enumerate(zip(commands, bodies)):
            in_fd = links[i - 1][0] if i else shell_in
            out_fd = links[i][1] if i < last else shell_out
            stages.append(
                _start_stage(
                    command,
                    body,
                    env,
                    plumbing,
                    (in_fd, out_fd, shell_err),
                    infile_first=in_pipeline and i == 0,
                    in_pipeline=in_pipeline,
                )
            )
        plumbing.release()
        saved_dir = _current_dir()
        try:
            with _ignoring_interrupts():
                for stage in stages:
                    stage.start()
                statuses = [stage.wait() for stage in stages]
        finally:
            if saved_dir is not None and _current_dir() != saved_dir:
                os.chdir(saved_dir)
    finally:
        plumbing.release()
        plumbing.join()
    return statuses[-1]


def _run_builtin_here(
    command: Command, env: Environment, stdout: IO[Any], stderr: IO[Any]
) -> int:
    with ExitStack() as files:
        out: IO[Any] = stdout
        try:
            if not command.is_heredoc:
                infile = open_input(command)
                if infile is not None:
                    infile.close()
            target = open_outputs(command)
            if target is not None:
                out = files.enter_context(io.TextIOWrapper(target, encoding="utf-8"))
        except OSError as exc:
            stderr.write(f"open: {exc.strerror or exc}\n")
            return REDIRECTION_FAILED_STATUS
        try:
            return run_builtin(command.args, env, out, stderr)
        finally:
            _flush(out)


def _finish(env: Environment, status: int) -> int:
    env.set("?", str(status))
    return status


def run_commands(
    commands: Sequence[Command],
    env: Environment,
    stdin: IO[Any] | None = None,
    stdout: IO[Any] | None = None,
    stderr: IO[Any] | None = None,
    read_line: ReadLine | None = None,
) -> int:
    """Run a pipeline of commands and return the status of the last one.

    The status is also stored in the ``?`` variable. A lone builtin runs in
    the shell itself and may raise ShellExit; in a pipeline every stage is
    isolated and builtins cannot change the shell's variables or directory.
    """
    stdin = sys.stdin if stdin is None else stdin
    stdout = sys.stdout if stdout is None else stdout
    stderr = sys.stderr if stderr is None else stderr
    if not commands:
        return 0
    try:
        bodies = [
            collect_heredocs(c.heredoc_delimiters, read_line) if c.is_heredoc else None
            for c in commands
        ]
    except HeredocInterrupted as exc:
        stdout.write("\n")
        return _finish(env, exc.status)
    if len(commands) == 1 and is_builtin(commands[0].name):
        return _finish(env, _run_builtin_here(commands[0], env, stdout, stderr))
    return _finish(env, _run_stages(commands, bodies, env, stdin, stdout, stderr))


def run_line(
    line: str,
    env: Environment,
    stdin: IO[Any] | None = None,
    stdout: IO[Any] | None = None,
    stderr: IO[Any] | None = None,
    read_line: ReadLine | None = None,
) -> int:
    """Parse ``line`` and run it; a syntax error is reported with status 2."""
    stderr = sys.stderr if stderr is None else stderr
    try:
        commands = parse_line(line)
    except ParseError as exc:
        stderr.write(f"minishell: {exc}\n")
        return _finish(env, SYNTAX_ERROR_STATUS)
    return run_commands(commands, env, stdin, stdout, stderr, read_line)