"""Reading here-document bodies from the user."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator

HEREDOC_PROMPT = "> "
INTERRUPT_STATUS = 130

ReadLine = Callable[[str], "str | None"]


class HeredocInterrupted(Exception):
    """Raised when reading a here-document is interrupted by the user."""

    def __init__(self, delimiter: str) -> None:
        super().__init__(f"here-document for {delimiter!r} interrupted")
        self.delimiter = delimiter
        self.status = INTERRUPT_STATUS


def _default_read_line(prompt: str) -> str | None:
    """Read a line from the terminal, returning None at end of input."""
    try:
        return input(prompt)
    except EOFError:
        return None


def _lines_until(delimiter: str, read_line: ReadLine) -> Iterator[str]:
    while True:
        try:
            line = read_line(HEREDOC_PROMPT)
        except KeyboardInterrupt:
            raise HeredocInterrupted(delimiter) from None
        if line is None or line == delimiter:
            return
        yield line


def read_heredoc(delimiter: str, read_line: ReadLine | None = None) -> str:
    """Read lines until ``delimiter`` or end of input and return the body.

    Every line read is terminated by a newline in the result; the delimiter
    line itself is not included. ``read_line`` is called with the prompt and
    returns a line without its newline, or None at end of input. A
    KeyboardInterrupt raised by it becomes HeredocInterrupted.
    """
    reader = read_line if read_line is not None else _default_read_line
    return "".join(f"{line}\n" for line in _lines_until(delimiter, reader))


def collect_heredocs(
    delimiters: Iterable[str], read_line: ReadLine | None = None
) -> str:
    """Read one here-document per delimiter and return the body of the last.

    Every here-document is read from the user in order, but only the last
    one supplies the command's input. With no delimiters the result is empty.
    """
    body = ""
    for delimiter in delimiters:
        body = read_heredoc(delimiter, read_line)
    return body