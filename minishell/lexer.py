"""Splitting of command lines into words, redirection tokens and pipeline parts."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

BLANKS = " \t\n"
REDIRECTION_CHARS = "<>"
PIPE = "|"
INVALID_CHARACTERS = "!@#$%^&*()-+=[]{}\\|;:'\"<>/?`~ "


@dataclass
class _QuoteState:
    """Tracks whether the scanner is inside single or double quotes."""

    single: bool = False
    double: bool = False

    def feed(self, ch: str) -> bool:
        """Update the state for ``ch``; return True if it opened or closed a quote."""
        if ch == "'" and not self.double:
            self.single = not self.single
            return True
        if ch == '"' and not self.single:
            self.double = not self.double
            return True
        return False

    @property
    def quoted(self) -> bool:
        return self.single or self.double


def split_words(command: str) -> list[str]:
    """Split ``command`` on unquoted blanks, keeping quote characters in the words.

    An unclosed quote extends the last word to the end of the input.
    """
    words: list[str] = []
    current: list[str] = []
    state = _QuoteState()
    for ch in command:
        if ch in BLANKS and not state.quoted:
            if current:
                words.append("".join(current))
                current = []
            continue
        state.feed(ch)
        current.append(ch)
    if current:
        words.append("".join(current))
    return words


def split_redirections(words: Iterable[str]) -> list[str]:
    """Break unquoted ``<``, ``>``, ``<<`` and ``>>`` out of each word as separate tokens."""
    tokens: list[str] = []
    state = _QuoteState()
    for word in words:
        start = 0
        j = 0
        while j < len(word):
            ch = word[j]
            state.feed(ch)
            if ch in REDIRECTION_CHARS and not state.quoted:
                if j > start:
                    tokens.append(word[start:j])
                width = 2 if word[j + 1 : j + 2] == ch else 1
                tokens.append(word[j : j + width])
                j += width
                start = j
            else:
                j += 1
        if len(word) > start:
            tokens.append(word[start:])
    return tokens


def tokenize(command: str) -> list[str]:
    """Split ``command`` into words and then into redirection tokens."""
    return split_redirections(split_words(command))


def split_pipeline(line: str) -> list[str]:
    """Split ``line`` at unquoted pipes.

    The result alternates command text and ``"|"``; a trailing empty
    command after the last pipe is left out.
    """
    parts: list[str] = []
    state = _QuoteState()
    start = 0
    for i, ch in enumerate(line):
        state.feed(ch)
        if ch == PIPE and not state.quoted:
            parts.append(line[start:i])
            parts.append(PIPE)
            start = i + 1
    if start < len(line):
        parts.append(line[start:])
    return parts


def check_name_arg(name: str) -> bool:
    """Return False if ``name`` holds an unquoted character that is not allowed."""
    state = _QuoteState()
    for ch in name:
        if state.feed(ch):
            continue
        if not state.quoted and ch in INVALID_CHARACTERS:
            return False
    return True


def unquote(token: str) -> str:
    """Remove the quote characters that open and close quoted sections of ``token``."""
    state = _QuoteState()
    return "".join(ch for ch in token if not state.feed(ch))