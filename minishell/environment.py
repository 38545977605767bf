"""Ordered store of shell variables."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping


class Environment:
    """Shell variables in insertion order, convertible to ``NAME=value`` strings."""

    def __init__(self, initial: Mapping[str, str] | Iterable[str] | None = None) -> None:
        self._vars: dict[str, str] = {}
        if initial is None:
            return
        if isinstance(initial, Mapping):
            for name, value in initial.items():
                self.set(name, value)
            return
        for entry in initial:
            name, sep, value = entry.partition("=")
            if not sep:
                raise ValueError(f"environment entry without '=': {entry!r}")
            self.set(name, value)

    def get(self, name: str) -> str | None:
        """Return the value of ``name``, or None if it is not set."""
        return self._vars.get(name)

    def set(self, name: str, value: str) -> None:
        """Set ``name`` to ``value``; an existing variable keeps its position."""
        self._vars[name] = value

    def unset(self, name: str) -> None:
        """Remove ``name`` if present."""
        self._vars.pop(name, None)

    def items(self) -> list[tuple[str, str]]:
        """Return the variables as ``(name, value)`` pairs in order."""
        return list(self._vars.items())

    def to_envp(self) -> list[str]:
        """Return the variables as ``NAME=value`` strings for a child process."""
        return [f"{name}={value}" for name, value in self._vars.items()]

    def __contains__(self, name: object) -> bool:
        return name in self._vars

    def __iter__(self) -> Iterator[str]:
        return iter(self._vars)

    def __len__(self) -> int:
        return len(self._vars)