"""Registry of named commands and the dispatch between them."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any


class CommandError(Exception):
    """A command was unknown, misused or failed."""


@dataclass(frozen=True)
class Command:
    """A command name with the arguments it was given."""

    name: str
    args: Sequence[str] = ()


Handler = Callable[[Any, Command], None]


class Commands:
    """Maps command names to the handlers that carry them out."""

    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def register(self, name: str, handler: Handler) -> None:
        """Register ``handler`` under ``name``, replacing any earlier one."""
        self._handlers[name] = handler

    def run(self, state: Any, cmd: Command) -> None:
        """Run the handler registered for ``cmd.name``."""
        try:
            handler = self._handlers[cmd.name]
        except KeyError:
            raise CommandError("command not found") from None
        handler(state, cmd)