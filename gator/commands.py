"""Command dispatch and the state shared by command handlers."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field
from functools import wraps

from .config import Config
from .database import Queries
from .models import User


class CommandError(Exception):
    """A command was used wrongly or could not complete."""


class CommandNotFoundError(LookupError):
    """No handler is registered under the requested name."""


@dataclass(frozen=True)
class Command:
    """A command name with its positional arguments."""

    name: str
    args: Sequence[str] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))


@dataclass
class State:
    """What every handler works with: the configuration and the database."""

    config: Config
    db: Queries


Handler = Callable[[State, Command], None]
UserHandler = Callable[[State, Command, User], None]


@dataclass
class Commands:
    """A registry of handlers keyed by command name."""

    handlers: dict[str, Handler] = field(default_factory=dict)

    def register(self, name: str, handler: Handler) -> None:
        """Register ``handler`` under ``name``, replacing any earlier one."""
        self.handlers[name] = handler

    def run(self, state: State, command: Command) -> None:
        """Run the handler registered for ``command.name``."""
        try:
            handler = self.handlers[command.name]
        except KeyError:
            raise CommandNotFoundError("command not found") from None
        handler(state, command)

    def __contains__(self, name: object) -> bool:
        return name in self.handlers

    def __iter__(self) -> Iterator[str]:
        return iter(self.handlers)


def logged_in(handler: UserHandler) -> Handler:
    """Wrap a handler so that it receives the current user from the database."""

    @wraps(handler)
    def wrapper(state: State, command: Command) -> None:
        user = state.db.get_user(state.config.username)
        handler(state, command, user)

    return wrapper