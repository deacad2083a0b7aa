"""Command-line entry point for gator."""

from __future__ import annotations

import sys
from collections.abc import Sequence

from . import config as config_module
from .commands import Command, CommandError, CommandNotFoundError, Commands, State, logged_in
from .database import DuplicateError, NotFoundError, connect
from .handlers import (
    handler_add_feed,
    handler_agg,
    handler_browse,
    handler_feeds,
    handler_follow,
    handler_following,
    handler_help,
    handler_login,
    handler_register,
    handler_reset,
    handler_unfollow,
    handler_users,
)
from .rss import FeedFetchError

USAGE = "Usage: gator <command> [args...]"

_COMMAND_ERRORS = (
    CommandError,
    CommandNotFoundError,
    NotFoundError,
    DuplicateError,
    FeedFetchError,
    OSError,
    ValueError,
)


def build_commands() -> Commands:
    """Return the registry holding every gator command."""
    commands = Commands()
    commands.register("login", handler_login)
    commands.register("register", handler_register)
    commands.register("reset", handler_reset)
    commands.register("users", handler_users)
    commands.register("agg", handler_agg)
    commands.register("addfeed", logged_in(handler_add_feed))
    commands.register("feeds", handler_feeds)
    commands.register("follow", logged_in(handler_follow))
    commands.register("following", logged_in(handler_following))
    commands.register("unfollow", logged_in(handler_unfollow))
    commands.register("browse", logged_in(handler_browse))
    commands.register("help", handler_help)
    return commands


def main(argv: Sequence[str] | None = None) -> int:
    """Run one gator command and return the process exit status."""
    args = list(sys.argv[1:] if argv is None else argv)

    try:
        cfg = config_module.read()
    except (OSError, ValueError) as exc:
        print(f"error reading config: {exc}", file=sys.stderr)
        return 1

    try:
        queries = connect(cfg.db_url)
    except Exception as exc:  # sqlite3 raises several unrelated types here
        print(f"error connecting to the database: {exc}", file=sys.stderr)
        return 1

    with queries:
        state = State(config=cfg, db=queries)
        commands = build_commands()

        if not args:
            print(USAGE, file=sys.stderr)
            return 1

        try:
            commands.run(state, Command(args[0], args[1:]))
        except KeyboardInterrupt:
            return 130
        except _COMMAND_ERRORS as exc:
            print(exc, file=sys.stderr)
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())