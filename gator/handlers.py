"""Handlers for each gator command."""

from __future__ import annotations

import re
import time
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from .commands import Command, CommandError, State
from .database import DuplicateError, NotFoundError
from .models import Feed, User
from .rss import RSSFeed, fetch_feed

DEFAULT_BROWSE_LIMIT = 2
PUB_DATE_FORMAT = "%a, %d %b %Y %H:%M:%S %z"

_UNIT_NANOSECONDS = {
    "ns": 1,
    "us": 10**3,
    "\u00b5s": 10**3,
    "\u03bcs": 10**3,
    "ms": 10**6,
    "s": 10**9,
    "m": 60 * 10**9,
    "h": 3600 * 10**9,
}
_DURATION_PART = re.compile(r"(?P<whole>[0-9]*)(?:\.(?P<frac>[0-9]*))?(?P<unit>[^0-9.]*)")
_LIMIT = re.compile(r"[+-]?[0-9]+")

_HELP = """\
Welcome to gator! Here are the available commands:
----------------------------------------------------
  login <username>    - Log in as an existing user.
  register <username> - Register a new user.
  reset               - Resets the database (use with caution!).
  users               - List all registered users.
  agg <time>          - Start aggregation of feeds (e.g., 'agg 1m', 'agg 5s').
  addfeed <name> <url>- Add a new RSS feed and automatically follow it.
  feeds               - List all available RSS feeds.
  follow <url>        - Follow an existing RSS feed by its URL.
  following           - List all feeds currently followed by the logged-in user.
  unfollow <url>      - Unfollow a previously followed RSS feed.
  browse [limit]      - Browse posts from your followed feeds (optional limit, default 2).
  help                - Display this help message.
----------------------------------------------------
To run a command: gator <command_name> [arguments]
Example: gator register myuser"""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _format_time(moment: datetime | None) -> str:
    if moment is None:
        return "0001-01-01 00:00:00 +0000 UTC"
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    text = (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d} "
        f"{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
    )
    if moment.microsecond:
        text += f".{moment.microsecond:06d}".rstrip("0")
    offset = moment.strftime("%z")
    zone = "UTC" if moment.utcoffset() == timedelta(0) else offset
    return f"{text} {offset} {zone}"


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``1h30m``, ``1.5s`` or ``250ms``."""
    invalid = ValueError(f'time: invalid duration "{text}"')
    rest = text
    sign = 1
    if rest[:1] in ("-", "+"):
        sign = -1 if rest[0] == "-" else 1
        rest = rest[1:]
    if rest == "0":
        return timedelta(0)
    if not rest:
        raise invalid

    nanoseconds = Decimal(0)
    while rest:
        match = _DURATION_PART.match(rest)
        whole, frac, unit = match["whole"], match["frac"], match["unit"]
        if not whole and not frac:
            raise invalid
        if not unit:
            raise ValueError(f'time: missing unit in duration "{text}"')
        if unit not in _UNIT_NANOSECONDS:
            raise ValueError(f'time: unknown unit "{unit}" in duration "{text}"')
        value = Decimal(f"{whole or '0'}.{frac or '0'}")
        nanoseconds += value * _UNIT_NANOSECONDS[unit]
        rest = rest[match.end():]

    return sign * timedelta(microseconds=float(nanoseconds / 1000))


def parse_pub_date(text: str) -> datetime:
    """Parse an RSS publication date such as ``Mon, 02 Jan 2006 15:04:05 -0700``."""
    return datetime.strptime(text, PUB_DATE_FORMAT)


def scrape_feeds(state: State, fetch: Callable[[str], RSSFeed] | None = None) -> int:
    """Fetch the feed due next, store its new posts and return how many were stored."""
    fetch = fetch or fetch_feed
    try:
        feed = state.db.get_next_feed_to_fetch()
    except NotFoundError as exc:
        raise CommandError(f"failed to get next feed to fetch: {exc}") from exc

    state.db.mark_feed_fetched(feed.id, _now())
    rss = fetch(feed.url)

    created = 0
    for item in rss.items:
        try:
            published = parse_pub_date(item.pub_date)
        except ValueError:
            published = _now()
        now = _now()
        try:
            state.db.create_post(
                uuid.uuid4(),
                now,
                now,
                item.title,
                item.link,
                item.description,
                published,
                feed.id,
            )
        except DuplicateError:
            continue
        created += 1
    return created


def handler_login(state: State, command: Command) -> None:
    """Switch the current user to an existing one."""
    if len(command.args) != 1:
        raise CommandError(f"usage: {command.name} <name>")
    try:
        user = state.db.get_user(command.args[0])
    except NotFoundError as exc:
        raise CommandError(f"could not get user from database: {exc}") from exc
    try:
        state.config.set_user(user.name)
    except OSError as exc:
        raise CommandError(f"could not set the current user: {exc}") from exc
    print("User switched successfully")


def handler_register(state: State, command: Command) -> None:
    """Create a user and make it the current one."""
    if len(command.args) != 1:
        raise CommandError(f"usage: {command.name} <name>")
    now = _now()
    try:
        user = state.db.create_user(uuid.uuid4(), now, now, command.args[0])
    except DuplicateError as exc:
        raise CommandError(f"could not create user: {exc}") from exc
    try:
        state.config.set_user(user.name)
    except OSError as exc:
        raise CommandError(f"could not set user: {exc}") from exc
    print("User switched successfully")


def handler_reset(state: State, command: Command) -> None:
    """Delete every user together with their feeds, follows and posts."""
    state.db.reset()
    print("Database was reset successfully")


def handler_users(state: State, command: Command) -> None:
    """List all users, marking the current one."""
    for user in state.db.get_users():
        if user.name == state.config.username:
            print(f"  * {user.name} (current)")
        else:
            print(f"  * {user.name}")


def handler_agg(state: State, command: Command) -> None:
    """Scrape feeds forever, one feed per interval."""
    if len(command.args) != 1:
        raise CommandError(f"usage: {command.name} <time_between_reqs(1s, 1m, 1h)>")
    try:
        interval = parse_duration(command.args[0])
    except ValueError as exc:
        raise CommandError(f"failed to parse duration: {exc}") from exc
    if interval <= timedelta(0):
        raise CommandError("non-positive interval for agg")

    print(f"Collecting feeds every {command.args[0]}")
    seconds = interval.total_seconds()
    next_tick = time.monotonic()
    while True:
        scrape_feeds(state)
        next_tick += seconds
        delay = next_tick - time.monotonic()
        if delay > 0:
            time.sleep(delay)
        else:
            next_tick = time.monotonic()


def handler_browse(state: State, command: Command, user: User) -> None:
    """Print the newest posts from the feeds the user follows."""
    limit = DEFAULT_BROWSE_LIMIT
    if len(command.args) == 1:
        text = command.args[0]
        if not _LIMIT.fullmatch(text):
            raise CommandError(f'invalid limit: parsing "{text}": invalid syntax')
        limit = int(text)

    for post in state.db.get_posts_for_user(user.id, limit):
        print("=" * 60)
        print(f"{post.title} - {_format_time(post.published_at)}", end="")
        print("-" * 80)
        print(post.url)
        print(post.description or "")
        print()


def _print_feed(state: State, feed: Feed) -> None:
    user = state.db.get_user_by_id(feed.user_id)
    print("=" * 51)
    print(f"  Name:            {feed.name}")
    print("-" * 51)
    print(f"  * ID:            {feed.id}")
    print(f"  * Created:       {_format_time(feed.created_at)}")
    print(f"  * Updated:       {_format_time(feed.updated_at)}")
    print(f"  * URL:           {feed.url}")
    print(f"  * User:          {user.name}")
    print()


def handler_add_feed(state: State, command: Command, user: User) -> None:
    """Add a feed for the user and follow it."""
    if len(command.args) != 2:
        raise CommandError(f"usage: {command.name} <feed_name> <url>")
    name, url = command.args
    now = _now()
    try:
        feed = state.db.create_feed(uuid.uuid4(), now, now, name, url, user.id)
    except DuplicateError as exc:
        raise CommandError(f"failed to create feed: {exc}") from exc

    print("Feed created successfully:")
    _print_feed(state, feed)
    print("=" * 37)
    print()

    now = _now()
    state.db.create_feed_follow(uuid.uuid4(), now, now, user.id, feed.id)


def handler_feeds(state: State, command: Command) -> None:
    """Print every feed."""
    if command.args:
        raise CommandError(f"no positional arguments expected, got ({len(command.args)})")
    for feed in state.db.get_feeds():
        _print_feed(state, feed)


def handler_follow(state: State, command: Command, user: User) -> None:
    """Follow an existing feed by its URL."""
    if len(command.args) != 1:
        raise CommandError(f"usage: {command.name} <url>")
    url = command.args[0]
    feed = next((f for f in state.db.get_feeds() if f.url == url), None)
    if feed is None:
        raise CommandError("feed does not exist")
    now = _now()
    follow = state.db.create_feed_follow(uuid.uuid4(), now, now, user.id, feed.id)
    print(f"{follow.user_name} now follows {follow.feed_name}!")


def handler_following(state: State, command: Command, user: User) -> None:
    """List the feeds the user follows."""
    if command.args:
        raise CommandError(f"no arguments expected: <{len(command.args)}> given")
    follows = state.db.get_feed_follows_for_user(user.name)
    if not follows:
        print(f"{state.config.username} doesn't follow any feeds yet...")
        return
    print(f"\n{follows[0].user_name} follows {len(follows)} feed(s):")
    for number, follow in enumerate(follows, start=1):
        print(f"  {number}. {follow.feed_name}")


def handler_unfollow(state: State, command: Command, user: User) -> None:
    """Stop following the feed at the given URL."""
    if len(command.args) != 1:
        raise CommandError(f"usage: {command.name} <url>")
    try:
        feed = state.db.get_feed_by_url(command.args[0])
    except NotFoundError as exc:
        raise CommandError(f"feed does not exist: {exc}") from exc
    state.db.unfollow(user.id, feed.id)
    print(f"{user.name} no longer follows {feed.name}")


def handler_help(state: State, command: Command) -> None:
    """Print the list of commands."""
    print(_HELP)