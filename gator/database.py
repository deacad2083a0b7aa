"""SQLite storage for users, feeds, follows and posts."""

from __future__ import annotations

import sqlite3
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, TypeVar
from uuid import UUID

from .models import Feed, FeedFollowDetail, Post, User, UserFollow

T = TypeVar("T")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    name TEXT NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS feeds (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    name TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    last_fetched_at TEXT
);
CREATE TABLE IF NOT EXISTS feed_follows (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    feed_id TEXT NOT NULL REFERENCES feeds(id) ON DELETE CASCADE,
    UNIQUE (user_id, feed_id)
);
CREATE TABLE IF NOT EXISTS posts (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    title TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    description TEXT,
    published_at TEXT,
    feed_id TEXT NOT NULL REFERENCES feeds(id) ON DELETE CASCADE
);
"""

_FEED_COLUMNS = "id, created_at, updated_at, name, url, user_id, last_fetched_at"
_USER_COLUMNS = "id, created_at, updated_at, name"
_POST_COLUMNS = "id, created_at, updated_at, title, url, description, published_at, feed_id"


class NotFoundError(LookupError):
    """A query that must return a row found none."""


class DuplicateError(ValueError):
    """A row would break a uniqueness constraint."""


def _to_db(moment: datetime | None) -> str | None:
    if moment is None:
        return None
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment.isoformat(sep=" ", timespec="microseconds")


def _from_db(text: str | None) -> datetime | None:
    if text is None:
        return None
    return datetime.fromisoformat(text).replace(tzinfo=timezone.utc)


def _user(row: sqlite3.Row) -> User:
    return User(
        id=UUID(row["id"]),
        created_at=_from_db(row["created_at"]),
        updated_at=_from_db(row["updated_at"]),
        name=row["name"],
    )


def _feed(row: sqlite3.Row) -> Feed:
    return Feed(
        id=UUID(row["id"]),
        created_at=_from_db(row["created_at"]),
        updated_at=_from_db(row["updated_at"]),
        name=row["name"],
        url=row["url"],
        user_id=UUID(row["user_id"]),
        last_fetched_at=_from_db(row["last_fetched_at"]),
    )


def _post(row: sqlite3.Row) -> Post:
    return Post(
        id=UUID(row["id"]),
        created_at=_from_db(row["created_at"]),
        updated_at=_from_db(row["updated_at"]),
        title=row["title"],
        url=row["url"],
        description=row["description"],
        published_at=_from_db(row["published_at"]),
        feed_id=UUID(row["feed_id"]),
    )


class Queries:
    """The queries gator runs against its database connection.

    The connection is switched to autocommit mode; use :meth:`transaction`
    to group statements.
    """

    def __init__(self, connection: sqlite3.Connection) -> None:
        connection.isolation_level = None
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        self._conn = connection

    def __enter__(self) -> Queries:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def create_schema(self) -> None:
        """Create the tables if they do not exist yet."""
        self._conn.executescript(_SCHEMA)

    @contextmanager
    def transaction(self) -> Iterator[Queries]:
        """Run the enclosed statements atomically, rolling back on error."""
        if self._conn.in_transaction:
            yield self
            return
        self._conn.execute("BEGIN")
        try:
            yield self
        except BaseException:
            self._conn.rollback()
            raise
        else:
            self._conn.commit()

    def close(self) -> None:
        """Close the underlying connection."""
        self._conn.close()

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, params)
        except sqlite3.IntegrityError as exc:
            if "UNIQUE constraint failed" in str(exc):
                raise DuplicateError(
                    f"duplicate key value violates unique constraint: {exc}"
                ) from exc
            raise

    def _one(
        self, sql: str, params: tuple, convert: Callable[[sqlite3.Row], T], what: str
    ) -> T:
        row = self._execute(sql, params).fetchone()
        if row is None:
            raise NotFoundError(f"no {what} found")
        return convert(row)

    def _many(
        self, sql: str, params: tuple, convert: Callable[[sqlite3.Row], T]
    ) -> list[T]:
        return [convert(row) for row in self._execute(sql, params)]

    # users

    def create_user(
        self, id: UUID, created_at: datetime, updated_at: datetime, name: str
    ) -> User:
        """Insert a user and return it."""
        return self._one(
            f"INSERT INTO users ({_USER_COLUMNS}) VALUES (?, ?, ?, ?) "
            f"RETURNING {_USER_COLUMNS}",
            (str(id), _to_db(created_at), _to_db(updated_at), name),
            _user,
            "user",
        )

    def get_user(self, name: str) -> User:
        """Return the user called ``name``."""
        return self._one(
            f"SELECT {_USER_COLUMNS} FROM users WHERE name = ?",
            (name,),
            _user,
            f"user named {name!r}",
        )

    def get_user_by_id(self, user_id: UUID) -> User:
        """Return the user with the given id."""
        return self._one(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?",
            (str(user_id),),
            _user,
            f"user with id {user_id}",
        )

    def get_users(self) -> list[User]:
        """Return every user."""
        return self._many(f"SELECT {_USER_COLUMNS} FROM users", (), _user)

    # feeds

    def create_feed(
        self,
        id: UUID,
        created_at: datetime,
        updated_at: datetime,
        name: str,
        url: str,
        user_id: UUID,
    ) -> Feed:
        """Insert a feed and return it."""
        return self._one(
            "INSERT INTO feeds (id, created_at, updated_at, name, url, user_id) "
            f"VALUES (?, ?, ?, ?, ?, ?) RETURNING {_FEED_COLUMNS}",
            (str(id), _to_db(created_at), _to_db(updated_at), name, url, str(user_id)),
            _feed,
            "feed",
        )

    def get_feed_by_url(self, url: str) -> Feed:
        """Return the feed at ``url``."""
        return self._one(
            f"SELECT {_FEED_COLUMNS} FROM feeds WHERE url = ?",
            (url,),
            _feed,
            f"feed with url {url!r}",
        )

    def get_feeds(self) -> list[Feed]:
        """Return every feed."""
        return self._many(f"SELECT {_FEED_COLUMNS} FROM feeds", (), _feed)

    def get_next_feed_to_fetch(self) -> Feed:
        """Return the feed fetched longest ago, never-fetched feeds first."""
        return self._one(
            f"SELECT {_FEED_COLUMNS} FROM feeds "
            "ORDER BY last_fetched_at IS NOT NULL, last_fetched_at ASC LIMIT 1",
            (),
            _feed,
            "feed to fetch",
        )

    def mark_feed_fetched(self, feed_id: UUID, fetched_at: datetime) -> None:
        """Record that the feed was fetched at ``fetched_at``."""
        stamp = _to_db(fetched_at)
        self._execute(
            "UPDATE feeds SET updated_at = ?, last_fetched_at = ? WHERE id = ?",
            (stamp, stamp, str(feed_id)),
        )

    # follows

    def create_feed_follow(
        self,
        id: UUID,
        created_at: datetime,
        updated_at: datetime,
        user_id: UUID,
        feed_id: UUID,
    ) -> FeedFollowDetail:
        """Make the user follow the feed and return the follow with both names."""
        with self.transaction():
            self._execute(
                "INSERT INTO feed_follows (id, created_at, updated_at, user_id, feed_id) "
                "VALUES (?, ?, ?, ?, ?)",
                (str(id), _to_db(created_at), _to_db(updated_at), str(user_id), str(feed_id)),
            )
            return self._one(
                "SELECT ff.id, ff.created_at, ff.updated_at, ff.user_id, ff.feed_id, "
                "f.name AS feed_name, u.name AS user_name "
                "FROM feed_follows ff "
                "JOIN feeds f ON ff.feed_id = f.id "
                "JOIN users u ON ff.user_id = u.id "
                "WHERE ff.id = ?",
                (str(id),),
                lambda row: FeedFollowDetail(
                    id=UUID(row["id"]),
                    created_at=_from_db(row["created_at"]),
                    updated_at=_from_db(row["updated_at"]),
                    user_id=UUID(row["user_id"]),
                    feed_id=UUID(row["feed_id"]),
                    feed_name=row["feed_name"],
                    user_name=row["user_name"],
                ),
                "feed follow",
            )

    def get_feed_follows_for_user(self, name: str) -> list[UserFollow]:
        """Return the feeds followed by the user called ``name``."""
        return self._many(
            "SELECT u.name AS user_name, f.name AS feed_name, "
            "ff.id AS follow_id, ff.created_at AS follow_created_at "
            "FROM feed_follows ff "
            "JOIN users u ON ff.user_id = u.id "
            "JOIN feeds f ON ff.feed_id = f.id "
            "WHERE u.name = ?",
            (name,),
            lambda row: UserFollow(
                user_name=row["user_name"],
                feed_name=row["feed_name"],
                follow_id=UUID(row["follow_id"]),
                follow_created_at=_from_db(row["follow_created_at"]),
            ),
        )

    def unfollow(self, user_id: UUID, feed_id: UUID) -> None:
        """Remove the user's follow of the feed, if any."""
        self._execute(
            "DELETE FROM feed_follows WHERE user_id = ? AND feed_id = ?",
            (str(user_id), str(feed_id)),
        )

    # posts

    def create_post(
        self,
        id: UUID,
        created_at: datetime,
        updated_at: datetime,
        title: str,
        url: str,
        description: str | None,
        published_at: datetime | None,
        feed_id: UUID,
    ) -> None:
        """Insert a post; raises DuplicateError if its url is already stored."""
        self._execute(
            f"INSERT INTO posts ({_POST_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                str(id),
                _to_db(created_at),
                _to_db(updated_at),
                title,
                url,
                description,
                _to_db(published_at),
                str(feed_id),
            ),
        )

    def get_posts_for_user(self, user_id: UUID, limit: int) -> list[Post]:
        """Return up to ``limit`` posts from the user's feeds, newest first."""
        if limit < 0:
            raise ValueError("LIMIT must not be negative")
        return self._many(
            f"SELECT {_POST_COLUMNS} FROM posts p "
            "WHERE p.feed_id IN (SELECT f.feed_id FROM feed_follows f WHERE f.user_id = ?) "
            "ORDER BY published_at IS NULL DESC, published_at DESC LIMIT ?",
            (str(user_id), limit),
            _post,
        )

    def reset(self) -> None:
        """Delete every user, and with them every feed, follow and post."""
        self._execute("DELETE FROM users")


def connect(url: str) -> Queries:
    """Open the database at ``url`` and make sure its tables exist.

    ``url`` is a file path, ``:memory:``, or a ``sqlite://`` URL
    (``sqlite:///relative.db``, ``sqlite:////absolute.db``, ``sqlite://`` for memory).
    """
    target = url
    if url.startswith("sqlite://"):
        target = url[len("sqlite://"):]
        if target.startswith("/"):
            target = target[1:]
        target = target or ":memory:"
    queries = Queries(sqlite3.connect(target))
    queries.create_schema()
    return queries