"""SQLite storage for users, feeds, feed follows and posts."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from uuid import UUID

from gator.models import Feed, FeedFollowRow, FeedRow, PostRow, User

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
    user_id TEXT NOT NULL REFERENCES users (id) ON DELETE CASCADE,
    last_fetched_at TEXT
);
CREATE TABLE IF NOT EXISTS feed_follows (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    user_id TEXT NOT NULL REFERENCES users (id) ON DELETE CASCADE,
    feed_id TEXT NOT NULL REFERENCES feeds (id) ON DELETE CASCADE,
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
    feed_id TEXT NOT NULL REFERENCES feeds (id) ON DELETE CASCADE
);
"""

_FEED_COLUMNS = "id, created_at, updated_at, name, url, user_id, last_fetched_at"


class DatabaseError(Exception):
    """A query could not be carried out."""


class NotFoundError(DatabaseError):
    """A query that returns one row found none."""


class DuplicateError(DatabaseError):
    """An insert would break a unique constraint."""


@contextmanager
def _translate_errors() -> Iterator[None]:
    try:
        yield
    except sqlite3.IntegrityError as exc:
        if "UNIQUE" in str(exc) or "PRIMARY KEY" in str(exc):
            raise DuplicateError(f"duplicate key value violates unique constraint: {exc}") from exc
        raise DatabaseError(str(exc)) from exc
    except sqlite3.Error as exc:
        raise DatabaseError(str(exc)) from exc


def _time_to_db(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="microseconds")


def _time_from_db(value: str | None) -> datetime | None:
    return None if value is None else datetime.fromisoformat(value)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _user(row: sqlite3.Row) -> User:
    return User(
        id=UUID(row["id"]),
        created_at=_time_from_db(row["created_at"]),
        updated_at=_time_from_db(row["updated_at"]),
        name=row["name"],
    )


def _feed(row: sqlite3.Row) -> Feed:
    return Feed(
        id=UUID(row["id"]),
        created_at=_time_from_db(row["created_at"]),
        updated_at=_time_from_db(row["updated_at"]),
        name=row["name"],
        url=row["url"],
        user_id=UUID(row["user_id"]),
        last_fetched_at=_time_from_db(row["last_fetched_at"]),
    )


def _feed_follow(row: sqlite3.Row) -> FeedFollowRow:
    return FeedFollowRow(
        id=UUID(row["id"]),
        created_at=_time_from_db(row["created_at"]),
        updated_at=_time_from_db(row["updated_at"]),
        user_id=UUID(row["user_id"]),
        feed_id=UUID(row["feed_id"]),
        feed_name=row["feed_name"],
        user_name=row["user_name"],
    )


def _post(row: sqlite3.Row) -> PostRow:
    return PostRow(
        id=UUID(row["id"]),
        created_at=_time_from_db(row["created_at"]),
        updated_at=_time_from_db(row["updated_at"]),
        title=row["title"],
        url=row["url"],
        description=row["description"],
        published_at=_time_from_db(row["published_at"]),
        feed_id=UUID(row["feed_id"]),
        feed_name=row["feed_name"],
    )


class Queries:
    """The queries gator runs against its database."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._conn = connection
        self._conn.row_factory = sqlite3.Row
        with _translate_errors():
            self._conn.execute("PRAGMA foreign_keys = ON")

    def __enter__(self) -> Queries:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying connection."""
        self._conn.close()

    def create_schema(self) -> None:
        """Create the tables if they do not exist yet."""
        with _translate_errors(), self._conn:
            self._conn.executescript(_SCHEMA)

    def _one(self, sql: str, params: tuple = ()) -> sqlite3.Row:
        with _translate_errors():
            row = self._conn.execute(sql, params).fetchone()
        if row is None:
            raise NotFoundError("no rows in result set")
        return row

    def _all(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with _translate_errors():
            return self._conn.execute(sql, params).fetchall()

    def _exec(self, sql: str, params: tuple = ()) -> None:
        with _translate_errors(), self._conn:
            self._conn.execute(sql, params)

    # users

    def create_user(self, id: UUID, created_at: datetime, updated_at: datetime, name: str) -> User:
        """Insert a user and return it."""
        self._exec(
            "INSERT INTO users (id, created_at, updated_at, name) VALUES (?, ?, ?, ?)",
            (str(id), _time_to_db(created_at), _time_to_db(updated_at), name),
        )
        return _user(self._one("SELECT id, created_at, updated_at, name FROM users WHERE id = ?", (str(id),)))

    def get_user(self, name: str) -> User:
        """Return the user called ``name``."""
        return _user(self._one("SELECT id, created_at, updated_at, name FROM users WHERE name = ?", (name,)))

    def get_users(self) -> list[User]:
        """Return every user."""
        return [_user(row) for row in self._all("SELECT id, created_at, updated_at, name FROM users")]

    def delete_users(self) -> None:
        """Delete every user, and with them their feeds, follows and posts."""
        self._exec("DELETE FROM users")

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
        self._exec(
            "INSERT INTO feeds (id, created_at, updated_at, name, url, user_id) VALUES (?, ?, ?, ?, ?, ?)",
            (str(id), _time_to_db(created_at), _time_to_db(updated_at), name, url, str(user_id)),
        )
        return _feed(self._one(f"SELECT {_FEED_COLUMNS} FROM feeds WHERE id = ?", (str(id),)))

    def get_feed_by_url(self, url: str) -> Feed:
        """Return the feed with the given URL."""
        return _feed(self._one(f"SELECT {_FEED_COLUMNS} FROM feeds WHERE url = ?", (url,)))

    def get_feeds(self) -> list[FeedRow]:
        """Return every feed with the name of the user who added it."""
        rows = self._all(
            "SELECT feeds.name AS name, feeds.url AS url, users.name AS user_name "
            "FROM feeds INNER JOIN users ON feeds.user_id = users.id"
        )
        return [FeedRow(name=row["name"], url=row["url"], user_name=row["user_name"]) for row in rows]

    def get_next_feed_to_fetch(self) -> Feed:
        """Return the feed fetched longest ago, never-fetched feeds first."""
        return _feed(
            self._one(
                f"SELECT {_FEED_COLUMNS} FROM feeds "
                "ORDER BY last_fetched_at IS NOT NULL, last_fetched_at ASC LIMIT 1"
            )
        )

    def mark_feed_fetched(self, feed_id: UUID) -> None:
        """Record that the feed was fetched now."""
        now = _time_to_db(_now())
        self._exec(
            "UPDATE feeds SET last_fetched_at = ?, updated_at = ? WHERE id = ?",
            (now, now, str(feed_id)),
        )

    # feed follows

    _FOLLOW_SELECT = (
        "SELECT feed_follows.id AS id, feed_follows.created_at AS created_at, "
        "feed_follows.updated_at AS updated_at, feed_follows.user_id AS user_id, "
        "feed_follows.feed_id AS feed_id, feeds.name AS feed_name, users.name AS user_name "
        "FROM feed_follows "
        "INNER JOIN feeds ON feed_follows.feed_id = feeds.id "
        "INNER JOIN users ON feed_follows.user_id = users.id "
    )

    def create_feed_follow(
        self,
        id: UUID,
        created_at: datetime,
        updated_at: datetime,
        user_id: UUID,
        feed_id: UUID,
    ) -> FeedFollowRow:
        """Make a user follow a feed and return the follow with both names."""
        self._exec(
            "INSERT INTO feed_follows (id, created_at, updated_at, user_id, feed_id) VALUES (?, ?, ?, ?, ?)",
            (str(id), _time_to_db(created_at), _time_to_db(updated_at), str(user_id), str(feed_id)),
        )
        return _feed_follow(self._one(self._FOLLOW_SELECT + "WHERE feed_follows.id = ?", (str(id),)))

    def get_feed_follows_for_user(self, user_id: UUID) -> list[FeedFollowRow]:
        """Return the feeds a user follows."""
        rows = self._all(self._FOLLOW_SELECT + "WHERE feed_follows.user_id = ?", (str(user_id),))
        return [_feed_follow(row) for row in rows]

    def unfollow(self, user_id: UUID, url: str) -> None:
        """Stop a user following the feed with the given URL."""
        self._exec(
            "DELETE FROM feed_follows WHERE user_id = ? AND feed_id = (SELECT id FROM feeds WHERE url = ?)",
            (str(user_id), url),
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
    ) -> PostRow:
        """Insert a post and return it with its feed's name."""
        self._exec(
            "INSERT INTO posts (id, created_at, updated_at, title, url, description, published_at, feed_id) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                str(id),
                _time_to_db(created_at),
                _time_to_db(updated_at),
                title,
                url,
                description,
                _time_to_db(published_at),
                str(feed_id),
            ),
        )
        return _post(
            self._one(
                "SELECT posts.*, feeds.name AS feed_name FROM posts "
                "JOIN feeds ON posts.feed_id = feeds.id WHERE posts.id = ?",
                (str(id),),
            )
        )

    def get_posts_for_user(self, user_id: UUID, limit: int) -> list[PostRow]:
        """Return the newest posts of the feeds a user follows, undated posts first."""
        if limit < 0:
            raise DatabaseError("LIMIT must not be negative")
        rows = self._all(
            "SELECT posts.*, feeds.name AS feed_name FROM posts "
            "JOIN feed_follows ON feed_follows.feed_id = posts.feed_id "
            "JOIN feeds ON posts.feed_id = feeds.id "
            "WHERE feed_follows.user_id = ? "
            "ORDER BY posts.published_at IS NULL DESC, posts.published_at DESC "
            "LIMIT ?",
            (str(user_id), limit),
        )
        return [_post(row) for row in rows]


def connect(db_url: str) -> Queries:
    """Open the database named by ``db_url`` and make sure its tables exist.

    Accepts ``sqlite:///path``, ``file:`` URIs, ``:memory:`` or a plain file path.
    """
    url = db_url.strip()
    uri = False
    if not url:
        raise DatabaseError("no database url configured")
    if url in (":memory:", "sqlite://", "sqlite:///:memory:"):
        target = ":memory:"
    elif url.startswith("sqlite:///"):
        target = url[len("sqlite:///"):]
    elif url.startswith("file:"):
        target, uri = url, True
    elif "://" in url:
        raise DatabaseError(f"unsupported database url: {url}")
    else:
        target = str(Path(url).expanduser())

    with _translate_errors():
        connection = sqlite3.connect(target, uri=uri)
    queries = Queries(connection)
    try:
        queries.create_schema()
    except DatabaseError:
        queries.close()
        raise
    return queries