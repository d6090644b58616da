"""The handlers behind each gator command."""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from fractions import Fraction
from uuid import uuid4

from gator.commands import Command, CommandError
from gator.config import Config
from gator.database import DatabaseError, DuplicateError, Queries
from gator.models import Feed, User
from gator.rss import FeedError, fetch_feed

logger = logging.getLogger(__name__)

_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

_UNIT_MICROSECONDS = {
    "ns": Fraction(1, 1000),
    "us": Fraction(1),
    "µs": Fraction(1),
    "μs": Fraction(1),
    "ms": Fraction(1000),
    "s": Fraction(1_000_000),
    "m": Fraction(60_000_000),
    "h": Fraction(3_600_000_000),
}
_DURATION_PART = r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)"
_DURATION_RE = re.compile(rf"(?:{_DURATION_PART})+")
_DURATION_PART_RE = re.compile(_DURATION_PART)

_PUB_DATE_RE = re.compile(
    r"([A-Za-z]{3}), (\d{2}) ([A-Za-z]{3}) (\d{4}) (\d{2}):(\d{2}):(\d{2}) ([+-])(\d{2})(\d{2})"
)

DEFAULT_BROWSE_LIMIT = 2
SEPARATOR = "====================================="


@dataclass
class State:
    """What every handler works with: the database and the configuration."""

    db: Queries
    config: Config


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``1m``, ``1h30m``, ``1.5s`` or ``500ms``."""
    body = text
    sign = 1
    if body[:1] in ("+", "-"):
        sign = -1 if body[0] == "-" else 1
        body = body[1:]
    if body == "0":
        return timedelta(0)
    if not body or not _DURATION_RE.fullmatch(body):
        raise ValueError(f"invalid duration {text!r}")
    total = sum(
        (Fraction(number) * _UNIT_MICROSECONDS[unit] for number, unit in _DURATION_PART_RE.findall(body)),
        Fraction(0),
    )
    return timedelta(microseconds=sign * round(total))


def _trimmed(value: int, unit: int) -> str:
    whole, frac = divmod(value, unit)
    if not frac:
        return str(whole)
    digits = str(frac).rjust(len(str(unit)) - 1, "0").rstrip("0")
    return f"{whole}.{digits}"


def _format_duration(duration: timedelta) -> str:
    micros = duration // timedelta(microseconds=1)
    sign = "-" if micros < 0 else ""
    micros = abs(micros)
    if micros == 0:
        return "0s"
    if micros < 1000:
        return f"{sign}{micros}µs"
    if micros < 1_000_000:
        return f"{sign}{_trimmed(micros, 1000)}ms"
    hours, rest = divmod(micros, 3_600_000_000)
    minutes, rest = divmod(rest, 60_000_000)
    seconds = _trimmed(rest, 1_000_000)
    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}s"
    if minutes:
        return f"{sign}{minutes}m{seconds}s"
    return f"{sign}{seconds}s"


def parse_pub_date(text: str) -> datetime | None:
    """Parse an RFC 1123 date with a numeric zone; return None if it does not fit."""
    match = _PUB_DATE_RE.fullmatch(text)
    if match is None:
        return None
    weekday, day, month, year, hour, minute, second, zone_sign, zone_h, zone_m = match.groups()
    months = [m.lower() for m in _MONTHS]
    if weekday.lower() not in [d.lower() for d in _WEEKDAYS] or month.lower() not in months:
        return None
    offset = timedelta(hours=int(zone_h), minutes=int(zone_m))
    if zone_sign == "-":
        offset = -offset
    try:
        return datetime(
            int(year),
            months.index(month.lower()) + 1,
            int(day),
            int(hour),
            int(minute),
            int(second),
            tzinfo=timezone(offset),
        )
    except ValueError:
        return None


def _short_date(moment: datetime | None) -> str:
    if moment is None:
        moment = datetime(1, 1, 1)
    return f"{_WEEKDAYS[moment.weekday()]} {_MONTHS[moment.month - 1]} {moment.day}"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _print_feed(feed: Feed) -> None:
    print(f"* ID:            {feed.id}")
    print(f"* Created:       {feed.created_at}")
    print(f"* Updated:       {feed.updated_at}")
    print(f"* Name:          {feed.name}")
    print(f"* URL:           {feed.url}")
    print(f"* UserID:        {feed.user_id}")


def _print_user(user: User) -> None:
    print(f" * ID:      {user.id}")
    print(f" * Name:    {user.name}")


def _expect_args(cmd: Command, count: int, usage: str) -> None:
    if len(cmd.args) != count:
        raise CommandError(f"usage: {cmd.name} {usage}")


def middleware_logged_in(
    handler: Callable[[State, Command, User], None],
) -> Callable[[State, Command], None]:
    """Wrap a handler so that it receives the current user."""

    def wrapped(state: State, cmd: Command) -> None:
        user = state.db.get_user(state.config.current_user_name)
        handler(state, cmd, user)

    return wrapped


def handler_browse(state: State, cmd: Command, user: User) -> None:
    """Print the newest posts from the feeds the user follows."""
    limit = DEFAULT_BROWSE_LIMIT
    if len(cmd.args) == 1:
        text = cmd.args[0]
        if not re.fullmatch(r"[+-]?\d+", text):
            raise CommandError(f"invalid limit: {text!r} is not an integer")
        limit = int(text)

    try:
        posts = state.db.get_posts_for_user(user.id, limit)
    except DatabaseError as exc:
        raise CommandError(f"couldn't get posts for user: {exc}") from exc

    print(f"Found {len(posts)} posts for user {user.name}:")
    for post in posts:
        print(f"{_short_date(post.published_at)} from {post.feed_name}")
        print(f"--- {post.title} ---")
        print(f"    {post.description or ''}")
        print(f"Link: {post.url}")
        print(SEPARATOR)


def scrape_feeds(state: State) -> None:
    """Fetch the feed due next and store its new posts."""
    try:
        feed = state.db.get_next_feed_to_fetch()
    except DatabaseError as exc:
        raise CommandError(f"failed to get next feed row: {exc}") from exc
    try:
        state.db.mark_feed_fetched(feed.id)
    except DatabaseError as exc:
        raise CommandError(f"failed to mark feed as fetched {exc}") from exc
    try:
        rss_feed = fetch_feed(feed.url)
    except FeedError as exc:
        raise CommandError(f"error fetching feed for current url {exc}") from exc

    for item in rss_feed.items:
        now = _now()
        try:
            state.db.create_post(
                id=uuid4(),
                created_at=now,
                updated_at=now,
                title=item.title,
                url=item.link,
                description=item.description,
                published_at=parse_pub_date(item.pub_date),
                feed_id=feed.id,
            )
        except DuplicateError:
            continue
        except DatabaseError as exc:
            logger.warning("Couldn't create post: %s", exc)
    logger.info("Feed %s collected, %d posts found", feed.name, len(rss_feed.items))


def handler_unfollow(state: State, cmd: Command, user: User) -> None:
    """Stop the user following the feed with the given URL."""
    _expect_args(cmd, 1, "<url for unfollow>")
    try:
        state.db.unfollow(user.id, cmd.args[0])
    except DatabaseError as exc:
        raise CommandError(f"failed to unfollow feed: {exc}") from exc


def handler_following(state: State, cmd: Command, user: User) -> None:
    """List the feeds the user follows."""
    try:
        follows = state.db.get_feed_follows_for_user(user.id)
    except DatabaseError as exc:
        raise CommandError(f"couldn't get list of user followers {exc}") from exc

    if not follows:
        print("No feed follows found for this user.")
        return
    print(f"Feed follows for user {user.name}:")
    for follow in follows:
        print(f"* {follow.feed_name}")


def handler_add_feed(state: State, cmd: Command, user: User) -> None:
    """Add a feed and make the user follow it."""
    _expect_args(cmd, 2, "<name> <url>")
    name, url = cmd.args
    now = _now()
    try:
        feed = state.db.create_feed(
            id=uuid4(), created_at=now, updated_at=now, name=name, url=url, user_id=user.id
        )
    except DatabaseError as exc:
        raise CommandError(f"couldn't create feed: {exc}") from exc

    now = _now()
    try:
        follow = state.db.create_feed_follow(
            id=uuid4(), created_at=now, updated_at=now, user_id=user.id, feed_id=feed.id
        )
    except DatabaseError as exc:
        raise CommandError(f"couldn't create feed follow: {exc}") from exc

    print("Feed created successfully:")
    _print_feed(feed)
    print()
    print("Feed followed successfully:")
    print(f"Username: {follow.user_name}\n FeedName: {follow.feed_name}")
    print(SEPARATOR)


def handler_follow(state: State, cmd: Command, user: User) -> None:
    """Make the user follow an existing feed by URL."""
    _expect_args(cmd, 1, "<feed_url>")
    try:
        feed = state.db.get_feed_by_url(cmd.args[0])
    except DatabaseError as exc:
        raise CommandError(f"couldn't get feed for url given {exc}") from exc

    now = _now()
    try:
        follow = state.db.create_feed_follow(
            id=uuid4(), created_at=now, updated_at=now, user_id=user.id, feed_id=feed.id
        )
    except DatabaseError as exc:
        raise CommandError(f"couldn't create feed follows: {exc}") from exc

    print("Feed Follows created")
    print(f"Username: {follow.user_name}\n FeedName: {follow.feed_name}")


def handler_feeds(state: State, cmd: Command) -> None:
    """List every feed with the user who added it."""
    try:
        feeds = state.db.get_feeds()
    except DatabaseError as exc:
        raise CommandError(f"couldn't print feeds: {exc}") from exc
    for feed in feeds:
        print(" Name:", feed.name)
        print(" URL:", feed.url)
        print(" User:", feed.user_name)


def handler_agg(state: State, cmd: Command) -> None:
    """Scrape feeds forever, one every interval."""
    if len(cmd.args) != 1:
        raise CommandError(f"time argument not provided for {cmd.name}")
    try:
        interval = parse_duration(cmd.args[0])
    except ValueError as exc:
        raise CommandError(f"Proper time value was not entered {exc}") from exc
    if interval <= timedelta(0):
        raise CommandError("non-positive interval for ticker")

    print(f"Collecting feeds every {_format_duration(interval)}")
    period = interval.total_seconds()
    next_tick = time.monotonic()
    while True:
        try:
            scrape_feeds(state)
        except CommandError as exc:
            logger.warning("%s", exc)
        next_tick += period
        now = time.monotonic()
        if next_tick <= now:
            next_tick += ((now - next_tick) // period + 1) * period
        time.sleep(next_tick - now)


def handler_reset(state: State, cmd: Command) -> None:
    """Delete every user."""
    try:
        state.db.delete_users()
    except DatabaseError as exc:
        raise CommandError(f"couldn't delete users {exc}") from exc


def handler_register(state: State, cmd: Command) -> None:
    """Create a user and make it the current one."""
    _expect_args(cmd, 1, "<name>")
    now = _now()
    try:
        user = state.db.create_user(id=uuid4(), created_at=now, updated_at=now, name=cmd.args[0])
    except DatabaseError as exc:
        raise CommandError(f"couldn't create user: {exc}") from exc
    try:
        state.config.set_user(user.name)
    except OSError as exc:
        raise CommandError(f"couldn't set current user: {exc}") from exc

    print("User created successfully:")
    _print_user(user)


def handler_login(state: State, cmd: Command) -> None:
    """Switch to an existing user."""
    _expect_args(cmd, 1, "<name>")
    name = cmd.args[0]
    try:
        state.db.get_user(name)
    except DatabaseError as exc:
        raise CommandError(f"couldn't find user: {exc}") from exc
    try:
        state.config.set_user(name)
    except OSError as exc:
        raise CommandError(f"couldn't set current user: {exc}") from exc
    print("User switched successfully!")


def handler_users(state: State, cmd: Command) -> None:
    """List every user, marking the current one."""
    try:
        users = state.db.get_users()
    except DatabaseError as exc:
        raise CommandError(f"couldn't get current users {exc}") from exc
    for user in users:
        if user.name == state.config.current_user_name:
            print(f"{user.name} (current)")
        else:
            print(user.name)