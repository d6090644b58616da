"""Fetching and parsing RSS feeds."""

from __future__ import annotations

import html
import urllib.error
import urllib.parse
import urllib.request
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

USER_AGENT = "Gator"

_ITEM_FIELDS = {"title": "title", "link": "link", "description": "description", "pubDate": "pub_date"}
_CHANNEL_FIELDS = ("title", "link", "description")


class FeedError(Exception):
    """A feed could not be fetched or parsed."""


@dataclass
class RSSItem:
    """One entry of a feed's channel."""

    title: str = ""
    link: str = ""
    description: str = ""
    pub_date: str = ""


@dataclass
class RSSFeed:
    """A feed's channel and its items."""

    title: str = ""
    link: str = ""
    description: str = ""
    items: list[RSSItem] = field(default_factory=list)


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _direct_text(element: ET.Element) -> str:
    parts = [element.text or ""]
    parts.extend(child.tail or "" for child in element)
    return "".join(parts)


def _parse_item(element: ET.Element) -> RSSItem:
    item = RSSItem()
    for child in element:
        attribute = _ITEM_FIELDS.get(_local_name(child.tag))
        if attribute is not None:
            setattr(item, attribute, _direct_text(child))
    item.title = html.unescape(item.title)
    item.description = html.unescape(item.description)
    return item


def parse_feed(data: bytes | str) -> RSSFeed:
    """Parse an RSS document, unescaping HTML entities in titles and descriptions."""
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise FeedError(f"error unmarshalling feed: {exc}") from exc

    feed = RSSFeed()
    for channel in (c for c in root if _local_name(c.tag) == "channel"):
        for child in channel:
            name = _local_name(child.tag)
            if name in _CHANNEL_FIELDS:
                setattr(feed, name, _direct_text(child))
            elif name == "item":
                feed.items.append(_parse_item(child))

    feed.title = html.unescape(feed.title)
    feed.description = html.unescape(feed.description)
    return feed


def fetch_feed(feed_url: str, timeout: float | None = None) -> RSSFeed:
    """Download the feed at ``feed_url`` over HTTP and parse it."""
    scheme = urllib.parse.urlsplit(feed_url).scheme.lower()
    if scheme not in ("http", "https"):
        raise FeedError(f"error building http request: unsupported protocol scheme {scheme!r}")
    try:
        request = urllib.request.Request(feed_url, headers={"User-Agent": USER_AGENT})
    except ValueError as exc:
        raise FeedError(f"error building http request: {exc}") from exc

    options = {} if timeout is None else {"timeout": timeout}
    try:
        with urllib.request.urlopen(request, **options) as response:
            if response.status != 200:
                raise FeedError("http returned not ok")
            body = response.read()
    except urllib.error.HTTPError as exc:
        raise FeedError("http returned not ok") from exc
    except (urllib.error.URLError, OSError) as exc:
        raise FeedError(f"error getting http response: {exc}") from exc

    return parse_feed(body)