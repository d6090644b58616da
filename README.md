# gator

`gator` is a small command-line RSS aggregator. It keeps users, feeds,
follows and collected posts in a SQLite database, fetches feeds on a
schedule, and lets each user browse the latest posts from the feeds they
follow. It needs nothing beyond the Python standard library.

## Installation

```
pip install .
```

This installs the `gator` command.

## Configuration

`gator` reads its settings from `.gatorconfig.json` in your home
directory. The file must exist before the first run:

```json
{"db_url": "/home/you/gator.db", "current_user_name": ""}
```

`db_url` says where the SQLite database lives. It may be:

- a plain file path (`~` is expanded), such as `/home/you/gator.db`;
- `sqlite:///path/to/gator.db`;
- a SQLite `file:` URI;
- `:memory:`, `sqlite://` or `sqlite:///:memory:` for a throwaway
  in-memory database.

The tables are created on first use. `current_user_name` is maintained by
`gator` itself: `register` and `login` rewrite the file with the new name.

## Usage

```
gator <command> [args...]
```

| Command | What it does |
| --- | --- |
| `gator register <name>` | Create a user and make it the current user |
| `gator login <name>` | Switch to an existing user |
| `gator users` | List all users, marking the current one with `(current)` |
| `gator reset` | Delete all users, and with them their feeds, follows and posts |
| `gator addfeed <name> <url>` | Add a feed and follow it as the current user |
| `gator feeds` | List all feeds with the user who added them |
| `gator follow <url>` | Follow an existing feed as the current user |
| `gator following` | List the feeds the current user follows |
| `gator unfollow <url>` | Stop following a feed |
| `gator agg <interval>` | Fetch feeds forever, one feed every interval |
| `gator browse [limit]` | Show posts from followed feeds (default limit 2) |

`browse`, `follow`, `following`, `unfollow` and `addfeed` act as the
current user named in the configuration file.

### Example session

```
gator register alice
gator addfeed "Example News" https://example.com/rss.xml
gator agg 1m          # leave running for a while, stop with Ctrl-C
gator browse 5
```

### Collecting feeds

`agg` takes an interval such as `30s`, `1m`, `1h30m`, `1.5s` or `500ms`
(units `ns`, `us`, `ms`, `s`, `m`, `h`); the interval must be positive.
On every tick it picks the feed fetched least recently (never-fetched
feeds first), marks it as fetched, downloads it over HTTP or HTTPS with
the user agent `Gator`, and stores every item as a post. Items whose link
is already stored are skipped. If a feed cannot be fetched, a warning is
printed and the loop carries on.

Publication dates in RFC 1123 form with a numeric zone
(`Mon, 02 Jan 2006 15:04:05 -0700`) are recorded; other dates leave the
post undated. HTML entities in titles and descriptions are unescaped.

### Browsing

`browse` lists posts from the feeds the current user follows: undated
posts first, then the rest newest first, up to the limit. Each post shows
its date, feed name, title, description and link.

### Errors

Errors are printed on standard error with a timestamp and the command
exits with status 1. Interrupting `agg` with Ctrl-C exits with status 130.

## Using it as a library

- `gator.database.connect(db_url)` opens a database and returns a
  `Queries` object (usable as a context manager) with methods such as
  `create_user`, `get_user`, `create_feed`, `get_next_feed_to_fetch`,
  `create_post` and `get_posts_for_user`. Failures raise `DatabaseError`,
  `NotFoundError` or `DuplicateError`.
- `gator.rss.fetch_feed(url, timeout=None)` downloads and parses a feed;
  `gator.rss.parse_feed(data)` parses an RSS document already in hand.
  Both return an `RSSFeed` with its `RSSItem`s and raise `FeedError` on
  failure.
- `gator.config.read(path=None)` loads a `Config`.
- `gator.cli.main(argv=None)` runs a command and returns the exit status.

## Limitations

- Storage is SQLite only. Database URLs for other servers (for example
  `postgres://...`) are rejected as unsupported.
- The configuration file is not created for you; write it by hand before
  the first run.
- Only RSS `<channel>`/`<item>` documents are read; Atom feeds yield no
  posts.

## Development

```
pip install -e ".[test]"
pytest
```