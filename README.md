# gator

`gator` is a small command-line RSS aggregator. You register users, add
RSS feeds, follow the feeds you care about, and let the aggregator collect
posts from them. You can then browse the newest posts from the feeds you
follow. Everything is kept in an SQLite database.

## Installation

```
pip install .
```

This installs the `gator` command. It needs nothing beyond the Python
standard library.

## Configuration

`gator` reads its settings from `.gatorconfig.json` in your home directory.
The file must exist before the first command is run:

```json
{"db_url": "/home/me/gator.db", "current_user_name": ""}
```

- `db_url` names the SQLite database. It may be a file path, `:memory:`,
  or a `sqlite://` URL (`sqlite:///relative.db`, `sqlite:////absolute.db`,
  or plain `sqlite://` for an in-memory database). The tables are created
  automatically the first time the database is opened.
- `current_user_name` is the logged-in user. The `login` and `register`
  commands rewrite the file with the new name.

## Usage

```
gator <command> [arguments...]
```

| Command                | What it does                                               |
|------------------------|------------------------------------------------------------|
| `login <username>`     | Log in as an existing user.                                |
| `register <username>`  | Register a new user and log in as that user.               |
| `reset`                | Delete all users, with their feeds, follows and posts.     |
| `users`                | List every registered user and mark the current one.       |
| `agg <time>`           | Fetch feeds repeatedly, one feed per interval.             |
| `addfeed <name> <url>` | Add an RSS feed and follow it as the current user.         |
| `feeds`                | List every known feed.                                     |
| `follow <url>`         | Follow an existing feed by its URL.                        |
| `following`            | List the feeds the current user follows.                   |
| `unfollow <url>`       | Stop following a feed.                                     |
| `browse [limit]`       | Show the newest posts from followed feeds (default 2).     |
| `help`                 | Show the list of commands.                                 |

`addfeed`, `follow`, `following`, `unfollow` and `browse` act as the user
named in `current_user_name`; they fail if that user does not exist.

### Example session

```
gator register alice
gator addfeed "Example News" https://example.com/rss.xml
gator agg 1m          # leave running; press Ctrl+C to stop
gator browse 5
```

### Aggregation

On each tick `agg` picks the feed that has gone longest without a fetch
(feeds never fetched come first), marks it as fetched, downloads it with a
10-second timeout and stores its items as posts. Items whose link is
already stored are skipped. An item whose `pubDate` is not of the form
`Mon, 02 Jan 2006 15:04:05 -0700` is stored with the current time as its
publication date.

The interval is a duration such as `300ms`, `1.5s`, `2m` or `1h30m`; the
units `ns`, `us` (or `µs`), `ms`, `s`, `m` and `h` are accepted, and the
interval must be positive. `agg` stops with an error if there are no feeds,
or if a feed cannot be downloaded or parsed.

### Errors and exit status

Any error, such as an unknown command, a wrong number of arguments, a
missing user or a duplicate name or URL, is printed to standard error and
the command exits with status 1. Interrupting a command with Ctrl+C exits
with status 130.

## Using it as a library

- `gator.config.read()` loads a `Config`; `Config.set_user()` saves a new
  current user.
- `gator.database.connect(url)` opens a database and returns a `Queries`
  object with methods for users, feeds, follows and posts. Missing rows
  raise `NotFoundError`; uniqueness violations raise `DuplicateError`.
- `gator.rss.parse_feed(data)` parses an RSS document into an `RSSFeed`;
  `gator.rss.fetch_feed(url)` downloads and parses one, raising
  `FeedFetchError` on failure.
- `gator.cli.build_commands()` returns the command registry and
  `gator.cli.main(argv)` runs one command.

## What gator does not do

- It stores data only in SQLite; there is no support for a database server.
- It reads RSS 2.0 (`<rss><channel><item>`) documents only; Atom feeds are
  not understood.
- `agg` runs in the foreground and fetches one feed per tick; there is no
  background service or scheduler.

## Development

```
pip install -e ".[test]"
pytest
```