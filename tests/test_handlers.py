from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from gator import config as config_module
from gator.commands import Command, CommandError, State
from gator.config import Config
from gator.database import DuplicateError, connect
from gator.handlers import (
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
    parse_duration,
    parse_pub_date,
    scrape_feeds,
)
from gator.rss import RSSFeed, RSSItem


@pytest.fixture
def state(tmp_path):
    db = connect(":memory:")
    cfg = Config(db_url=":memory:", username="", path=tmp_path / "config.json")
    yield State(config=cfg, db=db)
    db.close()


def _user(state, name):
    now = datetime.now(timezone.utc)
    return state.db.create_user(uuid4(), now, now, name)


def _feed(state, user, name, url):
    now = datetime.now(timezone.utc)
    return state.db.create_feed(uuid4(), now, now, name, url, user.id)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("1s", timedelta(seconds=1)),
        ("1m", timedelta(minutes=1)),
        ("1h", timedelta(hours=1)),
        ("1h30m", timedelta(hours=1, minutes=30)),
        ("1.5s", timedelta(seconds=1.5)),
        ("250ms", timedelta(milliseconds=250)),
        ("-2m", -timedelta(minutes=2)),
        ("0", timedelta(0)),
    ],
)
def test_parse_duration(text, expected):
    assert parse_duration(text) == expected


@pytest.mark.parametrize("text", ["", "1", "abc", "1x", ".s", "-", "1s2"])
def test_parse_duration_rejects(text):
    with pytest.raises(ValueError, match="time:"):
        parse_duration(text)


def test_parse_pub_date_uses_rss_layout():
    parsed = parse_pub_date("Mon, 02 Jan 2006 15:04:05 -0700")
    assert parsed == datetime(2006, 1, 2, 15, 4, 5, tzinfo=timezone(timedelta(hours=-7)))


def test_parse_pub_date_rejects_other_layouts():
    with pytest.raises(ValueError):
        parse_pub_date("2006-01-02T15:04:05Z")


def test_register_sets_current_user(state, capsys):
    handler_register(state, Command("register", ["alice"]))
    assert state.db.get_user("alice").name == "alice"
    assert config_module.read(state.config.path).username == "alice"
    assert "User switched successfully" in capsys.readouterr().out


def test_register_duplicate_fails(state):
    handler_register(state, Command("register", ["alice"]))
    with pytest.raises(CommandError, match="could not create user"):
        handler_register(state, Command("register", ["alice"]))


def test_register_usage(state):
    with pytest.raises(CommandError, match="usage: register <name>"):
        handler_register(state, Command("register"))


def test_login_switches_user(state, capsys):
    _user(state, "bob")
    handler_login(state, Command("login", ["bob"]))
    assert state.config.username == "bob"
    assert config_module.read(state.config.path).username == "bob"
    assert "User switched successfully" in capsys.readouterr().out


def test_login_unknown_user(state):
    with pytest.raises(CommandError, match="could not get user from database"):
        handler_login(state, Command("login", ["ghost"]))


def test_login_usage(state):
    with pytest.raises(CommandError, match="usage: login <name>"):
        handler_login(state, Command("login", ["a", "b"]))


def test_reset_removes_users(state, capsys):
    _user(state, "alice")
    handler_reset(state, Command("reset"))
    assert state.db.get_users() == []
    assert "Database was reset successfully" in capsys.readouterr().out


def test_users_marks_current(state, capsys):
    _user(state, "alice")
    _user(state, "bob")
    state.config.username = "bob"
    handler_users(state, Command("users"))
    assert capsys.readouterr().out.splitlines() == ["  * alice", "  * bob (current)"]


def test_add_feed_creates_and_follows(state, capsys):
    alice = _user(state, "alice")
    handler_add_feed(state, Command("addfeed", ["Tech", "https://example.com/rss"]), alice)
    feed = state.db.get_feed_by_url("https://example.com/rss")
    assert feed.name == "Tech"
    assert [f.feed_name for f in state.db.get_feed_follows_for_user("alice")] == ["Tech"]
    out = capsys.readouterr().out
    assert "Feed created successfully:" in out
    assert "  * User:          alice" in out
    assert f"  * ID:            {feed.id}" in out


def test_add_feed_usage_and_duplicate(state):
    alice = _user(state, "alice")
    with pytest.raises(CommandError, match="usage: addfeed <feed_name> <url>"):
        handler_add_feed(state, Command("addfeed", ["Tech"]), alice)
    handler_add_feed(state, Command("addfeed", ["Tech", "https://example.com/rss"]), alice)
    with pytest.raises(CommandError, match="failed to create feed"):
        handler_add_feed(state, Command("addfeed", ["Other", "https://example.com/rss"]), alice)


def test_feeds_lists_all(state, capsys):
    alice = _user(state, "alice")
    _feed(state, alice, "One", "https://example.com/1")
    _feed(state, alice, "Two", "https://example.com/2")
    handler_feeds(state, Command("feeds"))
    out = capsys.readouterr().out
    assert "  Name:            One" in out
    assert "  Name:            Two" in out
    assert out.count("  * User:          alice") == 2


def test_feeds_rejects_arguments(state):
    with pytest.raises(CommandError, match=r"got \(1\)"):
        handler_feeds(state, Command("feeds", ["x"]))


def test_follow_and_following(state, capsys):
    alice = _user(state, "alice")
    bob = _user(state, "bob")
    _feed(state, alice, "Tech", "https://example.com/rss")
    handler_follow(state, Command("follow", ["https://example.com/rss"]), bob)
    handler_following(state, Command("following"), bob)
    out = capsys.readouterr().out
    assert "bob now follows Tech!" in out
    assert "bob follows 1 feed(s):" in out
    assert "  1. Tech" in out


def test_follow_twice_is_duplicate(state):
    alice = _user(state, "alice")
    _feed(state, alice, "Tech", "https://example.com/rss")
    handler_follow(state, Command("follow", ["https://example.com/rss"]), alice)
    with pytest.raises(DuplicateError):
        handler_follow(state, Command("follow", ["https://example.com/rss"]), alice)


def test_follow_unknown_feed(state):
    alice = _user(state, "alice")
    with pytest.raises(CommandError, match="feed does not exist"):
        handler_follow(state, Command("follow", ["https://example.com/none"]), alice)


def test_following_empty(state, capsys):
    alice = _user(state, "alice")
    state.config.username = "alice"
    handler_following(state, Command("following"), alice)
    assert "alice doesn't follow any feeds yet..." in capsys.readouterr().out


def test_following_rejects_arguments(state):
    alice = _user(state, "alice")
    with pytest.raises(CommandError, match="<2> given"):
        handler_following(state, Command("following", ["a", "b"]), alice)


def test_unfollow_removes_follow(state, capsys):
    alice = _user(state, "alice")
    handler_add_feed(state, Command("addfeed", ["Tech", "https://example.com/rss"]), alice)
    handler_unfollow(state, Command("unfollow", ["https://example.com/rss"]), alice)
    assert state.db.get_feed_follows_for_user("alice") == []
    assert "alice no longer follows Tech" in capsys.readouterr().out


def test_unfollow_unknown_feed(state):
    alice = _user(state, "alice")
    with pytest.raises(CommandError, match="feed does not exist"):
        handler_unfollow(state, Command("unfollow", ["https://example.com/none"]), alice)


def _fake_fetch(items):
    return lambda url: RSSFeed(title="T", items=list(items))


ITEMS = [
    RSSItem("Old", "https://example.com/old", "old body", "Mon, 02 Jan 2006 15:04:05 -0700"),
    RSSItem("New", "https://example.com/new", "new body", "Tue, 03 Jan 2006 15:04:05 -0700"),
    RSSItem("Newest", "https://example.com/newest", "newest body", "Wed, 04 Jan 2006 15:04:05 -0700"),
]


def test_scrape_feeds_stores_posts_once(state):
    alice = _user(state, "alice")
    feed = _feed(state, alice, "Tech", "https://example.com/rss")
    state.db.create_feed_follow(uuid4(), feed.created_at, feed.created_at, alice.id, feed.id)
    assert scrape_feeds(state, _fake_fetch(ITEMS)) == len(ITEMS)
    assert scrape_feeds(state, _fake_fetch(ITEMS)) == 0
    posts = state.db.get_posts_for_user(alice.id, 10)
    assert {p.url for p in posts} == {item.link for item in ITEMS}
    assert state.db.get_feed_by_url("https://example.com/rss").last_fetched_at is not None


def test_scrape_feeds_unparseable_date_uses_now(state):
    alice = _user(state, "alice")
    feed = _feed(state, alice, "Tech", "https://example.com/rss")
    state.db.create_feed_follow(uuid4(), feed.created_at, feed.created_at, alice.id, feed.id)
    before = datetime.now(timezone.utc)
    scrape_feeds(state, _fake_fetch([RSSItem("X", "https://example.com/x", "", "yesterday")]))
    (post,) = state.db.get_posts_for_user(alice.id, 10)
    assert post.published_at >= before - timedelta(seconds=1)


def test_scrape_feeds_without_feeds(state):
    with pytest.raises(CommandError, match="failed to get next feed to fetch"):
        scrape_feeds(state, _fake_fetch([]))


def test_browse_default_limit_newest_first(state, capsys):
    alice = _user(state, "alice")
    feed = _feed(state, alice, "Tech", "https://example.com/rss")
    state.db.create_feed_follow(uuid4(), feed.created_at, feed.created_at, alice.id, feed.id)
    scrape_feeds(state, _fake_fetch(ITEMS))
    handler_browse(state, Command("browse"), alice)
    out = capsys.readouterr().out
    assert out.count("=" * 60) == 2
    assert out.index("Newest - ") < out.index("New - ")
    assert "Old - " not in out
    assert "newest body" in out


def test_browse_explicit_limit(state, capsys):
    alice = _user(state, "alice")
    feed = _feed(state, alice, "Tech", "https://example.com/rss")
    state.db.create_feed_follow(uuid4(), feed.created_at, feed.created_at, alice.id, feed.id)
    scrape_feeds(state, _fake_fetch(ITEMS))
    handler_browse(state, Command("browse", ["3"]), alice)
    assert capsys.readouterr().out.count("=" * 60) == 3


def test_browse_invalid_limit(state):
    alice = _user(state, "alice")
    with pytest.raises(CommandError, match="invalid limit"):
        handler_browse(state, Command("browse", ["many"]), alice)


def test_agg_usage(state):
    with pytest.raises(CommandError, match="usage: agg"):
        handler_agg(state, Command("agg"))


def test_agg_invalid_duration(state):
    with pytest.raises(CommandError, match="failed to parse duration"):
        handler_agg(state, Command("agg", ["soon"]))


def test_agg_non_positive_duration(state):
    with pytest.raises(CommandError, match="non-positive"):
        handler_agg(state, Command("agg", ["0s"]))


def test_agg_stops_on_scrape_error(state, capsys):
    with pytest.raises(CommandError, match="failed to get next feed to fetch"):
        handler_agg(state, Command("agg", ["1s"]))
    assert "Collecting feeds every 1s" in capsys.readouterr().out


def test_help_lists_commands(state, capsys):
    handler_help(state, Command("help"))
    out = capsys.readouterr().out
    for name in ["login", "register", "reset", "users", "agg", "addfeed", "feeds",
                 "follow", "following", "unfollow", "browse", "help"]:
        assert f"\n  {name} " in out