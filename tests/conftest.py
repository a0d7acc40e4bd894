"""
Pytest configuration and fixtures for Ember tests.
"""

import sys
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from pathlib import Path
from typing import Optional

import httpx
import pytest
import yaml

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))


ALICE_FEED = "https://alice.example.com/feed.xml"
BOB_FEED = "https://bob.example.com/rss"
BOB_ZENN_FEED = "https://zenn.dev/bob/feed"


# ============================================================
# Feed Builders
# ============================================================

def rss_date(value: datetime) -> str:
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


def make_rss(title: Optional[str], items: list[dict]) -> bytes:
    """
    Build an RSS 2.0 document.
    Each item: {"title", "link", "pub_date" (datetime or None), "description"}.
    """
    parts = ['<?xml version="1.0" encoding="UTF-8"?>', '<rss version="2.0"><channel>']
    if title is not None:
        parts.append(f"<title>{title}</title>")
    parts.append("<link>https://example.com/</link>")

    for item in items:
        parts.append("<item>")
        parts.append(f"<title>{item.get('title', '')}</title>")
        parts.append(f"<link>{item.get('link', '')}</link>")
        if item.get("pub_date") is not None:
            parts.append(f"<pubDate>{rss_date(item['pub_date'])}</pubDate>")
        if item.get("description"):
            parts.append(f"<description><![CDATA[{item['description']}]]></description>")
        parts.append("</item>")

    parts.append("</channel></rss>")
    return "".join(parts).encode("utf-8")


class FakeFeedServer:
    """Serves canned feed documents through httpx.MockTransport and counts requests."""

    def __init__(self):
        self.routes: dict[str, tuple[int, bytes]] = {}
        self.calls: dict[str, int] = defaultdict(int)
        self.headers: list[httpx.Headers] = []

    def add(self, url: str, body: bytes, status: int = 200):
        self.routes[url] = (status, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.calls[url] += 1
        self.headers.append(request.headers)
        if url not in self.routes:
            return httpx.Response(404, content=b"not found")
        status, body = self.routes[url]
        return httpx.Response(status, content=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


# ============================================================
# Members Fixtures
# ============================================================

@pytest.fixture
def members_data() -> dict:
    """Raw config.yaml content with one former and one current member."""
    return {
        "home": {"description": "Our members' writing"},
        "users": [
            {
                "name": "alice",
                "full_name_en": "Alice Example",
                "avatar": "/images/alice.png",
                "joined_at": {"year": 2020, "month": 1},
                "left_at": {"year": 2021, "month": 6},
                "tags": ["rust", "backend"],
                "accounts": {"github": "alice-example"},
                "sources": [ALICE_FEED],
            },
            {
                "name": "bob",
                "avatar": "/images/bob.png",
                "joined_at": {"year": 2022, "month": 4},
                "left_at": None,
                "tags": ["frontend"],
                "sources": [BOB_FEED, BOB_ZENN_FEED],
            },
        ],
    }


@pytest.fixture
def members_file(tmp_path, members_data) -> Path:
    path = tmp_path / "config.yaml"
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(members_data, f, allow_unicode=True)
    return path


@pytest.fixture
def members(members_data):
    from ember.config.members import parse_members

    return parse_members(members_data)


@pytest.fixture
def settings(tmp_path, members_file):
    """Settings isolated from the environment and pointed at tmp_path."""
    from ember.config.settings import Settings

    return Settings(
        _env_file=None,
        config_path=str(members_file),
        data_dir=str(tmp_path / "data"),
        retry_delay_seconds=0,
        refresh_api_key="test-refresh-secret-0123",
    )


# ============================================================
# Feed Fixtures
# ============================================================

@pytest.fixture
def feed_server() -> FakeFeedServer:
    """Feeds for alice and bob; alice has one article before and one after leaving."""
    server = FakeFeedServer()
    server.add(ALICE_FEED, make_rss("Alice's Blog", [
        {
            "title": "Ownership in practice",
            "link": "https://alice.example.com/ownership",
            "pub_date": datetime(2021, 5, 1, 9, 0, tzinfo=timezone.utc),
            "description": "<p>Borrowing &amp; lifetimes</p>",
        },
        {
            "title": "After the move",
            "link": "https://alice.example.com/after",
            "pub_date": datetime(2021, 7, 1, 9, 0, tzinfo=timezone.utc),
        },
    ]))
    server.add(BOB_FEED, make_rss("Bob Writes", [
        {
            "title": "CSS grids",
            "link": "https://bob.example.com/grids",
            "pub_date": datetime(2023, 3, 10, 12, 0, tzinfo=timezone.utc),
        },
        {
            "title": "Draft without date",
            "link": "https://bob.example.com/draft",
            "pub_date": None,
        },
    ]))
    server.add(BOB_ZENN_FEED, make_rss(None, [
        {
            "title": "Signals",
            "link": "https://zenn.dev/bob/signals",
            "pub_date": datetime(2024, 1, 2, 8, 0, tzinfo=timezone.utc),
        },
    ]))
    return server


# ============================================================
# Sample Data Fixtures
# ============================================================

def build_article(index: int, **overrides):
    from ember.models.content import Article

    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    data = {
        "title": f"Article {index}",
        "link": f"https://example.com/{index}",
        "pub_date": base - timedelta(days=index),
        "content_snippet": f"Snippet {index}",
        "site_name": "Example",
        "author": "alice",
        "tags": ["backend"],
        "is_during_employment": True,
    }
    data.update(overrides)
    return Article(**data)


@pytest.fixture
def sample_articles():
    """25 articles, newest first."""
    return [build_article(i) for i in range(25)]


@pytest.fixture
def write_snapshots(settings):
    """Write feed.json / users.json for the given settings."""
    from ember.generator import write_snapshots as _write

    def _write_snapshots(articles, users):
        assert _write(settings, articles, users)

    return _write_snapshots


@pytest.fixture
def rss():
    """The make_rss builder, for tests that need their own feed bodies."""
    return make_rss


@pytest.fixture
def make_server():
    """Factory for empty FakeFeedServer instances."""
    return FakeFeedServer


@pytest.fixture
def article_factory():
    return build_article


# ============================================================
# App Fixtures
# ============================================================

@pytest.fixture
def client(settings, feed_server):
    """TestClient over an app whose feed fetches hit feed_server."""
    from fastapi.testclient import TestClient
    from ember.app.main import create_app

    with TestClient(create_app(settings, transport=feed_server.transport)) as test_client:
        yield test_client
