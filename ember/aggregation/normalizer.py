"""Turn raw feed entries into timeline articles tagged with author metadata."""

import html
import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

from ..models.content import UNKNOWN_SOURCE, Article, UserProfile
from .rss import FeedResult


logger = logging.getLogger(__name__)

DATE_FIELDS = ("published", "updated", "created")


def parse_entry_date(entry: dict) -> Optional[datetime]:
    """
    Parse the publication date of a feed entry.
    Falls back from published to updated to created; None when no field parses.
    """
    for name in DATE_FIELDS:
        parsed = entry.get(f"{name}_parsed")
        if parsed:
            try:
                # feedparser normalizes *_parsed to UTC
                return datetime(*parsed[:6], tzinfo=timezone.utc)
            except (TypeError, ValueError):
                pass

        raw = entry.get(name)
        if raw:
            try:
                value = parsedate_to_datetime(raw)
            except (TypeError, ValueError):
                continue
            if value.tzinfo is None:
                value = value.replace(tzinfo=timezone.utc)
            return value

    return None


def clean_title(text: str) -> str:
    """Collapse whitespace only. feedparser has already decoded titles to plain text."""
    return re.sub(r"\s+", " ", text or "").strip()


def strip_html(text: str) -> str:
    """Remove tags, decode entities and collapse whitespace."""
    clean = re.sub(r"<[^>]+>", " ", text or "")
    clean = html.unescape(clean)
    return re.sub(r"\s+", " ", clean).strip()


def entry_snippet(entry: dict) -> str:
    """Plain-text excerpt from summary, falling back to the first content block."""
    body = entry.get("summary") or entry.get("description") or ""
    if not body and entry.get("content"):
        body = entry["content"][0].get("value", "")
    return strip_html(body)


def normalize_entry(entry: dict, site_name: str, user: UserProfile) -> Optional[Article]:
    """Build one article, or None when the entry has no usable publication date."""
    pub_date = parse_entry_date(entry)
    if pub_date is None:
        return None

    return Article(
        title=clean_title(entry.get("title", "")),
        link=entry.get("link") or entry.get("id"),
        pub_date=pub_date,
        content_snippet=entry_snippet(entry),
        site_name=site_name,
        author=user.name,
        author_avatar=user.avatar,
        tags=list(user.tags),
        is_during_employment=user.was_active_at(pub_date),
    )


def normalize_entries(feed: FeedResult, user: UserProfile) -> list[Article]:
    """Normalize every dated entry of a feed, keeping feed order."""
    site_name = feed.title or UNKNOWN_SOURCE
    articles = []
    dropped = 0

    for entry in feed.entries:
        article = normalize_entry(entry, site_name, user)
        if article is None:
            dropped += 1
            continue
        articles.append(article)

    if dropped:
        logger.debug(f"Dropped {dropped} undated entries from {feed.url}")

    return articles
