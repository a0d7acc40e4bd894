"""Feed fetching, normalization and aggregation."""

from .aggregator import FeedAggregator, collect_articles, sort_articles
from .normalizer import normalize_entries, parse_entry_date, strip_html
from .rss import FeedFetchError, FeedParseError, FeedResult, RSSConnector

__all__ = [
    "FeedAggregator",
    "FeedFetchError",
    "FeedParseError",
    "FeedResult",
    "RSSConnector",
    "collect_articles",
    "normalize_entries",
    "parse_entry_date",
    "sort_articles",
    "strip_html",
]
