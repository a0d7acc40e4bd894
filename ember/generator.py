"""
Offline feed generation.

Fetches every member's sources, normalizes and sorts the articles, and writes
the feed.json / users.json snapshots the API serves from.

Usage:
    ember-generate
    python generate_feed.py --config config.yaml --data-dir public/data
"""

import argparse
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from .aggregation.aggregator import FeedAggregator
from .aggregation.rss import RSSConnector
from .config.members import load_members
from .config.settings import Settings, get_settings
from .models.content import Article, HomeSettings, MembersConfig, UserProfile
from .utils.cache import JsonSnapshotFile, dump_models
from .utils.logger import setup_logging


logger = logging.getLogger(__name__)


class GenerationError(Exception):
    """Raised when a generation run that must produce data did not."""
    pass


@dataclass
class GenerationResult:
    """Outcome of one generation run."""
    success: bool
    articles: list[Article] = field(default_factory=list)
    users: list[UserProfile] = field(default_factory=list)
    home: Optional[HomeSettings] = None
    error: Optional[str] = None
    duration_ms: int = 0
    failed_sources: list[str] = field(default_factory=list)
    persisted: bool = False


def feed_snapshot(settings: Settings) -> JsonSnapshotFile:
    return JsonSnapshotFile(settings.feed_snapshot_path, "articles")


def users_snapshot(settings: Settings) -> JsonSnapshotFile:
    return JsonSnapshotFile(settings.users_snapshot_path, "users")


def write_snapshots(settings: Settings, articles: list[Article], users: list[UserProfile]) -> bool:
    """Write both snapshots. Returns False if either write failed."""
    feed_ok = feed_snapshot(settings).write(dump_models(articles))
    users_ok = users_snapshot(settings).write(dump_models(users))

    if feed_ok:
        logger.info(f"Generated {settings.feed_snapshot_name} with {len(articles)} articles")
    if users_ok:
        logger.info(f"Generated {settings.users_snapshot_name} with {len(users)} users")

    return feed_ok and users_ok


async def generate_feed(
    settings: Optional[Settings] = None,
    members: Optional[MembersConfig] = None,
    persist: bool = True,
    connector: Optional[RSSConnector] = None,
) -> GenerationResult:
    """
    Run the fetch-normalize-sort pipeline once.

    Args:
        settings: Settings to use (defaults to environment settings)
        members: Members to aggregate (defaults to loading settings.config_path)
        persist: Write feed.json and users.json when True
        connector: Feed connector (defaults to one built from settings)

    Returns:
        GenerationResult; errors are captured rather than raised
    """
    settings = settings or get_settings()
    started = time.monotonic()

    try:
        if members is None:
            members = load_members(settings.config_path)

        aggregator = FeedAggregator(
            members,
            connector or RSSConnector.from_settings(settings),
            dedupe_sources=settings.dedupe_sources,
        )
        logger.info("Fetching RSS feeds...")
        articles = await aggregator.collect()

        result = GenerationResult(
            success=True,
            articles=articles,
            users=list(members.users),
            home=members.home,
            failed_sources=list(aggregator.failed_sources),
        )

        if persist:
            result.persisted = write_snapshots(settings, articles, result.users)
            if not result.persisted:
                result.success = False
                result.error = f"Failed to write snapshots to {settings.data_dir}"

    except Exception as e:
        logger.exception(f"Error generating feed JSON: {e}")
        result = GenerationResult(success=False, error=str(e))

    result.duration_ms = int((time.monotonic() - started) * 1000)
    return result


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate feed.json and users.json snapshots")
    parser.add_argument("--config", help="Path to config.yaml")
    parser.add_argument("--data-dir", help="Directory to write snapshots into")
    parser.add_argument(
        "--no-dedupe",
        action="store_true",
        help="Fetch a source URL once per declaring user instead of once overall",
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for scheduled invocation. Returns the process exit code."""
    args = parse_args(argv)
    settings = get_settings()

    overrides = {}
    if args.config:
        overrides["config_path"] = args.config
    if args.data_dir:
        overrides["data_dir"] = args.data_dir
    if args.no_dedupe:
        overrides["dedupe_sources"] = False
    if overrides:
        settings = settings.model_copy(update=overrides)

    setup_logging(json_log_path=settings.log_json_path)

    result = asyncio.run(generate_feed(settings))
    if result.success:
        logger.info(f"Feed generation finished in {result.duration_ms}ms")
        return 0

    logger.error(f"Feed generation failed: {result.error}")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
