"""Feed aggregator: fetch every member's sources and merge them into one timeline."""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from ..models.content import Article, MembersConfig, UserProfile
from .normalizer import normalize_entries
from .rss import FeedResult, RSSConnector


logger = logging.getLogger(__name__)


def sort_articles(articles: list[Article]) -> list[Article]:
    """Newest first. sorted() is stable, so equal timestamps keep encounter order."""
    return sorted(articles, key=lambda article: article.pub_date, reverse=True)


class FeedAggregator:
    """
    Builds the aggregate timeline from the members config.

    Members are processed one after another; the sources of a single member
    are fetched concurrently. Used by the offline generator, the refresh
    endpoint and the API's live fallback alike.
    """

    def __init__(
        self,
        members: MembersConfig,
        connector: Optional[RSSConnector] = None,
        dedupe_sources: bool = True,
    ):
        self.members = members
        self.connector = connector or RSSConnector()
        self.dedupe_sources = dedupe_sources
        self.last_collected: Optional[datetime] = None
        self.failed_sources: list[str] = []

    def plan_sources(self) -> list[tuple[UserProfile, list[str]]]:
        """
        Decide which URLs each member contributes.
        With deduplication, a URL is attributed only to the first member declaring it.
        Repeats within one member's own list are kept.
        """
        seen: set[str] = set()
        plan = []

        for user in self.members.users:
            urls = []
            for url in user.sources:
                if self.dedupe_sources and url in seen:
                    logger.info(f"Skipping duplicate source {url} for {user.name}")
                    continue
                urls.append(url)
            if self.dedupe_sources:
                seen.update(urls)
            plan.append((user, urls))

        return plan

    async def collect(self) -> list[Article]:
        """Fetch, normalize and sort articles for every member."""
        all_articles: list[Article] = []
        self.failed_sources = []

        async with self.connector.client() as client:
            for user, urls in self.plan_sources():
                if not urls:
                    continue
                articles = await self._collect_user(client, user, urls)
                all_articles.extend(articles)

        self.last_collected = datetime.now()
        logger.info(
            f"Collected {len(all_articles)} articles from {len(self.members.users)} users "
            f"({len(self.failed_sources)} sources failed)"
        )

        return sort_articles(all_articles)

    async def _collect_user(self, client, user: UserProfile, urls: list[str]) -> list[Article]:
        tasks = [self.connector.fetch_feed_or_empty(url, client) for url in urls]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        articles = []
        for url, result in zip(urls, results):
            if isinstance(result, BaseException):
                logger.error(f"Unexpected error fetching {url}: {result!r}")
                self.failed_sources.append(url)
                continue
            if result.error:
                self.failed_sources.append(url)
            articles.extend(normalize_entries(result, user))

        logger.info(f"Collected {len(articles)} articles for {user.name} from {len(urls)} sources")
        return articles


async def collect_articles(
    members: MembersConfig,
    connector: Optional[RSSConnector] = None,
    dedupe_sources: bool = True,
) -> list[Article]:
    """Convenience wrapper around FeedAggregator.collect."""
    return await FeedAggregator(members, connector, dedupe_sources).collect()
