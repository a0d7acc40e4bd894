"""
Application-owned stores for the aggregate timeline and the member list.

Both are created once per application (see ember.app.main) and handed to
request handlers; nothing here is module-global state.
"""

import logging
from typing import Optional

from ..aggregation.rss import RSSConnector
from ..config.members import load_members
from ..config.settings import Settings
from ..generator import GenerationError, feed_snapshot, generate_feed, users_snapshot
from ..models.content import Article, UserProfile
from ..utils.cache import SnapshotCache


logger = logging.getLogger(__name__)


class ArticleStore(SnapshotCache[Article]):
    """Sorted aggregate of all articles, served from feed.json."""

    def __init__(self, settings: Settings, connector: Optional[RSSConnector] = None):
        self.settings = settings
        # The API fallback fetches with a shorter timeout than the offline generator
        self.connector = connector or RSSConnector.from_settings(
            settings, timeout=settings.fallback_timeout_seconds
        )
        super().__init__(
            snapshot=feed_snapshot(settings),
            model=Article,
            rebuild=self._collect_live,
            ttl_seconds=settings.cache_ttl_seconds,
        )

    async def _collect_live(self) -> list[Article]:
        result = await generate_feed(self.settings, persist=False, connector=self.connector)
        if not result.success:
            raise GenerationError(result.error or "Live feed aggregation failed")
        return result.articles


class UserDirectory(SnapshotCache[UserProfile]):
    """Member list served from users.json, falling back to config.yaml."""

    def __init__(self, settings: Settings):
        self.settings = settings
        super().__init__(
            snapshot=users_snapshot(settings),
            model=UserProfile,
            rebuild=self._load_config,
            ttl_seconds=settings.cache_ttl_seconds,
        )

    async def _load_config(self) -> list[UserProfile]:
        return list(load_members(self.settings.config_path).users)

    async def find(self, name: str) -> Optional[UserProfile]:
        for user in await self.get_all():
            if user.name == name:
                return user
        return None

    async def active(self) -> list[UserProfile]:
        """Members with no recorded departure."""
        return [user for user in await self.get_all() if user.is_active]

    async def with_tag(self, tag: str) -> list[UserProfile]:
        return [user for user in await self.get_all() if tag in user.tags]

    async def all_tags(self) -> list[str]:
        tags = set()
        for user in await self.get_all():
            tags.update(user.tags)
        return sorted(tags)
