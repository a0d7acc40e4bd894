"""RSS/Atom feed connector."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

import feedparser
import httpx

from ..config.settings import DEFAULT_USER_AGENT, Settings


logger = logging.getLogger(__name__)


class FeedParseError(Exception):
    """The response body is not a usable RSS/Atom document."""
    pass


class FeedFetchError(Exception):
    """A feed could not be fetched even after retrying."""
    pass


@dataclass
class FeedResult:
    """Parsed feed: its title and raw feedparser entries."""
    url: str
    title: Optional[str] = None
    entries: list = field(default_factory=list)
    error: Optional[str] = None


class RSSConnector:
    """
    Fetches RSS/Atom feeds over HTTP and parses them with feedparser.
    Each feed is retried a fixed number of times with a fixed delay.
    """

    def __init__(
        self,
        timeout: float = 60.0,
        retries: int = 3,
        retry_delay: float = 1.0,
        user_agent: str = DEFAULT_USER_AGENT,
        max_redirects: int = 5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.retries = retries
        self.retry_delay = retry_delay
        self.user_agent = user_agent
        self.max_redirects = max_redirects
        self.transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "RSSConnector":
        return cls(
            timeout=timeout or settings.generate_timeout_seconds,
            retries=settings.fetch_retries,
            retry_delay=settings.retry_delay_seconds,
            user_agent=settings.user_agent,
            max_redirects=settings.max_redirects,
            transport=transport,
        )

    def client(self) -> httpx.AsyncClient:
        """Create an HTTP client configured for feed fetching."""
        return httpx.AsyncClient(
            timeout=self.timeout,
            headers={"User-Agent": self.user_agent},
            follow_redirects=True,
            max_redirects=self.max_redirects,
            transport=self.transport,
        )

    async def fetch_feed(self, url: str, client: Optional[httpx.AsyncClient] = None) -> FeedResult:
        """
        Fetch and parse a single feed, retrying on failure.

        Raises:
            FeedFetchError: when every attempt failed
        """
        if client is None:
            async with self.client() as own_client:
                return await self.fetch_feed(url, own_client)

        last_error: Optional[Exception] = None
        for attempt in range(self.retries + 1):
            try:
                logger.info(f"Fetching feed: {url}")
                return await self._fetch_once(client, url)
            except (httpx.HTTPError, FeedParseError) as e:
                last_error = e
                remaining = self.retries - attempt
                if remaining > 0:
                    logger.warning(f"Retrying feed ({remaining} attempts left): {url}: {e}")
                    await asyncio.sleep(self.retry_delay)

        raise FeedFetchError(
            f"Failed to fetch {url} after {self.retries + 1} attempts: {last_error}"
        ) from last_error

    async def fetch_feed_or_empty(self, url: str, client: Optional[httpx.AsyncClient] = None) -> FeedResult:
        """Fetch a feed; a source that keeps failing contributes nothing."""
        try:
            return await self.fetch_feed(url, client)
        except FeedFetchError as e:
            logger.error(f"Error parsing feed {url}: {e}")
            return FeedResult(url=url, error=str(e))

    async def _fetch_once(self, client: httpx.AsyncClient, url: str) -> FeedResult:
        response = await client.get(url)
        response.raise_for_status()
        return self.parse(url, response.content)

    @staticmethod
    def parse(url: str, content: bytes) -> FeedResult:
        """Parse a feed document."""
        feed = feedparser.parse(content)

        if not feed.entries and (feed.bozo or not feed.version):
            reason = feed.get("bozo_exception") or "not an RSS/Atom document"
            raise FeedParseError(f"Could not parse feed {url}: {reason}")

        if feed.bozo and feed.get("bozo_exception"):
            logger.warning(f"Feed parsing warning for {url}: {feed.bozo_exception}")

        return FeedResult(
            url=url,
            title=feed.feed.get("title") or None,
            entries=list(feed.entries),
        )
