"""
Unit tests for caching utilities.
"""

import asyncio
import json
import pytest


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class CountingRebuild:
    """Rebuild callback that records how often it ran."""

    def __init__(self, items, delay: float = 0):
        self.items = items
        self.delay = delay
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return list(self.items)


def make_cache(tmp_path, rebuild, clock=None, ttl=600):
    from ember.models.content import Article
    from ember.utils.cache import JsonSnapshotFile, SnapshotCache

    return SnapshotCache(
        snapshot=JsonSnapshotFile(tmp_path / "data" / "feed.json", "articles"),
        model=Article,
        rebuild=rebuild,
        ttl_seconds=ttl,
        clock=clock or FakeClock(),
    )


class TestJsonSnapshotFile:
    """Tests for JsonSnapshotFile."""

    def test_missing(self, tmp_path):
        """Test a missing snapshot reads as None."""
        from ember.utils.cache import JsonSnapshotFile

        snapshot = JsonSnapshotFile(tmp_path / "feed.json", "articles")
        assert not snapshot.exists()
        assert snapshot.read() is None

    def test_write_and_read(self, tmp_path):
        """Test records are wrapped under the key."""
        from ember.utils.cache import JsonSnapshotFile

        snapshot = JsonSnapshotFile(tmp_path / "nested" / "feed.json", "articles")
        assert snapshot.write([{"title": "a"}])

        with open(tmp_path / "nested" / "feed.json", encoding="utf-8") as f:
            assert json.load(f) == {"articles": [{"title": "a"}]}
        assert snapshot.read() == [{"title": "a"}]

    def test_malformed_json(self, tmp_path):
        """Test unparseable JSON reads as None."""
        from ember.utils.cache import JsonSnapshotFile

        path = tmp_path / "feed.json"
        path.write_text("{not json", encoding="utf-8")
        assert JsonSnapshotFile(path, "articles").read() is None

    def test_wrong_shape(self, tmp_path):
        """Test a document without the key, or with an empty list, reads as None."""
        from ember.utils.cache import JsonSnapshotFile

        path = tmp_path / "feed.json"
        path.write_text(json.dumps({"users": [{"name": "a"}]}), encoding="utf-8")
        assert JsonSnapshotFile(path, "articles").read() is None

        path.write_text(json.dumps({"articles": []}), encoding="utf-8")
        assert JsonSnapshotFile(path, "articles").read() is None

        path.write_text(json.dumps([1, 2, 3]), encoding="utf-8")
        assert JsonSnapshotFile(path, "articles").read() is None

    def test_write_failure_returns_false(self, tmp_path):
        """Test an unwritable location reports failure instead of raising."""
        from ember.utils.cache import JsonSnapshotFile

        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory", encoding="utf-8")

        assert JsonSnapshotFile(blocker / "feed.json", "articles").write([{"a": 1}]) is False


class TestSnapshotCache:
    """Tests for SnapshotCache."""

    @pytest.mark.asyncio
    async def test_prefers_snapshot_over_rebuild(self, tmp_path, sample_articles):
        """Test a valid snapshot is served without rebuilding."""
        from ember.utils.cache import dump_models

        rebuild = CountingRebuild([])
        cache = make_cache(tmp_path, rebuild)
        cache.snapshot.write(dump_models(sample_articles))

        articles = await cache.get_all()

        assert len(articles) == 25
        assert articles[0].title == "Article 0"
        assert rebuild.calls == 0

    @pytest.mark.asyncio
    async def test_rebuild_when_snapshot_missing(self, tmp_path, sample_articles):
        """Test a missing snapshot triggers a rebuild that is then persisted."""
        rebuild = CountingRebuild(sample_articles[:3])
        cache = make_cache(tmp_path, rebuild)

        articles = await cache.get_all()

        assert len(articles) == 3
        assert rebuild.calls == 1
        assert cache.snapshot.exists()
        assert len(cache.snapshot.read()) == 3

    @pytest.mark.asyncio
    async def test_rebuild_when_snapshot_malformed(self, tmp_path, sample_articles):
        """Test records that fail validation fall through to a rebuild."""
        rebuild = CountingRebuild(sample_articles[:2])
        cache = make_cache(tmp_path, rebuild)
        cache.snapshot.write([{"title": "no date or author"}])

        articles = await cache.get_all()

        assert len(articles) == 2
        assert rebuild.calls == 1

    @pytest.mark.asyncio
    async def test_invalid_record_skipped(self, tmp_path, sample_articles):
        """Test one bad record does not discard the rest of the snapshot."""
        from ember.utils.cache import dump_models

        rebuild = CountingRebuild([])
        cache = make_cache(tmp_path, rebuild)

        records = dump_models(sample_articles[:3])
        records[1]["pubDate"] = "not a date"
        records[2]["pubDate"] = "01 May 2021 09:00:00 GMT"
        cache.snapshot.write(records)

        articles = await cache.get_all()

        assert [a.title for a in articles] == ["Article 0", "Article 2"]
        assert rebuild.calls == 0

    @pytest.mark.asyncio
    async def test_fresh_entry_served_from_memory(self, tmp_path, sample_articles):
        """Test reads within the TTL do not touch the snapshot or the rebuild."""
        clock = FakeClock()
        rebuild = CountingRebuild(sample_articles)
        cache = make_cache(tmp_path, rebuild, clock=clock, ttl=600)

        await cache.get_all()
        cache.snapshot.path.unlink()
        clock.advance(599)
        await cache.get_all()

        assert rebuild.calls == 1

    @pytest.mark.asyncio
    async def test_expired_entry_reloaded(self, tmp_path, sample_articles, article_factory):
        """Test an entry at or past the TTL is reloaded from the snapshot."""
        from ember.utils.cache import dump_models

        clock = FakeClock()
        rebuild = CountingRebuild([])
        cache = make_cache(tmp_path, rebuild, clock=clock, ttl=600)
        cache.snapshot.write(dump_models(sample_articles))

        assert len(await cache.get_all()) == 25

        cache.snapshot.write(dump_models([article_factory(99)]))
        clock.advance(600)

        articles = await cache.get_all()
        assert [a.title for a in articles] == ["Article 99"]
        assert rebuild.calls == 0

    @pytest.mark.asyncio
    async def test_persist_failure_still_serves(self, tmp_path, sample_articles):
        """Test a failed snapshot write does not fail the read."""
        from ember.models.content import Article
        from ember.utils.cache import JsonSnapshotFile, SnapshotCache

        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")

        rebuild = CountingRebuild(sample_articles[:4])
        cache = SnapshotCache(
            snapshot=JsonSnapshotFile(blocker / "feed.json", "articles"),
            model=Article,
            rebuild=rebuild,
            clock=FakeClock(),
        )

        assert len(await cache.get_all()) == 4

    @pytest.mark.asyncio
    async def test_rebuild_error_propagates(self, tmp_path):
        """Test a failing rebuild raises and caches nothing."""
        async def broken():
            raise RuntimeError("sources unavailable")

        cache = make_cache(tmp_path, broken)

        with pytest.raises(RuntimeError):
            await cache.get_all()
        assert cache.stats()["cached"] is False

    @pytest.mark.asyncio
    async def test_concurrent_expiry_rebuilds_once(self, tmp_path, sample_articles):
        """Test overlapping reads share a single rebuild."""
        rebuild = CountingRebuild(sample_articles, delay=0.05)
        cache = make_cache(tmp_path, rebuild)

        results = await asyncio.gather(*(cache.get_all() for _ in range(5)))

        assert rebuild.calls == 1
        assert all(len(result) == 25 for result in results)

    @pytest.mark.asyncio
    async def test_replace_and_invalidate(self, tmp_path, sample_articles):
        """Test replace swaps the entry and invalidate drops it."""
        rebuild = CountingRebuild(sample_articles)
        cache = make_cache(tmp_path, rebuild)

        await cache.replace(sample_articles[:1])
        assert len(await cache.get_all()) == 1
        assert rebuild.calls == 0

        cache.invalidate()
        assert len(await cache.get_all()) == 25
        assert rebuild.calls == 1

    @pytest.mark.asyncio
    async def test_refresh_ignores_age(self, tmp_path, sample_articles):
        """Test refresh rebuilds even when the entry is fresh."""
        rebuild = CountingRebuild(sample_articles)
        cache = make_cache(tmp_path, rebuild)

        await cache.replace(sample_articles[:1])
        refreshed = await cache.refresh()

        assert len(refreshed) == 25
        assert rebuild.calls == 1

    @pytest.mark.asyncio
    async def test_stats(self, tmp_path, sample_articles):
        """Test stats describe the entry and snapshot."""
        clock = FakeClock()
        cache = make_cache(tmp_path, CountingRebuild(sample_articles), clock=clock)

        assert cache.stats()["cached"] is False

        await cache.get_all()
        clock.advance(5)
        stats = cache.stats()

        assert stats["cached"] is True
        assert stats["size"] == 25
        assert stats["age_seconds"] == 5
        assert stats["snapshot_exists"] is True
        assert stats["rebuilds"] == 1
