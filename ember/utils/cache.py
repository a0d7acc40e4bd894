"""
Caching Module for Ember.

The aggregate timeline and the member list are both served from a
process-lifetime in-memory entry that expires by age, backed by a JSON
snapshot on disk and, as a last resort, by a rebuild from the live sources.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar, Union

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


@dataclass
class CacheEntry(Generic[T]):
    """A captured collection and the moment it was captured."""
    value: list[T]
    captured_at: float

    def age(self, now: float) -> float:
        return now - self.captured_at


class JsonSnapshotFile:
    """
    A JSON document wrapping a single list, e.g. {"articles": [...]}.

    Reads never raise: a missing, unreadable, malformed or empty snapshot
    is reported as None. Writes are best-effort and report success as a bool.
    """

    def __init__(self, path: Union[str, Path], key: str):
        self.path = Path(path)
        self.key = key

    def exists(self) -> bool:
        return self.path.exists()

    def read(self) -> Optional[list[dict]]:
        if not self.path.exists():
            return None

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read snapshot {self.path}: {e}")
            return None

        records = data.get(self.key) if isinstance(data, dict) else None
        if not isinstance(records, list) or not records:
            logger.warning(f"Snapshot {self.path} has no '{self.key}' entries")
            return None

        return records

    def write(self, records: list[dict]) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump({self.key: records}, f, indent=2, ensure_ascii=False)
            tmp_path.replace(self.path)
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Failed to write snapshot {self.path}: {e}")
            return False


def dump_models(items: list[BaseModel]) -> list[dict]:
    """Serialize models the way they are stored in snapshots."""
    return [item.model_dump(mode="json", by_alias=True) for item in items]


class SnapshotCache(Generic[T]):
    """
    Time-expiring in-memory cache over a JSON snapshot.

    Lookup order when the in-memory entry is missing or too old:
    persisted snapshot, then rebuild (persisted best-effort).
    Refresh-and-swap runs under a lock so overlapping expiries rebuild once.
    """

    def __init__(
        self,
        snapshot: JsonSnapshotFile,
        model: type[T],
        rebuild: Callable[[], Awaitable[list[T]]],
        ttl_seconds: float = 600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.snapshot = snapshot
        self.model = model
        self.rebuild = rebuild
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entry: Optional[CacheEntry[T]] = None
        self._lock = asyncio.Lock()
        self.rebuild_count = 0

    @property
    def label(self) -> str:
        return self.snapshot.key

    def _fresh_value(self) -> Optional[list[T]]:
        entry = self._entry
        if entry is None or entry.age(self._clock()) >= self.ttl_seconds:
            return None
        return entry.value

    def _swap(self, items: list[T]) -> list[T]:
        self._entry = CacheEntry(value=list(items), captured_at=self._clock())
        return self._entry.value

    def load_snapshot(self) -> Optional[list[T]]:
        """
        Parse the persisted snapshot, skipping records that fail validation.
        None when the snapshot is absent or no record is valid.
        """
        records = self.snapshot.read()
        if records is None:
            return None

        items = []
        for index, record in enumerate(records):
            try:
                items.append(self.model.model_validate(record))
            except ValidationError as e:
                logger.warning(f"Skipping invalid record {index} in {self.snapshot.path}: {e}")

        if not items:
            logger.warning(f"Snapshot {self.snapshot.path} has no valid {self.label}")
            return None

        return items

    def persist(self, items: list[T]) -> bool:
        return self.snapshot.write(dump_models(items))

    async def get_all(self) -> list[T]:
        value = self._fresh_value()
        if value is not None:
            return value

        async with self._lock:
            # Another task may have refreshed while we waited
            value = self._fresh_value()
            if value is not None:
                return value

            items = self.load_snapshot()
            if items:
                logger.info(f"Loaded {len(items)} {self.label} from {self.snapshot.path}")
                return self._swap(items)

            logger.warning(
                f"No valid {self.snapshot.path.name} found. This should not happen in production! "
                "Run `ember-generate` to pre-generate the snapshot."
            )
            items = await self.rebuild()
            self.rebuild_count += 1
            if not self.persist(items):
                logger.error(f"Could not save {self.label} snapshot; continuing with in-memory data")
            return self._swap(items)

    async def refresh(self, rebuild: Optional[Callable[[], Awaitable[list[T]]]] = None) -> list[T]:
        """Rebuild now, regardless of age, and swap the result in."""
        async with self._lock:
            items = await (rebuild or self.rebuild)()
            self.rebuild_count += 1
            return self._swap(items)

    async def replace(self, items: list[T]) -> list[T]:
        """Swap in a collection produced elsewhere (e.g. by the generator)."""
        async with self._lock:
            return self._swap(items)

    def invalidate(self):
        self._entry = None

    def stats(self) -> dict[str, Any]:
        entry = self._entry
        return {
            "cached": entry is not None,
            "size": len(entry.value) if entry else 0,
            "age_seconds": round(entry.age(self._clock()), 3) if entry else None,
            "ttl_seconds": self.ttl_seconds,
            "snapshot": str(self.snapshot.path),
            "snapshot_exists": self.snapshot.exists(),
            "rebuilds": self.rebuild_count,
        }
