"""
Read-through cache for tenant datasets.

Lookups go in-process index -> scratch metadata file -> object store. An
entry is fresh while ``now - fetched_at < expiration_seconds``; a fresh entry
is served from the scratch directory without touching the store. A stale or
absent entry is refreshed from the store and republished.

Requests whose routing tokens contain a bypass token skip the cache entirely:
the store is read and nothing is written.

Concurrent refreshes of one dataset are not coalesced. Every file write is
published atomically, so a reader sees one complete fetch or another.
"""

import json
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence, TYPE_CHECKING

from shared.logging import get_logger
from shared.errors import CacheCorrupt, DatasetUnavailable
from .models import CacheMetadata, MetadataIndex, Record, validate_records
from .scratch_store import ScratchStore

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


DEFAULT_EXPIRATION_SECONDS = 5 * 60
DEFAULT_BYPASS_TOKENS = frozenset({"debug", "test"})


class DatasetSource(Protocol):
    async def fetch(self, dataset_id: str) -> bytes: ...


class DatasetCache:
    """Serves dataset records, refreshing from the object store when stale."""

    def __init__(
        self,
        source: DatasetSource,
        scratch: ScratchStore,
        *,
        index: Optional[MetadataIndex] = None,
        expiration_seconds: float = DEFAULT_EXPIRATION_SECONDS,
        bypass_tokens: Iterable[str] = DEFAULT_BYPASS_TOKENS,
        clock: Callable[[], float] = time.time,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.source = source
        self.scratch = scratch
        self.index = index if index is not None else MetadataIndex()
        self.expiration_seconds = expiration_seconds
        self.bypass_tokens = frozenset(bypass_tokens)
        self.metrics = metrics
        self.logger = get_logger("gateway.dataset_cache")
        self._clock = clock
        self._counters: Dict[str, int] = {"hit": 0, "miss": 0, "bypass": 0}

    def should_bypass(self, routing_tokens: Sequence[str]) -> bool:
        return any(token in self.bypass_tokens for token in routing_tokens)

    async def get(self, dataset_id: str, routing_tokens: Sequence[str] = ()) -> List[Record]:
        """Return the records of a dataset.

        Raises DatasetUnavailable when the store cannot supply the data and
        CacheCorrupt when fresh metadata points at an unreadable payload.
        """
        if not dataset_id:
            raise ValueError("dataset_id must not be empty")

        if self.should_bypass(routing_tokens):
            self._record("bypass")
            self.logger.info("Cache bypass", dataset_id=dataset_id)
            return await self._fetch(dataset_id)

        metadata = await self._lookup_metadata(dataset_id)
        if metadata is not None and metadata.is_fresh(self._clock(), self.expiration_seconds):
            records = await self._load_payload(dataset_id)
            self._record("hit")
            self.logger.info("Cache hit", dataset_id=dataset_id)
            return records

        self._record("miss")
        self.logger.info(
            "Cache miss, downloading data",
            dataset_id=dataset_id,
            stale=metadata is not None,
        )
        records = await self._fetch(dataset_id)
        await self._publish(dataset_id, records)
        return records

    async def _lookup_metadata(self, dataset_id: str) -> Optional[CacheMetadata]:
        metadata = self.index.get(dataset_id)
        if metadata is not None:
            return metadata

        metadata = await self.scratch.read_metadata(dataset_id)
        if metadata is not None:
            self.index.set(metadata)
        return metadata

    async def _load_payload(self, dataset_id: str) -> List[Record]:
        try:
            return await self.scratch.read_payload(dataset_id)
        except (OSError, ValueError) as exc:
            self.logger.error("Cached payload unreadable despite fresh metadata", dataset_id=dataset_id, error=str(exc))
            raise CacheCorrupt(dataset_id, str(exc)) from exc

    async def _fetch(self, dataset_id: str) -> List[Record]:
        try:
            raw = await self.source.fetch(dataset_id)
        except Exception as exc:
            self.logger.error("Dataset fetch failed", dataset_id=dataset_id, error=str(exc))
            raise DatasetUnavailable(dataset_id) from exc

        try:
            return validate_records(json.loads(raw))
        except ValueError as exc:
            self.logger.error("Dataset payload is not a record list", dataset_id=dataset_id, error=str(exc))
            raise DatasetUnavailable(dataset_id, "Dataset payload is invalid") from exc

    async def _publish(self, dataset_id: str, records: List[Record]) -> None:
        """Payload first, then durable metadata, then the in-process index."""
        metadata = CacheMetadata(dataset_id=dataset_id, fetched_at=self._clock())
        try:
            await self.scratch.write_payload(dataset_id, records)
            await self.scratch.write_metadata(metadata)
        except OSError as exc:
            # The caller still gets the fetched data; the next request refetches
            self.logger.warning("Failed to persist cache entry", dataset_id=dataset_id, error=str(exc))
            return
        self.index.set(metadata)

    async def evict(self, dataset_id: str) -> None:
        """Drop a dataset from the index and the scratch directory."""
        self.index.discard(dataset_id)
        await self.scratch.remove(dataset_id)
        self.logger.info("Cache entry evicted", dataset_id=dataset_id)

    async def purge_expired(self) -> List[str]:
        """Evict expired entries and sweep orphaned files; returns the evicted ids.

        Meant for startup, before any request is publishing.
        """
        now = self._clock()
        evicted = []
        for dataset_id in await self.scratch.list_dataset_ids():
            metadata = await self.scratch.read_metadata(dataset_id)
            if metadata is None or not metadata.is_fresh(now, self.expiration_seconds):
                await self.evict(dataset_id)
                evicted.append(dataset_id)

        if evicted:
            self.logger.info("Purged expired cache entries", count=len(evicted))

        # Interrupted publishes leave temp files or a payload with no metadata
        orphans = await self.scratch.sweep_orphans()
        if orphans:
            self.logger.info("Removed orphaned cache files", files=orphans)
        return evicted

    def stats(self) -> Dict[str, Any]:
        return {
            "tracked_entries": len(self.index),
            "hits": self._counters["hit"],
            "misses": self._counters["miss"],
            "bypasses": self._counters["bypass"],
            "expiration_seconds": self.expiration_seconds,
            "bypass_tokens": sorted(self.bypass_tokens),
            "cache_dir": str(self.scratch.cache_dir),
        }

    def _record(self, result: str) -> None:
        self._counters[result] += 1
        if not self.metrics:
            return
        try:
            self.metrics.increment_counter("dataset_cache_requests_total", result=result)
        except Exception as exc:  # pragma: no cover - metrics failures should never break lookups
            self.logger.debug("Failed to record cache metrics", error=str(exc))
