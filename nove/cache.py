"""Audio cache: payload store with LRU eviction and play-count admission."""

from __future__ import annotations

import dataclasses
import logging
import threading
from concurrent import futures
from typing import Any

import config
from nove.codecs import (
    SchemaError,
    decode_cache_meta,
    decode_play_count,
    encode_cache_meta,
    encode_play_count,
)
from nove.fetch import FetchError
from nove.models import (
    CachedItemSummary,
    CacheEntry,
    CacheStats,
    PlayCountRecord,
    PlayResult,
    TrackMetadata,
)
from nove.storage import KeyValueStore, StorageError
from nove.user_state import Clock, utcnow

logger = logging.getLogger(__name__)

CACHE_META_NAMESPACE = "cache_meta"
CACHE_BLOB_NAMESPACE = "cache_blob"
PLAY_COUNT_NAMESPACE = "play_counts"

_MB = 1024 * 1024


def _to_mb(size_bytes: int) -> float:
    return round(size_bytes / _MB, 2)


class CacheStore:
    """Durable store of audio payloads keyed by item id.

    Entry metadata and payload bytes live in separate namespaces so eviction
    can enumerate sizes and access times without reading payloads.  The
    store also keeps the admission play counters, so :meth:`clear` can drop
    both in one unit of work.

    Eviction, the existence check and the write happen under one lock, so two
    admissions cannot both pass the budget check before either writes.

    Args:
        store: Backing key-value store.
        clock: Source of "now".
        max_total_bytes: Byte budget across all entries.
        max_items: Entry count budget.
        max_item_bytes: Largest payload accepted.
    """

    def __init__(
        self,
        store: KeyValueStore,
        clock: Clock = utcnow,
        max_total_bytes: int = config.MAX_CACHE_SIZE_MB * _MB,
        max_items: int = config.MAX_CACHE_ITEMS,
        max_item_bytes: int = config.MAX_ITEM_SIZE_MB * _MB,
    ) -> None:
        self._store = store
        self._clock = clock
        self._max_total_bytes = max_total_bytes
        self._max_items = max_items
        self._max_item_bytes = max_item_bytes
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Payloads
    # ------------------------------------------------------------------

    def is_cached(self, item_id: str) -> bool:
        try:
            return self._store.get(CACHE_META_NAMESPACE, item_id) is not None
        except StorageError as exc:
            logger.warning("Cache lookup failed for %r: %s", item_id, exc)
            return False

    def get_cached_payload(self, item_id: str) -> CacheEntry | None:
        """Return the cached entry for *item_id* and mark it as just accessed.

        Returns:
            The :class:`~nove.models.CacheEntry` including its payload, or
            ``None`` if the item is not cached.
        """
        with self._lock:
            try:
                raw_meta = self._store.get(CACHE_META_NAMESPACE, item_id)
                payload = self._store.get(CACHE_BLOB_NAMESPACE, item_id)
                if raw_meta is None or payload is None:
                    return None
                entry = decode_cache_meta(raw_meta, payload)
                entry.last_accessed_at = self._clock()
                self._store.put(CACHE_META_NAMESPACE, item_id, encode_cache_meta(entry))
            except SchemaError as exc:
                logger.warning("Ignoring unreadable cache entry %r: %s", item_id, exc)
                return None
            except StorageError as exc:
                logger.warning("Cache read failed for %r: %s", item_id, exc)
                return None
        logger.info('Serving "%s" from cache', entry.title or item_id)
        return entry

    def store(self, item_id: str, payload: bytes, metadata: TrackMetadata) -> bool:
        """Write *payload* under *item_id*, evicting old entries first.

        Idempotent: if *item_id* is already cached this is a successful no-op.

        Returns:
            ``True`` if the item is cached after the call, ``False`` if the
            payload is too large or the write failed.
        """
        size = len(payload)
        if size > self._max_item_bytes:
            logger.warning(
                '"%s" too large to cache (%.1fMB)', metadata.title or item_id, size / _MB
            )
            return False

        with self._lock:
            try:
                if self._store.get(CACHE_META_NAMESPACE, item_id) is not None:
                    logger.debug('"%s" already cached', metadata.title or item_id)
                    return True
                self._evict_locked()
                now = self._clock()
                entry = CacheEntry(
                    item_id=item_id,
                    payload=payload,
                    mime_type=metadata.mime_type,
                    size_bytes=size,
                    cached_at=now,
                    last_accessed_at=now,
                    title=metadata.title,
                    performer=metadata.performer,
                )
                self._store.put_many(
                    [
                        (CACHE_META_NAMESPACE, item_id, encode_cache_meta(entry)),
                        (CACHE_BLOB_NAMESPACE, item_id, payload),
                    ]
                )
            except StorageError as exc:
                logger.error('Failed to cache "%s": %s', metadata.title or item_id, exc)
                return False

        logger.info('Cached "%s" (%.1fMB)', metadata.title or item_id, size / _MB)
        return True

    def evict(self) -> list[str]:
        """Run eviction now; returns the evicted ids."""
        with self._lock:
            return self._evict_locked()

    def stats(self) -> CacheStats:
        try:
            entries = self._entries()
        except StorageError as exc:
            logger.warning("Cache stats unavailable: %s", exc)
            return CacheStats(count=0, total_size_mb=0.0)
        total = sum(e.size_bytes for e in entries)
        return CacheStats(
            count=len(entries),
            total_size_mb=_to_mb(total),
            items=[
                CachedItemSummary(title=e.title, performer=e.performer, size_mb=_to_mb(e.size_bytes))
                for e in entries
            ],
        )

    def clear(self) -> None:
        """Remove every cached payload and every play counter together."""
        try:
            with self._lock:
                self._store.clear(CACHE_META_NAMESPACE, CACHE_BLOB_NAMESPACE, PLAY_COUNT_NAMESPACE)
        except StorageError as exc:
            logger.warning("Failed to clear cache: %s", exc)
            return
        logger.info("Cache cleared")

    # ------------------------------------------------------------------
    # Play counters
    # ------------------------------------------------------------------

    def increment_play_count(
        self, item_id: str, source: str, metadata: TrackMetadata
    ) -> PlayCountRecord:
        """Bump and persist the admission counter for *item_id*.

        Raises:
            StorageError: If the counter cannot be read or written.
        """
        with self._lock:
            raw = self._store.get(PLAY_COUNT_NAMESPACE, item_id)
            count = 0
            if raw is not None:
                try:
                    count = decode_play_count(raw).count
                except SchemaError as exc:
                    logger.warning("Resetting unreadable play count for %r: %s", item_id, exc)
            record = PlayCountRecord(
                item_id=item_id,
                count=count + 1,
                last_played_at=self._clock(),
                source=source,
                title=metadata.title,
                performer=metadata.performer,
            )
            self._store.put(PLAY_COUNT_NAMESPACE, item_id, encode_play_count(record))
        return record

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _entries(self) -> list[CacheEntry]:
        """Decode every entry's metadata (payloads are not loaded)."""
        entries: list[CacheEntry] = []
        for item_id, raw in self._store.items(CACHE_META_NAMESPACE):
            try:
                entries.append(decode_cache_meta(raw))
            except SchemaError as exc:
                logger.warning("Skipping unreadable cache entry %r: %s", item_id, exc)
        return entries

    def _evict_locked(self) -> list[str]:
        """Drop least recently accessed entries until both budgets hold.

        Only entries already in the store are counted.  Caller holds the lock.
        """
        entries = sorted(self._entries(), key=lambda e: e.last_accessed_at)
        total = sum(e.size_bytes for e in entries)

        evicted: list[CacheEntry] = []
        while entries and (total > self._max_total_bytes or len(entries) > self._max_items):
            oldest = entries.pop(0)
            total -= oldest.size_bytes
            evicted.append(oldest)

        if evicted:
            self._delete_entries([e.item_id for e in evicted])
            for e in evicted:
                logger.info('Evicted "%s" from cache', e.title or e.item_id)
        return [e.item_id for e in evicted]

    def _delete_entries(self, item_ids: list[str]) -> None:
        self._store.delete_many(
            [(CACHE_META_NAMESPACE, i) for i in item_ids]
            + [(CACHE_BLOB_NAMESPACE, i) for i in item_ids]
        )


class CacheAdmissionPolicy:
    """Promotes frequently played tracks into the :class:`CacheStore`.

    Every play routed through :meth:`on_play` bumps a counter.  The play
    that makes the counter equal *threshold* schedules one background
    fetch-and-store; later plays never retrigger it, whether the first
    attempt succeeded or failed.

    Args:
        cache: Destination store.
        fetcher: Object with ``fetch(source) -> FetchedPayload`` that raises
            :class:`~nove.fetch.FetchError` on failure, usually a
            :class:`~nove.fetch.PayloadFetcher`.
        threshold: Plays before an item is cached.
        executor: Runs admissions; a small thread pool by default.
    """

    def __init__(
        self,
        cache: CacheStore,
        fetcher: Any,
        threshold: int = config.CACHE_THRESHOLD,
        executor: futures.Executor | None = None,
    ) -> None:
        self._cache = cache
        self._fetcher = fetcher
        self._threshold = threshold
        self._executor = executor or futures.ThreadPoolExecutor(
            max_workers=config.CACHE_FETCH_WORKERS, thread_name_prefix="cache-fetch"
        )
        self._lock = threading.Lock()
        self._inflight: set[str] = set()

    def record_play(self, item_id: str, source: str, metadata: TrackMetadata) -> PlayResult:
        """Count a play of *item_id*.

        Returns:
            ``should_cache`` is true once the count has reached the
            threshold; on storage failure the result is ``(False, 0)``.
        """
        try:
            record = self._cache.increment_play_count(item_id, source, metadata)
        except StorageError as exc:
            logger.warning("Failed to record play for %r: %s", item_id, exc)
            return PlayResult(should_cache=False, play_count=0)
        return PlayResult(should_cache=record.count >= self._threshold, play_count=record.count)

    def on_play(
        self, item_id: str, source: str, metadata: TrackMetadata
    ) -> futures.Future | None:
        """Record a play and schedule admission exactly at the threshold.

        Returns:
            The admission future when this play triggered one, else ``None``.
        """
        result = self.record_play(item_id, source, metadata)
        if result.should_cache and result.play_count == self._threshold:
            return self.schedule_admission(item_id, source, metadata)
        return None

    def schedule_admission(
        self, item_id: str, source: str, metadata: TrackMetadata
    ) -> futures.Future | None:
        """Run :meth:`cache_payload` in the background.

        Returns ``None`` if an admission for *item_id* is already running.
        """
        with self._lock:
            if item_id in self._inflight:
                return None
            self._inflight.add(item_id)

        future = self._executor.submit(self.cache_payload, item_id, source, metadata)
        future.add_done_callback(lambda done: self._finish(item_id, done))
        return future

    def cache_payload(self, item_id: str, source: str, metadata: TrackMetadata) -> bool:
        """Fetch *source* and store it under *item_id*.

        Returns:
            ``True`` if the item is cached afterwards.  Fetch failures are
            logged and return ``False``; nothing is retried.
        """
        if self._cache.is_cached(item_id):
            logger.debug('"%s" already cached', metadata.title or item_id)
            return True

        logger.info('Downloading "%s" for offline use', metadata.title or item_id)
        try:
            fetched = self._fetcher.fetch(source)
        except FetchError as exc:
            logger.warning('Error caching "%s": %s', metadata.title or item_id, exc)
            return False

        stored_as = dataclasses.replace(metadata, mime_type=fetched.mime_type or metadata.mime_type)
        return self._cache.store(item_id, fetched.data, stored_as)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _finish(self, item_id: str, future: futures.Future) -> None:
        with self._lock:
            self._inflight.discard(item_id)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Cache admission for %r failed: %s", item_id, exc, exc_info=exc)
