"""Listening session: owns the profile and wires the core components."""

from __future__ import annotations

import logging
import threading
from concurrent import futures
from pathlib import Path
from typing import Any

import numpy as np

from nove.cache import CacheAdmissionPolicy, CacheStore
from nove.engine import RecommendationEngine
from nove.fetch import PayloadFetcher
from nove.models import (
    ActionKind,
    CacheEntry,
    CacheStats,
    ContentItem,
    PersistResult,
    PlayResult,
    ScoredItem,
    TrackMetadata,
    UserProfile,
)
from nove.storage import KeyValueStore, open_store
from nove.tags import extract_tags
from nove.user_state import (
    Clock,
    InteractionRecorder,
    ProfileRepository,
    song_status,
    taste_summary,
    utcnow,
)

logger = logging.getLogger(__name__)


def metadata_for(item: ContentItem) -> TrackMetadata:
    return TrackMetadata(title=item.title, performer=item.performer)


class ListeningSession:
    """Session-scoped owner of the local :class:`~nove.models.UserProfile`.

    The profile is loaded (with decay) once, when the session starts, and is
    only mutated through the :class:`~nove.user_state.InteractionRecorder`.
    Ranking calls receive it explicitly.

    All profile reads and writes go through one re-entrant lock, so a
    session can be shared by the gRPC worker threads.

    Args:
        store: Backing key-value store for the profile and the audio cache.
        fetcher: Payload fetcher for cache admission.  Defaults to HTTP.
        clock: Source of "now" for every component.
        rng: Random source for discovery picks and shuffles.
        executor: Runs cache admissions.  Defaults to a small thread pool.
    """

    def __init__(
        self,
        store: KeyValueStore,
        fetcher: Any | None = None,
        clock: Clock = utcnow,
        rng: np.random.Generator | None = None,
        executor: futures.Executor | None = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._lock = threading.RLock()
        self.repository = ProfileRepository(store, clock)
        self.recorder = InteractionRecorder(self.repository, clock)
        self.engine = RecommendationEngine(rng=rng)
        self.cache = CacheStore(store, clock)
        self.admission = CacheAdmissionPolicy(
            self.cache, fetcher if fetcher is not None else PayloadFetcher(), executor=executor
        )
        self.profile: UserProfile = self.repository.load()

    @classmethod
    def open(cls, db_path: str | Path | None, **kwargs: Any) -> "ListeningSession":
        """Start a session on the sqlite file at *db_path* (memory if unavailable)."""
        return cls(open_store(db_path), **kwargs)

    # ------------------------------------------------------------------
    # Playback and feedback signals
    # ------------------------------------------------------------------

    def record_interaction(
        self,
        item_id: str,
        action: ActionKind | str,
        tags: list[str],
        completion_ratio: float | None = None,
    ) -> PersistResult:
        with self._lock:
            return self.recorder.record_interaction(
                self.profile, item_id, action, tags, completion_ratio
            )

    def like(self, item: ContentItem) -> PersistResult:
        return self.record_interaction(item.item_id, ActionKind.LIKE, extract_tags(item))

    def dislike(self, item: ContentItem) -> PersistResult:
        return self.record_interaction(item.item_id, ActionKind.DISLIKE, extract_tags(item))

    def save(self, item: ContentItem) -> PersistResult:
        return self.record_interaction(item.item_id, ActionKind.SAVE, extract_tags(item))

    def unlike(self, item: ContentItem) -> PersistResult:
        with self._lock:
            return self.recorder.unlike(self.profile, item.item_id)

    def play(self, item: ContentItem) -> futures.Future | None:
        """Record a play start on both the profile and the cache-aware path.

        Returns:
            The admission future if this play crossed the cache threshold.
        """
        self.record_interaction(item.item_id, ActionKind.PLAY, extract_tags(item))
        if not item.source:
            return None
        return self.admission.on_play(item.item_id, item.source, metadata_for(item))

    def skip(self, item: ContentItem, early: bool) -> PersistResult | None:
        """Record a skip.  Only skips inside the early-skip window count."""
        if not early:
            return None
        return self.record_interaction(item.item_id, ActionKind.SKIP, extract_tags(item))

    def complete(
        self,
        item: ContentItem,
        completion_ratio: float,
        listened_seconds: float | None = None,
    ) -> PersistResult:
        with self._lock:
            return self.recorder.record_interaction(
                self.profile,
                item.item_id,
                ActionKind.COMPLETE,
                extract_tags(item),
                completion_ratio=completion_ratio,
                listened_seconds=listened_seconds,
            )

    def reset_profile(self) -> UserProfile:
        """Forget all personalisation and start over with a fresh profile."""
        with self._lock:
            self.repository.clear()
            self.profile = self.repository.load()
            return self.profile

    # ------------------------------------------------------------------
    # Ranked views
    # ------------------------------------------------------------------

    def recommendations(self, catalogue: list[ContentItem], limit: int = 20) -> list[ScoredItem]:
        with self._lock:
            return self.engine.get_recommendations(catalogue, self.profile, limit)

    def for_you(self, catalogue: list[ContentItem], limit: int = 10) -> list[ContentItem]:
        with self._lock:
            return self.engine.get_for_you_mix(catalogue, self.profile, limit)

    def similar(
        self, target: ContentItem, catalogue: list[ContentItem], limit: int = 5
    ) -> list[ContentItem]:
        return self.engine.get_similar_tracks(target, catalogue, limit)

    def by_mood(
        self, catalogue: list[ContentItem], mood: str, limit: int = 10
    ) -> list[ContentItem]:
        with self._lock:
            return self.engine.get_tracks_by_mood(catalogue, self.profile, mood, limit)

    def top_interests(self, n: int = 5) -> list[tuple[str, float]]:
        with self._lock:
            return self.engine.get_top_interests(self.profile, n)

    def status(self, item_id: str) -> dict[str, bool]:
        with self._lock:
            return song_status(self.profile, item_id)

    def summary(self) -> dict[str, object]:
        with self._lock:
            return taste_summary(self.profile, self._clock())

    # ------------------------------------------------------------------
    # Audio cache
    # ------------------------------------------------------------------

    def record_play(self, item_id: str, source: str, metadata: TrackMetadata) -> PlayResult:
        return self.admission.record_play(item_id, source, metadata)

    def is_cached(self, item_id: str) -> bool:
        return self.cache.is_cached(item_id)

    def get_cached_payload(self, item_id: str) -> CacheEntry | None:
        return self.cache.get_cached_payload(item_id)

    def cache_payload(self, item_id: str, source: str, metadata: TrackMetadata) -> bool:
        return self.admission.cache_payload(item_id, source, metadata)

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()

    def clear_cache(self) -> None:
        self.cache.clear()

    def close(self) -> None:
        self.admission.shutdown(wait=False)
        self._store.close()
