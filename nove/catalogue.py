"""Track catalogue: snapshots the external catalog provider."""

from __future__ import annotations

import json
import logging
import threading
import time
from pathlib import Path
from typing import Any, Callable, Iterable

from nove.models import ContentItem

logger = logging.getLogger(__name__)

CatalogueProvider = Callable[[], Iterable[ContentItem]]


class TrackCatalogue:
    """Holds the latest catalogue snapshot from an external provider.

    The catalogue is loaded synchronously on the first call to
    :meth:`refresh`, then kept fresh by a background daemon thread that
    calls :meth:`refresh` every *refresh_interval_seconds*.

    All public methods are thread-safe.

    Args:
        provider: Callable returning the current tracks (the search/browse
            layer, or :func:`file_provider`).
        refresh_interval_seconds: How often the background thread refreshes
            the catalogue. Defaults to 300 (5 minutes).
    """

    def __init__(self, provider: CatalogueProvider, refresh_interval_seconds: int = 300) -> None:
        self._provider = provider
        self._refresh_interval = refresh_interval_seconds
        self._lock = threading.RLock()
        self._tracks: dict[str, ContentItem] = {}
        self._refresh_thread: threading.Thread | None = None

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def refresh(self) -> None:
        """Fetch the full catalogue from the provider and replace the snapshot.

        On failure, logs an error and preserves the existing snapshot so the
        service can continue running.
        """
        try:
            new_tracks = {item.item_id: item for item in self._provider()}
            with self._lock:
                self._tracks = new_tracks
            logger.info("Track catalogue refreshed: %d tracks loaded.", len(new_tracks))
        except Exception:
            logger.exception(
                "Failed to refresh track catalogue; keeping existing %d tracks.",
                len(self._tracks),
            )

    def start_refresh_loop(self) -> None:
        """Start a background daemon thread that periodically calls :meth:`refresh`.

        Safe to call multiple times; only one refresh thread is started.
        """
        if self._refresh_thread is not None and self._refresh_thread.is_alive():
            return
        self._refresh_thread = threading.Thread(
            target=self._refresh_loop,
            name="catalogue-refresh",
            daemon=True,
        )
        self._refresh_thread.start()
        logger.debug("Catalogue refresh loop started (interval=%ds).", self._refresh_interval)

    def get_all_tracks(self) -> list[ContentItem]:
        """Return a snapshot list of all tracks, in provider order."""
        with self._lock:
            return list(self._tracks.values())

    def get_track(self, item_id: str) -> ContentItem | None:
        with self._lock:
            return self._tracks.get(item_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _refresh_loop(self) -> None:
        """Periodically refresh the catalogue. Runs in a daemon thread."""
        while True:
            time.sleep(self._refresh_interval)
            self.refresh()


# ---------------------------------------------------------------------------
# File-backed provider
# ---------------------------------------------------------------------------


def item_from_dict(data: dict[str, Any]) -> ContentItem:
    """Build a :class:`~nove.models.ContentItem` from a JSON-style mapping.

    Accepts both ``item_id``/``performer``/``source`` and the player's
    ``id``/``artist``/``audioUrl`` spellings.

    Raises:
        ValueError: If the mapping has no id.
    """
    item_id = data.get("item_id") or data.get("id")
    if not item_id:
        raise ValueError(f"track has no id: {data!r}")
    return ContentItem(
        item_id=str(item_id),
        title=str(data.get("title", "")),
        performer=str(data.get("performer") or data.get("artist") or ""),
        genre=str(data.get("genre", "")),
        duration=str(data.get("duration", "")),
        source=str(data.get("source") or data.get("audioUrl") or ""),
    )


def file_provider(path: str | Path) -> CatalogueProvider:
    """Return a provider that re-reads a JSON list of tracks from *path*."""

    def load() -> list[ContentItem]:
        with open(path, encoding="utf-8") as fh:
            return [item_from_dict(entry) for entry in json.load(fh)]

    return load
