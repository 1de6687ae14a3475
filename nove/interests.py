"""Interest model: per-tag scores with weekly step decay."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable

import config
from nove.models import InterestEntry, ScoreAction
from nove.tags import AVAILABLE_TAGS

logger = logging.getLogger(__name__)

POINTS: dict[ScoreAction, float] = {
    ScoreAction.LIKE: config.POINTS_LIKE,
    ScoreAction.DISLIKE: config.POINTS_DISLIKE,
    ScoreAction.SAVE: config.POINTS_SAVE,
    ScoreAction.COMPLETE_HIGH: config.POINTS_COMPLETION_HIGH,
    ScoreAction.SKIP_EARLY: config.POINTS_SKIP_EARLY,
    ScoreAction.RELISTEN: config.POINTS_RELISTEN,
}

DECAY_INTERVAL = timedelta(days=config.DECAY_INTERVAL_DAYS)


def neutral_interests(now: datetime) -> dict[str, InterestEntry]:
    """Return a fresh interest map with a zero entry for every taxonomy tag."""
    return {tag: InterestEntry(score=0.0, last_updated=now) for tag in AVAILABLE_TAGS}


def seed_interests(
    interests: dict[str, InterestEntry], tags: Iterable[str], now: datetime
) -> None:
    """Create a zero entry for every trimmed tag not yet in *interests*."""
    for tag in tags:
        key = tag.strip()
        if key and key not in interests:
            interests[key] = InterestEntry(score=0.0, last_updated=now)


def apply_time_decay(
    interests: dict[str, InterestEntry],
    now: datetime,
    rate: float = config.DECAY_RATE,
    interval: timedelta = DECAY_INTERVAL,
) -> int:
    """Decay every entry by *rate* per full *interval* since it last changed.

    Decay is stepped, not continuous: an entry untouched for 10 days with a
    7-day interval decays by one period.  Entries that decay have their
    ``last_updated`` reset to *now*, so the partial period is dropped.

    Args:
        interests: The map to mutate in-place.
        now: Current time.
        rate: Multiplier applied once per elapsed period.
        interval: Length of one decay period.

    Returns:
        Number of entries that decayed.
    """
    decayed = 0
    for entry in interests.values():
        periods = (now - entry.last_updated) // interval
        if periods > 0:
            entry.score = entry.score * rate ** periods
            entry.last_updated = now
            decayed += 1
    if decayed:
        logger.debug("Decayed %d interest entries.", decayed)
    return decayed


def update_interest_score(
    interests: dict[str, InterestEntry],
    tags: Iterable[str],
    action: ScoreAction,
    now: datetime,
) -> None:
    """Add the fixed delta for *action* to every tag in *tags*.

    Tags are trimmed; missing tags are created at zero first.

    Args:
        interests: The map to mutate in-place.
        tags: Tags of the track the action applies to.
        action: Which delta to apply.
        now: Stamped as ``last_updated`` on every touched entry.
    """
    points = POINTS[ScoreAction(action)]
    for tag in tags:
        key = tag.strip()
        if not key:
            continue
        entry = interests.get(key)
        if entry is None:
            entry = interests[key] = InterestEntry(score=0.0, last_updated=now)
        entry.score += points
        entry.last_updated = now


def get_top_interests(
    interests: dict[str, InterestEntry], n: int = 5
) -> list[tuple[str, float]]:
    """Return the *n* highest-scoring ``(tag, score)`` pairs.

    Ties keep the map's insertion order.
    """
    ranked = sorted(interests.items(), key=lambda kv: kv[1].score, reverse=True)
    return [(tag, entry.score) for tag, entry in ranked[: max(n, 0)]]
