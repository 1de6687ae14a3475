"""User state: profile persistence and interaction recording."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable

import config
from nove.codecs import SchemaError, decode_profile, encode_profile
from nove.interests import (
    apply_time_decay,
    get_top_interests,
    neutral_interests,
    seed_interests,
    update_interest_score,
)
from nove.models import (
    ActionKind,
    Interaction,
    ListenStat,
    PersistResult,
    ScoreAction,
    UserProfile,
)
from nove.storage import KeyValueStore, StorageError

logger = logging.getLogger(__name__)

PROFILE_NAMESPACE = "profile"
PROFILE_KEY = "current"

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProfileRepository:
    """Loads and saves the single local :class:`~nove.models.UserProfile`.

    Writes are best-effort: a storage failure is logged and reported through
    the returned :class:`~nove.models.PersistResult`, never raised.

    Args:
        store: The key-value store holding the profile record.
        clock: Source of "now".  Injected so decay can be tested.
    """

    def __init__(self, store: KeyValueStore, clock: Clock = utcnow) -> None:
        self._store = store
        self._clock = clock

    def load(self) -> UserProfile:
        """Return the stored profile with decay applied, or a new one.

        A missing, corrupt or unknown-version record yields a fresh profile,
        which is saved immediately and overwrites whatever was there.  If the
        store itself cannot be read, the fresh profile is kept in memory only
        and the stored record is left alone.
        """
        now = self._clock()
        try:
            raw = self._store.get(PROFILE_NAMESPACE, PROFILE_KEY)
        except StorageError as exc:
            logger.warning("Failed to read profile, continuing in memory: %s", exc)
            return self.create()

        if raw is not None:
            try:
                profile = decode_profile(raw)
            except SchemaError as exc:
                logger.warning("Discarding unreadable profile record: %s", exc)
            else:
                apply_time_decay(profile.interests, now)
                logger.debug("Loaded profile %s", profile.profile_id)
                return profile

        profile = self.create()
        self.save(profile)
        return profile

    def create(self) -> UserProfile:
        """Return a new empty profile seeded with neutral taxonomy scores."""
        now = self._clock()
        profile = UserProfile(
            profile_id=f"user_{uuid.uuid4().hex}",
            created_at=now,
            last_active=now,
            interests=neutral_interests(now),
        )
        logger.info("Created new profile %s", profile.profile_id)
        return profile

    def save(self, profile: UserProfile) -> PersistResult:
        """Persist *profile*, stamping ``last_active``."""
        profile.last_active = self._clock()
        try:
            self._store.put(PROFILE_NAMESPACE, PROFILE_KEY, encode_profile(profile))
        except StorageError as exc:
            logger.warning("Failed to save profile %s: %s", profile.profile_id, exc)
            return PersistResult(ok=False, error=str(exc))
        return PersistResult(ok=True)

    def clear(self) -> PersistResult:
        """Delete the stored profile; the next :meth:`load` starts fresh."""
        try:
            self._store.delete(PROFILE_NAMESPACE, PROFILE_KEY)
        except StorageError as exc:
            logger.warning("Failed to clear profile: %s", exc)
            return PersistResult(ok=False, error=str(exc))
        return PersistResult(ok=True)


class InteractionRecorder:
    """Single entry point that records an event and fans it out.

    Each call appends to the interaction log, updates the liked/disliked/saved
    sets and the per-item :class:`~nove.models.ListenStat`, applies interest
    deltas, and finally writes the whole profile once.

    Args:
        repository: Where the profile is persisted after each call.
        clock: Source of "now".
        max_interactions: Interaction log cap; oldest entries drop first.
        relisten_window: A play within this window of the previous one
            counts as a relisten (once the item has been played twice).
        high_completion: Completion ratio above which a ``complete`` event
            earns the completion bonus.
    """

    def __init__(
        self,
        repository: ProfileRepository,
        clock: Clock = utcnow,
        max_interactions: int = config.MAX_INTERACTIONS,
        relisten_window: timedelta = timedelta(hours=config.RELISTEN_WINDOW_HOURS),
        high_completion: float = config.HIGH_COMPLETION_RATIO,
    ) -> None:
        self._repository = repository
        self._clock = clock
        self._max_interactions = max_interactions
        self._relisten_window = relisten_window
        self._high_completion = high_completion

    def record_interaction(
        self,
        profile: UserProfile,
        item_id: str,
        action: ActionKind | str,
        tags: Iterable[str],
        completion_ratio: float | None = None,
        listened_seconds: float | None = None,
    ) -> PersistResult:
        """Record *action* on *item_id* and update all derived state.

        ``skip`` always applies the early-skip penalty: the caller only
        reports skips that happened inside its early-skip window.

        Args:
            profile: The profile to mutate in-place.
            item_id: The track acted on.
            action: One of the :class:`~nove.models.ActionKind` values.
            tags: The track's tags (see :func:`~nove.tags.extract_tags`).
            completion_ratio: Fraction played, for ``complete`` events.
            listened_seconds: Optional listening time to add to the item's
                total.

        Returns:
            The outcome of the single profile write.  The in-memory update
            stands even if the write failed.

        Raises:
            ValueError: If *action* is unknown or *completion_ratio* is
                outside [0, 1].  Nothing is mutated in that case.
        """
        action = ActionKind(action)
        if completion_ratio is not None and not 0.0 <= completion_ratio <= 1.0:
            raise ValueError(f"completion_ratio must be in [0, 1], got {completion_ratio!r}")

        now = self._clock()
        tag_list = tuple(dict.fromkeys(tags))
        seed_interests(profile.interests, tag_list, now)

        profile.interactions.append(
            Interaction(
                item_id=item_id,
                timestamp=now,
                action=action,
                tags=tag_list,
                completion_ratio=completion_ratio,
            )
        )
        if len(profile.interactions) > self._max_interactions:
            del profile.interactions[: -self._max_interactions]

        if action == ActionKind.LIKE:
            profile.liked.add(item_id)
            profile.disliked.discard(item_id)
            update_interest_score(profile.interests, tag_list, ScoreAction.LIKE, now)
        elif action == ActionKind.DISLIKE:
            profile.disliked.add(item_id)
            profile.liked.discard(item_id)
            update_interest_score(profile.interests, tag_list, ScoreAction.DISLIKE, now)
        elif action == ActionKind.SAVE:
            profile.saved.add(item_id)
            update_interest_score(profile.interests, tag_list, ScoreAction.SAVE, now)
        elif action == ActionKind.COMPLETE:
            if completion_ratio is not None and completion_ratio > self._high_completion:
                update_interest_score(
                    profile.interests, tag_list, ScoreAction.COMPLETE_HIGH, now
                )
        elif action == ActionKind.SKIP:
            update_interest_score(profile.interests, tag_list, ScoreAction.SKIP_EARLY, now)

        stat = profile.listen_stats.get(item_id)
        if stat is None:
            stat = profile.listen_stats[item_id] = ListenStat(
                item_id=item_id, last_played_at=now
            )

        if action in (ActionKind.PLAY, ActionKind.COMPLETE):
            is_relisten = now - stat.last_played_at < self._relisten_window
            if is_relisten and stat.play_count > 1:
                update_interest_score(profile.interests, tag_list, ScoreAction.RELISTEN, now)
            stat.play_count += 1
            stat.last_played_at = now

        if listened_seconds:
            stat.total_time_listened += listened_seconds

        logger.debug("Recorded %s for item %r (tags=%s)", action.value, item_id, tag_list)
        return self._repository.save(profile)

    def unlike(self, profile: UserProfile, item_id: str) -> PersistResult:
        """Remove *item_id* from the liked set without touching scores."""
        profile.liked.discard(item_id)
        return self._repository.save(profile)


# ---------------------------------------------------------------------------
# Read-only views
# ---------------------------------------------------------------------------


def song_status(profile: UserProfile, item_id: str) -> dict[str, bool]:
    """Return the liked/disliked/saved flags for *item_id*."""
    return {
        "liked": item_id in profile.liked,
        "disliked": item_id in profile.disliked,
        "saved": item_id in profile.saved,
    }


def taste_summary(profile: UserProfile, now: datetime | None = None) -> dict[str, object]:
    """Summarise the profile for display.

    Returns:
        Dict with ``top_genres`` (positive tags among the top five),
        ``recent_activity`` (interactions in the last seven days),
        ``total_likes`` and ``total_dislikes``.
    """
    now = now or utcnow()
    week_ago = now - timedelta(days=7)
    return {
        "top_genres": [
            tag for tag, score in get_top_interests(profile.interests, 5) if score > 0
        ],
        "recent_activity": sum(1 for i in profile.interactions if i.timestamp > week_ago),
        "total_likes": len(profile.liked),
        "total_dislikes": len(profile.disliked),
    }
