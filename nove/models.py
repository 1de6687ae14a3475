"""Core domain dataclasses shared across all listening-core modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ActionKind(str, Enum):
    """Behavioral signals a player reports for a track."""

    LIKE = "like"
    DISLIKE = "dislike"
    SAVE = "save"
    PLAY = "play"
    SKIP = "skip"
    COMPLETE = "complete"


class ScoreAction(str, Enum):
    """Interest-score adjustments; each maps to a fixed point delta."""

    LIKE = "like"
    DISLIKE = "dislike"
    SAVE = "save"
    COMPLETE_HIGH = "complete_high"
    SKIP_EARLY = "skip_early"
    RELISTEN = "relisten"


@dataclass(frozen=True)
class ContentItem:
    """A single playable track, as supplied by the external catalog.

    Attributes:
        item_id: Unique, stable identifier.
        title: Human-readable track title.  Scanned for mood keywords.
        performer: Primary performer name.
        genre: Free-text genre label (e.g. ``"Synthwave"``).
        duration: Display duration (e.g. ``"3:45"``).
        source: Locator used to fetch the audio payload.
    """

    item_id: str
    title: str
    performer: str = ""
    genre: str = ""
    duration: str = ""
    source: str = ""


@dataclass
class InterestEntry:
    """Current interest score for one tag and when it last changed."""

    score: float
    last_updated: datetime


@dataclass(frozen=True)
class Interaction:
    """A single recorded user interaction.

    Attributes:
        item_id: The track involved.
        timestamp: When the event occurred (UTC).
        action: The category of interaction.
        tags: Tags of the track at the time of the event.
        completion_ratio: Fraction played (0–1) for
            :attr:`ActionKind.COMPLETE` events; ``None`` otherwise.
    """

    item_id: str
    timestamp: datetime
    action: ActionKind
    tags: tuple[str, ...] = ()
    completion_ratio: float | None = None


@dataclass
class ListenStat:
    """Per-track play statistics kept on the profile."""

    item_id: str
    last_played_at: datetime
    play_count: int = 0
    total_time_listened: float = 0.0


@dataclass
class UserProfile:
    """Accumulated listening state and interest model for the local user.

    Interest deltas (applied by :class:`~nove.user_state.InteractionRecorder`):

    =============  =====
    Action         Delta
    =============  =====
    like           +5
    dislike        -10
    save           +3
    complete_high  +2
    skip_early     -3
    relisten       +4
    =============  =====

    Attributes:
        profile_id: Identity assigned when the profile was first created.
        created_at: When the profile was created.
        last_active: Updated on every save.
        interests: Tag -> :class:`InterestEntry`.
        listen_stats: Item id -> :class:`ListenStat`.
        interactions: Most recent interactions, oldest first.
        liked: Liked item ids.  Never overlaps *disliked*.
        disliked: Disliked item ids.
        saved: Saved item ids.
    """

    profile_id: str
    created_at: datetime
    last_active: datetime
    interests: dict[str, InterestEntry] = field(default_factory=dict)
    listen_stats: dict[str, ListenStat] = field(default_factory=dict)
    interactions: list[Interaction] = field(default_factory=list)
    liked: set[str] = field(default_factory=set)
    disliked: set[str] = field(default_factory=set)
    saved: set[str] = field(default_factory=set)


@dataclass(frozen=True)
class ScoredItem:
    """A ranked catalog entry.

    Attributes:
        item: The track.
        score: Interest score plus novelty/liked/disliked adjustments.
        matched_tags: The track's tags that carry a positive interest score.
        is_discovery: ``True`` if the item was drawn into the serendipity quota.
    """

    item: ContentItem
    score: float
    matched_tags: tuple[str, ...] = ()
    is_discovery: bool = False


@dataclass(frozen=True)
class TrackMetadata:
    """Display metadata stored alongside cached payloads and play counts."""

    title: str = ""
    performer: str = ""
    mime_type: str = "audio/mpeg"


@dataclass
class CacheEntry:
    """A stored audio payload and its bookkeeping."""

    item_id: str
    payload: bytes
    mime_type: str
    size_bytes: int
    cached_at: datetime
    last_accessed_at: datetime
    title: str = ""
    performer: str = ""


@dataclass
class PlayCountRecord:
    """Play counter used only for cache admission."""

    item_id: str
    count: int
    last_played_at: datetime
    source: str = ""
    title: str = ""
    performer: str = ""


@dataclass(frozen=True)
class PlayResult:
    should_cache: bool
    play_count: int


@dataclass(frozen=True)
class CachedItemSummary:
    title: str
    performer: str
    size_mb: float


@dataclass(frozen=True)
class CacheStats:
    count: int
    total_size_mb: float
    items: list[CachedItemSummary] = field(default_factory=list)


@dataclass(frozen=True)
class PersistResult:
    """Outcome of a best-effort write.  ``error`` is set when ``ok`` is false."""

    ok: bool
    error: str | None = None
