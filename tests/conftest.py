"""Shared pytest fixtures for all listening-core tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from nove.interests import neutral_interests
from nove.models import ContentItem, UserProfile
from nove.storage import InMemoryKeyValueStore
from nove.user_state import InteractionRecorder, ProfileRepository


TS = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = TS) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


# ---------------------------------------------------------------------------
# Track fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def track_synth() -> ContentItem:
    # Synthwave, Electronic, Energetic, Cinematic
    return ContentItem(
        "t_syn", "Neon Drive", "Kavinsky", "Synthwave", "3:45", "https://cdn.example/t_syn.mp3"
    )


@pytest.fixture
def track_lofi() -> ContentItem:
    # Lo-fi, Lofi, Chill, Relax, Focus
    return ContentItem(
        "t_lofi", "Rainy Study", "Nujabes", "Lo-fi", "2:58", "https://cdn.example/t_lofi.mp3"
    )


@pytest.fixture
def track_jazz() -> ContentItem:
    # Jazz, Chill, Relax, Classical
    return ContentItem("t_jazz", "Blue Hour", "Miles", "Jazz", "5:12", "")


@pytest.fixture
def track_phonk() -> ContentItem:
    # Phonk, Hip-Hop, Energetic, Party
    return ContentItem("t_phonk", "Drift King", "Dxrk", "Phonk", "2:31", "")


@pytest.fixture
def track_techno() -> ContentItem:
    # Techno, Electronic, Energetic, Party, Workout
    return ContentItem("t_techno", "Warehouse", "Helena", "Techno", "6:40", "")


@pytest.fixture
def track_ambient() -> ContentItem:
    # Ambient, Chill, Cinematic
    return ContentItem("t_amb", "Dream State", "Eno", "", "8:03", "")


@pytest.fixture
def sample_tracks(
    track_synth, track_lofi, track_jazz, track_phonk, track_techno, track_ambient
) -> list[ContentItem]:
    """Six-track catalogue spanning several genres and moods."""
    return [track_synth, track_lofi, track_jazz, track_phonk, track_techno, track_ambient]


@pytest.fixture
def large_catalogue() -> list[ContentItem]:
    """Thirty tracks cycling through the known genres."""
    genres = ["Synthwave", "Lo-fi", "Jazz", "Phonk", "Techno", "Hyperpop"]
    return [
        ContentItem(f"c{i:02d}", f"Track {i}", "Various", genres[i % len(genres)])
        for i in range(30)
    ]


# ---------------------------------------------------------------------------
# Profile fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def neutral_profile() -> UserProfile:
    """A brand-new profile with zero scores for every taxonomy tag."""
    return UserProfile(
        profile_id="user_test",
        created_at=TS,
        last_active=TS,
        interests=neutral_interests(TS),
    )


@pytest.fixture
def repository(store, clock) -> ProfileRepository:
    return ProfileRepository(store, clock)


@pytest.fixture
def recorder(repository, clock) -> InteractionRecorder:
    return InteractionRecorder(repository, clock)
