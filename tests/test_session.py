"""Tests for nove.session.ListeningSession."""

from __future__ import annotations

from concurrent import futures
from unittest.mock import MagicMock

import numpy as np
import pytest

from nove.fetch import FetchedPayload
from nove.models import TrackMetadata
from nove.session import ListeningSession, metadata_for
from nove.storage import InMemoryKeyValueStore, SqliteKeyValueStore


@pytest.fixture
def fetcher() -> MagicMock:
    fetcher = MagicMock()
    fetcher.fetch.return_value = FetchedPayload(b"audio-bytes")
    return fetcher


@pytest.fixture
def executor():
    pool = futures.ThreadPoolExecutor(max_workers=1)
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture
def session(store, fetcher, clock, executor) -> ListeningSession:
    return ListeningSession(
        store, fetcher=fetcher, clock=clock, rng=np.random.default_rng(0), executor=executor
    )


class TestProfileOwnership:
    def test_profile_loaded_on_start(self, session) -> None:
        assert session.profile.profile_id.startswith("user_")

    def test_profile_survives_new_session(self, session, store, fetcher, clock, track_jazz) -> None:
        session.like(track_jazz)
        again = ListeningSession(store, fetcher=fetcher, clock=clock)
        assert again.profile.profile_id == session.profile.profile_id
        assert again.status("t_jazz")["liked"]
        again.close()

    def test_reset_profile(self, session, track_jazz) -> None:
        old_id = session.profile.profile_id
        session.like(track_jazz)
        profile = session.reset_profile()
        assert profile.profile_id != old_id
        assert session.profile is profile
        assert profile.liked == set()


class TestSignals:
    def test_like_and_dislike_use_extracted_tags(self, session, track_jazz) -> None:
        session.like(track_jazz)
        assert session.profile.interests["Jazz"].score == 5.0
        session.dislike(track_jazz)
        assert session.status("t_jazz") == {"liked": False, "disliked": True, "saved": False}
        assert session.profile.interests["Jazz"].score == -5.0

    def test_save_and_unlike(self, session, track_jazz) -> None:
        session.like(track_jazz)
        session.save(track_jazz)
        session.unlike(track_jazz)
        assert session.status("t_jazz") == {"liked": False, "disliked": False, "saved": True}

    def test_late_skip_ignored(self, session, track_jazz) -> None:
        assert session.skip(track_jazz, early=False) is None
        assert session.profile.interactions == []

    def test_early_skip_penalised(self, session, track_jazz) -> None:
        assert session.skip(track_jazz, early=True).ok
        assert session.profile.interests["Chill"].score == -3.0

    def test_complete_records_listening_time(self, session, track_jazz) -> None:
        session.complete(track_jazz, 0.9, listened_seconds=200.0)
        assert session.profile.interests["Jazz"].score == 2.0
        assert session.profile.listen_stats["t_jazz"].total_time_listened == 200.0

    def test_invalid_action_raises(self, session) -> None:
        with pytest.raises(ValueError):
            session.record_interaction("t1", "applause", [])

    def test_summary(self, session, track_jazz) -> None:
        session.like(track_jazz)
        summary = session.summary()
        assert summary["total_likes"] == 1
        assert summary["recent_activity"] == 1


class TestPlayAndCache:
    def test_third_play_caches_track(self, session, fetcher, track_synth) -> None:
        assert session.play(track_synth) is None
        assert session.play(track_synth) is None
        future = session.play(track_synth)
        assert future.result(timeout=5) is True
        assert session.is_cached("t_syn")
        assert session.get_cached_payload("t_syn").payload == b"audio-bytes"
        assert session.profile.listen_stats["t_syn"].play_count == 3
        fetcher.fetch.assert_called_once_with(track_synth.source)

    def test_play_without_source_skips_cache(self, session, track_jazz) -> None:
        for _ in range(3):
            assert session.play(track_jazz) is None
        assert session.record_play("t_jazz", "", TrackMetadata()).play_count == 1

    def test_cache_stats_and_clear(self, session, track_synth) -> None:
        assert session.cache_payload("t_syn", track_synth.source, metadata_for(track_synth))
        stats = session.cache_stats()
        assert stats.count == 1
        assert stats.items[0].title == "Neon Drive"
        session.clear_cache()
        assert session.cache_stats().count == 0


class TestRanking:
    def test_recommendations_exclude_disliked(self, session, sample_tracks, track_synth) -> None:
        session.dislike(track_synth)
        ids = {s.item.item_id for s in session.recommendations(sample_tracks)}
        assert "t_syn" not in ids

    def test_similar_and_mood(self, session, sample_tracks, track_lofi) -> None:
        assert session.similar(track_lofi, sample_tracks, 1)[0].item_id == "t_jazz"
        assert [i.item_id for i in session.by_mood(sample_tracks, "party")] == [
            "t_phonk", "t_techno",
        ]

    def test_for_you_and_top_interests(self, session, sample_tracks, track_jazz) -> None:
        session.like(track_jazz)
        assert session.top_interests(1) == [("Jazz", 5.0)]
        assert session.for_you(sample_tracks, 3)[0].item_id == "t_jazz"


class TestSharedAcrossThreads:
    def test_concurrent_writes_and_reads(self, session, sample_tracks) -> None:
        def write(i: int) -> None:
            for j in range(50):
                session.record_interaction(f"t{i}_{j}", "like", [f"tag{i}_{j}"])

        def read(_: int) -> None:
            for _ in range(50):
                session.top_interests(5)
                session.recommendations(sample_tracks, 5)
                session.summary()

        with futures.ThreadPoolExecutor(max_workers=4) as pool:
            jobs = [pool.submit(write, 0), pool.submit(write, 1)]
            jobs += [pool.submit(read, i) for i in range(3)]
            for job in jobs:
                job.result(timeout=30)

        assert len(session.profile.liked) == 100
        assert session.profile.interests["tag1_49"].score == 5.0


class TestOpen:
    def test_open_sqlite(self, tmp_path, fetcher) -> None:
        session = ListeningSession.open(tmp_path / "nove.db", fetcher=fetcher)
        assert isinstance(session._store, SqliteKeyValueStore)
        session.close()

    def test_open_memory(self, fetcher) -> None:
        session = ListeningSession.open(None, fetcher=fetcher)
        assert isinstance(session._store, InMemoryKeyValueStore)
        session.close()
