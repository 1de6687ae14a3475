"""Tests for the versioned record formats in nove.codecs."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from nove.codecs import (
    CACHE_ENTRY_SCHEMA,
    PROFILE_SCHEMA,
    SchemaError,
    decode_cache_meta,
    decode_play_count,
    decode_profile,
    encode_cache_meta,
    encode_play_count,
    encode_profile,
)
from nove.interests import neutral_interests
from nove.models import (
    ActionKind,
    CacheEntry,
    Interaction,
    ListenStat,
    PlayCountRecord,
    UserProfile,
)

TS = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def busy_profile() -> UserProfile:
    profile = UserProfile("user_abc", TS, TS + timedelta(hours=1), neutral_interests(TS))
    profile.interests["Jazz"].score = 7.5
    profile.listen_stats["t_jazz"] = ListenStat("t_jazz", TS, play_count=2, total_time_listened=310.0)
    profile.interactions.append(
        Interaction("t_jazz", TS, ActionKind.COMPLETE, ("Jazz", "Chill"), completion_ratio=0.9)
    )
    profile.liked.add("t_jazz")
    profile.saved.add("t_jazz")
    profile.disliked.add("t_syn")
    return profile


class TestProfileRecord:
    def test_decode_restores_profile(self, busy_profile) -> None:
        assert decode_profile(encode_profile(busy_profile)) == busy_profile

    def test_record_is_tagged_with_schema_and_version(self, busy_profile) -> None:
        doc = json.loads(encode_profile(busy_profile))
        assert doc["schema"] == PROFILE_SCHEMA
        assert doc["version"] == 2

    def test_garbage_raises_schema_error(self) -> None:
        with pytest.raises(SchemaError):
            decode_profile(b"\xff\xfe")

    def test_wrong_schema_raises(self, busy_profile) -> None:
        doc = json.loads(encode_profile(busy_profile))
        doc["schema"] = CACHE_ENTRY_SCHEMA
        with pytest.raises(SchemaError):
            decode_profile(json.dumps(doc).encode())

    def test_missing_field_raises(self, busy_profile) -> None:
        doc = json.loads(encode_profile(busy_profile))
        del doc["data"]["interests"]
        with pytest.raises(SchemaError):
            decode_profile(json.dumps(doc).encode())

    def test_schema_error_is_value_error(self) -> None:
        assert issubclass(SchemaError, ValueError)


class TestCacheRecords:
    def test_meta_excludes_payload(self) -> None:
        entry = CacheEntry("t1", b"\x00" * 64, "audio/ogg", 64, TS, TS, "Title", "Artist")
        raw = encode_cache_meta(entry)
        assert b"\x00" not in raw
        decoded = decode_cache_meta(raw, entry.payload)
        assert decoded == entry

    def test_meta_without_payload_defaults_empty(self) -> None:
        entry = CacheEntry("t1", b"abc", "audio/mpeg", 3, TS, TS)
        assert decode_cache_meta(encode_cache_meta(entry)).payload == b""

    def test_meta_unknown_version_raises(self) -> None:
        entry = CacheEntry("t1", b"abc", "audio/mpeg", 3, TS, TS)
        doc = json.loads(encode_cache_meta(entry))
        doc["version"] = 7
        with pytest.raises(SchemaError):
            decode_cache_meta(json.dumps(doc).encode())

    def test_play_count(self) -> None:
        record = PlayCountRecord("t1", 3, TS, "https://cdn.example/t1.mp3", "Title", "Artist")
        assert decode_play_count(encode_play_count(record)) == record

    def test_naive_timestamp_read_as_utc(self) -> None:
        record = PlayCountRecord("t1", 1, TS)
        doc = json.loads(encode_play_count(record))
        doc["data"]["last_played_at"] = "2024-06-01T12:00:00"
        assert decode_play_count(json.dumps(doc).encode()).last_played_at == TS
