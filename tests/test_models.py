"""Tests for nove.models dataclasses."""

from __future__ import annotations

import dataclasses
from datetime import datetime, timezone

import pytest

from nove.models import (
    ActionKind,
    ContentItem,
    PersistResult,
    ScoredItem,
    ScoreAction,
    TrackMetadata,
    UserProfile,
)

TS = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestContentItem:
    def test_defaults(self) -> None:
        item = ContentItem("t1", "Title")
        assert item.performer == ""
        assert item.genre == ""
        assert item.source == ""

    def test_is_immutable(self) -> None:
        item = ContentItem("t1", "Title")
        with pytest.raises(dataclasses.FrozenInstanceError):
            item.title = "Other"  # type: ignore[misc]

    def test_hashable(self) -> None:
        assert len({ContentItem("t1", "A"), ContentItem("t1", "A")}) == 1


class TestEnums:
    def test_action_kind_from_string(self) -> None:
        assert ActionKind("complete") is ActionKind.COMPLETE

    def test_action_kind_compares_to_string(self) -> None:
        assert ActionKind.LIKE == "like"

    def test_score_actions(self) -> None:
        assert {a.value for a in ScoreAction} == {
            "like", "dislike", "save", "complete_high", "skip_early", "relisten",
        }


class TestUserProfile:
    def test_new_profile_is_empty(self) -> None:
        profile = UserProfile("user_1", TS, TS)
        assert profile.interests == {}
        assert profile.interactions == []
        assert profile.liked == set()

    def test_collections_not_shared(self) -> None:
        a = UserProfile("a", TS, TS)
        b = UserProfile("b", TS, TS)
        a.liked.add("t1")
        assert b.liked == set()


class TestSmallRecords:
    def test_scored_item_defaults(self) -> None:
        scored = ScoredItem(ContentItem("t1", "A"), 1.5)
        assert scored.matched_tags == ()
        assert not scored.is_discovery

    def test_track_metadata_default_mime(self) -> None:
        assert TrackMetadata().mime_type == "audio/mpeg"

    def test_persist_result(self) -> None:
        assert PersistResult(ok=True).error is None
        assert PersistResult(ok=False, error="disk full").error == "disk full"
