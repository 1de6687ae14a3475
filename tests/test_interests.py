"""Tests for the interest model in nove.interests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from nove.interests import (
    apply_time_decay,
    get_top_interests,
    neutral_interests,
    seed_interests,
    update_interest_score,
)
from nove.models import InterestEntry, ScoreAction
from nove.tags import AVAILABLE_TAGS

TS = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestNeutralInterests:
    def test_every_taxonomy_tag_at_zero(self) -> None:
        interests = neutral_interests(TS)
        assert list(interests) == list(AVAILABLE_TAGS)
        assert all(e.score == 0.0 and e.last_updated == TS for e in interests.values())


class TestTimeDecay:
    def test_two_periods_multiplies_twice(self) -> None:
        interests = {"Jazz": InterestEntry(10.0, TS)}
        now = TS + timedelta(days=14)
        assert apply_time_decay(interests, now) == 1
        assert interests["Jazz"].score == pytest.approx(8.1)
        assert interests["Jazz"].last_updated == now

    def test_under_one_period_unchanged(self) -> None:
        interests = {"Jazz": InterestEntry(10.0, TS)}
        assert apply_time_decay(interests, TS + timedelta(days=6)) == 0
        assert interests["Jazz"].score == 10.0
        assert interests["Jazz"].last_updated == TS

    def test_partial_period_is_dropped(self) -> None:
        interests = {"Jazz": InterestEntry(10.0, TS)}
        apply_time_decay(interests, TS + timedelta(days=10))
        assert interests["Jazz"].score == pytest.approx(9.0)

    def test_negative_scores_decay_towards_zero(self) -> None:
        interests = {"Metal": InterestEntry(-20.0, TS)}
        apply_time_decay(interests, TS + timedelta(days=7))
        assert interests["Metal"].score == pytest.approx(-18.0)


class TestUpdateInterestScore:
    def test_like_adds_five_to_each_tag(self) -> None:
        interests = neutral_interests(TS)
        update_interest_score(interests, ["Jazz", "Chill"], ScoreAction.LIKE, TS)
        assert interests["Jazz"].score == 5.0
        assert interests["Chill"].score == 5.0
        assert interests["Rock"].score == 0.0

    def test_missing_tag_created_at_zero_first(self) -> None:
        interests: dict[str, InterestEntry] = {}
        update_interest_score(interests, ["Vaporwave"], ScoreAction.DISLIKE, TS)
        assert interests["Vaporwave"].score == -10.0

    def test_tags_are_trimmed_and_blanks_skipped(self) -> None:
        interests: dict[str, InterestEntry] = {}
        update_interest_score(interests, [" Jazz ", "  "], ScoreAction.SAVE, TS)
        assert list(interests) == ["Jazz"]
        assert interests["Jazz"].score == 3.0

    def test_stamps_last_updated(self) -> None:
        interests = {"Jazz": InterestEntry(1.0, TS)}
        later = TS + timedelta(hours=3)
        update_interest_score(interests, ["Jazz"], ScoreAction.RELISTEN, later)
        assert interests["Jazz"].score == 5.0
        assert interests["Jazz"].last_updated == later

    def test_unknown_action_rejected(self) -> None:
        with pytest.raises(ValueError):
            update_interest_score({}, ["Jazz"], "applause", TS)


class TestSeedInterests:
    def test_missing_tags_added_at_zero(self) -> None:
        interests = {"Jazz": InterestEntry(4.0, TS)}
        later = TS + timedelta(days=1)
        seed_interests(interests, ["Jazz", " Vaporwave ", ""], later)
        assert interests == {
            "Jazz": InterestEntry(4.0, TS),
            "Vaporwave": InterestEntry(0.0, later),
        }


class TestTopInterests:
    def test_sorted_descending(self) -> None:
        interests = {
            "Rock": InterestEntry(2.0, TS),
            "Jazz": InterestEntry(7.0, TS),
            "Pop": InterestEntry(-1.0, TS),
        }
        assert get_top_interests(interests, 2) == [("Jazz", 7.0), ("Rock", 2.0)]

    def test_ties_keep_insertion_order(self) -> None:
        interests = neutral_interests(TS)
        assert [tag for tag, _ in get_top_interests(interests, 3)] == list(AVAILABLE_TAGS[:3])

    def test_non_positive_n_returns_empty(self) -> None:
        assert get_top_interests(neutral_interests(TS), 0) == []
