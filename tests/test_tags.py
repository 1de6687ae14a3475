"""Tests for nove.tags.extract_tags."""

from __future__ import annotations

from nove.models import ContentItem
from nove.tags import AVAILABLE_TAGS, extract_tags


class TestGenreTags:
    def test_known_genre_first_then_implied(self, track_synth) -> None:
        assert extract_tags(track_synth) == ["Synthwave", "Electronic", "Energetic", "Cinematic"]

    def test_genre_is_trimmed(self) -> None:
        item = ContentItem("x", "Blue Hour", genre="  Jazz  ")
        assert extract_tags(item) == ["Jazz", "Chill", "Relax", "Classical"]

    def test_unknown_genre_kept_verbatim(self) -> None:
        item = ContentItem("x", "Untitled", genre="Vaporwave")
        assert extract_tags(item) == ["Vaporwave"]

    def test_blank_genre_ignored(self) -> None:
        assert extract_tags(ContentItem("x", "Untitled", genre="   ")) == []


class TestKeywordTags:
    def test_title_keywords_in_table_order(self) -> None:
        item = ContentItem("x", "Midnight Chill")
        assert extract_tags(item) == ["Chill", "Relax", "Ambient"]

    def test_keywords_are_case_insensitive(self) -> None:
        assert extract_tags(ContentItem("x", "NEON")) == ["Synthwave", "Electronic"]

    def test_no_duplicates_across_genre_and_title(self, track_synth) -> None:
        tags = extract_tags(track_synth)
        assert len(tags) == len(set(tags))


class TestDeterminism:
    def test_same_item_same_tags(self, track_lofi) -> None:
        assert extract_tags(track_lofi) == extract_tags(track_lofi)

    def test_empty_item_has_no_tags(self) -> None:
        assert extract_tags(ContentItem("x", "")) == []

    def test_taxonomy_has_24_tags(self) -> None:
        assert len(AVAILABLE_TAGS) == 24
        assert len(set(AVAILABLE_TAGS)) == 24
