"""Recommendation engine: relevance slate plus an interleaved discovery quota."""

from __future__ import annotations

import logging
import math

import numpy as np

import config
from nove.interests import get_top_interests
from nove.models import ContentItem, ScoredItem, UserProfile
from nove.strategies.base import RecommendationStrategy
from nove.strategies.content_based import ContentBasedStrategy, InterestScorer
from nove.strategies.wildcard import WildcardStrategy
from nove.tags import extract_tags

logger = logging.getLogger(__name__)

# Position of the first discovery pick within the list.
_FIRST_DISCOVERY_SLOT = 3


class RecommendationEngine:
    """Ranks a catalogue for one listener.

    Slot allocation for a list of length ``L``:

    ========================  ===================================
    Strategy                  Slots
    ========================  ===================================
    Content-based             ``L - discovery``
    Wildcard (discovery)      ``max(1, floor(L * ratio))``
    ========================  ===================================

    Discovery picks are spread through the slate rather than appended: the
    i-th pick goes to position ``3 + i * (content // discovery)``, clamped to
    the current list length.

    Args:
        scorer: Scores items against a profile.
        content_strategy: Fills the relevance slate.
        wildcard_strategy: Fills the discovery quota.
        rng: Random source for discovery picks and the cold-start shuffle.
            Used to build the default wildcard strategy.
        serendipity_ratio: Share of each list reserved for discovery.
    """

    def __init__(
        self,
        scorer: InterestScorer | None = None,
        content_strategy: RecommendationStrategy | None = None,
        wildcard_strategy: RecommendationStrategy | None = None,
        rng: np.random.Generator | None = None,
        serendipity_ratio: float = config.SERENDIPITY_RATIO,
    ) -> None:
        self._rng = rng if rng is not None else np.random.default_rng()
        self._scorer = scorer or InterestScorer()
        self._content_strategy = content_strategy or ContentBasedStrategy()
        self._wildcard_strategy = wildcard_strategy or WildcardStrategy(self._rng)
        self._serendipity_ratio = serendipity_ratio

    def get_recommendations(
        self,
        catalogue: list[ContentItem],
        profile: UserProfile,
        limit: int = 20,
    ) -> list[ScoredItem]:
        """Return up to *limit* scored items, with at least one discovery pick.

        Disliked items never appear: they fall below the content cutoff and
        are kept out of the discovery pool.

        Args:
            catalogue: Items to rank.
            profile: The listener.
            limit: Maximum list length.  ``<= 0`` yields an empty list.

        Returns:
            Ranked list; discovery picks have ``is_discovery=True``.
        """
        if limit <= 0 or not catalogue:
            return []

        scored = self._scorer.score(profile, catalogue)

        discovery_count = max(1, math.floor(limit * self._serendipity_ratio))
        content_count = limit - discovery_count

        slate = self._content_strategy.recommend(profile, scored, content_count, set())
        chosen_ids = {s.item.item_id for s in slate}
        picks = self._wildcard_strategy.recommend(
            profile, scored, discovery_count, chosen_ids
        )

        result = list(slate)
        spacing = content_count // discovery_count
        for i, pick in enumerate(picks):
            position = min(_FIRST_DISCOVERY_SLOT + i * spacing, len(result))
            result.insert(position, pick)

        logger.debug(
            "Ranked %d items: %d content, %d discovery (limit=%d)",
            len(catalogue), len(slate), len(picks), limit,
        )
        return result[:limit]

    def get_for_you_mix(
        self,
        catalogue: list[ContentItem],
        profile: UserProfile,
        limit: int = 10,
    ) -> list[ContentItem]:
        """Return a personalised mix, or a shuffled slice for a neutral profile.

        A profile whose best interest score is not positive has nothing to
        rank by, so a random slice reads better than an arbitrary fixed order.
        """
        top = get_top_interests(profile.interests, 3)
        if not top or top[0][1] <= 0:
            order = self._rng.permutation(len(catalogue))
            return [catalogue[i] for i in order[: max(limit, 0)]]
        return [s.item for s in self.get_recommendations(catalogue, profile, limit)]

    def get_similar_tracks(
        self,
        target: ContentItem,
        catalogue: list[ContentItem],
        limit: int = 5,
    ) -> list[ContentItem]:
        """Return tracks sharing the most tags with *target*.

        Similarity is ``|tags(c) & tags(target)| / max(|tags(target)|, 1)``,
        so a candidate covering all of the target's tags scores 1.0
        regardless of how many other tags it carries.
        """
        target_tags = set(extract_tags(target))
        denominator = max(len(target_tags), 1)

        scored = [
            (item, len(target_tags.intersection(extract_tags(item))) / denominator)
            for item in catalogue
            if item.item_id != target.item_id
        ]
        scored.sort(key=lambda pair: pair[1], reverse=True)
        return [item for item, _ in scored[: max(limit, 0)]]

    def get_tracks_by_mood(
        self,
        catalogue: list[ContentItem],
        profile: UserProfile,
        mood: str,
        limit: int = 10,
    ) -> list[ContentItem]:
        """Return tracks tagged *mood* (case-insensitive), best-scoring first."""
        wanted = mood.strip().lower()
        matching = [
            item for item in catalogue
            if any(tag.lower() == wanted for tag in extract_tags(item))
        ]
        scored = self._scorer.score(profile, matching)
        return [s.item for s in scored[: max(limit, 0)]]

    @staticmethod
    def get_top_interests(profile: UserProfile, n: int = 5) -> list[tuple[str, float]]:
        return get_top_interests(profile.interests, n)
