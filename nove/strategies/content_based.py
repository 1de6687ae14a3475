"""Content-based scoring: catalogue tags against the listener's interest map."""

from __future__ import annotations

import logging

import numpy as np

import config
from nove.models import ContentItem, ScoredItem, UserProfile
from nove.strategies.base import RecommendationStrategy
from nove.tags import extract_tags

logger = logging.getLogger(__name__)


class InterestScorer:
    """Scores catalogue items against a profile's interest map.

    ``score = sum(interest[tag] for tag in tags(item))``, plus a novelty
    bonus for items never touched, plus a liked bonus, minus a large
    penalty for disliked items.

    The tag sum is computed as one product between a binary item x tag
    indicator matrix and the interest vector over the catalogue's tag
    vocabulary.

    Args:
        novelty_bonus: Added when the item has no listen statistics.
        liked_bonus: Added when the item is in the liked set.
        disliked_penalty: Added (negative) when the item is disliked.
    """

    def __init__(
        self,
        novelty_bonus: float = config.NOVELTY_BONUS,
        liked_bonus: float = config.LIKED_BONUS,
        disliked_penalty: float = config.DISLIKED_PENALTY,
    ) -> None:
        self._novelty_bonus = novelty_bonus
        self._liked_bonus = liked_bonus
        self._disliked_penalty = disliked_penalty

    def score(self, profile: UserProfile, catalogue: list[ContentItem]) -> list[ScoredItem]:
        """Return every item scored, sorted by descending score.

        The sort is stable: equal scores keep catalogue order.
        """
        if not catalogue:
            return []

        item_tags = [extract_tags(item) for item in catalogue]
        scores = self._build_indicator_matrix(item_tags) @ self._build_interest_vector(
            profile, item_tags
        )
        scores = scores + np.array(
            [self._adjustment(profile, item.item_id) for item in catalogue],
            dtype=np.float64,
        )

        order = np.argsort(-scores, kind="stable")
        return [
            ScoredItem(
                item=catalogue[i],
                score=float(scores[i]),
                matched_tags=tuple(
                    tag for tag in item_tags[i]
                    if tag in profile.interests and profile.interests[tag].score > 0
                ),
            )
            for i in order
        ]

    def score_item(self, profile: UserProfile, item: ContentItem) -> float:
        """Score a single item; same formula as :meth:`score`."""
        return self.score(profile, [item])[0].score

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _vocabulary(item_tags: list[list[str]]) -> dict[str, int]:
        vocab: dict[str, int] = {}
        for tags in item_tags:
            for tag in tags:
                vocab.setdefault(tag, len(vocab))
        return vocab

    def _build_indicator_matrix(self, item_tags: list[list[str]]) -> np.ndarray:
        """Build an ``(n_items x n_tags)`` binary matrix over the tag vocabulary."""
        vocab = self._vocabulary(item_tags)
        matrix = np.zeros((len(item_tags), len(vocab)), dtype=np.float64)
        for row, tags in enumerate(item_tags):
            for tag in tags:
                matrix[row, vocab[tag]] = 1.0
        return matrix

    def _build_interest_vector(
        self, profile: UserProfile, item_tags: list[list[str]]
    ) -> np.ndarray:
        """Interest score per vocabulary tag; 0 for tags the profile lacks."""
        vocab = self._vocabulary(item_tags)
        vec = np.zeros(len(vocab), dtype=np.float64)
        for tag, index in vocab.items():
            entry = profile.interests.get(tag)
            if entry is not None:
                vec[index] = entry.score
        return vec

    def _adjustment(self, profile: UserProfile, item_id: str) -> float:
        bonus = 0.0
        if item_id not in profile.listen_stats:
            bonus += self._novelty_bonus
        if item_id in profile.disliked:
            bonus += self._disliked_penalty
        if item_id in profile.liked:
            bonus += self._liked_bonus
        return bonus


class ContentBasedStrategy(RecommendationStrategy):
    """Fills the relevance slate with the best-scoring items.

    Items scoring at or below *cutoff* are left out even when the slate
    would otherwise be short, which keeps disliked items off the list.

    Args:
        cutoff: Minimum (exclusive) score for an item to be eligible.
    """

    def __init__(self, cutoff: float = config.DISLIKE_CUTOFF) -> None:
        self._cutoff = cutoff

    def recommend(
        self,
        profile: UserProfile,
        candidates: list[ScoredItem],
        n: int,
        exclude_ids: set[str],
    ) -> list[ScoredItem]:
        """Return the top *n* eligible candidates, best-first.

        Args:
            profile: Target listener (unused; the scores already reflect it).
            candidates: Scored items, best-first.
            n: Slate size.
            exclude_ids: Item ids to skip.

        Returns:
            List of up to *n* scored items.
        """
        if n <= 0:
            return []
        eligible = [
            c for c in candidates
            if c.score > self._cutoff and c.item.item_id not in exclude_ids
        ]
        return eligible[:n]
