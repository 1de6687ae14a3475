"""Wildcard strategy: random discovery picks for serendipity."""

from __future__ import annotations

import dataclasses
import logging

import numpy as np

from nove.models import ScoredItem, UserProfile
from nove.strategies.base import RecommendationStrategy

logger = logging.getLogger(__name__)


class WildcardStrategy(RecommendationStrategy):
    """Draws discovery items uniformly at random from the remaining pool.

    The pool is every candidate not already chosen and not explicitly
    disliked.  Score plays no part: a low or negative scoring track can be
    drawn, which is the point of the discovery quota.

    Args:
        rng: Random source.  Pass a seeded generator for reproducible picks.
    """

    def __init__(self, rng: np.random.Generator | None = None) -> None:
        self._rng = rng if rng is not None else np.random.default_rng()

    def recommend(
        self,
        profile: UserProfile,
        candidates: list[ScoredItem],
        n: int,
        exclude_ids: set[str],
    ) -> list[ScoredItem]:
        """Return up to *n* random picks, each marked ``is_discovery``.

        Args:
            profile: Target listener; its disliked set is honoured.
            candidates: Scored items.
            n: Number of picks wanted.
            exclude_ids: Item ids already on the list.

        Returns:
            Picks in draw order.  Fewer than *n* if the pool runs out.
        """
        pool = [
            c for c in candidates
            if c.item.item_id not in exclude_ids
            and c.item.item_id not in profile.disliked
        ]

        picks: list[ScoredItem] = []
        while len(picks) < n and pool:
            chosen = pool.pop(int(self._rng.integers(len(pool))))
            picks.append(dataclasses.replace(chosen, is_discovery=True))

        logger.debug("Drew %d discovery picks from a pool of %d", len(picks), len(pool) + len(picks))
        return picks
