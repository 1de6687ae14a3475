"""Abstract base class for all recommendation strategies."""

from __future__ import annotations

from abc import ABC, abstractmethod

from nove.models import ScoredItem, UserProfile


class RecommendationStrategy(ABC):
    """Abstract base class for all recommendation strategies.

    Each strategy fills one part of a recommendation list (the relevance
    slate or the discovery quota).  The
    :class:`~nove.engine.RecommendationEngine` scores the catalogue once and
    passes the scored candidates, best-first, to each strategy in turn along
    with the ids already chosen.
    """

    @abstractmethod
    def recommend(
        self,
        profile: UserProfile,
        candidates: list[ScoredItem],
        n: int,
        exclude_ids: set[str],
    ) -> list[ScoredItem]:
        """Return up to *n* items for *profile*.

        Args:
            profile: The listener's current profile.
            candidates: Every catalogue item with its score, sorted by
                descending score (ties in catalogue order).
            n: Maximum number of items to return.
            exclude_ids: Item ids already chosen in this pass.  Strategies
                must not return these.

        Returns:
            List of up to *n* scored items.
        """
