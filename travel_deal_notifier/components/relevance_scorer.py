"""Relevance scorer producing composite and per-factor scores for deals."""

import logging
from datetime import timedelta
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..models.config import SUB_SCORES, ScoringConfig
from ..models.context import PriceSensitivity, UserContext
from ..models.deal import Deal, ScoredDeal
from .geo import haversine_km

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, value))


def ranking_key(scored: ScoredDeal) -> Tuple:
    """Sort key: relevance desc, then savings desc, then earliest expiry."""
    return (
        -scored.relevance_score,
        -scored.potential_savings,
        scored.deal.valid_until,
        scored.deal.id,
    )


class RelevanceScorer:
    """Scores deals against a traveler's context.

    ``score`` is pure: identical (deal, context) pairs always produce an
    identical ScoredDeal, so results may be cached by the caller.
    """

    # Share of category budget consumed -> score, checked in order.
    BUDGET_BRACKETS = [(0.10, 100.0), (0.25, 90.0), (0.50, 75.0), (0.75, 60.0), (1.0, 40.0)]
    OVERSHOOT_SCORE = 20.0

    def __init__(self, config: Optional[ScoringConfig] = None):
        """Initialize scorer with weights and thresholds."""
        self.config = config or ScoringConfig()
        self.config.validate()
        total = sum(self.config.weights.values())
        self.weights = {name: self.config.weights[name] / total for name in SUB_SCORES}

    def score(self, deal: Deal, context: UserContext) -> ScoredDeal:
        """Score one deal for one traveler."""
        distance_km = self._distance_km(deal, context)
        sub_scores = {
            "budget_alignment": _clamp(self._budget_alignment(deal, context)),
            "category_fit": _clamp(self._category_fit(deal, context)),
            "location_relevance": _clamp(self._location_relevance(distance_km)),
            "time_relevance": _clamp(self._time_relevance(deal, context)),
            "user_preference": _clamp(self._user_preference(deal, context)),
        }
        sub_scores = {name: round(value, 1) for name, value in sub_scores.items()}

        relevance = _clamp(
            sum(self.weights[name] * value for name, value in sub_scores.items())
        )

        return ScoredDeal(
            deal=deal,
            relevance_score=round(relevance, 1),
            reasoning=self._reasoning(deal, sub_scores, distance_km),
            **sub_scores,
        )

    def score_deals(self, deals: Sequence[Deal], context: UserContext) -> List[ScoredDeal]:
        """Score a batch, best first."""
        scored = sorted((self.score(deal, context) for deal in deals), key=ranking_key)
        logger.info(f"Scored {len(scored)} deals for user {context.user_id}")
        return scored

    @staticmethod
    def filter_by_relevance(
        scored: Sequence[ScoredDeal], min_score: float = 50.0
    ) -> List[ScoredDeal]:
        return [item for item in scored if item.relevance_score >= min_score]

    @staticmethod
    def top_deals(scored: Sequence[ScoredDeal], limit: int = 10) -> List[ScoredDeal]:
        return sorted(scored, key=ranking_key)[:limit]

    def _budget_alignment(self, deal: Deal, context: UserContext) -> float:
        """Higher when the post-discount price is a small share of what is left."""
        budget = context.category_budgets.get(deal.category)
        if budget is None:
            return self.config.neutral_score

        price = deal.discounted_price
        if budget <= 0:
            return 100.0 if price == 0 else 0.0

        share = price / budget
        for limit, score in self.BUDGET_BRACKETS:
            if share <= limit:
                return score

        # Over budget even after the discount: 20 at the limit, 0 at double.
        return max(0.0, self.OVERSHOOT_SCORE * (2.0 - share))

    def _category_fit(self, deal: Deal, context: UserContext) -> float:
        if not (
            context.interests
            or context.itinerary_categories
            or context.preferred_tier is not None
        ):
            return self.config.neutral_score

        score = 40.0
        if deal.category in context.interests:
            score += 30.0

        counts = context.itinerary_categories
        if counts and max(counts.values()) > 0:
            score += 20.0 * counts.get(deal.category, 0) / max(counts.values())

        if context.preferred_tier is not None and deal.budget_tier == context.preferred_tier:
            score += 10.0

        if (
            context.price_sensitivity == PriceSensitivity.HIGH
            and deal.savings_percentage >= 30
        ):
            score += 10.0

        return score

    def _distance_km(self, deal: Deal, context: UserContext) -> Optional[float]:
        if deal.coordinates is None or context.location is None:
            return None
        return haversine_km(context.location, deal.coordinates)

    def _location_relevance(self, distance_km: Optional[float]) -> float:
        """Inverse distance; unknown positions score neutral, not zero."""
        if distance_km is None:
            return self.config.neutral_score

        half = self.config.location_half_score_km
        return 100.0 * half / (half + distance_km)

    def _time_relevance(self, deal: Deal, context: UserContext) -> float:
        if deal.valid_until <= context.as_of:
            return 0.0

        if context.travel_start is None and context.travel_end is None:
            return self.config.neutral_score

        start = max(context.travel_start or context.as_of, context.as_of)
        end = max(context.travel_end or start, start)

        if deal.valid_until < start:
            # Gone before the trip begins.
            return 10.0

        if deal.valid_until < end:
            coverage = (deal.valid_until - start) / (end - start)
            return 40.0 + 60.0 * coverage

        days_after_trip = (deal.valid_until - end) / ONE_DAY
        grace = self.config.late_expiry_grace_days
        if days_after_trip <= grace:
            return 100.0

        decay = min(1.0, (days_after_trip - grace) / self.config.late_expiry_decay_days)
        return 100.0 - 70.0 * decay

    def _user_preference(self, deal: Deal, context: UserContext) -> float:
        """Similarity to what the traveler engaged with before."""
        if not context.has_engagement_history:
            score = self.config.neutral_score
        else:
            category = (
                context.category_affinity.get(deal.category, 0.0)
                if context.category_affinity
                else 0.5
            )
            merchant = (
                context.merchant_affinity.get(deal.merchant_id, 0.0)
                if context.merchant_affinity
                else 0.5
            )
            score = 100.0 * (0.6 * category + 0.4 * merchant)

        if deal.rating is not None:
            if deal.rating >= 4.5:
                score += 10.0
            elif deal.rating < 3.0:
                score -= 10.0

        return score

    def _reasoning(
        self, deal: Deal, sub_scores: Dict[str, float], distance_km: Optional[float]
    ) -> List[str]:
        category = deal.category.value
        clauses: Dict[str, Callable[[float], str]] = {
            "budget_alignment": lambda s: (
                f"Fits comfortably within your {category} budget"
                if s >= 80
                else f"Within your {category} budget"
            ),
            "category_fit": lambda s: f"Matches your interest in {category}",
            "location_relevance": lambda s: (
                f"{distance_km:.1f} km from your location"
                if distance_km is not None
                else "Location not specified"
            ),
            "time_relevance": lambda s: (
                "Valid throughout your trip" if s >= 90 else "Valid for much of your trip"
            ),
            "user_preference": lambda s: "Similar to deals you engaged with before",
        }

        significant = [
            (self.weights[name] * value, -SUB_SCORES.index(name), name, value)
            for name, value in sub_scores.items()
            if value >= self.config.significance_threshold
        ]
        significant.sort(reverse=True)
        return [clauses[name](value) for _, _, name, value in significant]
