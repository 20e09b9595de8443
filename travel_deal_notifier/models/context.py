"""
Traveler context models supplied by the itinerary/budget subsystem.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from dateutil import parser as date_parser

from .deal import BudgetTier, Coordinates, DealCategory


class PriceSensitivity(Enum):
    """How strongly a traveler reacts to discounts."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class UserContext:
    """Everything the relevance scorer knows about a traveler.

    ``as_of`` is the reference instant for time-based scoring, which keeps
    scoring a pure function of (deal, context).
    """

    user_id: str
    as_of: datetime
    category_budgets: Dict[DealCategory, float] = field(default_factory=dict)
    location: Optional[Coordinates] = None
    travel_start: Optional[datetime] = None
    travel_end: Optional[datetime] = None
    interests: List[DealCategory] = field(default_factory=list)
    itinerary_categories: Dict[DealCategory, int] = field(default_factory=dict)
    category_affinity: Dict[DealCategory, float] = field(default_factory=dict)
    merchant_affinity: Dict[str, float] = field(default_factory=dict)
    price_sensitivity: PriceSensitivity = PriceSensitivity.MEDIUM
    preferred_tier: Optional[BudgetTier] = None

    @property
    def has_engagement_history(self) -> bool:
        return bool(self.category_affinity or self.merchant_affinity)

    def validate(self) -> bool:
        """Validate user context data."""
        if not self.user_id or not str(self.user_id).strip():
            raise ValueError("User ID cannot be empty")

        if not isinstance(self.as_of, datetime) or self.as_of.tzinfo is None:
            raise ValueError("as_of must be a timezone-aware datetime")

        if self.location is not None:
            self.location.validate()

        if (
            self.travel_start is not None
            and self.travel_end is not None
            and self.travel_end < self.travel_start
        ):
            raise ValueError("travel_end cannot be before travel_start")

        for affinities in (self.category_affinity, self.merchant_affinity):
            for key, value in affinities.items():
                if not (0 <= value <= 1):
                    raise ValueError(f"Affinity for {key} must be between 0 and 1")

        for category, count in self.itinerary_categories.items():
            if count < 0:
                raise ValueError(f"Itinerary count for {category} cannot be negative")

        return True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserContext":
        """Build a context from a JSON payload; ``as_of`` defaults to now."""

        def when(value: Any) -> Optional[datetime]:
            if value is None:
                return None
            moment = value if isinstance(value, datetime) else date_parser.parse(value)
            return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)

        def by_category(values: Optional[Dict[str, Any]]) -> Dict[DealCategory, Any]:
            return {DealCategory(key): value for key, value in (values or {}).items()}

        location = data.get("location")
        tier = data.get("preferred_tier")
        return cls(
            user_id=data["user_id"],
            as_of=when(data.get("as_of")) or datetime.now(timezone.utc),
            category_budgets=by_category(data.get("category_budgets")),
            location=Coordinates(**location) if location else None,
            travel_start=when(data.get("travel_start")),
            travel_end=when(data.get("travel_end")),
            interests=[DealCategory(value) for value in data.get("interests", [])],
            itinerary_categories=by_category(data.get("itinerary_categories")),
            category_affinity=by_category(data.get("category_affinity")),
            merchant_affinity=dict(data.get("merchant_affinity") or {}),
            price_sensitivity=PriceSensitivity(data.get("price_sensitivity", "medium")),
            preferred_tier=BudgetTier(tier) if tier else None,
        )
