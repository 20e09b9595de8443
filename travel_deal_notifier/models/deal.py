"""
Deal data models for the travel deal notifier.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from dateutil import parser as date_parser


class DealCategory(Enum):
    """Merchant deal categories."""

    DINING = "dining"
    ACCOMMODATION = "accommodation"
    TRANSPORTATION = "transportation"
    ACTIVITIES = "activities"
    SHOPPING = "shopping"


class BudgetTier(Enum):
    """Price tier a merchant deal is aimed at."""

    BUDGET = "budget"
    MODERATE = "moderate"
    PREMIUM = "premium"


@dataclass(frozen=True)
class Coordinates:
    """A WGS84 latitude/longitude pair in degrees."""

    lat: float
    lng: float

    def validate(self) -> bool:
        """Validate coordinate ranges."""
        if not isinstance(self.lat, (int, float)) or not isinstance(
            self.lng, (int, float)
        ):
            raise ValueError("Coordinates must be numbers")

        if not (-90 <= self.lat <= 90):
            raise ValueError(f"Latitude out of range: {self.lat}")

        if not (-180 <= self.lng <= 180):
            raise ValueError(f"Longitude out of range: {self.lng}")

        return True


@dataclass
class Deal:
    """A merchant-provided, time-limited discounted offer."""

    id: str
    merchant_id: str
    merchant_name: str
    title: str
    category: DealCategory
    original_price: float
    discounted_price: float
    discount_percentage: float
    valid_until: datetime
    budget_tier: BudgetTier
    coordinates: Optional[Coordinates] = None
    tags: Set[str] = field(default_factory=set)
    rating: Optional[float] = None
    review_count: Optional[int] = None
    description: str = ""
    location: str = ""

    @property
    def savings(self) -> float:
        """Absolute saving versus the original price, never negative."""
        return max(0.0, self.original_price - self.discounted_price)

    @property
    def savings_percentage(self) -> float:
        """Discount as a percentage of the original price.

        A zero original price yields 0 rather than a division error.
        """
        if self.original_price <= 0:
            return 0.0
        return self.savings / self.original_price * 100

    def has_tag(self, *names: str) -> bool:
        """Case-insensitive check for any of the given tags."""
        lowered = {tag.strip().lower() for tag in self.tags}
        return any(name.lower() in lowered for name in names)

    def validate(self) -> bool:
        """Validate the deal data."""
        if not self.id or not str(self.id).strip():
            raise ValueError("Deal ID cannot be empty")

        if not self.merchant_id or not str(self.merchant_id).strip():
            raise ValueError("Merchant ID cannot be empty")

        if not isinstance(self.category, DealCategory):
            raise ValueError("category must be a DealCategory enum")

        if not isinstance(self.budget_tier, BudgetTier):
            raise ValueError("budget_tier must be a BudgetTier enum")

        if self.original_price < 0:
            raise ValueError("Original price cannot be negative")

        if self.discounted_price < 0:
            raise ValueError("Discounted price cannot be negative")

        if not (0 <= self.discount_percentage <= 100):
            raise ValueError("Discount percentage must be between 0 and 100")

        if not isinstance(self.valid_until, datetime):
            raise ValueError("valid_until must be a datetime object")

        if self.valid_until.tzinfo is None:
            raise ValueError("valid_until must be timezone-aware")

        if self.coordinates is not None:
            self.coordinates.validate()

        if self.rating is not None and not (0 <= self.rating <= 5):
            raise ValueError("Rating must be between 0 and 5")

        if self.review_count is not None and self.review_count < 0:
            raise ValueError("Review count cannot be negative")

        return True

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        data = asdict(self)
        data["category"] = self.category.value
        data["budget_tier"] = self.budget_tier.value
        data["valid_until"] = self.valid_until.isoformat()
        data["tags"] = sorted(self.tags)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Deal":
        """Rebuild a deal serialized with ``to_dict``."""
        coordinates = data.get("coordinates")
        return cls(
            id=data["id"],
            merchant_id=data["merchant_id"],
            merchant_name=data["merchant_name"],
            title=data["title"],
            category=DealCategory(data["category"]),
            original_price=data["original_price"],
            discounted_price=data["discounted_price"],
            discount_percentage=data["discount_percentage"],
            valid_until=date_parser.isoparse(data["valid_until"]),
            budget_tier=BudgetTier(data["budget_tier"]),
            coordinates=Coordinates(**coordinates) if coordinates else None,
            tags=set(data.get("tags", [])),
            rating=data.get("rating"),
            review_count=data.get("review_count"),
            description=data.get("description", ""),
            location=data.get("location", ""),
        )


@dataclass
class ScoredDeal:
    """A deal with its relevance sub-scores for one user.

    All scores are in [0, 100]; ``reasoning`` lists the significant
    sub-scores in descending order of their weighted contribution.
    """

    deal: Deal
    budget_alignment: float
    category_fit: float
    location_relevance: float
    time_relevance: float
    user_preference: float
    relevance_score: float
    reasoning: List[str] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.deal.id

    @property
    def potential_savings(self) -> float:
        return self.deal.savings

    def sub_scores(self) -> Dict[str, float]:
        return {
            "budget_alignment": self.budget_alignment,
            "category_fit": self.category_fit,
            "location_relevance": self.location_relevance,
            "time_relevance": self.time_relevance,
            "user_preference": self.user_preference,
        }

    def validate(self) -> bool:
        """Validate score ranges."""
        for name, value in {
            **self.sub_scores(),
            "relevance_score": self.relevance_score,
        }.items():
            if not (0 <= value <= 100):
                raise ValueError(f"{name} must be between 0 and 100")

        return self.deal.validate()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deal": self.deal.to_dict(),
            **self.sub_scores(),
            "relevance_score": self.relevance_score,
            "reasoning": list(self.reasoning),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScoredDeal":
        return cls(
            deal=Deal.from_dict(data["deal"]),
            budget_alignment=data["budget_alignment"],
            category_fit=data["category_fit"],
            location_relevance=data["location_relevance"],
            time_relevance=data["time_relevance"],
            user_preference=data["user_preference"],
            relevance_score=data["relevance_score"],
            reasoning=list(data.get("reasoning", [])),
        )
