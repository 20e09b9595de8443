"""
Spatial cluster models.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from .deal import Coordinates, ScoredDeal


class ClusterTier(Enum):
    """Budget classification of a cluster's members."""

    BUDGET = "budget"
    PREMIUM = "premium"
    MIXED = "mixed"


@dataclass
class Cluster:
    """Deals sharing one coarse grid cell.

    ``center`` is the grid anchor of the cell, not a centroid.
    """

    key: str
    center: Coordinates
    deals: List[ScoredDeal]
    total_savings: float
    average_rating: Optional[float]
    category_breakdown: Dict[str, int]
    tier: ClusterTier

    @property
    def size(self) -> int:
        return len(self.deals)

    def validate(self) -> bool:
        """Validate cluster data."""
        if len(self.deals) < 2:
            raise ValueError("A cluster needs at least two deals")

        if sum(self.category_breakdown.values()) != len(self.deals):
            raise ValueError("category_breakdown must account for every deal")

        if not isinstance(self.tier, ClusterTier):
            raise ValueError("tier must be a ClusterTier enum")

        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "center": {"lat": self.center.lat, "lng": self.center.lng},
            "deal_ids": [scored.id for scored in self.deals],
            "total_savings": self.total_savings,
            "average_rating": self.average_rating,
            "category_breakdown": dict(self.category_breakdown),
            "tier": self.tier.value,
        }
