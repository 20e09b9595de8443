"""Spatial grouping of scored deals for map display."""

import logging
from collections import Counter, defaultdict
from typing import Dict, List, Optional, Sequence

from ..models.cluster import Cluster, ClusterTier
from ..models.config import ClusteringConfig
from ..models.deal import BudgetTier, Coordinates, ScoredDeal
from .geo import grid_anchor, grid_cell, haversine_km

logger = logging.getLogger(__name__)


class SpatialClusterer:
    """Groups geolocated deals by coarse grid cell.

    Only cells holding two or more deals become clusters; lone deals stay
    ungrouped. Has no side effects.
    """

    def __init__(self, config: Optional[ClusteringConfig] = None):
        self.config = config or ClusteringConfig()
        self.config.validate()

    def cluster(
        self, scored_deals: Sequence[ScoredDeal], cell_size_deg: Optional[float] = None
    ) -> List[Cluster]:
        """Bucket deals by grid cell and summarise every multi-deal cell."""
        cell_size = cell_size_deg or self.config.cell_size_deg

        buckets: Dict[str, List[ScoredDeal]] = defaultdict(list)
        skipped = 0
        for scored in scored_deals:
            if scored.deal.coordinates is None:
                skipped += 1
                continue
            buckets[grid_cell(scored.deal.coordinates, cell_size)].append(scored)

        clusters = [
            self._build_cluster(key, members, cell_size)
            for key, members in buckets.items()
            if len(members) >= 2
        ]
        clusters.sort(key=lambda c: (-c.size, c.key))

        logger.debug(
            f"Clustered {len(scored_deals) - skipped} geolocated deals into "
            f"{len(clusters)} clusters ({skipped} without coordinates)"
        )
        return clusters

    def _build_cluster(
        self, key: str, members: List[ScoredDeal], cell_size: float
    ) -> Cluster:
        ratings = [m.deal.rating for m in members if m.deal.rating is not None]

        return Cluster(
            key=key,
            center=grid_anchor(members[0].deal.coordinates, cell_size),
            deals=list(members),
            total_savings=sum(
                m.deal.original_price - m.deal.discounted_price for m in members
            ),
            average_rating=sum(ratings) / len(ratings) if ratings else None,
            category_breakdown=dict(Counter(m.deal.category.value for m in members)),
            tier=self._classify_tier(members),
        )

    @staticmethod
    def _classify_tier(members: List[ScoredDeal]) -> ClusterTier:
        tiers = {m.deal.budget_tier for m in members}
        if tiers == {BudgetTier.BUDGET}:
            return ClusterTier.BUDGET
        if tiers == {BudgetTier.PREMIUM}:
            return ClusterTier.PREMIUM
        return ClusterTier.MIXED

    @staticmethod
    def deals_within_radius(
        scored_deals: Sequence[ScoredDeal], center: Coordinates, radius_km: float
    ) -> List[ScoredDeal]:
        """Geolocated deals no further than ``radius_km`` from ``center``."""
        return [
            s
            for s in scored_deals
            if s.deal.coordinates is not None
            and haversine_km(center, s.deal.coordinates) <= radius_km
        ]

    @staticmethod
    def nearest_neighbour_route(
        scored_deals: Sequence[ScoredDeal], start: Coordinates
    ) -> List[ScoredDeal]:
        """Order geolocated deals by a greedy nearest-next walk from ``start``."""
        remaining = [s for s in scored_deals if s.deal.coordinates is not None]
        route: List[ScoredDeal] = []
        position = start

        while remaining:
            nearest = min(
                remaining, key=lambda s: haversine_km(position, s.deal.coordinates)
            )
            remaining.remove(nearest)
            route.append(nearest)
            position = nearest.deal.coordinates

        return route
