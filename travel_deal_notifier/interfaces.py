"""
Protocol interfaces for the travel deal notifier.

This module defines the protocol interfaces that establish system
boundaries and enable dependency injection throughout the application.
"""

from typing import Any, Dict, List, Optional, Protocol, Sequence

from .models.cluster import Cluster
from .models.context import UserContext
from .models.deal import Deal, ScoredDeal
from .models.notification import DealNotification, NotificationPreferences


class IKeyValueStore(Protocol):
    """Protocol for the external key-value store with TTL support."""

    async def get(self, key: str) -> Optional[Any]:
        """Return the JSON value stored at key, or None."""
        ...

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """Store a JSON value, optionally expiring after ttl_seconds."""
        ...

    async def delete(self, key: str) -> None:
        """Remove a key."""
        ...

    async def incr(self, key: str, ttl_seconds: Optional[int] = None) -> int:
        """Atomically increment a counter, setting the TTL on creation."""
        ...

    async def append(
        self,
        key: str,
        value: Any,
        ttl_seconds: Optional[int] = None,
        max_length: Optional[int] = None,
    ) -> int:
        """Atomically append to a list, trim it and refresh its TTL."""
        ...

    async def list_range(self, key: str) -> List[Any]:
        """Return every item of a list, oldest first."""
        ...

    async def trim_front(self, key: str, count: int) -> None:
        """Drop the oldest count items of a list."""
        ...


class IPreferenceStore(Protocol):
    """Protocol for notification preference persistence."""

    async def get(self, user_id: str) -> NotificationPreferences:
        """Load preferences, default-constructing them when absent."""
        ...

    async def update(
        self, user_id: str, partial: Dict[str, Any]
    ) -> NotificationPreferences:
        """Apply a partial update."""
        ...


class IRelevanceScorer(Protocol):
    """Protocol for deal relevance scoring."""

    def score(self, deal: Deal, context: UserContext) -> ScoredDeal:
        """Score one deal for one traveler."""
        ...

    def score_deals(self, deals: Sequence[Deal], context: UserContext) -> List[ScoredDeal]:
        """Score a batch, best first."""
        ...


class ISpatialClusterer(Protocol):
    """Protocol for display-only spatial grouping."""

    def cluster(
        self, scored_deals: Sequence[ScoredDeal], cell_size_deg: Optional[float] = None
    ) -> List[Cluster]:
        """Group deals sharing a grid cell."""
        ...


class IDeliverySink(Protocol):
    """Protocol for the transport that receives accepted notifications."""

    async def deliver(self, notification: DealNotification) -> None:
        """Take ownership of a notification for delivery."""
        ...
