"""
Pytest configuration and shared fixtures.

This module provides common fixtures and configuration for all tests
in the travel deal notifier test suite.
"""

from datetime import datetime, timedelta, timezone

import pytest

from travel_deal_notifier.components.delivery_sink import CollectingDeliverySink
from travel_deal_notifier.components.notification_policy import NotificationPolicyEngine
from travel_deal_notifier.models.config import NotificationConfig
from travel_deal_notifier.models.context import UserContext
from travel_deal_notifier.models.deal import (
    BudgetTier,
    Coordinates,
    Deal,
    DealCategory,
    ScoredDeal,
)
from travel_deal_notifier.stores.memory_store import MemoryStore
from travel_deal_notifier.stores.notification_store import NotificationStore
from travel_deal_notifier.stores.preference_store import PreferenceStore
from travel_deal_notifier.utils.error_handling import ErrorTracker, GracefulDegradation

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
SURABAYA = Coordinates(-7.2575, 112.7521)


class FakeClock:
    """Settable UTC clock."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeMonotonic:
    """Settable monotonic clock for store TTL tests."""

    def __init__(self):
        self.value = 1000.0

    def __call__(self) -> float:
        return self.value


# Test data fixtures
@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def monotonic():
    return FakeMonotonic()


@pytest.fixture
def deal_factory():
    """Build Deals with sensible defaults; keyword arguments override fields."""

    def make(**overrides) -> Deal:
        values = dict(
            id="deal-1",
            merchant_id="merchant-1",
            merchant_name="Warung Bu Rudy",
            title="Nasi Udang Special",
            category=DealCategory.DINING,
            original_price=100000.0,
            discounted_price=80000.0,
            discount_percentage=20.0,
            valid_until=NOW + timedelta(days=20),
            budget_tier=BudgetTier.MODERATE,
            coordinates=SURABAYA,
            tags=set(),
            rating=4.2,
            review_count=120,
        )
        values.update(overrides)
        return Deal(**values)

    return make


@pytest.fixture
def scored_factory(deal_factory):
    """Build ScoredDeals with a fixed relevance score."""

    def make(relevance: float = 70.0, **deal_overrides) -> ScoredDeal:
        return ScoredDeal(
            deal=deal_factory(**deal_overrides),
            budget_alignment=relevance,
            category_fit=relevance,
            location_relevance=relevance,
            time_relevance=relevance,
            user_preference=relevance,
            relevance_score=relevance,
            reasoning=[],
        )

    return make


@pytest.fixture
def user_context():
    """A traveler in Surabaya with a dining budget and a week-long trip."""
    return UserContext(
        user_id="user-1",
        as_of=NOW,
        category_budgets={DealCategory.DINING: 1000000.0},
        location=SURABAYA,
        travel_start=NOW + timedelta(days=1),
        travel_end=NOW + timedelta(days=8),
        interests=[DealCategory.DINING],
        itinerary_categories={DealCategory.DINING: 4, DealCategory.ACTIVITIES: 2},
    )


# Store and engine fixtures
@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def notification_config():
    return NotificationConfig()


@pytest.fixture
def preference_store(memory_store, notification_config):
    return PreferenceStore(memory_store, notification_config)


@pytest.fixture
def notification_store(memory_store, notification_config):
    return NotificationStore(memory_store, notification_config)


@pytest.fixture
def sink():
    return CollectingDeliverySink()


@pytest.fixture
def error_tracker():
    return ErrorTracker()


@pytest.fixture
def degradation():
    return GracefulDegradation()


@pytest.fixture
def engine(
    preference_store,
    notification_store,
    sink,
    notification_config,
    clock,
    error_tracker,
    degradation,
):
    return NotificationPolicyEngine(
        preference_store,
        notification_store,
        delivery_sink=sink,
        config=notification_config,
        clock=clock,
        error_tracker=error_tracker,
        degradation=degradation,
    )
