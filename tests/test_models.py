"""
Unit tests for data model validation.
"""

from datetime import datetime, time, timedelta, timezone

import pytest

from travel_deal_notifier.models import (
    BudgetTier,
    Cluster,
    ClusterTier,
    Configuration,
    Coordinates,
    DealCategory,
    NotificationFrequency,
    NotificationPreferences,
    NotificationType,
    PriceSensitivity,
    QuietHours,
    ScoringConfig,
    UserContext,
)


class TestDeal:
    """Test Deal validation and derived values."""

    def test_valid_deal(self, deal_factory):
        assert deal_factory().validate() is True

    def test_savings(self, deal_factory):
        deal = deal_factory()
        assert deal.savings == 20000.0
        assert deal.savings_percentage == pytest.approx(20.0)

    def test_zero_original_price_has_no_percentage(self, deal_factory):
        """A free deal must not divide by zero."""
        deal = deal_factory(original_price=0.0, discounted_price=0.0, discount_percentage=0.0)
        assert deal.savings_percentage == 0.0

    def test_price_increase_is_not_a_saving(self, deal_factory):
        deal = deal_factory(original_price=100.0, discounted_price=120.0, discount_percentage=0.0)
        assert deal.savings == 0.0

    def test_tags_case_insensitive(self, deal_factory):
        deal = deal_factory(tags={"Limited Time"})
        assert deal.has_tag("flash", "limited time")
        assert not deal.has_tag("flash")

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"id": " "}, "Deal ID cannot be empty"),
            ({"original_price": -1.0}, "Original price cannot be negative"),
            ({"discount_percentage": 120.0}, "Discount percentage"),
            ({"valid_until": datetime(2026, 4, 1)}, "timezone-aware"),
            ({"coordinates": Coordinates(91.0, 0.0)}, "Latitude out of range"),
            ({"rating": 5.5}, "Rating must be between 0 and 5"),
        ],
    )
    def test_invalid_deals(self, deal_factory, overrides, message):
        with pytest.raises(ValueError, match=message):
            deal_factory(**overrides).validate()

    def test_dict_round_trip(self, deal_factory):
        deal = deal_factory(tags={"weekend", "flash"})
        data = deal.to_dict()

        assert data["tags"] == ["flash", "weekend"]
        assert data["category"] == "dining"
        assert type(deal).from_dict(data) == deal


class TestScoredDeal:
    """Test ScoredDeal validation."""

    def test_relevance_out_of_range(self, scored_factory):
        scored = scored_factory(101.0)
        with pytest.raises(ValueError):
            scored.validate()

    def test_sub_scores_and_savings(self, scored_factory):
        scored = scored_factory()
        assert scored.id == "deal-1"
        assert scored.potential_savings == 20000.0
        assert set(scored.sub_scores) == {
            "budget_alignment",
            "category_fit",
            "location_relevance",
            "time_relevance",
            "user_preference",
        }


class TestQuietHours:
    """Test quiet hours windows."""

    @pytest.mark.parametrize(
        "moment, expected",
        [
            (time(23, 0), True),
            (time(3, 0), True),
            (time(22, 0), True),
            (time(8, 0), True),
            (time(9, 0), False),
            (time(21, 59), False),
        ],
    )
    def test_overnight_window(self, moment, expected):
        quiet = QuietHours(enabled=True, start="22:00", end="08:00")
        assert quiet.contains(moment) is expected

    def test_same_day_window(self):
        quiet = QuietHours(enabled=True, start="13:00", end="15:00")
        assert quiet.contains(time(14, 0))
        assert not quiet.contains(time(16, 0))

    def test_disabled_window_never_matches(self):
        assert not QuietHours(enabled=False).contains(time(23, 0))

    def test_invalid_time_rejected(self):
        with pytest.raises(ValueError, match="HH:MM"):
            QuietHours(start="10pm").validate()


class TestNotificationPreferences:
    """Test preference defaults, merging and serialization."""

    def test_defaults(self):
        preferences = NotificationPreferences(user_id="u1")

        assert preferences.validate() is True
        assert preferences.frequency == NotificationFrequency.IMMEDIATE
        assert all(preferences.types[kind] for kind in NotificationType)
        assert preferences.quiet_hours.enabled is False

    def test_merged_is_a_copy(self):
        original = NotificationPreferences(user_id="u1")
        updated = original.merged({"types": {"flash_deal": False}, "enabled": False})

        assert updated.types[NotificationType.FLASH_DEAL] is False
        assert updated.enabled is False
        assert original.types[NotificationType.FLASH_DEAL] is True
        assert original.enabled is True

    def test_merged_rejects_unknown_field(self):
        with pytest.raises(ValueError, match="Unknown preference field"):
            NotificationPreferences(user_id="u1").merged({"volume": 11})

    @pytest.mark.parametrize(
        "field_name, value",
        [
            ("max_daily_notifications", True),
            ("max_daily_notifications", -3),
            ("enabled", "yes"),
            ("timezone", "Nowhere/Special"),
        ],
    )
    def test_invalid_values(self, field_name, value):
        preferences = NotificationPreferences(user_id="u1")
        setattr(preferences, field_name, value)
        with pytest.raises(ValueError):
            preferences.validate()

    def test_dict_round_trip(self):
        preferences = NotificationPreferences(
            user_id="u1",
            frequency=NotificationFrequency.WEEKLY,
            quiet_hours=QuietHours(enabled=True, start="21:30", end="06:45"),
            timezone="Asia/Makassar",
        )
        assert NotificationPreferences.from_dict(preferences.to_dict()) == preferences


class TestUserContext:
    """Test UserContext parsing and validation."""

    def test_from_dict(self):
        context = UserContext.from_dict(
            {
                "user_id": "traveler-9",
                "as_of": "2026-03-10T19:00:00+07:00",
                "category_budgets": {"dining": 500000},
                "location": {"lat": -8.65, "lng": 115.22},
                "travel_start": "2026-03-12",
                "travel_end": "2026-03-15",
                "interests": ["activities"],
                "itinerary_categories": {"accommodation": 3},
                "merchant_affinity": {"m-1": 0.8},
                "price_sensitivity": "high",
                "preferred_tier": "budget",
            }
        )

        assert context.validate() is True
        assert context.as_of == datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
        assert context.category_budgets == {DealCategory.DINING: 500000}
        assert context.travel_start.tzinfo is not None
        assert context.interests == [DealCategory.ACTIVITIES]
        assert context.price_sensitivity == PriceSensitivity.HIGH
        assert context.preferred_tier == BudgetTier.BUDGET
        assert context.has_engagement_history

    def test_as_of_defaults_to_now(self):
        context = UserContext.from_dict({"user_id": "u1"})
        assert datetime.now(timezone.utc) - context.as_of < timedelta(minutes=1)
        assert not context.has_engagement_history

    def test_unknown_category_rejected(self):
        with pytest.raises(ValueError):
            UserContext.from_dict({"user_id": "u1", "interests": ["spa"]})

    def test_travel_window_order(self, user_context):
        user_context.travel_end = user_context.travel_start - timedelta(days=1)
        with pytest.raises(ValueError, match="travel_end cannot be before"):
            user_context.validate()

    def test_affinity_range(self, user_context):
        user_context.category_affinity = {DealCategory.DINING: 1.5}
        with pytest.raises(ValueError, match="between 0 and 1"):
            user_context.validate()


class TestCluster:
    """Test Cluster validation."""

    def _cluster(self, members, breakdown):
        return Cluster(
            key="-7.26:112.75",
            center=Coordinates(-7.26, 112.75),
            deals=members,
            total_savings=0.0,
            average_rating=None,
            category_breakdown=breakdown,
            tier=ClusterTier.MIXED,
        )

    def test_single_deal_is_not_a_cluster(self, scored_factory):
        with pytest.raises(ValueError, match="at least two deals"):
            self._cluster([scored_factory()], {"dining": 1}).validate()

    def test_breakdown_must_cover_members(self, scored_factory):
        members = [scored_factory(id="a"), scored_factory(id="b")]
        with pytest.raises(ValueError, match="category_breakdown"):
            self._cluster(members, {"dining": 1}).validate()
        assert self._cluster(members, {"dining": 2}).validate() is True


class TestConfiguration:
    """Test configuration validation."""

    def test_default_is_valid(self):
        assert Configuration.default().validate() is True

    def test_weights_must_be_complete(self):
        scoring = ScoringConfig(weights={"budget_alignment": 1.0})
        with pytest.raises(ValueError, match="Missing scoring weights"):
            scoring.validate()

    def test_all_zero_weights_rejected(self):
        scoring = ScoringConfig()
        scoring.weights = {name: 0.0 for name in scoring.weights}
        with pytest.raises(ValueError, match="must be positive"):
            scoring.validate()

    def test_redis_needs_url(self):
        config = Configuration.default()
        config.store.backend = "redis"
        with pytest.raises(ValueError, match="redis_url"):
            config.validate()
