"""
Tests for the notification policy engine.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from travel_deal_notifier.components.notification_policy import CandidateState
from travel_deal_notifier.models.notification import (
    NotificationFrequency,
    NotificationPriority,
    NotificationType,
    TriggerContext,
)
from travel_deal_notifier.utils.error_handling import (
    CollaboratorUnavailable,
    ErrorCategory,
    InputError,
)

USER = "user-1"


class TestTypeAndPriority:
    """Test cases for type, priority and expiry derivation."""

    @pytest.mark.asyncio
    async def test_flash_deal_scenario(self, engine, scored_factory, now):
        """35% off with a flash tag is an urgent flash deal expiring in 2h."""
        scored = scored_factory(
            80.0,
            tags={"flash"},
            original_price=100000.0,
            discounted_price=65000.0,
            discount_percentage=35.0,
        )

        notifications = await engine.evaluate(USER, [scored], TriggerContext.SCHEDULED_CHECK)

        assert len(notifications) == 1
        notification = notifications[0]
        assert notification.type == NotificationType.FLASH_DEAL
        assert notification.priority == NotificationPriority.URGENT
        assert notification.expires_at == now + timedelta(hours=2)
        assert notification.title == "🔥 Flash Deal Available!"
        assert "35%" in notification.message

    @pytest.mark.asyncio
    async def test_expiring_soon_outranks_new_deal(self, engine, scored_factory, now):
        scored = scored_factory(70.0, valid_until=now + timedelta(days=2))

        [notification] = await engine.evaluate(USER, [scored], "scheduled_check")

        assert notification.type == NotificationType.EXPIRING_SOON
        assert notification.priority == NotificationPriority.MEDIUM
        assert notification.expires_at == now + timedelta(hours=24)
        assert "ends in 2 days" in notification.message

    def test_limited_time_tag_is_flash(self, engine, scored_factory, now):
        scored = scored_factory(tags={"Limited Time"})
        assert engine.notification_type(scored, TriggerContext.MANUAL_REQUEST, now) == (
            NotificationType.FLASH_DEAL
        )

    def test_budget_update_trigger(self, engine, scored_factory, now):
        scored = scored_factory(95.0)
        assert engine.notification_type(scored, TriggerContext.BUDGET_UPDATE, now) == (
            NotificationType.BUDGET_MATCH
        )

    def test_high_relevance_is_personalized(self, engine, scored_factory, now):
        scored = scored_factory(90.0)
        assert engine.notification_type(scored, TriggerContext.LOCATION_CHANGE, now) == (
            NotificationType.PERSONALIZED_RECOMMENDATION
        )
        assert engine.priority(scored, now) == NotificationPriority.HIGH

    def test_default_is_new_deal_low_priority(self, engine, scored_factory, now):
        scored = scored_factory(60.0)
        assert engine.notification_type(scored, TriggerContext.SCHEDULED_CHECK, now) == (
            NotificationType.NEW_DEAL
        )
        assert engine.priority(scored, now) == NotificationPriority.LOW
        assert engine.expiry_for(NotificationPriority.LOW, now) == now + timedelta(hours=72)

    def test_big_discount_is_high_priority(self, engine, scored_factory, now):
        scored = scored_factory(60.0, discounted_price=70000.0, discount_percentage=30.0)
        assert engine.priority(scored, now) == NotificationPriority.HIGH

    @pytest.mark.asyncio
    async def test_notification_fields(self, engine, scored_factory, now):
        scored = scored_factory(75.0)

        [notification] = await engine.evaluate(USER, [scored], TriggerContext.SCHEDULED_CHECK)

        assert notification.user_id == USER
        assert notification.deal_id == "deal-1"
        assert notification.deal is scored
        assert notification.action_ref == "/dashboard?tab=promo&deal=deal-1"
        assert notification.metadata.relevance_score == 75.0
        assert notification.metadata.potential_savings == 20000.0
        assert notification.metadata.category == "dining"
        assert notification.metadata.merchant_name == "Warung Bu Rudy"
        assert notification.created_at == now
        assert notification.validate()


class TestDeliveryPolicy:
    """Test cases for preference, quiet-hours, cap and dedupe gates."""

    @pytest.mark.asyncio
    async def test_immediate_delivery_records_state(
        self, engine, scored_factory, sink, notification_store, now
    ):
        scored = [scored_factory(80.0, id="a"), scored_factory(70.0, id="b")]

        notifications = await engine.evaluate(USER, scored, TriggerContext.SCHEDULED_CHECK)

        assert [n.deal_id for n in notifications] == ["a", "b"]
        assert [n.deal_id for n in sink.delivered] == ["a", "b"]
        assert await notification_store.history_deal_ids(USER) == {"a", "b"}
        assert await notification_store.daily_count(USER, now.date()) == 2

    @pytest.mark.asyncio
    async def test_disabled_suppresses_everything(
        self, engine, preference_store, scored_factory, sink
    ):
        await preference_store.update(USER, {"enabled": False})

        result = await engine.evaluate_detailed(
            USER, [scored_factory()], TriggerContext.SCHEDULED_CHECK
        )

        assert result.notifications == []
        assert result.outcomes[0].state == CandidateState.SUPPRESSED
        assert result.outcomes[0].reason == "notifications disabled"
        assert sink.delivered == []

    @pytest.mark.asyncio
    async def test_quiet_hours_suppress(self, engine, preference_store, scored_factory, clock):
        await preference_store.update(
            USER, {"quiet_hours": {"enabled": True, "start": "22:00", "end": "08:00"}}
        )
        clock.now = datetime(2026, 3, 10, 23, 0, tzinfo=timezone.utc)

        assert await engine.evaluate(USER, [scored_factory()], "scheduled_check") == []

        clock.now = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)
        assert len(await engine.evaluate(USER, [scored_factory()], "scheduled_check")) == 1

    @pytest.mark.asyncio
    async def test_quiet_hours_use_user_timezone(
        self, engine, preference_store, scored_factory, clock
    ):
        """16:00 UTC is 23:00 in Jakarta."""
        await preference_store.update(
            USER,
            {
                "timezone": "Asia/Jakarta",
                "quiet_hours": {"enabled": True, "start": "22:00", "end": "08:00"},
            },
        )
        clock.now = datetime(2026, 3, 10, 16, 0, tzinfo=timezone.utc)

        assert await engine.evaluate(USER, [scored_factory()], "scheduled_check") == []

    @pytest.mark.asyncio
    async def test_daily_cap_keeps_top_candidates(
        self, engine, preference_store, scored_factory
    ):
        await preference_store.update(USER, {"max_daily_notifications": 3})
        scored = [scored_factory(score, id=f"d{score:.0f}") for score in (55, 85, 65, 75, 60)]

        result = await engine.evaluate_detailed(USER, scored, TriggerContext.SCHEDULED_CHECK)

        assert [n.deal_id for n in result.notifications] == ["d85", "d75", "d65"]
        states = result.states()
        assert states["d60"] == CandidateState.SUPPRESSED
        assert states["d55"] == CandidateState.SUPPRESSED
        assert states["d85"] == CandidateState.DELIVERED

    @pytest.mark.asyncio
    async def test_cap_counts_earlier_deliveries(
        self, engine, preference_store, notification_store, scored_factory, now
    ):
        await preference_store.update(USER, {"max_daily_notifications": 3})
        await notification_store.increment_daily_count(USER, now.date())
        await notification_store.increment_daily_count(USER, now.date())

        scored = [scored_factory(80.0, id="a"), scored_factory(70.0, id="b")]
        notifications = await engine.evaluate(USER, scored, TriggerContext.SCHEDULED_CHECK)

        assert [n.deal_id for n in notifications] == ["a"]
        assert await notification_store.daily_count(USER, now.date()) == 3

    @pytest.mark.asyncio
    async def test_cap_reached_suppresses_all(
        self, engine, preference_store, notification_store, scored_factory, now
    ):
        await preference_store.update(USER, {"max_daily_notifications": 1})
        await notification_store.increment_daily_count(USER, now.date())

        assert await engine.evaluate(USER, [scored_factory()], "scheduled_check") == []

    @pytest.mark.asyncio
    async def test_history_prevents_repeat(self, engine, scored_factory, sink):
        scored = scored_factory()

        first = await engine.evaluate(USER, [scored], TriggerContext.SCHEDULED_CHECK)
        second = await engine.evaluate(USER, [scored], TriggerContext.LOCATION_CHANGE)

        assert len(first) == 1
        assert second == []
        assert len(sink.delivered) == 1

    @pytest.mark.asyncio
    async def test_duplicate_ids_in_one_batch(self, engine, scored_factory):
        scored = [scored_factory(80.0), scored_factory(70.0)]
        notifications = await engine.evaluate(USER, scored, TriggerContext.SCHEDULED_CHECK)
        assert len(notifications) == 1

    @pytest.mark.asyncio
    async def test_disabled_type_is_skipped(self, engine, preference_store, scored_factory):
        await preference_store.update(USER, {"types": {"flash_deal": False}})
        scored = [
            scored_factory(90.0, id="flash", tags={"flash"}),
            scored_factory(60.0, id="plain"),
        ]

        result = await engine.evaluate_detailed(USER, scored, TriggerContext.SCHEDULED_CHECK)

        assert [n.deal_id for n in result.notifications] == ["plain"]
        assert result.outcomes[0].reason == "type disabled"

    @pytest.mark.asyncio
    async def test_expired_deal_suppressed(self, engine, scored_factory, now):
        scored = scored_factory(valid_until=now - timedelta(seconds=1))
        result = await engine.evaluate_detailed(USER, [scored], "scheduled_check")

        assert result.notifications == []
        assert result.outcomes[0].reason == "deal expired"


class TestQueuedRouting:
    """Test cases for daily and weekly digest routing."""

    @pytest.mark.asyncio
    async def test_daily_frequency_queues(
        self, engine, preference_store, notification_store, scored_factory, sink, now
    ):
        await preference_store.update(USER, {"frequency": "daily"})

        result = await engine.evaluate_detailed(
            USER, [scored_factory()], TriggerContext.SCHEDULED_CHECK
        )

        assert result.states() == {"deal-1": CandidateState.QUEUED}
        assert sink.delivered == []
        queued, raw_count = await notification_store.read_queue(
            USER, NotificationFrequency.DAILY
        )
        assert raw_count == 1
        assert queued[0].deal_id == "deal-1"
        # Counted and remembered only when the digest is delivered
        assert await notification_store.daily_count(USER, now.date()) == 0
        assert await notification_store.history_deal_ids(USER) == set()

    @pytest.mark.asyncio
    async def test_pending_queue_deduplicates(
        self, engine, preference_store, notification_store, scored_factory
    ):
        await preference_store.update(USER, {"frequency": "weekly"})

        await engine.evaluate(USER, [scored_factory()], "scheduled_check")
        second = await engine.evaluate(USER, [scored_factory()], "budget_update")

        assert second == []
        _, raw_count = await notification_store.read_queue(USER, NotificationFrequency.WEEKLY)
        assert raw_count == 1


class TestFailurePolicy:
    """Test cases for input errors and collaborator outages."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("user_id", ["", "   ", None])
    async def test_missing_user_id(self, engine, scored_factory, user_id):
        with pytest.raises(InputError):
            await engine.evaluate(user_id, [scored_factory()], "scheduled_check")

    @pytest.mark.asyncio
    async def test_malformed_candidate(self, engine):
        with pytest.raises(InputError):
            await engine.evaluate(USER, [{"id": "raw"}], "scheduled_check")

    @pytest.mark.asyncio
    async def test_naive_deal_expiry_rejected(self, engine, scored_factory, sink):
        naive = scored_factory(id="naive", valid_until=datetime(2026, 4, 1, 10, 0))

        with pytest.raises(InputError, match="timezone-aware"):
            await engine.evaluate(USER, [scored_factory(), naive], "scheduled_check")
        assert sink.delivered == []

    @pytest.mark.asyncio
    async def test_out_of_range_score_rejected(self, engine, scored_factory):
        with pytest.raises(InputError):
            await engine.evaluate(USER, [scored_factory(140.0)], "scheduled_check")

    @pytest.mark.asyncio
    async def test_unknown_trigger(self, engine, scored_factory):
        with pytest.raises(InputError):
            await engine.evaluate(USER, [scored_factory()], "price_drop")

    @pytest.mark.asyncio
    async def test_store_outage_fails_safe(
        self, engine, scored_factory, error_tracker, degradation, sink
    ):
        engine.preference_store = AsyncMock()
        engine.preference_store.get.side_effect = CollaboratorUnavailable("redis", "down")

        result = await engine.evaluate_detailed(USER, [scored_factory()], "scheduled_check")

        assert result.notifications == []
        assert result.outcomes[0].reason == "store unavailable"
        assert sink.delivered == []
        assert error_tracker.errors[0].category == ErrorCategory.STORE
        assert degradation.is_degraded("notification_store")

    @pytest.mark.asyncio
    async def test_recovery_restores_component(self, engine, scored_factory, degradation):
        degradation.degrade_component("notification_store", "down", "no notifications")

        await engine.evaluate(USER, [scored_factory()], "scheduled_check")

        assert not degradation.is_degraded("notification_store")

    @pytest.mark.asyncio
    async def test_write_failure_hands_nothing_off(
        self, engine, memory_store, scored_factory, sink
    ):
        memory_store.incr = AsyncMock(side_effect=CollaboratorUnavailable("redis", "timeout"))

        notifications = await engine.evaluate(USER, [scored_factory()], "scheduled_check")

        assert notifications == []
        assert sink.delivered == []

    @pytest.mark.asyncio
    async def test_sink_failure_is_recorded(self, engine, scored_factory, error_tracker):
        engine.delivery_sink = AsyncMock()
        engine.delivery_sink.deliver.side_effect = RuntimeError("push gateway down")

        notifications = await engine.evaluate(USER, [scored_factory()], "scheduled_check")

        assert len(notifications) == 1
        assert error_tracker.errors[0].category == ErrorCategory.DELIVERY
