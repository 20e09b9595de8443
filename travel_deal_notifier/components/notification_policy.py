"""
Notification policy engine.

Decides, per scored deal, whether a traveler is notified now, later in a
digest, or not at all. Applies preferences, quiet hours, the daily cap and
history-based dedupe, then derives type, priority and expiry.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Set, Union

from ..interfaces import IDeliverySink, IPreferenceStore
from ..models.config import NotificationConfig
from ..models.deal import ScoredDeal
from ..models.notification import (
    DealNotification,
    NotificationFrequency,
    NotificationMetadata,
    NotificationPreferences,
    NotificationPriority,
    NotificationType,
    TriggerContext,
)
from ..stores.notification_store import NotificationStore
from ..utils.error_handling import (
    CollaboratorUnavailable,
    ErrorCategory,
    ErrorSeverity,
    ErrorTracker,
    GracefulDegradation,
    InputError,
    get_degradation_manager,
    get_error_tracker,
    with_error_handling,
)
from ..utils.logging import get_logger
from .delivery_sink import LoggingDeliverySink
from .notification_formatter import NotificationFormatter, days_until
from .relevance_scorer import ranking_key

STORE_COMPONENT = "notification_store"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CandidateState(Enum):
    """Terminal state of one candidate deal within an evaluation."""

    DELIVERED = "delivered"
    QUEUED = "queued"
    SUPPRESSED = "suppressed"


@dataclass
class CandidateOutcome:
    deal_id: str
    state: CandidateState
    reason: Optional[str] = None


@dataclass
class PolicyResult:
    """Accepted notifications plus the fate of every candidate."""

    notifications: List[DealNotification] = field(default_factory=list)
    outcomes: List[CandidateOutcome] = field(default_factory=list)

    def suppress_all(self, deals: Sequence[ScoredDeal], reason: str) -> "PolicyResult":
        self.outcomes.extend(
            CandidateOutcome(d.id, CandidateState.SUPPRESSED, reason) for d in deals
        )
        return self

    def states(self) -> Dict[str, CandidateState]:
        return {o.deal_id: o.state for o in self.outcomes}


class NotificationPolicyEngine:
    """Stateful, rate-limited notification decisions.

    All state lives in the injected stores; the engine itself holds none
    between calls. The daily counter and history are updated with the
    store's atomic primitives, so concurrent triggers for one user can at
    worst both pass the cap check in the same instant.
    """

    def __init__(
        self,
        preference_store: IPreferenceStore,
        notification_store: NotificationStore,
        delivery_sink: Optional[IDeliverySink] = None,
        config: Optional[NotificationConfig] = None,
        clock: Callable[[], datetime] = utc_now,
        error_tracker: Optional[ErrorTracker] = None,
        degradation: Optional[GracefulDegradation] = None,
    ):
        self.preference_store = preference_store
        self.notification_store = notification_store
        self.delivery_sink = delivery_sink or LoggingDeliverySink()
        self.config = config or NotificationConfig()
        self.formatter = NotificationFormatter(self.config)
        self.clock = clock
        self.error_tracker = error_tracker or get_error_tracker()
        self.degradation = degradation or get_degradation_manager()
        self.logger = get_logger("policy.engine")

    async def evaluate(
        self,
        user_id: str,
        scored_deals: Sequence[ScoredDeal],
        trigger: Union[TriggerContext, str],
    ) -> List[DealNotification]:
        """Accepted notifications for this batch, best first."""
        return (await self.evaluate_detailed(user_id, scored_deals, trigger)).notifications

    async def evaluate_detailed(
        self,
        user_id: str,
        scored_deals: Sequence[ScoredDeal],
        trigger: Union[TriggerContext, str],
    ) -> PolicyResult:
        """
        Run the delivery policy over a batch of scored deals.

        Store outages never escape: they are logged, recorded and turned
        into a result with no notifications.

        Raises:
            InputError: On a missing user id, unknown trigger or a candidate
                that is not a valid ScoredDeal
        """
        user_id = self.require_user_id(user_id)
        trigger = self._parse_trigger(trigger)
        for candidate in scored_deals:
            if not isinstance(candidate, ScoredDeal):
                raise InputError(
                    f"Candidates must be ScoredDeal, got {type(candidate).__name__}"
                )
            try:
                candidate.validate()
            except (TypeError, ValueError) as e:
                raise InputError(f"Invalid candidate {candidate.id!r}: {e}") from e

        try:
            result = await self._evaluate(user_id, list(scored_deals), trigger)
        except CollaboratorUnavailable as e:
            self.report_store_failure(e, user_id)
            return PolicyResult().suppress_all(scored_deals, "store unavailable")

        self.degradation.restore_component(STORE_COMPONENT)
        return result

    @staticmethod
    def require_user_id(user_id: str) -> str:
        if not isinstance(user_id, str) or not user_id.strip():
            raise InputError("A non-empty user id is required")
        return user_id.strip()

    @staticmethod
    def _parse_trigger(trigger: Union[TriggerContext, str]) -> TriggerContext:
        if isinstance(trigger, TriggerContext):
            return trigger
        try:
            return TriggerContext(trigger)
        except ValueError:
            raise InputError(f"Unknown trigger context: {trigger!r}")

    def report_store_failure(self, error: CollaboratorUnavailable, user_id: str) -> None:
        self.error_tracker.record_error(
            component="policy.engine",
            category=ErrorCategory.STORE,
            severity=ErrorSeverity.HIGH,
            message=str(error),
            exception=error,
            context={"user_id": user_id},
        )
        self.degradation.degrade_component(
            STORE_COMPONENT,
            reason=str(error),
            fallback_behavior="no notifications until the store recovers",
        )
        self.logger.warning(
            "Store unavailable, skipping notifications", extra={"user_id": user_id}
        )

    async def _evaluate(
        self, user_id: str, scored_deals: List[ScoredDeal], trigger: TriggerContext
    ) -> PolicyResult:
        result = PolicyResult()
        now = self.clock()
        preferences = await self.preference_store.get(user_id)

        if not preferences.enabled:
            self.logger.info("Notifications disabled", extra={"user_id": user_id})
            return result.suppress_all(scored_deals, "notifications disabled")

        local_now = now.astimezone(preferences.tzinfo)
        if preferences.quiet_hours.contains(local_now.time()):
            self.logger.info("In quiet hours, skipping", extra={"user_id": user_id})
            return result.suppress_all(scored_deals, "quiet hours")

        cap = preferences.max_daily_notifications
        sent_today = await self.notification_store.daily_count(user_id, local_now.date())
        if sent_today >= cap:
            self.logger.info("Daily limit reached", extra={"user_id": user_id})
            return result.suppress_all(scored_deals, "daily cap reached")

        already_notified = await self._known_deal_ids(user_id, preferences)
        accepted: List[DealNotification] = []

        ordered = sorted(scored_deals, key=ranking_key)
        for position, scored in enumerate(ordered):
            if sent_today + len(accepted) >= cap:
                result.suppress_all(ordered[position:], "daily cap reached")
                break

            reason = self._rejection_reason(scored, trigger, preferences, already_notified, now)
            if reason:
                result.outcomes.append(
                    CandidateOutcome(scored.id, CandidateState.SUPPRESSED, reason)
                )
                continue

            already_notified.add(scored.id)
            accepted.append(self.build_notification(user_id, scored, trigger, now))

        await self._route(user_id, preferences, accepted, local_now, result)

        self.logger.info(
            f"Accepted {len(accepted)} of {len(scored_deals)} candidates",
            extra={
                "user_id": user_id,
                "trigger": trigger.value,
                "frequency": preferences.frequency.value,
            },
        )
        return result

    async def _known_deal_ids(
        self, user_id: str, preferences: NotificationPreferences
    ) -> Set[str]:
        """Deal ids already notified, or waiting in this user's digest queue."""
        known = await self.notification_store.history_deal_ids(user_id)
        if preferences.frequency != NotificationFrequency.IMMEDIATE:
            queued, _ = await self.notification_store.read_queue(
                user_id, preferences.frequency
            )
            known.update(n.deal_id for n in queued)
        return known

    def _rejection_reason(
        self,
        scored: ScoredDeal,
        trigger: TriggerContext,
        preferences: NotificationPreferences,
        already_notified: Set[str],
        now: datetime,
    ) -> Optional[str]:
        if scored.deal.valid_until <= now:
            return "deal expired"
        if not preferences.is_type_enabled(self.notification_type(scored, trigger, now)):
            return "type disabled"
        if scored.id in already_notified:
            return "already notified"
        return None

    async def _route(
        self,
        user_id: str,
        preferences: NotificationPreferences,
        accepted: List[DealNotification],
        local_now: datetime,
        result: PolicyResult,
    ) -> None:
        if preferences.frequency == NotificationFrequency.IMMEDIATE:
            # History and counter cover the whole batch before any handoff.
            for notification in accepted:
                await self.notification_store.record_history(user_id, notification.deal_id)
                await self.notification_store.increment_daily_count(
                    user_id, local_now.date()
                )
            for notification in accepted:
                await self.hand_off(notification)
            state = CandidateState.DELIVERED
        else:
            for notification in accepted:
                await self.notification_store.enqueue(
                    user_id, preferences.frequency, notification
                )
            state = CandidateState.QUEUED

        result.notifications.extend(accepted)
        result.outcomes.extend(CandidateOutcome(n.deal_id, state) for n in accepted)

    @with_error_handling(
        component="policy.engine",
        category=ErrorCategory.DELIVERY,
        severity=ErrorSeverity.MEDIUM,
        fallback_value=False,
        suppress_exceptions=True,
    )
    async def hand_off(self, notification: DealNotification) -> bool:
        """Pass a notification to the delivery sink; sink failures are logged."""
        await self.delivery_sink.deliver(notification)
        return True

    def notification_type(
        self, scored: ScoredDeal, trigger: TriggerContext, now: datetime
    ) -> NotificationType:
        if scored.deal.has_tag(*self.config.flash_tags):
            return NotificationType.FLASH_DEAL
        if days_until(scored.deal.valid_until, now) <= self.config.expiring_soon_days:
            return NotificationType.EXPIRING_SOON
        if trigger == TriggerContext.BUDGET_UPDATE:
            return NotificationType.BUDGET_MATCH
        if scored.relevance_score >= self.config.high_relevance_score:
            return NotificationType.PERSONALIZED_RECOMMENDATION
        return NotificationType.NEW_DEAL

    def priority(self, scored: ScoredDeal, now: datetime) -> NotificationPriority:
        if scored.deal.has_tag(*self.config.flash_tags):
            return NotificationPriority.URGENT
        if (
            scored.relevance_score >= self.config.high_relevance_score
            or scored.deal.savings_percentage >= self.config.high_discount_percentage
        ):
            return NotificationPriority.HIGH
        if days_until(scored.deal.valid_until, now) <= self.config.medium_priority_days:
            return NotificationPriority.MEDIUM
        return NotificationPriority.LOW

    def expiry_for(self, priority: NotificationPriority, now: datetime) -> datetime:
        """Notification expiry, independent of the deal's own validity."""
        return now + timedelta(hours=self.config.expiry_hours[priority.value])

    def build_notification(
        self,
        user_id: str,
        scored: ScoredDeal,
        trigger: TriggerContext,
        now: datetime,
    ) -> DealNotification:
        kind = self.notification_type(scored, trigger, now)
        priority = self.priority(scored, now)
        title, message = self.formatter.format(scored, kind, now)
        deal = scored.deal

        return DealNotification(
            id=f"deal-notif-{uuid.uuid4().hex[:12]}",
            user_id=user_id,
            deal_id=deal.id,
            type=kind,
            title=title,
            message=message,
            deal=scored,
            priority=priority,
            expires_at=self.expiry_for(priority, now),
            action_ref=f"{self.config.action_base}&deal={deal.id}",
            metadata=NotificationMetadata(
                relevance_score=scored.relevance_score,
                potential_savings=scored.potential_savings,
                category=deal.category.value,
                merchant_name=deal.merchant_name,
            ),
            created_at=now,
        )
