"""
Deal notification service.

Wires the relevance scorer, spatial clusterer, policy engine, digest
compiler and delivery sink over one key-value store, and exposes the
operations callers use.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from ..components.digest_compiler import DigestCompiler
from ..components.notification_policy import NotificationPolicyEngine, utc_now
from ..components.relevance_scorer import RelevanceScorer
from ..components.spatial_clusterer import SpatialClusterer
from ..interfaces import (
    IDeliverySink,
    IKeyValueStore,
    IRelevanceScorer,
    ISpatialClusterer,
)
from ..models.cluster import Cluster
from ..models.config import Configuration
from ..models.context import UserContext
from ..models.deal import Deal, ScoredDeal
from ..models.notification import (
    DealNotification,
    NotificationFrequency,
    NotificationPreferences,
    TriggerContext,
)
from ..stores import NotificationStore, PreferenceStore, create_store
from ..utils.error_handling import (
    CollaboratorUnavailable,
    ErrorTracker,
    GracefulDegradation,
    InputError,
    get_degradation_manager,
    get_error_tracker,
)
from ..utils.logging import get_logger


class DealNotificationService:
    """
    Entry point for scoring deals and notifying travelers.

    Store outages never surface from the notify and digest operations:
    they are logged, recorded and answered with "nothing sent".
    """

    def __init__(
        self,
        config: Optional[Configuration] = None,
        store: Optional[IKeyValueStore] = None,
        delivery_sink: Optional[IDeliverySink] = None,
        clock: Callable[[], datetime] = utc_now,
        error_tracker: Optional[ErrorTracker] = None,
        degradation: Optional[GracefulDegradation] = None,
        scorer: Optional[IRelevanceScorer] = None,
        clusterer: Optional[ISpatialClusterer] = None,
    ):
        """
        Initialize the service.

        Args:
            config: System configuration; defaults when omitted
            store: Key-value store; built from ``config.store`` when omitted
            delivery_sink: Transport receiving accepted notifications
            clock: Source of the current instant (UTC-aware)
            error_tracker: Error tracker, the process-wide one by default
            degradation: Degradation manager, the process-wide one by default
            scorer: Relevance scorer; built from ``config.scoring`` when omitted
            clusterer: Spatial clusterer; built from ``config.clustering``
                when omitted
        """
        self.config = config or Configuration.default()
        self.config.validate()
        self.logger = get_logger("service")

        self.store = store if store is not None else create_store(self.config.store)
        self.error_tracker = error_tracker or get_error_tracker()
        self.degradation = degradation or get_degradation_manager()
        self.clock = clock

        prefix = self.config.store.key_prefix
        notifications = self.config.notifications
        self.preference_store = PreferenceStore(self.store, notifications, prefix)
        self.notification_store = NotificationStore(self.store, notifications, prefix)

        self.scorer: IRelevanceScorer = scorer or RelevanceScorer(self.config.scoring)
        self.clusterer: ISpatialClusterer = clusterer or SpatialClusterer(
            self.config.clustering
        )
        self.policy_engine = NotificationPolicyEngine(
            self.preference_store,
            self.notification_store,
            delivery_sink=delivery_sink,
            config=notifications,
            clock=clock,
            error_tracker=self.error_tracker,
            degradation=self.degradation,
        )
        self.digest_compiler = DigestCompiler(
            self.notification_store, config=notifications, clock=clock
        )

    async def connect(self) -> None:
        """Open the store connection where the backend needs one."""
        connect = getattr(self.store, "connect", None)
        if connect is not None:
            await connect()

    async def close(self) -> None:
        close = getattr(self.store, "close", None)
        if close is not None:
            await close()

    async def notify_matching_deals(
        self,
        user_id: str,
        scored_deals: Sequence[ScoredDeal],
        trigger_context: Union[TriggerContext, str] = TriggerContext.SCHEDULED_CHECK,
    ) -> List[DealNotification]:
        """
        Apply the delivery policy to already-scored deals.

        Returns:
            The notifications delivered or queued, best first

        Raises:
            InputError: On a missing user id or malformed candidates
        """
        return await self.policy_engine.evaluate(user_id, scored_deals, trigger_context)

    async def match_and_notify(
        self,
        context: UserContext,
        deals: Sequence[Deal],
        trigger_context: Union[TriggerContext, str] = TriggerContext.SCHEDULED_CHECK,
    ) -> List[DealNotification]:
        """
        Score deals for a traveler, then run them through the policy.

        Invalid deals are logged and skipped individually; the rest of the
        batch is still scored.

        Raises:
            InputError: On an invalid user context
        """
        try:
            context.validate()
        except ValueError as e:
            raise InputError(f"Invalid user context: {e}") from e

        scored = self.scorer.score_deals(self._valid_deals(deals, context.user_id), context)
        self.logger.debug(
            f"Scored {len(scored)} deals",
            extra={"user_id": context.user_id},
        )
        return await self.notify_matching_deals(context.user_id, scored, trigger_context)

    def _valid_deals(self, deals: Sequence[Deal], user_id: str) -> List[Deal]:
        valid: List[Deal] = []
        for index, deal in enumerate(deals):
            try:
                if not isinstance(deal, Deal):
                    raise TypeError(f"expected Deal, got {type(deal).__name__}")
                deal.validate()
            except (TypeError, ValueError) as e:
                self.logger.warning(
                    f"Rejected deal #{index}: {e}",
                    extra={"user_id": user_id, "deal_id": getattr(deal, "id", None)},
                )
                continue
            valid.append(deal)
        return valid

    async def process_queued_notifications(
        self,
        user_id: str,
        frequency: Union[NotificationFrequency, str],
    ) -> Optional[DealNotification]:
        """
        Compile a user's pending digest and hand it off.

        The digest counts once against the daily counter and every deal it
        summarises joins the delivery history. Once the queue has been
        drained the digest is handed off even if that bookkeeping fails.

        Returns:
            The digest notification, or None when nothing was pending or the
            queue could not be read
        """
        user_id = NotificationPolicyEngine.require_user_id(user_id)
        frequency = DigestCompiler.parse_frequency(frequency)

        try:
            compiled = await self.digest_compiler.compile(user_id, frequency)
        except CollaboratorUnavailable as e:
            self.policy_engine.report_store_failure(e, user_id)
            return None
        if compiled is None:
            self.degradation.restore_component("notification_store")
            return None

        try:
            await self._record_digest_delivery(user_id, compiled.member_deal_ids)
        except CollaboratorUnavailable as e:
            self.policy_engine.report_store_failure(e, user_id)
        else:
            self.degradation.restore_component("notification_store")

        await self.policy_engine.hand_off(compiled.notification)
        return compiled.notification

    async def _record_digest_delivery(self, user_id: str, deal_ids: List[str]) -> None:
        preferences = await self.preference_store.get(user_id)
        local_day = self.clock().astimezone(preferences.tzinfo).date()
        await self.notification_store.increment_daily_count(user_id, local_day)
        for deal_id in deal_ids:
            await self.notification_store.record_history(user_id, deal_id)

    async def get_preferences(self, user_id: str) -> NotificationPreferences:
        """Current preferences; defaults while the store is unavailable."""
        user_id = NotificationPolicyEngine.require_user_id(user_id)
        try:
            return await self.preference_store.get(user_id)
        except CollaboratorUnavailable as e:
            self.policy_engine.report_store_failure(e, user_id)
            return self.preference_store.defaults(user_id)

    async def update_preferences(
        self, user_id: str, partial: Dict[str, Any]
    ) -> NotificationPreferences:
        """
        Merge a partial preference update.

        Raises:
            InputError: On unknown fields or invalid values
            CollaboratorUnavailable: If the update could not be persisted
        """
        user_id = NotificationPolicyEngine.require_user_id(user_id)
        return await self.preference_store.update(user_id, partial)

    def cluster(
        self, scored_deals: Sequence[ScoredDeal], cell_size_deg: Optional[float] = None
    ) -> List[Cluster]:
        """Group deals for map display. Has no effect on notifications."""
        return self.clusterer.cluster(scored_deals, cell_size_deg)
