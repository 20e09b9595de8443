"""
Digest compilation for users on daily or weekly delivery.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Union

from ..models.config import NotificationConfig
from ..models.notification import (
    DealNotification,
    NotificationFrequency,
    NotificationMetadata,
    NotificationPriority,
    NotificationType,
)
from ..stores.notification_store import NotificationStore
from ..utils.error_handling import InputError
from ..utils.logging import get_logger
from .notification_formatter import NotificationFormatter

DIGEST_DEAL_ID = "digest"


@dataclass
class CompiledDigest:
    """A digest notification and the queued notifications it replaced."""

    notification: DealNotification
    members: List[DealNotification]

    @property
    def member_deal_ids(self) -> List[str]:
        return [member.deal_id for member in self.members]


class DigestCompiler:
    """Turns a user's pending queue into a single summary notification."""

    def __init__(
        self,
        notification_store: NotificationStore,
        config: Optional[NotificationConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.notification_store = notification_store
        self.config = config or NotificationConfig()
        self.formatter = NotificationFormatter(self.config)
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.logger = get_logger("digest.compiler")

    @staticmethod
    def parse_frequency(
        frequency: Union[NotificationFrequency, str],
    ) -> NotificationFrequency:
        try:
            frequency = NotificationFrequency(frequency)
        except ValueError:
            raise InputError(f"Unknown frequency: {frequency!r}")
        if frequency == NotificationFrequency.IMMEDIATE:
            raise InputError("Immediate delivery has no digest queue")
        return frequency

    async def compile_digest(
        self, user_id: str, frequency: Union[NotificationFrequency, str]
    ) -> Optional[DealNotification]:
        compiled = await self.compile(user_id, frequency)
        return compiled.notification if compiled else None

    async def compile(
        self, user_id: str, frequency: Union[NotificationFrequency, str]
    ) -> Optional[CompiledDigest]:
        """
        Build the digest and drain the entries it summarises.

        The queue is trimmed only after the digest exists, and only by the
        number of entries read, so notifications queued meanwhile survive
        for the next run.

        Returns:
            The compiled digest, or None when nothing was pending
        """
        frequency = self.parse_frequency(frequency)
        members, raw_count = await self.notification_store.read_queue(user_id, frequency)

        if raw_count == 0:
            self.logger.debug("Digest queue empty", extra={"user_id": user_id})
            return None

        if not members:
            await self.notification_store.remove_queued(user_id, frequency, raw_count)
            self.logger.warning(
                "Digest queue held only unreadable entries",
                extra={"user_id": user_id, "dropped": raw_count},
            )
            return None

        digest = self._build(user_id, frequency, members)
        await self.notification_store.remove_queued(user_id, frequency, raw_count)

        self.logger.info(
            f"Compiled {frequency.value} digest of {len(members)} deals",
            extra={"user_id": user_id, "total_savings": digest.metadata.potential_savings},
        )
        return CompiledDigest(notification=digest, members=members)

    def _build(
        self,
        user_id: str,
        frequency: NotificationFrequency,
        members: List[DealNotification],
    ) -> DealNotification:
        now = self.clock()
        total_savings = sum(member.metadata.potential_savings for member in members)

        categories: List[str] = []
        for member in members:
            if member.metadata.category not in categories:
                categories.append(member.metadata.category)

        merchants = {member.metadata.merchant_name for member in members}
        best = max(members, key=lambda member: member.metadata.relevance_score)

        title, message = self.formatter.format_digest(
            frequency, len(members), categories, total_savings
        )
        priority = NotificationPriority.MEDIUM

        return DealNotification(
            id=f"digest-{uuid.uuid4().hex[:12]}",
            user_id=user_id,
            deal_id=DIGEST_DEAL_ID,
            type=NotificationType.PERSONALIZED_RECOMMENDATION,
            title=title,
            message=message,
            deal=best.deal,
            priority=priority,
            expires_at=now + timedelta(hours=self.config.expiry_hours[priority.value]),
            action_ref=self.config.action_base,
            metadata=NotificationMetadata(
                relevance_score=best.metadata.relevance_score,
                potential_savings=total_savings,
                category=", ".join(categories),
                merchant_name=merchants.pop() if len(merchants) == 1 else "Multiple Merchants",
            ),
            created_at=now,
        )
