"""History, digest queue and daily counter persistence."""

from datetime import date
from typing import List, Optional, Set, Tuple

from ..interfaces import IKeyValueStore
from ..models.config import NotificationConfig
from ..models.notification import DealNotification, NotificationFrequency
from ..utils.logging import get_logger

logger = get_logger("store.notifications")


class NotificationStore:
    """Per-user delivery state kept in the key-value store.

    Keys:
        history:{user}              recently notified deal ids, newest last
        queue:{user}:{frequency}    pending notifications for a digest
        dailycount:{user}:{date}    deliveries counted against the daily cap
    """

    def __init__(
        self,
        store: IKeyValueStore,
        config: Optional[NotificationConfig] = None,
        key_prefix: str = "",
    ):
        self.store = store
        self.config = config or NotificationConfig()
        self.key_prefix = key_prefix

    def history_key(self, user_id: str) -> str:
        return f"{self.key_prefix}history:{user_id}"

    def queue_key(self, user_id: str, frequency: NotificationFrequency) -> str:
        return f"{self.key_prefix}queue:{user_id}:{frequency.value}"

    def counter_key(self, user_id: str, day: date) -> str:
        return f"{self.key_prefix}dailycount:{user_id}:{day.isoformat()}"

    async def history_deal_ids(self, user_id: str) -> Set[str]:
        items = await self.store.list_range(self.history_key(user_id))
        return {str(item) for item in items if item is not None}

    async def record_history(self, user_id: str, deal_id: str) -> None:
        await self.store.append(
            self.history_key(user_id),
            deal_id,
            ttl_seconds=self.config.history_ttl_seconds,
            max_length=self.config.history_limit,
        )

    async def daily_count(self, user_id: str, day: date) -> int:
        value = await self.store.get(self.counter_key(user_id, day))
        return int(value) if value is not None else 0

    async def increment_daily_count(self, user_id: str, day: date) -> int:
        return await self.store.incr(
            self.counter_key(user_id, day), ttl_seconds=self.config.counter_ttl_seconds
        )

    async def enqueue(
        self,
        user_id: str,
        frequency: NotificationFrequency,
        notification: DealNotification,
    ) -> int:
        return await self.store.append(
            self.queue_key(user_id, frequency),
            notification.to_dict(),
            ttl_seconds=self.config.queue_ttl_seconds,
        )

    async def read_queue(
        self, user_id: str, frequency: NotificationFrequency
    ) -> Tuple[List[DealNotification], int]:
        """Pending notifications plus the raw entry count they were read from.

        Unreadable entries are skipped but still counted so that draining
        removes them too.
        """
        raw_items = await self.store.list_range(self.queue_key(user_id, frequency))
        notifications = []
        for item in raw_items:
            try:
                notifications.append(DealNotification.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(
                    "Dropping unreadable queued notification",
                    extra={"user_id": user_id, "error": str(e)},
                )
        return notifications, len(raw_items)

    async def remove_queued(
        self, user_id: str, frequency: NotificationFrequency, count: int
    ) -> None:
        """Remove the oldest ``count`` entries, keeping anything appended since."""
        await self.store.trim_front(self.queue_key(user_id, frequency), count)
