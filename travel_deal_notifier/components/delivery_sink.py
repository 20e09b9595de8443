"""Delivery sinks receiving accepted notifications."""

from typing import List

from ..models.notification import DealNotification
from ..utils.logging import get_logger

logger = get_logger("delivery.sink")


class LoggingDeliverySink:
    """Default sink: records the handoff in the log.

    Real transports (push, e-mail, sockets) implement the same ``deliver``
    coroutine and are injected in its place.
    """

    async def deliver(self, notification: DealNotification) -> None:
        logger.info(
            f"Handing off notification: {notification.title}",
            extra={
                "notification_id": notification.id,
                "user_id": notification.user_id,
                "deal_id": notification.deal_id,
                "type": notification.type.value,
                "priority": notification.priority.value,
            },
        )


class CollectingDeliverySink:
    """Keeps handed-off notifications in memory, for dry runs and tests."""

    def __init__(self):
        self.delivered: List[DealNotification] = []

    async def deliver(self, notification: DealNotification) -> None:
        self.delivered.append(notification)
