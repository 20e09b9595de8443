"""Notification preference persistence under ``pref:{userId}``."""

from typing import Any, Dict, Optional

from ..interfaces import IKeyValueStore
from ..models.config import NotificationConfig
from ..models.notification import NotificationFrequency, NotificationPreferences
from ..utils.error_handling import InputError
from ..utils.logging import get_logger

logger = get_logger("store.preferences")


class PreferenceStore:
    """Reads and updates per-user notification preferences.

    Preferences are created with configured defaults on first read and are
    only ever changed through ``update``.
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

    def _key(self, user_id: str) -> str:
        return f"{self.key_prefix}pref:{user_id}"

    def defaults(self, user_id: str) -> NotificationPreferences:
        return NotificationPreferences(
            user_id=user_id,
            frequency=NotificationFrequency(self.config.default_frequency),
            max_daily_notifications=self.config.default_max_daily,
            timezone=self.config.default_timezone,
        )

    async def get(self, user_id: str) -> NotificationPreferences:
        """Load preferences, creating and saving defaults if absent."""
        data = await self.store.get(self._key(user_id))
        if data is None:
            preferences = self.defaults(user_id)
            await self.store.set(self._key(user_id), preferences.to_dict())
            logger.info("Created default preferences", extra={"user_id": user_id})
            return preferences

        try:
            preferences = NotificationPreferences.from_dict(data)
            preferences.validate()
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(
                "Stored preferences unreadable, using defaults",
                extra={"user_id": user_id, "error": str(e)},
            )
            return self.defaults(user_id)
        return preferences

    async def update(
        self, user_id: str, partial: Dict[str, Any]
    ) -> NotificationPreferences:
        """Merge a partial update into the stored preferences.

        Raises:
            InputError: If the update holds unknown fields or invalid values
        """
        if not isinstance(partial, dict):
            raise InputError("Preference update must be a mapping")

        current = await self.get(user_id)
        try:
            updated = current.merged(partial)
            updated.validate()
        except (KeyError, TypeError, ValueError) as e:
            raise InputError(f"Invalid preference update: {e}") from e

        await self.store.set(self._key(user_id), updated.to_dict())
        logger.info(
            "Updated preferences",
            extra={"user_id": user_id, "fields": sorted(partial)},
        )
        return updated
