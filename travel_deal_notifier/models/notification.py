"""
Notification and notification-preference models.
"""

import copy
import re
from dataclasses import dataclass, field
from datetime import datetime, time
from enum import Enum
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import parser as date_parser

from .deal import ScoredDeal

_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class NotificationType(Enum):
    """Kinds of deal notification."""

    NEW_DEAL = "new_deal"
    EXPIRING_SOON = "expiring_soon"
    BUDGET_MATCH = "budget_match"
    FLASH_DEAL = "flash_deal"
    PERSONALIZED_RECOMMENDATION = "personalized_recommendation"


class NotificationPriority(Enum):
    """Priority levels for notifications."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class NotificationFrequency(Enum):
    """How accepted notifications are handed off."""

    IMMEDIATE = "immediate"
    DAILY = "daily"
    WEEKLY = "weekly"


class TriggerContext(Enum):
    """What caused an evaluation run."""

    BUDGET_UPDATE = "budget_update"
    LOCATION_CHANGE = "location_change"
    SCHEDULED_CHECK = "scheduled_check"
    MANUAL_REQUEST = "manual_request"


def parse_time_of_day(value: str) -> time:
    """Parse an ``HH:MM`` string."""
    match = _TIME_PATTERN.match(value or "")
    if not match:
        raise ValueError(f"Invalid time of day (expected HH:MM): {value!r}")
    return time(int(match.group(1)), int(match.group(2)))


@dataclass
class QuietHours:
    """Daily window during which nothing is sent.

    ``start > end`` describes an overnight window such as 22:00-08:00.
    Both bounds are inclusive.
    """

    enabled: bool = False
    start: str = "22:00"
    end: str = "08:00"

    def contains(self, moment: time) -> bool:
        """Whether the local time of day falls inside the window."""
        if not self.enabled:
            return False

        current = moment.hour * 60 + moment.minute
        start = parse_time_of_day(self.start)
        end = parse_time_of_day(self.end)
        start_minutes = start.hour * 60 + start.minute
        end_minutes = end.hour * 60 + end.minute

        if start_minutes <= end_minutes:
            return start_minutes <= current <= end_minutes

        # Overnight window
        return current >= start_minutes or current <= end_minutes

    def validate(self) -> bool:
        if not isinstance(self.enabled, bool):
            raise ValueError("quiet_hours.enabled must be a boolean")
        parse_time_of_day(self.start)
        parse_time_of_day(self.end)
        return True


@dataclass
class NotificationPreferences:
    """Per-user delivery preferences. Never deleted, only updated."""

    user_id: str
    enabled: bool = True
    types: Dict[NotificationType, bool] = field(
        default_factory=lambda: {kind: True for kind in NotificationType}
    )
    frequency: NotificationFrequency = NotificationFrequency.IMMEDIATE
    quiet_hours: QuietHours = field(default_factory=QuietHours)
    max_daily_notifications: int = 10
    timezone: str = "UTC"

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def is_type_enabled(self, kind: NotificationType) -> bool:
        return self.types.get(kind, True)

    def validate(self) -> bool:
        """Validate preference data."""
        if not self.user_id or not str(self.user_id).strip():
            raise ValueError("User ID cannot be empty")

        if not isinstance(self.enabled, bool):
            raise ValueError("enabled must be a boolean")

        for kind, flag in self.types.items():
            if not isinstance(kind, NotificationType) or not isinstance(flag, bool):
                raise ValueError("types must map NotificationType to booleans")

        if not isinstance(self.frequency, NotificationFrequency):
            raise ValueError("frequency must be a NotificationFrequency enum")

        if (
            not isinstance(self.max_daily_notifications, int)
            or isinstance(self.max_daily_notifications, bool)
            or self.max_daily_notifications < 0
        ):
            raise ValueError("max_daily_notifications must be a non-negative integer")

        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError, TypeError):
            raise ValueError(f"Unknown timezone: {self.timezone!r}")

        return self.quiet_hours.validate()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "enabled": self.enabled,
            "types": {kind.value: flag for kind, flag in self.types.items()},
            "frequency": self.frequency.value,
            "quiet_hours": {
                "enabled": self.quiet_hours.enabled,
                "start": self.quiet_hours.start,
                "end": self.quiet_hours.end,
            },
            "max_daily_notifications": self.max_daily_notifications,
            "timezone": self.timezone,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NotificationPreferences":
        types = {kind: True for kind in NotificationType}
        for key, flag in (data.get("types") or {}).items():
            types[NotificationType(key)] = flag

        quiet = data.get("quiet_hours") or {}
        return cls(
            user_id=data["user_id"],
            enabled=data.get("enabled", True),
            types=types,
            frequency=NotificationFrequency(data.get("frequency", "immediate")),
            quiet_hours=QuietHours(
                enabled=quiet.get("enabled", False),
                start=quiet.get("start", "22:00"),
                end=quiet.get("end", "08:00"),
            ),
            max_daily_notifications=data.get("max_daily_notifications", 10),
            timezone=data.get("timezone", "UTC"),
        )

    def merged(self, partial: Dict[str, Any]) -> "NotificationPreferences":
        """Return a copy with a partial update applied.

        ``types`` and ``quiet_hours`` are merged key by key; the user id
        cannot be changed.
        """
        data = copy.deepcopy(self.to_dict())
        for key, value in partial.items():
            if key == "user_id":
                continue
            if key in ("types", "quiet_hours") and isinstance(value, dict):
                data[key].update(value)
            elif key not in data:
                raise ValueError(f"Unknown preference field: {key}")
            else:
                data[key] = value
        return NotificationPreferences.from_dict(data)


@dataclass
class NotificationMetadata:
    relevance_score: float
    potential_savings: float
    category: str
    merchant_name: str


@dataclass
class DealNotification:
    """A notification produced by the policy engine or the digest compiler."""

    id: str
    user_id: str
    deal_id: str
    type: NotificationType
    title: str
    message: str
    deal: ScoredDeal
    priority: NotificationPriority
    expires_at: datetime
    action_ref: str
    metadata: NotificationMetadata
    created_at: Optional[datetime] = None

    def validate(self) -> bool:
        """Validate notification data."""
        if not self.user_id or not self.user_id.strip():
            raise ValueError("user_id cannot be empty")

        if not self.title.strip():
            raise ValueError("title cannot be empty")

        if len(self.title) > 200:
            raise ValueError("title too long (max 200 characters)")

        if not self.message.strip():
            raise ValueError("message cannot be empty")

        if len(self.message) > 4000:
            raise ValueError("message too long (max 4000 characters)")

        if not isinstance(self.priority, NotificationPriority):
            raise ValueError("priority must be a NotificationPriority enum")

        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "deal_id": self.deal_id,
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "deal": self.deal.to_dict(),
            "priority": self.priority.value,
            "expires_at": self.expires_at.isoformat(),
            "action_ref": self.action_ref,
            "metadata": {
                "relevance_score": self.metadata.relevance_score,
                "potential_savings": self.metadata.potential_savings,
                "category": self.metadata.category,
                "merchant_name": self.metadata.merchant_name,
            },
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DealNotification":
        created_at = data.get("created_at")
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            deal_id=data["deal_id"],
            type=NotificationType(data["type"]),
            title=data["title"],
            message=data["message"],
            deal=ScoredDeal.from_dict(data["deal"]),
            priority=NotificationPriority(data["priority"]),
            expires_at=date_parser.isoparse(data["expires_at"]),
            action_ref=data["action_ref"],
            metadata=NotificationMetadata(**data["metadata"]),
            created_at=date_parser.isoparse(created_at) if created_at else None,
        )
