"""
Notification text templates.

Titles and messages interpolate merchant name, discount, savings, days
left or relevance score depending on the notification type.
"""

import math
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from ..models.config import NotificationConfig
from ..models.deal import ScoredDeal
from ..models.notification import NotificationFrequency, NotificationType


def days_until(moment: datetime, now: datetime) -> int:
    """Whole days left until ``moment``, rounded up."""
    return math.ceil((moment - now) / timedelta(days=1))


class NotificationFormatter:
    """Renders notification titles and messages."""

    TITLES = {
        NotificationType.FLASH_DEAL: "🔥 Flash Deal Available!",
        NotificationType.EXPIRING_SOON: "⏰ Offer Ending Soon!",
        NotificationType.BUDGET_MATCH: "💰 Deal Within Your Budget!",
        NotificationType.PERSONALIZED_RECOMMENDATION: "🎯 Picked For You",
        NotificationType.NEW_DEAL: "🆕 New Deal Available!",
    }

    DIGEST_TITLES = {
        NotificationFrequency.DAILY: "📊 Your Daily Deal Digest",
        NotificationFrequency.WEEKLY: "📊 Your Weekly Deal Digest",
    }

    def __init__(self, config: Optional[NotificationConfig] = None):
        self.config = config or NotificationConfig()

    def money(self, amount: float) -> str:
        return f"{self.config.currency} {amount:,.0f}"

    def format(
        self, scored: ScoredDeal, kind: NotificationType, now: datetime
    ) -> Tuple[str, str]:
        """Return (title, message) for a single-deal notification."""
        deal = scored.deal
        name = deal.title or deal.merchant_name
        percent = round(deal.savings_percentage)
        savings = self.money(deal.savings)

        if kind == NotificationType.FLASH_DEAL:
            message = (
                f"Save {percent}% at {deal.merchant_name} - {name}. "
                "Limited-time offer!"
            )
        elif kind == NotificationType.EXPIRING_SOON:
            days_left = max(0, days_until(deal.valid_until, now))
            unit = "day" if days_left == 1 else "days"
            message = (
                f"{name} from {deal.merchant_name} ends in {days_left} {unit}. "
                f"Save {savings}!"
            )
        elif kind == NotificationType.BUDGET_MATCH:
            message = f"{name} fits your budget. Save {savings} ({percent}%)"
        elif kind == NotificationType.PERSONALIZED_RECOMMENDATION:
            message = (
                f"Based on your preferences: {name} from {deal.merchant_name}. "
                f"Match score: {scored.relevance_score:.0f}%"
            )
        else:
            message = f"{name} - save {percent}% at {deal.merchant_name}"

        return self.TITLES[kind], message

    def format_digest(
        self,
        frequency: NotificationFrequency,
        count: int,
        categories: List[str],
        total_savings: float,
    ) -> Tuple[str, str]:
        """Return (title, message) summarising a batch of notifications."""
        noun = "deal" if count == 1 else "deals"
        message = (
            f"{count} great {noun} in {', '.join(categories)}. "
            f"Potential savings: {self.money(total_savings)}"
        )
        title = self.DIGEST_TITLES.get(frequency, "📊 Your Deal Digest")
        return title, message
