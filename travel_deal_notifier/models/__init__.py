"""
Data models for the travel deal notifier.

This module contains the data classes and enumerations used throughout
the application for deals, traveler context, clusters, notifications
and configuration.
"""

from .cluster import Cluster, ClusterTier
from .config import (
    ClusteringConfig,
    Configuration,
    LoggingConfig,
    NotificationConfig,
    ScoringConfig,
    StoreConfig,
)
from .context import PriceSensitivity, UserContext
from .deal import BudgetTier, Coordinates, Deal, DealCategory, ScoredDeal
from .notification import (
    DealNotification,
    NotificationFrequency,
    NotificationMetadata,
    NotificationPreferences,
    NotificationPriority,
    NotificationType,
    QuietHours,
    TriggerContext,
)

__all__ = [
    "BudgetTier",
    "Cluster",
    "ClusterTier",
    "ClusteringConfig",
    "Configuration",
    "Coordinates",
    "Deal",
    "DealCategory",
    "DealNotification",
    "LoggingConfig",
    "NotificationConfig",
    "NotificationFrequency",
    "NotificationMetadata",
    "NotificationPreferences",
    "NotificationPriority",
    "NotificationType",
    "PriceSensitivity",
    "QuietHours",
    "ScoredDeal",
    "ScoringConfig",
    "StoreConfig",
    "TriggerContext",
    "UserContext",
]
