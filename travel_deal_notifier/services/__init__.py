"""
Service layer for the travel deal notifier.

This module contains the configuration manager and the notification
service that wires scoring, policy, digests and delivery together.
"""

from .config_manager import ConfigurationManager
from .deal_notification_service import DealNotificationService

__all__ = [
    "ConfigurationManager",
    "DealNotificationService",
]
