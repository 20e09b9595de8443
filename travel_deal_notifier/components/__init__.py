"""
Core components for the travel deal notifier.

This module contains the components that validate incoming deals, score
them against a traveler's context, group them on a map grid, decide which
notifications go out and compile digests.
"""

from .deal_parser import DealParser, ParseReport
from .delivery_sink import CollectingDeliverySink, LoggingDeliverySink
from .digest_compiler import CompiledDigest, DigestCompiler
from .notification_formatter import NotificationFormatter
from .notification_policy import (
    CandidateOutcome,
    CandidateState,
    NotificationPolicyEngine,
    PolicyResult,
)
from .relevance_scorer import RelevanceScorer, ranking_key
from .spatial_clusterer import SpatialClusterer

__all__ = [
    "DealParser",
    "ParseReport",
    "RelevanceScorer",
    "ranking_key",
    "SpatialClusterer",
    "NotificationFormatter",
    "NotificationPolicyEngine",
    "PolicyResult",
    "CandidateOutcome",
    "CandidateState",
    "DigestCompiler",
    "CompiledDigest",
    "LoggingDeliverySink",
    "CollectingDeliverySink",
]
