"""
Configuration models for the system.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

SUB_SCORES = [
    "budget_alignment",
    "category_fit",
    "location_relevance",
    "time_relevance",
    "user_preference",
]


def _default_weights() -> Dict[str, float]:
    # Budget and location lead slightly.
    return {
        "budget_alignment": 0.30,
        "location_relevance": 0.25,
        "category_fit": 0.20,
        "time_relevance": 0.15,
        "user_preference": 0.10,
    }


@dataclass
class ScoringConfig:
    """Relevance scoring parameters."""

    weights: Dict[str, float] = field(default_factory=_default_weights)
    significance_threshold: float = 60.0
    neutral_score: float = 50.0
    location_half_score_km: float = 2.0
    late_expiry_grace_days: int = 14
    late_expiry_decay_days: int = 60

    def validate(self) -> bool:
        """Validate scoring configuration."""
        unknown = set(self.weights) - set(SUB_SCORES)
        if unknown:
            raise ValueError(f"Unknown scoring weights: {sorted(unknown)}")

        missing = set(SUB_SCORES) - set(self.weights)
        if missing:
            raise ValueError(f"Missing scoring weights: {sorted(missing)}")

        if any(weight < 0 for weight in self.weights.values()):
            raise ValueError("Scoring weights cannot be negative")

        if sum(self.weights.values()) <= 0:
            raise ValueError("At least one scoring weight must be positive")

        for name in ("significance_threshold", "neutral_score"):
            if not (0 <= getattr(self, name) <= 100):
                raise ValueError(f"{name} must be between 0 and 100")

        if self.location_half_score_km <= 0:
            raise ValueError("location_half_score_km must be positive")

        if self.late_expiry_grace_days < 0 or self.late_expiry_decay_days <= 0:
            raise ValueError("Late expiry windows must be positive")

        return True


@dataclass
class ClusteringConfig:
    """Spatial grouping parameters."""

    cell_size_deg: float = 0.01

    def validate(self) -> bool:
        if not (0 < self.cell_size_deg <= 1):
            raise ValueError("cell_size_deg must be in (0, 1]")
        return True


def _default_expiry_hours() -> Dict[str, int]:
    return {"urgent": 2, "high": 6, "medium": 24, "low": 72}


@dataclass
class NotificationConfig:
    """Delivery policy parameters and preference defaults."""

    default_max_daily: int = 10
    default_frequency: str = "immediate"
    default_timezone: str = "UTC"
    history_limit: int = 50
    history_ttl_seconds: int = 7 * 24 * 60 * 60
    queue_ttl_seconds: int = 7 * 24 * 60 * 60
    counter_ttl_seconds: int = 24 * 60 * 60
    expiring_soon_days: int = 3
    medium_priority_days: int = 7
    high_relevance_score: float = 90.0
    high_discount_percentage: float = 30.0
    flash_tags: List[str] = field(default_factory=lambda: ["flash", "limited time"])
    expiry_hours: Dict[str, int] = field(default_factory=_default_expiry_hours)
    currency: str = "IDR"
    action_base: str = "/dashboard?tab=promo"

    def validate(self) -> bool:
        """Validate notification configuration."""
        if self.default_max_daily < 0:
            raise ValueError("default_max_daily cannot be negative")

        if self.default_frequency not in ("immediate", "daily", "weekly"):
            raise ValueError("default_frequency must be immediate, daily or weekly")

        if self.history_limit <= 0:
            raise ValueError("history_limit must be positive")

        for name in ("history_ttl_seconds", "queue_ttl_seconds", "counter_ttl_seconds"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")

        if set(self.expiry_hours) != {"urgent", "high", "medium", "low"}:
            raise ValueError("expiry_hours must define urgent, high, medium and low")

        if any(hours <= 0 for hours in self.expiry_hours.values()):
            raise ValueError("expiry_hours must be positive")

        if not self.flash_tags:
            raise ValueError("flash_tags cannot be empty")

        return True


@dataclass
class StoreConfig:
    """Backing key-value store selection."""

    backend: str = "memory"  # "memory" or "redis"
    redis_url: Optional[str] = None
    key_prefix: str = ""

    def validate(self) -> bool:
        if self.backend not in ("memory", "redis"):
            raise ValueError("Store backend must be 'memory' or 'redis'")

        if self.backend == "redis" and not self.redis_url:
            raise ValueError("redis_url is required when backend is 'redis'")

        return True


@dataclass
class LoggingConfig:
    level: str = "INFO"
    log_dir: Optional[str] = None

    def validate(self) -> bool:
        if self.level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {self.level}")
        return True


@dataclass
class Configuration:
    """System configuration."""

    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    clustering: ClusteringConfig = field(default_factory=ClusteringConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def default(cls) -> "Configuration":
        return cls()

    def validate(self) -> bool:
        """Validate system configuration."""
        self.scoring.validate()
        self.clustering.validate()
        self.notifications.validate()
        self.store.validate()
        self.logging.validate()
        return True
