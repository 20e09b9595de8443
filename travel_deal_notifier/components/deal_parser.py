"""
Deal ingress validation for the travel deal notifier.

This module converts loosely-typed deal payloads from deal-discovery
collaborators into validated Deal objects, rejecting malformed records one
at a time instead of failing a whole batch.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from dateutil import parser as date_parser

from ..models.deal import BudgetTier, Coordinates, Deal, DealCategory
from ..utils.error_handling import InputError

logger = logging.getLogger(__name__)


@dataclass
class ParseReport:
    """Outcome of parsing a batch of raw deal payloads."""

    deals: List[Deal] = field(default_factory=list)
    rejected: List[Tuple[int, str]] = field(default_factory=list)
    duplicates: int = 0


class DealParser:
    """Parses and validates raw deal records."""

    # camelCase spellings used by the upstream deal providers
    FIELD_ALIASES = {
        "merchantId": "merchant_id",
        "merchantName": "merchant_name",
        "originalPrice": "original_price",
        "discountedPrice": "discounted_price",
        "discountPercentage": "discount_percentage",
        "validUntil": "valid_until",
        "budgetTier": "budget_tier",
        "budgetCategory": "budget_tier",
        "reviewCount": "review_count",
        "reviews": "review_count",
    }

    REQUIRED_FIELDS = [
        "id",
        "merchant_id",
        "category",
        "original_price",
        "discounted_price",
        "valid_until",
        "budget_tier",
    ]

    def parse_deal(self, raw: Dict[str, Any]) -> Deal:
        """
        Parse one raw payload into a validated Deal.

        Args:
            raw: Deal record as received from a deal source

        Returns:
            Validated Deal

        Raises:
            InputError: If the record is malformed
        """
        if not isinstance(raw, dict):
            raise InputError(f"Deal record must be a mapping, got {type(raw).__name__}")

        data = {self.FIELD_ALIASES.get(key, key): value for key, value in raw.items()}

        missing = [name for name in self.REQUIRED_FIELDS if data.get(name) in (None, "")]
        if missing:
            raise InputError(f"Deal record missing required fields: {missing}")

        try:
            original_price = self._number(data["original_price"], "original_price")
            discounted_price = self._number(data["discounted_price"], "discounted_price")
            discount = data.get("discount_percentage")
            if discount is None:
                discount = (
                    (original_price - discounted_price) / original_price * 100
                    if original_price > 0
                    else 0.0
                )

            deal = Deal(
                id=str(data["id"]).strip(),
                merchant_id=str(data["merchant_id"]).strip(),
                merchant_name=str(data.get("merchant_name") or data["merchant_id"]),
                title=str(data.get("title") or ""),
                category=DealCategory(str(data["category"]).strip().lower()),
                original_price=original_price,
                discounted_price=discounted_price,
                discount_percentage=max(
                    0.0, min(100.0, self._number(discount, "discount_percentage"))
                ),
                valid_until=self._parse_datetime(data["valid_until"]),
                budget_tier=BudgetTier(str(data["budget_tier"]).strip().lower()),
                coordinates=self._parse_coordinates(data.get("coordinates")),
                tags=self._parse_tags(data.get("tags")),
                rating=self._optional_number(data.get("rating"), "rating"),
                review_count=self._optional_int(data.get("review_count")),
                description=str(data.get("description") or ""),
                location=str(data.get("location") or ""),
            )
            deal.validate()
        except InputError:
            raise
        except (ValueError, TypeError, OverflowError) as e:
            raise InputError(f"Invalid deal record {data.get('id')!r}: {e}") from e

        return deal

    def parse_deals(self, raws: Iterable[Dict[str, Any]]) -> ParseReport:
        """Parse a batch, skipping malformed records and merchant/id duplicates."""
        report = ParseReport()
        seen: Set[Tuple[str, str]] = set()

        for index, raw in enumerate(raws):
            try:
                deal = self.parse_deal(raw)
            except InputError as e:
                logger.warning(f"Rejected deal record #{index}: {e}")
                report.rejected.append((index, str(e)))
                continue

            key = (deal.merchant_id, deal.id)
            if key in seen:
                report.duplicates += 1
                continue
            seen.add(key)
            report.deals.append(deal)

        logger.info(
            f"Parsed {len(report.deals)} deals "
            f"({len(report.rejected)} rejected, {report.duplicates} duplicates)"
        )
        return report

    @staticmethod
    def _number(value: Any, name: str) -> float:
        if isinstance(value, bool):
            raise InputError(f"{name} must be a number")
        try:
            return float(value)
        except (TypeError, ValueError):
            raise InputError(f"{name} must be a number, got {value!r}")

    def _optional_number(self, value: Any, name: str) -> Optional[float]:
        return None if value is None else self._number(value, name)

    def _optional_int(self, value: Any) -> Optional[int]:
        if value is None:
            return None
        return int(self._number(value, "review_count"))

    @staticmethod
    def _parse_datetime(value: Any) -> datetime:
        """Parse a datetime, treating naive values as UTC."""
        if isinstance(value, datetime):
            parsed = value
        else:
            try:
                parsed = date_parser.parse(str(value))
            except (ValueError, OverflowError) as e:
                raise InputError(f"Invalid valid_until {value!r}: {e}")

        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    def _parse_coordinates(self, value: Any) -> Optional[Coordinates]:
        if value is None:
            return None

        if isinstance(value, dict):
            lat, lng = value.get("lat"), value.get("lng", value.get("lon"))
        elif isinstance(value, (list, tuple)) and len(value) == 2:
            lat, lng = value
        else:
            raise InputError(f"Unrecognised coordinates: {value!r}")

        if lat is None or lng is None:
            raise InputError(f"Coordinates need both lat and lng: {value!r}")

        return Coordinates(self._number(lat, "lat"), self._number(lng, "lng"))

    @staticmethod
    def _parse_tags(value: Any) -> Set[str]:
        if value is None:
            return set()
        if isinstance(value, str):
            value = [value]
        return {str(tag).strip() for tag in value if str(tag).strip()}
