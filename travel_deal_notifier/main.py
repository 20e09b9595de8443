"""
Command-line entry point for the travel deal notifier.
"""

import argparse
import asyncio
import json
import sys
from typing import Any, List, Optional

from .components.deal_parser import DealParser
from .models.context import UserContext
from .services.config_manager import ConfigurationManager
from .services.deal_notification_service import DealNotificationService
from .utils.error_handling import CollaboratorUnavailable
from .utils.logging import get_logger, setup_logging


def _load_json(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="travel-deal-notifier",
        description="Score travel deals and decide which notifications to send.",
    )
    parser.add_argument("-c", "--config", help="Path to a YAML or JSON config file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    notify = subparsers.add_parser("notify", help="Score deals and notify a traveler")
    notify.add_argument("--deals", required=True, help="JSON file with a list of deals")
    notify.add_argument("--context", required=True, help="JSON file with the user context")
    notify.add_argument(
        "--trigger",
        default="scheduled_check",
        choices=["budget_update", "location_change", "scheduled_check", "manual_request"],
    )

    digest = subparsers.add_parser("digest", help="Flush a traveler's digest queue")
    digest.add_argument("--user", required=True, help="User id")
    digest.add_argument("--frequency", default="daily", choices=["daily", "weekly"])

    cluster = subparsers.add_parser("cluster", help="Print map clusters for deals")
    cluster.add_argument("--deals", required=True, help="JSON file with a list of deals")
    cluster.add_argument("--context", required=True, help="JSON file with the user context")
    cluster.add_argument("--cell-size", type=float, help="Grid cell size in degrees")

    return parser


def _load_inputs(args: argparse.Namespace):
    logger = get_logger("main")
    report = DealParser().parse_deals(_load_json(args.deals))
    for index, reason in report.rejected:
        logger.warning("Rejected deal", extra={"index": index, "reason": reason})
    context = UserContext.from_dict(_load_json(args.context))
    return context, report.deals


async def run(args: argparse.Namespace) -> int:
    config = ConfigurationManager(args.config).load_config()
    setup_logging(log_dir=config.logging.log_dir, log_level=config.logging.level)
    logger = get_logger("main")

    service = DealNotificationService(config)
    try:
        await service.connect()
    except CollaboratorUnavailable as e:
        logger.error("Store unavailable", extra={"error": str(e)})
        return 2

    try:
        if args.command == "notify":
            context, deals = _load_inputs(args)
            notifications = await service.match_and_notify(context, deals, args.trigger)
            _print_json([n.to_dict() for n in notifications])
        elif args.command == "digest":
            digest = await service.process_queued_notifications(args.user, args.frequency)
            _print_json(digest.to_dict() if digest else None)
        elif args.command == "cluster":
            context, deals = _load_inputs(args)
            scored = service.scorer.score_deals(deals, context)
            clusters = service.cluster(scored, args.cell_size)
            _print_json([c.to_dict() for c in clusters])
    finally:
        await service.close()

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point."""
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
