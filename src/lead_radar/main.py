# main.py
"""Lead Radar command line entry point.

Subcommands:
    maps     Search Google Maps zones, score businesses, persist leads
    feed     Scan the freelance RSS feed and draft answers
    audit    Print the audit document of a persisted Google Maps lead
    qualify  Qualify a single lead with the language model

Run progress is printed to stdout as server-sent event frames.
"""

import argparse
import asyncio
import json
import sys
from typing import Optional

from .config import ConfigError, config
from .events import ProgressChannel
from .logging_utils import get_logger, setup_logging
from .models import ProgressEvent, RawLead
from .pipeline import LeadRadarPipeline
from .response_parser import InvalidModelResponseError
from .scorer import BusinessScorer
from .storage import LeadStore


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="lead-radar",
        description="Local business and freelance project prospecting",
        epilog="""
Examples:
  %(prog)s maps --zone "Lyon 3, France"
  %(prog)s maps --no-ai
  %(prog)s feed
  %(prog)s audit ChIJ...
  %(prog)s qualify "Boulangerie Martin" --city Lyon --sector boulangerie
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy database URL (default: DATABASE_URL)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    maps = subparsers.add_parser("maps", help="Run the Google Maps search")
    maps.add_argument(
        "--zone",
        "-z",
        action="append",
        default=None,
        help="Zone to search, repeatable (default: SEARCH_ZONES)",
    )
    maps.add_argument(
        "--no-ai",
        action="store_true",
        help="Score with the offline heuristic instead of the language model",
    )

    subparsers.add_parser("feed", help="Run the freelance feed scan")

    audit = subparsers.add_parser("audit", help="Print a lead audit document")
    audit.add_argument("place_id", help="Google place id of a persisted lead")

    qualify = subparsers.add_parser("qualify", help="Qualify a single lead")
    qualify.add_argument("company_name", help="Company name")
    qualify.add_argument("--city", default="", help="City")
    qualify.add_argument("--sector", default="", help="Business sector")
    qualify.add_argument("--source", default="manual", help="Lead source")

    return parser


def print_event(event: ProgressEvent) -> None:
    """Write one event as an SSE frame."""
    sys.stdout.write(event.to_sse())
    sys.stdout.flush()


async def run_command(args: argparse.Namespace) -> int:
    """Run the selected subcommand.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    store = None
    if args.database_url:
        store = LeadStore(args.database_url)

    scorer: Optional[BusinessScorer] = None
    if getattr(args, "no_ai", False):
        scorer = BusinessScorer(use_ai=False)

    try:
        async with LeadRadarPipeline(
            store=store,
            scorer=scorer,
            zones=getattr(args, "zone", None),
        ) as pipeline:
            if args.command in ("maps", "feed"):
                channel = ProgressChannel(sink=print_event)
                if args.command == "maps":
                    summary = await pipeline.run_maps(channel)
                else:
                    summary = await pipeline.run_feed(channel)
                return 1 if summary.error else 0

            if args.command == "audit":
                try:
                    payload = pipeline.build_audit(args.place_id)
                except KeyError as e:
                    print(f"Error: {e}", file=sys.stderr)
                    return 1
                print(json.dumps(payload, ensure_ascii=False, indent=2))
                return 0

            lead = RawLead(
                company_name=args.company_name,
                city=args.city,
                sector=args.sector,
                source=args.source,
            )
            record = await pipeline.qualify_lead(lead)
            print(json.dumps(record, ensure_ascii=False, indent=2))
            return 0
    finally:
        # Collaborators built here are not owned by the pipeline
        if scorer is not None:
            scorer.close()
        if store is not None:
            store.close()


def main() -> int:
    """Main entry point for the CLI.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    parser = create_parser()
    args = parser.parse_args()

    setup_logging(
        level=args.log_level.upper() if args.log_level else None,
        structured=not config.is_development(),
        stream=sys.stderr,
    )
    logger = get_logger(__name__)

    logger.info(
        "Lead Radar starting",
        extra={
            "command": args.command,
            "app_env": config.APP_ENV,
            "threshold": config.CONTACT_SCORE_THRESHOLD,
        },
    )

    try:
        return asyncio.run(run_command(args))
    except (ConfigError, InvalidModelResponseError) as e:
        logger.error(f"Lead Radar failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.exception(f"Lead Radar failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
