"""
Command-line entry point for the surveillance engine.

Computes the MetricsPayload for one report window against the configured
case-count table and prints it as JSON on stdout.

    python -m surveillance.main --start 2024-01-01 --end 2024-01-28 --state Ondo

Exit codes:
    0: payload printed
    1: upstream fetch failed (FetchError)
    2: invalid report window (InvalidRangeError)
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from surveillance.core.config import get_settings
from surveillance.core.database import close_db
from surveillance.core.exceptions import FetchError, InvalidRangeError
from surveillance.models.schemas import MetricsPayload
from surveillance.services.report_metrics import generate_report_metrics

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compute Lassa fever surveillance metrics for a report window"
    )
    parser.add_argument("--start", required=True, help="Window start date (YYYY-MM-DD)")
    parser.add_argument("--end", required=True, help="Window end date (YYYY-MM-DD)")
    parser.add_argument(
        "--state",
        action="append",
        dest="states",
        default=None,
        help="State to include; repeat for several. Omit for all states",
    )
    return parser


async def run(start: str, end: str, states: Optional[List[str]]) -> MetricsPayload:
    """Generate the payload and always release the connection pool."""
    try:
        return await generate_report_metrics(start, end, states)
    finally:
        await close_db()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        payload = asyncio.run(run(args.start, args.end, args.states))
    except InvalidRangeError as e:
        logger.error(f"Invalid report window: {e}")
        return 2
    except FetchError as e:
        logger.error(f"Failed to fetch case data: {e}")
        return 1

    print(payload.model_dump_json(indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
