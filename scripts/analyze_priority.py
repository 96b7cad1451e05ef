"""
CLI tool to run priority analysis on a problem description.

Usage:
    python scripts/analyze_priority.py "AC not cooling since morning"
    python scripts/analyze_priority.py --samples
    python scripts/analyze_priority.py "fridge making noise" --commercial --hour 11

Examples:
    # Rule-based only (no GEMINI_API_KEY set)
    python scripts/analyze_priority.py "sparks coming from the AC plug"

    # Run the built-in sample cases through the resolver
    python scripts/analyze_priority.py --samples
"""

import argparse
import asyncio
import os
import sys
from datetime import datetime

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from dotenv import load_dotenv
load_dotenv(".env.local")

from repairdesk.bootstrap import build_resolver
from repairdesk.logging_config import get_logger, setup_logging
from repairdesk.schemas.conversation import CustomerProfile, CustomerType
from repairdesk.services.priority_resolver import ProblemInput

setup_logging()
logger = get_logger(__name__)

SAMPLE_CASES: list[str] = [
    "AC completely dead, elderly mother in house, very hot",
    "Need routine maintenance but there's a gas leak",
    "Refrigerator making a rattling noise at night",
    "Looking for annual cleaning of two split ACs",
    "Shop freezer stopped working, ice cream melting",
    "Hello, what are your opening hours?",
]


def _now(hour: int | None) -> datetime | None:
    if hour is None:
        return None
    return datetime.now().replace(hour=hour, minute=0, second=0, microsecond=0)


async def analyze(problems: list[str], commercial: bool = False, hour: int | None = None) -> None:
    """Analyze each problem and print the outcome."""
    resolver = build_resolver()
    customer = CustomerProfile(
        customer_type=CustomerType.COMMERCIAL if commercial else CustomerType.RESIDENTIAL
    )

    results = await resolver.batch_analyze(
        [ProblemInput(problem, customer=customer) for problem in problems],
        now=_now(hour),
    )

    for problem, result in zip(problems, results):
        print(f"\n{problem}")
        print(f"  priority:  {int(result.priority)} ({result.urgency_level.value})")
        print(f"  response:  {result.estimated_response_time}")
        print(f"  reasoning: {result.reasoning}")
        print(f"  tags:      {', '.join(result.tags) or '-'}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Run priority analysis on problem descriptions")
    parser.add_argument("problem", nargs="*", help="Problem description(s) to analyze")
    parser.add_argument("--samples", action="store_true", help="Analyze the built-in sample cases")
    parser.add_argument("--commercial", action="store_true", help="Treat the customer as commercial")
    parser.add_argument("--hour", type=int, choices=range(24), metavar="0-23", help="Local hour to analyze at")
    args = parser.parse_args()

    problems = SAMPLE_CASES if args.samples else [" ".join(args.problem)] if args.problem else []
    if not problems:
        parser.error("give a problem description or --samples")

    asyncio.run(analyze(problems, commercial=args.commercial, hour=args.hour))


if __name__ == "__main__":
    main()
