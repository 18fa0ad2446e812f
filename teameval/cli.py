#!/usr/bin/env python3
"""
Operator trigger for team generation and result computation.

Usage:
    python -m teameval.cli generate [--year Y --month M [--day D --hour H]] [--force]
    python -m teameval.cli results  [--year Y --month M [--day D --hour H]] [--recompute]
    python -m teameval.cli token    --user-id N [--expires-minutes M]

Without an explicit period the current UTC hour (or month, with --monthly or
PERIOD_MODE=monthly) is used. Exit code is 0 on success and when generation
is skipped because the period already has teams.

`token` prints a bearer token for an existing, active user.
"""
import argparse
import asyncio
import logging
import random
import sys
from typing import Optional

from pydantic import ValidationError

from teameval.config import settings
from teameval.core.auth import issue_token
from teameval.core.exceptions import AlreadyFormed, TeamEvalError
from teameval.database import AsyncSessionLocal
from teameval.schemas.period import Period
from teameval.services import results
from teameval.services.generation import generate_teams

logger = logging.getLogger("teameval.cli")


def setup_logging(level: str = "INFO") -> None:
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def resolve_period(args: argparse.Namespace) -> Period:
    if args.year is None and args.month is None:
        mode = "monthly" if args.monthly else settings.PERIOD_MODE
        return Period.current(mode)
    if args.year is None or args.month is None:
        raise SystemExit("--year and --month must be given together")
    try:
        return Period(year=args.year, month=args.month, day=args.day, hour=args.hour)
    except ValidationError as e:
        raise SystemExit(f"Invalid period: {e}")


def int_at_least(minimum: int):
    """argparse type: an integer no smaller than `minimum`."""
    def parse(value: str) -> int:
        try:
            number = int(value)
        except ValueError:
            raise argparse.ArgumentTypeError(f"invalid integer: {value!r}")
        if number < minimum:
            raise argparse.ArgumentTypeError(f"must be at least {minimum}, got {number}")
        return number
    return parse


def add_period_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--year", type=int)
    parser.add_argument("--month", type=int)
    parser.add_argument("--day", type=int)
    parser.add_argument("--hour", type=int)
    parser.add_argument(
        "--monthly",
        action="store_true",
        help="Resolve the current month instead of the current hour"
    )


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="teameval",
        description="Team formation and peer evaluation scoring",
    )
    parser.add_argument(
        "--log-level",
        default=settings.LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Form the teams of a period")
    add_period_arguments(generate)
    generate.add_argument("--force", action="store_true", help="Regenerate when no ratings exist yet")
    generate.add_argument("--team-size", type=int_at_least(2), default=None)
    generate.add_argument("--seed", type=int, default=None, help="Seed for a reproducible shuffle")

    ranking = subparsers.add_parser("results", help="Print the ranking of a period")
    add_period_arguments(ranking)
    ranking.add_argument("--recompute", action="store_true", help="Ignore and replace the cached ranking")

    token = subparsers.add_parser("token", help="Print an access token for a user")
    token.add_argument("--user-id", type=int, required=True)
    token.add_argument("--expires-minutes", type=int_at_least(1), default=None)

    return parser


async def run_generate(args: argparse.Namespace) -> int:
    period = resolve_period(args)
    rng = random.Random(args.seed) if args.seed is not None else None
    async with AsyncSessionLocal() as db:
        try:
            result = await generate_teams(
                db, period, force=args.force, team_size=args.team_size, rng=rng
            )
        except AlreadyFormed as e:
            logger.info("Skipped: %s", e)
            return 0
        except TeamEvalError as e:
            logger.error("Team generation failed for %s: %s", period.key, e)
            return 1
    print(result.model_dump_json(indent=2))
    return 0


async def run_results(args: argparse.Namespace) -> int:
    period = resolve_period(args)
    async with AsyncSessionLocal() as db:
        if args.recompute:
            ranked = await results.recompute(db, period)
        else:
            ranked = await results.get_ranking(db, period)
    print(ranked.model_dump_json(indent=2))
    return 0


async def run_token(args: argparse.Namespace) -> int:
    async with AsyncSessionLocal() as db:
        try:
            token = await issue_token(db, args.user_id, args.expires_minutes)
        except TeamEvalError as e:
            logger.error("Cannot issue a token: %s", e)
            return 1
    print(token)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    # Refuse to start with weights that don't add up
    settings.evaluation_weights

    if args.command == "generate":
        return asyncio.run(run_generate(args))
    if args.command == "token":
        return asyncio.run(run_token(args))
    return asyncio.run(run_results(args))


if __name__ == "__main__":
    sys.exit(main())
