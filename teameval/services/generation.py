import logging
import random
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from teameval import repositories
from teameval.config import settings
from teameval.core.exceptions import (
    AlreadyFormed,
    ConcurrentGeneration,
    DuplicateMember,
    InsufficientPopulation,
)
from teameval.schemas.period import Period
from teameval.schemas.team import GeneratedTeam, GenerationResult
from teameval.services.partition import MIN_POPULATION, partition_users

logger = logging.getLogger(__name__)


async def generate_teams(
    db: AsyncSession,
    period: Period,
    *,
    force: bool = False,
    team_size: Optional[int] = None,
    rng: Optional[random.Random] = None,
    avoid_repeat_pairings: Optional[bool] = None,
) -> GenerationResult:
    """
    Form the teams of `period` from every active user, in one transaction.

    Raises:
      AlreadyFormed           teams exist and `force` is not set, or ratings
                              already reference the existing teams
      ConcurrentGeneration    another run inserted teams for the period first
      InsufficientPopulation  fewer than 3 active users
    """
    team_size = team_size if team_size is not None else settings.TEAM_SIZE
    if avoid_repeat_pairings is None:
        avoid_repeat_pairings = settings.AVOID_REPEAT_PAIRINGS

    if await repositories.teams_exist(db, period):
        if not force:
            raise AlreadyFormed(period.key)
        if await repositories.ratings_exist_for_period(db, period):
            raise AlreadyFormed(
                period.key,
                f"Teams for period {period.key} already have ratings and can't be regenerated",
            )
        removed = await repositories.delete_period_teams(db, period)
        logger.info("Force regeneration for %s removed %d teams", period.key, removed)

    user_ids = await repositories.users_in_population(db)
    if len(user_ids) < MIN_POPULATION:
        await db.rollback()
        raise InsufficientPopulation(len(user_ids), MIN_POPULATION)

    previous_pairs = set()
    if avoid_repeat_pairings:
        previous_pairs = await repositories.previous_pairings(db, user_ids, period.previous())

    groups = partition_users(user_ids, team_size, rng=rng, previous_pairs=previous_pairs)

    created = []
    try:
        for index, member_ids in enumerate(groups, start=1):
            team = await repositories.create_team(db, f"Team {index}", period)
            for user_id in member_ids:
                await repositories.add_member(db, team, user_id)
            created.append(
                GeneratedTeam(
                    id=team.id,
                    name=team.name,
                    member_count=len(member_ids),
                    member_ids=member_ids,
                )
            )
        await db.commit()
    except (IntegrityError, DuplicateMember) as e:
        await db.rollback()
        logger.warning("Concurrent team generation detected for %s: %s", period.key, e)
        raise ConcurrentGeneration(period.key) from e

    logger.info(
        "Generated %d teams for %s from %d users", len(created), period.key, len(user_ids)
    )
    return GenerationResult(
        period=period.key,
        teams=created,
        team_count=len(created),
        total_users=len(user_ids),
        message=f"Generated {len(created)} teams for {period.key}",
    )
