"""Storage operations the engine needs, over an async SQLAlchemy session.

Functions that write only flush; committing is the caller's decision, except
for insert_rating and the two cache replacements (replace_score_snapshot,
replace_cached_analytics), which commit on their own.
"""
import logging
from datetime import datetime
from typing import Iterable, Optional, Sequence

from sqlalchemy import select, func, delete, and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from teameval.core.exceptions import DuplicateMember, DuplicateRating
from teameval.models.analytics_cache import AnalyticsCache
from teameval.models.question import Question
from teameval.models.rating import Rating, RatingSource
from teameval.models.score_snapshot import ScoreSnapshot
from teameval.models.team import Team, TeamMember
from teameval.models.user import User, ManagerAssignment
from teameval.schemas.period import Period

logger = logging.getLogger(__name__)


def _team_period_filter(period: Period):
    """A monthly period covers every team of the month, an hourly one only its own."""
    if period.mode == "monthly":
        return and_(Team.year == period.year, Team.month == period.month)
    return Team.period_key == period.key


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
async def users_in_population(db: AsyncSession) -> list[int]:
    result = await db.execute(
        select(User.id).where(User.is_active.is_(True)).order_by(User.id)
    )
    return list(result.scalars().all())


async def get_user(db: AsyncSession, user_id: int) -> Optional[User]:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def count_users(db: AsyncSession) -> int:
    result = await db.execute(select(func.count(User.id)))
    return result.scalar_one()


async def users_by_ids(db: AsyncSession, user_ids: Iterable[int]) -> dict[int, User]:
    ids = list(user_ids)
    if not ids:
        return {}
    result = await db.execute(select(User).where(User.id.in_(ids)))
    return {u.id: u for u in result.scalars().all()}


async def is_manager_of(db: AsyncSession, manager_id: int, user_id: int) -> bool:
    result = await db.execute(
        select(func.count(ManagerAssignment.id))
        .where(ManagerAssignment.manager_id == manager_id)
        .where(ManagerAssignment.user_id == user_id)
    )
    return result.scalar_one() > 0


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------
async def teams_exist(db: AsyncSession, period: Period) -> bool:
    result = await db.execute(
        select(func.count(Team.id)).where(Team.period_key == period.key)
    )
    return result.scalar_one() > 0


async def create_team(db: AsyncSession, name: str, period: Period) -> Team:
    team = Team(
        name=name,
        year=period.year,
        month=period.month,
        day=period.day,
        hour=period.hour,
        period_key=period.key,
    )
    db.add(team)
    await db.flush()
    return team


async def add_member(db: AsyncSession, team: Team, user_id: int) -> TeamMember:
    """
    A user already in this team, or in any other team of the same period, is
    rejected by the store. The session is rolled back in that case.
    """
    member = TeamMember(team_id=team.id, user_id=user_id, period_key=team.period_key)
    db.add(member)
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        raise DuplicateMember(team.id, user_id) from e
    return member


async def remove_member(db: AsyncSession, team_id: int, user_id: int) -> bool:
    """Flushes only. False when the user was not on the team."""
    result = await db.execute(
        delete(TeamMember)
        .where(TeamMember.team_id == team_id)
        .where(TeamMember.user_id == user_id)
    )
    return (result.rowcount or 0) > 0


async def get_team(db: AsyncSession, team_id: int) -> Optional[Team]:
    result = await db.execute(select(Team).where(Team.id == team_id))
    return result.scalar_one_or_none()


async def teams_for_period(db: AsyncSession, period: Period) -> list[Team]:
    result = await db.execute(
        select(Team).where(_team_period_filter(period)).order_by(Team.id)
    )
    return list(result.scalars().all())


async def team_for_user(db: AsyncSession, user_id: int, period: Period) -> Optional[Team]:
    result = await db.execute(
        select(Team)
        .join(TeamMember, TeamMember.team_id == Team.id)
        .where(TeamMember.user_id == user_id)
        .where(Team.period_key == period.key)
    )
    return result.scalars().first()


async def team_for_question(db: AsyncSession, user_id: int, question: Question) -> Optional[Team]:
    """The user's most recent team inside the question's scope."""
    query = (
        select(Team)
        .join(TeamMember, TeamMember.team_id == Team.id)
        .where(TeamMember.user_id == user_id)
        .where(Team.year == question.year)
        .where(Team.month == question.month)
    )
    if question.day is not None:
        query = query.where(Team.day == question.day)
    if question.hour is not None:
        query = query.where(Team.hour == question.hour)
    result = await db.execute(query.order_by(Team.id.desc()))
    return result.scalars().first()


async def team_member_ids(db: AsyncSession, team_id: int) -> list[int]:
    result = await db.execute(
        select(TeamMember.user_id)
        .where(TeamMember.team_id == team_id)
        .order_by(TeamMember.joined_at, TeamMember.id)
    )
    return list(result.scalars().all())


async def is_member(db: AsyncSession, team_id: int, user_id: int) -> bool:
    result = await db.execute(
        select(func.count(TeamMember.id))
        .where(TeamMember.team_id == team_id)
        .where(TeamMember.user_id == user_id)
    )
    return result.scalar_one() > 0


async def delete_period_teams(db: AsyncSession, period: Period) -> int:
    """
    Remove teams and memberships of exactly this period, plus every cached
    ranking that may include them (the period's own and its month's).
    """
    team_ids = select(Team.id).where(Team.period_key == period.key)
    await db.execute(
        delete(ScoreSnapshot).where(
            or_(
                ScoreSnapshot.period_key.in_([period.key, period.month_key]),
                ScoreSnapshot.team_id.in_(team_ids),
            )
        )
    )
    await db.execute(delete(TeamMember).where(TeamMember.period_key == period.key))
    result = await db.execute(delete(Team).where(Team.period_key == period.key))
    return result.rowcount or 0


async def previous_pairings(
    db: AsyncSession, user_ids: Sequence[int], period: Period
) -> set[frozenset[int]]:
    """Pairs of the given users who shared a team in `period`."""
    if len(user_ids) < 2:
        return set()
    tm1 = aliased(TeamMember)
    tm2 = aliased(TeamMember)
    result = await db.execute(
        select(tm1.user_id, tm2.user_id)
        .join(tm2, tm1.team_id == tm2.team_id)
        .where(tm1.period_key == period.key)
        .where(tm1.user_id.in_(user_ids))
        .where(tm2.user_id.in_(user_ids))
        .where(tm1.user_id < tm2.user_id)
    )
    return {frozenset(row) for row in result.all()}


# ---------------------------------------------------------------------------
# Questions
# ---------------------------------------------------------------------------
def _question_covers(period: Period):
    clauses = [Question.year == period.year, Question.month == period.month]
    if period.mode == "hourly":
        clauses.append(or_(Question.day.is_(None), Question.day == period.day))
        clauses.append(or_(Question.hour.is_(None), Question.hour == period.hour))
    else:
        clauses.append(Question.day.is_(None))
    return and_(*clauses)


async def questions_for_period(db: AsyncSession, period: Period) -> list[Question]:
    result = await db.execute(
        select(Question).where(_question_covers(period)).order_by(Question.id)
    )
    return list(result.scalars().all())


async def get_question(db: AsyncSession, question_id: int) -> Optional[Question]:
    result = await db.execute(select(Question).where(Question.id == question_id))
    return result.scalar_one_or_none()


async def create_question(db: AsyncSession, text: str, period: Period) -> Question:
    question = Question(
        text=text, year=period.year, month=period.month, day=period.day, hour=period.hour
    )
    db.add(question)
    await db.flush()
    return question


# ---------------------------------------------------------------------------
# Ratings
# ---------------------------------------------------------------------------
async def ratings_for_subject(db: AsyncSession, subject_id: int, team_id: int) -> list[Rating]:
    result = await db.execute(
        select(Rating)
        .where(Rating.subject_id == subject_id)
        .where(Rating.team_id == team_id)
        .order_by(Rating.created_at, Rating.id)
    )
    return list(result.scalars().all())


async def ratings_for_team(db: AsyncSession, team_id: int) -> list[Rating]:
    result = await db.execute(
        select(Rating).where(Rating.team_id == team_id).order_by(Rating.created_at, Rating.id)
    )
    return list(result.scalars().all())


async def ratings_by_rater(db: AsyncSession, rater_id: int) -> list[Rating]:
    result = await db.execute(
        select(Rating).where(Rating.rater_id == rater_id).order_by(Rating.created_at, Rating.id)
    )
    return list(result.scalars().all())


async def insert_rating(
    db: AsyncSession,
    *,
    rater_id: int,
    question_id: int,
    team_id: int,
    subject_id: int,
    source: RatingSource,
    score: int,
) -> Rating:
    rating = Rating(
        rater_id=rater_id,
        question_id=question_id,
        team_id=team_id,
        subject_id=subject_id,
        source=source,
        score=score,
    )
    db.add(rating)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise DuplicateRating() from e
    await db.refresh(rating)
    return rating


async def ratings_exist_for_period(db: AsyncSession, period: Period) -> bool:
    result = await db.execute(
        select(func.count(Rating.id))
        .join(Team, Team.id == Rating.team_id)
        .where(Team.period_key == period.key)
    )
    return result.scalar_one() > 0


async def sample_rating_source(db: AsyncSession) -> tuple[bool, Optional[RatingSource]]:
    """(any rating exists, its source). Used to detect 360-degree mode."""
    result = await db.execute(select(Rating.source).limit(1))
    row = result.first()
    if row is None:
        return False, None
    return True, row[0]


async def earliest_submission_time(db: AsyncSession, team_id: int) -> Optional[datetime]:
    result = await db.execute(
        select(func.min(Rating.created_at)).where(Rating.team_id == team_id)
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Score snapshots
# ---------------------------------------------------------------------------
async def snapshot_for_period(db: AsyncSession, period: Period) -> list[ScoreSnapshot]:
    result = await db.execute(
        select(ScoreSnapshot)
        .where(ScoreSnapshot.period_key == period.key)
        .order_by(ScoreSnapshot.team_id)
    )
    return list(result.scalars().all())


async def replace_score_snapshot(
    db: AsyncSession, period: Period, rows: Iterable[dict]
) -> list[ScoreSnapshot]:
    """Delete every cached row of the period and insert `rows`, as one transaction."""
    snapshots = [
        ScoreSnapshot(
            period_key=period.key,
            team_id=row["team_id"],
            total_score=row["total_score"],
            answer_count=row["answer_count"],
            question_count=row["question_count"],
        )
        for row in rows
    ]
    try:
        await db.execute(delete(ScoreSnapshot).where(ScoreSnapshot.period_key == period.key))
        db.add_all(snapshots)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info("Replaced score snapshot for %s with %d rows", period.key, len(snapshots))
    return await snapshot_for_period(db, period)


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------
async def month_memberships(db: AsyncSession, year: int, month: int) -> list[tuple[int, int]]:
    """(team_id, user_id) for every membership of every team generated in the month."""
    result = await db.execute(
        select(TeamMember.team_id, TeamMember.user_id)
        .join(Team, Team.id == TeamMember.team_id)
        .where(Team.year == year)
        .where(Team.month == month)
        .order_by(TeamMember.team_id, TeamMember.user_id)
    )
    return [(team_id, user_id) for team_id, user_id in result.all()]


async def month_question_count(db: AsyncSession, year: int, month: int) -> int:
    result = await db.execute(
        select(func.count(Question.id))
        .where(Question.year == year)
        .where(Question.month == month)
    )
    return result.scalar_one()


async def month_ratings(db: AsyncSession, year: int, month: int) -> list[Rating]:
    """Ratings filed under the month's teams, for questions of the same month."""
    result = await db.execute(
        select(Rating)
        .join(Team, Team.id == Rating.team_id)
        .join(Question, Question.id == Rating.question_id)
        .where(Team.year == year, Team.month == month)
        .where(Question.year == year, Question.month == month)
        .order_by(Rating.id)
    )
    return list(result.scalars().all())


async def get_cached_analytics(db: AsyncSession, cache_key: str) -> Optional[AnalyticsCache]:
    result = await db.execute(
        select(AnalyticsCache).where(AnalyticsCache.cache_key == cache_key)
    )
    return result.scalar_one_or_none()


async def replace_cached_analytics(
    db: AsyncSession, cache_key: str, cache_type: str, year: int, month: int, data
) -> AnalyticsCache:
    """Swap the row stored under `cache_key` for a new one, as one transaction."""
    entry = AnalyticsCache(
        cache_key=cache_key, cache_type=cache_type, year=year, month=month, data=data
    )
    try:
        await db.execute(delete(AnalyticsCache).where(AnalyticsCache.cache_key == cache_key))
        db.add(entry)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return entry
