"""Admin analytics over one calendar month.

Every report covers the teams generated in the month (all hours), the
questions of the month and the ratings filed for both. Reports are cached in
analytics_cache under "<type>:<YYYY-MM>" and recomputed once an entry is older
than ANALYTICS_CACHE_TTL_SECONDS or when the caller asks for a refresh.
"""
import logging
from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, NamedTuple, Optional, Type, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from teameval import repositories
from teameval.config import settings
from teameval.models.analytics_cache import AnalyticsCache
from teameval.models.rating import Rating
from teameval.models.team import Team
from teameval.models.user import User
from teameval.schemas.analytics import (
    CachedReport,
    Dashboard,
    DashboardOverview,
    MetricChange,
    MonthComparison,
    MonthMetrics,
    ParticipationReport,
    PerformersReport,
    TeamAverage,
    TeamAveragesReport,
    TeamParticipation,
    UserAverage,
    UserAveragesReport,
)
from teameval.schemas.period import Period
from teameval.services import results
from teameval.services.ranking import as_utc

logger = logging.getLogger(__name__)

MIN_PERFORMER_ANSWERS = 3
PERFORMER_COUNT = 3
COMPARED_METRICS = ("total_users", "total_teams", "total_answers", "avg_participation_rate", "avg_score")

ReportT = TypeVar("ReportT", bound=CachedReport)


class MonthData(NamedTuple):
    period: Period
    teams: list[Team]
    memberships: list[tuple[int, int]]
    ratings: list[Rating]
    question_count: int


def month_of(period: Period) -> Period:
    return Period(year=period.year, month=period.month)


async def load_month(db: AsyncSession, period: Period) -> MonthData:
    month = month_of(period)
    return MonthData(
        period=month,
        teams=await repositories.teams_for_period(db, month),
        memberships=await repositories.month_memberships(db, month.year, month.month),
        ratings=await repositories.month_ratings(db, month.year, month.month),
        question_count=await repositories.month_question_count(db, month.year, month.month),
    )


def _valid(score) -> bool:
    return score is not None and 1 <= score <= 5


def _percent(part: float, whole: float) -> float:
    return part / whole * 100 if whole else 0.0


def _rated_user(rating: Rating) -> int:
    # Legacy rows carry no subject; the rater answered about themselves
    return rating.subject_id if rating.subject_id is not None else rating.rater_id


# ---------------------------------------------------------------------------
# Aggregations
# ---------------------------------------------------------------------------
def participation(data: MonthData) -> list[TeamParticipation]:
    """Submitted answers over members x questions, per team with at least one member."""
    members = Counter(team_id for team_id, _ in data.memberships)
    submitted = Counter(r.team_id for r in data.ratings)

    rows = []
    for team in data.teams:
        member_count = members.get(team.id, 0)
        if member_count == 0:
            continue
        expected = member_count * data.question_count
        rows.append(
            TeamParticipation(
                team_id=team.id,
                team_name=team.name,
                participation_rate=round(_percent(submitted[team.id], expected), 2),
                submitted_answers=submitted[team.id],
                expected_answers=expected,
                member_count=member_count,
                question_count=data.question_count,
            )
        )
    return rows


def team_averages(data: MonthData) -> list[TeamAverage]:
    totals: dict[int, list[int]] = defaultdict(lambda: [0, 0])
    for r in data.ratings:
        if _valid(r.score):
            totals[r.team_id][0] += r.score
            totals[r.team_id][1] += 1

    keyed = []
    for team in data.teams:
        total, count = totals.get(team.id, (0, 0))
        average = total / count if count else 0.0
        keyed.append((
            -average,
            team.id,
            TeamAverage(
                team_id=team.id,
                team_name=team.name,
                average_score=round(average, 2),
                total_answers=count,
                total_score=total,
            ),
        ))
    keyed.sort(key=lambda k: k[:2])
    return [row for _, _, row in keyed]


def user_averages(data: MonthData, users: dict[int, User]) -> list[UserAverage]:
    """Scores received by each member of the month's teams; users with no scores are left out."""
    members = {user_id for _, user_id in data.memberships}
    totals: dict[int, list[int]] = defaultdict(lambda: [0, 0])
    for r in data.ratings:
        user_id = _rated_user(r)
        if user_id in members and _valid(r.score):
            totals[user_id][0] += r.score
            totals[user_id][1] += 1

    keyed = []
    for user_id, (total, count) in totals.items():
        user = users.get(user_id)
        if user is None:
            continue
        average = total / count
        keyed.append((
            -average,
            user.username,
            UserAverage(
                user_id=user_id,
                username=user.username,
                email=user.email,
                average_score=round(average, 2),
                total_answers=count,
                total_score=total,
            ),
        ))
    keyed.sort(key=lambda k: k[:2])
    return [row for _, _, row in keyed]


def performers(
    rows: list[UserAverage], count: int = PERFORMER_COUNT, min_answers: int = MIN_PERFORMER_ANSWERS
) -> tuple[list[UserAverage], list[UserAverage]]:
    """Best and worst `count` users among those with at least `min_answers` scores."""
    eligible = [row for row in rows if row.total_answers >= min_answers]

    def mean(row: UserAverage) -> float:
        return row.total_score / row.total_answers

    top = sorted(eligible, key=lambda row: (-mean(row), row.username))[:count]
    bottom = sorted(eligible, key=lambda row: (mean(row), row.username))[:count]
    return top, bottom


def month_metrics(data: MonthData) -> MonthMetrics:
    rows = participation(data)
    submitted = sum(row.submitted_answers for row in rows)
    expected = sum(row.expected_answers for row in rows)
    scores = [r.score for r in data.ratings if _valid(r.score)]
    return MonthMetrics(
        year=data.period.year,
        month=data.period.month,
        total_users=len({user_id for _, user_id in data.memberships}),
        total_teams=len(data.teams),
        total_answers=len(data.ratings),
        avg_participation_rate=round(_percent(submitted, expected), 2),
        avg_score=round(sum(scores) / len(scores), 2) if scores else 0.0,
    )


def metric_change(current: float, previous: float) -> MetricChange:
    """Absolute and relative change; from zero, any growth counts as 100%."""
    if previous == 0:
        percentage = 100.0 if current > 0 else 0.0
    else:
        percentage = (current - previous) / previous * 100
    return MetricChange(value=round(current - previous, 2), percentage=round(percentage, 2))


def compare(current: MonthMetrics, previous: MonthMetrics) -> dict[str, MetricChange]:
    return {
        name: metric_change(getattr(current, name), getattr(previous, name))
        for name in COMPARED_METRICS
    }


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------
def cache_key(cache_type: str, period: Period) -> str:
    return f"{cache_type}:{period.month_key}"


def is_fresh(entry: AnalyticsCache, now: Optional[datetime] = None) -> bool:
    now = now or datetime.now(timezone.utc)
    age = now - as_utc(entry.calculated_at)
    return age < timedelta(seconds=settings.ANALYTICS_CACHE_TTL_SECONDS)


async def _cached(
    db: AsyncSession,
    cache_type: str,
    period: Period,
    report_type: Type[ReportT],
    build: Callable[[], Awaitable[ReportT]],
    refresh: bool = False,
) -> ReportT:
    key = cache_key(cache_type, period)
    if not refresh:
        entry = await repositories.get_cached_analytics(db, key)
        if entry is not None and is_fresh(entry):
            logger.debug("Analytics cache hit for %s", key)
            report = report_type.model_validate(entry.data)
            return report.model_copy(update={"cached": True, "calculated_at": entry.calculated_at})

    report = await build()
    entry = await repositories.replace_cached_analytics(
        db,
        key,
        cache_type,
        period.year,
        period.month,
        report.model_dump(mode="json", exclude={"cached", "calculated_at"}),
    )
    logger.info("Analytics %s recomputed", key)
    return report.model_copy(update={"calculated_at": entry.calculated_at})


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------
async def team_participation(db: AsyncSession, period: Period, refresh: bool = False) -> ParticipationReport:
    month = month_of(period)

    async def build():
        data = await load_month(db, month)
        return ParticipationReport(year=month.year, month=month.month, participation_rates=participation(data))

    return await _cached(db, "participation_rate", month, ParticipationReport, build, refresh)


async def team_average_scores(db: AsyncSession, period: Period, refresh: bool = False) -> TeamAveragesReport:
    month = month_of(period)

    async def build():
        data = await load_month(db, month)
        return TeamAveragesReport(year=month.year, month=month.month, team_averages=team_averages(data))

    return await _cached(db, "team_average", month, TeamAveragesReport, build, refresh)


async def _user_rows(db: AsyncSession, month: Period) -> list[UserAverage]:
    data = await load_month(db, month)
    users = await repositories.users_by_ids(db, {user_id for _, user_id in data.memberships})
    return user_averages(data, users)


async def user_average_scores(db: AsyncSession, period: Period, refresh: bool = False) -> UserAveragesReport:
    month = month_of(period)

    async def build():
        return UserAveragesReport(year=month.year, month=month.month, user_averages=await _user_rows(db, month))

    return await _cached(db, "user_average", month, UserAveragesReport, build, refresh)


async def top_bottom_performers(db: AsyncSession, period: Period, refresh: bool = False) -> PerformersReport:
    month = month_of(period)

    async def build():
        top, bottom = performers(await _user_rows(db, month))
        return PerformersReport(year=month.year, month=month.month, top=top, bottom=bottom)

    return await _cached(db, "performers", month, PerformersReport, build, refresh)


async def month_comparison(db: AsyncSession, period: Period, refresh: bool = False) -> MonthComparison:
    month = month_of(period)

    async def build():
        current = month_metrics(await load_month(db, month))
        previous = month_metrics(await load_month(db, month.previous()))
        return MonthComparison(
            year=month.year,
            month=month.month,
            current=current,
            previous=previous,
            changes=compare(current, previous),
        )

    return await _cached(db, "month_comparison", month, MonthComparison, build, refresh)


async def dashboard(db: AsyncSession, period: Period, refresh: bool = False) -> Dashboard:
    """Every report of the month plus its live team ranking."""
    month = month_of(period)
    rates = await team_participation(db, month, refresh)
    averages = await team_average_scores(db, month, refresh)
    users = await user_average_scores(db, month, refresh)
    best_and_worst = await top_bottom_performers(db, month, refresh)
    comparison = await month_comparison(db, month, refresh)

    if refresh:
        ranking = await results.recompute(db, month)
    else:
        ranking = await results.get_ranking(db, month)

    submitted = sum(row.submitted_answers for row in rates.participation_rates)
    expected = sum(row.expected_answers for row in rates.participation_rates)
    answers = sum(row.total_answers for row in averages.team_averages)
    score = sum(row.total_score for row in averages.team_averages)
    overview = DashboardOverview(
        total_users=await repositories.count_users(db),
        total_teams=len(averages.team_averages),
        total_questions=await repositories.month_question_count(db, month.year, month.month),
        overall_participation_rate=round(_percent(submitted, expected), 2),
        overall_average_score=round(score / answers, 2) if answers else 0.0,
    )
    return Dashboard(
        year=month.year,
        month=month.month,
        overview=overview,
        participation_rates=rates.participation_rates,
        team_averages=averages.team_averages,
        user_averages=users.user_averages,
        performers=best_and_worst,
        month_comparison=comparison,
        rankings=ranking.ordered,
        winner=ranking.winner,
    )
