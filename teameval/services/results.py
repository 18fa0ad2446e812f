"""Per-period ranking cache.

A period moves Uncached → Computing → Cached. Cached totals are only ever
replaced by an explicit recompute; tie-break inputs that depend on live data
(earliest submission) are re-read on every hit.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from teameval import repositories
from teameval.config import EvaluationWeights, settings
from teameval.core.exceptions import ScoringError
from teameval.models.team import Team
from teameval.schemas.period import Period
from teameval.schemas.score import RankedResult, TeamScore, TeamWeightedScore
from teameval.services import scoring
from teameval.services.ranking import rank

logger = logging.getLogger(__name__)


class _PeriodLock:
    """A period's lock and how many callers hold or await it."""

    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0


# One computation per period at a time within this process. An entry is
# dropped as soon as nobody holds or awaits its lock.
_computing: dict[str, _PeriodLock] = {}


@asynccontextmanager
async def _computation(period: Period):
    entry = _computing.setdefault(period.key, _PeriodLock())
    entry.users += 1
    try:
        async with entry.lock:
            yield
    finally:
        entry.users -= 1
        if entry.users == 0:
            _computing.pop(period.key, None)


async def _score_one_team(
    db: AsyncSession,
    team: Team,
    question_ids: list[int],
    weighted: bool,
    weights: EvaluationWeights,
) -> tuple[TeamWeightedScore, bool]:
    if weighted and question_ids:
        try:
            return await scoring.score_team(db, team.id, question_ids, weights), True
        except ScoringError as e:
            logger.warning("Falling back to unweighted scoring for team %s: %s", team.id, e)
    return await scoring.score_team_unweighted(db, team.id, len(question_ids)), False


async def compute_team_scores(
    db: AsyncSession, period: Period, weights: EvaluationWeights
) -> list[TeamScore]:
    teams = await repositories.teams_for_period(db, period)
    if not teams:
        return []

    # Decided once so a ranking never mixes modes (bar per-team fallback)
    weighted = await scoring.uses_weighted_mode(db)

    questions_by_period: dict[str, list[int]] = {}
    team_scores = []
    for team in teams:
        if team.period_key not in questions_by_period:
            questions = await repositories.questions_for_period(db, team.period)
            questions_by_period[team.period_key] = [q.id for q in questions]
        question_ids = questions_by_period[team.period_key]

        score, used_weights = await _score_one_team(db, team, question_ids, weighted, weights)
        team_scores.append(
            TeamScore(
                team_id=team.id,
                team_name=team.name,
                total_score=score.total_score,
                answer_count=score.answer_count,
                question_count=score.question_count,
                earliest_submission_time=await repositories.earliest_submission_time(db, team.id),
                uses_weighted_scoring=used_weights,
            )
        )
    return team_scores


async def _from_snapshot(db: AsyncSession, period: Period) -> Optional[RankedResult]:
    rows = await repositories.snapshot_for_period(db, period)
    if not rows:
        return None

    teams = {team.id: team for team in await repositories.teams_for_period(db, period)}
    team_scores = []
    for row in rows:
        team = teams.get(row.team_id)
        if team is None:
            continue
        team_scores.append(
            TeamScore(
                team_id=row.team_id,
                team_name=team.name,
                total_score=row.total_score,
                answer_count=row.answer_count,
                question_count=row.question_count,
                earliest_submission_time=await repositories.earliest_submission_time(db, row.team_id),
            )
        )

    ranking = rank(team_scores)
    calculated = [row.calculated_at for row in rows if row.calculated_at is not None]
    return RankedResult(
        period=period.key,
        cached=True,
        calculated_at=max(calculated) if calculated else None,
        ordered=ranking.ordered,
        winner=ranking.winner,
    )


async def recompute(
    db: AsyncSession, period: Period, weights: Optional[EvaluationWeights] = None
) -> RankedResult:
    """Score every team of the period from live ratings and replace its snapshot."""
    weights = weights or settings.evaluation_weights
    team_scores = await compute_team_scores(db, period, weights)
    if not team_scores:
        return RankedResult(period=period.key)

    ranking = rank(team_scores)
    rows = await repositories.replace_score_snapshot(
        db,
        period,
        [
            {
                "team_id": ts.team_id,
                "total_score": ts.total_score,
                "answer_count": ts.answer_count,
                "question_count": ts.question_count,
            }
            for ts in ranking.ordered
        ],
    )
    calculated = [row.calculated_at for row in rows if row.calculated_at is not None]
    return RankedResult(
        period=period.key,
        cached=False,
        calculated_at=max(calculated) if calculated else None,
        ordered=ranking.ordered,
        winner=ranking.winner,
    )


async def get_ranking(
    db: AsyncSession, period: Period, weights: Optional[EvaluationWeights] = None
) -> RankedResult:
    cached = await _from_snapshot(db, period)
    if cached is not None:
        logger.debug("Results cache hit for %s", period.key)
        return cached

    async with _computation(period):
        # Another request may have filled the cache while we waited
        cached = await _from_snapshot(db, period)
        if cached is not None:
            return cached
        logger.info("Results cache miss for %s, computing", period.key)
        return await recompute(db, period, weights)
