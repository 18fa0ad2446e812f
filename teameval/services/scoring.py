"""360-degree evaluation scoring.

weighted = self * w_self + peer_avg * w_peer + manager * w_manager

A missing source contributes 0. Team totals are sums over members (not
averages), so participation counts towards the score.
"""
import logging
from collections import defaultdict
from typing import Iterable, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from teameval import repositories
from teameval.config import EvaluationWeights
from teameval.core.exceptions import ScoringError
from teameval.models.rating import Rating, RatingSource
from teameval.schemas.score import (
    MemberWeightedScore,
    SourceBreakdown,
    TeamWeightedScore,
    WeightedScore,
)

logger = logging.getLogger(__name__)


def _valid(score) -> bool:
    return isinstance(score, int) and 1 <= score <= 5


def _latest(ratings: Sequence[Rating]) -> Rating:
    return max(ratings, key=lambda r: (r.created_at, r.id or 0))


def weighted_score_from_ratings(
    subject_id: int,
    question_id: int,
    ratings: Iterable[Rating],
    weights: EvaluationWeights,
) -> WeightedScore:
    """Blend the ratings of one subject for one question. Pure."""
    relevant = [r for r in ratings if r.question_id == question_id and _valid(r.score)]
    self_ratings = [r for r in relevant if r.source == RatingSource.SELF]
    peer_ratings = [r for r in relevant if r.source == RatingSource.PEER]
    manager_ratings = [r for r in relevant if r.source == RatingSource.MANAGER]

    self_score = float(self_ratings[0].score) if self_ratings else 0.0
    peer_avg = (
        sum(r.score for r in peer_ratings) / len(peer_ratings) if peer_ratings else 0.0
    )

    manager_score = 0.0
    if manager_ratings:
        if len(manager_ratings) > 1:
            logger.warning(
                "Subject %s has %d manager ratings for question %s, using the latest",
                subject_id, len(manager_ratings), question_id,
            )
        manager_score = float(_latest(manager_ratings).score)

    weighted = (
        self_score * weights.self
        + peer_avg * weights.peer
        + manager_score * weights.manager
    )

    return WeightedScore(
        subject_id=subject_id,
        question_id=question_id,
        self_score=self_score,
        peer_avg=peer_avg,
        manager_score=manager_score,
        weighted_score=weighted,
        breakdown={
            "self": SourceBreakdown(
                score=self_score if self_ratings else None,
                count=len(self_ratings),
                weight=weights.self,
            ),
            "peer": SourceBreakdown(
                score=round(peer_avg, 2) if peer_ratings else None,
                count=len(peer_ratings),
                weight=weights.peer,
            ),
            "manager": SourceBreakdown(
                score=manager_score if manager_ratings else None,
                count=len(manager_ratings),
                weight=weights.manager,
            ),
        },
    )


async def score_user(
    db: AsyncSession,
    subject_id: int,
    team_id: int,
    question_id: int,
    weights: EvaluationWeights,
) -> WeightedScore:
    ratings = await repositories.ratings_for_subject(db, subject_id, team_id)
    return weighted_score_from_ratings(subject_id, question_id, ratings, weights)


async def score_team(
    db: AsyncSession,
    team_id: int,
    question_ids: Sequence[int],
    weights: EvaluationWeights,
) -> TeamWeightedScore:
    """
    Sum every member's weighted score over `question_ids`.

    Raises ScoringError if a rating of the team lacks its subject or source,
    since the blend can't be computed without them.
    """
    member_ids = await repositories.team_member_ids(db, team_id)
    ratings = await repositories.ratings_for_team(db, team_id)

    by_subject: dict[int, list[Rating]] = defaultdict(list)
    for rating in ratings:
        if rating.subject_id is None or rating.source is None:
            raise ScoringError(
                f"Rating {rating.id} of team {team_id} has no subject or source"
            )
        by_subject[rating.subject_id].append(rating)

    members = []
    total = 0.0
    answered = 0
    for user_id in member_ids:
        question_scores = [
            weighted_score_from_ratings(user_id, qid, by_subject.get(user_id, []), weights)
            for qid in question_ids
        ]
        member_total = sum(q.weighted_score for q in question_scores)
        answered += sum(1 for q in question_scores if q.weighted_score > 0)
        total += member_total
        members.append(
            MemberWeightedScore(
                user_id=user_id,
                total_weighted_score=member_total,
                question_scores=question_scores,
            )
        )

    return TeamWeightedScore(
        team_id=team_id,
        total_score=total,
        answer_count=answered,
        question_count=len(question_ids),
        members=members,
    )


async def score_team_unweighted(
    db: AsyncSession, team_id: int, question_count: int
) -> TeamWeightedScore:
    """Plain sum of every raw score recorded for the team."""
    ratings = [r for r in await repositories.ratings_for_team(db, team_id) if r.score is not None]
    return TeamWeightedScore(
        team_id=team_id,
        total_score=float(sum(r.score for r in ratings)),
        answer_count=len(ratings),
        question_count=question_count,
    )


async def uses_weighted_mode(db: AsyncSession) -> bool:
    """360-degree mode is on when a sampled rating carries a source."""
    found, source = await repositories.sample_rating_source(db)
    return found and source is not None
