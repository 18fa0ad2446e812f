"""Leaderboard ordering and winner selection. Pure."""
from datetime import datetime, timezone
from typing import Iterable, Optional

from pydantic import BaseModel

from teameval.schemas.score import TeamScore

# Weighted totals are float sums; noise below this must not decide a ranking
_SCORE_PRECISION = 6


class Ranking(BaseModel):
    ordered: list[TeamScore]
    winner: Optional[TeamScore] = None


def as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _average(team: TeamScore) -> float:
    if team.answer_count == 0:
        return 0.0
    return team.total_score / team.answer_count


def sort_key(team: TeamScore) -> tuple:
    """
    total desc → average desc → earliest submission asc → team id asc.
    Teams that never received a rating sort after every timed team.
    """
    earliest = team.earliest_submission_time
    return (
        -round(team.total_score, _SCORE_PRECISION),
        -round(_average(team), _SCORE_PRECISION),
        earliest is None,
        as_utc(earliest).timestamp() if earliest is not None else 0.0,
        team.team_id,
    )


def rank(team_scores: Iterable[TeamScore]) -> Ranking:
    ordered = sorted(team_scores, key=sort_key)
    winner = ordered[0] if ordered and ordered[0].total_score > 0 else None
    return Ranking(ordered=ordered, winner=winner)
