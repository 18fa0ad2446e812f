from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, computed_field, field_serializer


class SourceBreakdown(BaseModel):
    score: Optional[float]  # None when no rating of this source exists
    count: int
    weight: float


class WeightedScore(BaseModel):
    """One subject, one question. weighted_score keeps full precision."""

    subject_id: int
    question_id: int
    self_score: float = 0.0
    peer_avg: float = 0.0
    manager_score: float = 0.0
    weighted_score: float = 0.0
    breakdown: dict[str, SourceBreakdown] = {}

    @computed_field
    @property
    def display_score(self) -> float:
        return round(self.weighted_score, 2)


class MemberWeightedScore(BaseModel):
    user_id: int
    total_weighted_score: float
    question_scores: List[WeightedScore]


class TeamWeightedScore(BaseModel):
    team_id: int
    total_score: float
    answer_count: int
    question_count: int
    members: List[MemberWeightedScore] = []


class TeamScore(BaseModel):
    team_id: int
    team_name: str
    total_score: float
    answer_count: int
    question_count: int
    earliest_submission_time: Optional[datetime] = None
    uses_weighted_scoring: bool = False

    @computed_field
    @property
    def average_score(self) -> float:
        if self.answer_count == 0:
            return 0.0
        return round(self.total_score / self.answer_count, 2)

    @computed_field
    @property
    def completion_percentage(self) -> float:
        if self.question_count == 0:
            return 0.0
        return round(self.answer_count / self.question_count * 100, 1)

    @field_serializer("total_score")
    def _two_places(self, value: float) -> float:
        return round(value, 2)


class RankedResult(BaseModel):
    period: str
    cached: bool = False
    calculated_at: Optional[datetime] = None
    ordered: List[TeamScore] = []
    winner: Optional[TeamScore] = None
