from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel

from teameval.schemas.period import Period
from teameval.schemas.score import TeamScore


class MonthQuery(BaseModel):
    """year/month query parameters; both omitted means the current UTC month."""

    year: Optional[int] = None
    month: Optional[int] = None
    refresh: bool = False

    @property
    def period(self) -> Period:
        if self.year is None and self.month is None:
            return Period.current("monthly")
        return Period(year=self.year, month=self.month)


class CachedReport(BaseModel):
    year: int
    month: int
    cached: bool = False
    calculated_at: Optional[datetime] = None


class TeamParticipation(BaseModel):
    team_id: int
    team_name: str
    participation_rate: float
    submitted_answers: int
    expected_answers: int
    member_count: int
    question_count: int


class TeamAverage(BaseModel):
    team_id: int
    team_name: str
    average_score: float
    total_answers: int
    total_score: int


class UserAverage(BaseModel):
    user_id: int
    username: str
    email: str
    average_score: float
    total_answers: int
    total_score: int


class ParticipationReport(CachedReport):
    participation_rates: List[TeamParticipation] = []


class TeamAveragesReport(CachedReport):
    team_averages: List[TeamAverage] = []


class UserAveragesReport(CachedReport):
    user_averages: List[UserAverage] = []


class PerformersReport(CachedReport):
    top: List[UserAverage] = []
    bottom: List[UserAverage] = []


class MonthMetrics(BaseModel):
    year: int
    month: int
    total_users: int = 0
    total_teams: int = 0
    total_answers: int = 0
    avg_participation_rate: float = 0.0
    avg_score: float = 0.0


class MetricChange(BaseModel):
    value: float
    percentage: float


class MonthComparison(CachedReport):
    current: MonthMetrics
    previous: MonthMetrics
    changes: Dict[str, MetricChange] = {}


class DashboardOverview(BaseModel):
    total_users: int
    total_teams: int
    total_questions: int
    overall_participation_rate: float
    overall_average_score: float


class Dashboard(BaseModel):
    year: int
    month: int
    overview: DashboardOverview
    participation_rates: List[TeamParticipation]
    team_averages: List[TeamAverage]
    user_averages: List[UserAverage]
    performers: PerformersReport
    month_comparison: MonthComparison
    rankings: List[TeamScore] = []
    winner: Optional[TeamScore] = None
