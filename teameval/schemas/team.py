from pydantic import BaseModel, Field
from typing import List, Optional

from teameval.config import settings
from teameval.schemas.period import Period
from teameval.schemas.score import TeamScore


class PeriodFields(BaseModel):
    year: int
    month: int
    day: Optional[int] = None
    hour: Optional[int] = None

    @property
    def period(self) -> Period:
        return Period(year=self.year, month=self.month, day=self.day, hour=self.hour)


class GenerateTeamsRequest(PeriodFields):
    force: bool = False
    team_size: Optional[int] = Field(None, ge=2)


class GeneratedTeam(BaseModel):
    id: int
    name: str
    member_count: int
    member_ids: List[int]


class GenerationResult(BaseModel):
    period: str
    teams: List[GeneratedTeam] = []
    team_count: int = 0
    total_users: int = 0
    skipped: bool = False
    message: str


class TeamResponse(BaseModel):
    id: int
    name: str
    period_key: str
    year: int
    month: int
    day: Optional[int]
    hour: Optional[int]
    member_ids: List[int] = []

    model_config = {"from_attributes": True}


class AddMemberRequest(BaseModel):
    user_id: int


class ManagerAssignmentCreate(BaseModel):
    user_id: int
    manager_id: int


class PeriodQuery(BaseModel):
    """Optional period query parameters; year and month omitted means the current period."""

    year: Optional[int] = None
    month: Optional[int] = None
    day: Optional[int] = None
    hour: Optional[int] = None

    @property
    def period(self) -> Period:
        if self.year is None and self.month is None:
            return Period.current(settings.PERIOD_MODE)
        return Period(year=self.year, month=self.month, day=self.day, hour=self.hour)


class ScoredTeam(TeamScore):
    member_ids: List[int] = []


class TeamsWithScores(BaseModel):
    period: str
    teams: List[ScoredTeam] = []
    winner: Optional[ScoredTeam] = None
