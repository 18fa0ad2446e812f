from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from teameval.schemas.team import PeriodFields


class QuestionCreate(PeriodFields):
    text: str = Field(..., min_length=3, max_length=500)


class QuestionResponse(BaseModel):
    id: int
    text: str
    year: int
    month: int
    day: Optional[int]
    hour: Optional[int]
    created_at: Optional[datetime]

    model_config = {"from_attributes": True}
