from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from teameval.models.rating import RatingSource


class RatingCreate(BaseModel):
    question_id: int
    # Omitted for self ratings
    subject_id: Optional[int] = None
    source: RatingSource = RatingSource.PEER
    score: int  # 1–5, checked by the service


class RatingResponse(BaseModel):
    id: int
    rater_id: int
    question_id: int
    team_id: int
    subject_id: Optional[int]
    source: Optional[RatingSource]
    score: int
    created_at: datetime

    model_config = {"from_attributes": True}
