from calendar import monthrange
from datetime import datetime, timedelta, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

PeriodMode = Literal["hourly", "monthly"]


class Period(BaseModel):
    """
    Time bucket that scopes teams, questions and ratings.

    Two shapes are valid:
      - coarse:  (month, year)            key "2025-03"
      - hourly:  (hour, day, month, year) key "2025-03-14T09"
    """

    year: int = Field(..., ge=2000, le=9999)
    month: int = Field(..., ge=1, le=12)
    day: Optional[int] = Field(None, ge=1, le=31)
    hour: Optional[int] = Field(None, ge=0, le=23)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def check_shape(self):
        if (self.day is None) != (self.hour is None):
            raise ValueError("day and hour must be given together for an hourly period")
        if self.day is not None and self.day > monthrange(self.year, self.month)[1]:
            raise ValueError(f"Day {self.day} does not exist in {self.year}-{self.month:02d}")
        return self

    @property
    def mode(self) -> PeriodMode:
        return "monthly" if self.hour is None else "hourly"

    @property
    def key(self) -> str:
        if self.hour is None:
            return f"{self.year:04d}-{self.month:02d}"
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}T{self.hour:02d}"

    @property
    def month_key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    def previous(self) -> "Period":
        """The bucket right before this one, in the same mode."""
        if self.hour is None:
            if self.month == 1:
                return Period(year=self.year - 1, month=12)
            return Period(year=self.year, month=self.month - 1)
        start = datetime(self.year, self.month, self.day, self.hour)
        return Period.from_datetime(start - timedelta(hours=1), "hourly")

    @classmethod
    def from_datetime(cls, moment: datetime, mode: PeriodMode) -> "Period":
        if mode == "monthly":
            return cls(year=moment.year, month=moment.month)
        return cls(year=moment.year, month=moment.month, day=moment.day, hour=moment.hour)

    @classmethod
    def current(cls, mode: PeriodMode) -> "Period":
        return cls.from_datetime(datetime.now(timezone.utc), mode)

    def __str__(self) -> str:
        return self.key
