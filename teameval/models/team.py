from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, func
from teameval.database import Base
from teameval.schemas.period import Period


class Team(Base):
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    day = Column(Integer, nullable=True)    # NULL for monthly periods
    hour = Column(Integer, nullable=True)
    period_key = Column(String, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("period_key", "name", name="uq_team_period_name"),
    )

    @property
    def period(self) -> Period:
        return Period(year=self.year, month=self.month, day=self.day, hour=self.hour)


class TeamMember(Base):
    __tablename__ = "team_members"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # Denormalised from the team so the store rejects a second team per period
    period_key = Column(String, nullable=False)
    joined_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="uq_team_member"),
        UniqueConstraint("period_key", "user_id", name="uq_member_period"),
    )
