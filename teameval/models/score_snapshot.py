from sqlalchemy import Column, Integer, Float, String, DateTime, ForeignKey, UniqueConstraint, func
from teameval.database import Base


class ScoreSnapshot(Base):
    """Cached team total for a period. Always replaced as a whole set."""
    __tablename__ = "results_cache"

    id = Column(Integer, primary_key=True, index=True)
    period_key = Column(String, nullable=False, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    total_score = Column(Float, nullable=False, default=0.0)
    answer_count = Column(Integer, nullable=False, default=0)
    question_count = Column(Integer, nullable=False, default=0)
    calculated_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("period_key", "team_id", name="uq_snapshot_period_team"),
    )
