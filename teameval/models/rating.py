import enum
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, DateTime, ForeignKey, Enum, UniqueConstraint, CheckConstraint
from teameval.database import Base


class RatingSource(str, enum.Enum):
    SELF = "self"
    PEER = "peer"
    MANAGER = "manager"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Rating(Base):
    """One immutable scored answer: rater → subject, for one question."""
    __tablename__ = "answers"

    id = Column(Integer, primary_key=True, index=True)
    rater_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    subject_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    # NULL on rows recorded before 360-degree evaluations existed
    source = Column(Enum(RatingSource, values_callable=lambda e: [s.value for s in e], native_enum=False),
                    nullable=True, index=True)
    score = Column(Integer, nullable=False)  # 1–5
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("rater_id", "question_id", "subject_id", "source", name="uq_rating_tuple"),
        CheckConstraint("score >= 1 AND score <= 5", name="ck_rating_score_range"),
    )
