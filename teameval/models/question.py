from sqlalchemy import Column, Integer, Text, DateTime, func
from teameval.database import Base


class Question(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    text = Column(Text, nullable=False)
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    day = Column(Integer, nullable=True)    # NULL → applies to the whole month
    hour = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
