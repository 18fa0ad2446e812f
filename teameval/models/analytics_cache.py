from sqlalchemy import Column, Integer, String, DateTime, JSON
from teameval.database import Base
from teameval.models.rating import utcnow


class AnalyticsCache(Base):
    """Serialized admin analytics, one row per cache key. Replaced as a whole row."""
    __tablename__ = "analytics_cache"

    id = Column(Integer, primary_key=True, index=True)
    cache_key = Column(String, unique=True, nullable=False, index=True)
    cache_type = Column(String, nullable=False)
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    data = Column(JSON, nullable=False)
    calculated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
