import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Enum, UniqueConstraint, CheckConstraint, func
from teameval.database import Base


class Role(str, enum.Enum):
    MEMBER = "member"
    MANAGER = "manager"
    ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, nullable=False)
    email = Column(String, unique=True, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    role = Column(Enum(Role, values_callable=lambda e: [r.value for r in e], native_enum=False),
                  default=Role.MEMBER, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ManagerAssignment(Base):
    """Who manages whom. Drives who may submit a manager rating for a subject."""
    __tablename__ = "user_managers"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    manager_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "manager_id", name="uq_user_manager"),
        CheckConstraint("user_id != manager_id", name="ck_not_own_manager"),
    )
