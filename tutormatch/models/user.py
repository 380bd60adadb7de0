"""User model - Student profile data read by the matching engine"""
from sqlalchemy import (
    Column, String, Integer, DateTime, Enum, ForeignKey, Table, CheckConstraint, Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from tutormatch.database import Base
from tutormatch.models.enums import YearGroup

# Used when a tutor has not declared a weekly session limit
DEFAULT_MAX_SESSIONS_PER_WEEK = 3


user_subjects = Table(
    "user_subjects",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("subject_id", Integer, ForeignKey("subjects.id", ondelete="CASCADE"), primary_key=True),
)


class User(Base):
    """Student who can request tutoring, offer it, or both"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    year_group = Column(Enum(YearGroup, native_enum=False, length=20), nullable=False)
    max_sessions_per_week = Column(
        Integer,
        CheckConstraint("max_sessions_per_week >= 1", name="max_sessions_positive"),
        nullable=False,
        default=DEFAULT_MAX_SESSIONS_PER_WEEK,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    subjects = relationship("Subject", secondary=user_subjects, lazy="selectin", order_by="Subject.id")

    __table_args__ = (
        Index("idx_users_email", "email"),
    )

    @property
    def session_capacity(self) -> int:
        """Weekly session limit, falling back to the default for unset profiles."""
        return self.max_sessions_per_week or DEFAULT_MAX_SESSIONS_PER_WEEK

    def __repr__(self):
        return f"<User(id={self.id}, name={self.full_name}, year_group={self.year_group})>"
