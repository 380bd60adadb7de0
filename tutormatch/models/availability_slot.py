"""AvailabilitySlot model - Weekly (day, period) availability per user"""
from sqlalchemy import Column, Integer, DateTime, Enum, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from tutormatch.database import Base
from tutormatch.models.enums import Weekday, Period
from tutormatch.models.timeslot import Timeslot


class AvailabilitySlot(Base):
    """A (day of week, period) combination when a user can hold sessions"""

    __tablename__ = "availability_slots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    day_of_week = Column(Enum(Weekday, native_enum=False, length=10), nullable=False)
    period = Column(Enum(Period, native_enum=False, length=5), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("user_id", "day_of_week", "period", name="uq_availability_user_slot"),
        Index("idx_availability_user", "user_id"),
    )

    @property
    def label(self) -> str:
        """Timeslot label this availability corresponds to."""
        return Timeslot.label_for(self.day_of_week, self.period)

    def __repr__(self):
        return f"<AvailabilitySlot(user_id={self.user_id}, {self.day_of_week.value} {self.period.value})>"
