"""Timeslot model - Named slots in the school timetable"""
import re
from typing import List, Tuple

from sqlalchemy import Column, String, Integer, DateTime
from sqlalchemy.orm import validates
from sqlalchemy.sql import func

from tutormatch.database import Base
from tutormatch.models.enums import Weekday, Period

LABEL_PATTERN = re.compile(r"^(Monday|Tuesday|Wednesday|Thursday|Friday) Period [1-7]$")


class Timeslot(Base):
    """A single timetable slot, labelled e.g. "Monday Period 1" """

    __tablename__ = "timeslots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    label = Column(String(50), unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @staticmethod
    def label_for(day: Weekday, period: Period) -> str:
        return f"{day.display_name} Period {period.number}"

    @staticmethod
    def parse_label(label: str) -> Tuple[Weekday, Period]:
        """Inverse of label_for: "Tuesday Period 3" -> (TUESDAY, P3)."""
        if not LABEL_PATTERN.match(label or ""):
            raise ValueError(f"Invalid timeslot label: {label!r}")
        day, _, number = label.split()
        return Weekday(day.upper()), Period(f"P{number}")

    @classmethod
    def all_labels(cls) -> List[str]:
        """Every timetable label, Monday Period 1 first."""
        return [cls.label_for(day, period) for day in Weekday for period in Period]

    @validates("label")
    def _validate_label(self, key, value):
        if not LABEL_PATTERN.match(value or ""):
            raise ValueError(
                f"Invalid timeslot label: {value!r}. Expected 'Day Period X' where X is 1-7"
            )
        return value

    def __repr__(self):
        return f"<Timeslot(id={self.id}, label={self.label})>"
