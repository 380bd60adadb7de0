"""SQLAlchemy ORM Models for the TutorMatch Database Schema"""
from tutormatch.models.enums import RequestType, RequestStatus, YearGroup, Weekday, Period
from tutormatch.models.subject import Subject
from tutormatch.models.user import User, DEFAULT_MAX_SESSIONS_PER_WEEK
from tutormatch.models.timeslot import Timeslot
from tutormatch.models.availability_slot import AvailabilitySlot
from tutormatch.models.request import TutoringRequest
from tutormatch.models.match import Match, MATCH_STATUS_ACTIVE

__all__ = [
    "RequestType",
    "RequestStatus",
    "YearGroup",
    "Weekday",
    "Period",
    "Subject",
    "User",
    "DEFAULT_MAX_SESSIONS_PER_WEEK",
    "Timeslot",
    "AvailabilitySlot",
    "TutoringRequest",
    "Match",
    "MATCH_STATUS_ACTIVE",
]
