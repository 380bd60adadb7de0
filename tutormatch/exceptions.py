"""Domain errors raised by the matching engine and its stores"""


class TutorMatchError(Exception):
    """Base class for all tutormatch errors"""


class InvalidTargetWeekError(TutorMatchError, ValueError):
    """Target week is malformed or not a Monday"""


class RecurrenceValidationError(TutorMatchError, ValueError):
    """Recurrence operation is not allowed for the request's kind or status"""


class DuplicateRequestError(TutorMatchError, ValueError):
    """User already has an outstanding request for this subject and kind"""


class RequestNotFoundError(TutorMatchError, LookupError):
    """No tutoring request exists with the given id"""

    def __init__(self, request_id: int):
        self.request_id = request_id
        super().__init__(f"Request {request_id} not found")


class MatchingRunInProgressError(TutorMatchError):
    """A matching run for the same target week is already executing"""

    def __init__(self, target_week):
        self.target_week = target_week
        super().__init__(f"A matching run for week {target_week} is already in progress")


class PairingError(TutorMatchError):
    """A single tutor/tutee pairing could not be materialized"""
