"""Enumerations shared by the tutoring models"""
import enum


class RequestType(str, enum.Enum):
    """TUTOR offers help in a subject, TUTEE asks for it"""

    TUTOR = "TUTOR"
    TUTEE = "TUTEE"


class RequestStatus(str, enum.Enum):
    """Position of a request in the matching pipeline"""

    OUTSTANDING = "OUTSTANDING"
    MATCHED = "MATCHED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"


class YearGroup(str, enum.Enum):
    """School year groups, declared in ascending order"""

    YEAR_9 = "YEAR_9"
    YEAR_10 = "YEAR_10"
    YEAR_11 = "YEAR_11"
    YEAR_12 = "YEAR_12"  # Lower sixth
    YEAR_13 = "YEAR_13"  # Upper sixth

    @property
    def rank(self) -> int:
        return _YEAR_GROUP_ORDER.index(self)

    def can_tutor(self, tutee_year: "YearGroup") -> bool:
        """A tutor may only teach students in the same or a lower year group."""
        return self.rank >= tutee_year.rank


_YEAR_GROUP_ORDER = list(YearGroup)


class Weekday(str, enum.Enum):
    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class Period(str, enum.Enum):
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"
    P4 = "P4"
    P5 = "P5"
    P6 = "P6"
    P7 = "P7"

    @property
    def number(self) -> int:
        return int(self.value[1:])
