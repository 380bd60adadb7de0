"""TutoringRequest model - One unit of tutoring demand (TUTEE) or supply (TUTOR)"""
from sqlalchemy import (
    Column, Integer, Boolean, Date, DateTime, Enum, ForeignKey, Table, Index,
)
from sqlalchemy.orm import relationship, validates
from sqlalchemy.sql import func

from tutormatch.database import Base
from tutormatch.models.enums import RequestType, RequestStatus, YearGroup


request_timeslots = Table(
    "request_timeslots",
    Base.metadata,
    Column("request_id", Integer, ForeignKey("tutoring_requests.id", ondelete="CASCADE"), primary_key=True),
    Column("timeslot_id", Integer, ForeignKey("timeslots.id", ondelete="CASCADE"), primary_key=True),
)


class TutoringRequest(Base):
    """
    Request to tutor or be tutored in one subject for one target week.

    For TUTEE requests possible_timeslots are the requested times; for TUTOR
    requests the bookable slots come from the owner's availability.
    """

    __tablename__ = "tutoring_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False)
    kind = Column(Enum(RequestType, native_enum=False, length=10), nullable=False)
    status = Column(
        Enum(RequestStatus, native_enum=False, length=20),
        nullable=False,
        default=RequestStatus.OUTSTANDING,
    )
    # Captured from the owner when the request is created
    year_group = Column(Enum(YearGroup, native_enum=False, length=20), nullable=False)
    # Monday of the week this request is scheduled against
    target_week = Column(Date, nullable=False)
    is_recurring = Column(Boolean, nullable=False, default=False)
    # Set on regenerated tutee requests: the tutor the pair agreed to keep
    recurring_tutor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    matched_partner_id = Column(
        Integer,
        ForeignKey("tutoring_requests.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    user = relationship("User", foreign_keys=[user_id], lazy="selectin")
    subject = relationship("Subject", lazy="selectin")
    possible_timeslots = relationship(
        "Timeslot",
        secondary=request_timeslots,
        lazy="selectin",
        order_by="Timeslot.id",
    )

    __table_args__ = (
        Index("idx_requests_kind_status_week", "kind", "status", "target_week"),
        Index("idx_requests_user", "user_id"),
        Index("idx_requests_partner", "matched_partner_id"),
    )

    @validates("year_group")
    def _freeze_year_group(self, key, value):
        current = self.__dict__.get("year_group")
        if current is not None and current != value:
            raise ValueError(f"Year group of request {self.id} is immutable")
        return value

    def __repr__(self):
        return (
            f"<TutoringRequest(id={self.id}, kind={self.kind}, status={self.status}, "
            f"week={self.target_week})>"
        )
