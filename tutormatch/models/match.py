"""Match model - Confirmed pairing of a tutor request and a tutee request"""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from tutormatch.database import Base

MATCH_STATUS_ACTIVE = "ACTIVE"


class Match(Base):
    """Tutor/tutee pairing at an agreed timeslot, written only by the matching engine"""

    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tutor_request_id = Column(Integer, ForeignKey("tutoring_requests.id", ondelete="CASCADE"), nullable=False)
    tutee_request_id = Column(Integer, ForeignKey("tutoring_requests.id", ondelete="CASCADE"), nullable=False)
    timeslot_id = Column(Integer, ForeignKey("timeslots.id"), nullable=False)
    status = Column(String(20), nullable=False, default=MATCH_STATUS_ACTIVE)
    # Tutor agreed to meet this tutee again next week
    recurrence_accepted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    tutor_request = relationship("TutoringRequest", foreign_keys=[tutor_request_id], lazy="selectin")
    tutee_request = relationship("TutoringRequest", foreign_keys=[tutee_request_id], lazy="selectin")
    timeslot = relationship("Timeslot", lazy="selectin")

    __table_args__ = (
        Index("idx_matches_tutor_request", "tutor_request_id"),
        Index("idx_matches_tutee_request", "tutee_request_id"),
    )

    def __repr__(self):
        return (
            f"<Match(id={self.id}, tutor_request={self.tutor_request_id}, "
            f"tutee_request={self.tutee_request_id}, timeslot={self.timeslot_id})>"
        )
