"""Subject model - School subjects that can be tutored"""
from sqlalchemy import Column, String, Integer, DateTime
from sqlalchemy.sql import func

from tutormatch.database import Base


class Subject(Base):
    """A school subject such as Mathematics or Physics"""

    __tablename__ = "subjects"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self):
        return f"<Subject(id={self.id}, name={self.name})>"
