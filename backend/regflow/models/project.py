"""Project SQLAlchemy model

A device-registration project. ``statistics`` counts the project's files
per review status and is updated whenever staged files are committed.
"""

from sqlalchemy import Column, DateTime, Text
from sqlalchemy.orm import relationship

from .base import Base, PortableJSONB, utcnow

FILE_STATUSES = ("submitted", "preliminary", "review", "approved", "rejected", "deprecated")


def empty_statistics() -> dict:
    return {status: 0 for status in FILE_STATUSES}


class Project(Base):
    """Registration project owning a set of permanent files."""
    __tablename__ = "project"

    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False)
    code = Column(Text, nullable=False, default="")
    statistics = Column(PortableJSONB, nullable=False, default=empty_statistics)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    files = relationship("ProjectFile", back_populates="project", cascade="all, delete-orphan")
