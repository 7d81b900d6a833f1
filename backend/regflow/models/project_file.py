"""Project file SQLAlchemy model

Permanent, reviewable file record of a project. Rows are created by the
confirmation of staged files and start in ``submitted`` status.
"""

import uuid

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Index, Text
from sqlalchemy.orm import relationship

from .base import Base, utcnow


def coarse_file_type(mime_type: str) -> str:
    """Map a MIME type to the coarse file type shown in project file lists

    Example:
        >>> coarse_file_type('application/pdf')
        'pdf'
        >>> coarse_file_type('image/png')
        'image'
        >>> coarse_file_type('application/msword')
        'document'
    """
    if "pdf" in mime_type:
        return "pdf"
    if "image" in mime_type:
        return "image"
    return "document"


class ProjectFile(Base):
    """File committed into a project's canonical record."""
    __tablename__ = "project_file"
    __table_args__ = (
        Index("ix_project_file_project_id", "project_id"),
    )

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id = Column(Text, ForeignKey("project.id", ondelete="CASCADE"), nullable=False)
    category_id = Column(Text, ForeignKey("file_category.id", ondelete="RESTRICT"), nullable=False)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="submitted")
    original_file_name = Column(Text, nullable=False)
    mime_type = Column(Text, nullable=False)
    file_type = Column(Text, nullable=False)
    size_bytes = Column(BigInteger, nullable=False)
    source_staging_id = Column(Text, nullable=True, unique=True)
    uploaded_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    project = relationship("Project", back_populates="files")
    category = relationship("Category")

    def to_dict(self):
        """Convert file to dictionary representation"""
        return {
            "id": self.id,
            "project_id": self.project_id,
            "category_id": self.category_id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "original_file_name": self.original_file_name,
            "mime_type": self.mime_type,
            "file_type": self.file_type,
            "size_bytes": self.size_bytes,
            "source_staging_id": self.source_staging_id,
            "uploaded_at": self.uploaded_at.isoformat() if self.uploaded_at else None,
        }
