"""SQLAlchemy models for the canonical project/file store."""

from .base import Base, PortableJSONB
from .category import Category
from .project import FILE_STATUSES, Project, empty_statistics
from .project_file import ProjectFile, coarse_file_type

__all__ = [
    "Base",
    "PortableJSONB",
    "Category",
    "FILE_STATUSES",
    "Project",
    "empty_statistics",
    "ProjectFile",
    "coarse_file_type",
]
