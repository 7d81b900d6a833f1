"""File category SQLAlchemy model

Categories classify project files (application form, manual, test report...).
They are owned by the canonical store; staging records only reference them.
"""

from sqlalchemy import Boolean, Column, Integer, Text

from ..domain.staging.models import FileCategory
from .base import Base


class Category(Base):
    """File category with display order and a required flag."""
    __tablename__ = "file_category"

    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=False, default="")
    required = Column(Boolean, nullable=False, default=False)
    order = Column("display_order", Integer, nullable=False, default=0)

    def to_domain(self) -> FileCategory:
        return FileCategory(
            id=self.id,
            name=self.name,
            description=self.description or "",
            required=bool(self.required),
            order=self.order or 0,
        )
