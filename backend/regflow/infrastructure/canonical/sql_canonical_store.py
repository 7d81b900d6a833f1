"""SQLAlchemy adapter for the canonical store port.

Commits confirmed staging records as permanent ``ProjectFile`` rows and
bumps the project's ``submitted`` statistic in one database transaction.
Blocking database work runs in a worker thread so it never stalls the
event loop driving the staging lifecycle tasks.
"""

import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy.orm import Session, sessionmaker

from ...database import session_scope
from ...domain.staging.models import FileCategory, StagingRecord
from ...domain.staging.ports import CanonicalStorePort
from ...domain.staging.suggestions import DEFAULT_CATEGORIES
from ...models import Category, Project, ProjectFile, coarse_file_type, empty_statistics

logger = logging.getLogger(__name__)


class CanonicalStoreError(Exception):
    """Raised when the canonical store refuses a commit."""
    pass


class SqlCanonicalStore(CanonicalStorePort):
    """Canonical project/file store backed by SQLAlchemy.

    Args:
        session_factory: sessionmaker bound to the canonical database
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    async def commit_files(self, project_id: str, records: Sequence[StagingRecord]) -> None:
        await asyncio.to_thread(self._commit_files, project_id, list(records))

    async def list_categories(self) -> List[FileCategory]:
        return await asyncio.to_thread(self._list_categories)

    def _commit_files(self, project_id: str, records: List[StagingRecord]) -> None:
        with session_scope(self._session_factory) as session:
            project = session.get(Project, project_id)
            if project is None:
                raise CanonicalStoreError(f"Project {project_id} not found")

            known_categories = {c.id for c in session.query(Category.id).all()}
            for record in records:
                if record.category is None or record.category.id not in known_categories:
                    raise CanonicalStoreError(
                        f'File "{record.original_file_name}" references an unknown category'
                    )
                session.add(ProjectFile(
                    project_id=project_id,
                    category_id=record.category.id,
                    name=record.name.strip(),
                    description=record.description.strip(),
                    status="submitted",
                    original_file_name=record.original_file_name,
                    mime_type=record.mime_type,
                    file_type=coarse_file_type(record.mime_type),
                    size_bytes=record.size_bytes,
                    source_staging_id=record.id,
                ))

            statistics = dict(project.statistics or empty_statistics())
            statistics["submitted"] = statistics.get("submitted", 0) + len(records)
            project.statistics = statistics

        logger.info(
            f"Committed {len(records)} file(s) to project {project_id}",
            extra={"project_id": project_id},
        )

    def _list_categories(self) -> List[FileCategory]:
        with session_scope(self._session_factory) as session:
            rows = session.query(Category).order_by(Category.order, Category.id).all()
            return [row.to_domain() for row in rows]

    def seed_default_categories(self, categories: Iterable[FileCategory] = DEFAULT_CATEGORIES) -> int:
        """Insert the categories that do not exist yet. Returns how many were added."""
        added = 0
        with session_scope(self._session_factory) as session:
            for category in categories:
                if session.get(Category, category.id) is None:
                    session.add(Category(
                        id=category.id,
                        name=category.name,
                        description=category.description,
                        required=category.required,
                        order=category.order,
                    ))
                    added += 1
        if added:
            logger.info(f"Seeded {added} default file categories")
        return added

    def register_project(self, project_id: str, name: str, code: str = "") -> None:
        """Create a project row if it does not exist (development and test seeding)."""
        with session_scope(self._session_factory) as session:
            if session.get(Project, project_id) is None:
                session.add(Project(
                    id=project_id,
                    name=name,
                    code=code,
                    statistics=empty_statistics(),
                ))

    def get_project_statistics(self, project_id: str) -> Optional[Dict[str, int]]:
        with session_scope(self._session_factory) as session:
            project = session.get(Project, project_id)
            return dict(project.statistics) if project else None

    def list_project_files(self, project_id: str) -> List[dict]:
        with session_scope(self._session_factory) as session:
            return [
                row.to_dict()
                for row in _project_files(session, project_id)
            ]


def _project_files(session: Session, project_id: str) -> List[ProjectFile]:
    return (
        session.query(ProjectFile)
        .filter(ProjectFile.project_id == project_id)
        .order_by(ProjectFile.uploaded_at, ProjectFile.original_file_name)
        .all()
    )
