"""Canonical Store Port - Domain interface for the permanent project file record.

Confirmed staging records leave the staging area through this port.
Adapters must implement this interface to provide the system of record for
project files and file categories.

Architecture: Hexagonal - Port interface in domain layer
"""

from abc import ABC, abstractmethod
from typing import List, Sequence

from ..models import FileCategory, StagingRecord


class CanonicalStorePort(ABC):
    """Port interface for the canonical project/file store.

    Key Design Principles:
    - ``commit_files`` is all-or-nothing: either every record becomes a
      permanent file or none does
    - Errors are raised, never returned; the confirmation transaction maps
      any exception to a CommitError and leaves staging untouched

    Example Usage:
        store = SqlCanonicalStore(session_factory)

        await store.commit_files("project-001", records)
        categories = await store.list_categories()
    """

    @abstractmethod
    async def commit_files(self, project_id: str, records: Sequence[StagingRecord]) -> None:
        """Create permanent file entities for ``records`` and update project statistics.

        Args:
            project_id: Owning project
            records: Complete, ready staging records (snapshots)

        Raises:
            Exception: Any failure; nothing must have been persisted
        """
        pass

    @abstractmethod
    async def list_categories(self) -> List[FileCategory]:
        """Return every file category ordered by display order."""
        pass
