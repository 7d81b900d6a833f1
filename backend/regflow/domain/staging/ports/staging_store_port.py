"""Staging Store Port - Domain interface for the staging record collection.

The store is the only shared mutable resource of the staging pipeline.
Structural operations (create, get, update, delete) are synchronous and
complete without suspending; read-modify-write sequences that span an
``await`` must run inside ``locked()`` for the ids they touch.

Architecture: Hexagonal - Port interface in domain layer
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncContextManager, Iterable, List, Optional

from ..models import StagingRecord, UploadCandidate
from ..staging_status import StagingStatus

IMMUTABLE_FIELDS = frozenset({
    "id",
    "project_id",
    "original_file_name",
    "size_bytes",
    "mime_type",
    "created_at",
})


class StagingStorePort(ABC):
    """Port interface for staging record persistence.

    Key Design Principles:
    - Records are handed out as detached snapshots; mutation goes through
      ``update_fields`` only
    - Ids are issued once and never reused, even after deletion
    - Deleting an absent id is a no-op
    - Writes to an absent id are dropped (never resurrect a deleted record)

    Example Usage:
        record = store.create("project-001", candidate)

        async with store.locked([record.id]):
            current = store.get(record.id)
            if current is not None:
                store.update_fields(record.id, progress_percent=40)
    """

    @abstractmethod
    def create(
        self,
        project_id: str,
        candidate: UploadCandidate,
        status: StagingStatus = StagingStatus.UPLOADING,
    ) -> StagingRecord:
        """Create a record for an admitted candidate.

        ``name`` starts as the file name without extension, ``description``
        as the empty string, progress at 0.

        Raises:
            DuplicateRecordId: If the id generator repeats an issued id
        """
        pass

    @abstractmethod
    def get(self, record_id: str) -> Optional[StagingRecord]:
        """Snapshot of a record, or None if it does not exist."""
        pass

    @abstractmethod
    def get_many(self, record_ids: Iterable[str]) -> List[StagingRecord]:
        """Snapshots of the existing records among ``record_ids``."""
        pass

    @abstractmethod
    def list_by_project(self, project_id: str) -> List[StagingRecord]:
        """Snapshots of every record owned by a project (unordered)."""
        pass

    @abstractmethod
    def update_fields(self, record_id: str, **fields: Any) -> Optional[StagingRecord]:
        """Merge a partial patch into a record and refresh ``updated_at``.

        Returns:
            Snapshot after the update, or None if the record does not exist

        Raises:
            ValueError: If the patch touches an immutable or unknown field
        """
        pass

    @abstractmethod
    def delete(self, record_id: str) -> bool:
        """Remove a record. Returns False (no error) if it did not exist."""
        pass

    @abstractmethod
    def delete_by_project(self, project_id: str) -> List[str]:
        """Remove every record of a project regardless of status.

        Returns:
            Ids that were removed
        """
        pass

    @abstractmethod
    def locked(self, record_ids: Iterable[str]) -> AsyncContextManager[None]:
        """Hold the exclusive locks of ``record_ids`` for the duration of the block.

        Locks are acquired in sorted id order so that overlapping callers
        cannot deadlock.
        """
        pass
