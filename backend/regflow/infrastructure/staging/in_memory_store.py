"""In-memory implementation of the staging store port.

Records live in a dict keyed by id with a secondary per-project index.
Every record has its own ``asyncio.Lock``; ``locked()`` acquires a set of
them in sorted id order.
"""

import asyncio
import dataclasses
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Callable, Dict, Iterable, List, Optional, Set

from ...domain.staging.errors import DuplicateRecordId
from ...domain.staging.models import StagingRecord, UploadCandidate
from ...domain.staging.ports import IMMUTABLE_FIELDS, StagingStorePort
from ...domain.staging.staging_status import StagingStatus
from ...domain.staging.validation import strip_extension
from ..ids import IdGenerator, uuid_id_generator

logger = logging.getLogger(__name__)

MUTABLE_FIELDS = frozenset(
    f.name for f in dataclasses.fields(StagingRecord)
) - IMMUTABLE_FIELDS - {"updated_at"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryStagingStore(StagingStorePort):
    """Process-local staging store.

    Args:
        id_generator: Callable producing new record ids
        clock: Callable returning the current time for timestamps
    """

    def __init__(
        self,
        id_generator: Optional[IdGenerator] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._id_generator = id_generator or uuid_id_generator()
        self._clock = clock or _utcnow
        self._records: Dict[str, StagingRecord] = {}
        self._by_project: Dict[str, Set[str]] = defaultdict(set)
        self._locks: Dict[str, asyncio.Lock] = {}
        self._issued_ids: Set[str] = set()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    def create(
        self,
        project_id: str,
        candidate: UploadCandidate,
        status: StagingStatus = StagingStatus.UPLOADING,
    ) -> StagingRecord:
        record_id = self._id_generator()
        if record_id in self._issued_ids:
            raise DuplicateRecordId(record_id)
        self._issued_ids.add(record_id)

        now = self._clock()
        record = StagingRecord(
            id=record_id,
            project_id=project_id,
            original_file_name=candidate.file_name,
            size_bytes=candidate.size_bytes,
            mime_type=candidate.mime_type,
            name=strip_extension(candidate.file_name),
            description="",
            status=status,
            progress_percent=0,
            created_at=now,
            updated_at=now,
        )
        self._records[record_id] = record
        self._by_project[project_id].add(record_id)

        logger.debug(
            f"Created staging record {record_id}",
            extra={"project_id": project_id, "record_id": record_id},
        )
        return record.snapshot()

    def get(self, record_id: str) -> Optional[StagingRecord]:
        record = self._records.get(record_id)
        return record.snapshot() if record else None

    def get_many(self, record_ids: Iterable[str]) -> List[StagingRecord]:
        return [
            self._records[record_id].snapshot()
            for record_id in record_ids
            if record_id in self._records
        ]

    def list_by_project(self, project_id: str) -> List[StagingRecord]:
        return self.get_many(self._by_project.get(project_id, ()))

    def update_fields(self, record_id: str, **fields: Any) -> Optional[StagingRecord]:
        invalid = set(fields) - MUTABLE_FIELDS
        if invalid:
            raise ValueError(f"Cannot update fields: {sorted(invalid)}")

        record = self._records.get(record_id)
        if record is None:
            return None

        for name, value in fields.items():
            setattr(record, name, value)
        record.updated_at = self._clock()
        return record.snapshot()

    def delete(self, record_id: str) -> bool:
        record = self._records.pop(record_id, None)
        if record is None:
            return False

        project_ids = self._by_project.get(record.project_id)
        if project_ids is not None:
            project_ids.discard(record_id)
            if not project_ids:
                del self._by_project[record.project_id]
        self._locks.pop(record_id, None)
        return True

    def delete_by_project(self, project_id: str) -> List[str]:
        record_ids = sorted(self._by_project.get(project_id, ()))
        for record_id in record_ids:
            self.delete(record_id)
        return record_ids

    @asynccontextmanager
    async def locked(self, record_ids: Iterable[str]) -> AsyncIterator[None]:
        locks = [
            self._locks.setdefault(record_id, asyncio.Lock())
            for record_id in sorted(set(record_ids))
            if record_id in self._records
        ]
        acquired: List[asyncio.Lock] = []
        try:
            for lock in locks:
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
