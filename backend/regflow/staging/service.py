"""Staging service - the operations exposed on a project's staging area.

Composes the staging store, the ingestion validator, the lifecycle worker,
the query engine and the confirmation transaction. The HTTP router only
talks to this class.
"""

import logging
from collections import Counter
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..domain.staging.errors import BatchTooLarge, NoSuggestions, NotFound, UnknownCategory
from ..domain.staging.models import (
    AdmissionResult,
    BatchUpdateResult,
    CategoryRef,
    ConfirmationResult,
    FileCategory,
    StagingRecord,
    UploadCandidate,
)
from ..domain.staging.ports import CanonicalStorePort, StagingStorePort
from ..domain.staging.query import StagingQuery, apply_query
from ..domain.staging.staging_status import StagingStatus
from ..domain.staging.validation import MAX_FILE_SIZE, partition_candidates
from ..observability.metrics import staging_uploads_total
from ..workers.lifecycle_worker import LifecycleWorker
from .confirmation import confirm_staging_files

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset({"name", "description", "category_id"})


class SuggestionField(str, Enum):
    """Editable field a suggestion can be copied into."""
    NAME = "name"
    DESCRIPTION = "description"
    CATEGORY = "category"


class StagingService:
    """Operations on staging areas.

    Args:
        store: Staging record store
        worker: Lifecycle worker driving uploads and analysis
        canonical_store: Destination of confirmed files, source of categories
        max_upload_size: Largest admissible file in bytes
        max_batch_files: Largest number of files in one upload batch
    """

    def __init__(
        self,
        store: StagingStorePort,
        worker: LifecycleWorker,
        canonical_store: CanonicalStorePort,
        max_upload_size: int = MAX_FILE_SIZE,
        max_batch_files: int = 20,
    ):
        self.store = store
        self.worker = worker
        self.canonical_store = canonical_store
        self.max_upload_size = max_upload_size
        self.max_batch_files = max_batch_files

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def upload_batch(
        self,
        project_id: str,
        candidates: Sequence[UploadCandidate],
    ) -> AdmissionResult:
        """Admit a batch of uploads and start a lifecycle task per accepted file.

        Invalid files are reported in ``rejected`` without affecting the
        others.

        Raises:
            BatchTooLarge: If the batch is empty or over ``max_batch_files``
        """
        if not candidates:
            raise BatchTooLarge("No files provided. Upload at least one file.")
        if len(candidates) > self.max_batch_files:
            raise BatchTooLarge(
                f"Too many files. Maximum {self.max_batch_files} files per batch."
            )

        admitted, rejected = partition_candidates(candidates, self.max_upload_size)

        for rejection in rejected:
            staging_uploads_total.labels(outcome=rejection.reason.value.lower()).inc()
            logger.warning(
                f"Rejected upload {rejection.file_name!r}: {rejection.message}",
                extra={"project_id": project_id, "reason": rejection.reason.value},
            )

        accepted = []
        for candidate in admitted:
            record = self.store.create(project_id, candidate, status=StagingStatus.UPLOADING)
            self.worker.start(record.id)
            accepted.append(record)
            staging_uploads_total.labels(outcome="accepted").inc()

        logger.info(
            f"Upload batch complete: accepted={len(accepted)}, rejected={len(rejected)}",
            extra={"project_id": project_id},
        )
        return AdmissionResult(accepted=accepted, rejected=rejected)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, record_id: str) -> StagingRecord:
        record = self.store.get(record_id)
        if record is None:
            raise NotFound(record_id)
        return record

    def list_staging(self, project_id: str, query: Optional[StagingQuery] = None) -> List[StagingRecord]:
        return apply_query(self.store.list_by_project(project_id), query or StagingQuery())

    def project_stats(self, project_id: str) -> Dict[str, int]:
        """Count a project's staging records per status."""
        counts = Counter(record.status for record in self.store.list_by_project(project_id))
        stats = {status.value: counts.get(status, 0) for status in StagingStatus}
        stats["total"] = sum(counts.values())
        return stats

    async def list_categories(self) -> List[FileCategory]:
        return await self.canonical_store.list_categories()

    # ------------------------------------------------------------------
    # Operator edits
    # ------------------------------------------------------------------

    async def update(self, record_id: str, patch: Mapping[str, Any]) -> StagingRecord:
        """Apply an operator edit of ``name``, ``description`` and/or ``category_id``.

        ``category_id=None`` clears the category.

        Raises:
            NotFound: If the record does not exist
            UnknownCategory: If ``category_id`` is not a canonical category
            ValueError: If the patch contains other fields or a non-string name/description
        """
        fields = await self._resolve_patch(patch)

        async with self.store.locked([record_id]):
            updated = self.store.update_fields(record_id, **fields)
        if updated is None:
            raise NotFound(record_id)
        return updated

    async def batch_update(self, record_ids: Sequence[str], patch: Mapping[str, Any]) -> BatchUpdateResult:
        """Apply the same edit to several records, reporting ids that do not exist."""
        fields = await self._resolve_patch(patch)
        result = BatchUpdateResult()

        async with self.store.locked(record_ids):
            for record_id in dict.fromkeys(record_ids):
                if self.store.update_fields(record_id, **fields) is None:
                    result.not_found.append(record_id)
                else:
                    result.updated.append(record_id)
        return result

    async def apply_suggestion(self, record_id: str, field: SuggestionField) -> StagingRecord:
        """Copy one suggested value into its editable field.

        Suggestions stay on the record afterwards.

        Raises:
            NotFound: If the record does not exist
            NoSuggestions: If analysis has not produced suggestions
        """
        field = SuggestionField(field)

        async with self.store.locked([record_id]):
            record = self.store.get(record_id)
            if record is None:
                raise NotFound(record_id)
            suggestions = record.suggestions
            if suggestions is None:
                raise NoSuggestions(record_id)

            if field == SuggestionField.NAME:
                fields = {"name": suggestions.suggested_name}
            elif field == SuggestionField.DESCRIPTION:
                fields = {"description": suggestions.suggested_description}
            else:
                fields = {"category": suggestions.suggested_category}

            return self.store.update_fields(record_id, **fields)

    async def cancel(self, record_id: str) -> StagingRecord:
        return await self.worker.cancel(record_id)

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    async def delete(self, record_id: str) -> bool:
        """Delete a record and stop its lifecycle task. Missing ids are a no-op."""
        async with self.store.locked([record_id]):
            self.worker.stop(record_id)
            deleted = self.store.delete(record_id)

        if deleted:
            logger.info(f"Deleted staging record {record_id}", extra={"record_id": record_id})
        return deleted

    async def delete_many(self, record_ids: Sequence[str]) -> List[str]:
        """Delete several records. Returns the ids that existed."""
        deleted = []
        async with self.store.locked(record_ids):
            for record_id in dict.fromkeys(record_ids):
                self.worker.stop(record_id)
                if self.store.delete(record_id):
                    deleted.append(record_id)

        logger.info(f"Deleted {len(deleted)} staging record(s)")
        return deleted

    async def clear_project(self, project_id: str) -> int:
        """Remove every staging record of a project regardless of status."""
        record_ids = [record.id for record in self.store.list_by_project(project_id)]

        async with self.store.locked(record_ids):
            removed = self.store.delete_by_project(project_id)
            for record_id in removed:
                self.worker.stop(record_id)

        logger.info(
            f"Cleared staging area: removed {len(removed)} record(s)",
            extra={"project_id": project_id},
        )
        return len(removed)

    # ------------------------------------------------------------------
    # Confirmation
    # ------------------------------------------------------------------

    async def confirm(self, project_id: str, record_ids: Sequence[str]) -> ConfirmationResult:
        """Move ready, complete records into the canonical store (all or nothing).

        Raises:
            CommitError: If the canonical store fails; staging is unchanged
        """
        return await confirm_staging_files(self.store, self.canonical_store, project_id, record_ids)

    # ------------------------------------------------------------------

    async def _resolve_patch(self, patch: Mapping[str, Any]) -> Dict[str, Any]:
        unknown = set(patch) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be edited: {sorted(unknown)}")

        fields: Dict[str, Any] = {}
        for name in ("name", "description"):
            if name in patch:
                if not isinstance(patch[name], str):
                    raise ValueError(f"{name} must be a string")
                fields[name] = patch[name]
        if "category_id" in patch:
            fields["category"] = await self._resolve_category(patch["category_id"])
        return fields

    async def _resolve_category(self, category_id: Optional[str]) -> Optional[CategoryRef]:
        if category_id is None:
            return None
        for category in await self.canonical_store.list_categories():
            if category.id == category_id:
                return category.to_ref()
        raise UnknownCategory(category_id)
