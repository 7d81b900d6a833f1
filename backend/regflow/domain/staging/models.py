"""Staging domain entities.

Plain dataclasses shared by the store, the lifecycle worker, the query
engine and the confirmation transaction. Categories are owned by the
canonical store; a staging record only keeps a ``CategoryRef`` snapshot.
"""

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from .staging_status import StagingStatus


@dataclass(frozen=True)
class CategoryRef:
    """Non-owning reference to a canonical file category (id + name snapshot)."""
    id: str
    name: str


@dataclass(frozen=True)
class FileCategory:
    """File category as exposed by the canonical store."""
    id: str
    name: str
    description: str = ""
    required: bool = False
    order: int = 0

    def to_ref(self) -> CategoryRef:
        return CategoryRef(id=self.id, name=self.name)


@dataclass(frozen=True)
class Suggestion:
    """Classification suggestion computed once when analysis completes."""
    suggested_name: str
    suggested_description: str
    suggested_category: CategoryRef
    confidence: float


@dataclass(frozen=True)
class UploadCandidate:
    """Raw facts about an uploaded artifact, before admission."""
    file_name: str
    size_bytes: int
    mime_type: str


@dataclass
class StagingRecord:
    """A candidate file held in a project's staging area.

    ``id``, ``project_id``, ``original_file_name``, ``size_bytes`` and
    ``mime_type`` never change after creation. ``name``, ``description`` and
    ``category`` are operator-editable. ``status``, ``progress_percent``,
    ``error`` and ``suggestions`` are written by the lifecycle worker.
    """
    id: str
    project_id: str
    original_file_name: str
    size_bytes: int
    mime_type: str
    name: str
    created_at: datetime
    updated_at: datetime
    description: str = ""
    category: Optional[CategoryRef] = None
    status: StagingStatus = StagingStatus.UPLOADING
    progress_percent: int = 0
    error: Optional[str] = None
    suggestions: Optional[Suggestion] = None

    def snapshot(self) -> "StagingRecord":
        """Detached copy safe to hand out of a critical section."""
        return dataclasses.replace(self)


class RejectionReason(str, Enum):
    """Why an upload candidate was refused admission."""
    SIZE_EXCEEDED = "SIZE_EXCEEDED"
    UNSUPPORTED_TYPE = "UNSUPPORTED_TYPE"
    INVALID_FILE_NAME = "INVALID_FILE_NAME"


@dataclass(frozen=True)
class Rejection:
    file_name: str
    reason: RejectionReason
    message: str


@dataclass
class AdmissionResult:
    """Per-file outcome of an upload batch."""
    accepted: List[StagingRecord] = field(default_factory=list)
    rejected: List[Rejection] = field(default_factory=list)


class FailureReason(str, Enum):
    """Why a record cannot be included in a confirmation batch."""
    EMPTY_SELECTION = "EMPTY_SELECTION"
    NOT_FOUND = "NOT_FOUND"
    WRONG_PROJECT = "WRONG_PROJECT"
    NOT_READY = "NOT_READY"
    MISSING_NAME = "MISSING_NAME"
    MISSING_CATEGORY = "MISSING_CATEGORY"
    MISSING_DESCRIPTION = "MISSING_DESCRIPTION"


@dataclass(frozen=True)
class ValidationFailure:
    """One blocking reason in a confirmation request.

    ``field`` names the missing editable field for completeness failures;
    ``file_name`` is the record's original file name when the record resolved.
    """
    record_id: Optional[str]
    reason: FailureReason
    message: str
    file_name: Optional[str] = None
    field: Optional[str] = None


@dataclass
class ConfirmationResult:
    """Outcome of a confirmation transaction that reached a decision.

    Either ``committed_count`` files were moved into the canonical store and
    ``failures`` is empty, or nothing was committed and ``failures`` lists
    every blocking reason.
    """
    committed_count: int = 0
    committed_ids: List[str] = field(default_factory=list)
    failures: List[ValidationFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


@dataclass
class BatchUpdateResult:
    updated: List[str] = field(default_factory=list)
    not_found: List[str] = field(default_factory=list)
