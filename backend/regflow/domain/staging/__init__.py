"""Staging domain module - staging record lifecycle, ingestion validation,
classification suggestions, query engine and confirmation checks
"""

from .errors import (
    AnalysisFailure,
    BatchTooLarge,
    CommitError,
    DuplicateRecordId,
    NoSuggestions,
    NotFound,
    StagingError,
    UnknownCategory,
    UploadInterrupted,
)
from .models import (
    AdmissionResult,
    BatchUpdateResult,
    CategoryRef,
    ConfirmationResult,
    FailureReason,
    FileCategory,
    Rejection,
    RejectionReason,
    StagingRecord,
    Suggestion,
    UploadCandidate,
    ValidationFailure,
)
from .query import StagingQuery, apply_query
from .ready_check import check_completeness, resolve_selection, run_ready_check
from .staging_status import (
    ALLOWED_TRANSITIONS,
    StagingStatus,
    StateTransitionError,
    can_transition,
    is_terminal,
    validate_transition,
)
from .suggestions import DEFAULT_CATEGORIES, suggest
from .validation import MAX_FILE_SIZE, SUPPORTED_MIME_TYPES, admit, partition_candidates

__all__ = [
    "AnalysisFailure",
    "BatchTooLarge",
    "CommitError",
    "DuplicateRecordId",
    "NoSuggestions",
    "NotFound",
    "StagingError",
    "UnknownCategory",
    "UploadInterrupted",
    "AdmissionResult",
    "BatchUpdateResult",
    "CategoryRef",
    "ConfirmationResult",
    "FailureReason",
    "FileCategory",
    "Rejection",
    "RejectionReason",
    "StagingRecord",
    "Suggestion",
    "UploadCandidate",
    "ValidationFailure",
    "StagingQuery",
    "apply_query",
    "check_completeness",
    "resolve_selection",
    "run_ready_check",
    "ALLOWED_TRANSITIONS",
    "StagingStatus",
    "StateTransitionError",
    "can_transition",
    "is_terminal",
    "validate_transition",
    "DEFAULT_CATEGORIES",
    "suggest",
    "MAX_FILE_SIZE",
    "SUPPORTED_MIME_TYPES",
    "admit",
    "partition_candidates",
]
