"""Staging domain errors.

Per-file admission problems and confirmation blocking reasons are reported
as data (``Rejection`` / ``ValidationFailure``); the exceptions here cover
single-target operations and failures that abort a whole call.
"""

from typing import Optional


class StagingError(Exception):
    """Base class for staging domain errors."""
    pass


class NotFound(StagingError):
    """Raised when an operation targets a staging record that does not exist."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Staging record {record_id} not found")


class NoSuggestions(StagingError):
    """Raised when applying a suggestion to a record that has none."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Staging record {record_id} has no suggestions")


class UnknownCategory(StagingError):
    """Raised when a patch references a category the canonical store does not know."""

    def __init__(self, category_id: str):
        self.category_id = category_id
        super().__init__(f"Unknown file category: {category_id}")


class BatchTooLarge(StagingError):
    """Raised when an upload batch is empty or exceeds the configured limit."""
    pass


class DuplicateRecordId(StagingError):
    """Raised when the id generator hands out an id that was already issued."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Staging record id {record_id} was already issued")


class CommitError(StagingError):
    """Raised when the canonical store rejects a confirmation batch.

    Staging state is unchanged when this is raised.
    """

    def __init__(self, project_id: str, message: str, cause: Optional[BaseException] = None):
        self.project_id = project_id
        self.cause = cause
        super().__init__(message)


class UploadInterrupted(StagingError):
    """Raised by a progress source when the byte stream breaks mid-upload."""
    pass


class AnalysisFailure(StagingError):
    """Raised by an analyzer that cannot classify a file."""
    pass
