"""Completeness and resolution checks gating the confirmation of staged files.

A staged file may only move into the canonical store when it exists in the
requested project, has finished analysis, and carries a name, a category
and a description.
"""

from typing import Dict, List, Sequence

from .models import FailureReason, StagingRecord, ValidationFailure
from .staging_status import StagingStatus


def resolve_selection(
    project_id: str,
    record_ids: Sequence[str],
    records: Dict[str, StagingRecord],
) -> List[ValidationFailure]:
    """Check that every requested id is an existing, ready record of the project.

    Args:
        project_id: Project the confirmation is scoped to
        record_ids: Requested ids (already de-duplicated)
        records: Current records keyed by id (missing ids are absent)

    Returns:
        One ValidationFailure per id that failed resolution
    """
    if not record_ids:
        return [ValidationFailure(
            record_id=None,
            reason=FailureReason.EMPTY_SELECTION,
            message="No staging files selected for confirmation",
        )]

    failures = []
    for record_id in record_ids:
        record = records.get(record_id)
        if record is None:
            failures.append(ValidationFailure(
                record_id=record_id,
                reason=FailureReason.NOT_FOUND,
                message=f"Staging file {record_id} not found",
            ))
        elif record.project_id != project_id:
            failures.append(ValidationFailure(
                record_id=record_id,
                reason=FailureReason.WRONG_PROJECT,
                message=f"Staging file {record_id} does not belong to project {project_id}",
            ))
        elif record.status != StagingStatus.READY:
            failures.append(ValidationFailure(
                record_id=record_id,
                reason=FailureReason.NOT_READY,
                message=(
                    f'File "{record.original_file_name}" is not ready '
                    f"(status: {record.status.value})"
                ),
                file_name=record.original_file_name,
            ))
    return failures


def _missing(record: StagingRecord, field: str, reason: FailureReason) -> ValidationFailure:
    return ValidationFailure(
        record_id=record.id,
        reason=reason,
        message=f'File "{record.original_file_name}" is missing a {field}',
        file_name=record.original_file_name,
        field=field,
    )


def check_completeness(record: StagingRecord) -> List[ValidationFailure]:
    """Return one failure per required editable field the record lacks."""
    failures = []

    if not record.name.strip():
        failures.append(_missing(record, "name", FailureReason.MISSING_NAME))

    if record.category is None:
        failures.append(_missing(record, "category", FailureReason.MISSING_CATEGORY))

    if not record.description.strip():
        failures.append(_missing(record, "description", FailureReason.MISSING_DESCRIPTION))

    return failures


def run_ready_check(records: Sequence[StagingRecord]) -> List[ValidationFailure]:
    """Completeness check over a resolved confirmation batch."""
    failures: List[ValidationFailure] = []
    for record in records:
        failures.extend(check_completeness(record))
    return failures


def dedupe_ids(record_ids: Sequence[str]) -> List[str]:
    """Collapse repeated ids, keeping the first occurrence."""
    seen = set()
    unique: List[str] = []
    for record_id in record_ids:
        if record_id not in seen:
            seen.add(record_id)
            unique.append(record_id)
    return unique
