"""Confirmation transaction for staged files.

Moves a selected batch of ready staging records into the canonical store
with no partial success:

1. Resolve: every id exists, belongs to the project and is ``ready``
2. Completeness: every record has a name, a category and a description
3. Commit: hand the whole batch to the canonical store in one call, then
   remove every committed record from staging

The locks of the requested ids are held from step 1 through step 3, so a
concurrent update or delete cannot slip between validation and commit.
"""

import logging
from typing import Sequence

from ..domain.staging.errors import CommitError
from ..domain.staging.models import ConfirmationResult, ValidationFailure
from ..domain.staging.ports import CanonicalStorePort, StagingStorePort
from ..domain.staging.ready_check import dedupe_ids, resolve_selection, run_ready_check
from ..observability.metrics import staging_confirmations_total, staging_confirmed_files_total

logger = logging.getLogger(__name__)


def _rejected(project_id: str, failures: Sequence[ValidationFailure]) -> ConfirmationResult:
    staging_confirmations_total.labels(outcome="validation_failed").inc()
    logger.info(
        f"Confirmation rejected with {len(failures)} failure(s): "
        f"{', '.join(sorted({f.reason.value for f in failures}))}",
        extra={"project_id": project_id},
    )
    return ConfirmationResult(failures=list(failures))


async def confirm_staging_files(
    store: StagingStorePort,
    canonical_store: CanonicalStorePort,
    project_id: str,
    record_ids: Sequence[str],
) -> ConfirmationResult:
    """Validate and commit a batch of staging records.

    Args:
        store: Staging store holding the records
        canonical_store: Destination of confirmed files
        project_id: Project the confirmation is scoped to
        record_ids: Selected staging record ids (duplicates are collapsed)

    Returns:
        ConfirmationResult with either ``committed_count`` or ``failures``

    Raises:
        CommitError: If the canonical store fails; staging is left unchanged

    Example:
        result = await confirm_staging_files(store, canonical, "project-001", ["stg-1"])
        if not result.ok:
            for failure in result.failures:
                print(failure.message)
    """
    ids = dedupe_ids(record_ids)

    async with store.locked(ids):
        current = {record.id: record for record in store.get_many(ids)}

        failures = resolve_selection(project_id, ids, current)
        if failures:
            return _rejected(project_id, failures)

        resolved = [current[record_id] for record_id in ids]
        failures = run_ready_check(resolved)
        if failures:
            return _rejected(project_id, failures)

        try:
            await canonical_store.commit_files(project_id, resolved)
        except Exception as e:
            staging_confirmations_total.labels(outcome="commit_error").inc()
            logger.error(
                f"Canonical store rejected {len(resolved)} file(s): {e}",
                exc_info=True,
                extra={"project_id": project_id},
            )
            raise CommitError(
                project_id,
                f"Failed to commit files to project {project_id}: {e}",
                cause=e,
            ) from e

        for record_id in ids:
            store.delete(record_id)

    staging_confirmations_total.labels(outcome="committed").inc()
    staging_confirmed_files_total.inc(len(ids))
    logger.info(
        f"Confirmed {len(ids)} staging file(s) into project {project_id}",
        extra={"project_id": project_id},
    )
    return ConfirmationResult(committed_count=len(ids), committed_ids=ids)
