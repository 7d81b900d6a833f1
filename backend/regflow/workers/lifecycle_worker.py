"""Lifecycle worker for staging records.

Each admitted record gets one background task that advances it through

    uploading → completed → analyzing → ready

or stops it at ``failed``. Tasks run independently of each other; every
write happens under the record's store lock, and a write aimed at a record
that no longer exists (deleted, cleared, confirmed) ends the task instead of
recreating the record.

Task Pattern:
=============

    worker = LifecycleWorker(store, scheduler)
    record = store.create(project_id, candidate)
    worker.start(record.id)      # returns immediately

    ...

    worker.stop(record.id)       # on delete/clear
    await worker.shutdown()      # on application shutdown
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ..config import Settings
from ..domain.staging.errors import NotFound, UploadInterrupted
from ..domain.staging.models import StagingRecord, Suggestion
from ..domain.staging.ports import StagingStorePort
from ..domain.staging.staging_status import (
    StagingStatus,
    is_terminal,
    validate_transition,
)
from ..domain.staging.suggestions import suggest
from ..infrastructure.scheduling import Scheduler
from ..observability.metrics import (
    staging_lifecycle_terminal_total,
    suggestion_confidence_histogram,
)

logger = logging.getLogger(__name__)

Analyzer = Callable[[str, str], Suggestion]


@dataclass(frozen=True)
class LifecycleTimings:
    """Simulated delays between lifecycle stages, in seconds."""
    tick_seconds: float = 0.2
    handoff_seconds: float = 0.5
    analysis_seconds: float = 2.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "LifecycleTimings":
        return cls(
            tick_seconds=settings.UPLOAD_TICK_SECONDS,
            handoff_seconds=settings.ANALYSIS_HANDOFF_SECONDS,
            analysis_seconds=settings.ANALYSIS_SECONDS,
        )


class RandomProgressSource:
    """Progress increments drawn uniformly from ``[1, max_step]``.

    Raise ``UploadInterrupted`` from ``next_increment`` in a custom source
    to simulate a broken upload.
    """

    def __init__(self, max_step: int = 20, seed: Optional[int] = None):
        if max_step < 1:
            raise ValueError("max_step must be at least 1")
        self.max_step = max_step
        self._random = random.Random(seed)

    def next_increment(self, record_id: str) -> int:
        return self._random.randint(1, self.max_step)


class LifecycleWorker:
    """Owns one cancellable background task per in-flight staging record.

    Args:
        store: Staging store the tasks write to
        scheduler: Source of sleeping, spawning and time
        timings: Stage delays
        progress_source: Object with ``next_increment(record_id) -> int``
        analyzer: Suggestion function called exactly once per record
    """

    def __init__(
        self,
        store: StagingStorePort,
        scheduler: Scheduler,
        timings: Optional[LifecycleTimings] = None,
        progress_source: Optional[RandomProgressSource] = None,
        analyzer: Analyzer = suggest,
    ):
        self._store = store
        self._scheduler = scheduler
        self._timings = timings or LifecycleTimings()
        self._progress_source = progress_source or RandomProgressSource()
        self._analyzer = analyzer
        self._tasks: Dict[str, asyncio.Task] = {}

    def start(self, record_id: str) -> asyncio.Task:
        """Spawn the lifecycle task for a record (no-op if already running)."""
        task = self._tasks.get(record_id)
        if task is not None and not task.done():
            return task

        task = self._scheduler.spawn(self._run(record_id), name=f"staging-lifecycle-{record_id}")
        self._tasks[record_id] = task
        task.add_done_callback(lambda t, rid=record_id: self._forget(rid, t))
        return task

    def stop(self, record_id: str) -> bool:
        """Cancel a record's task. Returns True if a running task was cancelled."""
        task = self._tasks.pop(record_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def is_running(self, record_id: str) -> bool:
        task = self._tasks.get(record_id)
        return task is not None and not task.done()

    @property
    def running_ids(self) -> List[str]:
        return [rid for rid, task in self._tasks.items() if not task.done()]

    async def shutdown(self) -> None:
        """Cancel every in-flight task and wait for them to unwind."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Lifecycle worker stopped {len(tasks)} task(s)")

    async def cancel(self, record_id: str) -> StagingRecord:
        """Operator cancel: move a pending/uploading record to ``cancelled``.

        Raises:
            NotFound: If the record does not exist
            StateTransitionError: If the record is past the upload stage
        """
        async with self._store.locked([record_id]):
            record = self._store.get(record_id)
            if record is None:
                raise NotFound(record_id)
            validate_transition(record.status, StagingStatus.CANCELLED)
            self.stop(record_id)
            updated = self._store.update_fields(record_id, status=StagingStatus.CANCELLED)

        staging_lifecycle_terminal_total.labels(status=StagingStatus.CANCELLED.value).inc()
        logger.info(
            f"Staging record {record_id} cancelled",
            extra={"project_id": record.project_id, "record_id": record_id},
        )
        return updated

    def _forget(self, record_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(record_id) is task:
            del self._tasks[record_id]
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                f"Lifecycle task for {record_id} crashed",
                exc_info=task.exception(),
                extra={"record_id": record_id},
            )

    async def _run(self, record_id: str) -> None:
        record = self._store.get(record_id)
        if record is None:
            return

        if record.status == StagingStatus.PENDING:
            if await self._transition(record_id, StagingStatus.UPLOADING) is None:
                return

        if not await self._receive_upload(record_id):
            return

        await self._scheduler.sleep(self._timings.handoff_seconds)
        if await self._transition(record_id, StagingStatus.ANALYZING) is None:
            return

        await self._scheduler.sleep(self._timings.analysis_seconds)
        await self._analyze(record_id)

    async def _receive_upload(self, record_id: str) -> bool:
        """Tick progress until 100. Returns True once the record is ``completed``."""
        while True:
            await self._scheduler.sleep(self._timings.tick_seconds)

            try:
                increment = self._progress_source.next_increment(record_id)
            except UploadInterrupted as e:
                await self._fail(record_id, f"Upload interrupted: {e}", progress_percent=0)
                return False

            async with self._store.locked([record_id]):
                record = self._store.get(record_id)
                if record is None or record.status != StagingStatus.UPLOADING:
                    return False

                progress = min(100, record.progress_percent + max(increment, 0))
                if progress < 100:
                    self._store.update_fields(record_id, progress_percent=progress)
                    continue

                validate_transition(record.status, StagingStatus.COMPLETED)
                self._store.update_fields(
                    record_id,
                    progress_percent=100,
                    status=StagingStatus.COMPLETED,
                )
                logger.debug(
                    f"Upload of staging record {record_id} completed",
                    extra={"project_id": record.project_id, "record_id": record_id},
                )
                return True

    async def _analyze(self, record_id: str) -> None:
        record = self._store.get(record_id)
        if record is None or record.status != StagingStatus.ANALYZING:
            return

        try:
            suggestion = self._analyzer(record.original_file_name, record.mime_type)
        except Exception as e:
            logger.warning(
                f"Analysis of staging record {record_id} failed: {e}",
                exc_info=True,
                extra={"project_id": record.project_id, "record_id": record_id},
            )
            await self._fail(record_id, f"Analysis failed: {e}")
            return

        updated = await self._transition(record_id, StagingStatus.READY, suggestions=suggestion)
        if updated is None:
            return

        staging_lifecycle_terminal_total.labels(status=StagingStatus.READY.value).inc()
        suggestion_confidence_histogram.observe(suggestion.confidence)
        logger.info(
            f"Staging record {record_id} ready: suggested category "
            f"{suggestion.suggested_category.name} ({suggestion.confidence:.2f})",
            extra={"project_id": updated.project_id, "record_id": record_id, "status": "ready"},
        )

    async def _fail(self, record_id: str, error: str, **fields) -> None:
        updated = await self._transition(record_id, StagingStatus.FAILED, error=error, **fields)
        if updated is None:
            return

        staging_lifecycle_terminal_total.labels(status=StagingStatus.FAILED.value).inc()
        logger.warning(
            f"Staging record {record_id} failed: {error}",
            extra={"project_id": updated.project_id, "record_id": record_id, "status": "failed"},
        )

    async def _transition(
        self,
        record_id: str,
        new_status: StagingStatus,
        **fields,
    ) -> Optional[StagingRecord]:
        """Apply a lifecycle transition under the record lock.

        Returns None, without writing, when the record is gone or already
        terminal.
        """
        async with self._store.locked([record_id]):
            record = self._store.get(record_id)
            if record is None or is_terminal(record.status):
                logger.debug(
                    f"Dropped {new_status.value} transition for staging record {record_id}",
                    extra={"record_id": record_id},
                )
                return None
            validate_transition(record.status, new_status)
            return self._store.update_fields(record_id, status=new_status, **fields)
