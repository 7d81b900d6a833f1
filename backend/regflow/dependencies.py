"""Wiring of the staging pipeline.

Builds the staging service from settings and the canonical store's session
factory. Tests pass their own scheduler, id generator and canonical store.
"""

from typing import Optional

from sqlalchemy.orm import sessionmaker

from .config import Settings
from .domain.staging.ports import CanonicalStorePort
from .infrastructure.canonical.sql_canonical_store import SqlCanonicalStore
from .infrastructure.ids import IdGenerator
from .infrastructure.scheduling import AsyncioScheduler, Scheduler
from .infrastructure.staging.in_memory_store import InMemoryStagingStore
from .staging.service import StagingService
from .workers.lifecycle_worker import LifecycleTimings, LifecycleWorker, RandomProgressSource


def build_staging_service(
    settings: Settings,
    session_factory: Optional[sessionmaker] = None,
    canonical_store: Optional[CanonicalStorePort] = None,
    scheduler: Optional[Scheduler] = None,
    id_generator: Optional[IdGenerator] = None,
) -> StagingService:
    """Assemble store, lifecycle worker and canonical store into a StagingService.

    Either ``canonical_store`` or ``session_factory`` must be given.
    """
    if canonical_store is None:
        if session_factory is None:
            raise ValueError("session_factory is required when no canonical_store is given")
        canonical_store = SqlCanonicalStore(session_factory)

    scheduler = scheduler or AsyncioScheduler()
    store = InMemoryStagingStore(id_generator=id_generator, clock=scheduler.now)
    worker = LifecycleWorker(
        store,
        scheduler,
        timings=LifecycleTimings.from_settings(settings),
        progress_source=RandomProgressSource(settings.MAX_PROGRESS_STEP, settings.PROGRESS_SEED),
    )
    return StagingService(
        store,
        worker,
        canonical_store,
        max_upload_size=settings.MAX_UPLOAD_SIZE_BYTES,
        max_batch_files=settings.MAX_BATCH_FILES,
    )
