"""Pytest fixtures for staging pipeline tests.

Provides reusable test fixtures for:
- Virtual-time scheduler and sequential id generator (deterministic ordering)
- In-memory staging store, lifecycle worker and staging service
- Recording fake of the canonical store

Usage:
    @pytest.mark.asyncio
    async def test_upload(service, scheduler):
        result = await service.upload_batch("project-001", [candidate("a.pdf")])
        await scheduler.run_until_idle()
"""

import pytest

from regflow.config import Settings
from regflow.infrastructure.ids import SequentialIdGenerator
from regflow.infrastructure.scheduling import VirtualScheduler
from regflow.infrastructure.staging.in_memory_store import InMemoryStagingStore
from regflow.staging.service import StagingService
from regflow.workers.lifecycle_worker import LifecycleWorker

from .fixtures.staging import TIMINGS, FakeCanonicalStore, FixedProgressSource


@pytest.fixture
def scheduler():
    return VirtualScheduler()


@pytest.fixture
def id_generator():
    return SequentialIdGenerator()


@pytest.fixture
def store(scheduler, id_generator):
    return InMemoryStagingStore(id_generator=id_generator, clock=scheduler.now)


@pytest.fixture
def progress_source():
    return FixedProgressSource(step=25)


@pytest.fixture
def worker(store, scheduler, progress_source):
    return LifecycleWorker(store, scheduler, timings=TIMINGS, progress_source=progress_source)


@pytest.fixture
def canonical_store():
    return FakeCanonicalStore()


@pytest.fixture
def service(store, worker, canonical_store):
    return StagingService(store, worker, canonical_store, max_batch_files=10)


@pytest.fixture
def test_settings():
    return Settings(
        DATABASE_URL="sqlite://",
        LOG_JSON=False,
        MAX_BATCH_FILES=10,
        PROGRESS_SEED=7,
    )
