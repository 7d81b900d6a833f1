"""Unit tests for LifecycleWorker

Timeline with a fixed step of 25 and the test timings (tick 0.2s,
handoff 0.5s, analysis 2.0s):

    0.2s  progress 25
    0.8s  progress 100, completed
    1.3s  analyzing
    3.3s  ready
"""

import pytest

from regflow.domain.staging import AnalysisFailure, NotFound, StagingStatus, StateTransitionError, suggest
from regflow.workers.lifecycle_worker import LifecycleWorker, RandomProgressSource

from ..fixtures.staging import PROJECT_ID, TIMINGS, FixedProgressSource, candidate, seed_record


def start_upload(store, worker, file_name="检测报告_2024_001.pdf"):
    record = store.create(PROJECT_ID, candidate(file_name))
    worker.start(record.id)
    return record


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_full_lifecycle_timeline(self, store, worker, scheduler):
        record = start_upload(store, worker)

        await scheduler.advance(0.2)
        current = store.get(record.id)
        assert current.status == StagingStatus.UPLOADING
        assert current.progress_percent == 25

        await scheduler.advance(0.6)
        current = store.get(record.id)
        assert current.status == StagingStatus.COMPLETED
        assert current.progress_percent == 100

        await scheduler.advance(0.5)
        assert store.get(record.id).status == StagingStatus.ANALYZING

        await scheduler.advance(1.9)
        assert store.get(record.id).status == StagingStatus.ANALYZING
        assert store.get(record.id).suggestions is None

        await scheduler.advance(0.1)
        current = store.get(record.id)
        assert current.status == StagingStatus.READY
        assert current.suggestions.suggested_category.id == "test-report"
        assert current.suggestions.confidence == 0.85
        assert not worker.is_running(record.id)

    @pytest.mark.asyncio
    async def test_suggestions_are_not_applied(self, store, worker, scheduler):
        record = start_upload(store, worker)
        await scheduler.run_until_idle()

        current = store.get(record.id)
        assert current.name == "检测报告_2024_001"
        assert current.description == ""
        assert current.category is None

    @pytest.mark.asyncio
    async def test_progress_is_monotonic_and_capped(self, store, scheduler):
        worker = LifecycleWorker(
            store, scheduler, timings=TIMINGS, progress_source=FixedProgressSource(step=30),
        )
        record = start_upload(store, worker)

        seen = []
        for _ in range(4):
            await scheduler.advance(0.2)
            seen.append(store.get(record.id).progress_percent)

        assert seen == [30, 60, 90, 100]
        assert store.get(record.id).status == StagingStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_records_progress_independently(self, store, worker, scheduler):
        first = start_upload(store, worker, "a.pdf")
        await scheduler.advance(0.4)
        second = start_upload(store, worker, "b.pdf")
        await scheduler.advance(0.4)

        assert store.get(first.id).status == StagingStatus.COMPLETED
        assert store.get(second.id).progress_percent == 50

    @pytest.mark.asyncio
    async def test_pending_record_moves_to_uploading(self, store, worker, scheduler):
        record = store.create(PROJECT_ID, candidate("a.pdf"), status=StagingStatus.PENDING)
        worker.start(record.id)

        await scheduler.settle()

        assert store.get(record.id).status == StagingStatus.UPLOADING


class TestFailures:
    @pytest.mark.asyncio
    async def test_interrupted_upload_fails_and_resets_progress(self, store, scheduler):
        worker = LifecycleWorker(
            store, scheduler, timings=TIMINGS,
            progress_source=FixedProgressSource(step=25, interrupt_after=2),
        )
        record = start_upload(store, worker)

        await scheduler.advance(0.4)
        assert store.get(record.id).progress_percent == 50

        await scheduler.advance(0.2)
        current = store.get(record.id)
        assert current.status == StagingStatus.FAILED
        assert current.progress_percent == 0
        assert "interrupted" in current.error
        assert current.suggestions is None

    @pytest.mark.asyncio
    async def test_analysis_failure(self, store, scheduler, progress_source):
        def broken_analyzer(file_name, mime_type):
            raise AnalysisFailure("classifier unavailable")

        worker = LifecycleWorker(
            store, scheduler, timings=TIMINGS,
            progress_source=progress_source, analyzer=broken_analyzer,
        )
        record = start_upload(store, worker)
        await scheduler.run_until_idle()

        current = store.get(record.id)
        assert current.status == StagingStatus.FAILED
        assert current.error == "Analysis failed: classifier unavailable"
        assert current.suggestions is None
        assert current.progress_percent == 100

    @pytest.mark.asyncio
    async def test_analyzer_runs_once(self, store, scheduler, progress_source):
        calls = []

        def counting_analyzer(file_name, mime_type):
            calls.append(file_name)
            return suggest(file_name, mime_type)

        worker = LifecycleWorker(
            store, scheduler, timings=TIMINGS,
            progress_source=progress_source, analyzer=counting_analyzer,
        )
        record = start_upload(store, worker, "manual.pdf")
        await scheduler.run_until_idle()
        first = store.get(record.id).suggestions
        await scheduler.advance(10)

        assert calls == ["manual.pdf"]
        assert store.get(record.id).suggestions == first


class TestRemovalAndCancel:
    @pytest.mark.asyncio
    async def test_delete_during_upload_is_not_resurrected(self, store, worker, scheduler):
        record = start_upload(store, worker)
        await scheduler.advance(0.2)

        store.delete(record.id)
        await scheduler.run_until_idle()

        assert store.get(record.id) is None
        assert len(store) == 0
        assert not worker.is_running(record.id)

    @pytest.mark.asyncio
    async def test_delete_during_analysis_is_not_resurrected(self, store, worker, scheduler):
        record = start_upload(store, worker)
        await scheduler.advance(1.5)
        assert store.get(record.id).status == StagingStatus.ANALYZING

        store.delete(record.id)
        await scheduler.run_until_idle()

        assert record.id not in store

    @pytest.mark.asyncio
    async def test_cancel_during_upload(self, store, worker, scheduler):
        record = start_upload(store, worker)
        await scheduler.advance(0.2)

        cancelled = await worker.cancel(record.id)
        await scheduler.run_until_idle()

        assert cancelled.status == StagingStatus.CANCELLED
        current = store.get(record.id)
        assert current.status == StagingStatus.CANCELLED
        assert current.progress_percent == 25
        assert not worker.is_running(record.id)

    @pytest.mark.asyncio
    async def test_cancel_ready_record_is_rejected(self, store, worker):
        record = seed_record(store, "a.pdf")

        with pytest.raises(StateTransitionError):
            await worker.cancel(record.id)
        assert store.get(record.id).status == StagingStatus.READY

    @pytest.mark.asyncio
    async def test_cancel_missing_record(self, worker):
        with pytest.raises(NotFound):
            await worker.cancel("stg-missing")

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, store, worker, scheduler):
        record = start_upload(store, worker)
        await scheduler.settle()

        assert worker.stop(record.id) is True
        assert worker.stop(record.id) is False

    @pytest.mark.asyncio
    async def test_shutdown_cancels_in_flight_tasks(self, store, worker, scheduler):
        start_upload(store, worker, "a.pdf")
        start_upload(store, worker, "b.pdf")
        await scheduler.advance(0.2)
        assert len(worker.running_ids) == 2

        await worker.shutdown()

        assert worker.running_ids == []
        assert scheduler.active_tasks == 0


class TestRandomProgressSource:
    def test_increments_within_range(self):
        source = RandomProgressSource(max_step=20, seed=42)
        values = [source.next_increment("stg-1") for _ in range(200)]
        assert min(values) >= 1
        assert max(values) <= 20

    def test_seed_is_reproducible(self):
        a = RandomProgressSource(seed=1)
        b = RandomProgressSource(seed=1)
        assert [a.next_increment("x") for _ in range(10)] == [b.next_increment("x") for _ in range(10)]

    def test_rejects_non_positive_step(self):
        with pytest.raises(ValueError):
            RandomProgressSource(max_step=0)
