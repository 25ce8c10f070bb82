"""Tests for the search sync startup orchestrator."""

import asyncio

import pytest

from cms_backend.services.search.bulk_sync import BulkSynchronizer
from cms_backend.services.search.errors import SearchIndexError, SearchIndexUnavailable
from cms_backend.services.search.orchestrator import SyncOrchestrator, SyncState, needs_full_sync
from cms_backend.services.search.scheduler import CronScheduler
from cms_backend.services.search.schema import CollectionSchemaManager, content_schema
from cms_backend.services.search.variants import ContentVariant

from .conftest import FakeContentRepository, FakeIndexClient, blog_record, report_record


def _build(client=None, repository=None, **kwargs) -> SyncOrchestrator:
    client = client or FakeIndexClient()
    repository = repository or FakeContentRepository()
    return SyncOrchestrator(
        client,
        repository,
        CollectionSchemaManager(client, content_schema("test_content")),
        BulkSynchronizer(client, repository),
        startup_delay=kwargs.pop("startup_delay", 0),
        **kwargs,
    )


def _repository_with(reports: int = 0, blogs: int = 0) -> FakeContentRepository:
    repository = FakeContentRepository()
    for record_id in range(1, reports + 1):
        repository.add(ContentVariant.REPORT, report_record(record_id))
    for record_id in range(1, blogs + 1):
        repository.add(ContentVariant.BLOG, blog_record(record_id))
    return repository


@pytest.mark.parametrize(
    "index_count, database_count, expected",
    [
        (0, 0, True),
        (0, 100, True),
        (89, 100, True),
        (90, 100, False),
        (100, 100, False),
        (120, 100, False),
        (5, 0, False),
    ],
)
def test_needs_full_sync(index_count, database_count, expected):
    assert needs_full_sync(index_count, database_count, 0.9) is expected


class TestStart:
    @pytest.mark.asyncio
    async def test_unhealthy_engine_degrades(self):
        client = FakeIndexClient()
        client.healthy = SearchIndexUnavailable("connection refused")
        orchestrator = _build(client)

        state = await orchestrator.start()

        assert state is SyncState.DEGRADED
        assert orchestrator.is_degraded
        assert not client.collection_exists

    @pytest.mark.asyncio
    async def test_schema_failure_degrades(self):
        client = FakeIndexClient()
        client.ensure_error = SearchIndexError("bad settings", status_code=400)
        orchestrator = _build(client)

        assert await orchestrator.start() is SyncState.DEGRADED

    @pytest.mark.asyncio
    async def test_empty_index_triggers_startup_sync(self):
        client = FakeIndexClient()
        orchestrator = _build(client, _repository_with(reports=2, blogs=1))

        assert await orchestrator.start() is SyncState.SCHEMA_READY
        await orchestrator._decision_task

        assert orchestrator.state is SyncState.UP_TO_DATE
        assert len(client.documents) == 3
        assert orchestrator.last_report.total_synced == 3
        await orchestrator.stop()

    @pytest.mark.asyncio
    async def test_start_does_not_wait_for_sync(self):
        client = FakeIndexClient()
        orchestrator = _build(client, _repository_with(reports=1), startup_delay=30)

        await asyncio.wait_for(orchestrator.start(), timeout=1)

        assert client.documents == {}
        await orchestrator.stop()
        assert client.documents == {}

    @pytest.mark.asyncio
    async def test_daily_sync_is_armed(self):
        scheduler = CronScheduler()
        orchestrator = _build(scheduler=scheduler, daily_cron="0 3 * * *", startup_delay=30)

        await orchestrator.start()

        assert scheduler.jobs == ["search_full_sync"]
        await orchestrator.stop()
        assert scheduler.jobs == []

    @pytest.mark.asyncio
    async def test_degraded_start_still_arms_daily_sync(self):
        client = FakeIndexClient()
        client.healthy = SearchIndexUnavailable("connection refused")
        scheduler = CronScheduler()
        orchestrator = _build(client, scheduler=scheduler, daily_cron="0 3 * * *")

        assert await orchestrator.start() is SyncState.DEGRADED

        assert scheduler.jobs == ["search_full_sync"]
        assert orchestrator._decision_task is None
        await orchestrator.stop()

    @pytest.mark.asyncio
    async def test_schema_failure_still_arms_daily_sync(self):
        client = FakeIndexClient()
        client.ensure_error = SearchIndexUnavailable("connection reset")
        scheduler = CronScheduler()
        orchestrator = _build(client, scheduler=scheduler, daily_cron="0 3 * * *")

        await orchestrator.start()

        assert scheduler.jobs == ["search_full_sync"]
        await orchestrator.stop()


class TestScheduledSync:
    @pytest.mark.asyncio
    async def test_recovers_from_degraded_start(self):
        client = FakeIndexClient()
        client.healthy = SearchIndexUnavailable("connection refused")
        orchestrator = _build(client, _repository_with(reports=2))
        await orchestrator.start()
        client.healthy = True

        report = await orchestrator.run_scheduled_sync()

        assert client.collection_exists
        assert report.total_synced == 2
        assert orchestrator.state is SyncState.UP_TO_DATE
        assert not orchestrator.is_degraded

    @pytest.mark.asyncio
    async def test_engine_still_down_skips_run(self):
        client = FakeIndexClient()
        client.ensure_error = SearchIndexUnavailable("connection refused")
        orchestrator = _build(client, _repository_with(reports=1))

        assert await orchestrator.run_scheduled_sync() is None
        assert orchestrator.state is SyncState.DEGRADED
        assert client.import_calls == []


class TestDecision:
    @pytest.mark.asyncio
    async def test_up_to_date_index_skips_sync(self):
        client = FakeIndexClient()
        repository = _repository_with(reports=10)
        for n in range(9):
            client.documents[f"{n}_report_en"] = {"id": f"{n}_report_en"}
        orchestrator = _build(client, repository)

        assert await orchestrator.decide_and_sync() is None
        assert orchestrator.state is SyncState.UP_TO_DATE
        assert client.import_calls == []

    @pytest.mark.asyncio
    async def test_index_below_threshold_resyncs(self):
        client = FakeIndexClient()
        repository = _repository_with(reports=10)
        for n in range(8):
            client.documents[f"{n}_report_en"] = {"id": f"{n}_report_en"}
        orchestrator = _build(client, repository)

        report = await orchestrator.decide_and_sync()

        assert report.total_synced == 10
        assert orchestrator.state is SyncState.UP_TO_DATE

    @pytest.mark.asyncio
    async def test_only_published_rows_count(self):
        repository = _repository_with(reports=1)
        repository.add(ContentVariant.REPORT, report_record(2, publishedAt=None))
        orchestrator = _build(repository=repository)

        assert await orchestrator.database_count() == 1

    @pytest.mark.asyncio
    async def test_startup_sync_error_is_logged(self, caplog):
        client = FakeIndexClient()

        async def broken_count():
            raise SearchIndexUnavailable("stats timed out")

        client.count_documents = broken_count
        orchestrator = _build(client)

        await orchestrator.start()
        await orchestrator._decision_task

        assert "Startup search sync failed" in caplog.text
        await orchestrator.stop()


@pytest.mark.asyncio
async def test_scheduled_sync_skips_while_running():
    client = FakeIndexClient()
    orchestrator = _build(client, _repository_with(reports=1))
    release = asyncio.Event()
    original = orchestrator.synchronizer.sync_all

    async def slow_sync_all():
        await release.wait()
        return await original()

    orchestrator.synchronizer.sync_all = slow_sync_all

    first = asyncio.create_task(orchestrator.run_scheduled_sync())
    await asyncio.sleep(0)
    assert await orchestrator.run_scheduled_sync() is None

    release.set()
    report = await first
    assert report.total_synced == 1
