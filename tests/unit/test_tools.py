# tests/unit/test_tools.py
"""
Integration tests for the tool implementations.

Runs create/run/retry/export/list/status against real stores with a scripted
remote client.
"""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from conftest import COVER_PROMPT, FakeImageClient, make_batch, make_plan

from linework.config.schema import BookConfig, LineworkConfig, QueueConfig
from linework.errors import (
    BatchNotFoundError,
    EmptyPlanError,
    ErrorKind,
    InvalidTransitionError,
    PlanningError,
    QuotaExhaustedError,
    ValidationError,
)
from linework.llm.types import BookDimensions, TemplateAnalysis
from linework.models.jobs import JobKind, JobState
from linework.models.sqlite_store import SQLiteBatchStore
from linework.models.store import InMemoryBatchStore
from linework.tools import (
    batch_status,
    create_book,
    export_batch,
    list_batches,
    resolve_job,
    retry_page,
    run_batch,
)


@pytest_asyncio.fixture
async def store(tmp_path: Path):
    """Create a temporary SQLite store for testing."""
    s = SQLiteBatchStore(str(tmp_path / "test_batches.db"))
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def config() -> LineworkConfig:
    return LineworkConfig(
        queue=QueueConfig(concurrency=2, pacing_delay=0.0, cover_delay=0.0),
        book=BookConfig(page_count=3),
    )


def _planning_client(plan=None, error=None) -> AsyncMock:
    client = AsyncMock()
    client.plan = AsyncMock(return_value=plan or make_plan(3), side_effect=error)
    return client


class TestCreateBook:
    @pytest.mark.asyncio
    async def test_persists_pending_batch(self, store, config):
        client = _planning_client()

        batch = await create_book("  space cats ", client=client, store=store, config=config)

        client.plan.assert_awaited_once_with("space cats", "4-8", 3)
        stored = await store.get(batch.batch_id)
        assert stored is not None
        assert stored.topic == "space cats"
        assert len(stored.pages) == 3
        assert stored.cover is not None
        assert stored.cover.kind is JobKind.COVER
        assert "Space Cats Adventure" in stored.cover.prompt
        assert "cat scene 1" in stored.pages[0].prompt
        assert "line art" in stored.pages[0].prompt
        assert stored.aspect_ratio == "3:4"
        assert all(j.state is JobState.PENDING for j in stored.jobs)

    @pytest.mark.asyncio
    async def test_options_override_config(self, store, config):
        client = _planning_client(make_plan(5))

        batch = await create_book(
            "dinosaurs",
            client=client,
            store=store,
            config=config,
            target_age="8-12",
            page_count=5,
            include_cover=False,
            dimensions=BookDimensions(width=1920, height=1080, unit="px"),
        )

        client.plan.assert_awaited_once_with("dinosaurs", "8-12", 5)
        assert batch.cover is None
        assert batch.aspect_ratio == "16:9"

    @pytest.mark.asyncio
    async def test_template_dimensions(self, store, config, tmp_path):
        template = tmp_path / "cover.png"
        template.write_bytes(b"\x89PNG")
        client = _planning_client()
        client.analyze_template = AsyncMock(return_value=TemplateAnalysis(width=8, height=8, has_spine=False))

        batch = await create_book(
            "space cats", client=client, store=store, config=config, template_path=str(template)
        )

        client.analyze_template.assert_awaited_once_with(b"\x89PNG", "image/png")
        assert batch.aspect_ratio == "1:1"
        assert batch.dimensions.width == 8

    @pytest.mark.asyncio
    async def test_empty_topic_rejected(self, store, config):
        client = _planning_client()

        with pytest.raises(ValidationError):
            await create_book("   ", client=client, store=store, config=config)

        client.plan.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_quota_during_planning(self, store, config):
        client = _planning_client(error=Exception("429 RESOURCE_EXHAUSTED"))

        with pytest.raises(QuotaExhaustedError):
            await create_book("space cats", client=client, store=store, config=config)

        assert await store.list_all() == []

    @pytest.mark.asyncio
    async def test_other_planning_failure_wrapped(self, store, config):
        client = _planning_client(error=RuntimeError("network down"))

        with pytest.raises(PlanningError) as exc_info:
            await create_book("space cats", client=client, store=store, config=config)

        assert exc_info.value.kind is ErrorKind.FATAL
        assert not exc_info.value.is_quota
        assert await store.list_all() == []

    @pytest.mark.asyncio
    async def test_empty_plan_propagates(self, store, config):
        client = _planning_client(error=EmptyPlanError("no pages"))

        with pytest.raises(EmptyPlanError):
            await create_book("space cats", client=client, store=store, config=config)


class TestRunBatch:
    @pytest.mark.asyncio
    async def test_run_persists_every_job(self, store, config, fake_client, recording_sleep):
        batch = make_batch(4)
        await store.add(batch)
        events = []

        outcome = await run_batch(
            batch.batch_id,
            client=fake_client,
            store=store,
            config=config,
            progress_callback=events.append,
            sleep=recording_sleep,
        )

        assert outcome.done
        assert outcome.rounds == 2
        stored = await store.get(batch.batch_id)
        assert all(j.state is JobState.COMPLETED for j in stored.jobs)
        assert events

    @pytest.mark.asyncio
    async def test_quota_saves_partial_progress(self, store, config, recording_sleep):
        client = FakeImageClient(failures={"page 1": Exception("quota exceeded")})
        batch = make_batch(4, cover=False)
        await store.add(batch)

        with pytest.raises(QuotaExhaustedError):
            await run_batch(
                batch.batch_id, client=client, store=store, config=config, sleep=recording_sleep
            )

        stored = await store.get(batch.batch_id)
        states = [p.state for p in stored.pages]
        assert states == [JobState.FAILED, JobState.COMPLETED, JobState.PENDING, JobState.PENDING]
        assert stored.status == "partial"

    @pytest.mark.asyncio
    async def test_second_run_skips_settled_jobs(self, store, config, recording_sleep):
        client = FakeImageClient(failures={"page 2": ValueError("bad")})
        batch = make_batch(3, cover=False)
        await store.add(batch)

        await run_batch(batch.batch_id, client=client, store=store, config=config, sleep=recording_sleep)
        calls_after_first = len(client.calls)
        outcome = await run_batch(
            batch.batch_id, client=client, store=store, config=config, sleep=recording_sleep
        )

        assert len(client.calls) == calls_after_first == 3
        assert outcome.done
        assert outcome.rounds == 0

    @pytest.mark.asyncio
    async def test_callback_failure_saves_settled_jobs(self, store, config, recording_sleep):
        batch = make_batch(4, cover=False)
        await store.add(batch)

        def on_progress(event):
            if event.kind == "round_end":
                raise RuntimeError("display crashed")

        with pytest.raises(RuntimeError, match="display crashed"):
            await run_batch(
                batch.batch_id,
                client=FakeImageClient(),
                store=store,
                config=config,
                progress_callback=on_progress,
                sleep=recording_sleep,
            )

        stored = await store.get(batch.batch_id)
        states = [p.state for p in stored.pages]
        assert states == [JobState.COMPLETED, JobState.COMPLETED, JobState.PENDING, JobState.PENDING]

    @pytest.mark.asyncio
    async def test_missing_batch(self, store, config, fake_client):
        with pytest.raises(BatchNotFoundError):
            await run_batch("abcdef123456", client=fake_client, store=store, config=config)

    @pytest.mark.asyncio
    async def test_malformed_id(self, store, config, fake_client):
        with pytest.raises(ValidationError):
            await run_batch("../x", client=fake_client, store=store, config=config)


class TestRetryPage:
    @pytest.mark.asyncio
    async def test_retry_by_page_number(self, store, config, recording_sleep):
        client = FakeImageClient(failures={"page 2": ValueError("bad")})
        batch = make_batch(3)
        await store.add(batch)
        await run_batch(batch.batch_id, client=client, store=store, config=config, sleep=recording_sleep)
        client.failures.clear()

        job = await retry_page(batch.batch_id, 2, client=client, store=store, config=config)

        assert job.title == "Scene 2"
        assert job.state is JobState.COMPLETED
        stored = await store.get(batch.batch_id)
        assert stored.pages[1].state is JobState.COMPLETED
        assert stored.is_done

    @pytest.mark.asyncio
    async def test_retry_cover_by_name(self, store, config, recording_sleep):
        client = FakeImageClient(failures={COVER_PROMPT: ValueError("bad")})
        batch = make_batch(1)
        await store.add(batch)
        await run_batch(batch.batch_id, client=client, store=store, config=config, sleep=recording_sleep)
        client.failures.clear()

        job = await retry_page(batch.batch_id, "cover", client=client, store=store, config=config)

        assert job.kind is JobKind.COVER
        assert job.state is JobState.COMPLETED

    @pytest.mark.asyncio
    async def test_retry_completed_page_rejected(self, store, config, fake_client, recording_sleep):
        batch = make_batch(1, cover=False)
        await store.add(batch)
        await run_batch(batch.batch_id, client=fake_client, store=store, config=config, sleep=recording_sleep)

        with pytest.raises(InvalidTransitionError):
            await retry_page(batch.batch_id, 1, client=fake_client, store=store, config=config)

    @pytest.mark.asyncio
    async def test_retry_quota_saves_failure(self, store, config, recording_sleep):
        client = FakeImageClient(failures={"page 1": ValueError("bad")})
        batch = make_batch(1, cover=False)
        await store.add(batch)
        await run_batch(batch.batch_id, client=client, store=store, config=config, sleep=recording_sleep)
        client.failures["page 1"] = Exception("429")

        with pytest.raises(QuotaExhaustedError):
            await retry_page(batch.batch_id, "1", client=client, store=store, config=config)

        stored = await store.get(batch.batch_id)
        assert stored.pages[0].state is JobState.FAILED
        assert "429" in stored.pages[0].error


class TestResolveJob:
    def test_by_number_id_and_cover(self):
        batch = make_batch(3)

        assert resolve_job(batch, 1) is batch.pages[0]
        assert resolve_job(batch, "3") is batch.pages[2]
        assert resolve_job(batch, "cover") is batch.cover
        assert resolve_job(batch, batch.pages[1].job_id) is batch.pages[1]

    @pytest.mark.parametrize("page", [4, "nope"])
    def test_no_match(self, page):
        with pytest.raises(BatchNotFoundError):
            resolve_job(make_batch(3), page)

    def test_cover_missing(self):
        with pytest.raises(BatchNotFoundError, match="no cover"):
            resolve_job(make_batch(3, cover=False), 0)


class TestExportBatch:
    @pytest.mark.asyncio
    async def test_exports_pdf_and_zip(self, store, config, fake_client, recording_sleep, tmp_path):
        batch = make_batch(2)
        await store.add(batch)
        await run_batch(batch.batch_id, client=fake_client, store=store, config=config, sleep=recording_sleep)

        result = await export_batch(batch.batch_id, tmp_path / "exports", store=store)

        assert Path(result["document_path"]).exists()
        assert Path(result["archive_path"]).exists()
        assert result["pages_exported"] == 2
        assert result["pages_missing"] == 0

    @pytest.mark.asyncio
    async def test_zip_only(self, store, config, fake_client, recording_sleep, tmp_path):
        batch = make_batch(1)
        await store.add(batch)
        await run_batch(batch.batch_id, client=fake_client, store=store, config=config, sleep=recording_sleep)

        result = await export_batch(batch.batch_id, tmp_path, store=store, pdf=False)

        assert result["document_path"] is None
        assert result["archive_path"].endswith("_images.zip")

    @pytest.mark.asyncio
    async def test_nothing_completed(self, store, tmp_path):
        batch = make_batch(2)
        await store.add(batch)

        with pytest.raises(ValidationError, match="no completed pages"):
            await export_batch(batch.batch_id, tmp_path, store=store)

    @pytest.mark.asyncio
    async def test_both_outputs_disabled(self, store, tmp_path):
        with pytest.raises(ValidationError, match="Nothing to export"):
            await export_batch("abcdef123456", tmp_path, store=store, pdf=False, archive=False)


class TestListAndStatus:
    @pytest.mark.asyncio
    async def test_list_batches(self):
        store = InMemoryBatchStore()
        await store.add(make_batch(2))
        await store.add(make_batch(3, cover=False))

        result = await list_batches(store)

        assert result["total"] == 2
        assert {b["total"] for b in result["batches"]} == {3}
        assert all(b["status"] == "planned" for b in result["batches"])
        assert result["batches"][0]["title"] == "Space Cats Adventure"

    @pytest.mark.asyncio
    async def test_list_empty(self):
        result = await list_batches(InMemoryBatchStore())
        assert result == {"batches": [], "total": 0}

    @pytest.mark.asyncio
    async def test_batch_status(self, config, recording_sleep):
        store = InMemoryBatchStore()
        client = FakeImageClient(failures={"page 2": ValueError("bad")})
        batch = make_batch(2)
        await store.add(batch)
        await run_batch(batch.batch_id, client=client, store=store, config=config, sleep=recording_sleep)

        result = await batch_status(batch.batch_id, store)

        assert result["status"] == "review"
        assert result["progress"] == 1.0
        assert [j["position"] for j in result["jobs"]] == [0, 1, 2]
        assert result["jobs"][2]["state"] == "failed"
        assert result["jobs"][2]["error"] == "ValueError: bad"
        assert result["jobs"][1]["saying"] == "Meow 1"
        assert result["jobs"][0]["saying"] == ""
        assert "linework retry" in result["message"]

    @pytest.mark.asyncio
    async def test_batch_status_not_found(self):
        with pytest.raises(BatchNotFoundError):
            await batch_status("abcdef123456", InMemoryBatchStore())
