"""Tests for batch relevance jobs."""

from unittest.mock import MagicMock

import pytest
import pytest_asyncio

from docintel.config import Settings
from docintel.core.exceptions import JobNotFoundError
from docintel.repositories.document_metadata_repository import DocumentMetadataRepository
from docintel.repositories.template_metadata_repository import TemplateMetadataRepository
from docintel.schemas.jobs import JobStatus
from docintel.schemas.metadata import DocumentMetadata, TemplateMetadata
from docintel.services.background import BackgroundTasks
from docintel.services.jobs.scheduler import MatchingJobScheduler
from docintel.services.matching.cache import RelevanceCache
from docintel.services.matching.engine import MatchingEngine


@pytest_asyncio.fixture
async def seeded(session_factory, sample_template, sample_document):
    """Two templates, two documents for customer 7 and one for customer 8."""
    async with session_factory() as session:
        templates = TemplateMetadataRepository(session)
        await templates.upsert(sample_template)
        await templates.upsert(TemplateMetadata(template_slug="blank", template_name="Blank"))

        documents = DocumentMetadataRepository(session)
        await documents.upsert(sample_document)
        await documents.upsert(DocumentMetadata(customer_id=7, filename="empty.txt"))
        await documents.upsert(DocumentMetadata(customer_id=8, filename="other.docx"))
    return session_factory


def make_scheduler(session_factory, sleep=None, **overrides) -> MatchingJobScheduler:
    async def no_pause(seconds):
        return None

    return MatchingJobScheduler(
        session_factory,
        MatchingEngine(RelevanceCache()),
        background=BackgroundTasks(),
        config=Settings(**overrides),
        sleep=sleep or no_pause,
    )


async def stored_relevance(session_factory, customer_id, filename):
    async with session_factory() as session:
        document = await DocumentMetadataRepository(session).get_by_filename(customer_id, filename)
    return {entry.template_slug: entry.score for entry in document.template_relevance}


class TestJobExecution:
    """Tests for MatchingJobScheduler.run."""

    @pytest.mark.asyncio
    async def test_scores_every_pair_and_stores_relevance(self, seeded):
        scheduler = make_scheduler(seeded)
        job = scheduler.create()

        finished = await scheduler.run(job.id)

        assert finished.status == JobStatus.COMPLETED
        assert finished.total_documents == 6
        assert finished.processed_documents == 6
        assert finished.matched_documents == 1
        assert finished.skipped_documents == 0
        assert finished.started_at is not None and finished.completed_at is not None
        assert await stored_relevance(seeded, 7, "inventory-q3.xlsx") == {"inventory-report": 10.0, "blank": 4.0}

    @pytest.mark.asyncio
    async def test_second_run_skips_stored_pairs_unless_forced(self, seeded):
        scheduler = make_scheduler(seeded)
        await scheduler.run(scheduler.create().id)

        skipped = await scheduler.run(scheduler.create().id)
        forced = await scheduler.run(scheduler.create(force_recalculate=True).id)

        assert skipped.skipped_documents == 6
        assert skipped.matched_documents == 0
        assert forced.skipped_documents == 0
        assert forced.matched_documents == 1

    @pytest.mark.asyncio
    async def test_filters_by_customer_and_template(self, seeded):
        scheduler = make_scheduler(seeded)

        job = await scheduler.run(scheduler.create(template_slugs=["blank"], customer_ids=[8]).id)

        assert job.total_documents == 1
        assert await stored_relevance(seeded, 8, "other.docx") == {"blank": 4.0}
        assert await stored_relevance(seeded, 7, "empty.txt") == {}

    @pytest.mark.asyncio
    async def test_no_templates_fails_job(self, session_factory):
        scheduler = make_scheduler(session_factory)

        job = await scheduler.run(scheduler.create().id)

        assert job.status == JobStatus.FAILED
        assert job.error == "No templates available for matching"

    @pytest.mark.asyncio
    async def test_cancel_between_batches(self, seeded):
        """A cancel request stops the job before its next unit of work."""
        holder = {}

        async def cancel_on_pause(seconds):
            scheduler.cancel(holder["job_id"])

        scheduler = make_scheduler(seeded, sleep=cancel_on_pause, job_batch_size=1)
        holder["job_id"] = scheduler.create().id

        job = await scheduler.run(holder["job_id"])

        assert job.status == JobStatus.CANCELLED
        assert job.processed_documents == 1
        assert job.completed_at is not None

    @pytest.mark.asyncio
    async def test_start_runs_in_background(self, seeded):
        scheduler = make_scheduler(seeded)

        job = scheduler.start(created_by="recalculate-all")
        assert job.status == JobStatus.PENDING
        await scheduler.background.drain()

        assert scheduler.get(job.id).status == JobStatus.COMPLETED


class TestJobRegistry:
    """Tests for lookup, cancellation and cleanup."""

    @pytest.mark.asyncio
    async def test_cancel_terminal_job_returns_false(self, seeded):
        scheduler = make_scheduler(seeded)
        job = scheduler.create()
        await scheduler.run(job.id)

        assert scheduler.cancel(job.id) is False

    def test_unknown_job_raises(self):
        scheduler = make_scheduler(MagicMock())

        with pytest.raises(JobNotFoundError):
            scheduler.get("tmj_missing")
        with pytest.raises(JobNotFoundError):
            scheduler.cancel("tmj_missing")

    def test_cancel_pending_job_before_it_runs(self):
        scheduler = make_scheduler(MagicMock())
        job = scheduler.create()

        assert scheduler.cancel(job.id) is True

    @pytest.mark.asyncio
    async def test_cancelled_before_start_never_runs(self, seeded):
        scheduler = make_scheduler(seeded)
        job = scheduler.create()
        scheduler.cancel(job.id)

        finished = await scheduler.run(job.id)

        assert finished.status == JobStatus.CANCELLED
        assert finished.processed_documents == 0

    def test_clear_all_and_list(self):
        scheduler = make_scheduler(MagicMock())
        first = scheduler.create()
        second = scheduler.create()

        assert {job.id for job in scheduler.list_jobs()} == {first.id, second.id}
        assert scheduler.clear_all() == 2
        assert scheduler.list_jobs() == []

    @pytest.mark.asyncio
    async def test_cleanup_keeps_newest_terminal_jobs(self, session_factory):
        scheduler = make_scheduler(session_factory)
        ids = [scheduler.create().id for _ in range(3)]
        for job_id in ids:
            await scheduler.run(job_id)
        pending = scheduler.create()

        removed = scheduler.cleanup_old_jobs(keep=1)

        assert removed == 2
        remaining = {job.id for job in scheduler.list_jobs()}
        assert pending.id in remaining
        assert len(remaining) == 2
