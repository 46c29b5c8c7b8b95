"""
Batch relevance recomputation jobs.

A job scores every selected (template, document) pair with the rule-based
engine and merges the results into each document's stored relevance list.
Jobs live in an in-memory registry; they do not survive a restart.

State machine::

    pending -> running -> completed | failed | cancelled

Cancellation is cooperative: ``cancel`` only raises a flag that the runner
checks before each unit of work. Any unexpected error fails the whole job.
Two jobs touching the same document are not serialized; the last write
of its relevance list wins.
"""

import asyncio
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Set

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docintel.config import Settings, settings as default_settings
from docintel.core.exceptions import JobNotFoundError, NoTemplatesAvailableError
from docintel.repositories.document_metadata_repository import DocumentMetadataRepository
from docintel.repositories.template_metadata_repository import TemplateMetadataRepository
from docintel.schemas.jobs import JobStatus, MatchingJob
from docintel.schemas.metadata import DocumentMetadata, TemplateMetadata, TemplateRelevance
from docintel.services.background import BackgroundTasks
from docintel.services.matching.engine import MatchingEngine
from docintel.services.matching.stored_relevance import merge_relevance, with_relevance
from docintel.utils.logging import get_logger

LOGGER = get_logger(__name__)


def new_job_id() -> str:
    return f"tmj_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"


class MatchingJobScheduler:
    """Owns the job registry and runs jobs as background tasks."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        engine: MatchingEngine,
        background: Optional[BackgroundTasks] = None,
        config: Settings = default_settings,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize the scheduler.

        Args:
            session_factory: Factory for the sessions jobs run in
            engine: Relevance engine used to score pairs
            background: Task holder for running jobs
            config: Batch size, pause, threshold and retention settings
            sleep: Awaitable sleep used for the pause between batches
        """
        self.session_factory = session_factory
        self.engine = engine
        self.background = background or BackgroundTasks()
        self.config = config
        self.sleep = sleep
        self._jobs: Dict[str, MatchingJob] = {}
        self._cancel_requested: Set[str] = set()

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def create(
        self,
        template_slugs: Optional[Sequence[str]] = None,
        customer_ids: Optional[Sequence[int]] = None,
        force_recalculate: bool = False,
        created_by: Optional[str] = None,
    ) -> MatchingJob:
        """Register a pending job without starting it."""
        job = MatchingJob(
            id=new_job_id(),
            template_slugs=list(template_slugs) if template_slugs else None,
            customer_ids=list(customer_ids) if customer_ids else None,
            force_recalculate=force_recalculate,
            created_by=created_by,
        )
        self._jobs[job.id] = job
        LOGGER.info(
            "Created matching job",
            extra={"job_id": job.id, "templates": job.template_slugs, "customers": job.customer_ids},
        )
        return job

    def start(
        self,
        template_slugs: Optional[Sequence[str]] = None,
        customer_ids: Optional[Sequence[int]] = None,
        force_recalculate: bool = False,
        created_by: Optional[str] = None,
    ) -> MatchingJob:
        """Register a job and run it in the background.

        Returns:
            MatchingJob: The pending job; poll ``get`` for progress
        """
        job = self.create(template_slugs, customer_ids, force_recalculate, created_by)
        self.cleanup_old_jobs()
        self.background.spawn(self.run(job.id), name=f"matching-job-{job.id}")
        return job

    def get(self, job_id: str) -> MatchingJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        return job

    def list_jobs(self) -> List[MatchingJob]:
        """All known jobs, newest first."""
        return sorted(self._jobs.values(), key=lambda job: job.created_at, reverse=True)

    def cancel(self, job_id: str) -> bool:
        """Request cancellation.

        Returns:
            False when the job already reached a terminal state

        Raises:
            JobNotFoundError: If the id is unknown
        """
        job = self.get(job_id)
        if job.status.is_terminal:
            return False
        self._cancel_requested.add(job_id)
        LOGGER.info("Cancellation requested", extra={"job_id": job_id, "job_status": job.status.value})
        return True

    def clear_all(self) -> int:
        """Forget every job, cancelling the unfinished ones.

        Returns:
            Number of jobs removed
        """
        for job in self._jobs.values():
            if not job.status.is_terminal:
                self._cancel_requested.add(job.id)
        removed = len(self._jobs)
        self._jobs.clear()
        LOGGER.info(f"Cleared {removed} matching jobs")
        return removed

    def cleanup_old_jobs(self, keep: Optional[int] = None) -> int:
        """Drop the oldest terminal jobs beyond the retention limit."""
        keep = self.config.job_retention if keep is None else keep
        terminal = [job for job in self.list_jobs() if job.status.is_terminal]
        stale = terminal[keep:]
        for job in stale:
            self._jobs.pop(job.id, None)
            self._cancel_requested.discard(job.id)
        return len(stale)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run(self, job_id: str) -> MatchingJob:
        """Execute a pending job to a terminal state."""
        job = self.get(job_id)
        if job.status != JobStatus.PENDING:
            return job

        if self._should_stop(job):
            self._finish(job, JobStatus.CANCELLED)
            return job

        job.status = JobStatus.RUNNING
        job.started_at = datetime.now(timezone.utc)
        LOGGER.info("Starting matching job", extra={"job_id": job.id})

        try:
            async with self.session_factory() as session:
                cancelled = await self._process(job, session)
        except asyncio.CancelledError:
            self._finish(job, JobStatus.CANCELLED)
            raise
        except Exception as e:
            LOGGER.error(f"Matching job failed: {e}", exc_info=True, extra={"job_id": job.id})
            self._finish(job, JobStatus.FAILED, error=str(e))
            return job

        self._finish(job, JobStatus.CANCELLED if cancelled else JobStatus.COMPLETED)
        return job

    async def _process(self, job: MatchingJob, session: AsyncSession) -> bool:
        """Score every pair. Returns True when the job stopped on a cancel request."""
        templates = await TemplateMetadataRepository(session).list_all(job.template_slugs)
        if not templates:
            raise NoTemplatesAvailableError("No templates available for matching")

        documents_repo = DocumentMetadataRepository(session)
        documents = await documents_repo.list_for_customers(job.customer_ids)
        units = [(document, template) for document in documents for template in templates]
        job.total_documents = len(units)

        LOGGER.info(
            f"Matching {len(documents)} documents against {len(templates)} templates",
            extra={"job_id": job.id, "units": len(units)},
        )

        batch_size = max(1, self.config.job_batch_size)
        for start in range(0, len(units), batch_size):
            if start:
                await self.sleep(self.config.job_batch_pause)
            for document, template in units[start:start + batch_size]:
                if self._should_stop(job):
                    LOGGER.info(
                        f"Job cancelled after {job.processed_documents}/{job.total_documents} units",
                        extra={"job_id": job.id},
                    )
                    return True
                await self._process_unit(job, document, template, documents_repo)
        return False

    async def _process_unit(
        self,
        job: MatchingJob,
        document: DocumentMetadata,
        template: TemplateMetadata,
        documents_repo: DocumentMetadataRepository,
    ) -> None:
        if not job.force_recalculate and document.stored_score(template.template_slug) is not None:
            job.processed_documents += 1
            job.skipped_documents += 1
            return

        match = self.engine.match(template, document)
        entry = TemplateRelevance(
            template_slug=template.template_slug,
            template_name=template.template_name,
            score=match.relevance_score,
            reasoning=match.reasoning,
        )
        extra_fields = with_relevance(
            document.extra_fields,
            merge_relevance(document.template_relevance, [entry], self.config.max_stored_relevance),
        )
        if document.id is not None:
            await documents_repo.save_extra_fields(document.id, extra_fields)
        # Later units for this document merge into the updated list
        document.extra_fields = extra_fields

        job.processed_documents += 1
        if match.relevance_score >= self.config.relevance_threshold:
            job.matched_documents += 1

    def _should_stop(self, job: MatchingJob) -> bool:
        return job.id in self._cancel_requested

    def _finish(self, job: MatchingJob, status: JobStatus, error: Optional[str] = None) -> None:
        if job.status.is_terminal:
            return
        job.status = status
        job.error = error
        job.completed_at = datetime.now(timezone.utc)
        self._cancel_requested.discard(job.id)
        LOGGER.info(
            f"Matching job {status.value}",
            extra={
                "job_id": job.id,
                "processed": job.processed_documents,
                "total": job.total_documents,
                "matched": job.matched_documents,
                "skipped": job.skipped_documents,
            },
        )
