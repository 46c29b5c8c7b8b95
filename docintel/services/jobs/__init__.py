"""Background batch jobs."""

from docintel.services.jobs.scheduler import MatchingJobScheduler, new_job_id

__all__ = ["MatchingJobScheduler", "new_job_id"]
