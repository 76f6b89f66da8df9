"""
Persisted job queue.

Jobs move pending -> running -> completed | failed, and running -> pending
again while attempts < max_attempts. A pending job is claimed by exactly
one worker; the claim increments attempts.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any

from ..state_store import Job, JobState, StateStore

logger = logging.getLogger(__name__)


class JobQueueError(Exception):
    """Base exception for job queue errors."""

    pass


class JobNotFoundError(JobQueueError):
    """No job with the given ID."""

    def __init__(self, job_id: int):
        self.job_id = job_id
        super().__init__(f"Job {job_id} not found")


class JobCancelledError(JobQueueError):
    """A running job was abandoned (shutdown or deadline)."""

    pass


@dataclass
class JobStatus:
    """Polling snapshot of a job."""

    id: int
    status: JobState
    progress: int
    result: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "progress": self.progress,
            "result": self.result,
        }


class JobQueue:
    """Job queue backed by the state store's job_queue table."""

    def __init__(self, store: StateStore, default_max_attempts: int = 3):
        self.store = store
        self.default_max_attempts = default_max_attempts

    def enqueue(
        self,
        job_type: str,
        payload: dict[str, Any],
        max_attempts: int | None = None,
    ) -> int:
        """Add a pending job. Returns the job ID."""
        job_id = self.store.create_job(
            job_type, payload, max_attempts=max_attempts or self.default_max_attempts
        )
        logger.info(f"Enqueued job {job_id} ({job_type})")
        return job_id

    def claim_next(self) -> Job | None:
        """Claim the oldest pending job, or None when the queue is empty."""
        job = self.store.claim_next_job()
        if job:
            logger.debug(f"Claimed job {job.id} ({job.job_type}), attempt {job.attempts}")
        return job

    def update_progress(self, job_id: int, progress: int) -> None:
        self.store.update_job_progress(job_id, max(0, min(100, int(progress))))

    def complete(self, job_id: int, result: Any = None) -> None:
        """
        Mark a job completed.

        Dict and list results are stored as JSON (Decimals and dates as
        strings); any other non-string result is stored as str(result).
        """
        if result is None:
            result = ""
        elif isinstance(result, (dict, list)):
            result = json.dumps(result, default=str)
        elif not isinstance(result, str):
            result = str(result)
        self.store.complete_job(job_id, result)

    def fail(self, job_id: int, error: str) -> None:
        self.store.fail_job(job_id, error)

    def retry(self, job_id: int) -> None:
        self.store.retry_job(job_id)

    def handle_failure(self, job: Job, error: str) -> JobState:
        """
        Decide the fate of a job whose run raised.

        Returns the state the job was moved to (failed once attempts are
        exhausted, pending otherwise).
        """
        if job.attempts >= job.max_attempts:
            logger.warning(
                f"Job {job.id} ({job.job_type}) failed after {job.attempts} attempts: {error}"
            )
            self.fail(job.id, error)
            return JobState.FAILED

        logger.info(
            f"Job {job.id} ({job.job_type}) will be retried "
            f"(attempt {job.attempts}/{job.max_attempts})"
        )
        self.retry(job.id)
        return JobState.PENDING

    def status(self, job_id: int) -> JobStatus:
        """
        Snapshot for polling.

        Raises:
            JobNotFoundError: unknown job ID
        """
        job = self.store.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return JobStatus(id=job.id, status=job.status, progress=job.progress, result=job.result)
