"""
Background job processing.

Provides:
- JobQueue: persisted queue with atomic claim and bounded retries
- Worker / JobContext: single-threaded dispatcher with deadline and shutdown
- ParseStatementHandler: the parse_statement job
"""

from .parse_statement import JOB_TYPE as PARSE_STATEMENT_JOB
from .parse_statement import ParseStatementHandler
from .queue import JobCancelledError, JobNotFoundError, JobQueue, JobQueueError, JobStatus
from .worker import JobContext, JobHandler, Worker

__all__ = [
    "PARSE_STATEMENT_JOB",
    "JobCancelledError",
    "JobContext",
    "JobHandler",
    "JobNotFoundError",
    "JobQueue",
    "JobQueueError",
    "JobStatus",
    "ParseStatementHandler",
    "Worker",
]
