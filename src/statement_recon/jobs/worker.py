"""
Background job worker.

Claims jobs from the queue one at a time and dispatches them to the handler
registered for their job type. Run as a one-shot (`run_once`) or as a
daemon loop (`run_forever`) that stops on SIGINT/SIGTERM.
"""

import logging
import signal
import sqlite3
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ..state_store import Job
from .queue import JobCancelledError, JobQueue

logger = logging.getLogger(__name__)


@dataclass
class JobContext:
    """Everything a handler may use while processing one job."""

    job: Job
    queue: JobQueue
    deadline: float  # time.monotonic() value
    cancel_event: threading.Event = field(default_factory=threading.Event)

    def report_progress(self, progress: int) -> None:
        self.queue.update_progress(self.job.id, progress)

    def remaining(self) -> float:
        """Seconds left before the deadline (never negative)."""
        return max(0.0, self.deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        """Abort the handler if shutdown abandoned the job or the deadline passed."""
        if self.cancel_event.is_set():
            raise JobCancelledError(f"Job {self.job.id} abandoned on shutdown")
        if time.monotonic() >= self.deadline:
            raise JobCancelledError(f"Job {self.job.id} exceeded its deadline")


# Returns the job result (dict results are stored as JSON)
JobHandler = Callable[[JobContext], Any]


class Worker:
    """
    Single-threaded job worker.

    Shutdown semantics:
    - stop() or a signal prevents any new claim
    - the in-flight job runs to completion, unless abandon_on_stop is set,
      in which case its context is cancelled and the handler aborts at its
      next raise_if_cancelled() check
    """

    def __init__(
        self,
        queue: JobQueue,
        poll_interval: float = 2.0,
        job_timeout: float = 300.0,
        abandon_on_stop: bool = False,
    ):
        self.queue = queue
        self.poll_interval = poll_interval
        self.job_timeout = job_timeout
        self.abandon_on_stop = abandon_on_stop

        self._handlers: dict[str, JobHandler] = {}
        self._stop_event = threading.Event()
        self._current: JobContext | None = None

    def register(self, job_type: str, handler: JobHandler) -> None:
        self._handlers[job_type] = handler

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Request shutdown; safe to call from a signal handler or another thread."""
        self._stop_event.set()
        current = self._current
        if self.abandon_on_stop and current is not None:
            current.cancel_event.set()

    def _signal_handler(self, signum, frame):
        logger.info(f"Received signal {signum}, shutting down after the current job")
        self.stop()

    def run_once(self) -> bool:
        """
        Claim and process at most one job.

        Returns True if a job was processed, False if the queue was empty or
        a stop was requested.
        """
        if self.stopping:
            return False

        job = self.queue.claim_next()
        if job is None:
            return False

        self.process(job)
        return True

    def run_forever(self, install_signal_handlers: bool = True) -> None:
        """Poll the queue until stop() is called or a signal arrives."""
        previous_handlers = {}
        if install_signal_handlers and threading.current_thread() is threading.main_thread():
            for signum in (signal.SIGINT, signal.SIGTERM):
                previous_handlers[signum] = signal.signal(signum, self._signal_handler)

        logger.info(f"Job worker started (handlers: {sorted(self._handlers)})")
        try:
            while not self.stopping:
                try:
                    processed = self.run_once()
                except sqlite3.Error as e:
                    logger.error(f"Job claim failed: {e}")
                    processed = False

                if not processed:
                    # Interruptible sleep
                    self._stop_event.wait(self.poll_interval)
        finally:
            for signum, handler in previous_handlers.items():
                signal.signal(signum, handler)
            logger.info("Job worker stopped")

    def process(self, job: Job) -> None:
        """Run the handler for a claimed job and record the outcome."""
        log_prefix = f"Job {job.id} ({job.job_type}, attempt {job.attempts}/{job.max_attempts})"
        logger.info(f"{log_prefix}: started")

        handler = self._handlers.get(job.job_type)
        if handler is None:
            logger.error(f"{log_prefix}: unknown job type")
            self.queue.fail(job.id, f"unknown job type: {job.job_type}")
            return

        ctx = JobContext(job=job, queue=self.queue, deadline=time.monotonic() + self.job_timeout)
        self._current = ctx
        if self.abandon_on_stop and self.stopping:
            ctx.cancel_event.set()

        # Completing is inside the guard: a job never stays running
        try:
            result = handler(ctx)
            self.queue.complete(job.id, result)
        except Exception as e:
            logger.error(f"{log_prefix}: failed: {e}")
            logger.debug(f"{log_prefix}: traceback", exc_info=True)
            self.queue.handle_failure(job, str(e))
            return
        finally:
            self._current = None

        logger.info(f"{log_prefix}: completed")
