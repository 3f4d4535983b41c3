"""Single-worker job scheduler.

Job lifecycle::

    waiting ──claim──▶ running ──▶ succeeded | failed | stopped

``stopped`` is also written by a user cancelling the job while it runs;
the scheduler then observes it through the cancellation token and never
overwrites it.
"""

from __future__ import annotations

import logging
import time
import traceback
from typing import Callable

from corpus_ingest.errors import JobStoppedError
from corpus_ingest.ingestion.extractors import CancellationToken
from corpus_ingest.ingestion.pipeline import IngestionPipeline
from corpus_ingest.models import Job, JobState
from corpus_ingest.store.job_store import JobStore

logger = logging.getLogger(__name__)


class JobLog:
    """Log sink appending to a job's persisted log and the process log."""

    def __init__(self, job: Job, store: JobStore) -> None:
        self._job = job
        self._store = store

    def __call__(self, message: str) -> None:
        self._job.log += message + "\n"
        logger.info("[job %s] %s", self._job.id, message)
        self._store.update_job_log(self._job.id, self._job.log)


class JobScheduler:
    """Claims waiting jobs one at a time and runs them through the pipeline.

    Parameters
    ----------
    job_store:
        Persistent job / source store.
    pipeline:
        The ingestion pipeline run for every claimed job.
    poll_interval:
        Seconds slept after every iteration, whatever its outcome.
    sleep:
        Injected for tests.
    """

    def __init__(
        self,
        job_store: JobStore,
        pipeline: IngestionPipeline,
        *,
        poll_interval: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.job_store = job_store
        self.pipeline = pipeline
        self.poll_interval = poll_interval
        self._sleep = sleep

    # -- public API -----------------------------------------------------------

    def recover(self) -> int:
        """Stop jobs left ``running`` by a previous crash."""
        count = self.job_store.recover_running_jobs()
        if count:
            logger.warning("Marked %d orphaned running job(s) as stopped", count)
        return count

    def run_forever(self, max_iterations: int | None = None) -> None:
        """Recover crashed jobs, then poll and process jobs.

        Parameters
        ----------
        max_iterations:
            Stop after this many polls; ``None`` runs until interrupted.
        """
        self.recover()
        iteration = 0
        while max_iterations is None or iteration < max_iterations:
            iteration += 1
            try:
                self.run_once()
            except Exception:
                logger.exception("Error fetching next job")
            finally:
                self._sleep(self.poll_interval)

    def run_once(self) -> Job | None:
        """Claim and process at most one job; returns it, or ``None`` when idle."""
        job = self.job_store.claim_next_waiting_job()
        if job is None:
            return None
        logger.info("Got job %s for source %s", job.id, job.source_id)
        self.process(job)
        return job

    def process(self, job: Job) -> JobState:
        """Run the pipeline for a claimed *job* and persist its outcome."""
        log = JobLog(job, self.job_store)
        cancel = CancellationToken(lambda: self.job_store.get_job_state(job.id) == JobState.STOPPED)
        try:
            source = self.job_store.get_source(job.source_id)
            self.pipeline.run(source, log=log, cancel=cancel)
        except JobStoppedError as exc:
            self._append_log(log, str(exc))
            return self._finish(job, JobState.STOPPED)
        except Exception:
            self._append_log(log, traceback.format_exc())
            return self._finish(job, JobState.FAILED)
        return self._finish(job, JobState.SUCCEEDED)

    # -- internals ------------------------------------------------------------

    def _append_log(self, log: JobLog, message: str) -> None:
        try:
            log(message)
        except Exception:
            logger.warning("Could not append to log of job", exc_info=True)

    def _finish(self, job: Job, state: JobState) -> JobState:
        if self.job_store.finish_job(job.id, state):
            logger.info("Job %s %s", job.id, state.value)
            return state
        current = self.job_store.get_job_state(job.id)
        logger.info("Job %s was already %s, kept instead of %s", job.id, current.value, state.value)
        return current
