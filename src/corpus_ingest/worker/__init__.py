"""
Worker: the long-running process that drains the job queue.

Run with ``python -m corpus_ingest.worker`` or ``corpus-ingest-worker``.
"""

from corpus_ingest.worker.scheduler import JobLog, JobScheduler

__all__ = ["JobLog", "JobScheduler"]
