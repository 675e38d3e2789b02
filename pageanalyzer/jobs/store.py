"""Thread-safe in-memory record of analysis jobs and their status transitions.

The store is the hand-off point between whoever submits URLs and the worker
threads: every transition goes through one of the ``mark_*`` methods under a
single lock, and readers always receive copies.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from time import time
from typing import Dict, List, Optional

from pageanalyzer.crawler.models import CrawlResult
from pageanalyzer.jobs.models import AnalysisJob, JobStats, JobStatus


class JobStore:
    def __init__(self) -> None:
        self._jobs: Dict[str, AnalysisJob] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, job_id: str) -> Optional[AnalysisJob]:
        with self._lock:
            job = self._jobs.get(job_id)
            return replace(job) if job else None

    def list(self, status: Optional[JobStatus] = None) -> List[AnalysisJob]:
        """Return jobs oldest first, optionally filtered by *status*."""
        with self._lock:
            jobs = [
                replace(job)
                for job in self._jobs.values()
                if status is None or job.status is status
            ]
        return sorted(jobs, key=lambda j: j.created_at)

    def stats(self) -> JobStats:
        stats = JobStats()
        with self._lock:
            for job in self._jobs.values():
                stats.total += 1
                setattr(stats, job.status.value, getattr(stats, job.status.value) + 1)
                if job.result is not None:
                    stats.total_broken_links += len(job.result.broken_links)
        return stats

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def create(self, url: str) -> AnalysisJob:
        job = AnalysisJob(id=str(uuid.uuid4()), url=url)
        with self._lock:
            self._jobs[job.id] = job
            return replace(job)

    def _update(self, job_id: str, **changes) -> AnalysisJob:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise KeyError(f"Job not found: {job_id!r}")
            updated = replace(job, updated_at=time(), **changes)
            self._jobs[job_id] = updated
            return replace(updated)

    def reset(self, job_id: str) -> AnalysisJob:
        """Put a job back to ``queued``, dropping its previous outcome."""
        return self._update(job_id, status=JobStatus.QUEUED, result=None, error_message=None)

    def mark_running(self, job_id: str) -> AnalysisJob:
        return self._update(job_id, status=JobStatus.RUNNING)

    def mark_completed(self, job_id: str, result: CrawlResult) -> AnalysisJob:
        return self._update(
            job_id, status=JobStatus.COMPLETED, result=result, error_message=None
        )

    def mark_failed(self, job_id: str, message: str) -> AnalysisJob:
        return self._update(job_id, status=JobStatus.ERROR, result=None, error_message=message)
