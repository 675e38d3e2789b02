"""Queue-fed worker threads that run analyses and record their outcome.

Submitting a URL creates a ``queued`` job and puts its id on a
:class:`queue.Queue`.  Each worker thread takes ids off the queue, marks the
job ``running``, calls :meth:`PageAnalyzer.analyze`, and records either
``completed`` with the result or ``error`` with the failure detail.
Reanalysis re-queues the same job verbatim; nothing is cached between runs.
"""

from __future__ import annotations

import queue
import threading
from typing import List, Optional

from pageanalyzer.config import settings
from pageanalyzer.crawler.errors import CrawlError
from pageanalyzer.crawler.orchestrator import PageAnalyzer
from pageanalyzer.jobs.models import AnalysisJob
from pageanalyzer.jobs.store import JobStore

_STOP = None


class AnalysisWorker:
    def __init__(
        self,
        store: Optional[JobStore] = None,
        analyzer: Optional[PageAnalyzer] = None,
        workers: Optional[int] = None,
    ) -> None:
        self.store = store or JobStore()
        self.analyzer = analyzer or PageAnalyzer()
        self.workers = max(1, workers or settings.worker_count)
        self._queue: "queue.Queue[Optional[str]]" = queue.Queue()
        self._threads: List[threading.Thread] = []
        self._cancel = threading.Event()

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------
    def submit(self, url: str) -> AnalysisJob:
        job = self.store.create(url)
        self._queue.put(job.id)
        return job

    def reanalyze(self, job_id: str) -> AnalysisJob:
        """Queue an existing job again.

        Raises:
            KeyError: No job with *job_id* exists.
        """
        job = self.store.reset(job_id)
        self._queue.put(job.id)
        return job

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        if self._threads:
            return
        self._cancel.clear()
        for i in range(self.workers):
            thread = threading.Thread(
                target=self._run, name=f"analysis-worker-{i}", daemon=True
            )
            thread.start()
            self._threads.append(thread)
        print(f"[WORKER] Started {self.workers} worker thread(s).")

    def join(self) -> None:
        """Block until every queued job has been processed."""
        self._queue.join()

    def stop(self, cancel: bool = False) -> None:
        """Stop the worker threads after the jobs already queued.

        With ``cancel=True`` analyses currently probing links are told to give
        up early; they still record the links checked so far.
        """
        if cancel:
            self._cancel.set()
        for _ in self._threads:
            self._queue.put(_STOP)
        for thread in self._threads:
            thread.join()
        self._threads = []
        print("[WORKER] Stopped.")

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------
    def _run(self) -> None:
        while True:
            job_id = self._queue.get()
            try:
                if job_id is _STOP:
                    return
                self._process(job_id)
            finally:
                self._queue.task_done()

    def _process(self, job_id: str) -> None:
        job = self.store.mark_running(job_id)
        print(f"[WORKER] Running {job.url!r} ({job.id})")
        try:
            result = self.analyzer.analyze(job.url, cancel=self._cancel)
        except CrawlError as exc:
            self.store.mark_failed(job_id, exc.detail)
            print(f"[WORKER] ✗ {job.url!r}: {exc.detail}")
        except Exception as exc:
            self.store.mark_failed(job_id, f"internal error: {type(exc).__name__}: {exc}")
            print(f"[WORKER] ✗ {job.url!r}: unexpected {type(exc).__name__}: {exc}")
        else:
            self.store.mark_completed(job_id, result)
            print(f"[WORKER] ✓ {job.url!r}: {len(result.broken_links)} broken link(s)")
