"""Job queue hand-off between the API layer and the analyzer."""

from pageanalyzer.jobs.models import AnalysisJob, JobStats, JobStatus
from pageanalyzer.jobs.store import JobStore
from pageanalyzer.jobs.worker import AnalysisWorker

__all__ = ["AnalysisJob", "AnalysisWorker", "JobStats", "JobStatus", "JobStore"]
