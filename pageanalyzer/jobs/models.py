"""Dataclass models for queued analysis jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from time import time
from typing import Any, Optional

from pageanalyzer.crawler.models import CrawlResult


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class AnalysisJob:
    id: str
    url: str
    status: JobStatus = JobStatus.QUEUED
    result: Optional[CrawlResult] = None
    error_message: Optional[str] = None
    created_at: float = field(default_factory=time)
    updated_at: float = field(default_factory=time)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "url": self.url,
            "status": self.status.value,
            "error_message": self.error_message,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        if self.result is not None:
            data.update(self.result.to_dict())
        return data


@dataclass
class JobStats:
    total: int = 0
    queued: int = 0
    running: int = 0
    completed: int = 0
    error: int = 0
    total_broken_links: int = 0
