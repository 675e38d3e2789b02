"""Centralised settings for the page analyzer.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).

The crawler itself never reads :data:`settings` mid-analysis; callers build a
:class:`~pageanalyzer.crawler.orchestrator.CrawlConfig` from it and hand that
to the analyzer at construction time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Time budgets (seconds)
    # ------------------------------------------------------------------
    analysis_timeout: float = field(
        default_factory=lambda: float(os.environ.get("ANALYSIS_TIMEOUT", "90.0"))
    )
    fetch_timeout: float = field(
        default_factory=lambda: float(os.environ.get("FETCH_TIMEOUT", "60.0"))
    )
    probe_timeout: float = field(
        default_factory=lambda: float(os.environ.get("PROBE_TIMEOUT", "15.0"))
    )

    # ------------------------------------------------------------------
    # Link probing
    # ------------------------------------------------------------------
    probe_concurrency: int = field(
        default_factory=lambda: int(os.environ.get("PROBE_CONCURRENCY", "10"))
    )
    probe_poll_interval: float = field(
        default_factory=lambda: float(os.environ.get("PROBE_POLL_INTERVAL", "0.1"))
    )

    # ------------------------------------------------------------------
    # HTTP identity
    # ------------------------------------------------------------------
    user_agent: str = field(
        default_factory=lambda: os.environ.get("CRAWLER_USER_AGENT", DEFAULT_USER_AGENT)
    )

    # ------------------------------------------------------------------
    # Job worker
    # ------------------------------------------------------------------
    worker_count: int = field(
        default_factory=lambda: int(os.environ.get("ANALYSIS_WORKERS", "2"))
    )


# Module-level singleton - import this everywhere:
#   from pageanalyzer.config import settings
settings = Settings()
