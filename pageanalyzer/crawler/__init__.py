"""Crawler package — fetch, parse, classify and probe a single page."""

from pageanalyzer.crawler.errors import (
    CrawlError,
    InputError,
    ParseError,
    TransportError,
    TransportFailure,
)
from pageanalyzer.crawler.models import (
    ClassifiedLink,
    CrawlResult,
    FetchedPage,
    LinkCheckResult,
    LinkScope,
    PageStructure,
)
from pageanalyzer.crawler.orchestrator import CrawlConfig, PageAnalyzer, analyze

__all__ = [
    "analyze",
    "PageAnalyzer",
    "CrawlConfig",
    "CrawlResult",
    "PageStructure",
    "FetchedPage",
    "ClassifiedLink",
    "LinkCheckResult",
    "LinkScope",
    "CrawlError",
    "InputError",
    "TransportError",
    "TransportFailure",
    "ParseError",
]
