"""Exception taxonomy for the crawler.

Stage failures before link probing (:class:`InputError`,
:class:`TransportError`, :class:`ParseError`) abort the analysis and carry a
human-readable ``detail`` meant to be stored and shown as-is.
:class:`LinkProbeError` is local to a single probe and is always turned into a
:class:`~pageanalyzer.crawler.models.LinkCheckResult`.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pageanalyzer.crawler.models import LinkCheckResult


class TransportFailure(str, Enum):
    HOST_NOT_FOUND = "host-not-found"
    CONNECTION_REFUSED = "connection-refused"
    TLS = "tls-error"
    TIMEOUT = "timeout"
    HTTP_STATUS = "http-status"
    NETWORK = "network-error"


class CrawlError(Exception):
    """Base class for errors that end an analysis without a result."""

    kind = "crawl-error"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class InputError(CrawlError):
    """The submitted target is not an analysable http(s) URL."""

    kind = "invalid-input"


class TransportError(CrawlError):
    """The target page could not be downloaded."""

    kind = "transport-failure"

    def __init__(
        self,
        detail: str,
        reason: TransportFailure = TransportFailure.NETWORK,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(detail)
        self.reason = reason
        self.status_code = status_code


class ParseError(CrawlError):
    """The downloaded body could not be parsed as HTML at all."""

    kind = "parse-failure"


class LinkProbeError(Exception):
    """A single link failed its liveness check."""

    def __init__(self, url: str, detail: str, status_code: Optional[int] = None) -> None:
        super().__init__(f"{url}: {detail}")
        self.url = url
        self.detail = detail
        self.status_code = status_code

    def to_result(self) -> LinkCheckResult:
        return LinkCheckResult(
            url=self.url,
            ok=False,
            status_code=self.status_code,
            error_detail=self.detail,
        )
