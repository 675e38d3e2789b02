"""Single-page analysis pipeline.

``PageAnalyzer.analyze`` runs one analysis from a submitted URL to a
:class:`CrawlResult`:

    normalise → fetch → parse → classify → probe → assemble

One orchestration deadline covers the whole call.  The primary fetch and each
link probe also get their own, shorter timeouts.  Fetch and parse failures
abort the analysis with a :class:`CrawlError`; probe failures never do.
"""

from __future__ import annotations

import re
import threading
import time
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

import httpx

from pageanalyzer.config import DEFAULT_USER_AGENT, Settings, settings
from pageanalyzer.crawler.classifier import classify_links, host_key, resolve_link
from pageanalyzer.crawler.errors import InputError
from pageanalyzer.crawler.fetcher import fetch_page
from pageanalyzer.crawler.models import CrawlResult
from pageanalyzer.crawler.parser import parse_page
from pageanalyzer.crawler.prober import probe_all

# "mailto:a@b.com", "javascript:void(0)"; "host:8080" is a host with a port.
_OPAQUE_SCHEME = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.-]*):(?!\d)")


@dataclass(frozen=True)
class CrawlConfig:
    """Time budgets and limits for one analyzer instance."""

    analysis_timeout: float = 90.0
    fetch_timeout: float = 60.0
    probe_timeout: float = 15.0
    probe_concurrency: int = 10
    poll_interval: float = 0.1
    user_agent: str = DEFAULT_USER_AGENT

    @classmethod
    def from_settings(cls, source: Optional[Settings] = None) -> CrawlConfig:
        source = source or settings
        return cls(
            analysis_timeout=source.analysis_timeout,
            fetch_timeout=source.fetch_timeout,
            probe_timeout=source.probe_timeout,
            probe_concurrency=source.probe_concurrency,
            poll_interval=source.probe_poll_interval,
            user_agent=source.user_agent,
        )


def normalise_target(raw: str) -> str:
    """Validate a submitted URL, prefixing ``https://`` when no scheme is given.

    Raises:
        InputError: Empty input, a non-http(s) scheme, or a missing or
            unencodable host.
    """
    target = (raw or "").strip()
    if not target:
        raise InputError("invalid URL: no URL given")
    if "://" not in target:
        opaque = _OPAQUE_SCHEME.match(target)
        if opaque:
            raise InputError(
                f"invalid URL: unsupported scheme {opaque.group(1)!r} in {raw!r}"
            )
        target = f"https://{target.lstrip('/')}"

    try:
        parts = urlsplit(target)
    except ValueError as exc:
        raise InputError(f"invalid URL: {raw!r} ({exc})") from exc

    if parts.scheme.lower() not in ("http", "https"):
        raise InputError(f"invalid URL: unsupported scheme {parts.scheme!r} in {raw!r}")
    if host_key(parts) is None or " " in parts.netloc:
        raise InputError(f"invalid URL: {raw!r} has no valid host")
    try:
        # Empty or over-long labels and bad punycode only fail at connect time.
        parts.hostname.encode("idna")
        httpx.URL(target).host
    except (httpx.InvalidURL, UnicodeError, ValueError) as exc:
        raise InputError(f"invalid URL: {raw!r} has an invalid host ({exc})") from exc
    return target


class PageAnalyzer:
    """Analyzes one page per :meth:`analyze` call; holds no state between calls."""

    def __init__(self, config: Optional[CrawlConfig] = None) -> None:
        self.config = config or CrawlConfig.from_settings()

    def analyze(
        self,
        target: str,
        cancel: Optional[threading.Event] = None,
    ) -> CrawlResult:
        """Analyze *target* and return its :class:`CrawlResult`.

        Args:
            target: Absolute or scheme-less URL of the page.
            cancel: Optional event; once set, outstanding link probes are
                abandoned and the links checked so far are reported.

        Raises:
            InputError: *target* is not a usable http(s) URL.
            TransportError: The page could not be downloaded.
            ParseError: The page body is not parseable HTML.
        """
        cfg = self.config
        url = normalise_target(target)
        deadline = time.monotonic() + cfg.analysis_timeout

        print(f"[ANALYZE] {url}")
        fetch_budget = max(0.0, min(cfg.fetch_timeout, deadline - time.monotonic()))
        page = fetch_page(url, timeout=fetch_budget, user_agent=cfg.user_agent)
        print(f"[FETCH] HTTP {page.status_code} - {len(page.content)} byte(s) from {page.base_url}")

        structure, raw_links = parse_page(page)
        print(
            f"[PARSE] {structure.html_version}, title={structure.title!r}, "
            f"h1={structure.h1_count} h2={structure.h2_count} h3={structure.h3_count}, "
            f"login form={structure.has_login_form}"
        )

        document_base = (
            resolve_link(structure.base_href, page.base_url)
            if structure.base_href
            else None
        )
        links = classify_links(raw_links, page.base_url, document_base)
        broken = probe_all(
            links,
            deadline,
            concurrency=cfg.probe_concurrency,
            timeout=cfg.probe_timeout,
            user_agent=cfg.user_agent,
            cancel=cancel,
            poll_interval=cfg.poll_interval,
        )

        result = CrawlResult.assemble(url, structure, links, broken)
        print(
            f"[ANALYZE] Done: {result.internal_links} internal, "
            f"{result.external_links} external, {len(result.broken_links)} broken."
        )
        return result


def analyze(
    target: str,
    config: Optional[CrawlConfig] = None,
    cancel: Optional[threading.Event] = None,
) -> CrawlResult:
    """Convenience wrapper: ``PageAnalyzer(config).analyze(target, cancel)``."""
    return PageAnalyzer(config).analyze(target, cancel=cancel)
