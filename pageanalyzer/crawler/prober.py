"""Concurrent link liveness checks.

Every classified link gets one HEAD request on a bounded thread pool.  Worker
threads only *return* their :class:`LinkCheckResult`; the calling thread is
the single collector that owns the list of broken links, so no lock guards
it.  The collector waits in short slices so that both the overall deadline
and an external cancel event are noticed within one slice.

When the deadline passes or the caller cancels, queued probes are cancelled,
workers stop issuing new requests, and in-flight requests are abandoned:
they finish in the background but their outcome is discarded.  Links whose
outcome was not known in time are simply absent from the result.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Dict, List, Optional

import httpx

from pageanalyzer.config import DEFAULT_USER_AGENT
from pageanalyzer.crawler.errors import LinkProbeError, TransportFailure
from pageanalyzer.crawler.fetcher import classify_failure
from pageanalyzer.crawler.models import ClassifiedLink, LinkCheckResult

_PROBE_ERROR_DETAILS = {
    TransportFailure.TIMEOUT: "Link check timeout",
    TransportFailure.HOST_NOT_FOUND: "Host not found",
    TransportFailure.CONNECTION_REFUSED: "Connection refused",
    TransportFailure.TLS: "SSL certificate error",
}


# ---------------------------------------------------------------------------
# Single probe
# ---------------------------------------------------------------------------

def _head(url: str, timeout: float, user_agent: str) -> None:
    """Issue the HEAD request; raise :class:`LinkProbeError` if the link is broken."""
    headers = {"User-Agent": user_agent, "Accept": "*/*"}
    try:
        with httpx.Client(headers=headers, timeout=timeout, follow_redirects=True) as client:
            response = client.head(url)
    except (httpx.InvalidURL, UnicodeError, ValueError) as exc:
        # Hosts that split cleanly can still fail IDNA encoding at connect time.
        raise LinkProbeError(url, f"Invalid URL: {exc}") from exc
    except httpx.HTTPError as exc:
        reason = classify_failure(exc)
        detail = _PROBE_ERROR_DETAILS.get(reason) or str(exc) or type(exc).__name__
        raise LinkProbeError(url, detail) from exc

    if response.status_code >= 400:
        raise LinkProbeError(
            url,
            f"{response.status_code} {response.reason_phrase}".strip(),
            status_code=response.status_code,
        )


def check_link(
    link: ClassifiedLink,
    timeout: float = 15.0,
    user_agent: str = DEFAULT_USER_AGENT,
) -> LinkCheckResult:
    """Probe one link and report whether it is reachable."""
    try:
        _head(link.url, timeout, user_agent)
    except LinkProbeError as exc:
        return exc.to_result()
    return LinkCheckResult(url=link.url, ok=True)


def _probe_worker(
    link: ClassifiedLink,
    deadline: float,
    timeout: float,
    user_agent: str,
    stop: threading.Event,
) -> Optional[LinkCheckResult]:
    """Run :func:`check_link` unless the probe run is already over.

    Returns ``None`` when the outcome should not be reported: the run was
    stopped, or the deadline expired before or during the request.
    """
    if stop.is_set():
        return None
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        return None

    result = check_link(link, timeout=min(timeout, remaining), user_agent=user_agent)
    if result.is_broken and (stop.is_set() or time.monotonic() >= deadline):
        # Cut short by the run ending, not a verdict on the link.
        return None
    return result


def _collect(future: Future, link: ClassifiedLink) -> Optional[LinkCheckResult]:
    """Return the worker's result; a worker that raised marks its link broken."""
    try:
        return future.result()
    except Exception as exc:
        print(f"[PROBE] Check of {link.url!r} failed: {type(exc).__name__}: {exc}")
        return LinkCheckResult(
            url=link.url, ok=False, error_detail=f"{type(exc).__name__}: {exc}"
        )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def probe_all(
    links: List[ClassifiedLink],
    deadline: float,
    *,
    concurrency: int = 10,
    timeout: float = 15.0,
    user_agent: str = DEFAULT_USER_AGENT,
    cancel: Optional[threading.Event] = None,
    poll_interval: float = 0.1,
) -> List[LinkCheckResult]:
    """Probe *links* concurrently and return only the broken ones.

    Args:
        links: Links to check; duplicates are probed once per occurrence.
        deadline: ``time.monotonic()`` instant after which no more results
            are waited for.
        concurrency: Maximum number of probes in flight at once.
        timeout: Per-probe HTTP timeout, further capped by the time left
            before *deadline*.
        user_agent: ``User-Agent`` header sent with every probe.
        cancel: Optional event set by the caller to give up early.
        poll_interval: Longest stretch the collector waits before looking at
            *cancel* and *deadline* again.

    Returns:
        The broken :class:`LinkCheckResult` entries collected before the run
        finished, was cancelled, or ran out of time.  Order is completion
        order.
    """
    if not links:
        return []

    stop = threading.Event()
    pool = ThreadPoolExecutor(
        max_workers=max(1, min(concurrency, len(links))),
        thread_name_prefix="link-probe",
    )
    pending: set[Future] = set()
    submitted: Dict[Future, ClassifiedLink] = {}
    broken: List[LinkCheckResult] = []
    checked = 0

    try:
        for link in links:
            future = pool.submit(_probe_worker, link, deadline, timeout, user_agent, stop)
            submitted[future] = link
        pending = set(submitted)

        while pending:
            if cancel is not None and cancel.is_set():
                print(f"[PROBE] Cancelled with {len(pending)} link check(s) outstanding.")
                break
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                print(f"[PROBE] Warning: {len(pending)} link check(s) timed out.")
                break

            done, pending = wait(
                pending,
                timeout=min(remaining, poll_interval),
                return_when=FIRST_COMPLETED,
            )
            for future in done:
                result = _collect(future, submitted[future])
                if result is None:
                    continue
                checked += 1
                if result.is_broken:
                    broken.append(result)
    finally:
        stop.set()
        pool.shutdown(wait=False, cancel_futures=True)

    print(f"[PROBE] {checked}/{len(links)} link(s) checked, {len(broken)} broken.")
    return broken
