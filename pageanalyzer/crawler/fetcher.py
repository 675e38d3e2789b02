"""HTTP fetcher for the target page, with transport-failure classification."""

from __future__ import annotations

import socket
import ssl
from typing import Iterator

import httpx

from pageanalyzer.config import DEFAULT_USER_AGENT
from pageanalyzer.crawler.errors import InputError, TransportError, TransportFailure
from pageanalyzer.crawler.models import FetchedPage

# ---------------------------------------------------------------------------
# Failure classification
# ---------------------------------------------------------------------------
_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "no address associated",
    "temporary failure in name resolution",
    "no such host",
)
_REFUSED_MARKERS = ("connection refused", "errno 111", "errno 61", "winerror 10061")
_TLS_MARKERS = ("certificate", "[ssl", "ssl:", "tlsv1")


def browser_headers(user_agent: str = DEFAULT_USER_AGENT) -> dict[str, str]:
    """Headers that make the request look like a desktop browser page load."""
    return {
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
        "Accept-Encoding": "gzip, deflate",
        "Upgrade-Insecure-Requests": "1",
    }


def _exception_chain(exc: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def classify_failure(exc: Exception) -> TransportFailure:
    """Map an ``httpx`` exception onto a :class:`TransportFailure`.

    httpx wraps the underlying socket error, so the chain is inspected first
    for the original OS-level exception; the message is the fallback.
    """
    if isinstance(exc, httpx.TimeoutException):
        return TransportFailure.TIMEOUT

    for err in _exception_chain(exc):
        if isinstance(err, socket.gaierror):
            return TransportFailure.HOST_NOT_FOUND
        if isinstance(err, ConnectionRefusedError):
            return TransportFailure.CONNECTION_REFUSED
        if isinstance(err, ssl.SSLError):
            return TransportFailure.TLS

    message = str(exc).lower()
    if any(marker in message for marker in _DNS_MARKERS):
        return TransportFailure.HOST_NOT_FOUND
    if any(marker in message for marker in _REFUSED_MARKERS):
        return TransportFailure.CONNECTION_REFUSED
    if any(marker in message for marker in _TLS_MARKERS):
        return TransportFailure.TLS
    if "timed out" in message:
        return TransportFailure.TIMEOUT
    return TransportFailure.NETWORK


def _transport_error(url: str, exc: Exception, timeout: float) -> TransportError:
    reason = classify_failure(exc)
    if reason is TransportFailure.HOST_NOT_FOUND:
        detail = f"website not found: {url} does not exist"
    elif reason is TransportFailure.CONNECTION_REFUSED:
        detail = f"connection refused: {url} is not accepting connections"
    elif reason is TransportFailure.TLS:
        detail = f"SSL certificate error: {url} has invalid certificate"
    elif reason is TransportFailure.TIMEOUT:
        detail = f"website timeout: {url} took too long to respond (>{timeout:g}s)"
    else:
        detail = f"network error: {str(exc) or type(exc).__name__}"
    return TransportError(detail, reason=reason)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def fetch_page(
    url: str,
    timeout: float = 60.0,
    user_agent: str = DEFAULT_USER_AGENT,
) -> FetchedPage:
    """GET *url* and return its body as a :class:`FetchedPage`.

    Redirects are followed; the final URL becomes the page's ``base_url``.
    gzip bodies are decompressed by httpx according to ``Content-Encoding``.
    No retries happen here.

    Raises:
        TransportError: DNS, refused connection, TLS, timeout, generic network
            failure, or a response status of 400 or above.
        InputError: The host cannot be encoded for the connection.
    """
    try:
        with httpx.Client(
            headers=browser_headers(user_agent),
            timeout=timeout,
            follow_redirects=True,
        ) as client:
            response = client.get(url)
            content = response.content
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise _transport_error(url, exc, timeout) from exc
    except (UnicodeError, ValueError) as exc:
        raise InputError(f"invalid URL: {url!r} ({exc})") from exc

    if response.status_code >= 400:
        raise TransportError(
            f"website error: {url} returned {response.status_code} {response.reason_phrase}",
            reason=TransportFailure.HTTP_STATUS,
            status_code=response.status_code,
        )

    return FetchedPage(
        url=url,
        base_url=str(response.url),
        content=content,
        status_code=response.status_code,
        encoding=response.charset_encoding,
        content_type=response.headers.get("Content-Type", ""),
    )
