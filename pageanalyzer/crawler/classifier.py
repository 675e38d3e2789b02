"""Resolve raw hrefs against the page URL and tag them internal / external."""

from __future__ import annotations

from typing import List, Optional
from urllib.parse import SplitResult, urljoin, urlsplit

from pageanalyzer.crawler.models import ClassifiedLink, LinkScope

_HTTP_SCHEMES = ("http", "https")
_DEFAULT_PORTS = {"http": 80, "https": 443}


def host_key(parts: SplitResult) -> Optional[str]:
    """Return the lower-cased host, plus the port when it is not the scheme default.

    ``None`` means the URL has no usable host (or an invalid port).
    """
    try:
        hostname = parts.hostname
        port = parts.port
    except ValueError:
        return None
    if not hostname:
        return None
    if port is None or port == _DEFAULT_PORTS.get(parts.scheme):
        return hostname
    return f"{hostname}:{port}"


def resolve_link(href: str, base: str) -> Optional[str]:
    """Resolve *href* against *base*; ``None`` if it is not an http(s) link."""
    href = href.strip()
    if not href:
        return None
    try:
        absolute = urljoin(base, href)
        parts = urlsplit(absolute)
    except ValueError:
        return None
    if parts.scheme.lower() not in _HTTP_SCHEMES or host_key(parts) is None:
        return None
    return absolute


def classify_links(
    raw_links: List[str],
    base: str,
    document_base: Optional[str] = None,
) -> List[ClassifiedLink]:
    """Turn the hrefs found on a page into :class:`ClassifiedLink` objects.

    Hrefs resolve against *document_base* (the page's <base href>) when
    given, otherwise against *base*.  Scope is always judged against the
    host of *base*, the page itself.

    Order is preserved and duplicates are kept: a link that appears twice in
    the markup is counted and probed twice.  mailto:, tel:, javascript:,
    empty and unparseable hrefs are dropped.
    """
    base_host = host_key(urlsplit(base))
    links: List[ClassifiedLink] = []
    for href in raw_links:
        absolute = resolve_link(href, document_base or base)
        if absolute is None:
            continue
        scope = (
            LinkScope.INTERNAL
            if host_key(urlsplit(absolute)) == base_host
            else LinkScope.EXTERNAL
        )
        links.append(ClassifiedLink(url=absolute, scope=scope))

    internal = sum(1 for link in links if link.is_internal)
    print(
        f"[CLASSIFY] {len(links)} link(s): {internal} internal, "
        f"{len(links) - internal} external ({len(raw_links) - len(links)} skipped)."
    )
    return links
