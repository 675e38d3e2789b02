"""Structural extraction: turns a :class:`FetchedPage` into a :class:`PageStructure`."""

from __future__ import annotations

import re
from typing import List, Optional, Tuple

from bs4 import BeautifulSoup, Doctype
from bs4.builder import ParserRejectedMarkup

from pageanalyzer.crawler.errors import ParseError
from pageanalyzer.crawler.models import (
    HTML5,
    UNKNOWN_HTML_VERSION,
    FetchedPage,
    PageStructure,
)

_DOCTYPE_PREFIX = re.compile(r"^\s*doctype\s+", re.IGNORECASE)
_HTML5_DOCTYPE = re.compile(
    r"""html(\s+system\s+["']about:legacy-compat["'])?""", re.IGNORECASE
)
_PUBLIC_DTD = re.compile(
    r"-//(?:W3C|IETF)//DTD\s+(X?HTML)\s+([\d.]+)"
    r"(?:\s+(Strict|Transitional|Frameset|Final))?//",
    re.IGNORECASE,
)
# Public identifiers that name no variant but are the strict DTD.
_IMPLICIT_STRICT = {("HTML", "4.01"), ("HTML", "4.0")}
# Media families that are never markup; anything else is parsed as HTML.
_BINARY_MEDIA = ("image/", "audio/", "video/", "font/")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _is_binary_media(content_type: str) -> bool:
    media = content_type.split(";", 1)[0].strip().lower()
    return media.startswith(_BINARY_MEDIA)


def _find_doctype(soup: BeautifulSoup) -> Optional[str]:
    for item in soup.contents:
        if isinstance(item, Doctype):
            return str(item)
    return None


def classify_doctype(declaration: Optional[str]) -> str:
    """Return a version label such as ``"HTML5"`` or ``"HTML 4.01 Strict"``.

    A missing declaration and one that names no known DTD both yield
    ``"Unknown"``; neither is assumed to be HTML5.
    """
    if declaration is None:
        return UNKNOWN_HTML_VERSION

    decl = _DOCTYPE_PREFIX.sub("", declaration).strip()
    if _HTML5_DOCTYPE.fullmatch(decl):
        return HTML5

    match = _PUBLIC_DTD.search(decl)
    if match is None:
        return UNKNOWN_HTML_VERSION

    family = match.group(1).upper()
    version = match.group(2)
    variant = match.group(3).capitalize() if match.group(3) else None
    if variant is None and (family, version) in _IMPLICIT_STRICT:
        variant = "Strict"
    if variant == "Final":
        variant = None
    return " ".join(part for part in (family, version, variant) if part)


def _base_href(soup: BeautifulSoup) -> Optional[str]:
    base = soup.find("base", href=True)
    return base["href"] if base is not None else None


def _has_password_input(soup: BeautifulSoup) -> bool:
    for form in soup.find_all("form"):
        for field in form.find_all("input"):
            if (field.get("type") or "").strip().lower() == "password":
                return True
    return False


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def parse_page(page: FetchedPage) -> Tuple[PageStructure, List[str]]:
    """Parse *page* and return its structure plus every anchor ``href``.

    The hrefs are returned verbatim and in document order; filtering and
    resolution happen in :mod:`pageanalyzer.crawler.classifier`.

    Raises:
        ParseError: The body is declared as image, audio, video or font data,
            or the parser rejected it outright.
    """
    if _is_binary_media(page.content_type):
        raise ParseError(
            f"parsing error: {page.url} is not an HTML document ({page.content_type})"
        )

    try:
        soup = BeautifulSoup(page.content, "html.parser", from_encoding=page.encoding)
    except ParserRejectedMarkup as exc:
        raise ParseError(
            f"parsing error: failed to parse HTML from {page.url}: {exc}"
        ) from exc

    title_tag = soup.find("title")
    title = title_tag.get_text().strip() if title_tag else ""

    structure = PageStructure(
        title=title,
        h1_count=len(soup.find_all("h1")),
        h2_count=len(soup.find_all("h2")),
        h3_count=len(soup.find_all("h3")),
        html_version=classify_doctype(_find_doctype(soup)),
        has_login_form=_has_password_input(soup),
        base_href=_base_href(soup),
    )
    raw_links = [a["href"] for a in soup.find_all("a", href=True)]
    return structure, raw_links
