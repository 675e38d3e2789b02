"""Data models for the page-analysis pipeline.

These are plain dataclasses handed from one stage to the next:

    FetchedPage → (PageStructure, raw hrefs) → ClassifiedLink → LinkCheckResult
                                                              ↘ CrawlResult
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

HTML5 = "HTML5"
UNKNOWN_HTML_VERSION = "Unknown"


class LinkScope(str, Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"


@dataclass
class FetchedPage:
    """The raw body of the target page and the URL it was finally served from."""

    url: str
    base_url: str
    content: bytes
    status_code: int = 200
    encoding: Optional[str] = None
    content_type: str = ""

    @classmethod
    def from_html(cls, url: str, html: str) -> FetchedPage:
        """Build a page from an in-memory HTML string (tests, CLI piping)."""
        return cls(url=url, base_url=url, content=html.encode("utf-8"), encoding="utf-8")


@dataclass(frozen=True)
class PageStructure:
    title: str = ""
    h1_count: int = 0
    h2_count: int = 0
    h3_count: int = 0
    html_version: str = UNKNOWN_HTML_VERSION
    has_login_form: bool = False
    # href of the document's <base> element, if it declares one.
    base_href: Optional[str] = None


@dataclass(frozen=True)
class ClassifiedLink:
    url: str
    scope: LinkScope

    @property
    def is_internal(self) -> bool:
        return self.scope is LinkScope.INTERNAL


@dataclass(frozen=True)
class LinkCheckResult:
    """Outcome of probing one link.

    ``ok`` is ``True`` for a probe that completed with a status below 400.
    Otherwise ``error_detail`` says what went wrong and ``status_code`` is set
    when the server did answer.
    """

    url: str
    ok: bool
    status_code: Optional[int] = None
    error_detail: str = ""

    @property
    def is_broken(self) -> bool:
        return not self.ok

    def to_dict(self) -> dict[str, Any]:
        return {
            "link_url": self.url,
            "status_code": self.status_code,
            "error_message": self.error_detail or None,
        }


@dataclass
class CrawlResult:
    """Everything one analysis produced, ready for the storage layer."""

    url: str
    title: str
    html_version: str
    h1_count: int
    h2_count: int
    h3_count: int
    has_login_form: bool
    internal_links: int
    external_links: int
    broken_links: List[LinkCheckResult] = field(default_factory=list)

    @classmethod
    def assemble(
        cls,
        url: str,
        structure: PageStructure,
        links: List[ClassifiedLink],
        broken: List[LinkCheckResult],
    ) -> CrawlResult:
        internal = sum(1 for link in links if link.is_internal)
        return cls(
            url=url,
            title=structure.title,
            html_version=structure.html_version,
            h1_count=structure.h1_count,
            h2_count=structure.h2_count,
            h3_count=structure.h3_count,
            has_login_form=structure.has_login_form,
            internal_links=internal,
            external_links=len(links) - internal,
            broken_links=list(broken),
        )

    @property
    def structure(self) -> PageStructure:
        return PageStructure(
            title=self.title,
            h1_count=self.h1_count,
            h2_count=self.h2_count,
            h3_count=self.h3_count,
            html_version=self.html_version,
            has_login_form=self.has_login_form,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the column names used by the results tables."""
        return {
            "url": self.url,
            "html_version": self.html_version,
            "title": self.title,
            "h1_count": self.h1_count,
            "h2_count": self.h2_count,
            "h3_count": self.h3_count,
            "internal_links": self.internal_links,
            "external_links": self.external_links,
            "broken_links": len(self.broken_links),
            "has_login_form": self.has_login_form,
            "broken_links_details": [b.to_dict() for b in self.broken_links],
        }
