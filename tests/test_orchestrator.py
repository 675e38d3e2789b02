"""End-to-end tests for ``PageAnalyzer.analyze``.

Mocking strategy:
- ``respx`` mocks both the page GET and every link HEAD, so the whole
  fetch → parse → classify → probe pipeline runs without a network.
- Deadlines are injected through :class:`CrawlConfig` so the timeout tests
  run in well under a second.
"""

from __future__ import annotations

import threading
import time
from dataclasses import replace

import httpx
import pytest
import respx

from pageanalyzer.config import Settings
from pageanalyzer.crawler import (
    CrawlConfig,
    CrawlResult,
    InputError,
    PageAnalyzer,
    ParseError,
    TransportError,
    TransportFailure,
    analyze,
)
from pageanalyzer.crawler.orchestrator import normalise_target

_URL = "https://example.com/"

_PAGE = """\
<!DOCTYPE html>
<html>
<head><title>  Test Page  </title></head>
<body>
  <h1>Main Heading</h1>
  <h2>Sub 1</h2><h2>Sub 2</h2>
  <h3>Sub Sub</h3>
  <form action="/login" method="post">
    <input type="text" name="user">
    <input type="password" name="password">
  </form>
  <a href="/internal">Internal</a>
  <a href="https://external.com">External</a>
  <a href="/broken">Broken</a>
  <a href="mailto:admin@example.com">Mail</a>
  <a href="javascript:void(0)">JS</a>
</body>
</html>
"""

_LEGACY_PAGE = """\
<!DOCTYPE HTML PUBLIC "-//W3C//DTD HTML 4.01//EN" "http://www.w3.org/TR/html4/strict.dtd">
<html><head><title>Old</title></head><body><p>No links at all.</p></body></html>
"""


def _analyzer(**overrides) -> PageAnalyzer:
    config = CrawlConfig(analysis_timeout=5.0, fetch_timeout=5.0, probe_timeout=2.0)
    return PageAnalyzer(replace(config, **overrides))


def _html(body: str) -> httpx.Response:
    return httpx.Response(200, text=body, headers={"Content-Type": "text/html; charset=utf-8"})


# ---------------------------------------------------------------------------
# Successful analyses
# ---------------------------------------------------------------------------

class TestAnalyze:
    def test_full_analysis(self) -> None:
        with respx.mock:
            respx.get(_URL).mock(return_value=_html(_PAGE))
            respx.head("https://example.com/internal").mock(return_value=httpx.Response(200))
            respx.head("https://example.com/broken").mock(return_value=httpx.Response(404))
            respx.head(host="external.com").mock(return_value=httpx.Response(200))
            result = _analyzer().analyze(_URL)

        assert isinstance(result, CrawlResult)
        assert result.url == _URL
        assert result.title == "Test Page"
        assert result.html_version == "HTML5"
        assert (result.h1_count, result.h2_count, result.h3_count) == (1, 2, 1)
        assert result.has_login_form is True
        assert result.internal_links == 2
        assert result.external_links == 1
        assert len(result.broken_links) == 1
        assert result.broken_links[0].url == "https://example.com/broken"
        assert result.broken_links[0].status_code == 404

    def test_unencodable_anchor_host_is_reported_broken(self) -> None:
        page = '<!doctype html><a href="http://a..b/">x</a><a href="/ok">ok</a>'
        with respx.mock:
            respx.get(_URL).mock(return_value=_html(page))
            respx.head("https://example.com/ok").mock(return_value=httpx.Response(200))
            respx.head("http://a..b/").mock(
                side_effect=UnicodeError(
                    "encoding with 'idna' codec failed (UnicodeError: label empty or too long)"
                )
            )
            result = _analyzer().analyze(_URL)

        assert (result.internal_links, result.external_links) == (1, 1)
        assert [link.url for link in result.broken_links] == ["http://a..b/"]
        assert result.broken_links[0].error_detail.startswith("Invalid URL: ")

    def test_base_element_sets_link_resolution(self) -> None:
        page = (
            '<!doctype html><head><base href="/docs/"></head>'
            '<a href="guide.html">g</a><a href="https://other.org/x">o</a>'
        )
        with respx.mock:
            respx.get(_URL).mock(return_value=_html(page))
            guide = respx.head("https://example.com/docs/guide.html").mock(
                return_value=httpx.Response(200)
            )
            respx.head("https://other.org/x").mock(return_value=httpx.Response(200))
            result = _analyzer().analyze(_URL)

        assert guide.called
        assert (result.internal_links, result.external_links) == (1, 1)

    def test_html_served_as_octet_stream_is_analyzed(self) -> None:
        with respx.mock:
            respx.get(_URL).mock(
                return_value=httpx.Response(
                    200,
                    content=b"<!doctype html><title>T</title><h1>x</h1>",
                    headers={"Content-Type": "application/octet-stream"},
                )
            )
            result = _analyzer().analyze(_URL)

        assert result.title == "T"
        assert result.h1_count == 1
        assert result.html_version == "HTML5"

    def test_legacy_doctype_page_without_links(self) -> None:
        with respx.mock:
            respx.get(_URL).mock(return_value=_html(_LEGACY_PAGE))
            result = _analyzer().analyze(_URL)
            assert len(respx.calls) == 1  # the page GET; no probes

        assert result.html_version == "HTML 4.01 Strict"
        assert result.internal_links == 0
        assert result.external_links == 0
        assert result.broken_links == []

    def test_every_link_200_means_no_broken_links(self) -> None:
        anchors = "".join(f'<a href="/p/{i}">{i}</a>' for i in range(25))
        with respx.mock:
            respx.get(_URL).mock(return_value=_html(f"<html><body>{anchors}</body></html>"))
            route = respx.head(url__startswith="https://example.com/p/").mock(
                return_value=httpx.Response(200)
            )
            result = _analyzer().analyze(_URL)

        assert route.call_count == 25
        assert result.internal_links == 25
        assert result.broken_links == []

    def test_repeated_analysis_gives_same_structure(self) -> None:
        with respx.mock:
            respx.get(_URL).mock(return_value=_html(_PAGE))
            respx.head(url__startswith="https://example.com/").mock(
                return_value=httpx.Response(200)
            )
            respx.head(host="external.com").mock(return_value=httpx.Response(200))
            analyzer = _analyzer()
            first = analyzer.analyze(_URL)
            second = analyzer.analyze(_URL)

        assert first.structure == second.structure
        assert (first.internal_links, first.external_links) == (
            second.internal_links,
            second.external_links,
        )

    def test_scheme_less_target_is_fetched_over_https(self) -> None:
        with respx.mock:
            route = respx.get(host="example.com").mock(
                return_value=_html("<title>Bare</title>")
            )
            result = _analyzer().analyze("example.com")

        assert route.calls.last.request.url.scheme == "https"
        assert result.url == "https://example.com"
        assert result.title == "Bare"

    def test_slow_probes_yield_partial_result_not_error(self) -> None:
        def head_handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.startswith("/slow"):
                time.sleep(1.5)
            return httpx.Response(404)

        page = '<a href="/dead">dead</a><a href="/slow/1">s</a><a href="/slow/2">s</a>'
        with respx.mock:
            respx.get(_URL).mock(return_value=_html(page))
            respx.head(url__startswith="https://example.com/").mock(side_effect=head_handler)
            started = time.monotonic()
            result = _analyzer(analysis_timeout=0.5, poll_interval=0.05).analyze(_URL)
            elapsed = time.monotonic() - started
            time.sleep(1.2)

        assert elapsed < 1.2
        assert result.internal_links == 3
        assert [b.url for b in result.broken_links] == ["https://example.com/dead"]

    def test_cancel_returns_partial_result(self) -> None:
        def head_handler(request: httpx.Request) -> httpx.Response:
            time.sleep(0.6)
            return httpx.Response(404)

        cancel = threading.Event()
        with respx.mock:
            respx.get(_URL).mock(return_value=_html('<a href="/a">a</a><a href="/b">b</a>'))
            respx.head(url__startswith="https://example.com/").mock(side_effect=head_handler)
            threading.Timer(0.15, cancel.set).start()
            result = _analyzer(poll_interval=0.05).analyze(_URL, cancel=cancel)
            time.sleep(0.7)

        assert result.internal_links == 2
        assert result.broken_links == []

    def test_module_level_analyze(self) -> None:
        with respx.mock:
            respx.get(_URL).mock(return_value=_html("<title>Hi</title>"))
            result = analyze(_URL, config=CrawlConfig(analysis_timeout=5.0))
        assert result.title == "Hi"

    def test_to_dict_uses_storage_column_names(self) -> None:
        with respx.mock:
            respx.get(_URL).mock(return_value=_html('<a href="/gone">x</a>'))
            respx.head("https://example.com/gone").mock(return_value=httpx.Response(404))
            data = _analyzer().analyze(_URL).to_dict()

        assert data["broken_links"] == 1
        assert data["broken_links_details"] == [
            {
                "link_url": "https://example.com/gone",
                "status_code": 404,
                "error_message": "404 Not Found",
            }
        ]
        assert data["html_version"] == "Unknown"


# ---------------------------------------------------------------------------
# Fatal failures
# ---------------------------------------------------------------------------

class TestAnalyzeFailures:
    def test_connection_refused(self) -> None:
        with respx.mock:
            respx.get(_URL).mock(side_effect=httpx.ConnectError("[Errno 111] Connection refused"))
            with pytest.raises(TransportError) as excinfo:
                _analyzer().analyze(_URL)

        assert excinfo.value.reason is TransportFailure.CONNECTION_REFUSED
        assert "connection refused" in excinfo.value.detail

    def test_page_http_error_aborts(self) -> None:
        with respx.mock:
            respx.get(_URL).mock(return_value=httpx.Response(500))
            with pytest.raises(TransportError) as excinfo:
                _analyzer().analyze(_URL)
        assert excinfo.value.status_code == 500

    def test_non_html_body_is_parse_error(self) -> None:
        with respx.mock:
            respx.get(_URL).mock(
                return_value=httpx.Response(
                    200, content=b"\x89PNG\r\n", headers={"Content-Type": "image/png"}
                )
            )
            with pytest.raises(ParseError):
                _analyzer().analyze(_URL)
            assert len(respx.calls) == 1

    @pytest.mark.parametrize(
        "target",
        [
            "",
            "   ",
            "ftp://example.com/file",
            "mailto:someone@example.com",
            "http://",
            "http://a..b/",
            "http://" + "a" * 64 + ".com/",
            "http://xn--a.com/",
        ],
    )
    def test_invalid_input_fails_before_network(self, target: str) -> None:
        with respx.mock(assert_all_called=False) as mock:
            with pytest.raises(InputError) as excinfo:
                _analyzer().analyze(target)
        assert len(mock.calls) == 0
        assert excinfo.value.kind == "invalid-input"


# ---------------------------------------------------------------------------
# Helpers and configuration
# ---------------------------------------------------------------------------

class TestNormaliseTarget:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("https://example.com/x", "https://example.com/x"),
            ("  http://example.com  ", "http://example.com"),
            ("example.com/path", "https://example.com/path"),
            ("localhost:8080/", "https://localhost:8080/"),
            ("//cdn.example.com", "https://cdn.example.com"),
        ],
    )
    def test_valid(self, raw: str, expected: str) -> None:
        assert normalise_target(raw) == expected


class TestCrawlConfig:
    def test_defaults(self) -> None:
        config = CrawlConfig()
        assert config.analysis_timeout == 90.0
        assert config.fetch_timeout == 60.0
        assert config.probe_concurrency == 10

    def test_from_settings(self) -> None:
        source = Settings(
            analysis_timeout=3.0,
            fetch_timeout=2.0,
            probe_timeout=1.0,
            probe_concurrency=4,
            probe_poll_interval=0.01,
            user_agent="UA/1",
            worker_count=1,
        )
        config = CrawlConfig.from_settings(source)
        assert config == CrawlConfig(
            analysis_timeout=3.0,
            fetch_timeout=2.0,
            probe_timeout=1.0,
            probe_concurrency=4,
            poll_interval=0.01,
            user_agent="UA/1",
        )

    def test_settings_read_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("PROBE_CONCURRENCY", "3")
        monkeypatch.setenv("ANALYSIS_TIMEOUT", "12.5")
        fresh = Settings()
        assert fresh.probe_concurrency == 3
        assert fresh.analysis_timeout == 12.5
