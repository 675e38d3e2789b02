"""Page analyzer CLI.

Usage:
    python cli/main.py --help

Commands:
    analyze   → analyze one page synchronously and print the result
    batch     → push a file of URLs through the job worker
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from pageanalyzer.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any working directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import json
from dataclasses import replace
from typing import Optional

import typer

from pageanalyzer.crawler import CrawlConfig, CrawlError, CrawlResult, PageAnalyzer
from pageanalyzer.jobs import AnalysisWorker, JobStatus, JobStore

app = typer.Typer(
    name="page-analyzer",
    help="Analyze web pages: structure, link counts and broken links.",
    no_args_is_help=True,
)


def _build_config(timeout: Optional[float], concurrency: Optional[int]) -> CrawlConfig:
    config = CrawlConfig.from_settings()
    if timeout is not None:
        config = replace(config, analysis_timeout=timeout)
    if concurrency is not None:
        config = replace(config, probe_concurrency=concurrency)
    return config


def _echo_result(result: CrawlResult) -> None:
    typer.echo(f"[analyze] Title        : {result.title or '(none)'}")
    typer.echo(f"[analyze] HTML version : {result.html_version}")
    typer.echo(
        f"[analyze] Headings     : h1={result.h1_count}  "
        f"h2={result.h2_count}  h3={result.h3_count}"
    )
    typer.echo(f"[analyze] Login form   : {'yes' if result.has_login_form else 'no'}")
    typer.echo(
        f"[analyze] Links        : {result.internal_links} internal, "
        f"{result.external_links} external"
    )
    typer.echo(f"[analyze] Broken links : {len(result.broken_links)}")
    for broken in result.broken_links:
        status = broken.status_code if broken.status_code is not None else "---"
        typer.echo(f"  {status}  {broken.url}  ({broken.error_detail})")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
@app.command("analyze")
def analyze_cmd(
    url: str = typer.Option(..., help="URL of the page to analyze."),
    timeout: Optional[float] = typer.Option(
        None, help="Overall analysis deadline in seconds."
    ),
    concurrency: Optional[int] = typer.Option(
        None, help="Maximum number of links probed at once."
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON."),
) -> None:
    """Analyze a single page and print its structure and broken links."""
    analyzer = PageAnalyzer(_build_config(timeout, concurrency))
    try:
        result = analyzer.analyze(url)
    except CrawlError as exc:
        typer.echo(f"[analyze] {exc.kind}: {exc.detail}", err=True)
        raise typer.Exit(1)

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
    else:
        _echo_result(result)


@app.command("batch")
def batch_cmd(
    file: Path = typer.Option(..., "--file", help="Text file with one URL per line."),
    workers: Optional[int] = typer.Option(None, help="Number of worker threads."),
    timeout: Optional[float] = typer.Option(
        None, help="Overall analysis deadline in seconds, per page."
    ),
) -> None:
    """Queue every URL in FILE and analyze them with background workers."""
    if not file.exists():
        typer.echo(f"[batch] File not found: {file}", err=True)
        raise typer.Exit(1)

    urls = [line.strip() for line in file.read_text(encoding="utf-8").splitlines()]
    urls = [u for u in urls if u and not u.startswith("#")]
    if not urls:
        typer.echo("[batch] No URLs to analyze.")
        return

    store = JobStore()
    worker = AnalysisWorker(
        store=store,
        analyzer=PageAnalyzer(_build_config(timeout, None)),
        workers=workers,
    )
    for url in urls:
        worker.submit(url)
    typer.echo(f"[batch] Queued {len(urls)} URL(s).")

    worker.start()
    try:
        worker.join()
    finally:
        worker.stop()

    for job in store.list():
        if job.status is JobStatus.COMPLETED and job.result is not None:
            typer.echo(
                f"  ✓ {job.url}  {job.result.internal_links} internal, "
                f"{job.result.external_links} external, "
                f"{len(job.result.broken_links)} broken"
            )
        else:
            typer.echo(f"  ✗ {job.url}  {job.error_message}")

    stats = store.stats()
    typer.echo(
        f"[batch] {stats.completed} completed, {stats.error} error(s), "
        f"{stats.total_broken_links} broken link(s) in total."
    )
    if stats.error:
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
