# ec_index/cli/runner.py

"""Headless CLI commands that drive the collection pipeline."""

import asyncio
import logging
from datetime import date

from rich.console import Console
from rich.table import Table

from ec_index.config.benchmarks import get_benchmarks
from ec_index.models.collection_result import CollectionStatus
from ec_index.services.pipeline import Pipeline, RunSummary

logger = logging.getLogger("ec_index.cli")

# Stderr console for status messages so stdout stays clean
_err = Console(stderr=True)


def resolve_benchmarks(code_csv: str | None) -> list[str]:
    """Map a comma-separated list of benchmark codes to known codes.

    Returns all benchmarks when *code_csv* is ``None``.
    Raises ``SystemExit`` on unknown codes.
    """
    available = get_benchmarks()
    if code_csv is None:
        return list(available)

    requested = [c.strip() for c in code_csv.split(",") if c.strip()]
    unknown = [c for c in requested if c not in available]
    if unknown:
        _err.print(
            f"[red]Unknown benchmark(s): {', '.join(unknown)}[/red]"
        )
        _err.print(f"[dim]Available: {', '.join(sorted(available))}[/dim]")
        raise SystemExit(1)
    return requested


def _status_cell(status: CollectionStatus) -> str:
    if status is CollectionStatus.COMPLETED:
        return "[green]completed[/green]"
    if status is CollectionStatus.SKIPPED_UNCONFIGURED:
        return "[yellow]skipped[/yellow]"
    return "[red]failed[/red]"


def print_summary(summary: RunSummary) -> None:
    """Render a Rich table of per-platform outcomes plus totals."""
    table = Table(
        title="Collection Summary",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Benchmark", style="bold")
    table.add_column("Platform", style="magenta")
    table.add_column("Status", justify="center")
    table.add_column("Valid", justify="right", style="green")
    table.add_column("Avg price", justify="right")
    table.add_column("Errors", justify="right")

    for run in summary.runs:
        averages = {p.platform: p.average_price for p in run.points}
        if not run.results:
            table.add_row(run.code, "-", "[red]failed[/red]", "0", "-", "1")
        for result in run.results:
            avg = averages.get(result.platform)
            table.add_row(
                run.code,
                result.platform.display_name,
                _status_cell(result.status),
                str(result.valid_count),
                f"€ {avg:,.2f}" if avg is not None else "-",
                str(len(result.errors)) if not result.skipped else "-",
            )

    Console().print(table)
    for run in summary.runs:
        if run.error:
            _err.print(f"[red]{run.error}[/red]")
    _err.print(
        f"[bold]Total valid products:[/bold] {summary.total_valid:,}  "
        f"[bold]Errors:[/bold] {summary.error_count}  "
        f"[bold]Duration:[/bold] {summary.duration_seconds:.1f}s"
    )


def run_collection(code_csv: str | None) -> int:
    """Collect, aggregate and export; exit 1 if any benchmark failed."""
    codes = resolve_benchmarks(code_csv)
    _err.print(f"[bold]Collecting:[/bold] {', '.join(codes)}")

    pipeline = Pipeline()
    try:
        summary = asyncio.run(pipeline.run_all(codes))
    finally:
        pipeline.close()

    print_summary(summary)
    return 1 if summary.failed else 0


def run_export(code_csv: str | None) -> int:
    """Regenerate export files from stored history."""
    codes = resolve_benchmarks(code_csv)
    pipeline = Pipeline()
    bundles = pipeline.export_all(codes)

    exported = 0
    for code, bundle in bundles.items():
        if bundle is None:
            _err.print(f"[yellow]{code}: no history to export[/yellow]")
            continue
        exported += 1
        _err.print(
            f"[green]✓ {code}[/green] "
            f"[dim]{len(bundle.series)} series, "
            f"{bundle.metadata.sample_size}, "
            f"updated {bundle.metadata.last_updated}[/dim]"
        )
    return 0 if exported else 1


def run_reaggregate(day: str, code_csv: str | None) -> int:
    """Rebuild one day's history points from saved raw dumps."""
    try:
        date.fromisoformat(day)
    except ValueError:
        _err.print(f"[red]Invalid date {day!r}, expected YYYY-MM-DD[/red]")
        return 2
    codes = resolve_benchmarks(code_csv)
    pipeline = Pipeline()
    summary = pipeline.reaggregate(day, codes)
    for run in summary.runs:
        if run.error:
            _err.print(f"[red]{run.error}[/red]")
        else:
            _err.print(
                f"[green]✓ {run.code}[/green] "
                f"[dim]{len(run.points)} points rebuilt for {day}[/dim]"
            )
    return 1 if summary.failed else 0


def run_schedule() -> int:
    """Run the scheduler in the foreground until interrupted."""
    from ec_index.services.scheduler import Scheduler

    scheduler = Scheduler()
    scheduler.register_jobs()
    _err.print(
        f"[bold]Scheduler running[/bold] "
        f"[dim]next collection {scheduler.next_run()}; Ctrl+C to stop[/dim]"
    )
    try:
        scheduler.run_forever()
    except KeyboardInterrupt:
        scheduler.stop()
        _err.print("[dim]Scheduler stopped[/dim]")
    finally:
        scheduler.pipeline.close()
    return 0


def list_benchmarks() -> int:
    """Print the benchmark catalogue."""
    table = Table(
        title="Benchmarks",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Code", style="bold")
    table.add_column("Name")
    table.add_column("Platforms", style="magenta")
    table.add_column("Queries", justify="right")
    table.add_column("Price range", justify="right")
    table.add_column("Export", style="dim")

    for config in get_benchmarks().values():
        low = f"{config.price_min:g}" if config.price_min is not None else ""
        high = f"{config.price_max:g}" if config.price_max is not None else ""
        table.add_row(
            config.code,
            config.name,
            ", ".join(config.platforms),
            str(len(config.search_queries)),
            f"€ {low}-{high}" if low or high else "-",
            f"{config.slug}.json",
        )
    Console().print(table)
    return 0


async def run_health_check() -> int:
    """Run connectivity health check on all collectors."""
    from ec_index.services.health_checker import HealthChecker

    _err.print("[bold]Running collector health check...[/bold]")
    checker = HealthChecker()
    results = await checker.check_all()

    table = Table(
        title="Collector Health Check",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Collector", style="bold")
    table.add_column("Status", justify="center")
    table.add_column("Latency", justify="right")
    table.add_column("Notes", style="dim")

    any_down = False
    for r in results:
        if r.status == "ok":
            status = "[green]✅ OK[/green]"
        elif r.status == "slow":
            status = "[yellow]⚠️  SLOW[/yellow]"
        elif r.status == "unconfigured":
            status = "[dim]— NOT CONFIGURED[/dim]"
        elif r.status == "blocked":
            status = "[yellow]⛔ BLOCKED[/yellow]"
        else:
            status = "[red]❌ DOWN[/red]"
            any_down = True

        latency = (
            f"{r.latency_ms:.0f}ms"
            if r.latency_ms > 0
            else "—"
        )
        table.add_row(
            r.collector_id, status, latency, r.message,
        )

    Console().print(table)
    return 1 if any_down else 0
