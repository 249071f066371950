#!/usr/bin/env python3
"""TLEDelta command-line interface.

Usage::

    tledelta compare tle-data --from 2024-01-14 --to 2024-01-16
    tledelta compare https://example.org/tle-data --from 2024-01-01 --to 2024-01-31 --csv out.csv
    tledelta show tle-data 25544 --from 2024-01-14 --to 2024-01-16
    tledelta parse tle-data/2024-01-15/tle_000000.txt
"""
from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import box

from .config import EngineConfig
from .engine import compare_range
from .errors import InvalidRange
from .models import ComparisonResult, Diagnostic, SatelliteHistory
from .snapshots import open_source
from .tle_parser import decode_line1, parse_snapshot

console = Console()


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    """TLEDelta — genuine TLE changes from periodic catalog snapshots."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(name)s — %(message)s")


def _run(root, from_date, to_date, workers, timeout, progress=True) -> ComparisonResult:
    try:
        config = EngineConfig.from_env().with_overrides(
            max_workers=workers, fetch_timeout=timeout
        )
        return compare_range(
            open_source(root), from_date, to_date, config=config, progress=progress
        )
    except InvalidRange as exc:
        console.print(f"[red]Error: {exc}[/red]")
        sys.exit(2)
    except ValueError as exc:
        console.print(f"[red]Configuration error: {exc}[/red]")
        sys.exit(2)


@main.command()
@click.argument("root")
@click.option("--from", "from_date", required=True, help="First date (YYYY-MM-DD)")
@click.option("--to", "to_date", required=True, help="Last date (YYYY-MM-DD)")
@click.option("--workers", "-w", type=int, help="Concurrent fetches")
@click.option("--timeout", type=float, help="Per-file fetch timeout (seconds)")
@click.option("--limit", "-l", default=25, help="Rows to show in the satellite table")
@click.option("--json", "json_path", type=click.Path(), help="Save full results as JSON")
@click.option("--csv", "csv_path", type=click.Path(), help="Save satellite summary as CSV")
def compare(
    root: str,
    from_date: str,
    to_date: str,
    workers: int | None,
    timeout: float | None,
    limit: int,
    json_path: str | None,
    csv_path: str | None,
):
    """Compare snapshots under ROOT (directory or URL) over a date range."""
    result = _run(root, from_date, to_date, workers, timeout)

    _display_summary(result)
    if result.is_empty:
        console.print("[yellow]No satellite updates found in range.[/yellow]")
    else:
        _display_types(result)
        _display_satellites(result.satellites, limit)
    _display_diagnostics(result.diagnostics)

    if json_path:
        Path(json_path).write_text(json.dumps(result.to_dict(), indent=2))
        console.print(f"\nResults saved to {json_path}")
    if csv_path:
        result.to_dataframe().to_csv(csv_path, index=False)
        console.print(f"\nSummary saved to {csv_path}")


@main.command()
@click.argument("root")
@click.argument("norad_id")
@click.option("--from", "from_date", required=True, help="First date (YYYY-MM-DD)")
@click.option("--to", "to_date", required=True, help="Last date (YYYY-MM-DD)")
@click.option("--workers", "-w", type=int, help="Concurrent fetches")
@click.option("--timeout", type=float, help="Per-file fetch timeout (seconds)")
def show(
    root: str,
    norad_id: str,
    from_date: str,
    to_date: str,
    workers: int | None,
    timeout: float | None,
):
    """Show the change timeline of one satellite."""
    result = _run(root, from_date, to_date, workers, timeout)
    sat = result.get(norad_id.strip())
    if sat is None:
        console.print(f"[yellow]NORAD {norad_id} has no updates in range.[/yellow]")
        return

    _display_satellite(sat)


@main.command()
@click.argument("filepath", type=click.Path(exists=True, dir_okay=False))
def parse(filepath: str):
    """Parse a single snapshot file and list its records."""
    diagnostics: list[Diagnostic] = []
    path = Path(filepath)
    records = parse_snapshot(path.read_bytes(), path.name, diagnostics=diagnostics)
    console.print(f"Parsed {len(records)} record(s) from {filepath}")

    if records:
        table = Table(box=box.SIMPLE_HEAVY)
        table.add_column("NORAD", justify="right", no_wrap=True)
        table.add_column("Name")
        table.add_column("Epoch (UTC)", style="cyan")
        table.add_column("Inc (°)", justify="right")
        table.add_column("Ecc", justify="right")
        table.add_column("n (rev/day)", justify="right")
        for r in records:
            table.add_row(
                r.norad_id,
                r.name,
                f"{r.epoch_time:%Y-%m-%d %H:%M:%S}",
                f"{r.elements.inclination:.4f}",
                f"{r.elements.eccentricity:.7f}",
                f"{r.elements.mean_motion:.8f}",
            )
        console.print(table)

    _display_diagnostics(diagnostics)


def _display_summary(result: ComparisonResult):
    stats = result.summary()
    days = result.days
    console.print(
        Panel(
            f"Dates: {days[0]} → {days[-1]} ({len(days)} day(s))\n"
            f"Snapshots loaded: {stats['snapshots_loaded']}\n"
            f"Records parsed: {stats['records_parsed']}\n"
            f"Satellites with updates: [bold green]{stats['satellites']}[/bold green]\n"
            f"Total updates: {stats['total_updates']} "
            f"(mean {stats['mean_updates']:.2f}, "
            f"max {stats['max_updates']}, min {stats['min_updates']})"
            + ("\n[yellow]Run was cancelled; results are partial.[/yellow]"
               if result.cancelled else ""),
            title="Comparison Results",
            box=box.ROUNDED,
        )
    )


def _display_types(result: ComparisonResult):
    table = Table(title="Satellite Types", box=box.SIMPLE)
    table.add_column("Type", style="bold")
    table.add_column("Satellites", justify="right")
    for name, count in result.type_breakdown().items():
        table.add_row(name, str(count))
    console.print(table)


def _display_satellites(satellites: list[SatelliteHistory], limit: int):
    table = Table(box=box.SIMPLE_HEAVY, show_lines=True)
    table.add_column("NORAD", justify="right", no_wrap=True)
    table.add_column("Name")
    table.add_column("Type", style="bold")
    table.add_column("Updates", justify="right", style="green")
    table.add_column("Last update (UTC)", style="cyan")
    table.add_column("Inc (°)", justify="right")
    table.add_column("Ecc", justify="right")
    table.add_column("n (rev/day)", justify="right")

    for sat in satellites[:limit]:
        table.add_row(
            sat.norad_id,
            sat.name,
            sat.type.value,
            str(sat.update_count),
            f"{sat.last_updated:%Y-%m-%d %H:%M:%S}",
            f"{sat.inclination:.4f}",
            f"{sat.eccentricity:.7f}",
            f"{sat.mean_motion:.8f}",
        )

    if len(satellites) > limit:
        console.print(f"(showing {limit} of {len(satellites)} satellites)")
    console.print(table)


def _display_satellite(sat: SatelliteHistory):
    try:
        header = decode_line1(sat.latest.line1)
    except ValueError:
        header = {}
    bstar = header.get("bstar")
    elements = sat.latest.elements
    console.print(
        Panel(
            f"[bold]{sat.name}[/bold] (NORAD {sat.norad_id}) — {sat.type.value}\n"
            f"International designator: {header.get('intl_designator') or '—'}\n"
            f"Classification: {header.get('classification') or '—'}\n"
            f"Latest epoch: {sat.latest.epoch_time:%Y-%m-%d %H:%M:%S} UTC\n"
            f"Altitude: {elements.altitude:.1f} km  "
            f"Period: {elements.period / 60:.2f} min\n"
            f"Inclination: {elements.inclination:.4f}°  "
            f"Eccentricity: {elements.eccentricity:.7f}  "
            f"B*: {'—' if bstar is None else f'{bstar:.4e}'}\n"
            f"Updates: [bold green]{sat.update_count}[/bold green]",
            title="Satellite",
            box=box.ROUNDED,
        )
    )

    table = Table(title="Change Timeline", box=box.SIMPLE_HEAVY)
    table.add_column("Date", style="cyan")
    table.add_column("Time")
    table.add_column("Source")
    table.add_column("Line 1 / Line 2", no_wrap=True)
    for u in sat.updates:
        table.add_row(u.date, u.time, u.source_filename, f"{u.line1}\n{u.line2}")
    console.print(table)

    activity = sat.hourly_activity()
    busiest = ", ".join(f"{h:02d}h×{activity[h]}" for h in activity.nonzero()[0])
    console.print(f"Updates by UTC hour: {busiest}")


def _display_diagnostics(diagnostics: list[Diagnostic]):
    if not diagnostics:
        return

    table = Table(title="Skipped", box=box.SIMPLE, title_style="yellow")
    table.add_column("Kind", style="yellow", no_wrap=True)
    table.add_column("Date")
    table.add_column("File")
    table.add_column("Detail")
    for d in diagnostics[:50]:
        table.add_row(
            d.kind.name,
            d.day.isoformat() if d.day else "",
            d.filename or "",
            d.message,
        )

    if len(diagnostics) > 50:
        console.print(f"(showing 50 of {len(diagnostics)} diagnostics)")
    console.print(table)


if __name__ == "__main__":
    main()
