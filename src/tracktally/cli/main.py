"""Typer CLI entrypoint and command definitions for tracktally."""

import asyncio
import datetime as dt
import json
from pathlib import Path

import typer

from tracktally.core.defaults import DEFAULT_DATA_DIR, TIMELINE_WINDOW_CHOICES

app = typer.Typer()


@app.callback()
def main(
    ctx: typer.Context,
    data_dir: str = typer.Option(DEFAULT_DATA_DIR, "--data-dir", help="Directory holding config.json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr"),
) -> None:
    """Categorize application activity and report where the time went."""
    from tracktally.core.logging import configure_logging

    configure_logging(verbose)
    ctx.obj = {"data_dir": Path(data_dir)}


# -- shared helpers -----------------------------------------------------------


def _config(ctx: typer.Context):
    from tracktally.core.config import TallyConfig

    return TallyConfig(ctx.obj["data_dir"])


def _fail(message: str) -> None:
    typer.echo(message, err=True)
    raise typer.Exit(code=1)


def _load_registry(ctx: typer.Context, registry: str | None):
    """Load the registry through the service so a missing file degrades to the default."""
    from tracktally.registry.service import FileRegistrySource, RegistryService

    cfg = _config(ctx)
    path = Path(registry) if registry else cfg.registry_path
    service = RegistryService(
        FileRegistrySource(path),
        timeout_seconds=cfg.registry_load_timeout_seconds,
    )
    return asyncio.run(service.initialize())


def _read_input(input_path: str, aw: bool):
    from tracktally.adapters.activitywatch.client import parse_aw_export
    from tracktally.core.store import read_activities

    path = Path(input_path)
    if not path.exists():
        _fail(f"File not found: {path}")
    try:
        return parse_aw_export(path) if aw else read_activities(path)
    except (ValueError, KeyError) as exc:
        _fail(f"Cannot read activities from {path}: {exc}")


def _resolve_zone(ctx: typer.Context, tz: str | None) -> str | None:
    """Pick --tz or the configured zone and fail cleanly on an unknown name."""
    from zoneinfo import ZoneInfoNotFoundError

    from tracktally.core.time import resolve_tz

    zone = tz or _config(ctx).timezone
    try:
        resolve_tz(zone)
    except (ZoneInfoNotFoundError, ValueError):
        _fail(f"Unknown timezone {zone!r}")
    return zone


def _parse_date(value: str, option: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError:
        _fail(f"{option} must be a date in YYYY-MM-DD format, got {value!r}")


def _parse_datetime(value: str, option: str) -> dt.datetime:
    try:
        return dt.datetime.fromisoformat(value)
    except ValueError:
        _fail(f"{option} must be an ISO-8601 timestamp, got {value!r}")


# -- classify -----------------------------------------------------------------


@app.command("classify")
def classify_cmd(
    ctx: typer.Context,
    input_path: str = typer.Option(..., "--input", help="Activities file (.json, .csv, .parquet)"),
    aw: bool = typer.Option(False, "--aw", help="Input is an ActivityWatch JSON export"),
    registry: str | None = typer.Option(None, help="Registry file (defaults to the configured one)"),
) -> None:
    """Print the category of every activity and the rule that decided it."""
    from tracktally.classify.classifier import Classifier

    intervals = _read_input(input_path, aw)
    classifier = Classifier(_load_registry(ctx, registry))

    for interval in intervals:
        result = classifier.resolve(interval)
        line = f"{interval.id}\t{interval.app_name}\t{result.category_id}\t{result.stage}"
        if result.is_ambiguous:
            line += f"\t(also: {', '.join(result.ambiguous_with)})"
        typer.echo(line)


# -- report -------------------------------------------------------------------
report_app = typer.Typer()
app.add_typer(report_app, name="report")


@report_app.command("hourly")
def report_hourly_cmd(
    ctx: typer.Context,
    input_path: str = typer.Option(..., "--input", help="Activities file"),
    date: str = typer.Option(..., help="Date in YYYY-MM-DD format"),
    aw: bool = typer.Option(False, "--aw", help="Input is an ActivityWatch JSON export"),
    registry: str | None = typer.Option(None, help="Registry file"),
    tz: str | None = typer.Option(None, "--tz", help="IANA timezone for the day (defaults to config)"),
    out: str | None = typer.Option(None, help="Write the hourly table to this CSV file"),
) -> None:
    """Show active time for each hour of one day."""
    from tracktally.aggregate.summary import build_hourly, format_duration
    from tracktally.report.export import export_hourly_csv

    day = _parse_date(date, "--date")
    zone = _resolve_zone(ctx, tz)
    intervals = _read_input(input_path, aw)
    reg = _load_registry(ctx, registry)

    try:
        entries = build_hourly(intervals, reg, day, tz=zone)
    except ValueError as exc:
        _fail(f"Cannot build hourly report: {exc}")

    for entry in entries:
        if entry.activity_seconds > 0:
            typer.echo(f"{entry.hour:02d}:00  {format_duration(entry.activity_seconds)}")

    if out:
        path = export_hourly_csv(entries, Path(out))
        typer.echo(f"Hourly report written to {path}")


@report_app.command("timeline")
def report_timeline_cmd(
    ctx: typer.Context,
    input_path: str = typer.Option(..., "--input", help="Activities file"),
    end: str | None = typer.Option(None, help="Window end as ISO-8601 (defaults to now)"),
    window: int | None = typer.Option(None, help=f"Window length in minutes, one of {TIMELINE_WINDOW_CHOICES}"),
    slot: int | None = typer.Option(None, help="Slot width in minutes"),
    aw: bool = typer.Option(False, "--aw", help="Input is an ActivityWatch JSON export"),
    registry: str | None = typer.Option(None, help="Registry file"),
) -> None:
    """Show the trailing activity window split into slots."""
    from tracktally.aggregate.summary import build_timeline, format_duration

    cfg = _config(ctx)
    window_minutes = window if window is not None else cfg.timeline_minutes
    slot_minutes = slot if slot is not None else cfg.timeline_slot_minutes
    if window_minutes not in TIMELINE_WINDOW_CHOICES:
        _fail(f"--window must be one of {TIMELINE_WINDOW_CHOICES}, got {window_minutes}")

    end_ts = _parse_datetime(end, "--end") if end else None
    intervals = _read_input(input_path, aw)
    reg = _load_registry(ctx, registry)

    try:
        timeline = build_timeline(
            intervals, reg, end=end_ts, window_minutes=window_minutes, slot_minutes=slot_minutes,
        )
    except ValueError as exc:
        _fail(f"Cannot build timeline: {exc}")

    for s in timeline.slots:
        typer.echo(f"{s.start:%H:%M}-{s.end:%H:%M}  {format_duration(s.activity_seconds)}")
    typer.echo(f"Total: {format_duration(timeline.total_seconds)}")


@report_app.command("summary")
def report_summary_cmd(
    ctx: typer.Context,
    input_path: str = typer.Option(..., "--input", help="Activities file"),
    date_from: str = typer.Option(..., "--from", help="Start date (YYYY-MM-DD)"),
    date_to: str | None = typer.Option(None, "--to", help="End date (YYYY-MM-DD, inclusive; defaults to --from)"),
    aw: bool = typer.Option(False, "--aw", help="Input is an ActivityWatch JSON export"),
    registry: str | None = typer.Option(None, help="Registry file"),
    tz: str | None = typer.Option(None, "--tz", help="IANA timezone for day boundaries"),
    fmt: str = typer.Option("text", "--format", help="Output format: text, json, csv, parquet"),
    out: str | None = typer.Option(None, help="Output file (required for csv and parquet)"),
) -> None:
    """Show per-category and per-app time for each day in a range."""
    from tracktally.aggregate.summary import build_daily_summaries, format_duration
    from tracktally.report.export import (
        export_summary_csv,
        export_summary_json,
        export_summary_parquet,
    )

    start = _parse_date(date_from, "--from")
    end = _parse_date(date_to, "--to") if date_to else start
    zone = _resolve_zone(ctx, tz)
    if fmt not in ("text", "json", "csv", "parquet"):
        _fail(f"Unsupported --format {fmt!r}")
    if fmt in ("csv", "parquet") and not out:
        _fail(f"--out is required for --format {fmt}")

    intervals = _read_input(input_path, aw)
    reg = _load_registry(ctx, registry)

    try:
        summaries = build_daily_summaries(intervals, reg, start, end, tz=zone)
    except ValueError as exc:
        _fail(f"Cannot build summary: {exc}")

    if fmt == "text":
        for summary in summaries:
            typer.echo(f"{summary.date}  total {format_duration(summary.total_active_seconds)}")
            for cat in summary.categories:
                typer.echo(
                    f"  {reg.name_for(cat.category_id):<16} "
                    f"{format_duration(cat.duration_seconds):>8}  {cat.percentage:5.1f}%"
                )
            if summary.skipped_intervals:
                typer.echo(f"  ({summary.skipped_intervals} malformed interval(s) skipped)")
        return

    if fmt == "json" and not out:
        typer.echo(json.dumps([s.model_dump(mode="json") for s in summaries], indent=2))
        return

    exporters = {
        "json": export_summary_json,
        "csv": export_summary_csv,
        "parquet": export_summary_parquet,
    }
    path = exporters[fmt](summaries, Path(out))
    typer.echo(f"Summary written to {path}")


# -- registry -----------------------------------------------------------------
registry_app = typer.Typer()
app.add_typer(registry_app, name="registry")


@registry_app.command("init")
def registry_init_cmd(
    ctx: typer.Context,
    out: str | None = typer.Option(None, help="Destination (.yaml or .json; defaults to config)"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
) -> None:
    """Write a starter registry with the built-in categories and common apps."""
    from tracktally.registry.store import example_registry, save_registry_file

    path = Path(out) if out else _config(ctx).registry_path
    if path.exists() and not force:
        _fail(f"{path} already exists (use --force to overwrite)")
    save_registry_file(example_registry(), path)
    typer.echo(f"Registry written to {path}")


@registry_app.command("show")
def registry_show_cmd(
    ctx: typer.Context,
    registry: str | None = typer.Option(None, help="Registry file"),
) -> None:
    """List categories with their colours and mapped patterns."""
    reg = _load_registry(ctx, registry)
    apps: dict[str, list[str]] = {}
    urls: dict[str, list[str]] = {}
    for m in reg.app_mappings:
        apps.setdefault(m.category_id, []).extend(m.display_names())
    for m in reg.url_mappings:
        urls.setdefault(m.category_id, []).extend(m.patterns)

    for cat in reg.categories():
        parent = f" (in {cat.parent_id})" if cat.parent_id else ""
        typer.echo(f"{cat.id:<16} {cat.name:<16} {cat.color}{parent}")
        if apps.get(cat.id):
            typer.echo(f"    apps: {', '.join(apps[cat.id])}")
        if urls.get(cat.id):
            typer.echo(f"    urls: {', '.join(urls[cat.id])}")


@registry_app.command("validate")
def registry_validate_cmd(
    ctx: typer.Context,
    registry: str | None = typer.Option(None, help="Registry file"),
) -> None:
    """Strictly load a registry file and report the first problem."""
    from tracktally.registry.snapshot import RegistryLoadError
    from tracktally.registry.store import load_registry_file

    path = Path(registry) if registry else _config(ctx).registry_path
    try:
        reg = load_registry_file(path)
    except RegistryLoadError as exc:
        _fail(f"Invalid registry: {exc}")
    typer.echo(
        f"OK: {len(reg)} categories, {len(reg.aliases)} app aliases, "
        f"{len(reg.url_patterns)} url patterns"
    )


@registry_app.command("map")
def registry_map_cmd(
    ctx: typer.Context,
    category: str = typer.Argument(..., help="Category id or display name"),
    pattern: str = typer.Argument(..., help="App alias list (A|B) or URL pattern"),
    url: bool = typer.Option(False, "--url", help="Add a URL pattern instead of an app alias"),
    remove: bool = typer.Option(False, "--remove", help="Remove the pattern instead of adding it"),
    registry: str | None = typer.Option(None, help="Registry file"),
) -> None:
    """Add or remove an app alias / URL pattern for a category."""
    from tracktally.core.types import resolve_category_ref
    from tracktally.registry.snapshot import RegistryError
    from tracktally.registry.store import load_registry_file, save_registry_file

    path = Path(registry) if registry else _config(ctx).registry_path
    try:
        reg = load_registry_file(path)
        category = resolve_category_ref(category, reg.name_to_id).category_id
        if url:
            reg = reg.without_url_pattern(category, pattern) if remove else reg.with_url_pattern(category, pattern)
        else:
            reg = reg.without_app_pattern(category, pattern) if remove else reg.with_app_pattern(category, pattern)
    except RegistryError as exc:
        _fail(str(exc))
    save_registry_file(reg, path)
    typer.echo(f"{'Removed' if remove else 'Added'} {pattern!r} for {category}")


# -- config -------------------------------------------------------------------
config_app = typer.Typer()
app.add_typer(config_app, name="config")


@config_app.command("show")
def config_show_cmd(ctx: typer.Context) -> None:
    """Print the resolved configuration as JSON."""
    cfg = _config(ctx)
    data = cfg.as_dict()
    data["registry_path"] = str(cfg.registry_path)
    typer.echo(json.dumps(data, indent=2))


@config_app.command("set")
def config_set_cmd(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Setting name"),
    value: str = typer.Argument(..., help="New value"),
) -> None:
    """Validate and persist a single setting."""
    cfg = _config(ctx)
    try:
        cfg.update({key: value})
    except ValueError as exc:
        _fail(str(exc))
    typer.echo(f"{key} = {cfg.as_dict()[key]}")
