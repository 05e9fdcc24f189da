"""CLI for chart-intake using Typer and Rich."""

from __future__ import annotations

import asyncio
import logging
from enum import StrEnum
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from chart_intake.config import Config
from chart_intake.console import make_table, print_error, print_json, print_success, print_warning, set_console
from chart_intake.console import print as cprint
from chart_intake.dates_cache import AvailableDatesCache
from chart_intake.dedup import check_duplicates, get_default_policy
from chart_intake.errors import ChartIntakeError
from chart_intake.jobs import SourceJobs
from chart_intake.log_setup import configure_rich_logging
from chart_intake.models import ChartPeriod, ChartType, IngestionResult, SourceKind
from chart_intake.policy import UploadAction
from chart_intake.sources.flatfile import ChartRequest
from chart_intake.store import SqliteChartStore, UploadStatus
from chart_intake.uploads import UploadService

logger = logging.getLogger(__name__)


class OutputFormat(StrEnum):
    """Output format for CLI commands."""

    TEXT = "text"
    JSON = "json"


class ExitCode:
    """Standard exit codes for CLI commands."""

    SUCCESS = 0
    ERROR = 1
    NO_RESULTS = 2


app = typer.Typer(
    name="chart-intake",
    help="Chart-Intake: ingest ranked chart snapshots into a chart store",
    no_args_is_help=True,
    add_completion=False,
)


# Global state (set by callback)
class AppState:
    """Global application state passed between commands."""

    config: Config
    output_format: OutputFormat
    verbose: int


state = AppState()


def _store() -> SqliteChartStore:
    return SqliteChartStore(state.config.database.path)


def _print_result(result: IngestionResult) -> None:
    cprint(
        f"  Artists: {result.artists_created} created\n"
        f"  Tracks: {result.tracks_created} created, {result.tracks_updated} updated\n"
        f"  Entries: {result.entries_created} created, {result.entries_updated} updated\n"
        f"  Skipped rows: {result.skipped_rows}"
    )
    for error in result.errors:
        print_warning(error)


@app.callback()
def main(
    config_path: Annotated[
        Path | None,
        typer.Option("--config", help="Path to configuration TOML file", exists=True),
    ] = None,
    db: Annotated[Path | None, typer.Option("--db", help="Chart database path")] = None,
    output: Annotated[
        OutputFormat,
        typer.Option("--output", "-o", help="Output format"),
    ] = OutputFormat.TEXT,
    verbose: Annotated[
        int,
        typer.Option("--verbose", "-v", count=True, help="Increase verbosity"),
    ] = 0,
) -> None:
    """Chart-Intake: ingest ranked chart snapshots into a chart store."""
    cfg = Config.load(config_path)

    # CLI > Env > Config File > Defaults
    if db:
        cfg.database.path = db

    if verbose >= 2:
        log_level = logging.DEBUG
    elif verbose == 1:
        log_level = logging.INFO
    else:
        log_level = getattr(logging, cfg.logging.level.upper(), logging.WARNING)

    configure_rich_logging(level=log_level, format_string=cfg.logging.format)
    set_console(Console())

    # Suppress external library logging unless very verbose (-vvv)
    if verbose < 3:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    if config_path:
        logger.info(f"Loaded config from {config_path}")

    state.config = cfg
    state.output_format = output
    state.verbose = verbose


# ====================================================================
# INGESTION COMMANDS
# ====================================================================


@app.command()
def upload(
    files: Annotated[
        list[Path],
        typer.Argument(help="Chart CSV files named {chartType}-{region}-{period}-{date}.csv", exists=True),
    ],
    action: Annotated[
        UploadAction | None,
        typer.Option(help="Duplicate action (default from config: ask)"),
    ] = None,
    yes: Annotated[
        bool, typer.Option("--yes", "-y", help="Do not ask; resolve 'ask' as replace")
    ] = False,
) -> None:
    """Upload chart CSV files."""
    config = state.config
    chosen = action or get_default_policy(SourceKind.CSV_UPLOAD, config.dedup)
    store = _store()
    service = UploadService(
        store,
        dates_cache=AvailableDatesCache(store, config.cache.available_dates_ttl_seconds),
        batch_size=config.ingest.batch_size,
        fan_out=config.ingest.fan_out,
    )

    payload = [(path.name, path.read_text(encoding="utf-8")) for path in files]
    outcomes = asyncio.run(service.upload_files(payload, action=chosen, unattended=yes))

    if state.output_format == OutputFormat.JSON:
        print_json([o.to_dict() for o in outcomes])
    else:
        for outcome in outcomes:
            if outcome.duplicate and outcome.duplicate_info:
                print_warning(f"{outcome.file_name}: {outcome.error}")
                for entry in outcome.duplicate_info.sample_entries:
                    cprint(f"    #{entry.position} {entry.artist_name} - {entry.track_name}")
                cprint("  Re-run with --action skip/update/replace or --yes")
            elif outcome.skipped:
                print_warning(f"{outcome.file_name}: scope already ingested, skipped")
            elif outcome.success:
                print_success(f"{outcome.file_name}: {outcome.status}")
                if outcome.result:
                    _print_result(outcome.result)
            else:
                print_error(f"{outcome.file_name}: {outcome.error}")

    if any(o.duplicate for o in outcomes):
        raise typer.Exit(code=ExitCode.NO_RESULTS)
    if not all(o.success for o in outcomes):
        raise typer.Exit(code=ExitCode.ERROR)


def _run_job(job_name: str, run) -> None:
    store = _store()
    jobs = SourceJobs(
        store,
        state.config,
        dates_cache=AvailableDatesCache(store, state.config.cache.available_dates_ttl_seconds),
    )
    try:
        report = asyncio.run(run(jobs))
    except (ChartIntakeError, ValueError) as e:
        print_error(f"{job_name}: {e}")
        raise typer.Exit(code=ExitCode.ERROR) from e
    finally:
        jobs.close()

    if state.output_format == OutputFormat.JSON:
        print_json(report.to_dict())
    elif report.skipped:
        print_warning(f"{report.label}: scope already ingested, skipped")
    elif report.success:
        print_success(f"{report.label}: ingested {report.outcome.scope}")
        _print_result(report.outcome.result)
    else:
        print_error(f"{report.label}: {report.error}")

    if report.skipped:
        raise typer.Exit(code=ExitCode.NO_RESULTS)
    if not report.success:
        raise typer.Exit(code=ExitCode.ERROR)


@app.command("fetch-feed")
def fetch_feed() -> None:
    """Fetch and ingest the current public chart feed."""
    _run_job("feed", lambda jobs: jobs.run_feed())


@app.command("fetch-playlist")
def fetch_playlist(
    region: Annotated[str, typer.Option(help="Region code (global, us, gb, ...)")] = "global",
    date: Annotated[str | None, typer.Option(help="Chart date (default: today)")] = None,
) -> None:
    """Fetch and ingest a region's Viral 50 playlist."""
    _run_job(f"playlist:{region}", lambda jobs: jobs.run_playlist(region, date))


@app.command("fetch-csv")
def fetch_csv(
    chart_type: Annotated[ChartType, typer.Argument(help="regional or viral")],
    region: Annotated[str, typer.Argument(help="Region code")],
    period: Annotated[ChartPeriod, typer.Argument(help="daily or weekly")],
    date: Annotated[str, typer.Argument(help="Chart date (YYYY-MM-DD)")],
) -> None:
    """Download and ingest one chart CSV export."""
    request = ChartRequest(chart_type=chart_type, chart_period=period, date=date, region=region)
    _run_job(request.chart_name, lambda jobs: jobs.run_flatfile(request))


# ====================================================================
# INSPECTION COMMANDS
# ====================================================================


@app.command()
def check(
    date: Annotated[str, typer.Argument(help="Chart date (YYYY-MM-DD)")],
    chart_type: Annotated[ChartType, typer.Argument(help="regional or viral")],
    period: Annotated[ChartPeriod, typer.Argument(help="daily or weekly")],
    region: Annotated[str | None, typer.Option(help="Region code (default: global)")] = None,
) -> None:
    """Check whether a chart scope is already ingested."""
    result = asyncio.run(check_duplicates(_store(), date, chart_type, period, region))

    if state.output_format == OutputFormat.JSON:
        print_json(
            {
                "scope": str(result.scope),
                "region": result.scope.region,
                "exists": result.exists,
                "count": result.count,
            }
        )
    elif result.exists:
        print_warning(f"{result.scope}: {result.count} entries already stored")
    else:
        cprint(f"{result.scope}: not ingested")

    if not result.exists:
        raise typer.Exit(code=ExitCode.NO_RESULTS)


@app.command()
def dates() -> None:
    """List dates that hold chart entries."""
    store = _store()
    cache = AvailableDatesCache(store, state.config.cache.available_dates_ttl_seconds)
    available = asyncio.run(cache.get())

    if state.output_format == OutputFormat.JSON:
        print_json({"dates": available})
    elif not available:
        cprint("No chart dates stored")
    else:
        for value in available:
            cprint(value)

    if not available:
        raise typer.Exit(code=ExitCode.NO_RESULTS)


@app.command()
def uploads(
    limit: Annotated[int, typer.Option(help="Max uploads to list")] = 50,
    offset: Annotated[int, typer.Option(help="Skip this many uploads")] = 0,
    status: Annotated[UploadStatus | None, typer.Option(help="Filter by status")] = None,
) -> None:
    """List recorded uploads, newest first."""
    page = asyncio.run(_store().list_uploads(limit=limit, offset=offset, status=status))

    if state.output_format == OutputFormat.JSON:
        print_json(
            {
                "uploads": [
                    {
                        "id": u.id,
                        "file_name": u.file_name,
                        "status": str(u.status),
                        "date": u.date,
                        "records_processed": u.records_processed,
                        "records_created": u.records_created,
                        "records_updated": u.records_updated,
                        "records_skipped": u.records_skipped,
                        "error": u.error,
                    }
                    for u in page.uploads
                ],
                "total": page.total,
                "limit": page.limit,
                "offset": page.offset,
            }
        )
        return

    table = make_table(
        f"Uploads ({page.total} total)", ["File", "Status", "Processed", "Created", "Updated"]
    )
    for u in page.uploads:
        table.add_row(
            u.file_name,
            str(u.status),
            str(u.records_processed),
            str(u.records_created),
            str(u.records_updated),
        )
    cprint(table)


def cli() -> None:
    """Entry point for the chart-intake command."""
    app()
