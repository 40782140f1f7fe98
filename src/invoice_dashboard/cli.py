"""CLI entry point for invoice-dashboard."""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from pathlib import Path

import pandas as pd
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table as RichTable

from invoice_dashboard import __version__
from invoice_dashboard.io import frame_to_raw_rows, load_table, write_json
from invoice_dashboard.localization import Locale, get_locale
from invoice_dashboard.models import (
    ColumnSpec,
    DashboardResult,
    FailureReason,
    QCReport,
    RegressionResult,
    RunManifest,
    SummaryStats,
)
from invoice_dashboard.pipeline import run_pipeline
from invoice_dashboard.qc import write_qc_report, write_results
from invoice_dashboard.report import write_report
from invoice_dashboard.trend import project_trend
from invoice_dashboard.utils import sha256_file, utcnow_iso
from invoice_dashboard.validation import validate_columns

app = typer.Typer(
    name="invdash",
    help="invoice-dashboard — Turn invoice spreadsheets into sales summaries and trends.",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()
logger = logging.getLogger(__name__)


class LocaleOption(str, Enum):
    es = "es"
    en = "en"


def _noop(*_args: object, **_kwargs: object) -> None:
    return None


def _printer(quiet: bool) -> Callable[..., None]:
    return _noop if quiet else console.print


def _err(msg: str) -> None:
    console.print(f"[red]x[/red] {msg}")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


# ── Helpers ──────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"invoice-dashboard v{__version__}")
        raise typer.Exit()


def _parse_column_map(raw: list[str] | None, *, quiet: bool = False) -> dict[str, str]:
    """Parse ``--map target=source`` pairs into ``{source: target}``.

    Names are matched exactly; only surrounding whitespace is dropped.
    """
    if not raw:
        return {}
    mapping: dict[str, str] = {}
    for item in raw:
        if "=" not in item:
            raise ValueError(f"Invalid --map value: {item!r}  (expected target=source)")
        target, source = (part.strip() for part in item.split("=", 1))
        if not target or not source:
            raise ValueError("--map entries must have non-empty target and source (target=source)")
        if source in mapping and not quiet:
            console.print(f"[yellow]![/yellow] Overriding mapping for source {source!r}")
        mapping[source] = target
    return mapping


def _load_profile_map(profile: Path | None) -> list[str]:
    """Return list of ``target=source`` strings from a profile file."""
    if not profile:
        return []
    if not profile.exists():
        raise ValueError(
            f"Profile not found: {profile} (expected lines like 'FECHA DE LA FACTURA=Fecha')"
        )
    if profile.is_dir():
        raise ValueError(f"Profile is a directory, not a file: {profile}")
    try:
        text = profile.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Cannot read profile {profile}: {exc}") from exc

    lines: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        lines.append(stripped)
    return lines


def _write_manifest(
    out_dir: Path,
    input_file: Path,
    run_id: str,
    created_at: str,
    qc: QCReport,
    loc: Locale,
    *,
    status: str = "success",
    error_code: int | None = None,
    error_message: str = "",
) -> Path:
    sha256 = ""
    try:
        sha256 = sha256_file(input_file)
    except OSError:
        logger.debug("Could not hash %s", input_file)

    manifest = RunManifest(
        version=__version__,
        run_id=run_id,
        input_path=str(input_file.resolve()),
        output_dir=str(out_dir.resolve()),
        created_at_utc=created_at,
        locale=loc.code,
        rows_in=qc.rows_in,
        rows_with_amount=qc.rows_with_amount,
        sha256=sha256,
        status=status,  # type: ignore[arg-type]
        error_code=error_code,
        error_message=error_message,
    )
    return write_json(out_dir / "run_manifest.json", manifest.to_dict())


def _fail(
    out_dir: Path,
    input_file: Path,
    run_id: str,
    created_at: str,
    loc: Locale,
    *,
    message: str,
    rows_in: int = 0,
    missing_columns: list[str] | None = None,
    error_code: int = 2,
) -> typer.Exit:
    """Write failure QC + manifest, report, and return the Exit to raise."""
    qc = QCReport(rows_in=rows_in, missing_columns=missing_columns, warnings=[message])
    qc_path = write_qc_report(out_dir, qc)
    manifest_path = _write_manifest(
        out_dir, input_file, run_id, created_at, qc, loc,
        status="failed", error_code=error_code, error_message=message,
    )
    _err(message)
    if missing_columns:
        console.print(f"  Expected: {', '.join(ColumnSpec().required)}")
        console.print("  Hint: use --map target=source to rename headers")
    console.print(f"  QC report -> {qc_path}")
    console.print(f"  Manifest  -> {manifest_path}")
    return typer.Exit(code=error_code)


def _load_frame(
    input_file: Path, mapping: dict[str, str]
) -> tuple[pd.DataFrame | None, str]:
    """Load the sheet and rename headers through *mapping* (``{source: target}``).

    Returns ``(frame, "")``, or ``(None, error message)`` when two headers
    end up with the same name.
    """
    raw_df = load_table(input_file)
    if not mapping:
        return raw_df, ""

    renamed = [mapping.get(str(col).strip(), str(col)) for col in raw_df.columns]
    sources: dict[str, list[str]] = {}
    for original, target in zip(raw_df.columns, renamed):
        sources.setdefault(target, []).append(str(original))
    clashes = {target: names for target, names in sources.items() if len(names) > 1}
    if clashes:
        details = "; ".join(
            f"{target} (source: {' + '.join(names)})" for target, names in sorted(clashes.items())
        )
        return None, f"Mapping produced duplicate columns: {details}. Rename or remove one."
    return raw_df.set_axis(renamed, axis=1), ""


def _print_result(result: DashboardResult, loc: Locale, forecast_days: int) -> None:
    summary = result.summary
    tbl = RichTable(title="Summary", show_lines=True)
    tbl.add_column("Metric", style="bold")
    tbl.add_column("Value", justify="right")
    if isinstance(summary, SummaryStats):
        for label, value in summary.display(loc).items():
            tbl.add_row(label, value)
        tbl.add_row(loc.summary_label("count"), str(summary.count))
    else:
        tbl.add_row("!", f"[yellow]{summary.message(loc)}[/yellow]")
    console.print(tbl)

    if result.duplicates:
        console.print(
            f"  [yellow]![/yellow] {loc.message('duplicates_found', count=len(result.duplicates))}"
        )
    else:
        console.print(f"  {loc.message('no_duplicates')}")

    if result.monthly:
        monthly = RichTable(title="Monthly")
        monthly.add_column("Month")
        monthly.add_column("Total", justify="right")
        for point in result.monthly:
            monthly.add_row(point.label, f"{point.total:,.2f}")
        console.print(monthly)

    trend = result.trend
    if isinstance(trend, RegressionResult):
        console.print(f"  Trend: slope={trend.slope:.6g}/ms intercept={trend.intercept:.6g}")
        for point in project_trend(trend, forecast_days):
            console.print(f"    {point.x}: {point.y:,.2f}")
    else:
        console.print(f"  [yellow]![/yellow] {trend.message(loc)}")


# ── Callbacks ────────────────────────────────────────────────────


@app.callback()
def main(
    version: bool | None = typer.Option(
        None, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Log pipeline details to stderr.",
    ),
) -> None:
    """invoice-dashboard CLI."""
    _configure_logging(verbose)


# ── run command ──────────────────────────────────────────────────


@app.command()
def run(
    input_file: Path = typer.Option(
        ..., "--input", "-i",
        help="Path to the XLSX/XLS (or CSV) invoice file.",
        exists=True, readable=True,
    ),
    out_dir: Path = typer.Option(
        Path("output"), "--out-dir", "-o",
        help="Output directory for report + results + QC + manifest.",
    ),
    col_map: list[str] | None = typer.Option(
        None, "--map", "-m",
        help="Column mapping: target=source. E.g. --map 'FECHA DE LA FACTURA=Fecha'",
    ),
    profile: Path | None = typer.Option(
        None, "--profile",
        help="Profile file containing column mappings (target=source lines).",
        envvar="INVDASH_PROFILE",
    ),
    locale: LocaleOption = typer.Option(
        LocaleOption.es, "--locale", "-l",
        help="Language of month/day names and messages.",
        envvar="INVDASH_LOCALE",
    ),
    dayfirst: bool = typer.Option(
        False,
        "--dayfirst/--monthfirst",
        help="Date parsing mode for text dates like 01/02/2024.",
    ),
    forecast_days: int = typer.Option(
        0, "--forecast-days",
        min=0,
        help="Print the trend line projected this many days ahead.",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress informational output; still writes all artifacts.",
    ),
) -> None:
    """Process an invoice spreadsheet into a report, results and QC artifacts."""
    echo = _printer(quiet)
    loc = get_locale(locale.value)
    created_at = utcnow_iso()
    run_id = created_at
    out_dir.mkdir(parents=True, exist_ok=True)

    try:
        mapping = _parse_column_map(_load_profile_map(profile) + (col_map or []), quiet=quiet)
    except ValueError as exc:
        raise _fail(out_dir, input_file, run_id, created_at, loc, message=str(exc))

    if not quiet:
        console.print(Panel(
            f"[bold]invoice-dashboard[/bold] v{__version__}\n"
            f"Input:  {input_file}\nOutput: {out_dir}",
            title="Pipeline Start", border_style="blue",
        ))
        if mapping:
            console.print(f"  Column map: {mapping}")

    # ── Load ─────────────────────────────────────────────────────
    echo("[blue]>[/blue] Loading input file …")
    try:
        df, dup_message = _load_frame(input_file, mapping)
    except (FileNotFoundError, ValueError, OSError) as exc:
        reason = FailureReason(kind="io", detail={"reason": str(exc)})
        raise _fail(out_dir, input_file, run_id, created_at, loc, message=reason.message(loc))
    if df is None:
        raise _fail(out_dir, input_file, run_id, created_at, loc, message=dup_message)

    rows = frame_to_raw_rows(df)
    echo(f"  {len(rows)} rows x {len(df.columns)} columns")

    try:
        # ── Process ──────────────────────────────────────────────
        echo("[blue]>[/blue] Processing invoices …")
        outcome = run_pipeline(rows, df.columns, locale=loc, dayfirst=dayfirst)
        if isinstance(outcome, FailureReason):
            raise _fail(
                out_dir, input_file, run_id, created_at, loc,
                message=outcome.message(loc),
                rows_in=len(rows),
                missing_columns=outcome.missing_columns,
            )

        qc_path = write_qc_report(out_dir, outcome.qc)
        echo(f"  QC report -> {qc_path}")
        if not quiet:
            for w in outcome.qc.warnings:
                console.print(f"  [yellow]![/yellow] {w}")

        results_path = write_results(out_dir, outcome)
        echo(f"  Results  -> {results_path}")

        echo("[blue]>[/blue] Writing report …")
        report_path = write_report(out_dir, outcome, loc)
        echo(f"  Report   -> {report_path}")

        manifest_path = _write_manifest(out_dir, input_file, run_id, created_at, outcome.qc, loc)
        echo(f"  Manifest -> {manifest_path}")

        if not quiet:
            _print_result(outcome, loc, forecast_days)
            console.print(Panel(
                f"[green]{loc.message('success')}[/green] {outcome.qc.rows_in} rows -> {report_path}",
                title="Pipeline Complete", border_style="green",
            ))
    except typer.Exit:
        raise
    except Exception as exc:
        logger.exception("Unexpected error")
        reason = FailureReason(kind="processing", detail={"reason": str(exc)})
        raise _fail(
            out_dir, input_file, run_id, created_at, loc,
            message=reason.message(loc), rows_in=len(rows), error_code=1,
        )


# ── validate command ─────────────────────────────────────────────


@app.command()
def validate(
    input_file: Path = typer.Option(
        ..., "--input", "-i",
        help="Path to the XLSX/XLS (or CSV) invoice file.",
        exists=True, readable=True,
    ),
    out_dir: Path = typer.Option(
        Path("output"), "--out-dir", "-o",
        help="Output directory for QC + manifest.",
    ),
    col_map: list[str] | None = typer.Option(
        None, "--map", "-m",
        help="Column mapping: target=source.",
    ),
    profile: Path | None = typer.Option(
        None, "--profile",
        help="Profile file containing column mappings (target=source lines).",
        envvar="INVDASH_PROFILE",
    ),
    locale: LocaleOption = typer.Option(
        LocaleOption.es, "--locale", "-l",
        help="Language of messages.",
        envvar="INVDASH_LOCALE",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress informational output; still writes QC + manifest.",
    ),
) -> None:
    """Check the required columns without producing the report.

    Writes qc_report.json + run_manifest.json only.
    Exit 0 = OK, exit 2 = schema failure.
    """
    loc = get_locale(locale.value)
    created_at = utcnow_iso()
    run_id = created_at
    out_dir.mkdir(parents=True, exist_ok=True)

    try:
        mapping = _parse_column_map(_load_profile_map(profile) + (col_map or []), quiet=quiet)
    except ValueError as exc:
        raise _fail(out_dir, input_file, run_id, created_at, loc, message=str(exc))

    try:
        df, dup_message = _load_frame(input_file, mapping)
    except (FileNotFoundError, ValueError, OSError) as exc:
        reason = FailureReason(kind="io", detail={"reason": str(exc)})
        raise _fail(out_dir, input_file, run_id, created_at, loc, message=reason.message(loc))
    if df is None:
        raise _fail(out_dir, input_file, run_id, created_at, loc, message=dup_message)

    rows = frame_to_raw_rows(df)
    check = validate_columns(df.columns, len(rows), ColumnSpec().required)
    failure = check.to_failure()
    if failure is not None:
        raise _fail(
            out_dir, input_file, run_id, created_at, loc,
            message=failure.message(loc),
            rows_in=len(rows),
            missing_columns=failure.missing_columns,
        )

    qc = QCReport(rows_in=len(rows))
    qc_path = write_qc_report(out_dir, qc)
    manifest_path = _write_manifest(out_dir, input_file, run_id, created_at, qc, loc)

    if not quiet:
        tbl = RichTable(title="Validation Summary", show_lines=True)
        tbl.add_column("Check", style="bold")
        tbl.add_column("Result")
        tbl.add_row("Rows", str(len(rows)))
        tbl.add_row("Columns", ", ".join(str(c) for c in df.columns))
        tbl.add_row("Missing columns", "[green]none[/green]")
        tbl.add_row("Status", "[green]PASS[/green]")
        console.print(tbl)
    console.print(f"  QC       -> {qc_path}")
    console.print(f"  Manifest -> {manifest_path}")
