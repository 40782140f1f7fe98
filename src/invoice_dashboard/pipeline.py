"""Invoice pipeline — validate, parse, then duplicates / aggregates / trend."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from pathlib import Path

from invoice_dashboard.aggregation import (
    compute_summary,
    daily_totals,
    monthly_totals,
    weekday_totals,
)
from invoice_dashboard.duplicates import find_duplicates
from invoice_dashboard.io import read_raw_rows
from invoice_dashboard.localization import Locale, get_locale
from invoice_dashboard.models import (
    CanonicalRow,
    ColumnSpec,
    DashboardResult,
    FailureReason,
    QCReport,
    RawRow,
)
from invoice_dashboard.parsing import normalize_amount_text, parse_rows
from invoice_dashboard.trend import fit_trend
from invoice_dashboard.validation import collect_columns, validate_columns

logger = logging.getLogger(__name__)


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def _count_ambiguous_amounts(rows: Sequence[CanonicalRow], column: str) -> int:
    """Amounts whose clean-up left several points (e.g. ``1.234,56``)."""
    count = 0
    for row in rows:
        value = row.raw.get(column)
        if isinstance(value, str) and normalize_amount_text(value).count(".") > 1:
            count += 1
    return count


def build_qc_report(
    rows: Sequence[CanonicalRow],
    duplicates: Sequence[CanonicalRow],
    columns: ColumnSpec,
) -> QCReport:
    """Counts and warnings describing how well the rows parsed."""
    qc = QCReport(
        rows_in=len(rows),
        rows_with_amount=sum(1 for row in rows if row.has_amount),
        rows_with_date=sum(1 for row in rows if row.has_date),
        duplicate_rows=len(duplicates),
    )
    bad_dates = qc.rows_in - qc.rows_with_date
    if bad_dates:
        qc.warnings.append(
            f"Found {_plural(bad_dates, 'row')} with unparseable dates in {columns.date}"
        )
    bad_amounts = qc.rows_in - qc.rows_with_amount
    if bad_amounts:
        qc.warnings.append(
            f"Found {_plural(bad_amounts, 'row')} with unparseable amounts in {columns.amount}"
        )
    ambiguous = _count_ambiguous_amounts(rows, columns.amount)
    if ambiguous:
        qc.warnings.append(
            f"Detected {_plural(ambiguous, 'amount')} with several separators in "
            f"{columns.amount} (example: 1.234,56); only the leading number was kept"
        )
    if duplicates:
        qc.warnings.append(
            f"Detected {_plural(len(duplicates), 'row')} sharing an invoice number "
            f"in {columns.invoice_number}"
        )
    return qc


def run_pipeline(
    rows: Sequence[RawRow],
    header: Iterable[object] | None = None,
    *,
    columns: ColumnSpec | None = None,
    locale: Locale | str | None = None,
    dayfirst: bool = False,
) -> DashboardResult | FailureReason:
    """Process one table of raw rows.

    *header* is the sheet's column list; when omitted the keys of *rows* are
    used.  Structural problems (no rows, missing columns) return a
    :class:`FailureReason` before any row is parsed.
    """
    spec = columns or ColumnSpec()
    loc = get_locale(locale)
    present = list(header) if header is not None else collect_columns(rows)

    validation = validate_columns(present, len(rows), spec.required)
    failure = validation.to_failure()
    if failure is not None:
        logger.warning("Input rejected: %s", failure.message(loc))
        return failure

    parsed = parse_rows(rows, spec, dayfirst=dayfirst)
    duplicates = find_duplicates(parsed)
    daily = daily_totals(parsed)
    result = DashboardResult(
        rows=parsed,
        duplicates=duplicates,
        summary=compute_summary(parsed, column=spec.amount),
        daily=daily,
        monthly=monthly_totals(parsed, loc),
        weekday=weekday_totals(parsed, loc),
        trend=fit_trend(daily),
        qc=build_qc_report(parsed, duplicates, spec),
    )
    logger.info(
        "Processed %d rows: %d duplicates, %d days, %d months",
        len(parsed), len(duplicates), len(daily), len(result.monthly),
    )
    return result


def process_file(
    path: Path,
    *,
    columns: ColumnSpec | None = None,
    locale: Locale | str | None = None,
    dayfirst: bool = False,
) -> DashboardResult | FailureReason:
    """Read *path* and run the pipeline; every failure comes back as a value."""
    try:
        header, rows = read_raw_rows(path)
    except (FileNotFoundError, ValueError, OSError) as exc:
        logger.warning("Could not read %s: %s", path, exc)
        return FailureReason(kind="io", detail={"reason": str(exc)})
    return run_rows_safely(rows, header, columns=columns, locale=locale, dayfirst=dayfirst)


def run_rows_safely(
    rows: Sequence[RawRow],
    header: Iterable[object] | None = None,
    *,
    columns: ColumnSpec | None = None,
    locale: Locale | str | None = None,
    dayfirst: bool = False,
) -> DashboardResult | FailureReason:
    """:func:`run_pipeline`, with unexpected errors turned into a ``processing`` failure."""
    try:
        return run_pipeline(rows, header, columns=columns, locale=locale, dayfirst=dayfirst)
    except Exception as exc:
        logger.exception("Unexpected error while processing rows")
        return FailureReason(kind="processing", detail={"reason": str(exc)})
