"""Summary statistics and date-bucketed sales totals."""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from datetime import datetime

import pandas as pd

from invoice_dashboard import AMOUNT_COLUMN
from invoice_dashboard.localization import Locale, get_locale
from invoice_dashboard.models import BucketPoint, CanonicalRow, Notice, SummaryStats

logger = logging.getLogger(__name__)


# ── Filters ──────────────────────────────────────────────────────


def valid_amounts(rows: Sequence[CanonicalRow]) -> list[float]:
    """Amounts of the rows whose amount parsed."""
    return [row.amount for row in rows if row.has_amount]


def dated_rows(rows: Sequence[CanonicalRow]) -> list[CanonicalRow]:
    """Rows usable for date buckets: a date *and* an amount."""
    return [row for row in rows if row.has_date and row.has_amount]


def sunday_first_weekday(moment: datetime) -> int:
    """0 = Sunday .. 6 = Saturday (``datetime.weekday`` starts on Monday)."""
    return (moment.weekday() + 1) % 7


def _bucket_frame(rows: Sequence[CanonicalRow]) -> pd.DataFrame:
    usable = dated_rows(rows)
    return pd.DataFrame(
        {
            "day": [row.date.date().isoformat() for row in usable],  # type: ignore[union-attr]
            "year": [row.date.year for row in usable],  # type: ignore[union-attr]
            "month": [row.date.month for row in usable],  # type: ignore[union-attr]
            "weekday": [sunday_first_weekday(row.date) for row in usable],  # type: ignore[arg-type]
            "amount": [row.amount for row in usable],
        },
        columns=["day", "year", "month", "weekday", "amount"],
    )


# ── Summary ──────────────────────────────────────────────────────


def compute_summary(
    rows: Sequence[CanonicalRow], *, column: str = AMOUNT_COLUMN
) -> SummaryStats | Notice:
    """Mean, max, min and *population* standard deviation of valid amounts.

    Returns a ``no_valid_data`` notice when no amount parsed.
    """
    amounts = pd.Series(valid_amounts(rows), dtype="float64")
    if amounts.empty:
        logger.info("No valid amounts in %d rows", len(rows))
        return Notice("no_valid_data", {"column": column})

    n = len(amounts)
    mean = float(amounts.sum() / n)
    variance = float(((amounts - mean) ** 2).sum() / n)
    return SummaryStats(
        mean=mean,
        max=float(amounts.max()),
        min=float(amounts.min()),
        std_dev_population=math.sqrt(variance),
        count=n,
    )


# ── Buckets ──────────────────────────────────────────────────────


def daily_totals(rows: Sequence[CanonicalRow]) -> list[BucketPoint]:
    """Sum per UTC calendar day (``YYYY-MM-DD``), ascending."""
    frame = _bucket_frame(rows)
    if frame.empty:
        return []
    daily = frame.groupby("day", as_index=False).agg(total=("amount", "sum")).sort_values("day")
    return [
        BucketPoint(key=day, label=day, total=float(total))
        for day, total in daily.itertuples(index=False, name=None)
    ]


def monthly_totals(
    rows: Sequence[CanonicalRow], locale: Locale | str | None = None
) -> list[BucketPoint]:
    """Sum per (year, month), chronological, labelled ``"<month> <year>"``."""
    loc = get_locale(locale)
    frame = _bucket_frame(rows)
    if frame.empty:
        return []
    monthly = (
        frame.groupby(["year", "month"], as_index=False)
        .agg(total=("amount", "sum"))
        .sort_values(["year", "month"])
    )
    return [
        BucketPoint(
            key=f"{int(year):04d}-{int(month):02d}",
            label=loc.month_label(int(year), int(month)),
            total=float(total),
        )
        for year, month, total in monthly.itertuples(index=False, name=None)
    ]


def weekday_totals(
    rows: Sequence[CanonicalRow], locale: Locale | str | None = None
) -> list[BucketPoint]:
    """Sum per day of week, Sunday first; weekdays without sales are left out."""
    loc = get_locale(locale)
    frame = _bucket_frame(rows)
    if frame.empty:
        return []
    by_day = frame.groupby("weekday", as_index=False).agg(total=("amount", "sum")).sort_values(
        "weekday"
    )
    return [
        BucketPoint(key=str(int(day)), label=loc.weekday_name(int(day)), total=float(total))
        for day, total in by_day.itertuples(index=False, name=None)
    ]
