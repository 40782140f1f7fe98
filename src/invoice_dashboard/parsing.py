"""Row parser — raw spreadsheet cells to canonical rows. Never raises on bad cells."""

from __future__ import annotations

import logging
import math
import re
import warnings
from collections.abc import Iterable
from datetime import date, datetime, timezone
from numbers import Real
from typing import Any

import numpy as np
import pandas as pd

from invoice_dashboard.models import CanonicalRow, ColumnSpec, RawRow
from invoice_dashboard.utils import from_epoch_ms, round_half_up

logger = logging.getLogger(__name__)

# Serial 25569 is 1970-01-01 in the 1900 date system (serial 0 = 1899-12-30).
EXCEL_EPOCH_OFFSET_DAYS = 25569
SECONDS_PER_DAY = 86400

_NON_NUMERIC_RE = re.compile(r"[^0-9.]")
_LEADING_FLOAT_RE = re.compile(r"\d+(?:\.\d*)?|\.\d+")

# Spreadsheet-style number rendering switches to exponent notation outside this range.
_POSITIONAL_MIN = 1e-6
_POSITIONAL_MAX = 1e21


# ── Amounts ──────────────────────────────────────────────────────


def _amount_text(value: object) -> str:
    if isinstance(value, float) and math.isfinite(value):
        magnitude = abs(value)
        if magnitude == 0 or _POSITIONAL_MIN <= magnitude < _POSITIONAL_MAX:
            return np.format_float_positional(value, trim="-")
    return str(value)


def normalize_amount_text(value: object) -> str:
    """Apply the amount clean-up rule and return the resulting text.

    The first comma becomes a decimal point, then everything that is not a
    digit or a point is dropped.  Thousands separators written with points
    (``"1.234,56"``) are *not* recognised: the result is ``"1.234.56"``.
    Minus signs are dropped as well.
    """
    text = "" if value is None else _amount_text(value)
    text = text.replace(",", ".", 1)
    return _NON_NUMERIC_RE.sub("", text)


def parse_amount(value: object) -> float:
    """Parse a sale amount; ``nan`` when no number can be read.

    Only the leading float of the normalised text counts, so
    ``"1.234.56"`` reads as ``1.234``.
    """
    match = _LEADING_FLOAT_RE.match(normalize_amount_text(value))
    if match is None:
        return math.nan
    return float(match.group(0))


# ── Dates ────────────────────────────────────────────────────────


def serial_to_datetime(serial: float) -> datetime | None:
    """Spreadsheet serial day number -> UTC datetime (millisecond precision)."""
    if not math.isfinite(serial):
        return None
    ms = round_half_up((serial - EXCEL_EPOCH_OFFSET_DAYS) * SECONDS_PER_DAY * 1000)
    try:
        return from_epoch_ms(ms)
    except OverflowError:
        return None


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _parse_date_text(text: str, *, dayfirst: bool) -> datetime | None:
    text = text.strip()
    if not text:
        return None
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", UserWarning)
            parsed = pd.to_datetime(text, errors="coerce", utc=True, dayfirst=dayfirst)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(parsed):
        return None
    return parsed.to_pydatetime()


def parse_date(value: object, *, dayfirst: bool = False) -> datetime | None:
    """Parse an invoice date cell into a UTC datetime, or ``None``.

    Numbers are spreadsheet serials, strings go through a generic date
    parser, and datetime-like cells (date-formatted cells) are taken as-is.
    """
    if value is None or value is pd.NaT or isinstance(value, bool):
        return None
    if isinstance(value, pd.Timestamp):
        return _as_utc(value.to_pydatetime())
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, Real):
        return serial_to_datetime(float(value))
    if isinstance(value, str):
        return _parse_date_text(value, dayfirst=dayfirst)
    return None


# ── Rows ─────────────────────────────────────────────────────────


def to_canonical(
    raw: RawRow,
    columns: ColumnSpec | None = None,
    *,
    dayfirst: bool = False,
) -> CanonicalRow:
    """Derive date + amount for one row; the source mapping is kept untouched."""
    columns = columns or ColumnSpec()
    return CanonicalRow(
        raw=raw,
        date=parse_date(raw.get(columns.date), dayfirst=dayfirst),
        amount=parse_amount(raw.get(columns.amount)),
        invoice_number=raw.get(columns.invoice_number),
    )


def parse_rows(
    rows: Iterable[RawRow],
    columns: ColumnSpec | None = None,
    *,
    dayfirst: bool = False,
) -> list[CanonicalRow]:
    """Parse every row, keeping rows whose fields could not be read."""
    parsed = [to_canonical(raw, columns, dayfirst=dayfirst) for raw in rows]
    bad_amounts = sum(1 for row in parsed if not row.has_amount)
    bad_dates = sum(1 for row in parsed if not row.has_date)
    logger.debug(
        "Parsed %d rows (%d without amount, %d without date)",
        len(parsed), bad_amounts, bad_dates,
    )
    return parsed
