"""Excel report writer — produces Invoice_Report.xlsx."""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, cast

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo
from openpyxl.worksheet.worksheet import Worksheet

from invoice_dashboard.localization import Locale, get_locale
from invoice_dashboard.models import (
    DERIVED_AMOUNT_FIELD,
    DERIVED_DATE_FIELD,
    BucketPoint,
    DashboardResult,
    Notice,
    RegressionResult,
    SummaryStats,
)

REPORT_NAME = "Invoice_Report.xlsx"

# ── Style constants ──────────────────────────────────────────────

HEADER_FONT = Font(name="Calibri", bold=True, size=11, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="2F5496", end_color="2F5496", fill_type="solid")
HEADER_ALIGN = Alignment(horizontal="center", vertical="center", wrap_text=True)

TITLE_FONT = Font(name="Calibri", bold=True, size=14, color="2F5496")
SUBTITLE_FONT = Font(name="Calibri", bold=False, size=10, color="808080")
LABEL_FONT = Font(name="Calibri", bold=True, size=11)
VALUE_FONT = Font(name="Calibri", size=11)
WARN_FONT = Font(name="Calibri", italic=True, size=10, color="CC6600")

NOTE_FILL = PatternFill(start_color="FFF2CC", end_color="FFF2CC", fill_type="solid")
KPI_FILL = PatternFill(start_color="D6E4F0", end_color="D6E4F0", fill_type="solid")

CURRENCY_FMT = '#,##0.00'
INT_FMT = '#,##0'
DATE_FMT = 'yyyy-mm-dd'

# Column-name → format mapping for data sheets
_COL_FORMATS: dict[str, str] = {
    DERIVED_DATE_FIELD.lower(): DATE_FMT,
    DERIVED_AMOUNT_FIELD.lower(): CURRENCY_FMT,
    "total": CURRENCY_FMT,
    "trend": CURRENCY_FMT,
}

_AUTO_WIDTH_SAMPLE_ROWS = 300
_EXCEL_FORMULA_PREFIXES = ("=", "+", "-", "@")


# ── Helpers ──────────────────────────────────────────────────────


def _style_header(ws: Worksheet, ncols: int) -> None:
    for c in range(1, ncols + 1):
        cell = ws.cell(row=1, column=c)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGN


def _auto_width(ws: Worksheet) -> None:
    max_row = min(ws.max_row, _AUTO_WIDTH_SAMPLE_ROWS + 1)  # include header row
    for c_idx in range(1, ws.max_column + 1):
        letter = get_column_letter(c_idx)
        width = 0
        for row in ws.iter_rows(min_row=1, max_row=max_row, min_col=c_idx, max_col=c_idx):
            width = max(width, len(str(row[0].value or "")))
        ws.column_dimensions[letter].width = min(width + 4, 30)


def _apply_number_formats(ws: Worksheet, col_names: list[str]) -> None:
    if ws.max_row < 2:
        return
    for c_idx, name in enumerate(col_names, 1):
        fmt = _COL_FORMATS.get(name.lower())
        if fmt:
            for row in ws.iter_rows(min_row=2, max_row=ws.max_row, min_col=c_idx, max_col=c_idx):
                for cell in row:
                    cell.number_format = fmt


def _sanitize_table_name(name: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9_]", "_", name)
    if not cleaned:
        cleaned = "Table"
    if not re.match(r"^[A-Za-z_]", cleaned):
        cleaned = f"_{cleaned}"
    return cleaned[:255]


def _unique_table_name(ws: Worksheet, base_name: str) -> str:
    existing: set[str] = set()
    for sheet in ws.parent.worksheets:
        existing.update(cast(Iterable[str], sheet.tables.keys()))
    candidate = base_name
    suffix = 1
    while candidate in existing:
        candidate = f"{base_name}_{suffix}"
        suffix += 1
    return candidate


def _add_excel_table(ws: Worksheet, name: str, ncols: int, nrows: int) -> None:
    end_col = get_column_letter(ncols)
    table = Table(
        displayName=_unique_table_name(ws, _sanitize_table_name(name)),
        ref=f"A1:{end_col}{nrows + 1}",
    )
    table.tableStyleInfo = TableStyleInfo(
        name="TableStyleMedium9", showFirstColumn=False,
        showLastColumn=False, showRowStripes=True, showColumnStripes=False,
    )
    ws.add_table(table)


def _excel_value(val: Any) -> Any:
    if val is None:
        return None
    try:
        if pd.isna(val):
            return None
    except (TypeError, ValueError):
        return str(val)

    if isinstance(val, pd.Timestamp):
        val = val.to_pydatetime()
    if isinstance(val, datetime) and val.tzinfo:
        return val.astimezone(timezone.utc).replace(tzinfo=None)

    if isinstance(val, str):
        if val.startswith("'"):
            return val
        stripped = val.lstrip()
        if stripped and stripped[0] in _EXCEL_FORMULA_PREFIXES:
            return f"'{val}"
    return val


def _rows_to_sheet(
    wb: Workbook, name: str, col_names: list[str], rows: list[list[Any]]
) -> Worksheet:
    """Write a header + rows as an Excel table (or a "No data" stub)."""
    ws = wb.create_sheet(title=name)
    if not col_names or not rows:
        ws.cell(row=1, column=1, value="No data").font = VALUE_FONT
        ws.column_dimensions["A"].width = 18
        return ws

    for c_idx, col_name in enumerate(col_names, 1):
        ws.cell(row=1, column=c_idx, value=col_name)
    for r_idx, values in enumerate(rows, 2):
        for c_idx, val in enumerate(values, 1):
            ws.cell(row=r_idx, column=c_idx, value=_excel_value(val))
    _style_header(ws, len(col_names))
    _apply_number_formats(ws, col_names)
    ws.freeze_panes = "A2"
    _auto_width(ws)
    _add_excel_table(ws, name, len(col_names), len(rows))
    return ws


def _records_to_sheet(wb: Workbook, name: str, records: list[dict[str, Any]]) -> Worksheet:
    col_names: list[str] = []
    for record in records:
        for key in record:
            if key not in col_names:
                col_names.append(key)
    rows = [[record.get(col) for col in col_names] for record in records]
    return _rows_to_sheet(wb, name, col_names, rows)


def _buckets_to_sheet(wb: Workbook, name: str, points: list[BucketPoint]) -> Worksheet:
    rows = [[p.key, p.label, p.total] for p in points]
    return _rows_to_sheet(wb, name, ["key", "label", "total"], rows)


def _trend_to_sheet(
    wb: Workbook, daily: list[BucketPoint], trend: RegressionResult | Notice, loc: Locale
) -> Worksheet:
    if isinstance(trend, Notice):
        ws = wb.create_sheet(title="Trend")
        ws.cell(row=1, column=1, value=trend.message(loc)).font = WARN_FONT
        ws.column_dimensions["A"].width = 60
        return ws
    fitted = {p.x: p.y for p in trend.fitted}
    rows = [[p.key, p.total, fitted.get(p.key)] for p in daily]
    ws = _rows_to_sheet(wb, "Trend", ["day", "total", "trend"], rows)
    last_col = 5
    ws.cell(row=1, column=last_col, value="slope").font = LABEL_FONT
    ws.cell(row=1, column=last_col + 1, value=trend.slope)
    ws.cell(row=2, column=last_col, value="intercept").font = LABEL_FONT
    ws.cell(row=2, column=last_col + 1, value=trend.intercept)
    return ws


def _fill_row(ws: Worksheet, row: int, fill: PatternFill) -> None:
    for c in range(1, 5):
        ws.cell(row=row, column=c).fill = fill


def _write_dashboard(wb: Workbook, result: DashboardResult, loc: Locale) -> None:
    ws = wb.create_sheet(title="Dashboard")

    # ── Title ────────────────────────────────────────────────────
    ws.cell(row=1, column=1, value="invoice-dashboard").font = TITLE_FONT
    ws.merge_cells("A1:D1")
    generated = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    ws.cell(row=2, column=1, value=f"Generated {generated}").font = SUBTITLE_FONT
    ws.merge_cells("A2:D2")

    # ── Notes block (from QC) ────────────────────────────────────
    qc = result.qc
    row = 4
    ws.cell(row=row, column=1, value="Notes").font = LABEL_FONT
    _fill_row(ws, row, NOTE_FILL)
    ws.merge_cells(f"A{row}:D{row}")
    row += 1
    ws.cell(row=row, column=1, value=f"Rows: {qc.rows_in}")
    ws.cell(row=row, column=2, value=f"With amount: {qc.rows_with_amount}")
    ws.cell(row=row, column=3, value=f"With date: {qc.rows_with_date}")
    ws.cell(row=row, column=4, value=f"Duplicates: {qc.duplicate_rows}")
    _fill_row(ws, row, NOTE_FILL)
    row += 1
    for warn in qc.warnings or ["No warnings"]:
        ws.cell(row=row, column=1, value=warn).font = WARN_FONT if qc.warnings else VALUE_FONT
        _fill_row(ws, row, NOTE_FILL)
        row += 1
    if result.duplicates:
        dup_msg = loc.message("duplicates_found", count=len(result.duplicates))
    else:
        dup_msg = loc.message("no_duplicates")
    ws.cell(row=row, column=1, value=dup_msg).font = VALUE_FONT
    _fill_row(ws, row, NOTE_FILL)
    row += 1

    # ── Summary cards ────────────────────────────────────────────
    row += 1
    ws.cell(row=row, column=1, value="Summary").font = LABEL_FONT
    ws.merge_cells(f"A{row}:D{row}")
    _fill_row(ws, row, KPI_FILL)
    row += 1

    summary = result.summary
    if isinstance(summary, SummaryStats):
        for name, value in summary.rounded().items():
            lbl_cell = ws.cell(row=row, column=1, value=loc.summary_label(name))
            lbl_cell.font = LABEL_FONT
            lbl_cell.fill = KPI_FILL
            val_cell = ws.cell(row=row, column=2, value=value)
            val_cell.font = VALUE_FONT
            val_cell.fill = KPI_FILL
            val_cell.number_format = CURRENCY_FMT
            val_cell.alignment = Alignment(horizontal="right")
            row += 1
        count_lbl = ws.cell(row=row, column=1, value=loc.summary_label("count"))
        count_lbl.font = LABEL_FONT
        count_lbl.fill = KPI_FILL
        count_cell = ws.cell(row=row, column=2, value=summary.count)
        count_cell.number_format = INT_FMT
        count_cell.fill = KPI_FILL
    else:
        ws.cell(row=row, column=1, value=summary.message(loc)).font = WARN_FONT

    ws.column_dimensions["A"].width = 22
    ws.column_dimensions["B"].width = 22
    ws.column_dimensions["C"].width = 18
    ws.column_dimensions["D"].width = 18


# ── Public API ───────────────────────────────────────────────────


def write_report(
    out_dir: Path,
    result: DashboardResult,
    locale: Locale | str | None = None,
) -> Path:
    """Write ``Invoice_Report.xlsx`` into *out_dir* and return the path."""
    loc = get_locale(locale)
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    report_path = out_dir / REPORT_NAME

    wb = Workbook()
    active_sheet = wb.active
    if active_sheet is not None:
        wb.remove(active_sheet)  # remove default sheet

    _write_dashboard(wb, result, loc)
    _buckets_to_sheet(wb, "Daily", result.daily)
    _buckets_to_sheet(wb, "Monthly", result.monthly)
    _buckets_to_sheet(wb, "Weekday", result.weekday)
    _trend_to_sheet(wb, result.daily, result.trend, loc)
    _records_to_sheet(wb, "Duplicates", [r.to_record() for r in result.duplicates])
    _records_to_sheet(wb, "Data", [r.to_record() for r in result.rows])

    tmp_path = out_dir / "Invoice_Report.tmp.xlsx"
    wb.save(tmp_path)
    tmp_path.replace(report_path)
    return report_path
