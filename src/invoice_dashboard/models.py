"""Data models / typed records used across the package."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from numbers import Integral
from types import MappingProxyType
from typing import Any, Literal, Union

from invoice_dashboard import AMOUNT_COLUMN, DATE_COLUMN, INVOICE_NUMBER_COLUMN

RawRow = Mapping[str, Any]

# Display names of the derived columns when a row is flattened for preview.
DERIVED_DATE_FIELD = "FECHA"
DERIVED_AMOUNT_FIELD = "IMPORTE TOTAL"

FailureKind = Literal["empty", "missing_columns", "io", "processing"]
NoticeCode = Literal["no_valid_data", "insufficient_data"]
_FAILURE_KINDS = frozenset({"empty", "missing_columns", "io", "processing"})
_NOTICE_CODES = frozenset({"no_valid_data", "insufficient_data"})


def _to_non_negative_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise TypeError(f"{field_name} must be an integer")
    result = int(value)
    if result < 0:
        raise ValueError(f"{field_name} must be >= 0")
    return result


def _to_string_list(values: Sequence[Any] | None, field_name: str) -> list[str]:
    if values is None:
        return []
    if isinstance(values, str):
        raise TypeError(f"{field_name} must be a sequence of strings")
    normalized: list[str] = []
    for item in values:
        if not isinstance(item, str):
            raise TypeError(f"{field_name} items must be strings")
        normalized.append(item)
    return normalized


def _json_number(value: float) -> float | None:
    return None if math.isnan(value) else value


# ── Columns ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class ColumnSpec:
    """Names of the three columns the pipeline reads."""

    date: str = DATE_COLUMN
    amount: str = AMOUNT_COLUMN
    invoice_number: str = INVOICE_NUMBER_COLUMN

    @property
    def required(self) -> list[str]:
        """Required columns in reporting order: date, amount, invoice number."""
        return [self.date, self.amount, self.invoice_number]


# ── Rows ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class CanonicalRow:
    """A source row plus the fields the pipeline derives from it.

    ``date`` is ``None`` and ``amount`` is ``nan`` when the source cell could
    not be parsed; aggregation skips such rows, preview and duplicate
    detection keep them.
    """

    raw: RawRow
    date: datetime | None = None
    amount: float = math.nan
    invoice_number: Any = None

    def __post_init__(self) -> None:
        if not isinstance(self.raw, MappingProxyType):
            object.__setattr__(self, "raw", MappingProxyType(dict(self.raw)))

    @property
    def has_amount(self) -> bool:
        return not math.isnan(self.amount)

    @property
    def has_date(self) -> bool:
        return self.date is not None

    def to_record(self) -> dict[str, Any]:
        """Flatten for display: source fields followed by the derived ones."""
        record = dict(self.raw)
        record[DERIVED_DATE_FIELD] = self.date
        record[DERIVED_AMOUNT_FIELD] = _json_number(self.amount)
        return record


# ── Aggregates ───────────────────────────────────────────────────


@dataclass(frozen=True)
class SummaryStats:
    """Summary of the valid amounts, kept at full precision."""

    mean: float
    max: float
    min: float
    std_dev_population: float
    count: int = 0

    def rounded(self, digits: int = 2) -> dict[str, float]:
        return {
            "mean": round(self.mean, digits),
            "max": round(self.max, digits),
            "min": round(self.min, digits),
            "std_dev_population": round(self.std_dev_population, digits),
        }

    def display(self, locale: Any) -> dict[str, str]:
        """Label -> ``"%.2f"`` string, labels taken from *locale*."""
        return {
            locale.summary_label(name): f"{getattr(self, name):.2f}"
            for name in ("mean", "max", "min", "std_dev_population")
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "mean": self.mean,
            "max": self.max,
            "min": self.min,
            "std_dev_population": self.std_dev_population,
            "count": self.count,
        }


@dataclass(frozen=True)
class BucketPoint:
    """Total amount for one bucket (a day, a month or a weekday)."""

    key: str
    label: str
    total: float

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "label": self.label, "total": self.total}


DailyPoint = BucketPoint
MonthlyPoint = BucketPoint
WeekdayPoint = BucketPoint


@dataclass(frozen=True)
class FittedPoint:
    x: str
    y: float


@dataclass(frozen=True)
class RegressionResult:
    """Ordinary least-squares line through a daily series."""

    slope: float
    intercept: float
    fitted: list[FittedPoint] = field(default_factory=list)
    xs: list[float] = field(default_factory=list)
    method: Literal["sums", "centered"] = "sums"

    def predict(self, x: float) -> float:
        return self.slope * x + self.intercept

    def to_dict(self) -> dict[str, Any]:
        return {
            "slope": self.slope,
            "intercept": self.intercept,
            "method": self.method,
            "fitted": [{"x": p.x, "y": p.y} for p in self.fitted],
        }


@dataclass(frozen=True)
class Notice:
    """Informational outcome of an aggregate step (not a failure of the run)."""

    code: NoticeCode
    detail: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.code not in _NOTICE_CODES:
            raise ValueError(f"Unknown notice code: {self.code!r}")

    def message(self, locale: Any) -> str:
        return locale.message(self.code, **self.detail)

    def to_dict(self) -> dict[str, Any]:
        return {"notice": self.code, "detail": dict(self.detail)}


@dataclass(frozen=True)
class FailureReason:
    """Why a run halted: structural problem, unreadable file, or crash."""

    kind: FailureKind
    missing_columns: list[str] = field(default_factory=list)
    detail: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.kind not in _FAILURE_KINDS:
            raise ValueError(f"Unknown failure kind: {self.kind!r}")
        object.__setattr__(
            self, "missing_columns", _to_string_list(self.missing_columns, "missing_columns")
        )

    def message(self, locale: Any) -> str:
        if self.kind == "missing_columns":
            return locale.message(self.kind, columns=self.missing_columns, **self.detail)
        return locale.message(self.kind, **self.detail)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "missing_columns": list(self.missing_columns),
            "detail": dict(self.detail),
        }


# ── QC + manifest ────────────────────────────────────────────────


@dataclass
class QCReport:
    """Quality-control report emitted alongside every run.

    Contract invariant: every partial count is ``<= rows_in``.
    """

    rows_in: int = 0
    rows_with_amount: int = 0
    rows_with_date: int = 0
    duplicate_rows: int = 0
    missing_columns: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.rows_in = _to_non_negative_int(self.rows_in, "rows_in")
        self.rows_with_amount = _to_non_negative_int(self.rows_with_amount, "rows_with_amount")
        self.rows_with_date = _to_non_negative_int(self.rows_with_date, "rows_with_date")
        self.duplicate_rows = _to_non_negative_int(self.duplicate_rows, "duplicate_rows")
        self.missing_columns = _to_string_list(self.missing_columns, "missing_columns")
        self.warnings = _to_string_list(self.warnings, "warnings")
        for name in ("rows_with_amount", "rows_with_date", "duplicate_rows"):
            if getattr(self, name) > self.rows_in:
                raise ValueError(f"{name} must be <= rows_in")

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows_in": self.rows_in,
            "rows_with_amount": self.rows_with_amount,
            "rows_with_date": self.rows_with_date,
            "duplicate_rows": self.duplicate_rows,
            "missing_columns": list(self.missing_columns),
            "warnings": list(self.warnings),
        }


@dataclass
class RunManifest:
    """Audit-trail manifest for a single CLI run."""

    tool: str = "invoice-dashboard"
    version: str = ""
    run_id: str = ""
    input_path: str = ""
    output_dir: str = ""
    created_at_utc: str = ""
    locale: str = ""
    rows_in: int = 0
    rows_with_amount: int = 0
    sha256: str = ""
    status: Literal["success", "failed"] = "success"
    error_code: int | None = None
    error_message: str = ""

    def __post_init__(self) -> None:
        self.rows_in = _to_non_negative_int(self.rows_in, "rows_in")
        self.rows_with_amount = _to_non_negative_int(self.rows_with_amount, "rows_with_amount")
        if self.status not in {"success", "failed"}:
            raise ValueError("status must be 'success' or 'failed'")

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool": self.tool,
            "version": self.version,
            "run_id": self.run_id,
            "input_path": self.input_path,
            "output_dir": self.output_dir,
            "created_at_utc": self.created_at_utc,
            "locale": self.locale,
            "rows_in": self.rows_in,
            "rows_with_amount": self.rows_with_amount,
            "sha256": self.sha256,
            "status": self.status,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


# ── Run results + state ──────────────────────────────────────────


@dataclass
class DashboardResult:
    """Everything a successful run produces."""

    rows: list[CanonicalRow]
    duplicates: list[CanonicalRow]
    summary: SummaryStats | Notice
    daily: list[BucketPoint]
    monthly: list[BucketPoint]
    weekday: list[BucketPoint]
    trend: RegressionResult | Notice
    qc: QCReport = field(default_factory=QCReport)

    def preview(self, n: int = 10) -> list[dict[str, Any]]:
        """First *n* rows flattened for display."""
        return [row.to_record() for row in self.rows[:n]]

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows": [row.to_record() for row in self.rows],
            "duplicates": [row.to_record() for row in self.duplicates],
            "summary": self.summary.to_dict(),
            "daily": [p.to_dict() for p in self.daily],
            "monthly": [p.to_dict() for p in self.monthly],
            "weekday": [p.to_dict() for p in self.weekday],
            "trend": self.trend.to_dict(),
            "qc": self.qc.to_dict(),
        }


@dataclass(frozen=True)
class Idle:
    """Nothing selected yet, or the last request was cancelled."""


@dataclass(frozen=True)
class Loading:
    request_id: int


@dataclass(frozen=True)
class Success:
    request_id: int
    result: DashboardResult


@dataclass(frozen=True)
class Failure:
    request_id: int
    reason: FailureReason


PipelineState = Union[Idle, Loading, Success, Failure]
