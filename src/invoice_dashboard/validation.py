"""Required-column check, run before any row is parsed."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from invoice_dashboard import REQUIRED_COLUMNS
from invoice_dashboard.models import FailureReason, RawRow


@dataclass(frozen=True)
class ValidationResult:
    missing_columns: list[str] = field(default_factory=list)
    empty: bool = False

    @property
    def ok(self) -> bool:
        return not self.empty and not self.missing_columns

    def to_failure(self) -> FailureReason | None:
        """The structural failure this result stands for, if any."""
        if self.empty:
            return FailureReason(kind="empty")
        if self.missing_columns:
            return FailureReason(kind="missing_columns", missing_columns=self.missing_columns)
        return None


def validate_columns(
    columns: Iterable[object],
    row_count: int,
    required: Sequence[str] = REQUIRED_COLUMNS,
) -> ValidationResult:
    """Check that the table has rows and every *required* column.

    Column names must match exactly (case-sensitive).  Missing names are
    reported in the order of *required*.
    """
    if row_count <= 0:
        return ValidationResult(empty=True)
    present = {str(c) for c in columns}
    missing = [col for col in required if col not in present]
    return ValidationResult(missing_columns=missing)


def collect_columns(rows: Iterable[RawRow]) -> list[str]:
    """Union of the keys of *rows*, in first-seen order."""
    seen: dict[str, None] = {}
    for row in rows:
        for key in row:
            seen.setdefault(str(key), None)
    return list(seen)


def validate_rows(
    rows: Sequence[RawRow],
    required: Sequence[str] = REQUIRED_COLUMNS,
) -> ValidationResult:
    return validate_columns(collect_columns(rows), len(rows), required)
