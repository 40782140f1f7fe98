from __future__ import annotations

import math
from datetime import datetime, timezone

import pytest

from invoice_dashboard.aggregation import (
    compute_summary,
    daily_totals,
    dated_rows,
    monthly_totals,
    sunday_first_weekday,
    valid_amounts,
    weekday_totals,
)
from invoice_dashboard.models import CanonicalRow, Notice, SummaryStats


def _row(amount: float, day: str | None = None) -> CanonicalRow:
    moment = None
    if day is not None:
        moment = datetime.strptime(day, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    return CanonicalRow(raw={}, date=moment, amount=amount)


def test_population_standard_deviation() -> None:
    rows = [_row(v) for v in [2, 4, 4, 4, 5, 5, 7, 9]]

    stats = compute_summary(rows)

    assert isinstance(stats, SummaryStats)
    assert stats.mean == 5
    assert stats.std_dev_population == 2
    assert stats.max == 9
    assert stats.min == 2
    assert stats.count == 8


def test_summary_ignores_nan_amounts_but_not_undated_rows() -> None:
    rows = [_row(10.0), _row(math.nan, "2024-01-01"), _row(20.0)]

    stats = compute_summary(rows)

    assert isinstance(stats, SummaryStats)
    assert stats.mean == 15.0
    assert stats.count == 2


def test_summary_is_kept_at_full_precision_and_rounded_for_display() -> None:
    stats = compute_summary([_row(1.0), _row(2.0), _row(2.0)])

    assert isinstance(stats, SummaryStats)
    assert stats.mean == pytest.approx(5 / 3)
    assert stats.rounded()["mean"] == 1.67
    assert stats.rounded()["std_dev_population"] == 0.47


def test_no_valid_amounts_is_a_notice() -> None:
    result = compute_summary([_row(math.nan), _row(math.nan)])

    assert isinstance(result, Notice)
    assert result.code == "no_valid_data"
    assert compute_summary([]).code == "no_valid_data"  # type: ignore[union-attr]


def test_filters() -> None:
    rows = [_row(1.0, "2024-01-01"), _row(math.nan, "2024-01-01"), _row(2.0)]

    assert valid_amounts(rows) == [1.0, 2.0]
    assert dated_rows(rows) == [rows[0]]


def test_daily_totals_are_summed_and_sorted() -> None:
    rows = [
        _row(100.0, "2024-01-02"),
        _row(50.0, "2024-01-01"),
        _row(25.0, "2024-01-02"),
        _row(math.nan, "2024-01-03"),
        _row(70.0),
    ]

    daily = daily_totals(rows)

    assert [(p.key, p.total) for p in daily] == [("2024-01-01", 50.0), ("2024-01-02", 125.0)]


def test_daily_bucket_uses_utc_calendar_day() -> None:
    late = CanonicalRow(
        raw={}, date=datetime(2024, 1, 1, 23, 30, tzinfo=timezone.utc), amount=5.0
    )

    assert [p.key for p in daily_totals([late])] == ["2024-01-01"]


def test_monthly_totals_are_chronological_with_localized_labels() -> None:
    rows = [
        _row(10.0, "2024-02-10"),
        _row(5.0, "2023-12-31"),
        _row(1.0, "2024-01-05"),
        _row(2.0, "2024-01-20"),
    ]

    monthly = monthly_totals(rows)

    assert [p.key for p in monthly] == ["2023-12", "2024-01", "2024-02"]
    assert [p.label for p in monthly] == ["Diciembre 2023", "Enero 2024", "Febrero 2024"]
    assert [p.total for p in monthly] == [5.0, 3.0, 10.0]
    assert monthly_totals(rows, "en")[0].label == "December 2023"


def test_weekday_totals_are_sunday_first() -> None:
    rows = [
        _row(10.0, "2024-01-01"),  # Monday
        _row(5.0, "2024-01-06"),  # Saturday
        _row(7.0, "2024-01-07"),  # Sunday
        _row(3.0, "2024-01-08"),  # Monday
    ]

    weekday = weekday_totals(rows)

    assert [p.key for p in weekday] == ["0", "1", "6"]
    assert [p.label for p in weekday] == ["Domingo", "Lunes", "Sábado"]
    assert [p.total for p in weekday] == [7.0, 13.0, 5.0]
    assert [p.label for p in weekday_totals(rows, "en")] == ["Sunday", "Monday", "Saturday"]


def test_buckets_on_rows_without_dates_are_empty() -> None:
    rows = [_row(1.0), _row(2.0)]

    assert daily_totals(rows) == []
    assert monthly_totals(rows) == []
    assert weekday_totals(rows) == []


def test_sunday_first_weekday_numbers_days_from_sunday() -> None:
    assert sunday_first_weekday(datetime(2024, 1, 7, tzinfo=timezone.utc)) == 0  # Sunday
    assert sunday_first_weekday(datetime(2024, 1, 8, tzinfo=timezone.utc)) == 1  # Monday
    assert sunday_first_weekday(datetime(2024, 1, 6, tzinfo=timezone.utc)) == 6  # Saturday
