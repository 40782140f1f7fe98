from __future__ import annotations

from datetime import date, timedelta

import pytest

from invoice_dashboard.models import BucketPoint, Notice, RegressionResult
from invoice_dashboard.trend import (
    MS_PER_DAY,
    day_to_epoch_ms,
    fit_line,
    fit_trend,
    fit_trend_centered,
    project_trend,
)


def _daily(totals: list[float], start: date = date(2024, 1, 1)) -> list[BucketPoint]:
    points = []
    for i, total in enumerate(totals):
        key = (start + timedelta(days=i)).isoformat()
        points.append(BucketPoint(key=key, label=key, total=total))
    return points


@pytest.mark.parametrize("method", ["sums", "centered"])
def test_exact_line_is_recovered(method: str) -> None:
    result = fit_line([0, 1, 2], [1, 3, 5], method=method)  # type: ignore[arg-type]

    assert isinstance(result, RegressionResult)
    assert result.slope == 2
    assert result.intercept == 1
    assert [p.y for p in result.fitted] == [1, 3, 5]
    assert [p.x for p in result.fitted] == ["0", "1", "2"]


@pytest.mark.parametrize("xs,ys", [([], []), ([5], [10]), ([1, 1], [2, 3])])
def test_fewer_than_two_distinct_points_is_insufficient(xs: list[float], ys: list[float]) -> None:
    result = fit_line(xs, ys)

    assert isinstance(result, Notice)
    assert result.code == "insufficient_data"


def test_fit_trend_on_a_single_day_does_not_raise() -> None:
    result = fit_trend(_daily([100.0]))

    assert isinstance(result, Notice)
    assert result.code == "insufficient_data"
    assert result.detail["points"] == 1
    assert isinstance(fit_trend([]), Notice)


def test_mismatched_lengths_are_a_programming_error() -> None:
    with pytest.raises(ValueError, match="length"):
        fit_line([1, 2], [1])
    with pytest.raises(ValueError, match="method"):
        fit_line([1, 2], [1, 2], method="median")  # type: ignore[arg-type]


def test_sum_and_centered_forms_agree_on_real_dates() -> None:
    totals = [100 + 3 * i + (i % 5) * 7.5 for i in range(31)]
    series = _daily(totals)

    sums = fit_trend(series)
    centered = fit_trend_centered(series)

    assert isinstance(sums, RegressionResult)
    assert isinstance(centered, RegressionResult)
    assert sums.method == "sums"
    assert centered.method == "centered"
    assert sums.slope == pytest.approx(centered.slope, rel=1e-6)
    assert sums.intercept == pytest.approx(centered.intercept, rel=1e-6)
    for a, b in zip(sums.fitted, centered.fitted):
        assert a.x == b.x
        assert a.y == pytest.approx(b.y, abs=1e-3)


def test_trend_x_is_epoch_milliseconds_of_the_day() -> None:
    assert day_to_epoch_ms("1970-01-02") == MS_PER_DAY

    result = fit_trend(_daily([5.0, 15.0, 25.0]))

    assert isinstance(result, RegressionResult)
    assert result.xs[0] == day_to_epoch_ms("2024-01-01")
    assert result.slope == pytest.approx(10 / MS_PER_DAY)
    assert [p.x for p in result.fitted] == ["2024-01-01", "2024-01-02", "2024-01-03"]
    assert [p.y for p in result.fitted] == pytest.approx([5.0, 15.0, 25.0], abs=1e-3)


def test_project_trend_extends_the_line() -> None:
    result = fit_trend_centered(_daily([5.0, 15.0, 25.0]))
    assert isinstance(result, RegressionResult)

    projected = project_trend(result, 2)

    assert [p.x for p in projected] == ["2024-01-04", "2024-01-05"]
    assert [p.y for p in projected] == pytest.approx([35.0, 45.0], abs=1e-3)
    assert project_trend(result, 0) == []
    with pytest.raises(ValueError):
        project_trend(result, -1)
