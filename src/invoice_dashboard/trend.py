"""Least-squares trend line over the daily sales series.

Two algebraically equivalent forms are available:

    sums:      m = (n·Σxy − Σx·Σy) / (n·Σx² − (Σx)²),   b = (Σy − m·Σx) / n
    centered:  m = Σ(x − x̄)(y − ȳ) / Σ(x − x̄)²,       b = ȳ − m·x̄

x is the bucket day as epoch milliseconds (UTC midnight), y the day's total.
The sums form loses precision when x is large relative to its spread; both
agree to well within the tolerance the report needs.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Literal

from invoice_dashboard.models import BucketPoint, FittedPoint, Notice, RegressionResult
from invoice_dashboard.utils import from_epoch_ms, to_epoch_ms

Method = Literal["sums", "centered"]

MIN_POINTS = 2
MS_PER_DAY = 86_400_000


def _insufficient(points: int) -> Notice:
    return Notice("insufficient_data", {"points": points, "required": MIN_POINTS})


def _coefficients_sums(xs: Sequence[float], ys: Sequence[float]) -> tuple[float, float]:
    n = len(xs)
    sum_x = math.fsum(xs)
    sum_y = math.fsum(ys)
    sum_xy = math.fsum(x * y for x, y in zip(xs, ys))
    sum_x2 = math.fsum(x * x for x in xs)
    slope = (n * sum_xy - sum_x * sum_y) / (n * sum_x2 - sum_x * sum_x)
    intercept = (sum_y - slope * sum_x) / n
    return slope, intercept


def _coefficients_centered(xs: Sequence[float], ys: Sequence[float]) -> tuple[float, float]:
    n = len(xs)
    mean_x = math.fsum(xs) / n
    mean_y = math.fsum(ys) / n
    cov_xy = math.fsum((x - mean_x) * (y - mean_y) for x, y in zip(xs, ys))
    var_x = math.fsum((x - mean_x) ** 2 for x in xs)
    slope = cov_xy / var_x
    return slope, mean_y - slope * mean_x


def fit_line(
    xs: Sequence[float],
    ys: Sequence[float],
    labels: Sequence[str] | None = None,
    *,
    method: Method = "sums",
) -> RegressionResult | Notice:
    """Fit ``y = slope·x + intercept`` through the points.

    Needs at least two distinct x values; otherwise an ``insufficient_data``
    notice is returned.
    """
    if len(xs) != len(ys):
        raise ValueError(f"xs and ys differ in length ({len(xs)} != {len(ys)})")
    if labels is not None and len(labels) != len(xs):
        raise ValueError("labels must match xs in length")
    if method not in ("sums", "centered"):
        raise ValueError(f"Invalid method: {method!r}. Use sums/centered.")

    xs = [float(x) for x in xs]
    ys = [float(y) for y in ys]
    if len(xs) < MIN_POINTS or len(set(xs)) < MIN_POINTS:
        return _insufficient(len(set(xs)))

    if method == "sums":
        slope, intercept = _coefficients_sums(xs, ys)
    else:
        slope, intercept = _coefficients_centered(xs, ys)

    names = list(labels) if labels is not None else [f"{x:g}" for x in xs]
    fitted = [FittedPoint(x=name, y=slope * x + intercept) for name, x in zip(names, xs)]
    return RegressionResult(
        slope=slope, intercept=intercept, fitted=fitted, xs=xs, method=method
    )


def day_to_epoch_ms(day: str) -> float:
    """``YYYY-MM-DD`` -> epoch milliseconds at UTC midnight."""
    moment = datetime.strptime(day, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    return to_epoch_ms(moment)


def fit_trend(series: Sequence[BucketPoint], *, method: Method = "sums") -> RegressionResult | Notice:
    """Fit the trend line through a daily series (see :func:`daily_totals`)."""
    if len(series) < MIN_POINTS:
        return _insufficient(len(series))
    xs = [day_to_epoch_ms(point.key) for point in series]
    ys = [point.total for point in series]
    return fit_line(xs, ys, [point.key for point in series], method=method)


def fit_trend_centered(series: Sequence[BucketPoint]) -> RegressionResult | Notice:
    return fit_trend(series, method="centered")


def project_trend(result: RegressionResult, days: int) -> list[FittedPoint]:
    """Extend a fitted daily trend *days* calendar days past its last point."""
    if days < 0:
        raise ValueError("days must be >= 0")
    if not result.xs:
        return []
    last = result.xs[-1]
    projected: list[FittedPoint] = []
    for step in range(1, days + 1):
        x = last + step * MS_PER_DAY
        label = from_epoch_ms(int(x)).date().isoformat()
        projected.append(FittedPoint(x=label, y=result.predict(x)))
    return projected
