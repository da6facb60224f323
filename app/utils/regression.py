"""
Simple linear regression statistics shared by the table, chart and assistant.
Summaries are immutable: the per-point arrays are read-only and ``==`` compares
them element-wise.

Sums are accumulated left-to-right in a single pass so that results are
reproducible to the last bit for a given point order.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, fields
from enum import Enum
from typing import Optional, Sequence, Union

import numpy as np

from app.utils.dataset import Point

# Decimal places used wherever the equation is shown to a person.
SUMMARY_DECIMALS = 3
DISPLAY_DECIMALS = 4


class Degeneracy(str, Enum):
    INSUFFICIENT_DATA = "insufficient data"
    ZERO_X_VARIANCE = "degenerate: zero x-variance"
    ZERO_Y_VARIANCE = "degenerate: zero y-variance"


@dataclass(frozen=True)
class Undefined:
    """Returned instead of a summary when no line can be fitted."""
    reason: Degeneracy
    n: int


@dataclass(frozen=True, eq=False)
class RegressionSummary:
    n: int
    sum_x: float
    sum_y: float
    sum_xy: float
    sum_xx: float
    sum_yy: float
    mean_x: float
    mean_y: float
    sxx: float              # sum of (x - x̄)^2
    scp: float              # sum of (x - x̄)(y - ȳ)
    slope: float
    intercept: float
    ss_res: float
    ss_tot: float
    r2: Optional[float]             # None when every y is identical
    correlation: Optional[float]
    # per-point columns, in input order
    x: np.ndarray
    y: np.ndarray
    predicted: np.ndarray
    x_deviation: np.ndarray
    y_deviation: np.ndarray
    residual: np.ndarray
    squared_residual: np.ndarray
    squared_y_deviation: np.ndarray
    squared_x_deviation: np.ndarray
    cross_product: np.ndarray
    degeneracy: Optional[Degeneracy] = None

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, np.ndarray):
                value.setflags(write=False)

    def __eq__(self, other):
        if not isinstance(other, RegressionSummary):
            return NotImplemented
        for f in fields(self):
            a, b = getattr(self, f.name), getattr(other, f.name)
            if isinstance(a, np.ndarray):
                if not np.array_equal(a, b):
                    return False
            elif a != b:
                return False
        return True

    __hash__ = None

    def predict(self, x: float) -> float:
        return self.slope * x + self.intercept


Summary = Union[RegressionSummary, Undefined]


def _running_sum(values) -> float:
    total = 0.0
    for v in values:
        total += float(v)
    return total


def summarize(points: Sequence[Point]) -> Summary:
    """
    Fit y = intercept + slope*x by ordinary least squares.

    Returns an ``Undefined`` sentinel for fewer than two points or when all x
    values coincide. When all y values coincide the fit is still returned
    (slope 0) but ``r2`` and ``correlation`` are None and ``degeneracy`` is
    set to ``Degeneracy.ZERO_Y_VARIANCE``.
    """
    n = len(points)
    if n < 2:
        return Undefined(Degeneracy.INSUFFICIENT_DATA, n)

    sum_x = sum_y = sum_xy = sum_xx = sum_yy = 0.0
    for p in points:
        sum_x += p.x
        sum_y += p.y
        sum_xy += p.x * p.y
        sum_xx += p.x * p.x
        sum_yy += p.y * p.y

    mean_x = sum_x / n
    mean_y = sum_y / n
    sxx = sum_xx - (sum_x * sum_x) / n
    scp = sum_xy - (sum_x * sum_y) / n

    x = np.array([p.x for p in points], dtype=float)
    y = np.array([p.y for p in points], dtype=float)

    # value equality catches rounding residue such as x = 0.1 repeated
    if sxx == 0 or np.all(x == x[0]):
        return Undefined(Degeneracy.ZERO_X_VARIANCE, n)

    flat_y = bool(np.all(y == y[0]))
    if flat_y:
        slope = 0.0
        intercept = float(y[0])
    else:
        slope = scp / sxx
        intercept = mean_y - slope * mean_x

    predicted = slope * x + intercept
    residual = y - predicted
    x_dev = x - mean_x
    y_dev = y - mean_y
    squared_residual = residual ** 2
    squared_y_dev = y_dev ** 2

    ss_res = _running_sum(squared_residual)
    ss_tot = _running_sum(squared_y_dev)

    r2: Optional[float] = None
    correlation: Optional[float] = None
    degeneracy: Optional[Degeneracy] = None
    if flat_y or ss_tot == 0:
        degeneracy = Degeneracy.ZERO_Y_VARIANCE
    else:
        r2 = 1.0 - ss_res / ss_tot
        spread = (n * sum_xx - sum_x * sum_x) * (n * sum_yy - sum_y * sum_y)
        if spread > 0:
            correlation = (n * sum_xy - sum_x * sum_y) / math.sqrt(spread)

    return RegressionSummary(
        n=n,
        sum_x=sum_x,
        sum_y=sum_y,
        sum_xy=sum_xy,
        sum_xx=sum_xx,
        sum_yy=sum_yy,
        mean_x=mean_x,
        mean_y=mean_y,
        sxx=sxx,
        scp=scp,
        slope=slope,
        intercept=intercept,
        ss_res=ss_res,
        ss_tot=ss_tot,
        r2=r2,
        correlation=correlation,
        x=x,
        y=y,
        predicted=predicted,
        x_deviation=x_dev,
        y_deviation=y_dev,
        residual=residual,
        squared_residual=squared_residual,
        squared_y_deviation=squared_y_dev,
        squared_x_deviation=x_dev ** 2,
        cross_product=x_dev * y_dev,
        degeneracy=degeneracy,
    )


def _fmt(value: Optional[float], decimals: int) -> str:
    if value is None:
        return "undefined"
    return f"{value:.{decimals}f}"


def format_equation(summary: RegressionSummary, decimals: int = DISPLAY_DECIMALS) -> str:
    return f"y = {summary.slope:.{decimals}f}x + {summary.intercept:.{decimals}f}"


def format_summary_text(summary: Summary) -> str:
    """Compact description of the dataset handed to the chat assistant."""
    if isinstance(summary, Undefined):
        if summary.n == 0:
            return "No data points have been entered yet."
        return (
            f"Current dataset: {summary.n} data points. "
            f"Regression is undefined ({summary.reason.value})."
        )

    return (
        f"Current dataset: {summary.n} data points. "
        f"Mean X: {summary.mean_x:.2f}, Mean Y: {summary.mean_y:.2f}. "
        f"Linear regression: {format_equation(summary, SUMMARY_DECIMALS)}. "
        f"Correlation coefficient: {_fmt(summary.correlation, SUMMARY_DECIMALS)}. "
        f"R-squared: {_fmt(summary.r2, SUMMARY_DECIMALS)}."
    )
