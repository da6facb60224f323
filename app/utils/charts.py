"""
Altair chart for the regression page: the points, the fitted line and the
overlays revealed while the pointer is over a point (mean lines, x/y
deviations from the means, and the residual to the line).
"""
from __future__ import annotations

from typing import Sequence

import altair as alt
import pandas as pd

from app.utils.dataset import Point, points_frame
from app.utils.regression import RegressionSummary, Summary

POINT_COLOR = "#2563eb"
LINE_COLOR = "#dc2626"
MEAN_COLOR = "#6b7280"
X_DEV_COLOR = "#f59e0b"
Y_DEV_COLOR = "#10b981"
RESIDUAL_COLOR = "#7c3aed"

# residual segment offset as a share of the x range
RESIDUAL_OFFSET = 0.005


def fitted_line_frame(summary: RegressionSummary) -> pd.DataFrame:
    lo, hi = float(summary.x.min()), float(summary.x.max())
    return pd.DataFrame({"x": [lo, hi], "y": [summary.predict(lo), summary.predict(hi)]})


def overlay_frame(summary: RegressionSummary) -> pd.DataFrame:
    """Per-point coordinates for every hover overlay, keyed by point index."""
    x_max = float(summary.x.max())
    offset = (x_max - float(summary.x.min())) * RESIDUAL_OFFSET
    # Shift left for the right-most point so the axis does not grow.
    residual_x = [x - offset if x == x_max else x + offset for x in summary.x]
    return pd.DataFrame({
        "idx": range(1, summary.n + 1),
        "x": summary.x,
        "y": summary.y,
        "y_hat": summary.predicted,
        "x_dev": summary.x_deviation,
        "y_dev": summary.y_deviation,
        "resid": summary.residual,
        "mean_x": summary.mean_x,
        "mean_y": summary.mean_y,
        "residual_x": residual_x,
    })


def regression_chart(points: Sequence[Point], summary: Summary) -> alt.LayerChart:
    if isinstance(summary, RegressionSummary):
        df = overlay_frame(summary)
    else:
        df = points_frame(points)
        df.insert(0, "idx", range(1, len(df) + 1))

    hover = alt.selection_point(
        name="hover", fields=["idx"], on="pointerover", nearest=True, empty=False, clear="pointerout"
    )
    tooltip = [alt.Tooltip("idx:O", title="#"), alt.Tooltip("x:Q", format=".4f"), alt.Tooltip("y:Q", format=".4f")]
    if isinstance(summary, RegressionSummary):
        tooltip += [
            alt.Tooltip("y_hat:Q", format=".4f", title="ŷ"),
            alt.Tooltip("resid:Q", format=".4f", title="residual"),
        ]

    base = alt.Chart(df)
    scatter = base.mark_circle(color=POINT_COLOR, opacity=0.9).encode(
        x=alt.X("x:Q", title="X", scale=alt.Scale(zero=False)),
        y=alt.Y("y:Q", title="Y", scale=alt.Scale(zero=False)),
        size=alt.condition(hover, alt.value(220), alt.value(80)),
        tooltip=tooltip,
    ).add_params(hover)

    if not isinstance(summary, RegressionSummary):
        return alt.layer(scatter)

    line = alt.Chart(fitted_line_frame(summary)).mark_line(color=LINE_COLOR, strokeWidth=2).encode(
        x="x:Q", y="y:Q"
    )

    hovered = base.transform_filter(hover)
    mean_x_rule = hovered.mark_rule(color=MEAN_COLOR, strokeDash=[6, 4]).encode(x="mean_x:Q")
    mean_y_rule = hovered.mark_rule(color=MEAN_COLOR, strokeDash=[6, 4]).encode(y="mean_y:Q")
    x_dev = hovered.mark_rule(color=X_DEV_COLOR, strokeWidth=2).encode(
        x="mean_x:Q", x2="x:Q", y="y:Q"
    )
    y_dev = hovered.mark_rule(color=Y_DEV_COLOR, strokeWidth=2).encode(
        x="x:Q", y="mean_y:Q", y2="y:Q"
    )
    residual = hovered.mark_rule(color=RESIDUAL_COLOR, strokeWidth=3).encode(
        x="residual_x:Q", y="y_hat:Q", y2="y:Q"
    )

    return alt.layer(scatter, line, mean_x_rule, mean_y_rule, x_dev, y_dev, residual)
