"""Per-point calculation table shown under the chart."""
from __future__ import annotations

import numpy as np
import pandas as pd

from app.utils.regression import RegressionSummary

# column -> RegressionSummary attribute
COLUMNS = {
    "x": "x",
    "y": "y",
    "ŷ": "predicted",
    "x − x̄": "x_deviation",
    "y − ȳ": "y_deviation",
    "y − ŷ": "residual",
    "(x − x̄)²": "squared_x_deviation",
    "(x − x̄)(y − ȳ)": "cross_product",
    "(y − ŷ)²": "squared_residual",
    "(y − ȳ)²": "squared_y_deviation",
}

# calculation term -> column whose Σ is that term
TERM_COLUMNS = {
    "SXX": "(x − x̄)²",
    "SCP": "(x − x̄)(y − ȳ)",
    "SSres": "(y − ŷ)²",
    "SStot": "(y − ȳ)²",
}
# Totals shown in the Σ row
TOTAL_COLUMNS = list(TERM_COLUMNS.values())
HIGHLIGHT_COLOR = "#fef3c7"

COLUMN_GROUPS = {
    "Raw data": ["x", "y", "ŷ"],
    "Deviations": ["x − x̄", "y − ȳ", "y − ŷ"],
    "Regression calculations": ["(x − x̄)²", "(x − x̄)(y − ȳ)"],
    "R² components": ["(y − ŷ)²", "(y − ȳ)²"],
}


def calculation_table(summary: RegressionSummary, with_totals: bool = True) -> pd.DataFrame:
    """
    One row per point (1-based index, input order) plus an optional "Σ" row.

    The Σ row reports the engine's SXX, SCP, SSres and SStot rather than
    re-summing the displayed columns, so the table never disagrees with the
    calculations panel.
    """
    df = pd.DataFrame({col: getattr(summary, attr) for col, attr in COLUMNS.items()})
    df.index = pd.RangeIndex(1, summary.n + 1, name="#").astype(str)

    if with_totals:
        totals = pd.Series(np.nan, index=df.columns, dtype=float)
        totals[TERM_COLUMNS["SXX"]] = summary.sxx
        totals[TERM_COLUMNS["SCP"]] = summary.scp
        totals[TERM_COLUMNS["SSres"]] = summary.ss_res
        totals[TERM_COLUMNS["SStot"]] = summary.ss_tot
        df.loc["Σ"] = totals
    return df


def styled_table(df: pd.DataFrame, highlight: str | None = None):
    """Format for display; ``highlight`` names a key of TERM_COLUMNS to shade its column."""
    styler = df.style.format(precision=4, na_rep="")
    if highlight is not None:
        styler = styler.set_properties(
            subset=[TERM_COLUMNS[highlight]],
            **{"background-color": HIGHLIGHT_COLOR, "font-weight": "bold"},
        )
    return styler
