#!/usr/bin/env python3
"""
Write a static regression chart as a CI artifact (no browser needed).
Outputs:
  artifacts/regression_fit.png   points, fitted line and every residual

Usage:
  python scripts/snapshot_regression_chart.py                 # example dataset
  python scripts/snapshot_regression_chart.py --csv data/points.csv
"""
from __future__ import annotations

import argparse
from pathlib import Path

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402
import pandas as pd  # noqa: E402

from app.utils.dataset import EXAMPLE_POINTS, Point  # noqa: E402
from app.utils.regression import RegressionSummary, format_equation, summarize  # noqa: E402

ART = Path("artifacts")


def fit_chart(points: list[Point], out: Path) -> Path | None:
    summary = summarize(points)
    if not isinstance(summary, RegressionSummary):
        print(f"[snapshot] Regression undefined ({summary.reason.value}); skipping {out.name}")
        return None

    fig, ax = plt.subplots(figsize=(8, 4.5))
    ax.scatter(summary.x, summary.y, color="#2563eb", zorder=3, label="points")
    lo, hi = float(summary.x.min()), float(summary.x.max())
    ax.plot([lo, hi], [summary.predict(lo), summary.predict(hi)], color="#dc2626", label=format_equation(summary))
    ax.vlines(summary.x, summary.predicted, summary.y, colors="#7c3aed", linewidth=1, label="residuals")
    ax.axhline(summary.mean_y, color="#6b7280", linestyle="--", linewidth=1)
    ax.axvline(summary.mean_x, color="#6b7280", linestyle="--", linewidth=1)
    r2 = "undefined" if summary.r2 is None else f"{summary.r2:.4f}"
    ax.set_title(f"Least-squares fit (n={summary.n}, R²={r2})")
    ax.set_xlabel("X")
    ax.set_ylabel("Y")
    ax.legend(loc="best", fontsize=8)
    out.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(out)
    plt.close(fig)
    print(f"[snapshot] Wrote {out}")
    return out


def main():
    p = argparse.ArgumentParser(description="Snapshot a regression chart to PNG")
    p.add_argument("--csv", type=Path, default=None)
    p.add_argument("--out", type=Path, default=ART / "regression_fit.png")
    args = p.parse_args()

    if args.csv is None:
        points = list(EXAMPLE_POINTS)
    else:
        df = pd.read_csv(args.csv)
        points = [Point(float(x), float(y)) for x, y in zip(df["x"], df["y"])]
    fit_chart(points, args.out)


if __name__ == "__main__":
    main()
