#!/usr/bin/env python3
"""
Fit a simple linear regression to a CSV of points and print the summary.

Usage:
  python scripts/summarize_points.py --csv data/points.csv
  python scripts/summarize_points.py --csv data/points.csv --x-col hours --y-col score --table
Exit codes:
  0  regression fitted
  2  input problem (missing columns, non-numeric values) or undefined regression
  1  anything else
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd

from app.utils.dataset import Point
from app.utils.regression import Undefined, format_equation, format_summary_text, summarize
from app.utils.tables import calculation_table


def eprint(*a, **k):
    print(*a, file=sys.stderr, **k)


def read_points(csv_path: Path, x_col: str, y_col: str) -> tuple[list[Point], list[str]]:
    """Load points, collecting data-contract violations instead of failing on the first."""
    failures: list[str] = []
    df = pd.read_csv(csv_path)

    missing = [c for c in (x_col, y_col) if c not in df.columns]
    if missing:
        failures.append(f"Missing column(s) {missing} (have: {list(df.columns)})")
        return [], failures

    x = pd.to_numeric(df[x_col], errors="coerce").to_numpy(dtype=float)
    y = pd.to_numeric(df[y_col], errors="coerce").to_numpy(dtype=float)
    bad = ~(np.isfinite(x) & np.isfinite(y))
    if bad.any():
        rows = (np.flatnonzero(bad) + 2).tolist()  # header is line 1
        failures.append(f"Non-numeric or non-finite values on line(s) {rows[:10]}{' …' if len(rows) > 10 else ''}")
        return [], failures

    return [Point(float(a), float(b)) for a, b in zip(x, y)], failures


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Summarize a simple linear regression over a CSV of points")
    p.add_argument("--csv", required=True, type=Path)
    p.add_argument("--x-col", default="x")
    p.add_argument("--y-col", default="y")
    p.add_argument("--table", action="store_true", help="also print the per-point calculation table")
    return p.parse_args()


def main():
    args = parse_args()
    print(f"[summarize] CSV={args.csv} X={args.x_col} Y={args.y_col}")

    points, failures = read_points(args.csv, args.x_col, args.y_col)
    if failures:
        print("\n[INPUT FAIL] The points file could not be used:")
        for i, f in enumerate(failures, 1):
            print(f" {i:02d}. {f}")
        sys.exit(2)

    summary = summarize(points)
    print(format_summary_text(summary))

    if isinstance(summary, Undefined):
        print(f"[summarize] Regression undefined: {summary.reason.value}")
        sys.exit(2)

    print(f"[summarize] {format_equation(summary)}")
    print(f"[summarize] SXX={summary.sxx:.4f} SCP={summary.scp:.4f} SSres={summary.ss_res:.4f} SStot={summary.ss_tot:.4f}")
    if args.table:
        with pd.option_context("display.width", 160, "display.max_columns", None):
            print(calculation_table(summary).round(4).to_string(na_rep=""))
    print("[summarize] Done ✔")


if __name__ == "__main__":
    try:
        main()
    except (OSError, pd.errors.ParserError) as e:
        eprint(f"[FATAL][Input] {e}")
        sys.exit(1)
    except Exception as e:
        eprint(f"[FATAL] {type(e).__name__}: {e}")
        sys.exit(1)
