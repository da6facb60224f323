"""
Points entered by the user and the helpers that edit the session dataset.

The dataset is always handled as a tuple so a page render can take one
snapshot and hand it to every consumer.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence, Tuple

import pandas as pd


@dataclass(frozen=True)
class Point:
    x: float
    y: float


Dataset = Tuple[Point, ...]


class InvalidPoint(ValueError):
    pass


# Small teaching dataset offered on an empty session.
EXAMPLE_POINTS: Dataset = (
    Point(1.0, 2.0),
    Point(2.0, 4.0),
    Point(3.0, 5.0),
    Point(4.0, 4.0),
    Point(5.0, 5.0),
)


def _parse_number(text: str, label: str) -> float:
    raw = (text or "").strip()
    if not raw:
        raise InvalidPoint(f"{label} value is required")
    try:
        value = float(raw)
    except ValueError:
        raise InvalidPoint(f"{label} value {raw!r} is not a number") from None
    if not math.isfinite(value):
        raise InvalidPoint(f"{label} value must be a finite number")
    return value


def parse_point(x_text: str, y_text: str) -> Point:
    """Turn the two input fields into a Point, rejecting NaN and infinities."""
    return Point(_parse_number(x_text, "X"), _parse_number(y_text, "Y"))


def add_point(points: Sequence[Point], point: Point) -> Dataset:
    return tuple(points) + (point,)


def remove_point(points: Sequence[Point], index: int) -> Dataset:
    if not 0 <= index < len(points):
        raise IndexError(f"No point at position {index}")
    return tuple(p for i, p in enumerate(points) if i != index)


def points_frame(points: Sequence[Point]) -> pd.DataFrame:
    return pd.DataFrame(
        {"x": [p.x for p in points], "y": [p.y for p in points]},
        columns=["x", "y"],
        dtype=float,
    )
