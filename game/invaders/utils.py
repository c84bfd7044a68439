"""
Utility functions for game mechanics
"""

from __future__ import annotations
import random
from typing import Optional
import numpy as np


def clamp(x: float, lo: float, hi: float) -> float:
    """Clamp value between low and high bounds"""
    return lo if x < lo else hi if x > hi else x


def _edge_inside(lo: float, hi: float, start: float, end: float) -> bool:
    """True if either end of [lo, hi] lies strictly inside (start, end)"""
    return start < lo < end or start < hi < end


def overlaps(a, b) -> bool:
    """
    Hit test between two rectangles with x, y, width, height.

    A hit needs one edge of `a` strictly inside `b` on the x axis AND one
    edge of `a` strictly inside `b` on the y axis. Touching edges never
    count, and neither does `a` fully covering `b` on an axis.
    """
    return (
        _edge_inside(a.x, a.x + a.width, b.x, b.x + b.width)
        and _edge_inside(a.y, a.y + a.height, b.y, b.y + b.height)
    )


def sign(x: float) -> int:
    """Collapse a value to -1, 0 or +1"""
    return (x > 0) - (x < 0)


def seed_everything(py_seed: Optional[int]):
    """Seed all random number generators"""
    if py_seed is None:
        return
    random.seed(py_seed)
    np.random.seed(py_seed)
