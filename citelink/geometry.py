"""
Geometry Utilities
==================
Box arithmetic shared by the detector (deduplication, annotation text) and
the linker (third-party span proximity).
"""

import math
from typing import Iterable, Optional

from .types import BBox


def intersection_area(a: BBox, b: BBox) -> float:
    w = min(a.x2, b.x2) - max(a.x1, b.x1)
    h = min(a.y2, b.y2) - max(a.y1, b.y1)
    if w <= 0 or h <= 0:
        return 0.0
    return w * h


def overlap_ratio(a: BBox, b: BBox) -> float:
    """
    Intersection area divided by the smaller box's area.

    Degenerate (zero-area) boxes overlap fully when one's center lies inside
    the other, otherwise not at all.
    """
    smaller = min(a.area, b.area)
    if smaller <= 0:
        small, big = (a, b) if a.area <= b.area else (b, a)
        cx, cy = small.center
        return 1.0 if contains_point(big, cx, cy) else 0.0
    return intersection_area(a, b) / smaller


def contains_point(box: BBox, x: float, y: float, tolerance: float = 0.0) -> bool:
    return (box.x1 - tolerance <= x <= box.x2 + tolerance
            and box.y1 - tolerance <= y <= box.y2 + tolerance)


def union(boxes: Iterable[BBox]) -> Optional[BBox]:
    boxes = list(boxes)
    if not boxes:
        return None
    return BBox(
        min(b.x1 for b in boxes),
        min(b.y1 for b in boxes),
        max(b.x2 for b in boxes),
        max(b.y2 for b in boxes),
    )


def center_distance(a: BBox, b: BBox) -> float:
    ax, ay = a.center
    bx, by = b.center
    return math.hypot(ax - bx, ay - by)
