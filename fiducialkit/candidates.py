"""Geometry of marker candidates: perimeters, corner ordering, enlarging
candidates found on eroded images, line fitting, and removal of duplicate
detections and ambiguous matches."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Sequence

import numpy as np

__all__ = [
    "DetectedMarker",
    "Match",
    "perimeter",
    "enlarge_candidate",
    "sort_anticlockwise",
    "interpolate_line",
    "cross_point",
    "filter_ambiguous_query",
    "remove_duplicates",
]

Point2 = tuple[float, float]
Line = tuple[float, float, float]

_PI = 3.14159
_22 = _PI / 8.0
_3_22 = 3.0 * _PI / 8.0
_5_22 = 5.0 * _PI / 8.0
_7_22 = 7.0 * _PI / 8.0


@dataclass
class DetectedMarker:
    """A marker found in an image: its id, four corners and origin data."""

    id: int
    corners: list[Point2] = field(default_factory=list)
    dict_info: str = ""
    contour: list[tuple[int, int]] = field(default_factory=list)


@dataclass(frozen=True)
class Match:
    """A correspondence between a query element and a train element."""

    query_idx: int
    train_idx: int
    distance: float


def perimeter(points: Sequence[Point2]) -> int:
    """Sum of the closed polygon's side lengths, each truncated to an int."""
    total = 0
    n = len(points)
    for i, (x1, y1) in enumerate(points):
        x2, y2 = points[(i + 1) % n]
        total += int(math.sqrt((x1 - x2) ** 2 + (y1 - y2) ** 2))
    return total


def _increments(angle: float, fact: int) -> tuple[int, int]:
    if _22 < angle < 3 * _22:
        return fact, fact
    if -_22 < angle < _22:
        return fact, 0
    if -_3_22 < angle < -_22:
        return fact, -fact
    if -_5_22 < angle < -_3_22:
        return 0, -fact
    if -_7_22 < angle < -_5_22:
        return -fact, -fact
    if -_PI < angle < -_7_22 or _7_22 < angle < _PI:
        return -fact, 0
    if _5_22 < angle < _7_22:
        return -fact, fact
    if _3_22 < angle < _5_22:
        return fact, fact
    return 0, 0


def enlarge_candidate(points: Sequence[Point2], fact: int) -> list[Point2]:
    """Push the corners of a four-corner candidate ``fact`` pixels outward.

    Used for candidates found on eroded images, whose corners lie inside
    the real marker border. Returns a new list of corners.
    """
    if len(points) != 4:
        raise ValueError(f"a candidate needs 4 corners, got {len(points)}")
    fact = int(fact)
    cand = [(float(x), float(y)) for x, y in points]
    for j in range(2):
        start, end = j, (j + 2) % 4
        if cand[start][0] > cand[end][0]:
            start, end = end, start
        vx = cand[end][0] - cand[start][0]
        vy = cand[end][1] - cand[start][1]
        incx, incy = _increments(math.atan2(vy, vx), fact)
        cand[end] = (cand[end][0] + incx, cand[end][1] + incy)
        cand[start] = (cand[start][0] - incx, cand[start][1] - incy)
    return cand


def sort_anticlockwise(candidates: Sequence[Sequence[Point2]]) -> list[list[Point2]]:
    """Reorder each candidate's corners so they run anti-clockwise.

    When the third corner lies on the left of the line from the first to
    the second, the second and fourth corners are swapped.
    """
    result = []
    for cand in candidates:
        corners = [tuple(p) for p in cand]
        if len(corners) < 4:
            raise ValueError(f"a candidate needs 4 corners, got {len(corners)}")
        dx1 = corners[1][0] - corners[0][0]
        dy1 = corners[1][1] - corners[0][1]
        dx2 = corners[2][0] - corners[0][0]
        dy2 = corners[2][1] - corners[0][1]
        if dx1 * dy2 - dy1 * dx2 < 0.0:
            corners[1], corners[3] = corners[3], corners[1]
        result.append(corners)
    return result


def interpolate_line(points: Sequence[Point2]) -> Line:
    """Least-squares line ``a*x + b*y + c = 0`` through the points.

    Fits ``y`` on ``x`` when the points spread more along x (b = -1),
    otherwise ``x`` on ``y`` (a = -1).
    """
    pts = np.asarray(points, dtype=float).reshape(-1, 2)
    if len(pts) == 0:
        raise ValueError("at least one point is required")
    xs, ys = pts[:, 0], pts[:, 1]
    ones = np.ones(len(pts))
    if np.ptp(xs) > np.ptp(ys):
        (slope, offset), *_ = np.linalg.lstsq(np.column_stack([xs, ones]), ys, rcond=None)
        return float(slope), -1.0, float(offset)
    (slope, offset), *_ = np.linalg.lstsq(np.column_stack([ys, ones]), xs, rcond=None)
    return -1.0, float(slope), float(offset)


def cross_point(line1: Line, line2: Line) -> Point2:
    """Intersection of two lines given as ``(a, b, c)`` with ``a*x + b*y + c = 0``."""
    a = np.array([[line1[0], line1[1]], [line2[0], line2[1]]], dtype=float)
    b = np.array([-line1[2], -line2[2]], dtype=float)
    (x, y), *_ = np.linalg.lstsq(a, b, rcond=None)
    return float(x), float(y)


def filter_ambiguous_query(matches: Sequence[Match]) -> list[Match]:
    """Keep, for each query index, only the match with the smallest distance.

    On ties the earlier match wins. When any match is dropped, matches
    with an invalid (-1) train index are dropped as well.
    """
    best: dict[int, int] = {}
    dropped: set[int] = set()
    for idx, match in enumerate(matches):
        held = best.get(match.query_idx)
        if held is None:
            best[match.query_idx] = idx
        elif matches[held].distance > match.distance:
            dropped.add(held)
            best[match.query_idx] = idx
        else:
            dropped.add(idx)
    if not dropped:
        return list(matches)
    return [
        m for i, m in enumerate(matches)
        if i not in dropped and m.train_idx != -1 and m.query_idx != -1
    ]


def remove_duplicates(markers: Sequence[DetectedMarker]) -> list[DetectedMarker]:
    """Sort markers by id and drop repeated detections of the same marker.

    Of two detections sharing id and dictionary, the one with the smaller
    perimeter is dropped.
    """
    ordered = sorted(markers, key=lambda m: m.id)
    remove = [False] * len(ordered)
    for i in range(len(ordered) - 1):
        for j in range(i + 1, len(ordered)):
            if remove[i]:
                break
            a, b = ordered[i], ordered[j]
            if a.id == b.id and a.dict_info == b.dict_info:
                if perimeter(a.corners) < perimeter(b.corners):
                    remove[i] = True
                else:
                    remove[j] = True
    return [replace(m) for m, gone in zip(ordered, remove) if not gone]