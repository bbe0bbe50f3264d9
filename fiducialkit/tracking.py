"""Tracking of markers between frames and contour-based corner refinement.

A marker seen reliably in earlier frames, but missed by the labeler in the
current one, is recovered from the unlabelled candidates that match its
previous location and size.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Sequence

from fiducialkit.candidates import DetectedMarker, cross_point, interpolate_line

__all__ = [
    "MarkerTracker",
    "best_rotation",
    "refine_corners_with_contour",
    "min_marker_size",
]

Point2 = tuple[float, float]

_MAX_SIZE_DIFFERENCE = 0.3


def _polygon_area(points: Sequence[Point2]) -> float:
    n = len(points)
    twice = sum(
        points[i][0] * points[(i + 1) % n][1] - points[(i + 1) % n][0] * points[i][1]
        for i in range(n)
    )
    return abs(twice) / 2.0


def _centre(points: Sequence[Point2]) -> Point2:
    n = len(points)
    return sum(p[0] for p in points) / n, sum(p[1] for p in points) / n


def _contains(points: Sequence[Point2], point: Point2) -> bool:
    x, y = point
    inside = False
    n = len(points)
    for i in range(n):
        x1, y1 = points[i]
        x2, y2 = points[(i + 1) % n]
        if (y1 > y) != (y2 > y):
            x_cross = x1 + (y - y1) * (x2 - x1) / (y2 - y1)
            if x < x_cross:
                inside = not inside
    return inside


@dataclass(frozen=True)
class _Shape:
    centre: Point2
    area: float
    corners: tuple[Point2, ...]

    @classmethod
    def of(cls, corners: Sequence[Point2]) -> "_Shape":
        pts = tuple((float(x), float(y)) for x, y in corners)
        if len(pts) < 3:
            raise ValueError("a shape needs at least three corners")
        return cls(_centre(pts), _polygon_area(pts), pts)


def _rotate_left(items: list, count: int) -> list:
    return items[count:] + items[:count]


def _unit_direction(corners: Sequence[Point2]) -> Point2:
    dx = corners[1][0] - corners[0][0]
    dy = corners[1][1] - corners[0][1]
    norm = math.hypot(dx, dy)
    if norm == 0:
        raise ValueError("the first two corners coincide")
    return dx / norm, dy / norm


def best_rotation(previous: Sequence[Point2], corners: Sequence[Point2]) -> int:
    """Left rotation of ``corners`` whose first edge best follows ``previous``.

    Returns the number of positions (0-3) by which the corners must be
    rotated so that their first edge points the same way as the first
    edge of the previous corners.
    """
    if len(previous) < 2 or len(corners) != 4:
        raise ValueError("four corners and a previous edge are required")
    ref = _unit_direction(previous)
    best, best_err = 0, -1.0
    pts = list(corners)
    for r in range(4):
        aux = _rotate_left(pts, r)
        d = _unit_direction(aux)
        err = ref[0] * d[0] + ref[1] * d[1]
        if err > best_err:
            best, best_err = r, err
    return best


class MarkerTracker:
    """Recovers markers that disappear after being detected often enough."""

    def __init__(self, min_detections: int) -> None:
        self.min_detections = min_detections
        self._counts: dict[int, int] = {}
        self._previous: list[DetectedMarker] = []

    def detection_count(self, marker_id: int) -> int:
        """How reliably a marker has been seen recently (0 if never)."""
        return self._counts.get(marker_id, 0)

    def update(
        self,
        detected: Sequence[DetectedMarker],
        candidates: Sequence[DetectedMarker],
    ) -> tuple[list[DetectedMarker], list[DetectedMarker]]:
        """Process one frame.

        ``detected`` are the markers labelled in this frame and
        ``candidates`` the rectangles the labeler rejected. Returns the
        detected markers extended with the tracked ones, and the
        candidates that were not used for tracking.
        """
        markers = [replace(m) for m in detected]
        remaining = [replace(c) for c in candidates]

        if self.min_detections > 0:
            seen = {m.id for m in markers}
            for marker_id, count in self._counts.items():
                if marker_id not in seen:
                    self._counts[marker_id] = max(count - 1, 0)

            needs_track = {
                m.id: m
                for m in self._previous
                if m.id not in seen
                and self._counts.get(m.id, 0) >= self.min_detections
            }

            if needs_track:
                markers, remaining = self._track(markers, remaining, needs_track)

            for m in markers:
                self._counts[m.id] = self._counts.get(m.id, 0) + 1

        self._previous = [replace(m) for m in markers]
        return markers, remaining

    def _track(
        self,
        markers: list[DetectedMarker],
        candidates: list[DetectedMarker],
        needs_track: dict[int, DetectedMarker],
    ) -> tuple[list[DetectedMarker], list[DetectedMarker]]:
        shapes = {mid: _Shape.of(m.corners) for mid, m in needs_track.items()}
        matches: dict[int, tuple[int, float]] = {}

        for cand_idx, cand in enumerate(candidates):
            cand_shape = _Shape.of(cand.corners)
            for mid in sorted(shapes):
                shape = shapes[mid]
                if not _contains(shape.corners, cand_shape.centre):
                    continue
                dist = math.dist(shape.centre, cand_shape.centre)
                if shape.area == 0:
                    continue
                size_diff = abs(shape.area - cand_shape.area) / shape.area
                best_dist = matches.get(mid, (-1, math.inf))[1]
                if size_diff < _MAX_SIZE_DIFFERENCE and dist < best_dist:
                    matches[mid] = (cand_idx, dist)

        used: set[int] = set()
        for mid in sorted(matches):
            cand_idx, _ = matches[mid]
            cand = candidates[cand_idx]
            prev = needs_track[mid]
            corners = list(cand.corners)
            rotation = best_rotation(prev.corners, corners)
            markers.append(
                DetectedMarker(
                    id=mid,
                    corners=_rotate_left(corners, rotation),
                    dict_info=prev.dict_info,
                    contour=list(cand.contour),
                )
            )
            used.add(cand_idx)

        remaining = [c for i, c in enumerate(candidates) if i not in used]
        return markers, remaining


def _corner_indices(corners: Sequence[Point2], contour: Sequence[tuple[int, int]]) -> list[int]:
    indices = [-1] * 4
    dists = [math.inf] * 4
    for j, (cx, cy) in enumerate(contour):
        for k in range(4):
            d = (cx - corners[k][0]) ** 2 + (cy - corners[k][1]) ** 2
            if d < dists[k]:
                indices[k] = j
                dists[k] = d
    return indices


def refine_corners_with_contour(
    corners: Sequence[Point2], contour: Sequence[tuple[int, int]]
) -> list[Point2]:
    """Refine four corners by intersecting lines fitted to the contour sides.

    Each corner is matched to its nearest contour pixel; the contour
    between consecutive corners is fitted with a line, and neighbouring
    lines are intersected to give the new corners.
    """
    if len(corners) != 4:
        raise ValueError(f"four corners are required, got {len(corners)}")
    if not contour:
        raise ValueError("the contour is empty")
    pts = [(float(x), float(y)) for x, y in contour]
    n = len(pts)
    ci = _corner_indices(corners, contour)

    if ci[1] > ci[0] and (ci[2] > ci[1] or ci[2] < ci[0]):
        inverse = False
    elif ci[1] < ci[2] < ci[0]:
        inverse = False
    else:
        inverse = True
    inc = -1 if inverse else 1

    lines = []
    for side in range(4):
        stop = ci[(side + 1) % 4]
        side_points: list[Point2] = []
        j = ci[side]
        steps = 0
        while j != stop:
            if j == n and not inverse:
                j = 0
            elif j == 0 and inverse:
                j = n - 1
            side_points.append(pts[j])
            if j == stop:
                break
            j += inc
            steps += 1
            if steps > 2 * n + 2:
                raise ValueError("could not walk the contour between corners")
        if not side_points:
            raise ValueError("two corners map onto the same contour point")
        lines.append(interpolate_line(side_points))

    return [cross_point(lines[(i - 1) % 4], lines[i]) for i in range(4)]


def min_marker_size(markers: Sequence[DetectedMarker], width: int, height: int) -> float:
    """Smallest marker perimeter relative to four times the larger image side.

    Returns 0 when there are no markers.
    """
    lengths = [
        sum(math.dist(m.corners[c], m.corners[(c + 1) % 4]) for c in range(4))
        for m in markers
    ]
    if not lengths:
        return 0.0
    return min(lengths) / (4 * max(width, height))