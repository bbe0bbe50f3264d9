"""Threshold selection and image-size planning for marker detection.

This module covers Otsu's threshold over a grey-level histogram and the
classification of FAST keypoints by the regions around them. It also
works out adaptive-threshold window sizes, the low-resolution image size
and the pyramid levels used during detection.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Iterable, Sequence

import numpy as np

__all__ = [
    "KeyPoint",
    "otsu",
    "image_histogram",
    "assign_class_fast",
    "threshold_window_sizes",
    "min_marker_size_pix",
    "low_res_size",
    "pyramid_sizes",
    "marker_warp_size",
]

_HIST_BINS = 256
_MIN_CONTRAST = 25
_DEFAULT_SUBDIVISIONS = 7


@dataclass(frozen=True)
class KeyPoint:
    """An image keypoint and the class assigned to it (-1 when unknown)."""

    x: float
    y: float
    class_id: int = -1


def otsu(histogram: Sequence[float]) -> int:
    """Otsu's threshold for a 256-bin grey-level histogram.

    Returns the threshold that maximises the between-class variance, or
    -1 when no threshold splits the histogram into two populated classes.
    """
    hist = np.asarray(histogram, dtype=float).reshape(-1)
    if hist.size != _HIST_BINS:
        raise ValueError(f"expected {_HIST_BINS} histogram bins, got {hist.size}")
    total = float(hist.sum())
    if total <= 0:
        return -1
    hist = hist / total
    values = np.arange(_HIST_BINS, dtype=float)

    max_var = 0.0
    best = -1
    for t in range(1, _HIST_BINS):
        w0 = float(hist[:t].sum())
        w1 = float(hist[t:].sum())
        if w0 > 1e-4 and w1 > 1e-4:
            mean0 = float((values[:t] * hist[:t]).sum()) / w0
            mean1 = float((values[t:] * hist[t:]).sum()) / w1
            var = w0 * w1 * (mean0 - mean1) ** 2
            if var > max_var:
                max_var = var
                best = t
    return best


def image_histogram(image, histogram: Iterable[float] | None = None) -> list[float]:
    """Grey-level histogram of an 8-bit image, added to ``histogram`` if given."""
    img = np.asarray(image)
    if img.dtype != np.uint8:
        raise ValueError("the image must hold 8-bit unsigned values")
    counts = np.bincount(img.reshape(-1), minlength=_HIST_BINS).astype(float)
    if histogram is None:
        return counts.tolist()
    base = np.asarray(list(histogram), dtype=float)
    if base.size != _HIST_BINS:
        raise ValueError(f"expected {_HIST_BINS} histogram bins, got {base.size}")
    return (base + counts).tolist()


def _count_regions(binary: np.ndarray) -> int:
    """Count connected regions with the single-pass labelling used for keypoints."""
    rows, cols = binary.shape
    labels = np.zeros((rows, cols), dtype=np.int64)
    new_label = 1
    unions: dict[int, int] = {}
    for y in range(rows):
        for x in range(cols):
            region = binary[y, x]
            left = labels[y, x - 1] if x > 0 and binary[y, x - 1] == region else 0
            top = labels[y - 1, x] if y > 0 and binary[y - 1, x] == region else 0
            if left == 0 and top == 0:
                labels[y, x] = new_label
                new_label = (new_label + 1) & 0xFF
            elif left != 0 and top != 0:
                if left < top:
                    labels[y, x] = left
                    unions[int(top)] = int(left)
                elif left > top:
                    labels[y, x] = top
                    unions[int(left)] = int(top)
                else:
                    labels[y, x] = top
            else:
                labels[y, x] = left or top
    return new_label - 1 - len(unions)


def assign_class_fast(image, keypoints: Sequence[KeyPoint], window: int) -> list[KeyPoint]:
    """Classify keypoints by the binarised square window around each one.

    A low-contrast window gives class 0. Two regions give class 0 when
    the bright part dominates and 1 otherwise, and more than two regions
    give class 2. Keypoints whose window leaves the image, or with a
    single region, keep their class.
    """
    img = np.asarray(image)
    if img.dtype != np.uint8 or img.ndim != 2:
        raise ValueError("assign_class_fast needs a single-channel 8-bit image")
    if window < 0:
        raise ValueError("the window half-size must not be negative")
    full = window * 2 + 1
    rows, cols = img.shape

    result = []
    for kp in keypoints:
        cx = int(kp.x + 0.5)
        cy = int(kp.y + 0.5)
        x0, y0 = cx - window, cy - window
        if x0 < 0 or x0 + full > cols or y0 < 0 or y0 + full > rows:
            result.append(kp)
            continue
        patch = img[y0:y0 + full, x0:x0 + full].astype(int)
        lo, hi = int(patch.min()), int(patch.max())
        if hi - lo < _MIN_CONTRAST:
            result.append(replace(kp, class_id=0))
            continue
        binary = patch > (hi + lo) / 2.0
        bright = int(binary.sum())
        regions = _count_regions(binary)
        if regions == 2:
            cls = 0 if bright > binary.size - bright else 1
            result.append(replace(kp, class_id=cls))
        elif regions > 2:
            result.append(replace(kp, class_id=2))
        else:
            result.append(kp)
    return result


def threshold_window_sizes(window_size: int, window_range: int, image_cols: int) -> list[int]:
    """Odd adaptive-threshold window sizes to try on an image.

    A ``window_size`` of -1 derives the size from the image width.
    """
    size = window_size
    if size == -1:
        size = max(3, int(15 * float(image_cols) / 1920.0))
    if size % 2 == 0:
        size += 1
    start = int(max(3.0, size - 2.0 * window_range))
    stop = size + 2 * window_range
    return list(range(start, stop + 1, 2))


def min_marker_size_pix(min_size: float, min_size_pix: int, width: int, height: int) -> int:
    """Minimum marker size in pixels for an image, 0 when unconstrained.

    ``min_size`` is a fraction of the larger image side; either limit
    may be -1 to disable it.
    """
    if min_size == -1 and min_size_pix == -1:
        return 0
    max_dim = max(width, height)
    size = 0
    if min_size != -1:
        size = int(float(min_size) * float(max_dim))
    if min_size_pix != -1:
        size = min(min_size_pix, size)
    return size


def low_res_size(width: int, height: int, low_res_marker_size: int,
                 min_marker_pix: int) -> tuple[int, int]:
    """Size of the image on which rectangles are searched.

    The image is shrunk so that the smallest wanted marker spans about
    ``low_res_marker_size`` pixels, with even dimensions; it is left as
    it is when the reduction would be slight.
    """
    if low_res_marker_size < min_marker_pix:
        factor = float(low_res_marker_size) / float(min_marker_pix)
        if factor < 0.9:
            new_w = int(float(width) * factor + 0.5)
            new_h = int(float(height) * factor + 0.5)
            if new_w % 2 != 0:
                new_w += 1
            if new_h % 2 != 0:
                new_h += 1
            return new_w, new_h
    return width, height


def pyramid_sizes(width: int, height: int, min_size: int, factor: float) -> list[tuple[int, int]]:
    """Sizes of the image pyramid levels, from the original downwards.

    Levels are added until the width no longer exceeds ``min_size``.
    """
    if factor <= 1:
        raise ValueError("the pyramid factor must be greater than 1")
    if min_size < 0:
        raise ValueError("the minimum size must not be negative")
    sizes = [(width, height)]
    w, h = width, height
    while w > min_size:
        w, h = int(w / factor), int(h / factor)
        sizes.append((w, h))
    return sizes


def marker_warp_size(best_input_size: int, subdivisions: int, warp_pix_size: int) -> int:
    """Side of the canonical image a candidate is warped to before labelling.

    A labeler's preferred input size wins; otherwise the side is the bit
    count per side (7 when unknown, i.e. -1) times the pixels per bit.
    """
    if best_input_size != -1:
        return best_input_size
    ndiv = subdivisions if subdivisions != -1 else _DEFAULT_SUBDIVISIONS
    return warp_pix_size * ndiv