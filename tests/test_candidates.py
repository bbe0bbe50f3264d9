import math

import pytest

from fiducialkit.candidates import (
    DetectedMarker,
    Match,
    cross_point,
    enlarge_candidate,
    filter_ambiguous_query,
    interpolate_line,
    perimeter,
    remove_duplicates,
    sort_anticlockwise,
)

SQUARE = [(0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0)]


def _orientation(c):
    dx1, dy1 = c[1][0] - c[0][0], c[1][1] - c[0][1]
    dx2, dy2 = c[2][0] - c[0][0], c[2][1] - c[0][1]
    return dx1 * dy2 - dy1 * dx2


def _square(x, y, side):
    return [(x, y), (x + side, y), (x + side, y + side), (x, y + side)]


def test_perimeter_of_square():
    assert perimeter(SQUARE) == 40


def test_perimeter_truncates_each_side():
    diamond = [(1, 0), (0, 1), (-1, 0), (0, -1)]
    assert perimeter(diamond) == 4


def test_enlarge_square_moves_corners_outward():
    result = enlarge_candidate(SQUARE, 2)
    assert result == [(-2.0, -2.0), (12.0, -2.0), (12.0, 12.0), (-2.0, 12.0)]


def test_enlarge_keeps_centroid_and_grows_perimeter():
    result = enlarge_candidate(SQUARE, 3)
    cx = sum(p[0] for p in result) / 4
    cy = sum(p[1] for p in result) / 4
    assert (cx, cy) == pytest.approx((5.0, 5.0))
    assert perimeter(result) > perimeter(SQUARE)


def test_enlarge_does_not_modify_input():
    original = list(SQUARE)
    enlarge_candidate(SQUARE, 2)
    assert SQUARE == original


def test_enlarge_zero_is_identity():
    assert enlarge_candidate(SQUARE, 0) == SQUARE


def test_enlarge_requires_four_corners():
    with pytest.raises(ValueError):
        enlarge_candidate(SQUARE[:3], 1)


def test_sort_anticlockwise_swaps_clockwise_candidate():
    clockwise = [(0.0, 0.0), (0.0, 10.0), (10.0, 10.0), (10.0, 0.0)]
    assert _orientation(clockwise) < 0
    (result,) = sort_anticlockwise([clockwise])
    assert result == [clockwise[0], clockwise[3], clockwise[2], clockwise[1]]
    assert _orientation(result) >= 0


def test_sort_anticlockwise_leaves_ordered_candidate():
    assert sort_anticlockwise([SQUARE]) == [SQUARE]


def test_sort_anticlockwise_is_idempotent():
    cands = [[(0.0, 0.0), (0.0, 5.0), (5.0, 5.0), (5.0, 0.0)], SQUARE]
    once = sort_anticlockwise(cands)
    assert sort_anticlockwise(once) == once


def test_interpolate_line_mostly_horizontal():
    pts = [(x, 2.0 * x + 1.0) for x in range(0, 3)]
    pts = [(float(x) * 10, 0.5 * x * 10 + 1.0) for x in range(5)]
    a, b, c = interpolate_line(pts)
    assert b == -1.0
    assert a == pytest.approx(0.5)
    assert c == pytest.approx(1.0)


def test_interpolate_line_mostly_vertical():
    pts = [(0.25 * y + 3.0, float(y)) for y in range(0, 40, 5)]
    a, b, c = interpolate_line(pts)
    assert a == -1.0
    assert b == pytest.approx(0.25)
    assert c == pytest.approx(3.0)


def test_interpolate_line_points_lie_on_line():
    pts = [(1.0, 2.0), (4.0, 3.0), (7.0, 4.0), (10.0, 5.0)]
    a, b, c = interpolate_line(pts)
    for x, y in pts:
        assert a * x + b * y + c == pytest.approx(0.0, abs=1e-9)


def test_interpolate_line_rejects_empty():
    with pytest.raises(ValueError):
        interpolate_line([])


def test_cross_point_satisfies_both_lines():
    l1 = (1.0, -1.0, 0.0)
    l2 = (-1.0, -1.0, 4.0)
    x, y = cross_point(l1, l2)
    for a, b, c in (l1, l2):
        assert a * x + b * y + c == pytest.approx(0.0, abs=1e-9)


def test_cross_point_of_fitted_sides_recovers_corner():
    top = interpolate_line([(0.0, 0.0), (5.0, 0.0), (10.0, 0.0)])
    left = interpolate_line([(0.0, 0.0), (0.0, 5.0), (0.0, 10.0)])
    assert cross_point(top, left) == pytest.approx((0.0, 0.0), abs=1e-9)


def test_filter_keeps_smaller_distance():
    matches = [Match(0, 1, 5.0), Match(1, 2, 1.0), Match(0, 3, 2.0)]
    result = filter_ambiguous_query(matches)
    assert result == [Match(1, 2, 1.0), Match(0, 3, 2.0)]


def test_filter_tie_keeps_earlier():
    matches = [Match(0, 1, 2.0), Match(0, 2, 2.0)]
    assert filter_ambiguous_query(matches) == [Match(0, 1, 2.0)]


def test_filter_without_duplicates_is_unchanged():
    matches = [Match(0, -1, 1.0), Match(1, 2, 3.0)]
    assert filter_ambiguous_query(matches) == matches


def test_filter_drops_invalid_train_when_removing():
    matches = [Match(0, -1, 1.0), Match(1, 2, 3.0), Match(1, 4, 0.5)]
    assert filter_ambiguous_query(matches) == [Match(1, 4, 0.5)]


def test_filter_empty():
    assert filter_ambiguous_query([]) == []


def test_filter_leaves_one_match_per_query():
    matches = [Match(q % 3, q, float(10 - q)) for q in range(9)]
    result = filter_ambiguous_query(matches)
    queries = [m.query_idx for m in result]
    assert sorted(queries) == [0, 1, 2]
    for m in result:
        same = [o.distance for o in matches if o.query_idx == m.query_idx]
        assert m.distance == min(same)


def test_remove_duplicates_keeps_larger():
    small = DetectedMarker(7, _square(0, 0, 10), "ARUCO")
    large = DetectedMarker(7, _square(0, 0, 20), "ARUCO")
    other = DetectedMarker(3, _square(50, 50, 10), "ARUCO")
    result = remove_duplicates([small, large, other])
    assert [m.id for m in result] == [3, 7]
    assert result[1].corners == large.corners


def test_remove_duplicates_respects_dictionary():
    a = DetectedMarker(5, _square(0, 0, 10), "ARUCO")
    b = DetectedMarker(5, _square(0, 0, 20), "APRILTAGS")
    result = remove_duplicates([a, b])
    assert len(result) == 2
    assert {m.dict_info for m in result} == {"ARUCO", "APRILTAGS"}


def test_remove_duplicates_sorted_and_unique():
    markers = [DetectedMarker(i % 4, _square(0, 0, 5 + i), "D") for i in range(10)]
    result = remove_duplicates(markers)
    ids = [m.id for m in result]
    assert ids == sorted(ids)
    assert len(set(ids)) == len(ids) == 4
    for m in result:
        best = max(perimeter(o.corners) for o in markers if o.id == m.id)
        assert perimeter(m.corners) == best
        assert not math.isnan(best)