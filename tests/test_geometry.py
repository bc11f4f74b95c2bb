"""Tests for polygon and path operations."""

import logging
import math

import numpy as np
import pytest

from citymesh.geometry import (
    convex_hull, dedupe_path, erode, normalize_ring, offset_path, path_length,
    perpendicular, point_along_path, polygon_bounds, polygon_centroid,
    signed_area, smooth_path, tangent, triangulate, triangulate_with_fallback,
)

SQUARE = [(0.0, 0.0), (4.0, 0.0), (4.0, 4.0), (0.0, 4.0)]
L_SHAPE = [(0, 0), (6, 0), (6, 2), (2, 2), (2, 6), (0, 6)]
NOTCHED = [(0, 0), (8, 1), (5, 3), (9, 7), (1, 6), (3, 3)]
# zero-area ring that doubles back on itself
SPIKE = [(0, 0), (4, 0), (4, 4), (4, 0)]


def _tri_area(points, tri):
    a, b, c = (points[i] for i in tri)
    return 0.5 * ((b[0] - a[0]) * (c[1] - a[1]) - (b[1] - a[1]) * (c[0] - a[0]))


def test_signed_area_orientation():
    assert signed_area(SQUARE) == pytest.approx(16.0)
    assert signed_area(SQUARE[::-1]) == pytest.approx(-16.0)


def test_signed_area_invariant_under_rigid_motion():
    angle = 0.7
    moved = [(x * math.cos(angle) - z * math.sin(angle) + 100.0,
              x * math.sin(angle) + z * math.cos(angle) - 50.0) for x, z in L_SHAPE]
    assert signed_area(moved) == pytest.approx(signed_area(L_SHAPE))


@pytest.mark.parametrize("polygon", [SQUARE, L_SHAPE, NOTCHED])
def test_triangulate_simple_polygons(polygon):
    """n - 2 counter-clockwise triangles covering the whole area"""
    tris = triangulate(polygon)
    assert len(tris) == len(polygon) - 2
    for tri in tris:
        assert all(0 <= i < len(polygon) for i in tri)
        assert _tri_area(polygon, tri) > 0
    total = sum(_tri_area(polygon, t) for t in tris)
    assert total == pytest.approx(signed_area(polygon))


def test_triangulate_clockwise_input():
    cw = L_SHAPE[::-1]
    tris = triangulate(cw)
    assert len(tris) == 4
    assert all(_tri_area(cw, t) > 0 for t in tris)


def test_triangulate_too_few_points():
    assert triangulate([(0, 0), (1, 1)]) == []


def test_convex_hull():
    hull = convex_hull(SQUARE + [(2.0, 2.0), (1.0, 3.0)])
    assert len(hull) == 4
    assert set(hull) == set(SQUARE)
    assert signed_area(hull) > 0


def test_fallback_not_used_for_simple_polygon():
    points, tris, fallback = triangulate_with_fallback(L_SHAPE, "l")
    assert not fallback
    assert points == list(L_SHAPE)
    assert len(tris) == 4


def test_fallback_on_degenerate_ring(caplog):
    with caplog.at_level(logging.WARNING):
        points, tris, fallback = triangulate_with_fallback(SPIKE, "spike")
    assert fallback
    assert sorted(points) == [(0.0, 0.0), (4.0, 0.0), (4.0, 4.0)]
    assert len(tris) == 1
    assert any("convex hull" in r.message for r in caplog.records)


def test_erode_moves_toward_centroid():
    shrunk = erode(SQUARE, 0.5)
    cx, cz = polygon_centroid(SQUARE)
    for (x0, z0), (x1, z1) in zip(SQUARE, shrunk):
        before = math.hypot(x0 - cx, z0 - cz)
        after = math.hypot(x1 - cx, z1 - cz)
        assert after == pytest.approx(before - 0.5)


def test_erode_caps_at_forty_percent():
    shrunk = erode(SQUARE, 100.0)
    cx, cz = polygon_centroid(SQUARE)
    for (x0, z0), (x1, z1) in zip(SQUARE, shrunk):
        assert math.hypot(x1 - cx, z1 - cz) == pytest.approx(
            0.6 * math.hypot(x0 - cx, z0 - cz))
    assert signed_area(shrunk) > 0


def test_polygon_bounds():
    assert polygon_bounds(L_SHAPE) == (0, 0, 6, 6)


def test_normalize_ring_cleans_and_orients():
    ring = [(0, 0), (0, 4), (0.05, 4.0), (4, 4), (4, 2), (4, 0), (0, 0)]
    clean = normalize_ring(ring)
    assert len(clean) == 4
    assert signed_area(clean) == pytest.approx(16.0, abs=0.5)


def test_normalize_ring_degenerate():
    assert normalize_ring([(0, 0), (1, 0), (2, 0), (0, 0)]) is None
    assert normalize_ring([(0, 0), (0.01, 0.0), (0.0, 0.02)]) is None


def _path(*points):
    return np.array([[x, 0.0, z] for x, z in points], dtype=float)


def test_tangent_and_perpendicular_straight():
    path = _path((0, 0), (10, 0), (20, 0))
    np.testing.assert_allclose(tangent(path, 1), [1.0, 0.0, 0.0])
    # right of travelling east is south
    np.testing.assert_allclose(perpendicular(path, 1), [0.0, 0.0, -1.0])


def test_tangent_ignores_height():
    path = np.array([[0.0, 0.0, 0.0], [10.0, 5.0, 0.0]])
    t = tangent(path, 0)
    assert t[1] == 0.0
    assert np.linalg.norm(t) == pytest.approx(1.0)


def test_tangent_bisects_corner():
    path = _path((0, 0), (10, 0), (10, 10))
    t = tangent(path, 1)
    np.testing.assert_allclose(t, [math.sqrt(0.5), 0.0, math.sqrt(0.5)])


def test_tangent_at_reversal_follows_incoming_segment():
    path = _path((0, 0), (10, 0), (0, 0))
    np.testing.assert_allclose(tangent(path, 1), [1.0, 0.0, 0.0])
    assert np.linalg.norm(perpendicular(path, 1)) == pytest.approx(1.0)


def test_offset_path():
    path = _path((0, 0), (10, 0))
    np.testing.assert_allclose(offset_path(path, 2.0), _path((0, -2), (10, -2)))
    np.testing.assert_allclose(offset_path(path, -2.0), _path((0, 2), (10, 2)))


def test_smooth_path_point_count_and_endpoints():
    path = _path((0, 0), (10, 0), (20, 10), (30, 10))
    smooth = smooth_path(path, 4)
    assert len(smooth) == 3 * 4 + 1
    np.testing.assert_allclose(smooth[0], path[0])
    np.testing.assert_allclose(smooth[-1], path[-1])
    # control points are interpolated
    np.testing.assert_allclose(smooth[4], path[1])


def test_smooth_path_short_path_returned_cleaned():
    path = _path((0, 0), (0.2, 0), (10, 0))
    smooth = smooth_path(path, 4)
    np.testing.assert_allclose(smooth, _path((0, 0), (10, 0)))


def test_smooth_path_rejects_bad_subdivisions():
    with pytest.raises(ValueError):
        smooth_path(_path((0, 0), (1, 0), (2, 0)), 0)


def test_dedupe_path():
    path = _path((0, 0), (0.001, 0), (5, 0), (5, 0))
    assert len(dedupe_path(path, 0.01)) == 2


def test_path_length_and_point_along():
    path = _path((0, 0), (10, 0), (10, 10))
    assert path_length(path) == pytest.approx(20.0)
    np.testing.assert_allclose(point_along_path(path, 0.0), path[0])
    np.testing.assert_allclose(point_along_path(path, 0.75), [10.0, 0.0, 5.0])
    np.testing.assert_allclose(point_along_path(path, 1.0), path[-1])
