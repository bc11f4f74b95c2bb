"""Planar polygon operations and path operations used by the extruders.

Polygons are lists of ``(x, z)`` tuples on the ground plane (x east,
z north); a positive signed area means counter-clockwise.  Paths are
``(n, 3)`` numpy arrays of ``[x, y, z]`` points with y up.
"""

import math
import logging

import numpy as np

logger = logging.getLogger(__name__)

EPSILON = 1e-10              # convexity tolerance for ear clipping
COLLINEAR_TOLERANCE = 1e-6   # |sin| below which a vertex is straight
RING_MERGE_DISTANCE = 0.1    # metres, consecutive footprint points merge
SMOOTH_MERGE_DISTANCE = 0.5  # metres, consecutive path points merge


# ── Polygon operations ──────────────────────────────────────────────────

def signed_area(points) -> float:
    """Shoelace area; positive for counter-clockwise rings."""
    n = len(points)
    a = 0.0
    for i in range(n):
        x0, z0 = points[i - 1]
        x1, z1 = points[i]
        a += x0 * z1 - x1 * z0
    return a * 0.5


def polygon_centroid(points) -> tuple:
    """Vertex average of a ring (not the area centroid)."""
    n = len(points)
    return (sum(p[0] for p in points) / n, sum(p[1] for p in points) / n)


def polygon_bounds(points) -> tuple:
    """Return ``(min_x, min_z, max_x, max_z)``."""
    xs = [p[0] for p in points]
    zs = [p[1] for p in points]
    return min(xs), min(zs), max(xs), max(zs)


def _cross(o, a, b) -> float:
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def _inside_triangle(a, b, c, p) -> bool:
    return (_cross(b, c, p) >= 0.0 and
            _cross(c, a, p) >= 0.0 and
            _cross(a, b, p) >= 0.0)


def _is_ear(points, order, u, v, w, nv) -> bool:
    a, b, c = points[order[u]], points[order[v]], points[order[w]]
    if _cross(a, b, c) < EPSILON:
        return False
    for p in range(nv):
        if p in (u, v, w):
            continue
        if _inside_triangle(a, b, c, points[order[p]]):
            return False
    return True


def triangulate(points) -> list:
    """Ear-clip a simple polygon.

    Returns ``(i, j, k)`` index triples into *points*, each wound
    counter-clockwise.  Clockwise input is walked in reverse.  The search
    gives up after ``2 * remaining`` consecutive failed attempts, so
    degenerate input yields a partial (possibly empty) list.
    """
    n = len(points)
    if n < 3:
        return []

    if signed_area(points) > 0:
        order = list(range(n))
    else:
        order = list(range(n - 1, -1, -1))

    triangles = []
    nv = n
    count = 2 * nv
    v = nv - 1
    while nv > 2:
        if count <= 0:
            return triangles
        count -= 1

        u = v if v < nv else 0
        v = u + 1 if u + 1 < nv else 0
        w = v + 1 if v + 1 < nv else 0

        if _is_ear(points, order, u, v, w, nv):
            triangles.append((order[u], order[v], order[w]))
            del order[v]
            nv -= 1
            count = 2 * nv

    return triangles


def convex_hull(points) -> list:
    """Monotone-chain convex hull, counter-clockwise, no closing point."""
    pts = sorted(set((float(p[0]), float(p[1])) for p in points))
    if len(pts) <= 2:
        return pts

    lower = []
    for p in pts:
        while len(lower) >= 2 and _cross(lower[-2], lower[-1], p) <= 0:
            lower.pop()
        lower.append(p)

    upper = []
    for p in reversed(pts):
        while len(upper) >= 2 and _cross(upper[-2], upper[-1], p) <= 0:
            upper.pop()
        upper.append(p)

    return lower[:-1] + upper[:-1]


def triangulate_with_fallback(points, label: str = "polygon"):
    """Triangulate, falling back to the convex hull on implausible output.

    Returns ``(points_used, triangles, used_fallback)``.  Fewer than half
    of the ``n - 2`` triangles a simple polygon yields means the ring is
    self-intersecting or otherwise not simple.
    """
    points = list(points)
    triangles = triangulate(points)
    expected = len(points) - 2
    if triangles and len(triangles) * 2 >= expected:
        return points, triangles, False

    hull = convex_hull(points)
    logger.warning(f"Triangulation of {label} produced {len(triangles)}/"
                   f"{expected} triangles; falling back to convex hull "
                   f"({len(hull)} points)")
    return hull, triangulate(hull), True


def erode(points, distance: float) -> list:
    """Pull every vertex toward the centroid.

    Each vertex moves ``min(distance, 0.4 * distance_to_centroid)`` so
    small or concave rings shrink without folding over themselves.
    """
    cx, cz = polygon_centroid(points)
    shrunk = []
    for x, z in points:
        dx, dz = cx - x, cz - z
        dist = math.hypot(dx, dz)
        if dist < 1e-12:
            shrunk.append((x, z))
            continue
        move = min(distance, dist * 0.4)
        shrunk.append((x + dx / dist * move, z + dz / dist * move))
    return shrunk


def _drop_collinear(points) -> list:
    pts = list(points)
    changed = True
    while changed and len(pts) >= 3:
        changed = False
        for i in range(len(pts)):
            a, b, c = pts[i - 1], pts[i], pts[(i + 1) % len(pts)]
            ux, uz = b[0] - a[0], b[1] - a[1]
            vx, vz = c[0] - b[0], c[1] - b[1]
            scale = math.hypot(ux, uz) * math.hypot(vx, vz)
            if scale == 0.0 or abs(ux * vz - uz * vx) <= COLLINEAR_TOLERANCE * scale:
                del pts[i]
                changed = True
                break
    return pts


def normalize_ring(points, merge_distance: float = RING_MERGE_DISTANCE):
    """Clean a projected ring for extrusion.

    Merges near-coincident neighbours, drops the closing duplicate and
    straight-through vertices, and winds the result counter-clockwise.
    Returns ``None`` when fewer than three points survive.
    """
    clean = []
    for p in points:
        p = (float(p[0]), float(p[1]))
        if not clean or math.dist(clean[-1], p) > merge_distance:
            clean.append(p)
    if len(clean) >= 2 and math.dist(clean[0], clean[-1]) <= merge_distance:
        clean.pop()

    clean = _drop_collinear(clean)
    if len(clean) < 3:
        return None
    if signed_area(clean) < 0:
        clean.reverse()
    return clean


# ── Path operations ─────────────────────────────────────────────────────

def _as_path(path) -> np.ndarray:
    return np.asarray(path, dtype=np.float64).reshape(-1, 3)


def _unit(v) -> np.ndarray:
    n = np.linalg.norm(v)
    if n < 1e-12:
        return np.zeros_like(v)
    return v / n


def tangent(path, i: int) -> np.ndarray:
    """Horizontal unit direction at point *i*.

    Average of the incoming and outgoing segment directions; one-sided at
    the ends of the path.  Where the path doubles back on itself the
    average cancels, and the incoming direction is used instead.
    """
    path = _as_path(path)
    forward = np.zeros(3)
    if i < len(path) - 1:
        forward += _unit(path[i + 1] - path[i])
    if i > 0:
        forward += _unit(path[i] - path[i - 1])
    forward[1] = 0.0
    if np.linalg.norm(forward) < 1e-9 and i > 0:
        forward = path[i] - path[i - 1]
        forward[1] = 0.0
    return _unit(forward)


def perpendicular(path, i: int) -> np.ndarray:
    """Horizontal unit vector to the right of the travel direction."""
    f = tangent(path, i)
    return np.array([f[2], 0.0, -f[0]])


def offset_path(path, lateral: float) -> np.ndarray:
    """Shift every point sideways; positive *lateral* is to the right."""
    path = _as_path(path)
    return np.array([path[i] + perpendicular(path, i) * lateral
                     for i in range(len(path))]).reshape(-1, 3)


def dedupe_path(path, threshold: float) -> np.ndarray:
    """Drop points closer than *threshold* to the previously kept point."""
    path = _as_path(path)
    if len(path) == 0:
        return path.copy()
    kept = [path[0]]
    for p in path[1:]:
        if np.linalg.norm(p - kept[-1]) > threshold:
            kept.append(p)
    return np.array(kept)


def _catmull_rom(p0, p1, p2, p3, t: float) -> np.ndarray:
    t2 = t * t
    t3 = t2 * t
    return 0.5 * ((2.0 * p1) +
                  (-p0 + p2) * t +
                  (2.0 * p0 - 5.0 * p1 + 4.0 * p2 - p3) * t2 +
                  (-p0 + 3.0 * p1 - 3.0 * p2 + p3) * t3)


def smooth_path(path, subdivisions: int = 4) -> np.ndarray:
    """Catmull-Rom smoothing through the path's points.

    Near-duplicate points (closer than 0.5 m) are merged first so no
    spline segment degenerates.  End control points are clamped by
    repeating the first and last points.  Emits *subdivisions* points per
    segment plus the final endpoint.
    """
    if subdivisions < 1:
        raise ValueError(f"subdivisions must be >= 1, got {subdivisions}")
    clean = dedupe_path(path, SMOOTH_MERGE_DISTANCE)
    n = len(clean)
    if n < 3:
        return clean

    result = []
    for i in range(n - 1):
        p0 = clean[max(i - 1, 0)]
        p1 = clean[i]
        p2 = clean[i + 1]
        p3 = clean[min(i + 2, n - 1)]
        for s in range(subdivisions):
            result.append(_catmull_rom(p0, p1, p2, p3, s / subdivisions))
    result.append(clean[-1])
    return np.array(result)


def path_length(path) -> float:
    path = _as_path(path)
    if len(path) < 2:
        return 0.0
    return float(np.linalg.norm(np.diff(path, axis=0), axis=1).sum())


def point_along_path(path, t: float) -> np.ndarray:
    """Point at fraction *t* (0..1) of the path's length."""
    path = _as_path(path)
    if len(path) < 2 or t <= 0.0:
        return path[0].copy()
    if t >= 1.0:
        return path[-1].copy()

    target = t * path_length(path)
    accumulated = 0.0
    for i in range(1, len(path)):
        seg = float(np.linalg.norm(path[i] - path[i - 1]))
        if seg > 0 and accumulated + seg >= target:
            return path[i - 1] + (path[i] - path[i - 1]) * ((target - accumulated) / seg)
        accumulated += seg
    return path[-1].copy()
