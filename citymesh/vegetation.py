"""Procedural trees and their scatter over the generation disk.

Trees are low-poly closed solids: a tapered prism trunk plus one canopy
variant built from cones or ellipsoids.  Every random draw goes through
the ``random.Random`` passed in, so a seeded generator reproduces the
same forest.
"""

import math
import logging

import numpy as np
from shapely.geometry import Point, box
from shapely.ops import unary_union
from shapely.prepared import prep

from .constants import DEFAULT_SLOTS
from .geometry import polygon_bounds
from .models import FeatureKind, MeshBuffer

logger = logging.getLogger(__name__)

UP = np.array([0.0, 1.0, 0.0])
DOWN = -UP

CANOPY_VARIANTS = ('sphere', 'cones', 'blobs')

TRUNK_SIDES = 8
TRUNK_RADIUS = 0.15
TRUNK_TAPER = 0.65
TRUNK_HEIGHT_RANGE = (1.5, 3.5)

SPHERE_RADIUS_RANGE = (2.0, 4.0)
SPHERE_LIFT = 0.55           # canopy centre above trunk top, in radii
SPHERE_SEGMENTS = 12
SPHERE_RINGS = 10

CONE_TIERS = (2, 4)
CONE_RADIUS_RANGE = (1.8, 3.0)
CONE_HEIGHT_RANGE = (1.5, 2.5)
CONE_SHRINK = 0.75           # each tier's radius relative to the one below
CONE_OVERLAP = 0.5           # tier spacing as a fraction of tier height
CONE_SIDES = 10

BLOB_COUNT = (2, 4)
BLOB_RADIUS_RANGE = (1.5, 2.5)
BLOB_FLATTEN = 0.6
BLOB_OFFSET_RANGE = (0.5, 1.5)

SCALE_RANGE = (0.6, 1.3)


# ── Primitives ──────────────────────────────────────────────────────────

def _centroid(mesh, idx):
    return np.mean([mesh.vertices[i] for i in idx], axis=0)


def _add_tapered_prism(mesh, slot, cx, cz, y_bot, y_top, r_bot, r_top,
                       nsides=TRUNK_SIDES):
    """Closed frustum with *nsides* sides and fan caps."""
    bottom, top = [], []
    for i in range(nsides):
        a = 2.0 * math.pi * i / nsides
        ca, sa = math.cos(a), math.sin(a)
        bottom.append(mesh.add_vertex((cx + r_bot * ca, y_bot, cz + r_bot * sa),
                                      (i / nsides, 0.0)))
        top.append(mesh.add_vertex((cx + r_top * ca, y_top, cz + r_top * sa),
                                   (i / nsides, 1.0)))
    centre = np.array([cx, (y_bot + y_top) / 2.0, cz])
    for i in range(nsides):
        j = (i + 1) % nsides
        quad = (bottom[i], bottom[j], top[j], top[i])
        mesh.add_quad(slot, *quad, facing=_centroid(mesh, quad) - centre)

    cb = mesh.add_vertex((cx, y_bot, cz), (0.5, 0.5))
    ct = mesh.add_vertex((cx, y_top, cz), (0.5, 0.5))
    for i in range(nsides):
        j = (i + 1) % nsides
        mesh.add_triangle(slot, cb, bottom[i], bottom[j], facing=DOWN)
        mesh.add_triangle(slot, ct, top[i], top[j], facing=UP)


def _add_cone(mesh, slot, cx, cz, y_bot, y_top, radius, nsides=CONE_SIDES):
    """Closed cone: side fan to the apex plus a flat base."""
    ring = []
    for i in range(nsides):
        a = 2.0 * math.pi * i / nsides
        ring.append(mesh.add_vertex(
            (cx + radius * math.cos(a), y_bot, cz + radius * math.sin(a)),
            (i / nsides, 0.0)))
    apex = mesh.add_vertex((cx, y_top, cz), (0.5, 1.0))
    base = mesh.add_vertex((cx, y_bot, cz), (0.5, 0.5))
    centre = np.array([cx, (y_bot + y_top) / 2.0, cz])
    for i in range(nsides):
        j = (i + 1) % nsides
        tri = (ring[i], ring[j], apex)
        mesh.add_triangle(slot, *tri, facing=_centroid(mesh, tri) - centre)
        mesh.add_triangle(slot, base, ring[i], ring[j], facing=DOWN)


def _add_ellipsoid(mesh, slot, centre, rx, ry, rz,
                   segments=SPHERE_SEGMENTS, rings=SPHERE_RINGS):
    """Closed latitude/longitude ellipsoid with single pole vertices."""
    cx, cy, cz = centre
    centre = np.asarray(centre, dtype=np.float64)
    north = mesh.add_vertex((cx, cy + ry, cz), (0.5, 1.0))
    bands = []
    for r in range(1, rings):
        phi = math.pi * r / rings
        y = cy + math.cos(phi) * ry
        s = math.sin(phi)
        band = []
        for seg in range(segments):
            theta = 2.0 * math.pi * seg / segments
            band.append(mesh.add_vertex(
                (cx + math.cos(theta) * s * rx, y, cz + math.sin(theta) * s * rz),
                (seg / segments, 1.0 - r / rings)))
        bands.append(band)
    south = mesh.add_vertex((cx, cy - ry, cz), (0.5, 0.0))

    for seg in range(segments):
        nxt = (seg + 1) % segments
        tri = (north, bands[0][seg], bands[0][nxt])
        mesh.add_triangle(slot, *tri, facing=_centroid(mesh, tri) - centre)
        tri = (south, bands[-1][nxt], bands[-1][seg])
        mesh.add_triangle(slot, *tri, facing=_centroid(mesh, tri) - centre)
        for upper, lower in zip(bands, bands[1:]):
            quad = (upper[seg], lower[seg], lower[nxt], upper[nxt])
            mesh.add_quad(slot, *quad, facing=_centroid(mesh, quad) - centre)


# ── Trees ───────────────────────────────────────────────────────────────

def build_tree(position, rng, scale: float = 1.0, variant=None, slots=None,
               name: str = "tree") -> MeshBuffer:
    """Build one tree standing on the ground at planar *position* ``(x, z)``.

    *variant* is one of ``CANOPY_VARIANTS``; when omitted it is drawn
    from *rng*.
    """
    slots = slots or DEFAULT_SLOTS
    trunk_slot, canopy_slot = slots['trunk'], slots['canopy']
    if variant is None:
        variant = rng.choice(CANOPY_VARIANTS)
    if variant not in CANOPY_VARIANTS:
        raise ValueError(f"Unknown canopy variant {variant!r}")

    x, z = float(position[0]), float(position[1])
    mesh = MeshBuffer(FeatureKind.tree, name)

    trunk_r = TRUNK_RADIUS * scale
    trunk_h = rng.uniform(*TRUNK_HEIGHT_RANGE) * scale
    _add_tapered_prism(mesh, trunk_slot, x, z, 0.0, trunk_h,
                       trunk_r, trunk_r * TRUNK_TAPER)

    parts = 0
    if variant == 'sphere':
        r = rng.uniform(*SPHERE_RADIUS_RANGE) * scale
        _add_ellipsoid(mesh, canopy_slot, (x, trunk_h + r * SPHERE_LIFT, z), r, r, r)
        parts = 1
    elif variant == 'cones':
        parts = rng.randint(*CONE_TIERS)
        radius = rng.uniform(*CONE_RADIUS_RANGE) * scale
        tier_h = rng.uniform(*CONE_HEIGHT_RANGE) * scale
        for tier in range(parts):
            y_bot = trunk_h + tier * tier_h * CONE_OVERLAP
            _add_cone(mesh, canopy_slot, x, z, y_bot, y_bot + tier_h, radius)
            radius *= CONE_SHRINK
    else:
        parts = rng.randint(*BLOB_COUNT)
        for _ in range(parts):
            r = rng.uniform(*BLOB_RADIUS_RANGE) * scale
            offset = rng.uniform(*BLOB_OFFSET_RANGE) * scale
            angle = rng.uniform(0.0, 2.0 * math.pi)
            centre = (x + math.cos(angle) * offset,
                      trunk_h + r * BLOB_FLATTEN * 0.8,
                      z + math.sin(angle) * offset)
            _add_ellipsoid(mesh, canopy_slot, centre, r, r * BLOB_FLATTEN, r)

    mesh.metadata.update(position=(x, z), scale=scale, variant=variant,
                         trunk_height=trunk_h, canopy_parts=parts)
    return mesh


class FootprintIndex:
    """Bounding boxes of building footprints, for placement rejection."""

    def __init__(self):
        self._boxes = []
        self._prepared = None

    def add(self, footprint) -> None:
        min_x, min_z, max_x, max_z = polygon_bounds(footprint)
        self._boxes.append(box(min_x, min_z, max_x, max_z))
        self._prepared = None

    def contains(self, x: float, z: float) -> bool:
        """True if ``(x, z)`` lies inside or on any recorded bound."""
        if not self._boxes:
            return False
        if self._prepared is None:
            self._prepared = prep(unary_union(self._boxes))
        return self._prepared.covers(Point(x, z))

    def __len__(self):
        return len(self._boxes)


def scatter_trees(center, radius: float, count: int, rng, exclusions=None,
                  slots=None) -> list:
    """Try *count* placements uniformly over a disk.

    Angle is uniform in [0, 2π) and distance is ``radius * sqrt(u)`` so
    density is even per unit area.  Placements that land inside an
    *exclusions* bound are dropped, so fewer than *count* trees may come
    back.
    """
    cx, cz = center
    trees = []
    rejected = 0
    for i in range(count):
        angle = rng.random() * 2.0 * math.pi
        dist = radius * math.sqrt(rng.random())
        x = cx + math.cos(angle) * dist
        z = cz + math.sin(angle) * dist
        scale = rng.uniform(*SCALE_RANGE)
        if exclusions is not None and exclusions.contains(x, z):
            rejected += 1
            continue
        trees.append(build_tree((x, z), rng, scale, slots=slots,
                                name=f"tree_{i}"))

    logger.info(f"Placed {len(trees)} of {count} trees "
                f"({rejected} rejected inside building footprints)")
    return trees
