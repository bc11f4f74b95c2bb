"""Flat park and water areas with a thin visible edge."""

import logging

import numpy as np

from .constants import AREA_EDGE_DEPTH, AREA_ELEVATIONS
from .geometry import (
    normalize_ring, polygon_bounds, signed_area, triangulate_with_fallback,
)
from .models import FeatureKind, MeshBuffer

logger = logging.getLogger(__name__)

UP = np.array([0.0, 1.0, 0.0])

AREA_SLOT_ROLES = {
    FeatureKind.park: 'park',
    FeatureKind.water: 'water',
}


def extrude_area(polygon, kind: FeatureKind, slot: str,
                 name: str = "area") -> MeshBuffer:
    """Top surface at the kind's elevation plus outward perimeter walls.

    Top UVs span the polygon's bounding box.  Walls drop
    ``AREA_EDGE_DEPTH`` below the surface and are not closed underneath.
    """
    surface_y = AREA_ELEVATIONS[kind.value]
    bottom_y = surface_y - AREA_EDGE_DEPTH
    mesh = MeshBuffer(kind, name)

    points, tris, fallback = triangulate_with_fallback(polygon, name)
    min_x, min_z, max_x, max_z = polygon_bounds(points)
    sx = max(max_x - min_x, 0.01)
    sz = max(max_z - min_z, 0.01)
    idx = [mesh.add_vertex((x, surface_y, z), ((x - min_x) / sx, (z - min_z) / sz))
           for x, z in points]
    for i, j, k in tris:
        mesh.add_triangle(slot, idx[i], idx[j], idx[k], facing=UP)

    n = len(points)
    for i in range(n):
        (x1, z1), (x2, z2) = points[i], points[(i + 1) % n]
        outward = np.array([z2 - z1, 0.0, -(x2 - x1)])
        mesh.add_face(slot, [(x1, surface_y, z1), (x2, surface_y, z2),
                             (x2, bottom_y, z2), (x1, bottom_y, z1)], outward,
                      uvs=((0, 1), (1, 1), (1, 0), (0, 0)))

    mesh.metadata.update(area=signed_area(points), elevation=surface_y,
                         hull_fallback=fallback)
    return mesh


def build_area(way, kind: FeatureKind, graph, projector, slots: dict):
    """Project and extrude a park or water way; None when degenerate."""
    slot = slots.get(AREA_SLOT_ROLES[kind])
    if not slot:
        logger.debug(f"Skipping {kind.value} {way.id}: no material slot")
        return None

    nodes = graph.resolve(way)
    polygon = normalize_ring([projector.to_local(n.lat, n.lon) for n in nodes])
    if polygon is None:
        logger.debug(f"Skipping {kind.value} {way.id}: degenerate outline")
        return None

    mesh = extrude_area(polygon, kind, slot, name=f"{kind.value}_{way.id}")
    mesh.metadata['way_id'] = way.id
    return mesh
