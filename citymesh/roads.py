"""Road, sidewalk and bridge extrusion along projected way paths."""

import logging

import numpy as np

from .classify import is_bridge
from .constants import (
    DEFAULT_ROAD_CLASS, DEFAULT_ROAD_WIDTH, ROAD_CLASSES, ROAD_WIDTHS,
)
from .geometry import (
    SMOOTH_MERGE_DISTANCE, dedupe_path, offset_path, path_length, perpendicular,
    point_along_path, smooth_path, tangent,
)
from .models import FeatureKind, MeshBuffer, RoadEnd
from .osm_data import parse_length

logger = logging.getLogger(__name__)

__all__ = [
    'road_width', 'classify_road', 'is_bridge', 'extrude_strip', 'add_pillar',
    'build_road', 'build_bridge',
]

UP = np.array([0.0, 1.0, 0.0])
DOWN = -UP

ROAD_SURFACE_Y = 0.08
ROAD_THICKNESS = 0.12
SIDEWALK_SURFACE_Y = 0.18
SIDEWALK_THICKNESS = 0.18
SIDEWALK_WIDTH = 1.5
SIDEWALK_MIN_ROAD_WIDTH = 4.0

BRIDGE_ELEVATION = 5.0
BRIDGE_DECK_EXTRA_WIDTH = 1.0
BRIDGE_DECK_THICKNESS = 0.6
RAIL_WIDTH = 0.15
RAIL_HEIGHT = 1.0
PILLAR_WIDTH = 0.8
PILLAR_SPACING = 20.0

SMOOTH_SUBDIVISIONS = {'motorway': 6, 'primary': 6}
DEFAULT_SMOOTH_SUBDIVISIONS = 4


def road_width(tags: dict, overrides=None,
               default: float = DEFAULT_ROAD_WIDTH) -> float:
    """Carriageway width: ``width`` tag, then overrides, then the table."""
    raw = tags.get('width')
    if raw:
        width = parse_length(raw)
        if width is not None and width > 0:
            return width

    highway = (tags.get('highway') or '').lower()
    if overrides and highway in overrides:
        return float(overrides[highway])
    return ROAD_WIDTHS.get(highway, default)


def classify_road(highway: str) -> str:
    """Map a highway value to motorway, primary, footpath or residential."""
    highway = (highway or '').lower()
    for road_class, values in ROAD_CLASSES.items():
        if highway in values:
            return road_class
    return DEFAULT_ROAD_CLASS


def extrude_strip(mesh: MeshBuffer, path, width: float, surface_y: float,
                  thickness: float, slot: str) -> bool:
    """Extrude a closed rectangular-section ribbon along *path*.

    Four vertices per path point (top and bottom on both edges), joined
    into top, bottom and both sides, with flat caps at the two ends.  The
    path's own heights are ignored.  Returns False for paths under two
    points.
    """
    path = np.asarray(path, dtype=np.float64).reshape(-1, 3)
    n = len(path)
    if n < 2:
        return False

    half = width / 2.0
    bottom_y = surface_y - thickness
    rights = [perpendicular(path, i) for i in range(n)]

    v = 0.0
    base = []
    for i in range(n):
        if i > 0:
            v += float(np.linalg.norm(path[i] - path[i - 1])) / width
        p = np.array([path[i][0], 0.0, path[i][2]])
        left, right = p - rights[i] * half, p + rights[i] * half
        b = mesh.add_vertex(left + UP * surface_y, (0.0, v))
        mesh.add_vertex(right + UP * surface_y, (1.0, v))
        mesh.add_vertex(left + UP * bottom_y, (0.0, v))
        mesh.add_vertex(right + UP * bottom_y, (1.0, v))
        base.append(b)

    for i in range(n - 1):
        b, m = base[i], base[i + 1]
        side = (rights[i] + rights[i + 1]) * 0.5
        mesh.add_quad(slot, b, m, m + 1, b + 1, facing=UP)
        mesh.add_quad(slot, b + 2, b + 3, m + 3, m + 2, facing=DOWN)
        mesh.add_quad(slot, b, b + 2, m + 2, m, facing=-side)
        mesh.add_quad(slot, b + 1, m + 1, m + 3, b + 3, facing=side)

    first, last = base[0], base[-1]
    mesh.add_quad(slot, first, first + 1, first + 3, first + 2,
                  facing=-tangent(path, 0))
    mesh.add_quad(slot, last, last + 1, last + 3, last + 2,
                  facing=tangent(path, n - 1))
    return True


def add_pillar(mesh: MeshBuffer, centre, size: float, height: float,
               slot: str) -> None:
    """Axis-aligned box standing on the ground at *centre*."""
    h = size / 2.0
    x, z = float(centre[0]), float(centre[2])
    corners = [(x - h, z - h), (x + h, z - h), (x + h, z + h), (x - h, z + h)]
    bottom = [mesh.add_vertex((cx, 0.0, cz), (i * 0.25, 0.0))
              for i, (cx, cz) in enumerate(corners)]
    top = [mesh.add_vertex((cx, height, cz), (i * 0.25, 1.0))
           for i, (cx, cz) in enumerate(corners)]

    mesh.add_quad(slot, *bottom, facing=DOWN)
    mesh.add_quad(slot, *top, facing=UP)
    for i in range(4):
        j = (i + 1) % 4
        mid_x = (corners[i][0] + corners[j][0]) / 2.0 - x
        mid_z = (corners[i][1] + corners[j][1]) / 2.0 - z
        mesh.add_quad(slot, bottom[i], bottom[j], top[j], top[i],
                      facing=np.array([mid_x, 0.0, mid_z]))


def _register_ends(registry, path, width, road_class, slot) -> None:
    def unit(v):
        length = np.linalg.norm(v)
        return v / length if length > 1e-12 else v

    start_dir = unit(path[0] - path[1])
    end_dir = unit(path[-1] - path[-2])
    registry.append(RoadEnd(tuple(map(float, path[0])), tuple(map(float, start_dir)),
                            width, road_class, slot))
    registry.append(RoadEnd(tuple(map(float, path[-1])), tuple(map(float, end_dir)),
                            width, road_class, slot))


def build_bridge(path, width: float, slots: dict, name: str = "bridge") -> MeshBuffer:
    """Elevated deck with optional railings and ground pillars.

    *path* is used raw so pillars land exactly on the mapped line.
    """
    path = np.asarray(path, dtype=np.float64).reshape(-1, 3)
    mesh = MeshBuffer(FeatureKind.bridge, name)
    deck_slot = slots.get('deck') or slots['road']

    elevated = path.copy()
    elevated[:, 1] = BRIDGE_ELEVATION
    deck_width = width + BRIDGE_DECK_EXTRA_WIDTH
    extrude_strip(mesh, elevated, deck_width, BRIDGE_ELEVATION,
                  BRIDGE_DECK_THICKNESS, deck_slot)

    rails = 0
    rail_slot = slots.get('railing')
    if rail_slot:
        for side in (-1.0, 1.0):
            rail_path = offset_path(elevated, side * deck_width / 2.0)
            extrude_strip(mesh, rail_path, RAIL_WIDTH,
                          BRIDGE_ELEVATION + RAIL_HEIGHT, RAIL_HEIGHT, rail_slot)
            rails += 1

    pillar_slot = slots.get('pillar') or deck_slot
    length = path_length(path)
    count = max(2, int(length / PILLAR_SPACING) + 1)
    for p in range(count):
        centre = point_along_path(path, p / (count - 1))
        add_pillar(mesh, centre, PILLAR_WIDTH, BRIDGE_ELEVATION, pillar_slot)

    mesh.metadata.update(length=length, pillars=count, railings=rails,
                         deck_width=deck_width)
    return mesh


def build_road(way, graph, projector, registry, slots: dict,
               width_overrides=None, default_width: float = DEFAULT_ROAD_WIDTH):
    """Extrude one highway way as a road ribbon or a bridge.

    Returns ``None`` when fewer than two distinct points resolve.  Both
    path endpoints are appended to *registry* once the mesh is built.
    """
    nodes = graph.resolve(way)
    points = [projector.to_local(n.lat, n.lon) for n in nodes]
    path = dedupe_path([[x, 0.0, z] for x, z in points], 0.01)
    if len(path) < 2:
        logger.debug(f"Skipping road {way.id}: {len(path)} distinct points")
        return None

    highway = way.tag('highway')
    road_class = classify_road(highway)
    width = road_width(way.tags, width_overrides, default_width)
    bridge = is_bridge(way.tags)

    road_slot = slots['road']
    sidewalk_slot = slots.get('sidewalk')
    if road_class == 'footpath' and sidewalk_slot:
        road_slot = sidewalk_slot

    if not bridge and len(path) >= 3:
        path = smooth_path(path, SMOOTH_SUBDIVISIONS.get(
            road_class, DEFAULT_SMOOTH_SUBDIVISIONS))
        # smoothing merges points under 0.5 m apart
        if len(path) < 2:
            logger.debug(f"Skipping road {way.id}: shorter than "
                         f"{SMOOTH_MERGE_DISTANCE} m")
            return None

    if bridge:
        mesh = build_bridge(path, width, slots, name=f"bridge_{way.id}")
    else:
        mesh = MeshBuffer(FeatureKind.road, f"road_{way.id}")
        extrude_strip(mesh, path, width, ROAD_SURFACE_Y, ROAD_THICKNESS, road_slot)
        sidewalks = (sidewalk_slot and width >= SIDEWALK_MIN_ROAD_WIDTH
                     and road_class != 'footpath')
        if sidewalks:
            offset = width / 2.0 + SIDEWALK_WIDTH / 2.0
            for side in (-1.0, 1.0):
                extrude_strip(mesh, offset_path(path, side * offset),
                              SIDEWALK_WIDTH, SIDEWALK_SURFACE_Y,
                              SIDEWALK_THICKNESS, sidewalk_slot)
        mesh.metadata['sidewalks'] = bool(sidewalks)

    _register_ends(registry, path, width, road_class, road_slot)
    mesh.metadata.update(way_id=way.id, highway=highway, road_class=road_class,
                         width=width, bridge=bridge)
    return mesh
