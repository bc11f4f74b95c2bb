"""Building extrusion: watertight core volume plus facade ornament.

Footprints are counter-clockwise ``(x, z)`` rings.  For a CCW edge with
direction ``d`` the outward wall normal is ``(d.z, 0, -d.x)``.  The core
(walls, bottom cap, roof) is closed; ornaments are open single-sided
faces laid over it in the wall slot.
"""

import math
import logging

import numpy as np

from .constants import WALL_UV_TILE
from .geometry import (
    erode, normalize_ring, polygon_bounds, polygon_centroid, signed_area,
    triangulate_with_fallback,
)
from .models import BuildingStyle, FeatureKind, MeshBuffer
from .osm_data import parse_length

logger = logging.getLogger(__name__)

UP = np.array([0.0, 1.0, 0.0])
DOWN = -UP

PLINTH_HEIGHT = 0.8
PLINTH_DEPTH = 0.1
LEDGE_DEPTH = 0.12
LEDGE_THICKNESS = 0.15
WINDOW_WIDTH = 1.2
WINDOW_HEIGHT = 1.6
WINDOW_SILL = 0.9
WINDOW_SPACING = 2.8
WINDOW_RECESS = 0.08
CORNICE_DEPTH = 0.2
CORNICE_HEIGHT = 0.3
CORNICE_MIN_HEIGHT = 4.0
PARAPET_HEIGHT = 0.5
PARAPET_INSET = 0.2
PARAPET_MIN_HEIGHT = 5.0
PARAPET_MIN_UPPER_HEIGHT = 3.0
ROOF_RISE_RATIO = 0.3
ROOF_RISE_RANGE = (1.5, 4.0)


# ── Height and roof policy ──────────────────────────────────────────────

def resolve_height(tags: dict, area: float, rng, style: BuildingStyle) -> float:
    """Estimate a building's height in metres.

    Order: the ``height`` tag, then ``building:levels`` times the floor
    height (both floored at ``style.min_height``), then a random draw from
    the building type's range, capped for small footprints.
    """
    raw = tags.get('height')
    if raw:
        h = parse_length(raw)
        if h is not None:
            return max(h, style.min_height)

    levels = tags.get('building:levels')
    if levels:
        try:
            n = float(levels)
        except ValueError:
            n = None
        if n is not None and math.isfinite(n):
            return max(n * style.floor_height, style.min_height)

    building_type = (tags.get('building') or '').lower()
    lo, hi = style.height_ranges.get(building_type, style.default_height_range)
    h = rng.uniform(lo, hi)
    for max_area, cap in style.small_footprint_caps:
        if area < max_area:
            h = min(h, cap)
            break
    return h


def wants_pitched_roof(building_type: str, height: float, rng,
                       style: BuildingStyle) -> bool:
    if building_type not in style.pitched_roof_types:
        return False
    if height > style.pitched_roof_max_height:
        return False
    return rng.random() < style.pitched_roof_chance


# ── Primitive helpers ───────────────────────────────────────────────────

def _at(p, y):
    return np.array([p[0], y, p[1]], dtype=np.float64)


def _edges(footprint):
    """Yield ``(p1, p2, length, direction, outward)`` for each ring edge."""
    n = len(footprint)
    for i in range(n):
        p1 = footprint[i]
        p2 = footprint[(i + 1) % n]
        dx, dz = p2[0] - p1[0], p2[1] - p1[1]
        length = math.hypot(dx, dz)
        if length < 1e-9:
            continue
        d = np.array([dx / length, 0.0, dz / length])
        yield p1, p2, length, d, np.array([d[2], 0.0, -d[0]])


def add_walls(mesh: MeshBuffer, footprint, base_y: float, height: float,
              slot: str, inward: bool = False,
              floor_height: float = 3.2) -> None:
    """One quad per edge from *base_y* up *height*; outward unless *inward*."""
    top_y = base_y + height
    v0, v1 = base_y / floor_height, top_y / floor_height
    run = 0.0
    for p1, p2, length, _, out in _edges(footprint):
        u0, u1 = run / WALL_UV_TILE, (run + length) / WALL_UV_TILE
        mesh.add_face(slot,
                      [_at(p1, base_y), _at(p1, top_y), _at(p2, top_y), _at(p2, base_y)],
                      -out if inward else out,
                      uvs=((u0, v0), (u0, v1), (u1, v1), (u1, v0)))
        run += length


def add_cap(mesh: MeshBuffer, footprint, y: float, slot: str,
            facing_up: bool, label: str = "cap") -> int:
    """Fill the polygon at height *y*.  Returns the triangle count."""
    points, tris, _ = triangulate_with_fallback(footprint, label)
    if not tris:
        return 0
    min_x, min_z, max_x, max_z = polygon_bounds(points)
    sx = max(max_x - min_x, 0.01)
    sz = max(max_z - min_z, 0.01)
    idx = [mesh.add_vertex((x, y, z), ((x - min_x) / sx, (z - min_z) / sz))
           for x, z in points]
    facing = UP if facing_up else DOWN
    for i, j, k in tris:
        mesh.add_triangle(slot, idx[i], idx[j], idx[k], facing=facing)
    return len(tris)


def add_pitched_roof(mesh: MeshBuffer, footprint, base_y: float,
                     slot: str) -> float:
    """Single-apex pyramid over the vertex centroid.  Returns the rise."""
    min_x, min_z, max_x, max_z = polygon_bounds(footprint)
    sx = max(max_x - min_x, 0.01)
    sz = max(max_z - min_z, 0.01)
    lo, hi = ROOF_RISE_RANGE
    rise = min(max(min(sx, sz) * ROOF_RISE_RATIO, lo), hi)

    cx, cz = polygon_centroid(footprint)
    apex = mesh.add_vertex((cx, base_y + rise, cz), (0.5, 0.5))
    ring = [mesh.add_vertex((x, base_y, z), ((x - min_x) / sx, (z - min_z) / sz))
            for x, z in footprint]
    n = len(footprint)
    for i in range(n):
        p1, p2 = footprint[i], footprint[(i + 1) % n]
        dx, dz = p2[0] - p1[0], p2[1] - p1[1]
        length = math.hypot(dx, dz) or 1.0
        facing = np.array([dz / length, 1.0, -dx / length])
        mesh.add_triangle(slot, ring[i], ring[(i + 1) % n], apex, facing=facing)
    return rise


# ── Ornament ────────────────────────────────────────────────────────────

def add_plinth(mesh: MeshBuffer, footprint, base_y: float, slot: str) -> None:
    """Ground-level band standing slightly proud of the wall."""
    top_y = base_y + PLINTH_HEIGHT
    for p1, p2, _, _, out in _edges(footprint):
        o = out * PLINTH_DEPTH
        mesh.add_face(slot, [_at(p1, base_y) + o, _at(p1, top_y) + o,
                             _at(p2, top_y) + o, _at(p2, base_y) + o], out)
        mesh.add_face(slot, [_at(p1, top_y), _at(p2, top_y),
                             _at(p2, top_y) + o, _at(p1, top_y) + o], UP)


def add_floor_ledges(mesh: MeshBuffer, footprint, base_y: float,
                     total_height: float, slot: str,
                     floor_height: float = 3.2) -> int:
    """Horizontal bands at floor lines 1 .. floors-1.

    ``floors`` is the number of whole storeys in *total_height*, so a
    partial top storey gets no band.  Returns the number of bands.
    """
    floors = int(total_height / floor_height + 1e-9)
    bands = 0
    for floor in range(1, floors):
        y = base_y + floor * floor_height
        top_y = y + LEDGE_THICKNESS * 0.5
        bot_y = y - LEDGE_THICKNESS * 0.5
        for p1, p2, _, _, out in _edges(footprint):
            o = out * LEDGE_DEPTH
            mesh.add_face(slot, [_at(p1, bot_y) + o, _at(p1, top_y) + o,
                                 _at(p2, top_y) + o, _at(p2, bot_y) + o], out)
            mesh.add_face(slot, [_at(p1, top_y), _at(p2, top_y),
                                 _at(p2, top_y) + o, _at(p1, top_y) + o], UP)
            mesh.add_face(slot, [_at(p1, bot_y), _at(p2, bot_y),
                                 _at(p2, bot_y) + o, _at(p1, bot_y) + o], DOWN)
        bands += 1
    return bands


def add_window_recesses(mesh: MeshBuffer, footprint, base_y: float,
                        total_height: float, slot: str,
                        floor_height: float = 3.2) -> int:
    """Indented windows on every whole storey of every long enough edge.

    Each window is a recessed pane with sill, lintel and two jambs
    connecting it back to the wall plane.  Returns the window count.
    """
    floors = int(total_height / floor_height + 1e-9)
    if floors < 1:
        return 0

    half_w = WINDOW_WIDTH * 0.5
    windows = 0
    for p1, _, length, d, out in _edges(footprint):
        if length < WINDOW_SPACING:
            continue
        count = int((length - 1.0) / WINDOW_SPACING)
        if count < 1:
            continue
        start = (length - count * WINDOW_SPACING) * 0.5 + WINDOW_SPACING * 0.5
        inset = -out * WINDOW_RECESS

        for floor in range(floors):
            bot_y = base_y + floor * floor_height + WINDOW_SILL
            top_y = bot_y + WINDOW_HEIGHT
            for w in range(count):
                centre = _at(p1, 0.0) + d * (start + w * WINDOW_SPACING)
                left, right = centre - d * half_w, centre + d * half_w
                wbl, wbr = left + UP * bot_y, right + UP * bot_y
                wtl, wtr = left + UP * top_y, right + UP * top_y
                bl, br, tl, tr = wbl + inset, wbr + inset, wtl + inset, wtr + inset

                mesh.add_face(slot, [bl, br, tr, tl], out)
                mesh.add_face(slot, [wbl, wbr, br, bl], UP,
                              uvs=((0, 0), (1, 0), (1, 0.3), (0, 0.3)))
                mesh.add_face(slot, [wtl, wtr, tr, tl], DOWN,
                              uvs=((0, 0), (1, 0), (1, 0.3), (0, 0.3)))
                mesh.add_face(slot, [wbl, bl, tl, wtl], d,
                              uvs=((0, 0), (0.3, 0), (0.3, 1), (0, 1)))
                mesh.add_face(slot, [wbr, br, tr, wtr], -d,
                              uvs=((0, 0), (0.3, 0), (0.3, 1), (0, 1)))
                windows += 1
    return windows


def add_cornice(mesh: MeshBuffer, footprint, roof_y: float, slot: str) -> None:
    """Overhang at the roofline: front, underside and top lip."""
    bot_y = roof_y - CORNICE_HEIGHT
    for p1, p2, _, _, out in _edges(footprint):
        o = out * CORNICE_DEPTH
        mesh.add_face(slot, [_at(p1, bot_y) + o, _at(p1, roof_y) + o,
                             _at(p2, roof_y) + o, _at(p2, bot_y) + o], out)
        mesh.add_face(slot, [_at(p1, bot_y), _at(p2, bot_y),
                             _at(p2, bot_y) + o, _at(p1, bot_y) + o], DOWN)
        mesh.add_face(slot, [_at(p1, roof_y), _at(p2, roof_y),
                             _at(p2, roof_y) + o, _at(p1, roof_y) + o], UP)


def add_parapet(mesh: MeshBuffer, footprint, roof_y: float, slot: str) -> bool:
    """Low double wall around a flat roof, joined by a top strip."""
    inner = erode(footprint, PARAPET_INSET)
    if signed_area(inner) <= 0:
        return False
    top_y = roof_y + PARAPET_HEIGHT

    add_walls(mesh, footprint, roof_y, PARAPET_HEIGHT, slot)
    add_walls(mesh, inner, roof_y, PARAPET_HEIGHT, slot, inward=True)

    n = len(footprint)
    for i in range(n):
        j = (i + 1) % n
        mesh.add_face(slot, [_at(footprint[i], top_y), _at(footprint[j], top_y),
                             _at(inner[j], top_y), _at(inner[i], top_y)], UP)
    return True


# ── Extrusion ───────────────────────────────────────────────────────────

def _add_stage_ornament(mesh, footprint, base_y, stage_height, style, slot):
    if style.ledges:
        add_floor_ledges(mesh, footprint, base_y, stage_height, slot,
                         style.floor_height)
    if style.windows:
        add_window_recesses(mesh, footprint, base_y, stage_height, slot,
                            style.floor_height)


def extrude_building(footprint, height: float, building_type: str, rng,
                     style: BuildingStyle, slots: dict,
                     name: str = "building") -> MeshBuffer:
    """Extrude a normalized CCW footprint into a building mesh.

    Tall buildings on large footprints get a setback: the full footprint
    rises to ``style.setback_ratio`` of the height and an eroded upper
    volume, closed on its own, carries the roof.
    """
    wall, roof = slots['wall'], slots['roof']
    mesh = MeshBuffer(FeatureKind.building, name)
    area = signed_area(footprint)
    pitched = wants_pitched_roof(building_type, height, rng, style)

    upper = None
    if height > style.setback_min_height and area > style.setback_min_area:
        upper = normalize_ring(erode(footprint, style.setback_inset))
    setback = upper is not None
    lower_height = height * style.setback_ratio if setback else height

    add_walls(mesh, footprint, 0.0, lower_height, wall,
              floor_height=style.floor_height)
    add_cap(mesh, footprint, 0.0, wall, facing_up=False, label=f"{name} base")
    if style.plinth:
        add_plinth(mesh, footprint, 0.0, wall)
    _add_stage_ornament(mesh, footprint, 0.0, lower_height, style, wall)

    stage, stage_base, stage_height = footprint, 0.0, lower_height
    if setback:
        upper_height = height - lower_height
        add_cap(mesh, footprint, lower_height, roof, facing_up=True,
                label=f"{name} terrace")
        add_walls(mesh, upper, lower_height, upper_height, wall,
                  floor_height=style.floor_height)
        add_cap(mesh, upper, lower_height, wall, facing_up=False,
                label=f"{name} upper base")
        _add_stage_ornament(mesh, upper, lower_height, upper_height, style, wall)
        stage, stage_base, stage_height = upper, lower_height, upper_height

    top_y = stage_base + stage_height
    # an upper volume always gets a cornice, even under a pitched roof
    if style.cornice and (setback or (not pitched and height > CORNICE_MIN_HEIGHT)):
        add_cornice(mesh, stage, top_y, wall)
    if pitched:
        add_pitched_roof(mesh, stage, top_y, roof)
    else:
        add_cap(mesh, stage, top_y, roof, facing_up=True, label=f"{name} roof")
        tall_enough = (stage_height > PARAPET_MIN_UPPER_HEIGHT if setback
                       else height > PARAPET_MIN_HEIGHT)
        if style.parapet and tall_enough:
            add_parapet(mesh, stage, top_y, wall)

    mesh.metadata.update(height=height, area=area, pitched=pitched,
                         setback=setback)
    return mesh


def build_building(way, graph, projector, rng, style: BuildingStyle,
                   slots: dict):
    """Project, validate and extrude one building way.

    Returns ``None`` for footprints that are degenerate or smaller than
    ``style.min_area``.
    """
    nodes = graph.resolve(way)
    if len(nodes) < 3:
        logger.debug(f"Skipping building {way.id}: {len(nodes)} resolvable nodes")
        return None

    footprint = normalize_ring([projector.to_local(n.lat, n.lon) for n in nodes])
    if footprint is None:
        logger.debug(f"Skipping building {way.id}: degenerate footprint")
        return None

    area = signed_area(footprint)
    if area < style.min_area:
        logger.debug(f"Skipping building {way.id}: area {area:.1f} m² "
                     f"below {style.min_area}")
        return None

    building_type = way.tag('building')
    height = resolve_height(way.tags, area, rng, style)
    mesh = extrude_building(footprint, height, building_type, rng, style,
                            slots, name=f"building_{way.id}")
    mesh.metadata.update(way_id=way.id, building_type=building_type,
                         footprint=footprint)
    return mesh
