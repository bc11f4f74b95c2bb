"""Data classes for map elements, mesh buffers and per-pass state."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

import numpy as np
import trimesh

from .constants import (
    BUILDING_HEIGHT_RANGES, DEFAULT_HEIGHT_RANGE, DEFAULT_ROAD_WIDTH,
    DEFAULT_SLOTS, FLOOR_HEIGHT, MIN_BUILDING_HEIGHT, MIN_FOOTPRINT_AREA,
    PITCHED_ROOF_TYPES, SMALL_FOOTPRINT_HEIGHT_CAPS,
)


class FeatureKind(str, Enum):
    building = "building"
    road = "road"
    bridge = "bridge"
    park = "park-area"
    water = "water-area"
    tree = "tree"
    platform = "platform"


# ── Map graph ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class GeoPoint:
    id: int
    lat: float
    lon: float


@dataclass
class Way:
    id: int
    node_ids: list = field(default_factory=list)
    tags: dict = field(default_factory=dict)
    # Set on ways assembled from a multipolygon/waterway relation.
    source_relation: Optional[int] = None

    @property
    def is_closed(self) -> bool:
        return len(self.node_ids) >= 4 and self.node_ids[0] == self.node_ids[-1]

    def tag(self, key: str, default: str = "") -> str:
        """Return the lower-cased tag value, or *default*."""
        return (self.tags.get(key) or default).lower()


@dataclass
class Member:
    type: str
    ref: int
    role: str = ""


@dataclass
class Relation:
    id: int
    members: list = field(default_factory=list)
    tags: dict = field(default_factory=dict)


class OsmGraph:
    """Nodes, ways and relations of one parsed map document."""

    def __init__(self):
        self.nodes = {}
        self.ways = []
        self.ways_by_id = {}
        self.relations = []

    def add_node(self, node: GeoPoint) -> None:
        self.nodes[node.id] = node

    def add_way(self, way: Way) -> None:
        self.ways.append(way)
        self.ways_by_id[way.id] = way

    def add_relation(self, relation: Relation) -> None:
        self.relations.append(relation)

    def resolve(self, way: Way) -> list:
        """Return the way's nodes in order, skipping dangling references."""
        return [self.nodes[n] for n in way.node_ids if n in self.nodes]

    def is_empty(self) -> bool:
        return not (self.nodes or self.ways or self.relations)

    def __repr__(self):
        return (f"OsmGraph(nodes={len(self.nodes)}, ways={len(self.ways)}, "
                f"relations={len(self.relations)})")


# ── Mesh buffer ─────────────────────────────────────────────────────────

class MeshBuffer:
    """Vertices, UVs and material-slot triangle lists for one feature.

    Coordinates are ``[x, y, z]`` with x east, y up and z north, in metres
    relative to the session origin.  Triangles are wound so that the
    right-hand normal ``(b - a) x (c - a)`` points to the visible side.
    """

    def __init__(self, kind: FeatureKind, name: str = "", metadata=None):
        self.kind = kind
        self.name = name
        self.vertices = []
        self.uvs = []
        self.submeshes = {}
        self.metadata = dict(metadata or {})

    def __repr__(self):
        return (f"MeshBuffer({self.kind.value!r}, {self.name!r}, "
                f"vertices={len(self.vertices)}, "
                f"triangles={self.triangle_count()})")

    # -- building blocks ---------------------------------------------------

    def add_vertex(self, position, uv=(0.0, 0.0)) -> int:
        self.vertices.append([float(position[0]), float(position[1]),
                              float(position[2])])
        self.uvs.append([float(uv[0]), float(uv[1])])
        return len(self.vertices) - 1

    def add_triangle(self, slot: str, a: int, b: int, c: int,
                     facing=None) -> None:
        """Append triangle ``(a, b, c)`` to *slot*.

        When *facing* is given the winding is flipped if the triangle's
        normal points away from it.
        """
        if facing is not None and self._normal_dot(a, b, c, facing) < 0:
            b, c = c, b
        self.submeshes.setdefault(slot, []).append([a, b, c])

    def add_quad(self, slot: str, a: int, b: int, c: int, d: int,
                 facing=None) -> None:
        """Append quad ``a-b-c-d`` (a closed loop) as two triangles."""
        if facing is not None and self._normal_dot(a, b, c, facing) < 0:
            a, b, c, d = a, d, c, b
        tris = self.submeshes.setdefault(slot, [])
        tris.append([a, b, c])
        tris.append([a, c, d])

    def add_face(self, slot: str, corners, facing, uvs=None) -> None:
        """Add a quad from four corner positions with its own vertices."""
        if uvs is None:
            uvs = ((0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0))
        idx = [self.add_vertex(p, uv) for p, uv in zip(corners, uvs)]
        self.add_quad(slot, *idx, facing=facing)

    def _normal_dot(self, a, b, c, facing) -> float:
        va = np.asarray(self.vertices[a])
        n = np.cross(np.asarray(self.vertices[b]) - va,
                     np.asarray(self.vertices[c]) - va)
        return float(np.dot(n, facing))

    # -- queries -----------------------------------------------------------

    def triangle_count(self, slot: Optional[str] = None) -> int:
        if slot is not None:
            return len(self.submeshes.get(slot, []))
        return sum(len(t) for t in self.submeshes.values())

    def is_empty(self) -> bool:
        return self.triangle_count() == 0

    def bounds(self):
        """Return ``(min_xyz, max_xyz)`` as numpy arrays."""
        v = np.asarray(self.vertices, dtype=np.float64)
        return v.min(axis=0), v.max(axis=0)

    def validate(self) -> None:
        """Raise ``ValueError`` if the buffer is internally inconsistent."""
        if len(self.uvs) != len(self.vertices):
            raise ValueError(f"{self.name}: {len(self.uvs)} UVs for "
                             f"{len(self.vertices)} vertices")
        n = len(self.vertices)
        for slot, tris in self.submeshes.items():
            for tri in tris:
                if len(tri) != 3 or min(tri) < 0 or max(tri) >= n:
                    raise ValueError(f"{self.name}: triangle {tri} in slot "
                                     f"{slot!r} references missing vertex")

    # -- conversion ---------------------------------------------------------

    def to_trimesh(self, slots=None, process: bool = True) -> trimesh.Trimesh:
        """Convert (a subset of) the slots into a single ``trimesh.Trimesh``.

        With *process* on, coincident vertices are merged, which is what
        makes per-face duplicated vertices read as one closed surface.
        """
        names = list(self.submeshes) if slots is None else list(slots)
        faces = [tri for s in names for tri in self.submeshes.get(s, [])]
        return trimesh.Trimesh(
            vertices=np.asarray(self.vertices, dtype=np.float64).reshape(-1, 3),
            faces=np.asarray(faces, dtype=np.int64).reshape(-1, 3),
            process=process)


# ── Session state ───────────────────────────────────────────────────────

@dataclass
class RoadEnd:
    position: tuple
    direction: tuple
    width: float
    road_class: str
    material: str


class EndpointRegistry:
    """Append-only record of road endpoints for intersection handling."""

    def __init__(self):
        self._ends = []

    def append(self, end: RoadEnd) -> None:
        self._ends.append(end)

    def clear(self) -> None:
        self._ends.clear()

    @property
    def ends(self) -> tuple:
        return tuple(self._ends)

    def __len__(self):
        return len(self._ends)

    def __iter__(self):
        return iter(tuple(self._ends))


class MaterialCache:
    """PBR materials shared between meshes of the same colour."""

    def __init__(self):
        self._materials = {}

    @staticmethod
    def _key(color) -> tuple:
        rgba = list(color) + [1.0] * (4 - len(color))
        return tuple(round(float(c), 4) for c in rgba[:4])

    def get(self, color) -> trimesh.visual.material.PBRMaterial:
        key = self._key(color)
        material = self._materials.get(key)
        if material is None:
            material = trimesh.visual.material.PBRMaterial(
                baseColorFactor=list(key),
                doubleSided=False,
            )
            self._materials[key] = material
        return material

    def clear(self) -> None:
        self._materials.clear()

    def __len__(self):
        return len(self._materials)


class GenerationSession:
    """Mutable state shared by the builders of one generation pass."""

    def __init__(self, registry=None, materials=None):
        self.registry = registry if registry is not None else EndpointRegistry()
        self.materials = materials if materials is not None else MaterialCache()

    def reset(self) -> None:
        self.registry.clear()
        self.materials.clear()


# ── Configuration ───────────────────────────────────────────────────────

@dataclass
class BuildingStyle:
    """Building heuristics.  Thresholds are aesthetic choices."""
    floor_height: float = FLOOR_HEIGHT
    min_height: float = MIN_BUILDING_HEIGHT
    min_area: float = MIN_FOOTPRINT_AREA
    height_ranges: dict = field(
        default_factory=lambda: dict(BUILDING_HEIGHT_RANGES))
    default_height_range: tuple = DEFAULT_HEIGHT_RANGE
    small_footprint_caps: tuple = SMALL_FOOTPRINT_HEIGHT_CAPS
    pitched_roof_types: frozenset = PITCHED_ROOF_TYPES
    pitched_roof_max_height: float = 8.0
    pitched_roof_chance: float = 0.5
    setback_min_height: float = 15.0
    setback_min_area: float = 60.0
    setback_ratio: float = 0.6
    setback_inset: float = 1.5
    plinth: bool = True
    ledges: bool = True
    windows: bool = True
    cornice: bool = True
    parapet: bool = True

    def without_ornaments(self) -> "BuildingStyle":
        """Return a copy that emits only the closed core volume."""
        return replace(self, plinth=False, ledges=False, windows=False,
                       cornice=False, parapet=False)


@dataclass
class GenerationConfig:
    lat: float
    lon: float
    radius: float = 500.0
    seed: Optional[int] = None
    width_overrides: dict = field(default_factory=dict)
    height_overrides: dict = field(default_factory=dict)
    slots: dict = field(default_factory=lambda: dict(DEFAULT_SLOTS))
    default_road_width: float = DEFAULT_ROAD_WIDTH
    tree_count: int = 0
    platform: bool = True
    building_style: BuildingStyle = field(default_factory=BuildingStyle)

    def __post_init__(self):
        # Partial slot maps fill in from the defaults.
        self.slots = {**DEFAULT_SLOTS, **self.slots}
        if self.height_overrides:
            self.building_style = replace(
                self.building_style,
                height_ranges={**self.building_style.height_ranges,
                               **self.height_overrides})
