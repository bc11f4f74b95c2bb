"""GLB export of mesh buffers through a trimesh scene."""

import logging

import numpy as np
import trimesh

from .constants import DEFAULT_SLOT_COLOR, SLOT_COLORS
from .models import MaterialCache

logger = logging.getLogger(__name__)


def buffer_to_geometries(mesh, materials: MaterialCache, slot_colors=None) -> list:
    """Return ``(name, Trimesh)`` pairs, one per non-empty slot of *mesh*.

    Vertices go from x-east/z-north into glTF space by negating Z, which
    flips handedness, so face winding is reversed as well.
    """
    slot_colors = SLOT_COLORS if slot_colors is None else slot_colors
    verts = np.asarray(mesh.vertices, dtype=np.float64).reshape(-1, 3).copy()
    verts[:, 2] *= -1
    uvs = np.asarray(mesh.uvs, dtype=np.float64).reshape(-1, 2)

    out = []
    for slot, tris in mesh.submeshes.items():
        if not tris:
            continue
        faces = np.asarray(tris, dtype=np.int64)[:, ::-1]
        used = np.unique(faces)
        remap = np.full(len(verts), -1, dtype=np.int64)
        remap[used] = np.arange(len(used))
        geom = trimesh.Trimesh(vertices=verts[used], faces=remap[faces],
                               process=False)
        material = materials.get(slot_colors.get(slot, DEFAULT_SLOT_COLOR))
        geom.visual = trimesh.visual.TextureVisuals(uv=uvs[used],
                                                    material=material)
        out.append((f"{mesh.name}_{slot}", geom))
    return out


def export_glb(buffers, output_path, materials=None, slot_colors=None) -> str:
    """Write *buffers* to a binary glTF file and return its path."""
    materials = materials if materials is not None else MaterialCache()
    scene = trimesh.Scene()
    count = 0
    for mesh in buffers:
        for name, geom in buffer_to_geometries(mesh, materials, slot_colors):
            scene.add_geometry(geom, geom_name=name)
            count += 1
    if count == 0:
        raise ValueError("No valid geometry to generate GLB file")

    scene.export(str(output_path), file_type='glb')
    logger.info(f"GLB file generated successfully: {output_path} "
                f"({count} geometries, {len(materials)} materials)")
    return str(output_path)
