"""Base platform under the generated area."""

import logging

import numpy as np

from .models import FeatureKind, MeshBuffer

logger = logging.getLogger(__name__)

PLATFORM_TOP_Y = -0.1        # just below road surfaces
PLATFORM_EXTENT = 1.25       # top half-size as a multiple of the radius
PLATFORM_HEIGHT_RATIO = 0.01
PLATFORM_HEIGHT_RANGE = (0.5, 5.0)
PLATFORM_UV_TILE = 20.0      # metres per texture repeat


def platform_height(radius: float) -> float:
    lo, hi = PLATFORM_HEIGHT_RANGE
    return min(max(radius * PLATFORM_HEIGHT_RATIO, lo), hi)


def build_platform(radius: float, slot: str = "platform") -> MeshBuffer:
    """Closed slab: square top, wider square bottom, four sloped walls.

    The bottom is flared outward by the slab height so the walls lean
    out at 45 degrees.
    """
    if radius <= 0:
        raise ValueError(f"Platform radius must be positive, got {radius}")

    height = platform_height(radius)
    top_half = radius * PLATFORM_EXTENT
    bottom_half = top_half + height
    bottom_y = PLATFORM_TOP_Y - height
    tile = 2.0 * top_half / PLATFORM_UV_TILE

    mesh = MeshBuffer(FeatureKind.platform, "platform")
    signs = ((-1, -1), (1, -1), (1, 1), (-1, 1))
    top = [mesh.add_vertex((sx * top_half, PLATFORM_TOP_Y, sz * top_half),
                           ((sx + 1) * 0.5 * tile, (sz + 1) * 0.5 * tile))
           for sx, sz in signs]
    bottom = [mesh.add_vertex((sx * bottom_half, bottom_y, sz * bottom_half),
                              ((sx + 1) * 0.5 * tile, (sz + 1) * 0.5 * tile))
              for sx, sz in signs]

    mesh.add_quad(slot, *top, facing=np.array([0.0, 1.0, 0.0]))
    mesh.add_quad(slot, *bottom, facing=np.array([0.0, -1.0, 0.0]))
    for i in range(4):
        j = (i + 1) % 4
        (sx0, sz0), (sx1, sz1) = signs[i], signs[j]
        outward = np.array([sx0 + sx1, 0.0, sz0 + sz1])
        mesh.add_quad(slot, top[i], top[j], bottom[j], bottom[i], facing=outward)

    mesh.metadata.update(radius=radius, height=height, half_size=top_half)
    logger.debug(f"Platform: half-size {top_half:.1f} m, height {height:.2f} m")
    return mesh
