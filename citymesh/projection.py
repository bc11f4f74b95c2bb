"""Geographic projection with a floating local origin."""

import logging

from pyproj import Transformer

logger = logging.getLogger(__name__)


class GeoProjector:
    """Project WGS84 lat/lon into metres relative to a session origin.

    Uses spherical Mercator (EPSG:3857), i.e. a sphere of radius
    6378137 m.  Subtracting the origin keeps coordinates near the
    area of interest small, which preserves precision once they are
    narrowed to float32 vertex buffers.
    """

    def __init__(self):
        self._to_mercator = Transformer.from_crs(
            "EPSG:4326", "EPSG:3857", always_xy=True)
        self.origin = None

    def to_planar(self, lat: float, lon: float) -> tuple:
        """Return absolute Mercator ``(x, y)`` in metres."""
        x, y = self._to_mercator.transform(lon, lat)
        return float(x), float(y)

    def set_origin(self, lat: float, lon: float) -> None:
        self.origin = self.to_planar(lat, lon)
        logger.info(f"Origin set to lat={lat}, lon={lon} "
                    f"(x={self.origin[0]:.2f}, y={self.origin[1]:.2f})")

    def to_local(self, lat: float, lon: float) -> tuple:
        """Return ``(x, z)`` in metres from the origin (x east, z north).

        Without an origin the first projected point becomes the origin.
        """
        if self.origin is None:
            logger.warning("Projector has no origin; using "
                           f"lat={lat}, lon={lon} as the origin")
            self.set_origin(lat, lon)
        x, y = self.to_planar(lat, lon)
        return x - self.origin[0], y - self.origin[1]

    def reset(self) -> None:
        self.origin = None
