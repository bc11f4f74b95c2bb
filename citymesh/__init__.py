"""citymesh package: 3D city mesh generation from OpenStreetMap data.

Import constants FIRST so the environment and logging are configured
before any other module logs.
"""

from citymesh import constants as _constants  # noqa: F401

from citymesh.builder import CityBuilder
from citymesh.errors import CityMeshError, NetworkFailure, ParseFailure
from citymesh.models import (
    BuildingStyle, FeatureKind, GenerationConfig, GenerationSession, MeshBuffer,
)
from citymesh.osm_data import parse_osm
