"""Configuration constants, lookup tables, environment and logging setup."""

import os
import logging

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# ── Environment overrides ───────────────────────────────────────────────
OVERPASS_URL = os.environ.get(
    "CITYMESH_OVERPASS_URL", "https://overpass-api.de/api/interpreter")
OVERPASS_TIMEOUT = int(os.environ.get("CITYMESH_OVERPASS_TIMEOUT", "60"))
OVERPASS_RETRY_TIMEOUT = 90
LOG_LEVEL = os.environ.get("CITYMESH_LOG_LEVEL", "INFO").upper()

# ── Buildings ───────────────────────────────────────────────────────────
FLOOR_HEIGHT = 3.2          # metres per storey
MIN_BUILDING_HEIGHT = 3.0
MIN_FOOTPRINT_AREA = 4.0    # m², smaller footprints are skipped

# Heuristic height ranges (metres) by building=* value when neither
# height nor building:levels is tagged.  Not derived from any data.
BUILDING_HEIGHT_RANGES = {
    'apartments': (12.0, 20.0),
    'residential': (8.0, 14.0),
    'commercial': (14.0, 28.0),
    'office': (14.0, 28.0),
    'industrial': (6.0, 10.0),
    'warehouse': (6.0, 10.0),
    'church': (12.0, 20.0),
    'cathedral': (12.0, 20.0),
    'garage': (3.0, 5.0),
    'shed': (3.0, 5.0),
    'hut': (3.0, 5.0),
    'house': (6.0, 10.0),
    'detached': (6.0, 10.0),
}
DEFAULT_HEIGHT_RANGE = (6.0, 14.0)

# (max footprint area m², max estimated height m); first match applies.
SMALL_FOOTPRINT_HEIGHT_CAPS = ((30.0, 8.0), (80.0, 14.0))

WALL_UV_TILE = 4.0          # metres of facade per horizontal texture repeat

PITCHED_ROOF_TYPES = frozenset({'house', 'detached'})

# ── Roads ───────────────────────────────────────────────────────────────
DEFAULT_ROAD_WIDTH = 6.0

ROAD_WIDTHS = {
    'motorway': 12.0,
    'trunk': 12.0,
    'primary': 10.0,
    'secondary': 8.0,
    'tertiary': 6.0,
    'residential': 6.0,
    'service': 4.0,
    'pedestrian': 4.0,
    'footway': 2.0,
    'path': 2.0,
    'cycleway': 2.0,
}

ROAD_CLASSES = {
    'motorway': frozenset({'motorway', 'motorway_link', 'trunk', 'trunk_link'}),
    'primary': frozenset({'primary', 'primary_link',
                          'secondary', 'secondary_link'}),
    'footpath': frozenset({'footway', 'path', 'pedestrian', 'cycleway',
                           'steps', 'track'}),
}
DEFAULT_ROAD_CLASS = 'residential'

# ── Areas ───────────────────────────────────────────────────────────────
# Distinct surface heights per area kind so overlapping areas never
# share a plane.
AREA_ELEVATIONS = {
    'water-area': 0.02,
    'park-area': 0.05,
}
AREA_EDGE_DEPTH = 0.10

PARK_TAGS = {
    'leisure': frozenset({'park', 'garden', 'playground', 'pitch',
                          'recreation_ground'}),
    'landuse': frozenset({'park', 'grass', 'forest', 'meadow',
                          'village_green', 'recreation_ground'}),
    'natural': frozenset({'wood', 'grassland', 'scrub', 'heath'}),
}

WATER_NATURAL = frozenset({'water', 'bay', 'wetland', 'coastline', 'beach'})
WATER_LANDUSE = frozenset({'reservoir', 'basin'})

# ── Material slots ──────────────────────────────────────────────────────
# Role → slot identifier.  Identifiers are opaque to the pipeline; a role
# mapped to None disables the geometry that needs it (sidewalks, railings).
DEFAULT_SLOTS = {
    'wall': 'wall',
    'roof': 'roof',
    'road': 'road',
    'sidewalk': 'sidewalk',
    'deck': 'deck',
    'railing': 'railing',
    'pillar': 'pillar',
    'park': 'park',
    'water': 'water',
    'trunk': 'trunk',
    'canopy': 'canopy',
    'platform': 'platform',
}

# RGBA colours used when exporting slots to GLB.
SLOT_COLORS = {
    'wall': [0.90, 0.88, 0.84, 1.0],
    'roof': [0.55, 0.35, 0.30, 1.0],
    'road': [0.25, 0.25, 0.25, 1.0],
    'sidewalk': [0.70, 0.70, 0.68, 1.0],
    'deck': [0.30, 0.30, 0.30, 1.0],
    'railing': [0.60, 0.60, 0.62, 1.0],
    'pillar': [0.50, 0.50, 0.50, 1.0],
    'park': [0.20, 0.45, 0.15, 1.0],
    'water': [0.10, 0.30, 0.70, 1.0],
    'trunk': [0.25, 0.20, 0.12, 1.0],
    'canopy': [0.10, 0.32, 0.08, 1.0],
    'platform': [0.80, 0.80, 0.78, 1.0],
}
DEFAULT_SLOT_COLOR = [0.8, 0.8, 0.8, 1.0]

# Configure logging
logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO),
                    format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)
