"""Tag-based dispatch of ways to feature kinds."""

import logging
from dataclasses import dataclass

from .constants import PARK_TAGS
from .models import FeatureKind, Way
from .osm_data import is_water_relation

logger = logging.getLogger(__name__)


@dataclass
class Feature:
    kind: FeatureKind
    way: Way


def _is_area(way: Way) -> bool:
    return way.is_closed or way.source_relation is not None


def is_bridge(tags: dict) -> bool:
    value = (tags.get('bridge') or '').lower()
    return bool(value) and value != 'no'


def is_park(tags: dict) -> bool:
    for key, values in PARK_TAGS.items():
        if (tags.get(key) or '').lower() in values:
            return True
    return False


def classify_way(way: Way):
    """Return the :class:`FeatureKind` for *way*, or ``None`` to skip it.

    Buildings win over everything else, then highways (bridges first).
    Water and park areas need a closed ring or an assembled relation ring.
    """
    building = way.tag('building')
    if building and building != 'no':
        return FeatureKind.building
    if way.tag('highway'):
        return FeatureKind.bridge if is_bridge(way.tags) else FeatureKind.road
    if not _is_area(way):
        return None
    if is_water_relation(way.tags):
        return FeatureKind.water
    if is_park(way.tags):
        return FeatureKind.park
    return None


def classify_ways(ways) -> list:
    """Classify every way, dropping the ones no extruder handles."""
    features = []
    for way in ways:
        kind = classify_way(way)
        if kind is None:
            continue
        features.append(Feature(kind, way))

    counts = {}
    for f in features:
        counts[f.kind.value] = counts.get(f.kind.value, 0) + 1
    logger.info(f"Classified {len(features)} of {len(ways)} ways: {counts}")
    return features
