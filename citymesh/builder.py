"""CityBuilder: thin orchestrator that delegates to the extruder modules."""

import random
import logging
import time

from tqdm import tqdm

from .areas import build_area
from .buildings import build_building
from .classify import classify_ways
from .ground import build_platform
from .models import FeatureKind, GenerationConfig, GenerationSession
from .osm_data import parse_osm
from .overpass import OverpassClient
from .projection import GeoProjector
from .roads import build_road
from .vegetation import FootprintIndex, scatter_trees

logger = logging.getLogger(__name__)


class CityBuilder:
    def __init__(self, config: GenerationConfig, session=None, client=None):
        """
        config: coordinate, radius, overrides and material slots of the pass.
        session: registry and material cache; a fresh one when omitted.
        client: map data source used when no document is supplied.
        """
        self.config = config
        self.session = session if session is not None else GenerationSession()
        self.client = client if client is not None else OverpassClient()
        self.projector = None
        self.seed = None

    def fetch(self) -> str:
        """Download the map document for the configured disk."""
        cfg = self.config
        return self.client.fetch(cfg.lat, cfg.lon, cfg.radius)

    def _feature_rng(self, kind, feature_id) -> random.Random:
        return random.Random(f"{self.seed}:{kind.value}:{feature_id}")

    def _extrude(self, feature, graph, footprints):
        cfg = self.config
        way = feature.way
        if feature.kind is FeatureKind.building:
            mesh = build_building(way, graph, self.projector,
                                  self._feature_rng(feature.kind, way.id),
                                  cfg.building_style, cfg.slots)
            if mesh is not None:
                footprints.add(mesh.metadata['footprint'])
            return mesh
        if feature.kind in (FeatureKind.road, FeatureKind.bridge):
            return build_road(way, graph, self.projector,
                              self.session.registry, cfg.slots,
                              cfg.width_overrides, cfg.default_road_width)
        return build_area(way, feature.kind, graph, self.projector, cfg.slots)

    def generate(self, document=None, show_progress: bool = False) -> list:
        """Run one generation pass and return its mesh buffers.

        With no *document* the map data is fetched first.  A malformed
        document raises :class:`ParseFailure`; a feature that fails to
        extrude is logged and left out.
        """
        t0 = time.perf_counter()
        cfg = self.config
        self.session.reset()

        self.seed = cfg.seed
        if self.seed is None:
            self.seed = random.SystemRandom().randrange(2 ** 31)
            logger.info(f"No seed configured; using seed {self.seed}")

        self.projector = GeoProjector()
        self.projector.set_origin(cfg.lat, cfg.lon)

        if document is None:
            document = self.fetch()
        graph = parse_osm(document)
        features = classify_ways(graph.ways)

        buffers = []
        footprints = FootprintIndex()
        failed = 0
        for feature in tqdm(features, desc="Features", disable=not show_progress):
            try:
                mesh = self._extrude(feature, graph, footprints)
            except Exception as e:
                logger.warning(f"Failed to extrude {feature.kind.value} "
                               f"{feature.way.id}: {e}")
                failed += 1
                continue
            if mesh is not None and not mesh.is_empty():
                buffers.append(mesh)

        if cfg.tree_count > 0:
            rng = random.Random(f"{self.seed}:{FeatureKind.tree.value}")
            buffers.extend(scatter_trees((0.0, 0.0), cfg.radius, cfg.tree_count,
                                         rng, exclusions=footprints,
                                         slots=cfg.slots))

        if cfg.platform:
            buffers.append(build_platform(cfg.radius, cfg.slots['platform']))

        counts = {}
        for mesh in buffers:
            counts[mesh.kind.value] = counts.get(mesh.kind.value, 0) + 1
        logger.info(f"Generated {len(buffers)} mesh buffers in "
                    f"{time.perf_counter() - t0:.1f}s: {counts}"
                    + (f" ({failed} features failed)" if failed else ""))
        return buffers
