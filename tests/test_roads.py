"""Tests for road, sidewalk and bridge extrusion."""

import numpy as np
import pytest

from citymesh import roads
from citymesh.constants import DEFAULT_SLOTS
from citymesh.models import EndpointRegistry, FeatureKind, MeshBuffer
from citymesh.roads import (
    BRIDGE_ELEVATION, add_pillar, build_bridge, build_road, classify_road,
    extrude_strip, road_width,
)

from .helpers import planar_graph

NO_SIDEWALKS = dict(DEFAULT_SLOTS, sidewalk=None)


def _path(*points):
    return np.array([[x, 0.0, z] for x, z in points], dtype=float)


def test_width_lookup():
    assert road_width({"highway": "motorway"}) == 12.0
    assert road_width({"highway": "residential"}) == 6.0
    assert road_width({"highway": "motorway", "width": "8"}) == 8.0
    assert road_width({"highway": "residential", "width": "8 m"}) == 8.0


def test_width_fallbacks():
    assert road_width({"highway": "unknown"}) == 6.0
    assert road_width({"highway": "unknown"}, default=5.0) == 5.0
    assert road_width({"highway": "service"}, overrides={"service": 3.5}) == 3.5
    assert road_width({"highway": "service", "width": "bad"}) == 4.0
    assert road_width({"highway": "primary", "width": "0"}) == 10.0


def test_classify_road():
    assert classify_road("motorway_link") == "motorway"
    assert classify_road("secondary") == "primary"
    assert classify_road("footway") == "footpath"
    assert classify_road("residential") == "residential"
    assert classify_road("") == "residential"


def test_strip_is_closed():
    mesh = MeshBuffer(FeatureKind.road)
    assert extrude_strip(mesh, _path((0, 0), (10, 0), (20, 5)), 6.0, 0.08, 0.12, "road")
    assert len(mesh.vertices) == 12
    tm = mesh.to_trimesh()
    assert tm.is_watertight
    assert tm.volume > 0


def test_strip_dimensions():
    mesh = MeshBuffer(FeatureKind.road)
    extrude_strip(mesh, _path((0, 0), (10, 0)), 6.0, 0.08, 0.12, "road")
    lo, hi = mesh.bounds()
    np.testing.assert_allclose(lo, [0.0, -0.04, -3.0], atol=1e-9)
    np.testing.assert_allclose(hi, [10.0, 0.08, 3.0], atol=1e-9)
    assert mesh.to_trimesh().volume == pytest.approx(10.0 * 6.0 * 0.12)


def test_strip_needs_two_points():
    mesh = MeshBuffer(FeatureKind.road)
    assert not extrude_strip(mesh, _path((0, 0)), 6.0, 0.08, 0.12, "road")
    assert mesh.is_empty()


def test_pillar_is_closed_box():
    mesh = MeshBuffer(FeatureKind.bridge)
    add_pillar(mesh, np.array([3.0, 0.0, 4.0]), 0.8, 5.0, "pillar")
    tm = mesh.to_trimesh()
    assert tm.is_watertight
    assert tm.volume == pytest.approx(0.8 * 0.8 * 5.0)


def test_road_registers_both_ends(projector):
    graph = planar_graph([(0, 0), (50, 0), (100, 20)], tags={"highway": "residential"})
    registry = EndpointRegistry()
    mesh = build_road(graph.ways[0], graph, projector, registry, DEFAULT_SLOTS)
    assert mesh.kind is FeatureKind.road
    assert len(registry) == 2
    start, end = registry.ends
    np.testing.assert_allclose(start.position, [0.0, 0.0, 0.0], atol=1e-9)
    np.testing.assert_allclose(end.position, [100.0, 0.0, 20.0], atol=1e-9)
    # tangents point away from the road
    assert start.direction[0] < 0
    assert end.direction[0] > 0
    assert start.width == 6.0
    assert start.road_class == "residential"
    assert start.material == "road"


def test_sidewalks_follow_slot_and_width(projector):
    graph = planar_graph([(0, 0), (50, 0)], tags={"highway": "residential"})
    with_walks = build_road(graph.ways[0], graph, projector, EndpointRegistry(),
                            DEFAULT_SLOTS)
    assert with_walks.metadata["sidewalks"]
    assert with_walks.triangle_count("sidewalk") > 0
    lo, hi = with_walks.bounds()
    assert hi[2] == pytest.approx(3.0 + 1.5)

    without = build_road(graph.ways[0], graph, projector, EndpointRegistry(),
                         NO_SIDEWALKS)
    assert not without.metadata["sidewalks"]
    assert set(without.submeshes) == {"road"}


def test_narrow_roads_and_footpaths_have_no_sidewalks(projector):
    graph = planar_graph([(0, 0), (50, 0)], tags={"highway": "footway"})
    mesh = build_road(graph.ways[0], graph, projector, EndpointRegistry(), DEFAULT_SLOTS)
    assert not mesh.metadata["sidewalks"]
    # footpaths are surfaced with the sidewalk slot
    assert set(mesh.submeshes) == {"sidewalk"}

    graph = planar_graph([(0, 0), (50, 0)], tags={"highway": "service", "width": "3"})
    mesh = build_road(graph.ways[0], graph, projector, EndpointRegistry(), DEFAULT_SLOTS)
    assert not mesh.metadata["sidewalks"]


def test_road_geometry_is_closed(projector):
    graph = planar_graph([(0, 0), (30, 5), (60, 0), (90, 10)], tags={"highway": "primary"})
    mesh = build_road(graph.ways[0], graph, projector, EndpointRegistry(), NO_SIDEWALKS)
    assert mesh.to_trimesh().is_watertight


def test_short_path_skipped(projector):
    graph = planar_graph([(0, 0), (0.001, 0)], tags={"highway": "residential"})
    registry = EndpointRegistry()
    assert build_road(graph.ways[0], graph, projector, registry, DEFAULT_SLOTS) is None
    assert len(registry) == 0


def test_way_collapsing_under_smoothing_skipped(projector):
    graph = planar_graph([(0, 0), (0.2, 0), (0.4, 0)], tags={"highway": "residential"})
    registry = EndpointRegistry()
    assert build_road(graph.ways[0], graph, projector, registry, DEFAULT_SLOTS) is None
    assert len(registry) == 0


def test_failed_extrusion_registers_no_ends(projector, monkeypatch):
    def fail(*args, **kwargs):
        raise ValueError("bad strip")

    monkeypatch.setattr(roads, "extrude_strip", fail)
    graph = planar_graph([(0, 0), (50, 0)], tags={"highway": "residential"})
    registry = EndpointRegistry()
    with pytest.raises(ValueError):
        build_road(graph.ways[0], graph, projector, registry, DEFAULT_SLOTS)
    assert len(registry) == 0


def test_bridge_way(projector):
    graph = planar_graph([(0, 0), (100, 0)], tags={"highway": "primary", "bridge": "yes"})
    registry = EndpointRegistry()
    mesh = build_road(graph.ways[0], graph, projector, registry, DEFAULT_SLOTS)
    assert mesh.kind is FeatureKind.bridge
    assert mesh.metadata["bridge"]
    assert mesh.metadata["pillars"] == 6
    assert mesh.metadata["railings"] == 2
    assert mesh.metadata["deck_width"] == 11.0
    assert len(registry) == 2
    assert mesh.bounds()[1][1] == pytest.approx(BRIDGE_ELEVATION + 1.0)
    assert mesh.bounds()[0][1] == pytest.approx(0.0)


def test_short_bridge_has_two_pillars():
    mesh = build_bridge(_path((0, 0), (5, 0)), 6.0, DEFAULT_SLOTS)
    assert mesh.metadata["pillars"] == 2
    assert mesh.triangle_count("pillar") == 2 * 12


def test_bridge_without_railing_slot():
    slots = dict(DEFAULT_SLOTS, railing=None, deck=None, pillar=None)
    mesh = build_bridge(_path((0, 0), (40, 0)), 6.0, slots)
    assert mesh.metadata["railings"] == 0
    assert set(mesh.submeshes) == {"road"}


def test_bridge_parts_are_closed():
    mesh = build_bridge(_path((0, 0), (40, 0), (80, 10)), 6.0, DEFAULT_SLOTS)
    assert mesh.to_trimesh().is_watertight
