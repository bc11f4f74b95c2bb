"""Plain helpers shared across the citymesh test modules."""

from citymesh.models import GeoPoint, OsmGraph, Way

ORIGIN = (52.5200, 13.4050)

# A building, a road with a dangling node reference, a bridge, a park, a
# water multipolygon split over two untagged ways and an unrelated way.
SAMPLE_OSM = """<?xml version="1.0" encoding="UTF-8"?>
<osm version="0.6" generator="Overpass API">
  <node id="1" lat="52.5201" lon="13.4051"/>
  <node id="2" lat="52.5201" lon="13.4052"/>
  <node id="3" lat="52.5202" lon="13.4052"/>
  <node id="4" lat="52.5202" lon="13.4051"/>
  <node id="5" lat="52.5195" lon="13.4040"/>
  <node id="6" lat="52.5195" lon="13.4045"/>
  <node id="7" lat="52.5196" lon="13.4050"/>
  <node id="8" lat="52.5190" lon="13.4040"/>
  <node id="9" lat="52.5190" lon="13.4060"/>
  <node id="10" lat="52.5180" lon="13.4040"/>
  <node id="11" lat="52.5180" lon="13.4050"/>
  <node id="12" lat="52.5185" lon="13.4050"/>
  <node id="13" lat="52.5185" lon="13.4040"/>
  <node id="14" lat="52.5210" lon="13.4040"/>
  <node id="15" lat="52.5210" lon="13.4050"/>
  <node id="16" lat="52.5215" lon="13.4050"/>
  <node id="17" lat="52.5215" lon="13.4040"/>
  <way id="100">
    <nd ref="1"/><nd ref="2"/><nd ref="3"/><nd ref="4"/><nd ref="1"/>
    <tag k="building" v="yes"/>
    <tag k="height" v="12 m"/>
  </way>
  <way id="200">
    <nd ref="5"/><nd ref="6"/><nd ref="999"/><nd ref="7"/>
    <tag k="highway" v="residential"/>
    <tag k="name" v="Teststrasse"/>
  </way>
  <way id="201">
    <nd ref="8"/><nd ref="9"/>
    <tag k="highway" v="primary"/>
    <tag k="bridge" v="yes"/>
  </way>
  <way id="300">
    <nd ref="10"/><nd ref="11"/><nd ref="12"/><nd ref="13"/><nd ref="10"/>
    <tag k="leisure" v="park"/>
  </way>
  <way id="400">
    <nd ref="14"/><nd ref="15"/><nd ref="16"/>
  </way>
  <way id="401">
    <nd ref="16"/><nd ref="17"/><nd ref="14"/>
  </way>
  <way id="600">
    <nd ref="5"/><nd ref="8"/>
    <tag k="amenity" v="bench"/>
  </way>
  <relation id="500">
    <member type="way" ref="400" role="outer"/>
    <member type="way" ref="401" role="outer"/>
    <member type="node" ref="14" role=""/>
    <tag k="type" v="multipolygon"/>
    <tag k="natural" v="water"/>
  </relation>
</osm>
"""


class PlanarProjector:
    """Stand-in projector that reads lon as x and lat as z, in metres."""

    def to_local(self, lat, lon):
        return float(lon), float(lat)


def planar_graph(*rings, tags=None, way_id=1):
    """Build a graph holding one way per ring of ``(x, z)`` points."""
    graph = OsmGraph()
    next_node = 1
    for offset, ring in enumerate(rings):
        ids = []
        for x, z in ring:
            graph.add_node(GeoPoint(next_node, z, x))
            ids.append(next_node)
            next_node += 1
        graph.add_way(Way(way_id + offset, ids, dict(tags or {})))
    return graph
