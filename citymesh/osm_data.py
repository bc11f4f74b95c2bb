"""OSM document parsing and multi-part water area assembly."""

import re
import json
import math
import logging
import xml.etree.ElementTree as ET

from .constants import WATER_LANDUSE, WATER_NATURAL
from .errors import ParseFailure
from .models import GeoPoint, Member, OsmGraph, Relation, Way

logger = logging.getLogger(__name__)

ASSEMBLED_RELATION_TYPES = frozenset({'multipolygon', 'waterway'})
OUTER_ROLES = frozenset({'outer', ''})

_LENGTH = re.compile(r'^\s*([-+]?\d+(?:\.\d+)?)\s*[a-z]*\s*$')


def parse_length(value):
    """Parse a length tag such as ``"12"``, ``"12.5 m"`` or ``"8m"``.

    Returns metres as a float, or ``None`` when the value is unreadable.
    """
    match = _LENGTH.match(str(value).lower().replace(',', '.'))
    if not match:
        return None
    length = float(match.group(1))
    return length if math.isfinite(length) else None


def parse_osm(document) -> OsmGraph:
    """Parse an Overpass XML or JSON document into an :class:`OsmGraph`.

    *document* may be ``str`` or ``bytes``.  Elements missing a required
    attribute are dropped one at a time; a document that cannot be read
    at all raises :class:`ParseFailure` carrying an empty graph.
    Water relations are assembled into synthetic ways before returning.
    """
    if isinstance(document, bytes):
        head = document.lstrip()[:1]
        is_json = head == b'{'
    elif isinstance(document, str):
        head = document.lstrip()[:1]
        is_json = head == '{'
    else:
        raise ParseFailure(f"Unsupported document type {type(document).__name__}",
                           graph=OsmGraph())

    if not head:
        raise ParseFailure("Empty map document", graph=OsmGraph())

    graph = _parse_json(document) if is_json else _parse_xml(document)
    assembled = assemble_water_relations(graph)
    logger.info(f"Parsed {len(graph.nodes)} nodes, {len(graph.ways)} ways, "
                f"{len(graph.relations)} relations "
                f"({assembled} assembled water rings)")
    return graph


# ── XML ─────────────────────────────────────────────────────────────────

def _xml_tags(element) -> dict:
    tags = {}
    for tag in element.iter('tag'):
        key = tag.get('k')
        if key is None:
            logger.debug(f"Dropping tag without key on {element.tag} "
                         f"{element.get('id')}")
            continue
        tags[key] = tag.get('v', '')
    return tags


def _parse_xml(document) -> OsmGraph:
    try:
        root = ET.fromstring(document)
    except ET.ParseError as e:
        raise ParseFailure(f"Malformed OSM XML: {e}", graph=OsmGraph()) from e
    if root.tag != 'osm':
        raise ParseFailure(f"Expected <osm> root element, got <{root.tag}>",
                           graph=OsmGraph())

    graph = OsmGraph()
    for el in root.iter('node'):
        try:
            graph.add_node(GeoPoint(int(el.get('id')), float(el.get('lat')),
                                    float(el.get('lon'))))
        except (TypeError, ValueError):
            logger.debug(f"Dropping node with bad attributes: {el.attrib}")

    for el in root.iter('way'):
        try:
            way_id = int(el.get('id'))
        except (TypeError, ValueError):
            logger.debug(f"Dropping way without id: {el.attrib}")
            continue
        node_ids = []
        for nd in el.iter('nd'):
            try:
                node_ids.append(int(nd.get('ref')))
            except (TypeError, ValueError):
                logger.debug(f"Dropping node reference without ref in way {way_id}")
        graph.add_way(Way(way_id, node_ids, _xml_tags(el)))

    for el in root.iter('relation'):
        try:
            rel_id = int(el.get('id'))
        except (TypeError, ValueError):
            logger.debug(f"Dropping relation without id: {el.attrib}")
            continue
        members = []
        for m in el.iter('member'):
            try:
                members.append(Member(m.get('type', ''), int(m.get('ref')),
                                      m.get('role', '')))
            except (TypeError, ValueError):
                logger.debug(f"Dropping member without ref in relation {rel_id}")
        graph.add_relation(Relation(rel_id, members, _xml_tags(el)))

    return graph


# ── JSON ────────────────────────────────────────────────────────────────

def _json_tags(element) -> dict:
    tags = element.get('tags') or {}
    if not isinstance(tags, dict):
        return {}
    return {str(k): str(v) for k, v in tags.items()}


def _parse_json_element(graph: OsmGraph, el: dict) -> None:
    kind = el.get('type')
    if kind == 'node':
        graph.add_node(GeoPoint(int(el['id']), float(el['lat']),
                                float(el['lon'])))
    elif kind == 'way':
        node_ids = []
        for ref in el.get('nodes') or []:
            try:
                node_ids.append(int(ref))
            except (TypeError, ValueError):
                logger.debug(f"Dropping bad node reference {ref!r} in way {el['id']}")
        graph.add_way(Way(int(el['id']), node_ids, _json_tags(el)))
    elif kind == 'relation':
        members = []
        for m in el.get('members') or []:
            try:
                members.append(Member(m.get('type', ''), int(m['ref']),
                                      m.get('role', '')))
            except (KeyError, TypeError, ValueError):
                logger.debug(f"Dropping member without ref in relation {el['id']}")
        graph.add_relation(Relation(int(el['id']), members, _json_tags(el)))


def _parse_json(document) -> OsmGraph:
    try:
        data = json.loads(document)
    except ValueError as e:
        raise ParseFailure(f"Malformed OSM JSON: {e}", graph=OsmGraph()) from e
    elements = data.get('elements') if isinstance(data, dict) else None
    if not isinstance(elements, list):
        raise ParseFailure("OSM JSON has no 'elements' list", graph=OsmGraph())

    graph = OsmGraph()
    for el in elements:
        if not isinstance(el, dict):
            continue
        try:
            _parse_json_element(graph, el)
        except (KeyError, TypeError, ValueError):
            logger.debug(f"Dropping {el.get('type')} element with bad "
                         f"attributes: id={el.get('id')}")
    return graph


# ── Relation assembly ───────────────────────────────────────────────────

def is_water_relation(tags: dict) -> bool:
    """Return True if the relation's tags describe a body of water."""
    def get(key):
        return (tags.get(key) or '').lower()

    if get('type') == 'waterway':
        return True
    return (get('natural') in WATER_NATURAL
            or bool(get('waterway'))
            or bool(get('water'))
            or get('landuse') in WATER_LANDUSE)


def _closes(chain) -> bool:
    return len(chain) > 2 and chain[0] == chain[-1]


def chain_fragments(fragments) -> list:
    """Join node-id fragments end to end into rings.

    Each chain starts from the first remaining fragment and grows at
    either end by any fragment (either orientation) sharing an endpoint,
    until it closes or nothing attaches.  Fragments left over seed later
    chains.  Open chains are returned as well.
    """
    remaining = [list(f) for f in fragments if len(f) >= 2]
    rings = []
    while remaining:
        chain = remaining.pop(0)
        extended = True
        while extended and not _closes(chain):
            extended = False
            for i in range(len(remaining) - 1, -1, -1):
                seg = remaining[i]
                if seg[0] == chain[-1]:
                    chain.extend(seg[1:])
                elif seg[-1] == chain[-1]:
                    chain.extend(reversed(seg[:-1]))
                elif seg[-1] == chain[0]:
                    chain[:0] = seg[:-1]
                elif seg[0] == chain[0]:
                    chain[:0] = list(reversed(seg[1:]))
                else:
                    continue
                del remaining[i]
                extended = True
                if _closes(chain):
                    break
        rings.append(chain)
    return rings


def assemble_water_relations(graph: OsmGraph) -> int:
    """Add one synthetic way per ring of every water relation.

    Synthetic ids count down from below the smallest parsed way id so
    they never collide.  Returns the number of ways added.
    """
    next_id = min([w.id for w in graph.ways] + [0]) - 1
    added = 0
    for rel in graph.relations:
        rel_type = (rel.tags.get('type') or '').lower()
        if rel_type not in ASSEMBLED_RELATION_TYPES or not is_water_relation(rel.tags):
            continue

        fragments = []
        for member in rel.members:
            if member.type != 'way' or member.role not in OUTER_ROLES:
                continue
            way = graph.ways_by_id.get(member.ref)
            if way is None:
                logger.debug(f"Relation {rel.id}: member way {member.ref} missing")
                continue
            fragments.append(way.node_ids)
        if not fragments:
            continue

        for ring in chain_fragments(fragments):
            if len(ring) < 3:
                logger.debug(f"Relation {rel.id}: discarding {len(ring)}-node ring")
                continue
            graph.add_way(Way(next_id, ring, dict(rel.tags),
                              source_relation=rel.id))
            next_id -= 1
            added += 1
    return added
