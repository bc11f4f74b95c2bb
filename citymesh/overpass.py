"""Overpass API client for map extracts around a point."""

import logging

import requests

from .constants import (
    OVERPASS_RETRY_TIMEOUT, OVERPASS_TIMEOUT, OVERPASS_URL, PARK_TAGS,
    WATER_LANDUSE, WATER_NATURAL,
)
from .errors import NetworkFailure

logger = logging.getLogger(__name__)

USER_AGENT = "citymesh/0.1 (OSM to mesh generator)"


def _one_of(key: str, values) -> str:
    """Tag filter matching any of *values* exactly."""
    return f'["{key}"~"^({"|".join(sorted(values))})$"]'


def _area_filters() -> list:
    """Tag filters for every park and water way the classifier accepts."""
    way_filters = [_one_of(key, values) for key, values in sorted(PARK_TAGS.items())]
    way_filters += [
        _one_of('natural', WATER_NATURAL),
        _one_of('landuse', WATER_LANDUSE),
        '["waterway"]',
        '["water"]',
    ]
    relation_filters = [
        _one_of('natural', WATER_NATURAL),
        _one_of('landuse', WATER_LANDUSE),
        '["waterway"]',
        '["water"]',
        '["type"="waterway"]',
    ]
    return ([f"way{f}" for f in way_filters]
            + [f"relation{f}" for f in relation_filters])


def build_query(lat: float, lon: float, radius: float) -> str:
    """All feature kinds the generator extrudes, within *radius* metres."""
    around = f"(around:{radius},{lat},{lon})"
    clauses = ['way["building"]', 'way["highway"]'] + _area_filters()
    body = "".join(f"{clause}{around};" for clause in clauses)
    return (
        f"[out:xml][timeout:{max(OVERPASS_TIMEOUT - 5, 25)}];"
        f"({body});"
        f"out body;>;out skel qt;"
    )


def build_focused_query(lat: float, lon: float, radius: float) -> str:
    """Buildings and highways only; the narrower retry request."""
    around = f"(around:{radius},{lat},{lon})"
    return (
        f"[out:xml][timeout:{OVERPASS_RETRY_TIMEOUT}];"
        f"("
        f'way["building"]{around};'
        f'way["highway"]{around};'
        f");"
        f"out body;>;out skel qt;"
    )


class OverpassClient:
    """Fetch OSM XML documents, retrying once with a narrower query."""

    def __init__(self, url: str = OVERPASS_URL, timeout: int = OVERPASS_TIMEOUT,
                 retry_timeout: int = OVERPASS_RETRY_TIMEOUT):
        self.url = url
        self.timeout = timeout
        self.retry_timeout = retry_timeout

    def _request(self, query: str, timeout: int) -> str:
        response = requests.get(self.url, params={'data': query},
                                timeout=timeout,
                                headers={'User-Agent': USER_AGENT})
        response.raise_for_status()
        return response.text

    def fetch(self, lat: float, lon: float, radius: float) -> str:
        """Return the OSM XML for a disk of *radius* metres.

        Raises :class:`NetworkFailure` if the focused retry fails too.
        """
        logger.info(f"Requesting OSM data around ({lat}, {lon}), "
                    f"radius {radius} m from {self.url}")
        try:
            text = self._request(build_query(lat, lon, radius), self.timeout)
        except requests.RequestException as e:
            logger.warning(f"Overpass request failed ({e}); "
                           f"retrying with focused query")
            try:
                text = self._request(build_focused_query(lat, lon, radius),
                                     self.retry_timeout)
            except requests.RequestException as retry_error:
                raise NetworkFailure(
                    f"Overpass request failed after retry: {retry_error}"
                ) from retry_error
        logger.info(f"Downloaded {len(text)} characters of OSM data")
        return text
