"""Shared fixtures for citymesh tests."""

import random

import pytest

from .helpers import SAMPLE_OSM, PlanarProjector


@pytest.fixture
def sample_osm():
    return SAMPLE_OSM


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def projector():
    return PlanarProjector()
