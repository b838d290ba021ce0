"""
Pytest configuration and fixtures for marker tracking tests.

Provides reusable configurations, a default viewport, a fresh registry and
a factory for position fixes near a fixed origin.
"""

import pytest

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from marker_tracking import Fix, TrackingConfiguration, TrackRegistry, Viewport

# San Francisco, away from the poles and the antimeridian
ORIGIN_LAT = 37.7749
ORIGIN_LON = -122.4194


def make_fix(entity_id: str = "car-1", lat: float = ORIGIN_LAT, lon: float = ORIGIN_LON,
             timestamp_ms: int = 0, heading=None, speed=None) -> Fix:
    """Build a fix with sensible defaults."""
    return Fix(id=entity_id, lat=lat, lon=lon, heading=heading, speed=speed,
               timestamp_ms=timestamp_ms)


@pytest.fixture
def fix_factory():
    """Fixture returning the make_fix helper."""
    return make_fix


@pytest.fixture
def config():
    """Default tracking configuration."""
    return TrackingConfiguration()


@pytest.fixture
def trail_config():
    """Configuration with trails enabled for new entities."""
    return TrackingConfiguration(enable_trail=True)


@pytest.fixture
def viewport():
    """800x600 viewport centered on the test origin at street zoom."""
    return Viewport(center_lat=ORIGIN_LAT, center_lon=ORIGIN_LON, zoom=16,
                    width_px=800, height_px=600)


@pytest.fixture
def registry(config):
    """Fresh registry with the default configuration."""
    return TrackRegistry(config)
