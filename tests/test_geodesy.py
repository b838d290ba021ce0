"""
Tests for geodesy helpers.
"""

import pytest

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from marker_tracking.geodesy import (
    haversine_m,
    initial_bearing_deg,
    lerp,
    lerp_angle,
    lerp_longitude,
    normalize_heading,
    normalize_longitude,
    offset_position,
    shortest_angle_diff,
)


class TestDistanceAndBearing:
    """Tests for haversine distance and bearing."""

    def test_zero_distance(self):
        """Identical points are zero meters apart."""
        assert haversine_m(10.0, 20.0, 10.0, 20.0) == 0.0

    def test_one_degree_latitude(self):
        """One degree of latitude is about 111.2 km."""
        assert haversine_m(0.0, 0.0, 1.0, 0.0) == pytest.approx(111195, rel=1e-3)

    def test_bearing_north_and_east(self):
        """Cardinal bearings come out as 0 and 90."""
        assert initial_bearing_deg(0.0, 0.0, 1.0, 0.0) == pytest.approx(0.0, abs=1e-9)
        assert initial_bearing_deg(0.0, 0.0, 0.0, 1.0) == pytest.approx(90.0)

    def test_bearing_west_is_positive(self):
        """Westward bearing normalizes into [0, 360)."""
        assert initial_bearing_deg(0.0, 0.0, 0.0, -1.0) == pytest.approx(270.0)


class TestOffsetPosition:
    """Tests for flat-earth dead-reckoning offsets."""

    def test_north_offset(self):
        """Moving north changes latitude by distance / 111320."""
        lat, lon = offset_position(37.0, -122.0, 0.0, 111.32)
        assert lat == pytest.approx(37.001)
        assert lon == pytest.approx(-122.0)

    def test_east_offset_scales_with_latitude(self):
        """Longitude step grows with latitude."""
        _, lon_equator = offset_position(0.0, 0.0, 90.0, 100.0)
        _, lon_60 = offset_position(60.0, 0.0, 90.0, 100.0)
        assert lon_60 == pytest.approx(2 * lon_equator, rel=1e-6)

    def test_round_trip_distance(self):
        """Offset distance matches haversine distance for short moves."""
        lat, lon = offset_position(37.7749, -122.4194, 45.0, 25.0)
        assert haversine_m(37.7749, -122.4194, lat, lon) == pytest.approx(25.0, rel=1e-2)

    def test_east_across_antimeridian_wraps(self):
        """Moving east past 180 comes back in at -180."""
        lat, lon = offset_position(0.0, 179.9999, 90.0, 100.0)
        assert -180.0 <= lon < -179.99
        assert haversine_m(0.0, 179.9999, lat, lon) == pytest.approx(100.0, rel=1e-2)

    def test_west_across_antimeridian_wraps(self):
        """Moving west past -180 comes back in below 180."""
        _, lon = offset_position(0.0, -179.9999, 270.0, 100.0)
        assert 179.99 < lon < 180.0


class TestHeadingMath:
    """Tests for heading arithmetic across the 0/360 boundary."""

    def test_normalize(self):
        """Headings wrap into [0, 360)."""
        assert normalize_heading(370.0) == pytest.approx(10.0)
        assert normalize_heading(-10.0) == pytest.approx(350.0)
        assert normalize_heading(360.0) == 0.0

    def test_shortest_diff_wraps(self):
        """350 to 10 is +20, not -340."""
        assert shortest_angle_diff(350.0, 10.0) == pytest.approx(20.0)
        assert shortest_angle_diff(10.0, 350.0) == pytest.approx(-20.0)

    def test_lerp_angle_midpoint_crosses_north(self):
        """Midpoint of 350 and 10 is 0."""
        assert lerp_angle(350.0, 10.0, 0.5) == pytest.approx(0.0, abs=1e-9)

    def test_lerp(self):
        """Linear interpolation hits both ends and the middle."""
        assert lerp(0.0, 10.0, 0.0) == 0.0
        assert lerp(0.0, 10.0, 0.5) == 5.0
        assert lerp(0.0, 10.0, 1.0) == 10.0


class TestLongitudeMath:
    """Tests for longitude wrapping at the antimeridian."""

    def test_normalize_longitude(self):
        """Longitudes wrap into [-180, 180)."""
        assert normalize_longitude(180.5) == pytest.approx(-179.5)
        assert normalize_longitude(-180.5) == pytest.approx(179.5)
        assert normalize_longitude(-122.0) == pytest.approx(-122.0)

    def test_lerp_longitude_short_way(self):
        """179 to -179 passes through 180, not through 0."""
        assert abs(lerp_longitude(179.0, -179.0, 0.5)) == pytest.approx(180.0)
        assert lerp_longitude(179.0, -179.0, 0.25) == pytest.approx(179.5)
