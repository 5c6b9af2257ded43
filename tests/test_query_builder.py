import math

import pytest

from roulette.services.query_builder import (
    METERS_PER_MILE,
    build_location_query,
    build_overpass_query,
    build_query,
    miles_to_meters,
)


@pytest.mark.parametrize("miles", [0.1, 0.5, 1.0, 2.5, 10.0, 123.456])
def test_miles_to_meters_uses_exact_constant(miles):
    assert math.isclose(miles_to_meters(miles), miles * 1609.34, rel_tol=0, abs_tol=1e-9)


def test_default_radius_in_meters():
    assert METERS_PER_MILE == 1609.34
    assert miles_to_meters(0.5) == 804.67


def test_build_location_query_carries_coordinates():
    query = build_location_query(40.7128, -74.006, 1.0)
    assert query.latitude == 40.7128
    assert query.longitude == -74.006
    assert query.radius_meters == 1609.34


def test_overpass_query_requests_all_element_kinds():
    query = build_location_query(40.7128, -74.006, 0.5)
    text = build_overpass_query(query)

    assert text.startswith("[out:json]")
    for kind in ("node", "way", "relation"):
        assert f'{kind}["amenity"="restaurant"](around:804.67,40.7128,-74.006);' in text
    assert text.rstrip().endswith("out center;")


def test_overpass_query_custom_amenity():
    query = build_location_query(1.0, 2.0, 1.0)
    text = build_overpass_query(query, amenity="cafe")
    assert '"amenity"="cafe"' in text
    assert "restaurant" not in text


def test_build_query_returns_both_parts():
    location, text = build_query(51.5, -0.12, 2.0)
    assert location.radius_meters == 2.0 * 1609.34
    assert f"around:{location.radius_meters},51.5,-0.12" in text
