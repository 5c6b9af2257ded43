# roulette/services/query_builder.py
# Turns a coordinate and a radius in miles into an Overpass QL document.

from typing import Tuple

from roulette.core.config import settings
from roulette.models.dto import LocationQuery

# Statute mile in meters, as used by the geodata query semantics
METERS_PER_MILE = 1609.34

_ELEMENT_KINDS = ("node", "way", "relation")


def miles_to_meters(miles: float) -> float:
    return miles * METERS_PER_MILE


def build_location_query(latitude: float, longitude: float, radius_miles: float) -> LocationQuery:
    return LocationQuery(
        latitude=latitude,
        longitude=longitude,
        radius_meters=miles_to_meters(radius_miles),
    )


def build_overpass_query(query: LocationQuery, amenity: str = settings.AMENITY) -> str:
    """
    Builds a geofenced query for points, ways and relations tagged
    `amenity=<amenity>` within `query.radius_meters`.

    `out center` makes ways and relations carry a centroid, which is what the
    normalizer reads for extended geometries.
    """
    around = f"(around:{query.radius_meters},{query.latitude},{query.longitude})"
    clauses = "\n".join(
        f'  {kind}["amenity"="{amenity}"]{around};' for kind in _ELEMENT_KINDS
    )
    return (
        f"[out:json][timeout:{settings.OVERPASS_QUERY_TIMEOUT}];\n"
        f"(\n{clauses}\n);\n"
        "out center;"
    )


def build_query(latitude: float, longitude: float, radius_miles: float) -> Tuple[LocationQuery, str]:
    location = build_location_query(latitude, longitude, radius_miles)
    return location, build_overpass_query(location)
