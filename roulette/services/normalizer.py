# roulette/services/normalizer.py
# Maps raw Overpass elements onto the uniform Candidate model.

import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Tuple

import structlog

from roulette.core.config import settings
from roulette.models.dto import Candidate, RawRecord, MIN_PRICE_LEVEL, MAX_PRICE_LEVEL

logger = structlog.get_logger(__name__)

DEFAULT_PRICE_LEVEL = 2
CURRENCY_SYMBOLS = frozenset("$€£¥")
_NUMERIC = re.compile(r"^[+-]?\d+(?:\.\d*)?$")


def clamp_price_level(level: int) -> int:
    return min(max(level, MIN_PRICE_LEVEL), MAX_PRICE_LEVEL)


def _leading_integer(text: str) -> int:
    # Integer part only; two or more significant digits always clamps to the top level
    digits = text.lstrip("+-").split(".")[0].lstrip("0") or "0"
    value = int(digits) if len(digits) == 1 else MAX_PRICE_LEVEL + 1
    return -value if text.startswith("-") else value


def parse_price_level(tag: Optional[str]) -> int:
    """
    Estimates a 1-4 price level from a free-form `price` tag.

    "$$" -> 2 (one level per currency symbol), "3" -> 3, anything else -> 2.
    The result is always clamped into [1, 4].
    """
    if not tag:
        return DEFAULT_PRICE_LEVEL

    symbols = sum(1 for ch in tag if ch in CURRENCY_SYMBOLS)
    if symbols:
        level = symbols
    elif _NUMERIC.match(tag.strip()):
        level = _leading_integer(tag.strip())
    else:
        level = DEFAULT_PRICE_LEVEL
    return clamp_price_level(level)


def format_distance_miles(miles: float) -> str:
    """One decimal place, rounding half away from zero on the exact binary value."""
    return str(Decimal(miles).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _format_coordinate(value: float) -> str:
    # 12.0 renders as "12", 0.00005 as "0.00005"; no exponent form
    if value.is_integer():
        return str(int(value))
    return format(Decimal(repr(value)), "f")


def record_url(kind: str, external_id: int) -> str:
    return f"{settings.OSM_BASE_URL}/{kind}/{external_id}"


def map_view_url(latitude: float, longitude: float) -> str:
    return (
        f"{settings.OSM_BASE_URL}/?mlat={_format_coordinate(latitude)}"
        f"&mlon={_format_coordinate(longitude)}&zoom={settings.MAP_ZOOM}"
    )


def resolve_coordinates(record: RawRecord) -> Optional[Tuple[float, float]]:
    """Centroid for ways/relations, the point itself for nodes."""
    if record.center is not None:
        return record.center.lat, record.center.lon
    if record.lat is not None and record.lon is not None:
        return record.lat, record.lon
    return None


def is_usable(record: RawRecord, amenity: str = settings.AMENITY) -> bool:
    return record.tags.get("amenity") == amenity and bool(record.tags.get("name", "").strip())


def count_usable(records: Iterable[RawRecord], amenity: str = settings.AMENITY) -> int:
    return sum(1 for record in records if is_usable(record, amenity))


def normalize_record(
    record: RawRecord, radius_miles: float, amenity: str = settings.AMENITY
) -> Optional[Candidate]:
    if not is_usable(record, amenity):
        return None

    coords = resolve_coordinates(record)
    if coords is None:
        logger.debug("record_without_coordinates", kind=record.type, id=record.id)
        return None
    latitude, longitude = coords

    return Candidate(
        name=record.tags["name"],
        distance_miles=format_distance_miles(radius_miles),
        price_level=parse_price_level(record.tags.get("price")),
        latitude=latitude,
        longitude=longitude,
        external_id=record.id,
        external_kind=record.type,
        external_record_url=record_url(record.type, record.id),
        map_view_url=map_view_url(latitude, longitude),
    )


def normalize_records(
    records: Iterable[RawRecord], radius_miles: float, amenity: str = settings.AMENITY
) -> List[Candidate]:
    """Normalizes every usable record, in input order. Unusable ones are skipped."""
    candidates: List[Candidate] = []
    for record in records:
        candidate = normalize_record(record, radius_miles, amenity)
        if candidate is not None:
            candidates.append(candidate)
    return candidates
