import pytest

from roulette.models.dto import PriceRange, RawRecord
from roulette.services.filtering import filter_and_dedupe
from roulette.services.normalizer import (
    count_usable,
    format_distance_miles,
    map_view_url,
    normalize_record,
    normalize_records,
    parse_price_level,
    record_url,
)


def _raw(id_, name=None, price=None, kind="node", amenity="restaurant", lat=40.0, lon=-74.0, center=None):
    tags = {}
    if amenity is not None:
        tags["amenity"] = amenity
    if name is not None:
        tags["name"] = name
    if price is not None:
        tags["price"] = price
    element = {"type": kind, "id": id_, "tags": tags}
    if center is not None:
        element["center"] = {"lat": center[0], "lon": center[1]}
    else:
        element["lat"] = lat
        element["lon"] = lon
    return RawRecord.model_validate(element)


@pytest.mark.parametrize(
    "tag, expected",
    [
        ("$", 1),
        ("$$", 2),
        ("$$$", 3),
        ("$$$$", 4),
        ("$$$$$$", 4),
        ("€€", 2),
        ("$-$$", 3),
        ("1", 1),
        ("3", 3),
        (" 2 ", 2),
        ("0", 1),
        ("9", 4),
        ("-2", 1),
        ("2.7", 2),
        ("cheap", 2),
        ("", 2),
        (None, 2),
    ],
)
def test_parse_price_level(tag, expected):
    assert parse_price_level(tag) == expected


def test_price_level_always_in_range():
    odd_tags = ["", " ", "$" * 50, "€£¥$", "100000", "-100000", "1e9", "nan", "inf",
                "3.9999", "+4", "moderate", "$$ (dinner)", "1-2", "..", "٣",
                "9" * 400, "1" * 330 + ".5", "-" + "7" * 5000]
    for tag in odd_tags:
        level = parse_price_level(tag)
        assert isinstance(level, int)
        assert 1 <= level <= 4, tag


@pytest.mark.parametrize(
    "miles, expected",
    [(0.5, "0.5"), (1, "1.0"), (0.25, "0.3"), (12.345, "12.3"), (3.0, "3.0")],
)
def test_format_distance_miles(miles, expected):
    assert format_distance_miles(miles) == expected


def test_url_templates():
    assert record_url("way", 123) == "https://www.openstreetmap.org/way/123"
    assert map_view_url(40.7128, -74.006) == "https://www.openstreetmap.org/?mlat=40.7128&mlon=-74.006&zoom=18"
    assert map_view_url(12.0, 5.5) == "https://www.openstreetmap.org/?mlat=12&mlon=5.5&zoom=18"
    assert map_view_url(0.00005, -0.000012) == "https://www.openstreetmap.org/?mlat=0.00005&mlon=-0.000012&zoom=18"


def test_node_uses_direct_coordinates():
    candidate = normalize_record(_raw(1, "Luigi's", price="$$$", lat=40.1, lon=-73.9), 0.5)
    assert candidate.latitude == 40.1
    assert candidate.longitude == -73.9
    assert candidate.price_level == 3
    assert candidate.distance_miles == "0.5"
    assert candidate.external_kind == "node"
    assert candidate.external_record_url == "https://www.openstreetmap.org/node/1"
    assert candidate.map_view_url == "https://www.openstreetmap.org/?mlat=40.1&mlon=-73.9&zoom=18"


def test_way_uses_center():
    candidate = normalize_record(_raw(7, "Food Hall", kind="way", center=(51.5, -0.1)), 2.0)
    assert (candidate.latitude, candidate.longitude) == (51.5, -0.1)
    assert candidate.external_record_url == "https://www.openstreetmap.org/way/7"
    assert candidate.distance_miles == "2.0"


def test_default_price_level_without_tag():
    assert normalize_record(_raw(1, "Plain"), 0.5).price_level == 2


def test_unusable_records_are_dropped():
    records = [
        _raw(1, name=None),
        _raw(2, name=""),
        _raw(3, name="   "),
        _raw(4, name="Bar", amenity="bar"),
        _raw(5, name="No Amenity", amenity=None),
        _raw(6, name="Kept"),
    ]
    candidates = normalize_records(records, 0.5)
    assert [c.name for c in candidates] == ["Kept"]
    assert count_usable(records) == 1


def test_oversized_numeric_price_does_not_abort_batch():
    records = [_raw(1, "Huge", price="1" * 330), _raw(2, "Tiny", price="-" + "9" * 400), _raw(3, "Normal")]
    assert [c.price_level for c in normalize_records(records, 0.5)] == [4, 1, 2]


def test_record_without_coordinates_is_dropped():
    record = RawRecord.model_validate(
        {"type": "relation", "id": 9, "tags": {"amenity": "restaurant", "name": "Nowhere"}}
    )
    assert normalize_record(record, 0.5) is None


def test_normalize_preserves_input_order():
    records = [_raw(i, name=f"R{i}") for i in range(5)]
    assert [c.name for c in normalize_records(records, 1.0)] == ["R0", "R1", "R2", "R3", "R4"]


def test_pipeline_scenario_price_then_dedupe():
    records = [
        _raw(1, "A", price="$$"),
        _raw(2, "A", price="$$$"),
        _raw(3, "B", price="1"),
    ]
    normalized = normalize_records(records, 0.5)
    assert [c.price_level for c in normalized] == [2, 3, 1]

    final = filter_and_dedupe(normalized, PriceRange(min_price=1, max_price=2))
    assert [(c.name, c.price_level) for c in final] == [("A", 2), ("B", 1)]
