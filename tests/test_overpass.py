from urllib.parse import parse_qs

import httpx
import pytest

from roulette.core.config import settings
from roulette.core.errors import NetworkError
from roulette.services.overpass import fetch_elements, parse_elements

MOCK_PAYLOAD = {
    "version": 0.6,
    "elements": [
        {
            "type": "node",
            "id": 101,
            "lat": 40.7411,
            "lon": -73.9897,
            "tags": {"amenity": "restaurant", "name": "Eataly", "price": "$$$"},
        },
        {
            "type": "way",
            "id": 202,
            "center": {"lat": 40.7420, "lon": -73.9880},
            "tags": {"amenity": "restaurant", "name": "Shake Shack"},
        },
        # no id: skipped, not fatal
        {"type": "node", "lat": 1.0, "lon": 2.0, "tags": {"amenity": "restaurant"}},
    ],
}


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def test_fetch_posts_form_encoded_query():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["content_type"] = request.headers["content-type"]
        seen["form"] = parse_qs(request.content.decode())
        return httpx.Response(200, json=MOCK_PAYLOAD)

    async with _client(handler) as client:
        records = await fetch_elements("[out:json];node(1);out;", client=client)

    assert seen["method"] == "POST"
    assert seen["url"] == settings.OVERPASS_URL
    assert seen["content_type"].startswith("application/x-www-form-urlencoded")
    assert seen["form"]["data"] == ["[out:json];node(1);out;"]

    assert [(r.type, r.id) for r in records] == [("node", 101), ("way", 202)]
    assert records[1].center.lat == 40.7420


async def test_missing_elements_means_empty():
    async with _client(lambda request: httpx.Response(200, json={"remark": "nothing"})) as client:
        assert await fetch_elements("q", client=client) == []


async def test_non_2xx_is_a_hard_failure():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(429, text="rate limited")

    async with _client(handler) as client:
        with pytest.raises(NetworkError) as exc_info:
            await fetch_elements("q", client=client)

    assert exc_info.value.status_code == 429
    assert len(calls) == 1


async def test_non_json_body_is_a_network_error():
    async with _client(lambda request: httpx.Response(200, text="<html>busy</html>")) as client:
        with pytest.raises(NetworkError):
            await fetch_elements("q", client=client)


async def test_transport_failure_is_a_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        with pytest.raises(NetworkError):
            await fetch_elements("q", client=client)


async def test_timeouts_are_retried_then_fail(monkeypatch):
    monkeypatch.setattr(settings, "OVERPASS_INITIAL_BACKOFF", 0.0)
    monkeypatch.setattr(settings, "OVERPASS_MAX_RETRIES", 2)
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ReadTimeout("slow", request=request)

    async with _client(handler) as client:
        with pytest.raises(NetworkError):
            await fetch_elements("q", client=client)

    assert len(calls) == 3


async def test_timeout_then_success(monkeypatch):
    monkeypatch.setattr(settings, "OVERPASS_INITIAL_BACKOFF", 0.0)
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ReadTimeout("slow", request=request)
        return httpx.Response(200, json=MOCK_PAYLOAD)

    async with _client(handler) as client:
        records = await fetch_elements("q", client=client)

    assert len(records) == 2
    assert len(calls) == 2


def test_parse_elements_stringifies_tags():
    records = parse_elements({"elements": [
        {"type": "node", "id": 1, "lat": 0, "lon": 0, "tags": {"amenity": "restaurant", "level": 2}}
    ]})
    assert records[0].tags["level"] == "2"
