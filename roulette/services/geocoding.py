# roulette/services/geocoding.py
# Resolves the user's location: direct "lat,lon" input or a Nominatim lookup.
# Stands in for the browser geolocation prompt; every failure is LocationUnavailable.

import httpx
import logging
import re
from typing import Optional, Tuple
from roulette.core.config import settings
from roulette.core.errors import LocationUnavailableError

logger = logging.getLogger(__name__)

HEADERS = {
    "User-Agent": settings.USER_AGENT,
    "Accept-Language": "en",
    "Accept": "application/json",
}

# "lat,lon" or "lat, lon" or "lat lon"; comma accepted as a decimal separator
# when the two numbers are separated by whitespace ("48,85 2,35")
COORD_PATTERN = re.compile(r'^([-+]?\d{1,3}(?:[.,]\d+)?)(?:\s*,\s*|\s+)([-+]?\d{1,3}(?:[.,]\d+)?)$')


def parse_coordinates(text: str) -> Optional[Tuple[float, float]]:
    """
    Parses a "lat,lon" pair.

    Returns:
        (latitude, longitude), or None when `text` does not look like a pair.

    Raises:
        LocationUnavailableError: the pair parses but is outside valid ranges.
    """
    match = COORD_PATTERN.match(text.strip())
    if not match:
        return None
    try:
        lat = float(match.group(1).replace(',', '.'))
        lon = float(match.group(2).replace(',', '.'))
    except ValueError:
        return None

    if not (-90 <= lat <= 90 and -180 <= lon <= 180):
        logger.warning(f"Direct coordinate input {lat},{lon} is out of range.")
        raise LocationUnavailableError(f"Coordinates {lat},{lon} are not a valid location.")
    return lat, lon


async def geocode(query: str, client: Optional[httpx.AsyncClient] = None) -> Tuple[float, float]:
    """
    Geocodes free text with Nominatim.

    Raises:
        LocationUnavailableError: no match, non-2xx status, timeout or transport failure.
    """
    params = {"format": "jsonv2", "q": query, "limit": 1}
    try:
        if client is not None:
            response = await client.get(settings.NOMINATIM_URL, params=params, headers=HEADERS)
        else:
            async with httpx.AsyncClient(timeout=settings.GEOCODE_TIMEOUT, headers=HEADERS) as own_client:
                response = await own_client.get(settings.NOMINATIM_URL, params=params)
        response.raise_for_status()
        data = response.json()
    except httpx.TimeoutException as e:
        logger.warning(f"Geocoding timed out for {query!r}.")
        raise LocationUnavailableError("Location lookup timed out. Please try again.") from e
    except httpx.HTTPStatusError as e:
        logger.error(f"Nominatim returned status error: {e.response.status_code}")
        raise LocationUnavailableError("Location service is temporarily unavailable.") from e
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"Geocoding failed: {e}")
        raise LocationUnavailableError("Location service is temporarily unavailable.") from e

    if not data:
        raise LocationUnavailableError(f"Could not find a location for {query!r}.")
    try:
        lat, lon = float(data[0]["lat"]), float(data[0]["lon"])
    except (KeyError, TypeError, ValueError) as e:
        logger.error(f"Unexpected geocoding payload: {e}")
        raise LocationUnavailableError(f"Could not find a location for {query!r}.") from e

    logger.info(f"Geocoded {query!r} to {lat}, {lon}")
    return lat, lon


async def resolve_location(text: Optional[str], client: Optional[httpx.AsyncClient] = None) -> Tuple[float, float]:
    """Direct coordinates first, geocoding as the fallback."""
    if not text or not text.strip():
        raise LocationUnavailableError()

    coords = parse_coordinates(text)
    if coords is not None:
        logger.info(f"Direct coordinate input detected: {coords[0]}, {coords[1]}")
        return coords
    return await geocode(text.strip(), client=client)
