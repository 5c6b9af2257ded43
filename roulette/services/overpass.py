# roulette/services/overpass.py
# Submits Overpass QL queries and parses the `elements` array.
# Retries only on timeouts; an HTTP error status fails the attempt outright.

import asyncio
import random
from typing import List, Optional

import httpx
import structlog
from pydantic import ValidationError

from roulette.core.config import settings
from roulette.core.errors import NetworkError
from roulette.models.dto import RawRecord

logger = structlog.get_logger(__name__)

HEADERS = {
    "User-Agent": settings.USER_AGENT,
    "Accept": "application/json",
}


def parse_elements(payload) -> List[RawRecord]:
    """Validates each element; malformed ones are skipped, not fatal."""
    if not isinstance(payload, dict):
        raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
    elements = payload.get("elements") or []
    records: List[RawRecord] = []
    for element in elements:
        try:
            records.append(RawRecord.model_validate(element))
        except ValidationError as e:
            element_id = element.get("id") if isinstance(element, dict) else None
            logger.warning("overpass_element_skipped", error=str(e), element_id=element_id)
    return records


async def _post(client: httpx.AsyncClient, query_text: str) -> dict:
    # httpx form-encodes the mapping: data=<query>
    response = await client.post(settings.OVERPASS_URL, data={"data": query_text}, headers=HEADERS)
    response.raise_for_status()
    return response.json()


async def fetch_elements(query_text: str, client: Optional[httpx.AsyncClient] = None) -> List[RawRecord]:
    """
    Runs `query_text` against the Overpass interpreter.

    Returns:
        The parsed elements, possibly empty.

    Raises:
        NetworkError: non-2xx status, transport failure, repeated timeouts
            or a body that is not JSON.
    """
    max_retries = settings.OVERPASS_MAX_RETRIES
    backoff_time = settings.OVERPASS_INITIAL_BACKOFF

    for attempt in range(max_retries + 1):
        try:
            if client is not None:
                payload = await _post(client, query_text)
            else:
                async with httpx.AsyncClient(timeout=settings.OVERPASS_TIMEOUT) as own_client:
                    payload = await _post(own_client, query_text)
            records = parse_elements(payload)
            logger.info("overpass_fetched", elements=len(records), attempt=attempt + 1)
            return records

        except httpx.TimeoutException:
            logger.warning("overpass_timeout", attempt=attempt + 1)
            if attempt < max_retries:
                # Wait with exponential backoff and jitter
                wait_time = max(0.0, backoff_time * (2 ** attempt) + random.uniform(-0.2, 0.2))
                logger.info("overpass_retry_scheduled", wait_seconds=round(wait_time, 2))
                await asyncio.sleep(wait_time)
            else:
                raise NetworkError("The map service timed out. Please try again later.")
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.error("overpass_status_error", status_code=status_code)
            raise NetworkError(f"Overpass API error: {status_code}", status_code=status_code) from e
        except httpx.HTTPError as e:
            logger.error("overpass_transport_error", error=str(e))
            raise NetworkError(f"Could not reach the map service: {e}") from e
        except ValueError as e:
            # response.json() on a non-JSON body
            logger.error("overpass_bad_payload", error=str(e))
            raise NetworkError("The map service returned an unreadable response.") from e

    # Should be unreachable, but for completeness
    raise NetworkError()
