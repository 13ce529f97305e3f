# Reverse geocoding and place search against the Kakao Local API.
# Retry logic applies to timeouts only; status errors fail immediately.

import asyncio
import logging
import random
from typing import Any, Dict, List, Optional, Protocol

import httpx

from walkroute.core.config import settings
from walkroute.models.dto import AddressParts, Place

logger = logging.getLogger(__name__)

COORD_TO_ADDRESS_PATH = "/v2/local/geo/coord2address.json"
KEYWORD_SEARCH_PATH = "/v2/local/search/keyword.json"
CATEGORY_SEARCH_PATH = "/v2/local/search/category.json"


class GeoLookupError(Exception):
    """A lookup failed: network error, timeout, bad status or an unusable payload."""


class GeoLookupClient(Protocol):
    """What a session needs from a geocoding/search provider."""
    async def reverse_geocode(self, lat: float, lon: float) -> AddressParts: ...
    async def search_places_by_text(self, text: str) -> List[Place]: ...
    async def search_places_by_location(self, lat: float, lon: float) -> List[Place]: ...


def _parse_place(doc: Dict[str, Any]) -> Place:
    # Kakao returns coordinates as strings, x = longitude, y = latitude
    return Place(
        id=str(doc["id"]),
        name=doc["place_name"],
        address=doc.get("road_address_name") or doc.get("address_name") or "",
        latitude=float(doc["y"]),
        longitude=float(doc["x"]),
    )


class KakaoGeoLookupClient:
    """
    GeoLookupClient backed by the Kakao Local REST API.

    A fresh `httpx.AsyncClient` is opened per request. `transport` can be
    supplied to route requests somewhere other than the network.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.KAKAO_REST_API_KEY
        self.base_url = base_url or settings.KAKAO_API_BASE_URL
        self._transport = transport

    async def reverse_geocode(self, lat: float, lon: float) -> AddressParts:
        data = await self._get(COORD_TO_ADDRESS_PATH, {"x": lon, "y": lat})
        documents = data.get("documents") or []
        if not documents:
            raise GeoLookupError(f"No address found for ({lat}, {lon})")

        try:
            doc = documents[0]
            road = doc.get("road_address") or {}
            general = doc.get("address") or {}
            return AddressParts(
                road_address_name=road.get("address_name") or None,
                general_address_name=general.get("address_name") or None,
                district_name=general.get("region_3depth_name") or None,
            )
        except (KeyError, TypeError, AttributeError, IndexError, ValueError) as e:
            raise GeoLookupError(f"Malformed address payload for ({lat}, {lon}): {e}") from e

    async def search_places_by_text(self, text: str) -> List[Place]:
        data = await self._get(
            KEYWORD_SEARCH_PATH,
            {"query": text, "size": settings.PLACE_SEARCH_SIZE},
        )
        return self._parse_places(data)

    async def search_places_by_location(self, lat: float, lon: float) -> List[Place]:
        data = await self._get(
            CATEGORY_SEARCH_PATH,
            {
                "category_group_code": settings.NEARBY_CATEGORY_CODE,
                "x": lon,
                "y": lat,
                "radius": settings.NEARBY_RADIUS_M,
                "size": settings.PLACE_SEARCH_SIZE,
                "sort": "distance",
            },
        )
        return self._parse_places(data)

    def _parse_places(self, data: Dict[str, Any]) -> List[Place]:
        try:
            return [_parse_place(doc) for doc in data.get("documents") or []]
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            raise GeoLookupError(f"Malformed place search payload: {e}") from e

    async def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_key:
            raise GeoLookupError("KAKAO_REST_API_KEY is not configured")

        headers = {"Authorization": f"KakaoAK {self.api_key}"}
        max_retries = settings.GEO_LOOKUP_MAX_RETRIES
        backoff_time = settings.GEO_LOOKUP_INITIAL_BACKOFF

        for attempt in range(max_retries + 1):
            try:
                async with httpx.AsyncClient(
                    base_url=self.base_url,
                    timeout=settings.GEO_LOOKUP_TIMEOUT,
                    transport=self._transport,
                ) as client:
                    response = await client.get(path, params=params, headers=headers)
                    response.raise_for_status()
                    data = response.json()
                    if not isinstance(data, dict):
                        raise GeoLookupError(f"Unexpected payload type from {path}")
                    return data

            except httpx.TimeoutException:
                logger.warning(f"Kakao lookup {path} attempt {attempt + 1} timed out.")
                if attempt < max_retries:
                    # Exponential backoff with jitter
                    wait_time = max(0.0, backoff_time * (2 ** attempt) + random.uniform(-0.1, 0.1))
                    logger.info(f"Retrying in {wait_time:.2f}s...")
                    await asyncio.sleep(wait_time)
                else:
                    raise GeoLookupError(f"Kakao lookup {path} timed out after {attempt + 1} attempts")
            except httpx.HTTPStatusError as e:
                logger.error(f"Kakao API returned status error: {e.response.status_code}")
                raise GeoLookupError(f"Kakao API error {e.response.status_code} for {path}") from e
            except httpx.HTTPError as e:
                logger.error(f"Kakao request failed: {e}")
                raise GeoLookupError(f"Kakao request to {path} failed") from e
            except ValueError as e:
                # response.json() on a non-JSON body
                raise GeoLookupError(f"Invalid JSON from {path}") from e

        # Should be unreachable, but for completeness
        raise GeoLookupError(f"Kakao lookup {path} returned no result")
