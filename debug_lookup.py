# Manual check of the Kakao lookups against the live API.
# Usage: KAKAO_REST_API_KEY=... python debug_lookup.py [lat lon] [query]

import asyncio
import sys

from walkroute.services.geo_lookup import GeoLookupError, KakaoGeoLookupClient
from walkroute.utils.haversine import haversine

# Gangnam Station, exit 11
TEST_LAT = 37.4979
TEST_LON = 127.0276

async def main(lat: float, lon: float, query: str):
    client = KakaoGeoLookupClient()

    print(f"--- Reverse geocode ({lat}, {lon}) ---")
    try:
        parts = await client.reverse_geocode(lat, lon)
        print(f"Road:     {parts.road_address_name}")
        print(f"General:  {parts.general_address_name}")
        print(f"District: {parts.district_name}")
        print(f"Display:  {parts.display_name()}")
    except GeoLookupError as e:
        print(f"Reverse geocode failed: {e}")

    print(f"\n--- Places near ({lat}, {lon}) ---")
    try:
        for place in (await client.search_places_by_location(lat, lon))[:5]:
            dist_m = haversine(lat, lon, place.latitude, place.longitude) * 1000
            print(f"[{place.id}] {place.name} - {place.address} ({dist_m:.0f} m)")
    except GeoLookupError as e:
        print(f"Location search failed: {e}")

    print(f"\n--- Keyword search '{query}' ---")
    try:
        for place in (await client.search_places_by_text(query))[:5]:
            print(f"[{place.id}] {place.name} - {place.address} ({place.latitude}, {place.longitude})")
    except GeoLookupError as e:
        print(f"Keyword search failed: {e}")

if __name__ == "__main__":
    args = sys.argv[1:]
    lat = float(args[0]) if len(args) >= 2 else TEST_LAT
    lon = float(args[1]) if len(args) >= 2 else TEST_LON
    query = args[2] if len(args) >= 3 else "Gangnam Station"
    asyncio.run(main(lat, lon, query))
