import asyncio
from typing import Any, Dict, List, Set, Tuple

from walkroute.models.dto import AddressParts, Place
from walkroute.services.geo_lookup import GeoLookupError


class FakeGeoLookupClient:
    """
    In-memory GeoLookupClient.

    With `manual=True` every call parks on a future that the test resolves,
    so completion order can differ from issue order.
    """

    def __init__(self, manual: bool = False):
        self.manual = manual
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.futures: List[Tuple[str, Tuple[Any, ...], asyncio.Future]] = []
        self.addresses: Dict[Tuple[float, float], AddressParts] = {}
        self.text_results: Dict[str, List[Place]] = {}
        self.location_results: List[Place] = []
        self.failing: Set[str] = set()

    async def _respond(self, method: str, args: Tuple[Any, ...], result: Any) -> Any:
        self.calls.append((method, args))
        if self.manual:
            future = asyncio.get_running_loop().create_future()
            self.futures.append((method, args, future))
            return await future
        if method in self.failing:
            raise GeoLookupError(f"{method} failed")
        return result

    async def reverse_geocode(self, lat: float, lon: float) -> AddressParts:
        default = AddressParts(general_address_name=f"addr {lat},{lon}")
        return await self._respond("reverse_geocode", (lat, lon), self.addresses.get((lat, lon), default))

    async def search_places_by_text(self, text: str) -> List[Place]:
        return await self._respond("search_places_by_text", (text,), self.text_results.get(text, []))

    async def search_places_by_location(self, lat: float, lon: float) -> List[Place]:
        return await self._respond("search_places_by_location", (lat, lon), list(self.location_results))

    def calls_to(self, method: str) -> List[Tuple[Any, ...]]:
        return [args for name, args in self.calls if name == method]

    def pending(self, method: str) -> List[asyncio.Future]:
        return [f for name, _, f in self.futures if name == method and not f.done()]

    def futures_for(self, method: str) -> List[asyncio.Future]:
        return [f for name, _, f in self.futures if name == method]


async def drain(rounds: int = 5) -> None:
    """Let ready tasks run a few steps."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def make_place(place_id: str, name: str, lat: float = 37.5, lon: float = 127.0) -> Place:
    return Place(id=place_id, name=name, address=f"{name} road", latitude=lat, longitude=lon)
