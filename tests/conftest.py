"""Pytest configuration and fixtures."""
import pytest

from geo_fakes import FakeGeoLookupClient
from walkroute.services.debouncer import SearchDebouncer
from walkroute.services.map_surface import CommandQueueSurface
from walkroute.services.session import RouteSpotSession


@pytest.fixture
def geo():
    return FakeGeoLookupClient()


@pytest.fixture
def manual_geo():
    return FakeGeoLookupClient(manual=True)


@pytest.fixture
def surface():
    return CommandQueueSurface()


@pytest.fixture
def session(surface, geo):
    return RouteSpotSession(surface, geo, debouncer=SearchDebouncer(delay=0.02))


@pytest.fixture
def manual_session(surface, manual_geo):
    return RouteSpotSession(surface, manual_geo, debouncer=SearchDebouncer(delay=0.02))
