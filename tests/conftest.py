"""Pytest configuration and fixtures."""
import pytest
from campfire.core.config import GeocoderConfig
from campfire.core.geocode_cache import GeocodeCache, MemoryKeyValueStore
from campfire.core.geocoder import ForestGeocoder
from fakes import ARCGIS_URL, FakeSession


@pytest.fixture
def memory_cache():
    """Geocode cache over an in-memory store."""
    return GeocodeCache(MemoryKeyValueStore())


@pytest.fixture
def geocoder_config():
    """Resolver settings with no delays and only the public Nominatim instance."""
    return GeocoderConfig(
        google_api_key="test-key",
        arcgis_url=ARCGIS_URL,
        nominatim_base_url=None,
        nominatim_public_url="https://nominatim.openstreetmap.org",
        nominatim_request_delay_seconds=0,
        nominatim_local_delay_seconds=0,
        nominatim_local_429_retry_delay_seconds=0,
        max_new_lookups_per_run=25,
    )


@pytest.fixture
def make_geocoder(memory_cache, geocoder_config):
    """Factory building a ForestGeocoder over a FakeSession."""
    def factory(routes, cache=None, **config_overrides):
        for key, value in config_overrides.items():
            setattr(geocoder_config, key, value)
        session = FakeSession(routes)
        geocoder = ForestGeocoder(cache or memory_cache, config=geocoder_config, session=session)
        return geocoder, session
    return factory
