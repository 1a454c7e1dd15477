"""Tests for the geocode cache and its stores."""
from datetime import datetime, timedelta, timezone
import pytest
from campfire.core.errors import StorageCorruptionError
from campfire.core.geocode_cache import (
    DuckDBKeyValueStore,
    GeocodeCache,
    MemoryKeyValueStore,
    alias_cache_key,
    query_cache_key,
)
from campfire.core.models import GeocodeHit, GeocodeProvider


T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def make_hit(**overrides):
    values = {
        "latitude": -35.8912345678,
        "longitude": 149.5712345678,
        "display_name": "BADJA State Forest (SF42)",
        "confidence": 1.0,
        "provider": GeocodeProvider.FORESTRY_ARCGIS,
        "updated_at": T0,
    }
    values.update(overrides)
    return GeocodeHit(**values)


class FlakyStore(MemoryKeyValueStore):
    """Memory store whose first N writes (or reads) report corruption."""

    def __init__(self, failures, read_failures=0):
        super().__init__()
        self.failures = failures
        self.read_failures = read_failures
        self.recreated = 0

    def get(self, key):
        if self.read_failures > 0:
            self.read_failures -= 1
            raise StorageCorruptionError("database disk image is malformed")
        return super().get(key)

    def put(self, key, record):
        if self.failures > 0:
            self.failures -= 1
            raise StorageCorruptionError("database is read-only")
        super().put(key, record)

    def recreate(self):
        self.recreated += 1
        super().recreate()


def test_cache_keys():
    assert query_cache_key("  Badja State Forest,  NSW ") == "query:badja state forest, nsw"
    assert alias_cache_key("Badja  State Forest") == "alias:forest::badja state forest"


def test_hit_rounds_coordinates():
    hit = make_hit()
    assert hit.latitude == -35.891235
    assert hit.longitude == 149.571235


def test_round_trip(memory_cache):
    hit = make_hit()
    memory_cache.put("query:badja", hit)

    assert memory_cache.get("query:badja") == hit
    assert memory_cache.get("query:missing") is None


def test_ttl_expiry_deletes_entry():
    """Entries older than the TTL are absent and removed from the store."""
    now = {"value": T0 + timedelta(minutes=30)}
    store = MemoryKeyValueStore()
    cache = GeocodeCache(store, ttl_seconds=3600, clock=lambda: now["value"])
    cache.put("query:badja", make_hit())

    assert cache.get("query:badja") is not None

    now["value"] = T0 + timedelta(hours=2)
    assert cache.get("query:badja") is None
    assert store.get("query:badja") is None


def test_promote_copies_query_hit_to_alias(memory_cache):
    hit = make_hit()
    memory_cache.put("query:badja", hit)

    promoted = memory_cache.promote("query:badja", "alias:forest::badja")

    assert promoted == hit
    assert memory_cache.get("alias:forest::badja") == hit
    assert memory_cache.promote("query:missing", "alias:forest::missing") is None


def test_legacy_provider_names_are_normalized():
    store = MemoryKeyValueStore()
    store.put("query:badja", {**make_hit().to_dict(), "provider": "GOOGLE_PLACES"})
    store.put("query:croft", {**make_hit().to_dict(), "provider": "FCNSW_ARCGIS"})
    cache = GeocodeCache(store)

    assert cache.get("query:badja").provider == GeocodeProvider.GOOGLE_GEOCODING
    assert cache.get("query:croft").provider == GeocodeProvider.FORESTRY_ARCGIS


def test_write_recreates_store_once():
    store = FlakyStore(failures=1)
    cache = GeocodeCache(store)

    cache.put("query:badja", make_hit())

    assert store.recreated == 1
    assert cache.get("query:badja") is not None


def test_corrupted_read_recreates_store_and_misses():
    store = FlakyStore(failures=0, read_failures=1)
    cache = GeocodeCache(store)
    store.put("query:badja", make_hit().to_dict())

    assert cache.get("query:badja") is None
    assert store.recreated == 1

    cache.put("query:badja", make_hit())
    assert cache.get("query:badja").display_name == make_hit().display_name


def test_second_write_failure_propagates():
    store = FlakyStore(failures=2)
    cache = GeocodeCache(store)

    with pytest.raises(StorageCorruptionError):
        cache.put("query:badja", make_hit())
    assert store.recreated == 1


def test_stats(memory_cache):
    memory_cache.put(query_cache_key("Badja"), make_hit())
    memory_cache.put(alias_cache_key("Badja"), make_hit())

    assert memory_cache.stats() == {"query": 1, "alias": 1, "total": 2}


def test_duckdb_store_round_trip(tmp_path):
    """Test persistence across connections."""
    db_path = tmp_path / "cache" / "coordinates.duckdb"
    store = DuckDBKeyValueStore(db_path)
    GeocodeCache(store).put("query:badja", make_hit())
    store.close()

    reopened = GeocodeCache(DuckDBKeyValueStore(db_path))
    hit = reopened.get("query:badja")
    assert hit == make_hit()
    assert reopened.stats() == {"total": 1, "query": 1, "alias": 0}

    reopened.delete("query:badja")
    assert reopened.get("query:badja") is None
    reopened.close()


def test_duckdb_read_only_store_self_heals(tmp_path):
    """A write to a read-only database recreates the file and succeeds."""
    db_path = tmp_path / "coordinates.duckdb"
    writer = DuckDBKeyValueStore(db_path)
    writer.put("query:old", make_hit().to_dict())
    writer.close()

    store = DuckDBKeyValueStore(db_path, read_only=True)
    cache = GeocodeCache(store)
    cache.put("query:badja", make_hit())

    assert store.read_only is False
    assert cache.get("query:badja") == make_hit()
    assert cache.get("query:old") is None
    cache.close()
