"""Persistent geocode cache with query/alias keys and self-healing storage."""
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Dict, Any, Callable
import duckdb
from campfire.core.config import GEOCODE_CACHE_PATH, GEOCODE_CACHE_TTL_SECONDS
from campfire.core.errors import StorageCorruptionError
from campfire.core.models import GeocodeHit
from campfire.utils.logging import log_structured, log_error


QUERY_KEY_PREFIX = "query:"
ALIAS_KEY_PREFIX = "alias:"


def normalize_cache_text(text: str) -> str:
    return " ".join((text or "").lower().split())


def query_cache_key(query: str) -> str:
    """Key for a hit obtained from one literal query string."""
    return f"{QUERY_KEY_PREFIX}{normalize_cache_text(query)}"


def alias_cache_key(forest_name: str) -> str:
    """Key for a hit validated against a forest identity."""
    return f"{ALIAS_KEY_PREFIX}{normalize_cache_text(f'forest::{forest_name}')}"


class KeyValueStore(ABC):
    """Durable string-keyed store of hit records."""

    @abstractmethod
    def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the record for a key, or None."""
        pass

    @abstractmethod
    def put(self, key: str, record: Dict[str, Any]):
        """Insert or replace the record for a key."""
        pass

    @abstractmethod
    def delete(self, key: str):
        pass

    @abstractmethod
    def count(self) -> Dict[str, int]:
        """Number of entries per key namespace."""
        pass

    def recreate(self):
        """Discard all data and reinitialize the backing storage."""
        raise StorageCorruptionError(f"{type(self).__name__} cannot be recreated")

    def close(self):
        pass


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store, used in tests and dry runs."""

    def __init__(self):
        self._records: Dict[str, Dict[str, Any]] = {}

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        record = self._records.get(key)
        return dict(record) if record is not None else None

    def put(self, key: str, record: Dict[str, Any]):
        self._records[key] = dict(record)

    def delete(self, key: str):
        self._records.pop(key, None)

    def count(self) -> Dict[str, int]:
        counts = {"query": 0, "alias": 0, "total": len(self._records)}
        for key in self._records:
            if key.startswith(QUERY_KEY_PREFIX):
                counts["query"] += 1
            elif key.startswith(ALIAS_KEY_PREFIX):
                counts["alias"] += 1
        return counts

    def recreate(self):
        self._records.clear()


def _is_corruption_error(error: Exception) -> bool:
    if isinstance(error, (duckdb.IOException, duckdb.FatalException, duckdb.InternalException)):
        return True
    message = str(error).lower()
    return any(marker in message for marker in ("read-only", "readonly", "corrupt", "malformed"))


class DuckDBKeyValueStore(KeyValueStore):
    """DuckDB-backed store for geocode hits."""

    def __init__(self, db_path: Optional[Path] = None, read_only: bool = False):
        """
        Initialize DuckDB store.

        Args:
            db_path: Path to DuckDB database file
            read_only: Open an existing database without write access
        """
        self.db_path = Path(db_path or GEOCODE_CACHE_PATH)
        self.read_only = read_only
        self._lock = threading.RLock()
        self.conn = None
        self._connect()

    def _connect(self):
        if not self.read_only:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = duckdb.connect(str(self.db_path), read_only=self.read_only)
        if not self.read_only:
            self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS geocode_cache (
                cache_key VARCHAR PRIMARY KEY,
                latitude DOUBLE,
                longitude DOUBLE,
                display_name VARCHAR,
                confidence DOUBLE,
                provider VARCHAR,
                updated_at VARCHAR
            )
        """)

    def _execute(self, sql: str, params=None):
        try:
            return self.conn.execute(sql, params or [])
        except duckdb.Error as error:
            if _is_corruption_error(error):
                raise StorageCorruptionError(f"Geocode cache storage failed: {error}") from error
            raise

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self._execute("""
                SELECT latitude, longitude, display_name, confidence, provider, updated_at
                FROM geocode_cache
                WHERE cache_key = ?
            """, [key]).fetchone()

        if not row:
            return None

        return {
            "latitude": row[0],
            "longitude": row[1],
            "display_name": row[2],
            "confidence": row[3],
            "provider": row[4],
            "updated_at": row[5],
        }

    def put(self, key: str, record: Dict[str, Any]):
        with self._lock:
            self._execute("""
                INSERT OR REPLACE INTO geocode_cache
                (cache_key, latitude, longitude, display_name, confidence, provider, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, [
                key,
                record["latitude"],
                record["longitude"],
                record.get("display_name"),
                record.get("confidence"),
                record.get("provider"),
                record.get("updated_at"),
            ])

    def delete(self, key: str):
        with self._lock:
            self._execute("DELETE FROM geocode_cache WHERE cache_key = ?", [key])

    def count(self) -> Dict[str, int]:
        with self._lock:
            row = self._execute("""
                SELECT
                    COUNT(*),
                    COUNT(*) FILTER (WHERE cache_key LIKE 'query:%'),
                    COUNT(*) FILTER (WHERE cache_key LIKE 'alias:%')
                FROM geocode_cache
            """).fetchone()
        return {"total": row[0], "query": row[1], "alias": row[2]}

    def recreate(self):
        """Delete the database files and start from an empty schema."""
        with self._lock:
            try:
                self.conn.close()
            except duckdb.Error as error:
                log_structured("warning", "Failed to close geocode cache before recreation",
                               path=str(self.db_path), error=str(error))

            for path in (self.db_path, Path(f"{self.db_path}.wal")):
                if path.exists():
                    path.unlink()

            self.read_only = False
            self._connect()

    def close(self):
        """Close database connection."""
        with self._lock:
            self.conn.close()


class GeocodeCache:
    """
    Key to hit cache over an injectable store.

    Reads never raise for missing keys; a read from a corrupted store
    recreates it and misses. Writes that hit a corrupted or read-only store
    recreate the store and retry once.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], datetime] = None
    ):
        """
        Args:
            store: Backing store (DuckDB at GEOCODE_CACHE_PATH by default)
            ttl_seconds: Entry lifetime; None or 0 keeps entries forever
            clock: Returns the current UTC time
        """
        self.store = store if store is not None else DuckDBKeyValueStore()
        ttl = GEOCODE_CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self.ttl = timedelta(seconds=ttl) if ttl and ttl > 0 else None
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[GeocodeHit]:
        """
        Look up a hit.

        Expired entries are deleted and reported as absent. A corrupted
        store is recreated empty and the lookup reported as a miss.
        """
        with self._lock:
            try:
                record = self.store.get(key)
            except StorageCorruptionError as error:
                log_structured("warning", "Geocode cache storage unreadable, recreating",
                               cache_key=key, error=str(error))
                self.store.recreate()
                return None
            if record is None:
                return None

            try:
                hit = GeocodeHit.from_dict(record)
            except (KeyError, TypeError, ValueError) as error:
                log_structured("warning", "Dropping unreadable geocode cache entry",
                               cache_key=key, error=str(error))
                self._delete_quietly(key)
                return None

            if self.ttl is not None and self.clock() - hit.updated_at > self.ttl:
                log_structured("debug", "Geocode cache entry expired", cache_key=key)
                self._delete_quietly(key)
                return None

            return hit

    def put(self, key: str, hit: GeocodeHit):
        """Insert or replace a hit, recreating the store once if it is corrupted."""
        record = hit.to_dict()
        with self._lock:
            try:
                self.store.put(key, record)
            except StorageCorruptionError as error:
                log_structured("warning", "Geocode cache storage unwritable, recreating",
                               cache_key=key, error=str(error))
                self.store.recreate()
                try:
                    self.store.put(key, record)
                except StorageCorruptionError as retry_error:
                    log_error(retry_error, {"cache_key": key, "operation": "geocode_cache_put"})
                    raise

    def delete(self, key: str):
        with self._lock:
            self.store.delete(key)

    def promote(self, query_key: str, alias_key: str) -> Optional[GeocodeHit]:
        """
        Copy the hit stored under a query key to a forest alias key.

        Returns:
            The promoted hit, or None when the query key is absent
        """
        with self._lock:
            hit = self.get(query_key)
            if hit is None:
                return None
            self.put(alias_key, hit)
            return hit

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return self.store.count()

    def close(self):
        self.store.close()

    def _delete_quietly(self, key: str):
        try:
            self.store.delete(key)
        except StorageCorruptionError as error:
            log_structured("warning", "Could not delete geocode cache entry",
                           cache_key=key, error=str(error))
