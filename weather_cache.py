"""In-memory cache of weather bundles keyed by location and unit system."""
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional

from weather_data import WeatherBundle

UNIT_SYSTEMS = ("metric", "imperial", "standard")
DEFAULT_TTL_MS = 5 * 60 * 1000
DEFAULT_KEY_PRECISION = 4  # ~11 m


def now_millis() -> int:
    """Wall clock in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class CacheKey:
    """Normalized (latitude, longitude, units) triple."""
    latitude: float
    longitude: float
    units: str
    precision: int = DEFAULT_KEY_PRECISION

    @classmethod
    def from_request(
        cls,
        latitude: float,
        longitude: float,
        units: str = "metric",
        precision: int = DEFAULT_KEY_PRECISION,
    ) -> "CacheKey":
        """
        Build a key so that logically identical requests compare equal.

        Coordinates are rounded to `precision` decimals and -0.0 becomes 0.0;
        units are lower-cased and must be one of UNIT_SYSTEMS.
        """
        normalized_units = (units or "").strip().lower()
        if normalized_units not in UNIT_SYSTEMS:
            raise ValueError(f"Unsupported unit system: {units!r}")
        # adding 0.0 turns -0.0 into 0.0
        lat = round(float(latitude), precision) + 0.0
        lon = round(float(longitude), precision) + 0.0
        return cls(lat, lon, normalized_units, precision)

    def __str__(self) -> str:
        p = self.precision
        return f"weather_{self.latitude:.{p}f}_{self.longitude:.{p}f}_{self.units}"


@dataclass(frozen=True)
class CacheEntry:
    data: WeatherBundle
    fetched_at_ms: int


def is_fresh(entry: CacheEntry, now_ms: int, ttl_ms: int) -> bool:
    return now_ms - entry.fetched_at_ms < ttl_ms


class CacheStore:
    """
    Maps a CacheKey to the most recently fetched bundle.

    Storage only: get() returns entries regardless of age and freshness policy
    is left to the caller. With max_entries set, the least recently used
    entry is evicted when a put would exceed the bound.
    """

    is_fresh = staticmethod(is_fresh)

    def __init__(self, max_entries: Optional[int] = None):
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self._entries: "OrderedDict[CacheKey, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: CacheKey) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self._entries.move_to_end(key)
            return entry

    def put(self, key: CacheKey, bundle: WeatherBundle, timestamp_ms: int) -> CacheEntry:
        entry = CacheEntry(data=bundle, fetched_at_ms=timestamp_ms)
        with self._lock:
            self._entries[key] = entry
            self._entries.move_to_end(key)
            if self.max_entries is not None:
                while len(self._entries) > self.max_entries:
                    evicted, _ = self._entries.popitem(last=False)
                    logging.debug(f"Evicted cache entry {evicted}")
        return entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        with self._lock:
            return key in self._entries
