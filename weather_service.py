"""Weather service: cache-aware aggregation of current, forecast and air quality data."""
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Callable, Dict, Optional

from forecast import build_daily, build_hourly
from weather_cache import DEFAULT_KEY_PRECISION, DEFAULT_TTL_MS, CacheEntry, CacheKey, CacheStore, is_fresh, now_millis
from weather_data import AirQuality, WeatherBundle
from weather_provider import (
    OptionalUpstreamDegraded,
    UpstreamMalformed,
    UpstreamUnavailable,
    WeatherFetchError,
    WeatherProviderBase,
)


class WeatherService:
    """
    Wraps a weather provider with a time-bounded, per-location cache.

    On a miss the three upstream calls run in parallel. Current conditions
    and forecast are required; air quality is optional and its failure only
    leaves `aqi` empty. The service never retries and never serves stale data
    on its own: failures are raised as WeatherFetchError and the caller can
    look at get_cached_entry() to decide what to show.
    """

    def __init__(
        self,
        provider: WeatherProviderBase,
        cache: Optional[CacheStore] = None,
        ttl_ms: int = DEFAULT_TTL_MS,
        clock: Callable[[], int] = now_millis,
        fetch_timeout: float = 15.0,
        aqi_timeout: float = 5.0,
        key_precision: int = DEFAULT_KEY_PRECISION,
        single_flight: bool = False,
        max_workers: int = 6,
    ):
        """
        Initialize weather service.

        Args:
            provider: Weather provider to use
            cache: Cache store; a fresh unbounded one is created when omitted
            ttl_ms: How long a cached bundle is served before refetching
            clock: Returns the current time in epoch milliseconds
            fetch_timeout: Seconds allowed for both required fetches, measured from submission
            aqi_timeout: Seconds allowed for the optional air quality fetch, measured from submission
            key_precision: Decimal places kept from coordinates in cache keys
            single_flight: Share one in-flight fetch between concurrent callers of a key
            max_workers: Size of the fetch thread pool
        """
        self.provider = provider
        self.cache = cache if cache is not None else CacheStore()
        self.ttl_ms = ttl_ms
        self.clock = clock
        self.fetch_timeout = fetch_timeout
        self.aqi_timeout = aqi_timeout
        self.key_precision = key_precision
        self.single_flight = single_flight

        self.last_degraded: Optional[OptionalUpstreamDegraded] = None
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="weather-fetch")
        self._inflight: Dict[CacheKey, Future] = {}
        self._inflight_lock = threading.Lock()

    def __enter__(self) -> "WeatherService":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)

    def make_key(self, latitude: float, longitude: float, units: str = "metric") -> CacheKey:
        return CacheKey.from_request(latitude, longitude, units, self.key_precision)

    def get_cached_entry(self, latitude: float, longitude: float, units: str = "metric") -> Optional[CacheEntry]:
        """Stored entry for the location, fresh or not."""
        return self.cache.get(self.make_key(latitude, longitude, units))

    def clear_cache(self) -> None:
        self.cache.clear()

    def get_weather_data(self, latitude: float, longitude: float, units: str = "metric") -> WeatherBundle:
        """
        Get the weather bundle for a location, using the cache if still fresh.

        Raises:
            WeatherFetchError: if current conditions or forecast could not be fetched
            ValueError: if units is not metric, imperial or standard
        """
        key = self.make_key(latitude, longitude, units)

        entry = self.cache.get(key)
        if entry is not None:
            now_ms = self.clock()
            age_ms = now_ms - entry.fetched_at_ms
            if is_fresh(entry, now_ms, self.ttl_ms):
                logging.debug(f"Using cached weather for {key} (age: {age_ms}ms, TTL: {self.ttl_ms}ms)")
                return entry.data
            logging.info(f"Cache expired for {key} (age: {age_ms}ms), fetching new data")
        else:
            logging.info(f"Cache miss for {key}, fetching new data")

        if self.single_flight:
            return self._fetch_shared(key)
        return self._refresh(key)

    def _fetch_shared(self, key: CacheKey) -> WeatherBundle:
        with self._inflight_lock:
            pending = self._inflight.get(key)
            owner = pending is None
            if owner:
                pending = Future()
                self._inflight[key] = pending

        if not owner:
            logging.debug(f"Joining in-flight fetch for {key}")
            return pending.result()

        try:
            bundle = self._refresh(key)
            pending.set_result(bundle)
            return bundle
        except BaseException as e:
            pending.set_exception(e)
            raise
        finally:
            with self._inflight_lock:
                del self._inflight[key]

    def _refresh(self, key: CacheKey) -> WeatherBundle:
        bundle = self._fetch_bundle(key)
        self.cache.put(key, bundle, self.clock())
        logging.info(
            f"Weather fetch successful for {key}: {bundle.current.temp}, {bundle.current.weather.main}, "
            f"aqi={'n/a' if bundle.aqi is None else bundle.aqi.aqi}"
        )
        return bundle

    def _fetch_bundle(self, key: CacheKey) -> WeatherBundle:
        lat, lon, units = key.latitude, key.longitude, key.units

        # both required fetches share one deadline; air quality has its own
        started = time.monotonic()
        current_future = self._executor.submit(self.provider.fetch_current, lat, lon, units)
        forecast_future = self._executor.submit(self.provider.fetch_forecast, lat, lon, units)
        aqi_future = self._executor.submit(self.provider.fetch_air_quality, lat, lon)

        deadline = started + self.fetch_timeout
        current = self._required_result("current", current_future, deadline)
        series = self._required_result("forecast", forecast_future, deadline)
        aqi = self._optional_result("air_quality", aqi_future, started + self.aqi_timeout)

        try:
            hourly = build_hourly(series.entries)
            daily = build_daily(series.entries, series.timezone_offset)
        except (ValueError, OverflowError, OSError) as e:
            logging.error(f"Forecast projection failed: {e}")
            raise WeatherFetchError("forecast", UpstreamMalformed(f"Unusable forecast series: {e}")) from e

        return WeatherBundle(
            current=current,
            hourly=hourly,
            daily=daily,
            alerts=list(series.alerts),
            aqi=aqi,
        )

    def _required_result(self, endpoint: str, future: Future, deadline: float):
        try:
            return future.result(timeout=max(deadline - time.monotonic(), 0))
        except FutureTimeoutError as e:
            cause = UpstreamUnavailable(f"Timed out after {self.fetch_timeout}s")
            logging.error(f"Required {endpoint} fetch timed out")
            raise WeatherFetchError(endpoint, cause) from e
        except Exception as e:
            logging.error(f"Required {endpoint} fetch failed: {e}")
            raise WeatherFetchError(endpoint, e) from e

    def _optional_result(self, endpoint: str, future: Future, deadline: float) -> Optional[AirQuality]:
        try:
            result = future.result(timeout=max(deadline - time.monotonic(), 0))
        except FutureTimeoutError:
            self.last_degraded = OptionalUpstreamDegraded(
                endpoint, UpstreamUnavailable(f"Timed out after {self.aqi_timeout}s")
            )
        except Exception as e:
            self.last_degraded = OptionalUpstreamDegraded(endpoint, e)
        else:
            self.last_degraded = None
            return result
        logging.warning(f"Continuing without {endpoint}: {self.last_degraded}")
        return None
