"""Text-mode weather dashboard."""
import argparse
import logging
import os
import signal
import sys
import time
from typing import Optional

from config import DashboardConfig, load_config
from formatting import format_bundle_lines
from openweather_provider import OpenWeatherProvider, UNKNOWN_LOCATION
from weather_cache import UNIT_SYSTEMS, CacheStore
from weather_provider import WeatherFetchError
from weather_service import WeatherService

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DEFAULT_LOG_FILE = os.path.join(BASE_DIR, "weather-dashboard.log")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser("Weather dashboard")
    parser.add_argument("--log-file", default=DEFAULT_LOG_FILE)
    parser.add_argument("--units", choices=list(UNIT_SYSTEMS), default=None,
                        help="Overrides WEATHER_UNITS")
    parser.add_argument("--lat", type=float, default=None)
    parser.add_argument("--lon", type=float, default=None)
    parser.add_argument("--refresh", type=float, default=600.0, help="Seconds between refreshes")
    parser.add_argument("--once", action="store_true", help="Fetch and print once, then exit")
    parser.add_argument("--search", metavar="QUERY", help="Look up a location by name and exit")
    parser.add_argument("--cache-ttl", type=int, default=300, help="Cache TTL in seconds")
    parser.add_argument("--max-cache-entries", type=int, default=None)
    parser.add_argument("--single-flight", action="store_true")
    parser.add_argument("--timeout", type=float, default=10, help="HTTP timeout in seconds")
    parser.add_argument("--aqi-timeout", type=float, default=5, help="Air quality HTTP timeout in seconds")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args(argv)
    if (args.lat is None) != (args.lon is None):
        parser.error("--lat and --lon must be given together")
    return args


def setup_logging(log_file: str, verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file)
        ]
    )


def build_provider(config: DashboardConfig, args: argparse.Namespace) -> OpenWeatherProvider:
    return OpenWeatherProvider(
        api_key=config.api_key,
        lang=config.lang,
        timeout=args.timeout,
        aqi_timeout=args.aqi_timeout,
        base_url=config.base_url,
        air_quality_url=config.air_quality_url,
        geocoding_url=config.geocoding_url,
    )


def build_weather_service(provider: OpenWeatherProvider, args: argparse.Namespace) -> WeatherService:
    service = WeatherService(
        provider=provider,
        cache=CacheStore(max_entries=args.max_cache_entries),
        ttl_ms=args.cache_ttl * 1000,
        # future waits outlast the HTTP timeouts
        fetch_timeout=args.timeout + 5,
        aqi_timeout=args.aqi_timeout + 1,
        single_flight=args.single_flight,
    )
    logging.info("Weather service ready (cache ttl=%ss)", args.cache_ttl)
    return service


def show_weather(service: WeatherService, lat: float, lon: float, units: str, name: str) -> bool:
    """Fetch and print one refresh. Returns False if nothing could be shown."""
    try:
        bundle = service.get_weather_data(lat, lon, units)
        stale_note = ""
    except WeatherFetchError as err:
        logging.error("Weather fetch failed: %s", err)
        entry = service.get_cached_entry(lat, lon, units)
        if entry is None:
            print(f"Weather unavailable: {err}")
            return False
        bundle = entry.data
        stale_note = f"(stale, fetched {time.strftime('%H:%M:%S', time.localtime(entry.fetched_at_ms / 1000))})"

    print()
    for line in format_bundle_lines(bundle, units, name):
        print(line)
    if stale_note:
        print(stale_note)
    return True


def search(provider: OpenWeatherProvider, query: str) -> int:
    matches = provider.search_location(query)
    if not matches:
        print(f"No locations found for {query!r}")
        return 1
    for match in matches:
        print(f"{match.label}  lat={match.lat:.4f} lon={match.lon:.4f}")
    return 0


def weather_loop(service: WeatherService, lat: float, lon: float, units: str, name: str,
                 refresh: float) -> None:
    frame = 0
    while True:
        frame += 1
        logging.info("Refresh %s: fetching weather", frame)
        show_weather(service, lat, lon, units, name)
        time.sleep(max(refresh, 1.0))


def signal_handler(signum, frame):
    logging.info("Received signal %s, shutting down", signum)
    raise KeyboardInterrupt()


def main(argv=None) -> Optional[int]:
    args = parse_args(argv)
    setup_logging(args.log_file, args.verbose)
    config = load_config()
    provider = build_provider(config, args)

    if args.search:
        return search(provider, args.search)

    units = args.units or config.units
    if args.lat is not None:
        lat, lon = args.lat, args.lon
        name = provider.reverse_geocode(lat, lon)
        if name == UNKNOWN_LOCATION:
            name = f"{lat:.4f}, {lon:.4f}"
    else:
        lat, lon, name = config.lat, config.lon, config.location_name

    service = build_weather_service(provider, args)

    if args.once:
        try:
            return 0 if show_weather(service, lat, lon, units, name) else 1
        finally:
            service.shutdown()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        weather_loop(service, lat, lon, units, name, args.refresh)
    except KeyboardInterrupt:
        logging.info("Stopping dashboard")
    finally:
        service.shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())
