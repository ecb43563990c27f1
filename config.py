"""Configuration loaded from the environment (and a .env file when present)."""
import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from weather_cache import UNIT_SYSTEMS

DEFAULT_LAT = 40.7128
DEFAULT_LON = -74.0060
DEFAULT_LOCATION_NAME = "New York"


@dataclass(frozen=True)
class DashboardConfig:
    api_key: str
    lat: float
    lon: float
    location_name: str = DEFAULT_LOCATION_NAME
    units: str = "metric"
    lang: str = "en"
    base_url: Optional[str] = None
    air_quality_url: Optional[str] = None
    geocoding_url: Optional[str] = None


def _coordinate(name: str, raw: str, limit: float) -> float:
    try:
        value = float(raw)
    except ValueError as exc:
        raise SystemExit(f"Invalid coordinates: {name}={raw!r}") from exc
    if not -limit <= value <= limit:
        raise SystemExit(f"Invalid coordinates: {name}={value} outside ±{limit}")
    return value


def load_config(env_file: Optional[str] = None) -> DashboardConfig:
    load_dotenv(env_file)
    api_key = os.getenv("OPENWEATHER_API_KEY") or os.getenv("WEATHER_API_KEY")
    if not api_key:
        raise SystemExit("Missing OPENWEATHER_API_KEY in environment")

    lat = os.getenv("WEATHER_LAT")
    lon = os.getenv("WEATHER_LON")
    if bool(lat) != bool(lon):
        raise SystemExit("Set both WEATHER_LAT and WEATHER_LON, or neither")
    if lat and lon:
        lat_val = _coordinate("WEATHER_LAT", lat, 90)
        lon_val = _coordinate("WEATHER_LON", lon, 180)
        name = os.getenv("WEATHER_LOCATION_NAME", "")
    else:
        lat_val, lon_val = DEFAULT_LAT, DEFAULT_LON
        name = os.getenv("WEATHER_LOCATION_NAME", DEFAULT_LOCATION_NAME)

    units = os.getenv("WEATHER_UNITS", "metric").lower()
    if units not in UNIT_SYSTEMS:
        raise SystemExit(f"Invalid WEATHER_UNITS {units!r}, expected one of {', '.join(UNIT_SYSTEMS)}")

    config = DashboardConfig(
        api_key=api_key,
        lat=lat_val,
        lon=lon_val,
        location_name=name,
        units=units,
        lang=os.getenv("WEATHER_LANG", "en"),
        base_url=os.getenv("OPENWEATHER_BASE_URL"),
        air_quality_url=os.getenv("OPENWEATHER_AQI_URL"),
        geocoding_url=os.getenv("OPENWEATHER_GEO_URL"),
    )
    logging.info("Configuration loaded: lat=%s lon=%s units=%s", config.lat, config.lon, config.units)
    return config
