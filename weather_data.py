"""Weather domain model - pure data structures independent of any API."""
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional


class WeatherCondition(Enum):
    """Closed set of weather conditions the dashboard knows how to show."""
    CLEAR = "Clear"
    CLOUDS = "Clouds"
    RAIN = "Rain"
    DRIZZLE = "Drizzle"
    THUNDERSTORM = "Thunderstorm"
    SNOW = "Snow"
    MIST = "Mist"
    FOG = "Fog"
    HAZE = "Haze"
    UNKNOWN = "Unknown"

    @classmethod
    def from_main(cls, main: Optional[str]) -> "WeatherCondition":
        """Map an upstream condition string (e.g. "Clouds") to a variant.

        Anything not in the closed set, including None and "", is UNKNOWN.
        """
        if not main:
            return cls.UNKNOWN
        wanted = main.strip().lower()
        for condition in cls:
            if condition.value.lower() == wanted:
                return condition
        return cls.UNKNOWN


@dataclass(frozen=True)
class WeatherSummary:
    """One entry of the upstream "weather" array."""
    condition: WeatherCondition
    main: str  # raw upstream value, e.g. "Clouds" or "Smoke"
    description: str = ""
    icon: str = ""  # e.g. "04d"
    condition_id: Optional[int] = None

    @property
    def is_day(self) -> bool:
        return not self.icon.endswith("n")


@dataclass(frozen=True)
class CurrentConditions:
    """Current observation for a location."""
    temp: float
    feels_like: float
    temp_min: float
    temp_max: float
    pressure: Optional[float]
    humidity: Optional[float]
    visibility: Optional[int]
    wind_speed: float
    wind_deg: Optional[float]
    clouds: Optional[int]  # percentage
    weather: WeatherSummary
    timestamp: int  # UNIX timestamp (UTC)
    sunrise: Optional[int] = None
    sunset: Optional[int] = None
    timezone_offset: int = 0  # Offset from UTC in seconds
    rain_1h: float = 0.0
    snow_1h: float = 0.0

    @property
    def has_precip(self) -> bool:
        return self.rain_1h > 0 or self.snow_1h > 0

    def is_stale(self, max_age_seconds: int = 900, now: Optional[float] = None) -> bool:
        """Check if this observation is older than max_age_seconds."""
        if now is None:
            now = datetime.now(timezone.utc).timestamp()
        return now - self.timestamp > max_age_seconds


@dataclass(frozen=True)
class HourlySample:
    """A single forecast entry at the provider's native (3-hour) resolution."""
    dt: int
    temp: float
    feels_like: float
    pressure: Optional[float]
    humidity: float
    weather: WeatherSummary
    clouds: Optional[int]
    wind_speed: float
    wind_deg: Optional[float]
    pop: float = 0.0  # probability of precipitation, 0..1
    rain: float = 0.0  # mm over 3h
    snow: float = 0.0  # mm over 3h


@dataclass(frozen=True)
class DailyTemperature:
    min: float
    max: float
    day: float  # mean of the day's samples


@dataclass(frozen=True)
class DailySample:
    """Forecast entries of one calendar day folded into a single summary."""
    dt: int  # timestamp of the first sample of the day
    date: date
    temp: DailyTemperature
    weather: WeatherSummary  # dominant condition of the day
    humidity: float
    wind_speed: float
    pop: float


@dataclass(frozen=True)
class Alert:
    sender: str
    event: str
    start: int
    end: int
    description: str = ""


@dataclass(frozen=True)
class ForecastSeries:
    """Raw forecast time series as returned by the forecast adapter."""
    entries: List[HourlySample]
    timezone_offset: int = 0
    alerts: List[Alert] = field(default_factory=list)


@dataclass(frozen=True)
class AirQuality:
    """Air pollution reading. aqi is OpenWeather's 1 (good) to 5 (very poor) index."""
    aqi: int
    co: Optional[float] = None
    no: Optional[float] = None
    no2: Optional[float] = None
    o3: Optional[float] = None
    so2: Optional[float] = None
    pm2_5: Optional[float] = None
    pm10: Optional[float] = None
    nh3: Optional[float] = None


@dataclass(frozen=True)
class WeatherBundle:
    """Everything the dashboard shows for one location, cached as a unit."""
    current: CurrentConditions
    hourly: List[HourlySample]
    daily: List[DailySample]
    alerts: List[Alert] = field(default_factory=list)
    aqi: Optional[AirQuality] = None


@dataclass(frozen=True)
class GeoLocation:
    name: str
    lat: float
    lon: float
    country: str = ""
    state: Optional[str] = None

    @property
    def label(self) -> str:
        region = self.state or self.country
        return f"{self.name}, {region}" if region else self.name
