"""OpenWeather provider implementation (current weather, forecast, air pollution, geocoding)."""
import logging
import requests
from typing import Any, Dict, List, Optional
from weather_provider import WeatherProviderBase, UpstreamMalformed, UpstreamUnavailable
from weather_data import (
    Alert,
    AirQuality,
    CurrentConditions,
    ForecastSeries,
    GeoLocation,
    HourlySample,
    WeatherCondition,
    WeatherSummary,
)

UNKNOWN_LOCATION = "Unknown Location"


def parse_weather_summary(weather_array: Optional[List[Dict[str, Any]]]) -> WeatherSummary:
    """Map the first element of an OpenWeather "weather" array."""
    if not weather_array:
        return WeatherSummary(condition=WeatherCondition.UNKNOWN, main="Unknown")
    weather = weather_array[0]
    main = weather.get("main") or "Unknown"
    return WeatherSummary(
        condition=WeatherCondition.from_main(main),
        main=main,
        description=weather.get("description", ""),
        icon=weather.get("icon", ""),
        condition_id=weather.get("id"),
    )


def _require(block: Dict[str, Any], field: str, where: str) -> Any:
    value = block.get(field)
    if value is None:
        raise UpstreamMalformed(f"Response missing '{field}' in {where}")
    return value


def _accumulation(block: Optional[Dict[str, Any]], period: str) -> float:
    if not block:
        return 0.0
    return float(block.get(period, 0.0) or 0.0)


def _optional_float(block: Dict[str, Any], field: str, default: float) -> float:
    """Optional numeric field; absent and null both give the default."""
    value = block.get(field)
    if value is None:
        return default
    return float(value)


# 1970-01-01 to 3000-01-01; the offset limit mirrors datetime.timezone
MAX_TIMESTAMP = 32503680000
MAX_UTC_OFFSET = 24 * 3600


def _timestamp(value: Any, where: str) -> int:
    timestamp = int(value)
    if not 0 <= timestamp <= MAX_TIMESTAMP:
        raise UpstreamMalformed(f"Timestamp {timestamp} out of range in {where}")
    return timestamp


def _utc_offset(value: Any) -> int:
    offset = int(value or 0)
    if not -MAX_UTC_OFFSET < offset < MAX_UTC_OFFSET:
        raise UpstreamMalformed(f"Timezone offset {offset}s out of range")
    return offset


def parse_current_weather(data: Dict[str, Any]) -> CurrentConditions:
    """
    Map a Current Weather API response to CurrentConditions.

    Raises:
        UpstreamMalformed: if temperature or timestamp is missing
    """
    try:
        main_data = data.get("main")
        if not main_data:
            raise UpstreamMalformed("Response missing 'main' block")
        temp = float(_require(main_data, "temp", "'main'"))
        timestamp = _timestamp(_require(data, "dt", "response"), "response")

        wind_data = data.get("wind") or {}
        clouds_data = data.get("clouds") or {}
        sys_data = data.get("sys") or {}

        return CurrentConditions(
            temp=temp,
            feels_like=_optional_float(main_data, "feels_like", temp),
            temp_min=_optional_float(main_data, "temp_min", temp),
            temp_max=_optional_float(main_data, "temp_max", temp),
            pressure=main_data.get("pressure"),
            humidity=main_data.get("humidity"),
            visibility=data.get("visibility"),
            wind_speed=_optional_float(wind_data, "speed", 0.0),
            wind_deg=wind_data.get("deg"),
            clouds=clouds_data.get("all"),
            weather=parse_weather_summary(data.get("weather")),
            timestamp=timestamp,
            sunrise=sys_data.get("sunrise"),
            sunset=sys_data.get("sunset"),
            timezone_offset=_utc_offset(data.get("timezone")),
            rain_1h=_accumulation(data.get("rain"), "1h"),
            snow_1h=_accumulation(data.get("snow"), "1h"),
        )
    except (AttributeError, TypeError, ValueError) as e:
        raise UpstreamMalformed(f"Failed to parse current weather: {e}") from e


def parse_forecast_entry(item: Dict[str, Any]) -> HourlySample:
    main_data = item.get("main")
    if not main_data:
        raise UpstreamMalformed("Forecast entry missing 'main' block")
    wind_data = item.get("wind") or {}
    clouds_data = item.get("clouds") or {}
    temp = float(_require(main_data, "temp", "forecast entry"))

    return HourlySample(
        dt=_timestamp(_require(item, "dt", "forecast entry"), "forecast entry"),
        temp=temp,
        feels_like=_optional_float(main_data, "feels_like", temp),
        pressure=main_data.get("pressure"),
        humidity=_optional_float(main_data, "humidity", 0.0),
        weather=parse_weather_summary(item.get("weather")),
        clouds=clouds_data.get("all"),
        wind_speed=_optional_float(wind_data, "speed", 0.0),
        wind_deg=wind_data.get("deg"),
        pop=float(item.get("pop", 0.0) or 0.0),
        rain=_accumulation(item.get("rain"), "3h"),
        snow=_accumulation(item.get("snow"), "3h"),
    )


def parse_alerts(raw_alerts: Optional[List[Dict[str, Any]]]) -> List[Alert]:
    alerts = []
    for raw in raw_alerts or []:
        alerts.append(Alert(
            sender=raw.get("sender_name", ""),
            event=raw.get("event", ""),
            start=int(raw.get("start", 0)),
            end=int(raw.get("end", 0)),
            description=raw.get("description", ""),
        ))
    return alerts


def parse_forecast(data: Dict[str, Any]) -> ForecastSeries:
    """
    Map a 5 day / 3 hour Forecast API response to a ForecastSeries.

    Raises:
        UpstreamMalformed: if the 'list' array or an entry's temperature/timestamp is missing
    """
    try:
        raw_list = data.get("list")
        if not isinstance(raw_list, list):
            raise UpstreamMalformed("Response missing 'list' array")
        city = data.get("city") or {}
        return ForecastSeries(
            entries=[parse_forecast_entry(item) for item in raw_list],
            timezone_offset=_utc_offset(city.get("timezone")),
            alerts=parse_alerts(data.get("alerts")),
        )
    except (AttributeError, TypeError, ValueError) as e:
        raise UpstreamMalformed(f"Failed to parse forecast: {e}") from e


def parse_air_quality(data: Dict[str, Any]) -> AirQuality:
    """Map an Air Pollution API response to AirQuality."""
    try:
        readings = data.get("list")
        if not readings:
            raise UpstreamMalformed("Response missing 'list' array")
        reading = readings[0]
        aqi = _require(reading.get("main") or {}, "aqi", "'main'")
        components = reading.get("components") or {}
        return AirQuality(
            aqi=int(aqi),
            co=components.get("co"),
            no=components.get("no"),
            no2=components.get("no2"),
            o3=components.get("o3"),
            so2=components.get("so2"),
            pm2_5=components.get("pm2_5"),
            pm10=components.get("pm10"),
            nh3=components.get("nh3"),
        )
    except (AttributeError, TypeError, ValueError) as e:
        raise UpstreamMalformed(f"Failed to parse air quality: {e}") from e


class OpenWeatherProvider(WeatherProviderBase):
    """
    Weather provider backed by the free OpenWeather 2.5 APIs.

    Current Weather: https://openweathermap.org/current
    5 day / 3 hour Forecast: https://openweathermap.org/forecast5
    Air Pollution: https://openweathermap.org/api/air-pollution
    Geocoding: https://openweathermap.org/api/geocoding-api
    """

    BASE_URL = "https://api.openweathermap.org/data/2.5"
    AIR_QUALITY_URL = "https://api.openweathermap.org/data/2.5/air_pollution"
    GEOCODING_URL = "https://api.openweathermap.org/geo/1.0"

    def __init__(
        self,
        api_key: str,
        lang: str = "en",
        timeout: float = 10,
        aqi_timeout: float = 5,
        base_url: Optional[str] = None,
        air_quality_url: Optional[str] = None,
        geocoding_url: Optional[str] = None,
        session=None,
    ):
        """
        Initialize OpenWeather provider.

        Args:
            api_key: OpenWeather API key
            lang: Language code for descriptions (e.g., "en", "de")
            timeout: HTTP timeout in seconds for current weather and forecast
            aqi_timeout: HTTP timeout in seconds for the air pollution request
            base_url: Override for the data/2.5 base URL
            air_quality_url: Override for the air pollution endpoint
            geocoding_url: Override for the geo/1.0 base URL
            session: Object with a requests-compatible get(); defaults to the requests module
        """
        self.api_key = api_key
        self.lang = lang
        self.timeout = timeout
        self.aqi_timeout = aqi_timeout
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.air_quality_url = air_quality_url or self.AIR_QUALITY_URL
        self.geocoding_url = (geocoding_url or self.GEOCODING_URL).rstrip("/")
        self.session = session if session is not None else requests

    def fetch_current(self, lat: float, lon: float, units: str) -> CurrentConditions:
        data = self._get_json(
            f"{self.base_url}/weather",
            {"lat": lat, "lon": lon, "units": units, "lang": self.lang},
            self.timeout,
        )
        current = parse_current_weather(data)
        logging.info(f"Current weather parsed: {current.temp}, {current.weather.main}")
        return current

    def fetch_forecast(self, lat: float, lon: float, units: str) -> ForecastSeries:
        data = self._get_json(
            f"{self.base_url}/forecast",
            {"lat": lat, "lon": lon, "units": units, "lang": self.lang},
            self.timeout,
        )
        series = parse_forecast(data)
        logging.info(f"Forecast parsed: {len(series.entries)} entries")
        return series

    def fetch_air_quality(self, lat: float, lon: float) -> AirQuality:
        data = self._get_json(self.air_quality_url, {"lat": lat, "lon": lon}, self.aqi_timeout)
        return parse_air_quality(data)

    def search_location(self, query: str, limit: int = 5) -> List[GeoLocation]:
        """Direct geocoding. Returns an empty list on any failure."""
        try:
            data = self._get_json(
                f"{self.geocoding_url}/direct", {"q": query, "limit": limit}, self.timeout
            )
            return [
                GeoLocation(
                    name=item["name"],
                    lat=float(item["lat"]),
                    lon=float(item["lon"]),
                    country=item.get("country", ""),
                    state=item.get("state"),
                )
                for item in data
            ]
        except (UpstreamUnavailable, UpstreamMalformed, KeyError, TypeError, ValueError) as e:
            logging.error(f"Geocoding error for {query!r}: {e}")
            return []

    def reverse_geocode(self, lat: float, lon: float) -> str:
        """Name of the place at lat/lon, or "Unknown Location"."""
        try:
            data = self._get_json(
                f"{self.geocoding_url}/reverse", {"lat": lat, "lon": lon, "limit": 1}, self.timeout
            )
            if not data:
                return UNKNOWN_LOCATION
            location = data[0]
            region = location.get("state") or location.get("country", "")
            return f"{location['name']}, {region}"
        except (UpstreamUnavailable, UpstreamMalformed, KeyError, TypeError, IndexError) as e:
            logging.error(f"Reverse geocoding error: {e}")
            return UNKNOWN_LOCATION

    def _get_json(self, url: str, params: Dict[str, Any], timeout: float) -> Any:
        logging.info(f"Making OpenWeather API request: {url}")
        logging.debug(f"Request parameters: {params}")

        try:
            response = self.session.get(url, params={**params, "appid": self.api_key}, timeout=timeout)
        except requests.exceptions.RequestException as e:
            logging.error(f"Network error during API request: {e}")
            raise UpstreamUnavailable(f"Network error: {str(e)}") from e

        logging.info(f"API response status: {response.status_code}")
        if not response.ok:
            logging.error(f"API request failed with status {response.status_code}")
            self._handle_error_response(response)

        try:
            data = response.json()
        except ValueError as e:
            logging.error(f"Failed to decode API response: {e}")
            raise UpstreamMalformed(f"Failed to parse response: {str(e)}") from e

        logging.debug(f"API response (truncated): {str(data)[:500]}...")
        return data

    def _handle_error_response(self, response: requests.Response) -> None:
        """Parse and raise error from OpenWeather error response."""
        try:
            error_data = response.json()
        except ValueError:
            # Not JSON, use HTTP status
            logging.error(f"Non-JSON error response: HTTP {response.status_code}, body: {response.text[:500]}")
            raise UpstreamUnavailable(
                f"HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        logging.error(f"OpenWeather API error response: {error_data}")
        if not isinstance(error_data, dict):
            raise UpstreamUnavailable(
                f"HTTP {response.status_code}: {str(error_data)[:200]}",
                status_code=response.status_code,
            )

        cod = error_data.get("cod", response.status_code)
        message = error_data.get("message", "Unknown error")
        parameters = error_data.get("parameters") or []

        error_msg = f"OpenWeather API error {cod}: {message}"
        if parameters:
            if not isinstance(parameters, list):
                parameters = [parameters]
            error_msg += f" (parameters: {', '.join(str(p) for p in parameters)})"

        raise UpstreamUnavailable(error_msg, status_code=response.status_code)
