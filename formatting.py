"""Display helpers for the dashboard - pure functions for testability."""
from typing import List, Optional, Tuple

from weather_data import WeatherBundle, WeatherCondition, WeatherSummary

UNKNOWN_ICON = "🌤️"

WEATHER_ICONS = {
    "01d": "☀️", "01n": "🌙",
    "02d": "⛅", "02n": "☁️",
    "03d": "☁️", "03n": "☁️",
    "04d": "☁️", "04n": "☁️",
    "09d": "🌧️", "09n": "🌧️",
    "10d": "🌦️", "10n": "🌧️",
    "11d": "⛈️", "11n": "⛈️",
    "13d": "❄️", "13n": "❄️",
    "50d": "🌫️", "50n": "🌫️",
}

COMPASS_POINTS = [
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
]

# OpenWeather air pollution index, 1..5
AQI_LEVELS = [
    (1, "Good", "Air quality is satisfactory"),
    (2, "Fair", "Acceptable for most people"),
    (3, "Moderate", "Sensitive groups may experience effects"),
    (4, "Poor", "Everyone may begin to experience effects"),
    (5, "Very Poor", "Health alert: everyone may experience serious effects"),
]


def get_weather_icon(icon_code: Optional[str]) -> str:
    """Symbol for an OpenWeather icon code such as "10d"."""
    if icon_code in WEATHER_ICONS:
        return WEATHER_ICONS[icon_code]
    return UNKNOWN_ICON


def condition_icon(condition: WeatherCondition, is_day: bool = True) -> str:
    """Symbol for a condition; every variant is handled explicitly."""
    if condition is WeatherCondition.CLEAR:
        return "☀️" if is_day else "🌙"
    if condition is WeatherCondition.CLOUDS:
        return "☁️"
    if condition is WeatherCondition.RAIN:
        return "🌦️" if is_day else "🌧️"
    if condition is WeatherCondition.DRIZZLE:
        return "🌧️"
    if condition is WeatherCondition.THUNDERSTORM:
        return "⛈️"
    if condition is WeatherCondition.SNOW:
        return "❄️"
    if condition in (WeatherCondition.MIST, WeatherCondition.FOG, WeatherCondition.HAZE):
        return "🌫️"
    if condition is WeatherCondition.UNKNOWN:
        return UNKNOWN_ICON
    raise AssertionError(f"Unhandled condition: {condition}")


def get_condition_text(summary: WeatherSummary) -> str:
    """
    Short text for a weather condition.

    Returns:
        Short condition string (e.g., "Cloudy", "Rain", "Clear")
    """
    condition_map = {
        WeatherCondition.CLEAR: "Clear",
        WeatherCondition.CLOUDS: "Cloudy",
        WeatherCondition.RAIN: "Rain",
        WeatherCondition.DRIZZLE: "Drizzle",
        WeatherCondition.THUNDERSTORM: "Storm",
        WeatherCondition.SNOW: "Snow",
        WeatherCondition.MIST: "Mist",
        WeatherCondition.FOG: "Fog",
        WeatherCondition.HAZE: "Haze",
    }
    if summary.condition is WeatherCondition.UNKNOWN:
        return summary.main.capitalize()
    return condition_map[summary.condition]


def convert_temp(value: float, from_units: str, to_units: str) -> float:
    """Convert a temperature between metric (C), imperial (F) and standard (K)."""
    if from_units == to_units:
        return value
    if from_units == "imperial":
        celsius = (value - 32) * 5 / 9
    elif from_units == "standard":
        celsius = value - 273.15
    else:
        celsius = value

    if to_units == "imperial":
        return celsius * 9 / 5 + 32
    if to_units == "standard":
        return celsius + 273.15
    return celsius


def temperature_suffix(units: str) -> str:
    return {"metric": "°C", "imperial": "°F", "standard": "K"}.get(units, "°")


def speed_suffix(units: str) -> str:
    return "mph" if units == "imperial" else "m/s"


def wind_direction(degrees: Optional[float]) -> str:
    """16-point compass direction for a bearing in degrees."""
    if degrees is None:
        return "-"
    index = int(((degrees % 360) / 22.5) + 0.5) % 16
    return COMPASS_POINTS[index]


def aqi_level(aqi: int) -> Tuple[str, str]:
    """(label, description) for an OpenWeather AQI value; out-of-range values are clamped."""
    for level, label, description in AQI_LEVELS:
        if aqi <= level:
            return label, description
    return AQI_LEVELS[-1][1], AQI_LEVELS[-1][2]


def format_bundle_lines(bundle: WeatherBundle, units: str = "metric", location_name: str = "") -> List[str]:
    """Plain text summary of a bundle, one line per item."""
    current = bundle.current
    t = temperature_suffix(units)
    icon = get_weather_icon(current.weather.icon)
    if icon == UNKNOWN_ICON:
        icon = condition_icon(current.weather.condition, current.weather.is_day)

    lines = []
    if location_name:
        lines.append(location_name)
    lines.append(
        f"{icon} {round(current.temp):+d}{t} {get_condition_text(current.weather)}"
        f" (feels {round(current.feels_like):+d}{t})"
    )
    humidity = "-" if current.humidity is None else f"{int(current.humidity)}%"
    lines.append(
        f"Hum {humidity}  Wind {current.wind_speed:.1f}{speed_suffix(units)}"
        f" {wind_direction(current.wind_deg)}"
    )
    if bundle.aqi is not None:
        label, _ = aqi_level(bundle.aqi.aqi)
        lines.append(f"AQI {bundle.aqi.aqi} ({label})")
    else:
        lines.append("AQI unavailable")

    for day in bundle.daily:
        lines.append(
            f"{day.date.strftime('%a %d %b')}  {get_weather_icon(day.weather.icon)}"
            f"  {round(day.temp.min):+d}/{round(day.temp.max):+d}{t}  pop {round(day.pop * 100)}%"
        )
    for alert in bundle.alerts:
        lines.append(f"ALERT {alert.event} ({alert.sender})")
    return lines
