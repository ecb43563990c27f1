"""Tests for OpenWeather provider."""
import pytest
import requests
from unittest.mock import Mock, patch
from openweather_provider import (
    OpenWeatherProvider,
    UNKNOWN_LOCATION,
    parse_air_quality,
    parse_current_weather,
    parse_forecast,
)
from weather_provider import UpstreamMalformed, UpstreamUnavailable, WeatherProviderError
from weather_data import CurrentConditions, WeatherCondition


@pytest.fixture
def sample_current_response():
    """Sample OpenWeather Current Weather API response."""
    return {
        "coord": {"lon": -94.04, "lat": 33.44},
        "weather": [
            {
                "id": 803,
                "main": "Clouds",
                "description": "broken clouds",
                "icon": "04d"
            }
        ],
        "base": "stations",
        "main": {
            "temp": 292.55,
            "feels_like": 292.87,
            "temp_min": 290.1,
            "temp_max": 294.0,
            "pressure": 1014,
            "humidity": 89
        },
        "visibility": 10000,
        "wind": {"speed": 3.13, "deg": 93},
        "rain": {"1h": 2.93},
        "clouds": {"all": 53},
        "dt": 1684929490,
        "sys": {"country": "US", "sunrise": 1684926645, "sunset": 1684977332},
        "timezone": -18000,
        "name": "Testville",
        "id": 123
    }


@pytest.fixture
def sample_forecast_response():
    """Sample 5 day / 3 hour forecast response (trimmed to three entries)."""
    return {
        "cod": "200",
        "cnt": 3,
        "list": [
            {
                "dt": 1661871600,
                "main": {"temp": 296.76, "feels_like": 296.98, "pressure": 1015, "humidity": 69},
                "weather": [{"id": 500, "main": "Rain", "description": "light rain", "icon": "10d"}],
                "clouds": {"all": 100},
                "wind": {"speed": 0.62, "deg": 349},
                "pop": 0.32,
                "rain": {"3h": 0.26},
            },
            {
                "dt": 1661882400,
                "main": {"temp": 295.45, "feels_like": 295.59, "pressure": 1015, "humidity": 71},
                "weather": [{"id": 500, "main": "Rain", "description": "light rain", "icon": "10n"}],
                "clouds": {"all": 96},
                "wind": {"speed": 1.97, "deg": 157},
                "pop": 0.33,
            },
            {
                "dt": 1661893200,
                "main": {"temp": 292.46, "feels_like": 292.54, "pressure": 1015, "humidity": 80},
                "weather": [{"id": 804, "main": "Clouds", "description": "overcast clouds", "icon": "04n"}],
                "clouds": {"all": 68},
                "wind": {"speed": 2.66, "deg": 210},
            },
        ],
        "city": {"name": "Zocca", "timezone": 7200},
    }


@pytest.fixture
def sample_air_response():
    return {
        "coord": [50, 50],
        "list": [
            {
                "dt": 1605182400,
                "main": {"aqi": 2},
                "components": {
                    "co": 201.94, "no": 0.02, "no2": 0.77, "o3": 68.66,
                    "so2": 0.64, "pm2_5": 0.5, "pm10": 0.54, "nh3": 0.12
                }
            }
        ]
    }


def ok_response(payload):
    response = Mock()
    response.ok = True
    response.status_code = 200
    response.json.return_value = payload
    return response


@pytest.fixture
def session():
    return Mock()


@pytest.fixture
def provider(session):
    """Create OpenWeather provider instance."""
    return OpenWeatherProvider(api_key="test_key", session=session)


def test_parse_current_weather(sample_current_response):
    weather = parse_current_weather(sample_current_response)

    assert isinstance(weather, CurrentConditions)
    assert weather.temp == 292.55
    assert weather.feels_like == 292.87
    assert weather.temp_min == 290.1
    assert weather.temp_max == 294.0
    assert weather.humidity == 89
    assert weather.wind_speed == 3.13
    assert weather.wind_deg == 93
    assert weather.clouds == 53
    assert weather.visibility == 10000
    assert weather.weather.condition is WeatherCondition.CLOUDS
    assert weather.weather.description == "broken clouds"
    assert weather.weather.icon == "04d"
    assert weather.has_precip is True
    assert weather.rain_1h == 2.93
    assert weather.timestamp == 1684929490
    assert weather.sunrise == 1684926645
    assert weather.sunset == 1684977332
    assert weather.timezone_offset == -18000


def test_parse_current_optional_blocks_missing():
    """Missing wind/clouds/sys/rain/snow never raise."""
    weather = parse_current_weather({"main": {"temp": 20.5}, "dt": 1684929490})

    assert weather.temp == 20.5
    assert weather.feels_like == 20.5
    assert weather.wind_speed == 0.0
    assert weather.clouds is None
    assert weather.sunrise is None
    assert weather.rain_1h == 0.0
    assert weather.snow_1h == 0.0
    assert weather.has_precip is False
    assert weather.weather.condition is WeatherCondition.UNKNOWN


def test_parse_current_snow():
    weather = parse_current_weather({
        "weather": [{"main": "Snow", "description": "light snow"}],
        "main": {"temp": -5.0, "feels_like": -8.0, "humidity": 80},
        "snow": {"1h": 1.2},
        "dt": 1684929490,
    })
    assert weather.snow_1h == 1.2
    assert weather.has_precip is True


def test_parse_current_missing_main():
    with pytest.raises(UpstreamMalformed) as exc_info:
        parse_current_weather({"weather": [{"main": "Clear"}], "dt": 1})
    assert "missing 'main' block" in str(exc_info.value)


def test_parse_current_missing_temperature():
    with pytest.raises(UpstreamMalformed) as exc_info:
        parse_current_weather({"main": {"humidity": 50}, "dt": 1})
    assert "'temp'" in str(exc_info.value)


def test_parse_current_missing_timestamp():
    with pytest.raises(UpstreamMalformed) as exc_info:
        parse_current_weather({"main": {"temp": 10.0}})
    assert "'dt'" in str(exc_info.value)


def test_parse_forecast(sample_forecast_response):
    series = parse_forecast(sample_forecast_response)

    assert len(series.entries) == 3
    assert series.timezone_offset == 7200
    assert series.alerts == []
    first, second, third = series.entries
    assert first.dt == 1661871600
    assert first.temp == 296.76
    assert first.rain == 0.26
    assert first.pop == 0.32
    assert second.rain == 0.0
    assert second.snow == 0.0
    assert third.pop == 0.0
    assert third.weather.condition is WeatherCondition.CLOUDS


def test_parse_forecast_with_alerts(sample_forecast_response):
    sample_forecast_response["alerts"] = [
        {"sender_name": "NWS", "event": "Heat Advisory", "start": 1, "end": 2, "description": "Hot"}
    ]
    series = parse_forecast(sample_forecast_response)
    assert len(series.alerts) == 1
    assert series.alerts[0].event == "Heat Advisory"
    assert series.alerts[0].sender == "NWS"


def test_parse_forecast_missing_list():
    with pytest.raises(UpstreamMalformed):
        parse_forecast({"cod": "200"})


def test_parse_forecast_entry_missing_temperature(sample_forecast_response):
    del sample_forecast_response["list"][1]["main"]["temp"]
    with pytest.raises(UpstreamMalformed):
        parse_forecast(sample_forecast_response)


def test_parse_air_quality(sample_air_response):
    air = parse_air_quality(sample_air_response)
    assert air.aqi == 2
    assert air.co == 201.94
    assert air.pm2_5 == 0.5
    assert air.nh3 == 0.12


def test_parse_air_quality_empty_list():
    with pytest.raises(UpstreamMalformed):
        parse_air_quality({"list": []})


def test_fetch_current_success(provider, session, sample_current_response):
    session.get.return_value = ok_response(sample_current_response)

    weather = provider.fetch_current(33.44, -94.04, "metric")

    assert weather.temp == 292.55
    url = session.get.call_args[0][0]
    kwargs = session.get.call_args[1]
    assert url == "https://api.openweathermap.org/data/2.5/weather"
    assert kwargs["params"] == {
        "lat": 33.44, "lon": -94.04, "units": "metric", "lang": "en", "appid": "test_key"
    }
    assert kwargs["timeout"] == 10


def test_fetch_forecast_success(provider, session, sample_forecast_response):
    session.get.return_value = ok_response(sample_forecast_response)

    series = provider.fetch_forecast(33.44, -94.04, "imperial")

    assert len(series.entries) == 3
    assert session.get.call_args[0][0].endswith("/forecast")
    assert session.get.call_args[1]["params"]["units"] == "imperial"


def test_fetch_air_quality_uses_own_timeout(session, sample_air_response):
    provider = OpenWeatherProvider(api_key="k", timeout=10, aqi_timeout=3, session=session)
    session.get.return_value = ok_response(sample_air_response)

    air = provider.fetch_air_quality(50, 50)

    assert air.aqi == 2
    assert session.get.call_args[0][0] == "https://api.openweathermap.org/data/2.5/air_pollution"
    assert session.get.call_args[1]["timeout"] == 3


def test_default_transport_is_requests(sample_current_response):
    """Without an injected session the provider goes through requests.get."""
    provider = OpenWeatherProvider(api_key="test_key")
    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.return_value = ok_response(sample_current_response)
        weather = provider.fetch_current(33.44, -94.04, "metric")
    assert weather.temp == 292.55
    assert mock_get.call_count == 1


def test_custom_base_url(session, sample_current_response):
    provider = OpenWeatherProvider(api_key="k", base_url="http://localhost:8080/data/", session=session)
    session.get.return_value = ok_response(sample_current_response)
    provider.fetch_current(1, 2, "metric")
    assert session.get.call_args[0][0] == "http://localhost:8080/data/weather"


def test_http_error(provider, session):
    """Test handling of HTTP errors."""
    mock_response = Mock()
    mock_response.ok = False
    mock_response.status_code = 401
    mock_response.json.return_value = {
        "cod": 401,
        "message": "Invalid API key"
    }
    session.get.return_value = mock_response

    with pytest.raises(UpstreamUnavailable) as exc_info:
        provider.fetch_current(1, 2, "metric")

    assert "401" in str(exc_info.value)
    assert "Invalid API key" in str(exc_info.value)
    assert exc_info.value.status_code == 401


def test_http_error_non_json(provider, session):
    mock_response = Mock()
    mock_response.ok = False
    mock_response.status_code = 502
    mock_response.json.side_effect = ValueError("no json")
    mock_response.text = "<html>Bad Gateway</html>"
    session.get.return_value = mock_response

    with pytest.raises(UpstreamUnavailable) as exc_info:
        provider.fetch_forecast(1, 2, "metric")

    assert "HTTP 502" in str(exc_info.value)
    assert exc_info.value.status_code == 502


def test_network_error(provider, session):
    """Test handling of network errors."""
    session.get.side_effect = requests.exceptions.ConnectionError("Connection refused")

    with pytest.raises(UpstreamUnavailable) as exc_info:
        provider.fetch_current(1, 2, "metric")

    assert "Network error" in str(exc_info.value)


def test_timeout_error(provider, session):
    session.get.side_effect = requests.exceptions.Timeout("read timed out")

    with pytest.raises(WeatherProviderError):
        provider.fetch_air_quality(1, 2)


def test_invalid_json_body(provider, session):
    response = ok_response(None)
    response.json.side_effect = ValueError("Expecting value")
    session.get.return_value = response

    with pytest.raises(UpstreamMalformed):
        provider.fetch_current(1, 2, "metric")


def test_search_location(provider, session):
    session.get.return_value = ok_response([
        {"name": "London", "lat": 51.5073219, "lon": -0.1276474, "country": "GB", "state": "England"},
        {"name": "London", "lat": 42.9832406, "lon": -81.243372, "country": "CA", "state": "Ontario"},
    ])

    results = provider.search_location("London")

    assert [r.label for r in results] == ["London, England", "London, Ontario"]
    assert results[0].lat == 51.5073219
    params = session.get.call_args[1]["params"]
    assert params["q"] == "London"
    assert params["limit"] == 5
    assert session.get.call_args[0][0].endswith("/geo/1.0/direct")


def test_search_location_failure_returns_empty(provider, session):
    session.get.side_effect = requests.exceptions.ConnectionError("down")
    assert provider.search_location("Nowhere") == []


def test_reverse_geocode(provider, session):
    session.get.return_value = ok_response([{"name": "Paris", "country": "FR"}])
    assert provider.reverse_geocode(48.85, 2.35) == "Paris, FR"

    session.get.return_value = ok_response([{"name": "Austin", "country": "US", "state": "Texas"}])
    assert provider.reverse_geocode(30.27, -97.74) == "Austin, Texas"


def test_reverse_geocode_empty_or_error(provider, session):
    session.get.return_value = ok_response([])
    assert provider.reverse_geocode(0, 0) == UNKNOWN_LOCATION

    session.get.side_effect = requests.exceptions.ConnectionError("down")
    assert provider.reverse_geocode(0, 0) == UNKNOWN_LOCATION


def test_parse_forecast_null_optional_fields(sample_forecast_response):
    """Explicit nulls in optional fields fall back to defaults."""
    entry = sample_forecast_response["list"][0]
    entry["main"]["humidity"] = None
    entry["main"]["feels_like"] = None
    entry["wind"] = {"speed": None, "deg": None}
    entry["pop"] = None

    first = parse_forecast(sample_forecast_response).entries[0]

    assert first.humidity == 0.0
    assert first.feels_like == first.temp
    assert first.wind_speed == 0.0
    assert first.wind_deg is None
    assert first.pop == 0.0


def test_parse_current_null_optional_fields():
    weather = parse_current_weather({
        "main": {"temp": 12.0, "feels_like": None, "temp_min": None, "temp_max": None},
        "wind": {"speed": None},
        "timezone": None,
        "dt": 1684929490,
    })
    assert weather.feels_like == 12.0
    assert weather.temp_min == 12.0
    assert weather.temp_max == 12.0
    assert weather.wind_speed == 0.0
    assert weather.timezone_offset == 0


def test_parse_forecast_timezone_out_of_range(sample_forecast_response):
    sample_forecast_response["city"]["timezone"] = 100000
    with pytest.raises(UpstreamMalformed) as exc_info:
        parse_forecast(sample_forecast_response)
    assert "Timezone offset" in str(exc_info.value)


def test_parse_forecast_timestamp_out_of_range(sample_forecast_response):
    sample_forecast_response["list"][2]["dt"] = 10 ** 15
    with pytest.raises(UpstreamMalformed) as exc_info:
        parse_forecast(sample_forecast_response)
    assert "out of range" in str(exc_info.value)


def test_parse_current_timestamp_out_of_range(sample_current_response):
    sample_current_response["dt"] = -5
    with pytest.raises(UpstreamMalformed):
        parse_current_weather(sample_current_response)


@pytest.mark.parametrize("body", [["bad gateway"], "bad gateway", 502])
def test_http_error_non_object_json(provider, session, body):
    mock_response = Mock()
    mock_response.ok = False
    mock_response.status_code = 502
    mock_response.json.return_value = body
    session.get.return_value = mock_response

    with pytest.raises(UpstreamUnavailable) as exc_info:
        provider.fetch_forecast(1, 2, "metric")

    assert "HTTP 502" in str(exc_info.value)
    assert exc_info.value.status_code == 502


def test_http_error_odd_parameters(provider, session):
    mock_response = Mock()
    mock_response.ok = False
    mock_response.status_code = 400
    mock_response.json.return_value = {"cod": "400", "message": "wrong latitude", "parameters": [1, "lat"]}
    session.get.return_value = mock_response

    with pytest.raises(UpstreamUnavailable) as exc_info:
        provider.fetch_current(1, 2, "metric")

    assert "(parameters: 1, lat)" in str(exc_info.value)

    mock_response.json.return_value = {"cod": "400", "message": "wrong latitude", "parameters": "lat"}
    with pytest.raises(UpstreamUnavailable) as exc_info:
        provider.fetch_current(1, 2, "metric")
    assert "(parameters: lat)" in str(exc_info.value)
