"""Tests for the text-mode dashboard entry point."""
import pytest
from unittest.mock import Mock, patch

import main
from weather_cache import CacheEntry
from weather_provider import UpstreamUnavailable, WeatherFetchError
from weather_data import GeoLocation


def test_parse_args_defaults():
    args = main.parse_args([])
    assert args.refresh == 600.0
    assert args.cache_ttl == 300
    assert args.units is None
    assert args.single_flight is False
    assert args.once is False


def test_parse_args_requires_lat_and_lon_together():
    with pytest.raises(SystemExit):
        main.parse_args(["--lat", "51.5"])


def test_build_weather_service_uses_args():
    args = main.parse_args(["--cache-ttl", "60", "--max-cache-entries", "10", "--single-flight"])
    service = main.build_weather_service(Mock(), args)
    try:
        assert service.ttl_ms == 60_000
        assert service.cache.max_entries == 10
        assert service.single_flight is True
    finally:
        service.shutdown()


def test_show_weather_prints_summary(capsys):
    service = Mock()
    with patch("main.format_bundle_lines", return_value=["London", "+15°C Cloudy"]):
        assert main.show_weather(service, 51.5, -0.12, "metric", "London") is True

    service.get_weather_data.assert_called_once_with(51.5, -0.12, "metric")
    out = capsys.readouterr().out
    assert "London" in out
    assert "+15°C Cloudy" in out


def test_show_weather_falls_back_to_stale_entry(capsys):
    service = Mock()
    service.get_weather_data.side_effect = WeatherFetchError("forecast", UpstreamUnavailable("down"))
    service.get_cached_entry.return_value = CacheEntry(data=Mock(), fetched_at_ms=0)

    with patch("main.format_bundle_lines", return_value=["cached line"]):
        assert main.show_weather(service, 1.0, 2.0, "metric", "") is True

    out = capsys.readouterr().out
    assert "cached line" in out
    assert "stale" in out


def test_show_weather_without_cache(capsys):
    service = Mock()
    service.get_weather_data.side_effect = WeatherFetchError("current", UpstreamUnavailable("down"))
    service.get_cached_entry.return_value = None

    assert main.show_weather(service, 1.0, 2.0, "metric", "") is False
    assert "Weather unavailable" in capsys.readouterr().out


def test_search(capsys):
    provider = Mock()
    provider.search_location.return_value = [GeoLocation("London", 51.5073, -0.1276, "GB", "England")]

    assert main.search(provider, "London") == 0
    assert "London, England  lat=51.5073 lon=-0.1276" in capsys.readouterr().out

    provider.search_location.return_value = []
    assert main.search(provider, "Atlantis") == 1
