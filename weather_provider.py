"""Weather provider abstraction - allows swapping different weather APIs."""
from abc import ABC, abstractmethod
from typing import Optional

from weather_data import AirQuality, CurrentConditions, ForecastSeries


class WeatherProviderBase(ABC):
    """Abstract base class for weather data providers."""

    @abstractmethod
    def fetch_current(self, lat: float, lon: float, units: str) -> CurrentConditions:
        """
        Fetch current weather conditions.

        Raises:
            UpstreamUnavailable: network failure or non-2xx response
            UpstreamMalformed: response lacks mandatory fields
        """
        pass

    @abstractmethod
    def fetch_forecast(self, lat: float, lon: float, units: str) -> ForecastSeries:
        """Fetch the raw forecast time series (same errors as fetch_current)."""
        pass

    @abstractmethod
    def fetch_air_quality(self, lat: float, lon: float) -> AirQuality:
        """Fetch the current air pollution reading."""
        pass


class WeatherProviderError(Exception):
    """Exception raised when a weather provider fails."""
    pass


class UpstreamUnavailable(WeatherProviderError):
    """Network failure or non-success HTTP status from an upstream endpoint."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UpstreamMalformed(WeatherProviderError):
    """Upstream answered successfully but the payload is unusable."""
    pass


class WeatherFetchError(WeatherProviderError):
    """A required fetch (current conditions or forecast) failed."""

    def __init__(self, endpoint: str, cause: BaseException):
        super().__init__(f"{endpoint} fetch failed: {cause}")
        self.endpoint = endpoint
        self.cause = cause


class OptionalUpstreamDegraded(WeatherProviderError):
    """The optional air-quality fetch failed; recorded, never raised to callers."""

    def __init__(self, endpoint: str, cause: BaseException):
        super().__init__(f"{endpoint} unavailable: {cause}")
        self.endpoint = endpoint
        self.cause = cause
