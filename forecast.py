"""Hourly and daily projections of a forecast time series - pure functions."""
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List

from weather_data import DailySample, DailyTemperature, HourlySample

HOURLY_SAMPLES = 16  # 48 hours at 3-hour resolution
DAILY_DAYS = 7


def build_hourly(entries: List[HourlySample], limit: int = HOURLY_SAMPLES) -> List[HourlySample]:
    """Return the first `limit` entries at native resolution."""
    return list(entries[:limit])


def local_date(timestamp: int, timezone_offset: int = 0) -> date:
    """Calendar date of a UNIX timestamp at the given UTC offset (seconds)."""
    tz = timezone(timedelta(seconds=timezone_offset))
    return datetime.fromtimestamp(timestamp, tz=tz).date()


def summarize_day(day: date, samples: List[HourlySample]) -> DailySample:
    """
    Fold one day's samples into a DailySample.

    The dominant weather is the most frequent condition in the bucket; on a
    tie the condition seen first wins.
    """
    temps = [s.temp for s in samples]
    # Counter keeps insertion order and most_common() sorts stably
    counts = Counter(s.weather.main for s in samples)
    dominant = counts.most_common(1)[0][0]
    weather = next(s.weather for s in samples if s.weather.main == dominant)

    return DailySample(
        dt=samples[0].dt,
        date=day,
        temp=DailyTemperature(
            min=min(temps),
            max=max(temps),
            day=sum(temps) / len(temps),
        ),
        weather=weather,
        humidity=sum(s.humidity for s in samples) / len(samples),
        wind_speed=sum(s.wind_speed for s in samples) / len(samples),
        pop=max(s.pop or 0.0 for s in samples),
    )


def build_daily(
    entries: List[HourlySample],
    timezone_offset: int = 0,
    days: int = DAILY_DAYS,
) -> List[DailySample]:
    """
    Group entries by calendar date and summarize the first `days` dates.

    Entries are sorted by timestamp first so the result is chronological
    regardless of upstream ordering.
    """
    buckets: Dict[date, List[HourlySample]] = {}
    for entry in sorted(entries, key=lambda e: e.dt):
        buckets.setdefault(local_date(entry.dt, timezone_offset), []).append(entry)

    return [summarize_day(day, samples) for day, samples in list(buckets.items())[:days]]
