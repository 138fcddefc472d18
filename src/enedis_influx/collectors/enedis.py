"""Enedis load curve collector.

Fetches the consumption load curve of a Linky meter from a Conso API style
endpoint and turns it into hourly kWh readings.

Endpoint: GET {base_url}/consumption_load_curve
Parameters:
  - prm: Usage point id (14 digits)
  - start: First day (YYYY-MM-DD, inclusive)
  - end: Last day (YYYY-MM-DD, exclusive), at most 7 days after start

Each interval_reading carries the average power (W) over the interval and
the date of the END of that interval, in local time.
"""

import os
import re
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Any
from zoneinfo import ZoneInfo

import httpx

from ..config import DEFAULT_ENEDIS_URL, DEFAULT_TIMEZONE
from ..models import MeterReading

MAX_DAYS_PER_REQUEST = 7
DEFAULT_INTERVAL_MINUTES = 30
DEFAULT_TIMEOUT = 30.0
USER_AGENT = "enedis-influx"

UTC = timezone.utc

_DURATION_RE = re.compile(r"^PT(?:(\d+)H)?(?:(\d+)M)?$")


class EnedisError(Exception):
    """Base exception for Enedis collector errors."""
    pass


def get_token() -> str:
    """Get the API token from environment variables."""
    token = os.environ.get("ENEDIS_TOKEN")
    if not token:
        raise EnedisError("ENEDIS_TOKEN environment variable not set")
    return token


def parse_interval_length(value: str | None) -> int:
    """Parse an ISO 8601 duration such as PT30M into minutes."""
    if not value:
        return DEFAULT_INTERVAL_MINUTES
    match = _DURATION_RE.match(value)
    if not match or not any(match.groups()):
        raise EnedisError(f"Unsupported interval length: {value!r}")
    hours, minutes = match.groups()
    return int(hours or 0) * 60 + int(minutes or 0)


def date_windows(start: date, end: date) -> list[tuple[date, date]]:
    """Split [start, end) into windows the API accepts."""
    windows = []
    current = start
    while current < end:
        window_end = min(current + timedelta(days=MAX_DAYS_PER_REQUEST), end)
        windows.append((current, window_end))
        current = window_end
    return windows


def fetch_load_curve(
    prm: str,
    start: date,
    end: date,
    token: str | None = None,
    base_url: str = DEFAULT_ENEDIS_URL,
    client: httpx.Client | None = None,
) -> list[dict[str, Any]]:
    """Fetch raw interval readings for [start, end).

    Returns:
        List of interval_reading dicts, in API order
    """
    if token is None:
        token = get_token()
    if client is None:
        with httpx.Client(timeout=DEFAULT_TIMEOUT) as client:
            return fetch_load_curve(prm, start, end, token, base_url, client)

    url = base_url.rstrip("/") + "/consumption_load_curve"
    headers = {
        "Authorization": f"Bearer {token}",
        "User-Agent": USER_AGENT,
    }

    intervals = []
    for window_start, window_end in date_windows(start, end):
        params = {
            "prm": prm,
            "start": window_start.isoformat(),
            "end": window_end.isoformat(),
        }
        try:
            response = client.get(url, params=params, headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise EnedisError(f"HTTP error from Enedis API: {e.response.status_code} - {e.response.text}")
        except httpx.RequestError as e:
            raise EnedisError(f"Network error connecting to Enedis API: {e}")
        except ValueError as e:
            raise EnedisError(f"Invalid JSON from Enedis API: {e}")

        # Data Connect wraps the curve in "meter_reading", Conso API does not
        if isinstance(data, dict) and "meter_reading" in data:
            data = data["meter_reading"]
        if not isinstance(data, dict):
            raise EnedisError(f"Unexpected response from Enedis API: {data!r}")

        reading_type = data.get("reading_type") or {}
        unit = reading_type.get("unit", "W")
        if unit != "W":
            raise EnedisError(f"Unsupported load curve unit: {unit!r}")

        intervals.extend(data.get("interval_reading") or [])

    return intervals


def parse_intervals(raw_data: list[dict[str, Any]], tz: ZoneInfo) -> list[tuple[datetime, float]]:
    """Convert interval readings to (interval_start, kWh) pairs, in UTC.

    Local dates are ambiguous for the hour repeated when clocks go back;
    the second time a date is seen it is taken as the later instant.
    """
    intervals = []
    seen: set[datetime] = set()
    for item in raw_data:
        try:
            interval_end = datetime.fromisoformat(item["date"])
            watts = float(item["value"])
        except (KeyError, TypeError, ValueError) as e:
            raise EnedisError(f"Malformed interval reading {item!r}: {e}")

        if interval_end.tzinfo is None:
            local_end = interval_end
            interval_end = interval_end.replace(tzinfo=tz, fold=1 if local_end in seen else 0)
            seen.add(local_end)

        minutes = parse_interval_length(item.get("interval_length"))
        # Average W over the interval -> kWh
        consumption_kwh = watts * minutes / 60 / 1000
        interval_start = interval_end.astimezone(UTC) - timedelta(minutes=minutes)
        intervals.append((interval_start, consumption_kwh))
    return intervals


def aggregate_to_hourly(intervals: list[tuple[datetime, float]], tz: ZoneInfo) -> list[MeterReading]:
    """Sum sub-hourly intervals into hourly readings, sorted by time.

    Buckets are UTC hours, so each reading has a distinct instant across
    DST changes; timestamps are returned in the meter's timezone.
    """
    buckets: dict[datetime, float] = defaultdict(float)
    for interval_start, consumption_kwh in intervals:
        hour = interval_start.astimezone(UTC).replace(minute=0, second=0, microsecond=0)
        buckets[hour] += consumption_kwh

    return [
        MeterReading(timestamp=hour.astimezone(tz), energy_kwh=kwh)
        for hour, kwh in sorted(buckets.items())
    ]


def fetch_readings(
    start: datetime,
    end: datetime,
    prm: str,
    token: str | None = None,
    base_url: str = DEFAULT_ENEDIS_URL,
    timezone: str = DEFAULT_TIMEZONE,
    client: httpx.Client | None = None,
) -> list[MeterReading]:
    """Fetch hourly readings for the half-open range [start, end).

    Naive start/end are taken to be in the meter's timezone.
    """
    tz = ZoneInfo(timezone)
    if start.tzinfo is None:
        start = start.replace(tzinfo=tz)
    if end.tzinfo is None:
        end = end.replace(tzinfo=tz)
    if end <= start:
        return []

    first_day = start.astimezone(tz).date()
    last_day = end.astimezone(tz).date() + timedelta(days=1)

    raw_data = fetch_load_curve(prm, first_day, last_day, token, base_url, client)
    readings = aggregate_to_hourly(parse_intervals(raw_data, tz), tz)
    # Compare instants; same-zone comparisons ignore fold
    start, end = start.astimezone(UTC), end.astimezone(UTC)
    return [r for r in readings if start <= r.timestamp.astimezone(UTC) < end]
