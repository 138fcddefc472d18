"""Off-peak classification and reading cost calculation."""

import math
from datetime import datetime, time
from typing import Iterable

from .errors import ConfigurationError, InvalidReading
from .models import OffPeakPeriod, ProviderTariff


def parse_time(time_str: str) -> time:
    """Parse HH:MM string to time object."""
    if isinstance(time_str, int) and not isinstance(time_str, bool):
        # YAML 1.1 reads an unquoted 22:00 as the base 60 integer 1320
        raise ConfigurationError(
            f"Expected an HH:MM string, got the number {time_str}. "
            'Quote times in YAML, e.g. start: "22:00"'
        )
    if not isinstance(time_str, str):
        raise ConfigurationError(f"Expected an HH:MM string, got {time_str!r}")
    parts = time_str.strip().split(":")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise ConfigurationError(f"Expected an HH:MM string, got {time_str!r}")
    try:
        return time(int(parts[0]), int(parts[1]))
    except ValueError as e:
        raise ConfigurationError(f"Invalid time of day {time_str!r}: {e}")


def parse_period(start: str, end: str) -> OffPeakPeriod:
    """Build an off-peak period from HH:MM strings."""
    return OffPeakPeriod(start=parse_time(start), end=parse_time(end))


def time_in_range(check_time: time, start: time, end: time) -> bool:
    """Check if a time falls within a range (handles overnight ranges)."""
    if start <= end:
        return start <= check_time < end
    else:
        # Overnight range (e.g., 22:00 to 06:00)
        return check_time >= start or check_time < end


def is_offpeak(timestamp: datetime, periods: Iterable[OffPeakPeriod]) -> bool:
    """Check if a timestamp falls in any off-peak period.

    Only the wall-clock time of the timestamp is used, so aware timestamps
    should already be in the meter's local timezone.
    """
    check_time = timestamp.time()
    return any(time_in_range(check_time, p.start, p.end) for p in periods)


def check_energy(energy_kwh: float) -> None:
    """Raise InvalidReading for negative or non-finite energy values."""
    if isinstance(energy_kwh, bool) or not isinstance(energy_kwh, (int, float)):
        raise InvalidReading(f"Energy must be a number, got {energy_kwh!r}")
    if not math.isfinite(energy_kwh) or energy_kwh < 0:
        raise InvalidReading(f"Energy must be a finite number >= 0, got {energy_kwh!r}")


def rate_for(is_offpeak: bool, tariff: ProviderTariff) -> float:
    """Get the price per kWh that applies to a reading."""
    if not tariff.peak_offpeak_enabled:
        return tariff.price_per_kwh
    return tariff.price_per_kwh_offpeak if is_offpeak else tariff.price_per_kwh_peak


def price_reading(energy_kwh: float, is_offpeak: bool, tariff: ProviderTariff) -> float:
    """Calculate the cost of a reading under the provider tariff."""
    check_energy(energy_kwh)
    return energy_kwh * rate_for(is_offpeak, tariff)
