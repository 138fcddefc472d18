"""Data models for meter readings, tariffs and output points."""

import math
from dataclasses import dataclass
from datetime import datetime, time

from .errors import ConfigurationError, PointConstructionError

FLAG_VALUES = ("0", "1")


@dataclass(frozen=True)
class MeterReading:
    """A single consumption reading for one billing interval."""

    timestamp: datetime
    energy_kwh: float


@dataclass(frozen=True)
class OffPeakPeriod:
    """A recurring daily off-peak window. end < start wraps past midnight."""

    start: time
    end: time

    @property
    def wraps_midnight(self) -> bool:
        return self.end < self.start

    def __str__(self) -> str:
        return f"{self.start.strftime('%H:%M')}-{self.end.strftime('%H:%M')}"


@dataclass(frozen=True)
class ProviderTariff:
    """Electricity provider pricing for the whole run."""

    name: str = ""
    annual_fee: float = 0.0
    price_per_kwh: float = 0.0
    price_per_kwh_peak: float = 0.0
    price_per_kwh_offpeak: float = 0.0
    peak_offpeak_enabled: bool = False
    max_power: int = 0

    def __post_init__(self):
        for attr in ("annual_fee", "price_per_kwh", "price_per_kwh_peak", "price_per_kwh_offpeak"):
            value = getattr(self, attr)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigurationError(f"{attr} must be a number, got {value!r}")
            if not math.isfinite(value) or value < 0:
                raise ConfigurationError(f"{attr} must be a finite number >= 0, got {value!r}")
        if not isinstance(self.peak_offpeak_enabled, bool):
            raise ConfigurationError(
                f"peak_offpeak_enabled must be a boolean, got {self.peak_offpeak_enabled!r}"
            )
        if isinstance(self.max_power, bool) or not isinstance(self.max_power, int) or self.max_power < 0:
            raise ConfigurationError(f"max_power must be an integer >= 0, got {self.max_power!r}")


@dataclass(frozen=True)
class PricedReading:
    """A meter reading annotated with its classification and cost."""

    timestamp: datetime
    energy_kwh: float
    is_offpeak: bool
    cost: float


@dataclass(frozen=True)
class PeriodSummary:
    """Totals over all priced readings of a run."""

    total_kwh: float = 0.0
    total_kwh_peak: float = 0.0
    total_kwh_offpeak: float = 0.0
    total_price: float = 0.0


@dataclass(frozen=True)
class OutputPoint:
    """A time-series point with the fixed tag and field schema of the sink.

    Tags: heures_creuses (off-peak), heures_pleines (peak) and
    heures_normales (no off-peak periods configured). Exactly one is "1".
    Fields: power (kWh scaled by 1000) and price.
    """

    measurement: str
    heures_creuses: str
    heures_pleines: str
    heures_normales: str
    power: float
    price: float
    timestamp: datetime

    def __post_init__(self):
        if not isinstance(self.measurement, str) or not self.measurement.strip():
            raise PointConstructionError("measurement name must be a non-empty string")
        if "\n" in self.measurement or "\r" in self.measurement:
            raise PointConstructionError(f"measurement name must be a single line: {self.measurement!r}")

        flags = (self.heures_creuses, self.heures_pleines, self.heures_normales)
        if any(flag not in FLAG_VALUES for flag in flags):
            raise PointConstructionError(f"tag values must be '0' or '1', got {flags}")
        if flags.count("1") != 1:
            raise PointConstructionError(f"exactly one tag must be '1', got {flags}")

        for name in ("power", "price"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                raise PointConstructionError(f"field {name} must be a finite number, got {value!r}")

        if not isinstance(self.timestamp, datetime):
            raise PointConstructionError(f"timestamp must be a datetime, got {self.timestamp!r}")

    @property
    def tags(self) -> dict[str, str]:
        return {
            "heures_creuses": self.heures_creuses,
            "heures_pleines": self.heures_pleines,
            "heures_normales": self.heures_normales,
        }

    @property
    def fields(self) -> dict[str, float]:
        return {"power": float(self.power), "price": float(self.price)}
