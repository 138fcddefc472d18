"""Configuration loading.

Reads enedis2influx.yaml into an immutable AppConfig. Secrets can be kept out
of the file and supplied through the environment (or a .env file):
ENEDIS_TOKEN, INFLUX_USER and INFLUX_PASSWORD override the file values.

Example:

    provider:
      name: EDF Tarif Bleu
      annual_fee: 151.20
      max_power: 9
      peak_offpeak_enabled: true
      price_per_kwh: 0.2516
      price_per_kwh_peak: 0.27
      price_per_kwh_offpeak: 0.2068
    enedis:
      prm: "12345678901234"
      offpeak_periods:
        - {start: "22:00", end: "06:00"}
    influx:
      url: http://localhost:8086
      database: energy
      measure: electricity
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from dotenv import load_dotenv

from .errors import ConfigurationError
from .models import OffPeakPeriod, ProviderTariff
from .tariffs import parse_period

CONFIG_FILENAME = "enedis2influx.yaml"
DEFAULT_ENEDIS_URL = "https://conso.boris.sh/api"
DEFAULT_TIMEZONE = "Europe/Paris"


@dataclass(frozen=True)
class EnedisConfig:
    """Meter source settings."""

    prm: str
    token: str | None
    base_url: str = DEFAULT_ENEDIS_URL
    timezone: str = DEFAULT_TIMEZONE
    offpeak_periods: tuple[OffPeakPeriod, ...] = ()


@dataclass(frozen=True)
class InfluxConfig:
    """Time-series sink settings."""

    url: str
    database: str
    measure: str
    user: str | None = None
    password: str | None = None


@dataclass(frozen=True)
class AppConfig:
    provider: ProviderTariff
    enedis: EnedisConfig
    influx: InfluxConfig


def get_config_path() -> Path:
    """Find the configuration file."""
    candidates = [
        Path.cwd() / CONFIG_FILENAME,
        Path.cwd() / "config" / CONFIG_FILENAME,
        Path.home() / ".config" / "enedis-influx" / "config.yaml",
    ]
    for path in candidates:
        if path.exists():
            return path
    raise ConfigurationError(f"Could not find {CONFIG_FILENAME}")


def _section(data: dict, name: str) -> dict:
    section = data.get(name)
    if not isinstance(section, dict):
        raise ConfigurationError(f"Missing '{name}' section in configuration")
    return section


def _required(section: dict, key: str, section_name: str) -> Any:
    value = section.get(key)
    if value is None or value == "":
        raise ConfigurationError(f"Missing required setting '{section_name}.{key}'")
    return value


def _number(section: dict, key: str, section_name: str, default: float = 0.0) -> float:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"'{section_name}.{key}' must be a number, got {value!r}")
    return float(value)


def parse_provider(section: dict) -> ProviderTariff:
    """Build the provider tariff from the 'provider' section."""
    enabled = section.get("peak_offpeak_enabled", False)
    if not isinstance(enabled, bool):
        raise ConfigurationError(f"'provider.peak_offpeak_enabled' must be true or false, got {enabled!r}")

    max_power = section.get("max_power", 0)
    if isinstance(max_power, bool) or not isinstance(max_power, int):
        raise ConfigurationError(f"'provider.max_power' must be an integer, got {max_power!r}")

    return ProviderTariff(
        name=str(section.get("name", "")),
        annual_fee=_number(section, "annual_fee", "provider"),
        price_per_kwh=_number(section, "price_per_kwh", "provider"),
        price_per_kwh_peak=_number(section, "price_per_kwh_peak", "provider"),
        price_per_kwh_offpeak=_number(section, "price_per_kwh_offpeak", "provider"),
        peak_offpeak_enabled=enabled,
        max_power=max_power,
    )


def parse_timezone(value: Any) -> str:
    """Check that a timezone name is known."""
    name = value or DEFAULT_TIMEZONE
    try:
        ZoneInfo(str(name))
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigurationError(f"Unknown timezone {name!r}: {e}")
    return str(name)


def parse_offpeak_periods(raw: Any) -> tuple[OffPeakPeriod, ...]:
    """Build off-peak periods from a list of {start, end} mappings."""
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ConfigurationError("'enedis.offpeak_periods' must be a list")

    periods = []
    for p in raw:
        if not isinstance(p, dict) or "start" not in p or "end" not in p:
            raise ConfigurationError(f"Off-peak period needs 'start' and 'end': {p!r}")
        periods.append(parse_period(p["start"], p["end"]))
    return tuple(periods)


def parse_config(data: dict, env: dict | None = None) -> AppConfig:
    """Build an AppConfig from parsed YAML data and environment overrides."""
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration must be a mapping")
    env = os.environ if env is None else env

    enedis = _section(data, "enedis")
    influx = _section(data, "influx")

    return AppConfig(
        provider=parse_provider(_section(data, "provider")),
        enedis=EnedisConfig(
            prm=str(_required(enedis, "prm", "enedis")),
            token=env.get("ENEDIS_TOKEN") or enedis.get("token"),
            base_url=enedis.get("base_url") or DEFAULT_ENEDIS_URL,
            timezone=parse_timezone(enedis.get("timezone")),
            offpeak_periods=parse_offpeak_periods(enedis.get("offpeak_periods")),
        ),
        influx=InfluxConfig(
            url=str(_required(influx, "url", "influx")),
            database=str(_required(influx, "database", "influx")),
            measure=str(_required(influx, "measure", "influx")),
            user=env.get("INFLUX_USER") or influx.get("user"),
            password=env.get("INFLUX_PASSWORD") or influx.get("password"),
        ),
    )


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load configuration from YAML, with secrets from the environment."""
    load_dotenv()
    path = config_path or get_config_path()
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Error reading config file {path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Error parsing config file {path}: {e}")

    return parse_config(data or {})
