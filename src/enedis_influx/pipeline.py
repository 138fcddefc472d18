"""Pricing pipeline: classify, price and build points for a batch of readings."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import reduce
from typing import Iterator, Sequence

from .analysis.summary import accumulate, merge_summaries
from .errors import ConfigurationError, InvalidReading, PointConstructionError
from .models import MeterReading, OffPeakPeriod, OutputPoint, PeriodSummary, PricedReading, ProviderTariff
from .points import build_point
from .tariffs import is_offpeak, price_reading

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Output batch, period totals and number of skipped readings."""

    points: list[OutputPoint] = field(default_factory=list)
    summary: PeriodSummary = field(default_factory=PeriodSummary)
    skipped: int = 0

    def __iter__(self) -> Iterator:
        return iter((self.points, self.summary, self.skipped))


def check_configuration(tariff: ProviderTariff, periods: Sequence[OffPeakPeriod]) -> None:
    """Reject configuration values that did not come from the config loader."""
    if not isinstance(tariff, ProviderTariff):
        raise ConfigurationError(f"Expected a ProviderTariff, got {type(tariff).__name__}")
    for period in periods:
        if not isinstance(period, OffPeakPeriod):
            raise ConfigurationError(f"Expected an OffPeakPeriod, got {period!r}")


def price(reading: MeterReading, tariff: ProviderTariff, periods: Sequence[OffPeakPeriod]) -> PricedReading:
    """Classify and price a single reading."""
    offpeak = is_offpeak(reading.timestamp, periods)
    cost = price_reading(reading.energy_kwh, offpeak, tariff)
    return PricedReading(
        timestamp=reading.timestamp,
        energy_kwh=reading.energy_kwh,
        is_offpeak=offpeak,
        cost=cost,
    )


def _process(
    readings: Sequence[MeterReading],
    tariff: ProviderTariff,
    periods: Sequence[OffPeakPeriod],
    measurement: str,
    skip_invalid: bool,
) -> PipelineResult:
    result = PipelineResult()
    has_periods = len(periods) > 0

    for reading in readings:
        try:
            priced = price(reading, tariff, periods)
        except InvalidReading as e:
            if not skip_invalid:
                raise
            logger.warning("Skipping reading at %s: %s", reading.timestamp, e)
            result.skipped += 1
            continue

        result.summary = accumulate(result.summary, priced, tariff.peak_offpeak_enabled)

        try:
            point = build_point(measurement, priced, tariff.peak_offpeak_enabled, has_periods)
        except PointConstructionError as e:
            logger.warning("Could not build point for %s: %s", reading.timestamp, e)
            result.skipped += 1
            continue

        result.points.append(point)
        logger.debug(
            "Got measure of %s : %.3f | HC:%s | HP:%s | HN:%s | PRICE:%.4f",
            reading.timestamp.isoformat(),
            reading.energy_kwh,
            point.heures_creuses,
            point.heures_pleines,
            point.heures_normales,
            priced.cost,
        )

    return result


def _chunks(items: Sequence, count: int) -> list[Sequence]:
    size = -(-len(items) // count)
    return [items[i : i + size] for i in range(0, len(items), size)]


def run_pipeline(
    readings: Sequence[MeterReading],
    tariff: ProviderTariff,
    periods: Sequence[OffPeakPeriod],
    measurement: str,
    *,
    skip_invalid: bool = False,
    workers: int = 1,
) -> PipelineResult:
    """Price a batch of readings and build the points to store.

    Args:
        readings: Readings for the run, conventionally in time order
        tariff: Provider tariff
        periods: Off-peak periods (empty means every reading is "normal")
        measurement: Measurement name for the output points
        skip_invalid: Skip and count invalid readings instead of aborting
        workers: Number of threads; readings are split into contiguous chunks

    Returns:
        PipelineResult with points in input order, the summary and the
        number of skipped readings

    Raises:
        ConfigurationError: tariff or periods are not valid configuration
        InvalidReading: a reading has bad energy and skip_invalid is False
        AggregationError: a total became non-finite
    """
    periods = list(periods)
    check_configuration(tariff, periods)
    readings = list(readings)

    if workers <= 1 or len(readings) < 2:
        result = _process(readings, tariff, periods, measurement, skip_invalid)
    else:
        chunks = _chunks(readings, workers)
        with ThreadPoolExecutor(max_workers=workers) as executor:
            partials = list(
                executor.map(
                    lambda chunk: _process(chunk, tariff, periods, measurement, skip_invalid),
                    chunks,
                )
            )
        result = PipelineResult(
            points=[p for partial in partials for p in partial.points],
            summary=reduce(merge_summaries, (p.summary for p in partials), PeriodSummary()),
            skipped=sum(p.skipped for p in partials),
        )

    logger.info(
        "Priced %d readings into %d points (%d skipped)",
        len(readings),
        len(result.points),
        result.skipped,
    )
    return result
